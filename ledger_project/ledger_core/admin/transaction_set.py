from django.contrib import admin

from ledger_core.models import TransactionSet, TransactionSetLine

from .actions import post_transaction_sets, submit_transaction_sets
from .mixins import TenantAdminMixin


class TransactionSetLineInline(admin.TabularInline):
    model = TransactionSetLine
    extra = 0
    fields = ("line_number", "account", "debit", "credit", "description")
    ordering = ("line_number",)

    # staged lines are frozen once the set leaves draft/review
    def has_change_permission(self, request, obj=None):
        return obj is None or obj.is_editable

    def has_add_permission(self, request, obj=None):
        return obj is None or obj.is_editable

    def has_delete_permission(self, request, obj=None):
        return obj is None or obj.is_editable


@admin.register(TransactionSet)
class TransactionSetAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "status",
        "source",
        "business_date",
        "created_by",
        "posted_at",
        "company",
    )
    list_filter = ("status", "source", "company")
    search_fields = ("notes", "void_reason")
    date_hierarchy = "business_date"
    inlines = [TransactionSetLineInline]
    actions = [submit_transaction_sets, post_transaction_sets]
    # lifecycle fields only move through the services
    readonly_fields = (
        "status",
        "submitted_at",
        "submitted_by",
        "posted_at",
        "posted_by",
        "voided_at",
        "voided_by",
        "void_reason",
        "created_by",
    )

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "created_by", "posted_by")

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)

    def save_formset(self, request, form, formset, change):
        # inline lines inherit the tenant of their set
        instances = formset.save(commit=False)
        for line in instances:
            line.company = form.instance.company
            line.save()
        for line in formset.deleted_objects:
            line.delete()
        formset.save_m2m()
