from django.contrib import admin
from django.utils.html import format_html

from ledger_core.models import JournalEntry, JournalLine
from ledger_core.money import is_balanced

from .mixins import TenantAdminMixin
from .readonly import ReadOnlyAdmin


class JournalLineInline(admin.TabularInline):
    model = JournalLine
    extra = 0
    fields = ("line_number", "account", "debit", "credit", "description")
    readonly_fields = fields
    ordering = ("line_number",)
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


# Posted entries are append-only: corrections go through a reversal
@admin.register(JournalEntry)
class JournalEntryAdmin(TenantAdminMixin, ReadOnlyAdmin):
    list_display = (
        "id",
        "posting_date",
        "memo",
        "transaction_set",
        "reverses",
        "posted_by",
        "company",
        "balanced",
    )
    list_filter = ("company", "posting_date")
    search_fields = ("memo", "reversal_reason")
    date_hierarchy = "posting_date"
    inlines = [JournalLineInline]

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "transaction_set", "reverses", "posted_by")

    @admin.display(description="Balanced")
    def balanced(self, obj):
        total_debit, total_credit = obj.compute_totals()
        if is_balanced(total_debit, total_credit):
            return format_html('<span style="color: green;">{}</span>', total_debit)
        return format_html(
            '<span style="color: red;">D {} / C {}</span>', total_debit, total_credit
        )


@admin.register(JournalLine)
class JournalLineAdmin(TenantAdminMixin, ReadOnlyAdmin):
    list_display = ("journal", "line_number", "account", "debit", "credit", "company")
    list_filter = ("company",)
    search_fields = ("account__code", "account__name", "description")
    list_select_related = ("company", "journal", "account")
