from django.contrib import admin

from ledger_core.models import Payment, PaymentAllocation

from .actions import post_payments
from .mixins import TenantAdminMixin


class PaymentAllocationInline(admin.TabularInline):
    model = PaymentAllocation
    extra = 0
    fields = ("target_type", "sales_doc", "purchase_doc", "amount", "created_by")
    readonly_fields = fields
    can_delete = False

    # allocations are created through the payment services
    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "payment_type",
        "method",
        "amount",
        "allocated",
        "payment_date",
        "reference",
        "status",
        "company",
    )
    list_filter = ("payment_type", "method", "status", "company")
    search_fields = ("reference",)
    date_hierarchy = "payment_date"
    inlines = [PaymentAllocationInline]
    actions = [post_payments]
    readonly_fields = ("status", "transaction_set", "created_by", "voided_at", "void_reason")

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "cash_account", "transaction_set")

    @admin.display(description="Allocated")
    def allocated(self, obj):
        return obj.allocated_total()

    # payments are recorded via the API so each gets its own transaction set
    def has_add_permission(self, request):
        return False
