from django.contrib import admin

from ledger_core.models import Customer, PurchaseDoc, SalesDoc, Vendor
from ledger_core.services.statements import open_amount

from .mixins import TenantAdminMixin


@admin.register(Customer)
class CustomerAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("name", "contact_email", "payment_terms_days", "is_active", "company")
    list_filter = ("is_active", "company")
    search_fields = ("name", "contact_email")


@admin.register(Vendor)
class VendorAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("name", "contact_email", "payment_terms_days", "is_active", "company")
    list_filter = ("is_active", "company")
    search_fields = ("name", "contact_email")


class PartyDocAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_filter = ("status", "company")
    search_fields = ("doc_number", "description")
    date_hierarchy = "doc_date"
    readonly_fields = ("status", "transaction_set")

    @admin.display(description="Open")
    def open_balance(self, obj):
        return open_amount(obj)


@admin.register(SalesDoc)
class SalesDocAdmin(PartyDocAdmin):
    list_display = (
        "doc_number", "customer", "doc_date", "due_date",
        "total_amount", "open_balance", "status", "company",
    )
    list_select_related = ("company", "customer")


@admin.register(PurchaseDoc)
class PurchaseDocAdmin(PartyDocAdmin):
    list_display = (
        "doc_number", "vendor", "doc_date", "due_date",
        "total_amount", "open_balance", "status", "company",
    )
    list_select_related = ("company", "vendor")
