from django.contrib import admin

from ledger_core.models import Account, AccountBalanceSnapshot

from .mixins import TenantAdminMixin
from .readonly import ReadOnlyAdmin


# Register `Account` model
@admin.register(Account)
class AccountAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "code",
        "name",
        "ac_type",
        "normal_balance",
        "parent",
        "is_active",
        "company",
    )
    list_filter = ("ac_type", "is_active", "company")
    search_fields = ("code", "name")
    ordering = ("company", "code")
    list_select_related = ("company", "parent")

    fieldsets = (
        (None, {"fields": ("company", "code", "name")}),
        ("Classification", {"fields": ("ac_type", "normal_balance", "parent")}),
        ("Status", {"fields": ("is_active",)}),
    )


@admin.register(AccountBalanceSnapshot)
class AccountBalanceSnapshotAdmin(TenantAdminMixin, ReadOnlyAdmin):
    list_display = ("snapshot_date", "account", "debit_total", "credit_total", "company")
    list_filter = ("company", "snapshot_date")
    search_fields = ("account__code", "account__name")
    list_select_related = ("company", "account")
