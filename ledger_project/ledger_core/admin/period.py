from django.contrib import admin

from ledger_core.models import AccountingPeriod

from .actions import soft_close_periods
from .mixins import TenantAdminMixin


# Register `AccountingPeriod` model
@admin.register(AccountingPeriod)
class AccountingPeriodAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id", "company", "label", "period_start", "period_end", "status")
    list_filter = ("company", "status")
    search_fields = ("label",)
    ordering = ("company", "period_start")
    actions = [soft_close_periods]
    # closing and reopening go through the period services
    readonly_fields = (
        "status",
        "soft_closed_at",
        "soft_closed_by",
        "hard_closed_at",
        "hard_closed_by",
        "reopened_at",
        "reopened_by",
        "reopen_reason",
        "checklist_snapshot",
        "period_totals",
    )
