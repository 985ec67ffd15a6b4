from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company

PERIOD_STATUS = [
    ("open", "Open"),
    ("soft_closed", "Soft closed"),  # posting allowed, with a warning
    ("hard_closed", "Hard closed"),  # no new postings dated inside
]


# ---------- Accounting period (one calendar month) ----------
class AccountingPeriod(models.Model):
    # Every company has its own independent calendar of periods
    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    """
        Tenant isolation:
        "Company A" can close July while "Company B" is still open.
    """

    period_start = models.DateField()
    period_end = models.DateField()
    # e.g. "January 2025"
    label = models.CharField(max_length=50)
    status = models.CharField(max_length=12, choices=PERIOD_STATUS, default="open")

    soft_closed_at = models.DateTimeField(null=True, blank=True)
    soft_closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    hard_closed_at = models.DateTimeField(null=True, blank=True)
    hard_closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    reopened_at = models.DateTimeField(null=True, blank=True)
    reopened_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    reopen_reason = models.TextField(blank=True, default="")

    # Frozen at close time, for the close report
    checklist_snapshot = models.JSONField(null=True, blank=True)
    period_totals = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "status"], name="period_company_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "period_start"], name="uq_company_period_start"
            ),
        ]
        # sorted by company, then chronologically
        ordering = ("company", "period_start")

    def __str__(self):
        return f"{self.label} [{self.status}]"

    @property
    def is_hard_closed(self):
        return self.status == "hard_closed"

    def contains(self, day):
        return self.period_start <= day <= self.period_end

    def clean(self):
        if self.period_start > self.period_end:
            raise ValidationError("period_start must not be after period_end")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
