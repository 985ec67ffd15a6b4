from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .account import Account
from .company import Company


# ---------- Account Balance Snapshot ----------
class AccountBalanceSnapshot(models.Model):
    """
    Cumulative debit/credit totals of one account up to snapshot_date.
    Rebuilt from posted journal lines by tasks.refresh_balance_snapshots;
    never the source of truth.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    account = models.ForeignKey(
        Account, on_delete=models.CASCADE, related_name="snapshots"
    )
    snapshot_date = models.DateField()
    debit_total = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    credit_total = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [models.Index(fields=["company", "snapshot_date"], name="snap_company_date_idx")]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(debit_total__gte=0) & models.Q(credit_total__gte=0)
                ),
                name="ab_snap_non_negative_amounts",
            ),
            # Do not store duplicate snapshots for the same account/date
            models.UniqueConstraint(
                fields=["company", "account", "snapshot_date"],
                name="uq_company_account_snapshot_date",
            ),
        ]

    def __str__(self):
        return f"{self.snapshot_date} | {self.account.code}: D {self.debit_total} / C {self.credit_total}"

    @property
    def balance(self):
        return self.debit_total - self.credit_total

    def clean(self):
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError("Account must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
