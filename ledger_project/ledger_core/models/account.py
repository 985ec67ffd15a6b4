from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company

# Choice Lists
AC_TYPES = [
    ("asset", "Asset"),
    ("liability", "Liability"),
    ("equity", "Equity"),
    ("revenue", "Revenue"),
    ("expense", "Expense"),
]

# Define whether the account normally increases
# on the debit side or credit side
NORMAL_BALANCE = [
    ("debit", "Debit"),
    ("credit", "Credit"),
]

# Assets/Expenses → Debit, Liabilities/Equity/Revenue → Credit
DEFAULT_NORMAL_BALANCE = {
    "asset": "debit",
    "expense": "debit",
    "liability": "credit",
    "equity": "credit",
    "revenue": "credit",
}


class Account(models.Model):
    """
    Ledger account in the Chart of Accounts.
    - code is unique per company and sorts hierarchically ("1010" under "10")
    - ac_type: determines reporting -BS vs P&L
    - normal_balance: used to interpret sign when building reports
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    ac_type = models.CharField(max_length=10, choices=AC_TYPES)
    normal_balance = models.CharField(
        max_length=6,
        choices=NORMAL_BALANCE,
        blank=True,
    )
    # Optional hierarchy (1000 Cash, 1001 Savings, 1010 Petty Cash)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        # you can't delete a parent if children exist
        on_delete=models.PROTECT,
        related_name="children",
    )
    # "soft deactivate" accounts: no new postings, history stays
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            # For reports grouped by ac_type (trial balance, P&L)
            models.Index(fields=["company", "ac_type"], name="acct_company_type_idx"),
            models.Index(fields=["company", "parent"], name="acct_company_parent_idx"),
        ]
        # Codes repeat across companies but must be unique within one
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_account_code"
            )
        ]
        ordering = ("company", "code")

    def __str__(self):
        return f"{self.code} {self.name}"

    def clean(self):
        # Check if parent account belongs to same company
        if self.parent_id and self.parent.company_id != self.company_id:
            raise ValidationError(
                "Parent & child accounts must belong to the same company"
            )

    def save(self, *args, **kwargs):
        if not self.normal_balance:
            self.normal_balance = DEFAULT_NORMAL_BALANCE.get(self.ac_type, "debit")

        if self.pk:
            old = Account.objects.filter(pk=self.pk).only("is_active").first()
            # active → inactive is refused once journal lines point here
            if old and old.is_active and not self.is_active:
                if self.journal_lines.exists():
                    raise ValidationError(
                        "Cannot disable an account that is used in journal lines."
                    )
        self.full_clean()
        return super().save(*args, **kwargs)
