from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..exceptions import InvalidStateError
from ..managers import TenantManager
from ..money import is_balanced, to_money
from .account import Account
from .company import Company
from .transaction_set import TransactionSet


# ---------- Journal (Header) & JournalLine ----------
class JournalEntry(models.Model):  # One atomic, balanced accounting event
    """
    Append-only. Rows are inserted by services/posting.py and never
    updated or deleted afterwards; corrections are new reversing entries.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    # At most one journal entry per transaction set (unique one-to-one).
    # The database constraint is what makes concurrent posting idempotent.
    transaction_set = models.OneToOneField(
        TransactionSet,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="journal_entry",
    )
    posting_date = models.DateField()
    entry_date = models.DateField(null=True, blank=True)
    memo = models.TextField(blank=True, default="")
    posted_at = models.DateTimeField(default=timezone.now)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )

    # Reversal link: an entry is reversed at most once
    reverses = models.OneToOneField(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="reversed_by",
    )
    reversal_reason = models.TextField(blank=True, default="")

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        verbose_name_plural = "journal entries"
        indexes = [
            models.Index(fields=["company", "posting_date"], name="je_company_pdate_idx"),
        ]

    def __str__(self):
        return f"JE {self.pk} {self.posting_date}"

    # Aggregate all debit and credit amounts across entry's lines
    def compute_totals(self):
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit"),
            total_credit=models.Sum("credit"),
        )
        return (
            to_money(aggs["total_debit"]),
            to_money(aggs["total_credit"]),
        )

    def is_balanced(self):
        debit, credit = self.compute_totals()
        return is_balanced(debit, credit)

    @property
    def is_reversed(self):
        return JournalEntry.objects.filter(reverses_id=self.pk).exists()

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise InvalidStateError(
                "Journal entries are append-only; post a reversal instead."
            )
        if self.entry_date is None:
            self.entry_date = self.posting_date
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvalidStateError("Journal entries cannot be deleted.")


class JournalLine(models.Model):  # One leg of a journal entry
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    journal = models.ForeignKey(
        JournalEntry, on_delete=models.CASCADE, related_name="lines"
    )
    # 1..n in insertion order within the entry
    line_number = models.PositiveIntegerField()
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="journal_lines"
    )
    debit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    description = models.CharField(max_length=400, blank=True, default="")

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("journal", "line_number")
        indexes = [
            models.Index(fields=["company", "account"], name="jl_company_account_idx"),
            models.Index(fields=["company", "journal"], name="jl_company_journal_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["journal", "line_number"],
                name="uq_jl_entry_line_number",
            ),
            # Amounts are never negative
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="jl_non_negative_amounts",
            ),
            # A line is either a debit or a credit, never both or neither
            models.CheckConstraint(
                condition=(
                    (models.Q(debit__gt=0) & models.Q(credit=0))
                    | (models.Q(credit__gt=0) & models.Q(debit=0))
                ),
                name="jl_one_sided_amount",
            ),
        ]

    def __str__(self):
        return f"JE {self.journal_id}#{self.line_number} {self.account.code} D{self.debit} C{self.credit}"

    def clean(self):
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Debit and credit must be non-negative.")
        if self.debit > 0 and self.credit > 0:
            raise ValidationError("A journal line cannot have both debit and credit.")
        if self.debit == 0 and self.credit == 0:
            raise ValidationError("A journal line must have a debit or a credit.")
        # Tenancy checks
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError("Account must belong to the same company.")
        if self.journal_id and self.journal.company_id != self.company_id:
            raise ValidationError("Journal line must belong to the journal's company.")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise InvalidStateError("Journal lines are append-only.")
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvalidStateError("Journal lines cannot be deleted.")
