from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import models
from django.utils import timezone

from ..exceptions import InvalidStateError
from ..managers import TenantManager
from .account import Account
from .company import Company

TS_STATUS = [
    ("draft", "Draft"),  # still editable
    ("review", "Review"),  # submitted, waiting for approval
    ("posted", "Posted"),  # journal entry written, terminal
    ("void", "Void"),  # abandoned, terminal
]

# Current state vs. allowed next states
ALLOWED_TRANSITIONS = {
    "draft": ("review", "void", "posted"),
    "review": ("void", "posted"),
    "posted": (),
    "void": (),
}

EDITABLE_STATUSES = ("draft", "review")


class TransactionSet(models.Model):
    """
    Business-level unit of work that may become exactly one journal entry.

    `source` tags where the set came from (payment, inventory, manual,
    transfer, reversal, sales_doc ...) and selects the line deriver used
    by the posting engine.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    status = models.CharField(max_length=10, choices=TS_STATUS, default="draft")
    source = models.CharField(max_length=40, default="manual")
    business_date = models.DateField()
    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    submitted_at = models.DateTimeField(null=True, blank=True)
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    posted_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    void_reason = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "status"], name="ts_company_status_idx"),
            models.Index(fields=["company", "business_date"], name="ts_company_bdate_idx"),
        ]

    def __str__(self):
        return f"TS {self.pk} {self.source} [{self.status}]"

    @property
    def is_editable(self):
        return self.status in EDITABLE_STATUSES

    @property
    def posted_entry(self):
        """The journal entry written for this set, or None."""
        try:
            return self.journal_entry
        except ObjectDoesNotExist:
            return None

    def can_transition(self, new_status):
        return new_status in ALLOWED_TRANSITIONS.get(self.status, ())

    def _check_transition(self, new_status):
        if not self.can_transition(new_status):
            raise InvalidStateError(
                f"Cannot move transaction set from {self.status} to {new_status}"
            )

    def transition_to(self, new_status, user=None, reason=""):
        """Move to review or void. Posting goes through mark_posted()."""
        if new_status == "posted":
            raise InvalidStateError(
                "Transaction sets are posted by the posting engine only"
            )
        self._check_transition(new_status)

        now = timezone.now()
        fields = ["status", "updated_at"]
        if new_status == "review":
            self.submitted_at, self.submitted_by = now, user
            fields += ["submitted_at", "submitted_by"]
        elif new_status == "void":
            self.voided_at, self.voided_by = now, user
            self.void_reason = reason or ""
            fields += ["voided_at", "voided_by", "void_reason"]
        self.status = new_status
        self.save(update_fields=fields)

    def mark_posted(self, user=None):
        # services/posting.py is the only caller
        self._check_transition("posted")
        self.status = "posted"
        self.posted_at = timezone.now()
        self.posted_by = user
        self.save(update_fields=["status", "posted_at", "posted_by", "updated_at"])


class TransactionSetLine(models.Model):
    """Staged (proposed) journal line of a manual-style transaction set."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    transaction_set = models.ForeignKey(
        TransactionSet, on_delete=models.CASCADE, related_name="staged_lines"
    )
    line_number = models.PositiveIntegerField()
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="staged_lines"
    )
    debit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    description = models.CharField(max_length=400, blank=True, default="")

    objects = TenantManager()

    class Meta:
        ordering = ("transaction_set", "line_number")
        constraints = [
            models.UniqueConstraint(
                fields=["transaction_set", "line_number"],
                name="uq_tsl_set_line_number",
            ),
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="tsl_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"{self.account.code} D{self.debit} C{self.credit}"

    def clean(self):
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError("Account must belong to the same company.")
        if self.transaction_set_id and self.transaction_set.company_id != self.company_id:
            raise ValidationError(
                "Staged line and transaction set must belong to the same company."
            )

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
