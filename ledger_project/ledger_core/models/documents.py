from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..exceptions import InvalidStateError
from ..managers import TenantManager
from .account import Account
from .company import Company
from .customer import Customer
from .transaction_set import TransactionSet
from .vendor import Vendor

DOC_STATUS = [
    ("draft", "Draft"),  # not yet finalized
    ("posted", "Posted"),  # booked to AR/AP, open for allocations
    ("void", "Void"),  # canceled
]


class PartyDocument(models.Model):
    """Fields shared by sales documents (invoices) and purchase documents (bills)."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # human-readable (e.g. "INV-2025-001")
    doc_number = models.CharField(max_length=64)
    doc_date = models.DateField()  # issue date
    due_date = models.DateField(null=True, blank=True)
    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    status = models.CharField(max_length=10, choices=DOC_STATUS, default="draft")
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        abstract = True

    def __str__(self):
        return self.doc_number

    def effective_due_date(self, default_days):
        terms = getattr(self.party, "payment_terms_days", None)
        if self.due_date:
            return self.due_date
        return self.doc_date + timedelta(days=terms if terms is not None else default_days)

    def transition_to(self, new_status):
        allowed = {
            "draft": ["posted", "void"],
            "posted": [],
            "void": [],
        }
        if new_status not in allowed.get(self.status, []):
            raise InvalidStateError(f"Cannot go from {self.status} to {new_status}")
        self.status = new_status
        self.save(update_fields=["status"])

    def clean(self):
        if self.total_amount is not None and self.total_amount < 0:
            raise ValidationError("Document total cannot be negative.")
        party = self.party
        if party is not None and party.company_id != self.company_id:
            raise ValidationError(
                f"{party._meta.verbose_name.capitalize()} must belong to the same company."
            )
        account = self.posting_account
        if account is not None and account.company_id != self.company_id:
            raise ValidationError("Account must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


# ---------- Sales document (customer invoice) ----------
class SalesDoc(PartyDocument):
    customer = models.ForeignKey(
        Customer,
        null=True,
        blank=True,
        # prevent deleting customer who has an invoice
        on_delete=models.PROTECT,
        related_name="sales_docs",
    )
    # Credited when the document is posted (Dr AR / Cr revenue)
    revenue_account = models.ForeignKey(
        Account, null=True, blank=True, on_delete=models.PROTECT, related_name="+"
    )
    transaction_set = models.OneToOneField(
        TransactionSet,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="sales_doc",
    )

    class Meta:
        indexes = [
            models.Index(fields=["company", "customer"], name="sdoc_company_customer_idx"),
            models.Index(fields=["company", "status"], name="sdoc_company_status_idx"),
        ]
        # Within one company, each document number must be unique
        constraints = [
            models.UniqueConstraint(
                fields=["company", "doc_number"], name="uq_salesdoc_company_number"
            )
        ]

    @property
    def party(self):
        return self.customer

    @property
    def posting_account(self):
        return self.revenue_account


# ---------- Purchase document (vendor bill) ----------
class PurchaseDoc(PartyDocument):
    vendor = models.ForeignKey(
        Vendor,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="purchase_docs",
    )
    # Debited when the document is posted (Dr expense / Cr AP)
    expense_account = models.ForeignKey(
        Account, null=True, blank=True, on_delete=models.PROTECT, related_name="+"
    )
    transaction_set = models.OneToOneField(
        TransactionSet,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="purchase_doc",
    )

    class Meta:
        indexes = [
            models.Index(fields=["company", "vendor"], name="pdoc_company_vendor_idx"),
            models.Index(fields=["company", "status"], name="pdoc_company_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "doc_number"], name="uq_purchasedoc_company_number"
            )
        ]

    @property
    def party(self):
        return self.vendor

    @property
    def posting_account(self):
        return self.expense_account
