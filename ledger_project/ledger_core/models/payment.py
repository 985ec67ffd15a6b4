from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from ..money import to_money
from .account import Account
from .company import Company
from .documents import PurchaseDoc, SalesDoc
from .transaction_set import TransactionSet

PAYMENT_TYPES = [
    ("receipt", "Customer receipt"),  # money in, settles sales documents
    ("payment", "Vendor payment"),  # money out, settles purchase documents
]

PAYMENT_METHODS = [
    ("cash", "Cash"),
    ("bank", "Bank"),
]

PAYMENT_STATUS = [
    ("draft", "Draft"),
    ("posted", "Posted"),
    ("void", "Void"),
]

TARGET_TYPES = [
    ("sales_doc", "Sales document"),
    ("purchase_doc", "Purchase document"),
]

# Which document type each payment type may settle
TARGET_FOR_PAYMENT_TYPE = {
    "receipt": "sales_doc",
    "payment": "purchase_doc",
}


class Payment(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    payment_type = models.CharField(max_length=10, choices=PAYMENT_TYPES)
    method = models.CharField(max_length=10, choices=PAYMENT_METHODS, default="bank")
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    payment_date = models.DateField()
    reference = models.CharField(max_length=200, blank=True, default="")
    status = models.CharField(max_length=10, choices=PAYMENT_STATUS, default="draft")

    # The cash or bank ledger account money moves through
    cash_account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="+"
    )
    transaction_set = models.OneToOneField(
        TransactionSet,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payment",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    void_reason = models.TextField(blank=True, default="")

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "status"], name="pay_company_status_idx"),
            models.Index(fields=["company", "payment_date"], name="pay_company_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="payment_amount_positive"
            ),
        ]

    def __str__(self):
        return f"{self.get_payment_type_display()} {self.reference or self.pk} {self.amount}"

    @property
    def target_type(self):
        return TARGET_FOR_PAYMENT_TYPE[self.payment_type]

    def allocated_total(self):
        # SQLite hands back Sum() unscaled
        return to_money(self.allocations.aggregate(total=models.Sum("amount"))["total"])

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Payment amount must be positive.")
        if self.cash_account_id and self.cash_account.company_id != self.company_id:
            raise ValidationError("Cash account must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


class PaymentAllocation(models.Model):
    """Applies part of a payment to one sales or purchase document."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    payment = models.ForeignKey(
        Payment, on_delete=models.CASCADE, related_name="allocations"
    )
    target_type = models.CharField(max_length=20, choices=TARGET_TYPES)
    # exactly one of these is set, matching target_type
    sales_doc = models.ForeignKey(
        SalesDoc, null=True, blank=True, on_delete=models.PROTECT, related_name="allocations"
    )
    purchase_doc = models.ForeignKey(
        PurchaseDoc, null=True, blank=True, on_delete=models.PROTECT, related_name="allocations"
    )
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "payment"], name="alloc_company_payment_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="alloc_amount_positive"
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(
                        target_type="sales_doc",
                        sales_doc__isnull=False,
                        purchase_doc__isnull=True,
                    )
                    | models.Q(
                        target_type="purchase_doc",
                        purchase_doc__isnull=False,
                        sales_doc__isnull=True,
                    )
                ),
                name="alloc_target_matches_type",
            ),
        ]

    def __str__(self):
        return f"{self.payment_id} → {self.target_type}:{self.target_id} {self.amount}"

    @property
    def target(self):
        return self.sales_doc if self.target_type == "sales_doc" else self.purchase_doc

    @property
    def target_id(self):
        return self.sales_doc_id if self.target_type == "sales_doc" else self.purchase_doc_id

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Allocation amount must be positive.")
        target = self.target
        if target is not None and target.company_id != self.company_id:
            raise ValidationError("Allocation target must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
