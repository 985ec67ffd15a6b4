from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company
from .item import Item
from .transaction_set import TransactionSet

MOVEMENT_TYPES = [
    ("receipt", "Receipt"),  # stock in
    ("issue", "Issue"),  # stock out
    ("adjustment", "Adjustment"),  # stock in or out, side given by the warehouse
    ("transfer", "Transfer"),  # between warehouses, no GL effect
]

MOVEMENT_STATUS = [
    ("draft", "Draft"),
    ("posted", "Posted"),
]


class Warehouse(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_warehouse_code"
            )
        ]

    def __str__(self):
        return self.code


class InventoryMovement(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    transaction_set = models.ForeignKey(
        TransactionSet, on_delete=models.PROTECT, related_name="movements"
    )
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="movements")
    movement_type = models.CharField(max_length=12, choices=MOVEMENT_TYPES)
    quantity = models.DecimalField(max_digits=18, decimal_places=4)
    unit_cost = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    from_warehouse = models.ForeignKey(
        Warehouse, null=True, blank=True, on_delete=models.PROTECT, related_name="+"
    )
    to_warehouse = models.ForeignKey(
        Warehouse, null=True, blank=True, on_delete=models.PROTECT, related_name="+"
    )
    movement_date = models.DateField()
    status = models.CharField(max_length=10, choices=MOVEMENT_STATUS, default="draft")
    reference = models.CharField(max_length=200, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "transaction_set"], name="invmv_company_ts_idx"),
            models.Index(fields=["company", "item"], name="invmv_company_item_idx"),
        ]

    def __str__(self):
        return f"{self.movement_type} {self.item} x{self.quantity}"

    def clean(self):
        if self.quantity is None or self.quantity <= 0:
            raise ValidationError("Movement quantity must be positive.")
        if self.unit_cost is not None and self.unit_cost < 0:
            raise ValidationError("Unit cost cannot be negative.")

        needs = {
            "receipt": ("to_warehouse",),
            "issue": ("from_warehouse",),
            "transfer": ("from_warehouse", "to_warehouse"),
        }.get(self.movement_type, ())
        for field in needs:
            if getattr(self, f"{field}_id") is None:
                raise ValidationError(f"{self.movement_type} movements require {field}.")
        # adjustment direction: to_warehouse = stock in, from_warehouse = stock out
        if self.movement_type == "adjustment" and bool(self.from_warehouse_id) == bool(self.to_warehouse_id):
            raise ValidationError(
                "Adjustments require exactly one of from_warehouse or to_warehouse."
            )
        if self.movement_type == "transfer" and self.from_warehouse_id == self.to_warehouse_id:
            raise ValidationError("Transfer source and destination must differ.")

        for related in (self.item, self.from_warehouse, self.to_warehouse):
            if related is not None and related.company_id != self.company_id:
                raise ValidationError("Item and warehouses must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


class InventoryBalance(models.Model):
    """On-hand quantity of one item in one warehouse."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    item = models.ForeignKey(Item, on_delete=models.CASCADE, related_name="balances")
    warehouse = models.ForeignKey(Warehouse, on_delete=models.CASCADE, related_name="balances")
    on_hand = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "item", "warehouse"], name="uq_inventory_balance"
            )
        ]

    def __str__(self):
        return f"{self.item} @ {self.warehouse}: {self.on_hand}"
