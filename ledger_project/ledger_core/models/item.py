from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Items (stocked products) ----------
class Item(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # Stock Keeping Unit, unique per company
    sku = models.CharField(max_length=80)
    name = models.CharField(max_length=200)

    # Cost used for receipts and adjustments entered without a unit cost
    default_purchase_cost = models.DecimalField(
        max_digits=18, decimal_places=4, null=True, blank=True
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "sku"], name="uq_company_item_sku"
            )
        ]

    def __str__(self):
        return f"{self.sku} {self.name}"
