from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Customer ----------
# Represents client who receives sales documents (AR side)
class Customer(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    contact_email = models.EmailField(null=True, blank=True)

    # Standard credit terms, used when a document has no due date
    payment_terms_days = models.IntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_customer_name"
            ),
        ]

    def __str__(self):
        return self.name
