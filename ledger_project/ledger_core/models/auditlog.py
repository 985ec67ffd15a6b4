from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Audit / Event log ----------
class AuditLog(models.Model):  # Accountability and traceability across the ledger
    # Nullable because some actions might not belong to a specific company
    company = models.ForeignKey(
        Company,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    # Nullable in case the action was automated (background job, command)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
    )
    # post, void, reverse, allocate, soft_close ...
    action = models.CharField(max_length=50)
    # TransactionSet, JournalEntry, Payment, AccountingPeriod ...
    object_type = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    # Before/after details; Decimal and date values are accepted
    changes = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "user"], name="audit_company_user_idx"),
            models.Index(fields=["company", "created_at"], name="audit_company_created_idx"),
            models.Index(fields=["company", "object_type", "object_id"], name="audit_company_object_idx"),
        ]

    def __str__(self):
        time = self.created_at
        return f"[{time:%Y-%m-%d %H:%M}] {self.user} {self.action} {self.object_type}({self.object_id})"
