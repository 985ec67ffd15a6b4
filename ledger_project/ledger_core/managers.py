from django.contrib.auth.base_user import BaseUserManager
from django.db import models

from .exceptions import NotFoundError


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):
        return self.filter(company=company)

    def active(self, company):
        return self.filter(company=company, is_active=True)


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    """
    Default manager of every company-owned model.
    Service code fetches rows through get_for_company() so a foreign
    tenant's id behaves exactly like a missing one.
    """

    def get_for_company(self, company, pk, lock=False):
        qs = self.for_company(company)
        if lock:
            # caller must already be inside transaction.atomic()
            qs = qs.select_for_update()
        try:
            return qs.get(pk=pk)
        except (self.model.DoesNotExist, ValueError, TypeError):
            label = self.model._meta.verbose_name.capitalize()
            raise NotFoundError(f"{label} not found (id: {pk})")


class UserManager(BaseUserManager):
    """Enforce rules around how users are created"""

    use_in_migrations = True

    def _create_user(self, username, email, password, **extra_fields):
        if not username:
            raise ValueError("The given username must be set")
        email = self.normalize_email(email)
        user = self.model(username=username, email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(username, email, password, **extra_fields)

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        if extra_fields.get("is_staff") is not True or extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_staff=True and is_superuser=True")
        return self._create_user(username, email, password, **extra_fields)
