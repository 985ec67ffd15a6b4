from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils.text import slugify

from ..managers import UserManager


# ---------- Tenant / Company ----------
class Company(models.Model):
    """Tenant / Organization"""

    # Store company's full display name
    name = models.CharField(max_length=200)

    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two companies can have the same slug
    )

    # Link to a user account (creator or admin of company)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        # if user is deleted, company record stays, owner is set to NULL
        on_delete=models.SET_NULL,
        related_name="owned_companies",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name

    def _unique_slug(self):
        base = slugify(self.name)[:70] or "company"
        slug = base
        i = 2
        while Company.objects.filter(slug=slug).exclude(pk=self.pk).exists():
            slug = f"{base}-{i}"
            i += 1
        return slug

    def save(self, *args, **kwargs):
        # derive slug from name when the caller did not pick one
        if not self.slug:
            self.slug = self._unique_slug()
        return super().save(*args, **kwargs)


# ---------- Custom User ----------
class User(AbstractUser):
    """
    The actor recorded on every posting, transition and audit row.
    AUTH_USER_MODEL = "ledger_core.User" must be set before the first migrate.
    """

    # Company used when a request carries no explicit tenant
    default_company = models.ForeignKey(
        "Company",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="default_users",
    )

    objects = UserManager()

    class Meta:
        indexes = [models.Index(fields=["default_company"], name="user_default_company_idx")]

    def __str__(self):
        return self.get_full_name() or self.username
