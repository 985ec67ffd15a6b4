from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin
from django.utils.translation import gettext_lazy as _

from ledger_core.models import Company, User


# Register `Company` model in admin with this custom config
@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    """a clean admin table for browsing companies"""

    list_display = ("id", "name", "slug", "owner", "created_at")
    search_fields = ("name", "slug")
    ordering = ("name",)
    list_select_related = ("owner",)


# Extend stock `DjangoUserAdmin` with the tenant default
@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = (
        "username", "email", "get_full_name", "is_staff", "default_company")
    list_filter = ("is_staff", "is_superuser", "is_active")
    search_fields = ("username", "email", "first_name", "last_name")
    ordering = ("username",)

    fieldsets = DjangoUserAdmin.fieldsets + (
        (_("Company / Defaults"), {"fields": ("default_company",)}),
    )
    add_fieldsets = DjangoUserAdmin.add_fieldsets + (
        (_("Company / Defaults"), {"fields": ("default_company",)}),
    )
