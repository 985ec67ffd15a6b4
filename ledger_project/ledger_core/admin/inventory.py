from django.contrib import admin

from ledger_core.models import InventoryBalance, InventoryMovement, Item, Warehouse

from .mixins import TenantAdminMixin
from .readonly import ReadOnlyAdmin


@admin.register(Item)
class ItemAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("sku", "name", "default_purchase_cost", "company")
    list_filter = ("company",)
    search_fields = ("sku", "name")


@admin.register(Warehouse)
class WarehouseAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("code", "name", "company")
    search_fields = ("code", "name")


@admin.register(InventoryMovement)
class InventoryMovementAdmin(TenantAdminMixin, ReadOnlyAdmin):
    list_display = (
        "id",
        "movement_type",
        "item",
        "quantity",
        "unit_cost",
        "from_warehouse",
        "to_warehouse",
        "movement_date",
        "status",
        "transaction_set",
    )
    list_filter = ("movement_type", "status", "company")
    search_fields = ("item__sku", "reference")
    list_select_related = ("item", "from_warehouse", "to_warehouse", "transaction_set")


# On-hand quantities only change when movements post
@admin.register(InventoryBalance)
class InventoryBalanceAdmin(TenantAdminMixin, ReadOnlyAdmin):
    list_display = ("item", "warehouse", "on_hand", "updated_at", "company")
    list_filter = ("company", "warehouse")
    search_fields = ("item__sku", "item__name")
    list_select_related = ("item", "warehouse")
