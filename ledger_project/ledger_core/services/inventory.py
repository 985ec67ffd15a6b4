import logging
from dataclasses import asdict, dataclass
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F

from ..exceptions import InvalidStateError
from ..models import InventoryBalance, InventoryMovement, Item, TransactionSet, Warehouse
from ..models.inventory import MOVEMENT_TYPES
from ..money import to_money, to_quantity
from .audit_helper import log_action, resolve_actor
from .lines import LineSpec, account_for_role
from .posting import Derivation, LineDeriver, post_transaction_set, register_deriver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InventoryPostingResult:
    transaction_set_id: int
    movement_ids: list
    journal_entry_id: Optional[int]
    idempotent: bool = False

    def as_dict(self):
        return asdict(self)


def _tenant_row(model, company, value):
    if value in (None, ""):
        return None
    pk = value.pk if isinstance(value, model) else value
    return model.objects.get_for_company(company, pk)


def record_inventory_movement(company, actor, transaction_set_id, item, movement_type, quantity,
                              unit_cost=None, from_warehouse=None, to_warehouse=None,
                              movement_date=None, reference="") -> InventoryMovement:
    """Add a draft movement to a draft "inventory" transaction set."""
    if movement_type not in dict(MOVEMENT_TYPES):
        raise ValidationError(f"Unknown movement type {movement_type!r}.")
    actor = resolve_actor(actor)

    with transaction.atomic():
        ts = TransactionSet.objects.get_for_company(company, transaction_set_id, lock=True)
        if ts.source != "inventory":
            raise ValidationError(f"Transaction set {ts.pk} is not an inventory set.")
        if ts.status != "draft":
            raise InvalidStateError(f"Movements can only be added to draft sets (status: {ts.status}).")

        movement = InventoryMovement.objects.create(
            company=company,
            transaction_set=ts,
            item=_tenant_row(Item, company, item),
            movement_type=movement_type,
            quantity=to_quantity(quantity),
            unit_cost=to_quantity(unit_cost, field="unit_cost") if unit_cost not in (None, "") else None,
            from_warehouse=_tenant_row(Warehouse, company, from_warehouse),
            to_warehouse=_tenant_row(Warehouse, company, to_warehouse),
            movement_date=movement_date or ts.business_date,
            reference=reference or "",
        )
        log_action(
            action="create",
            instance=movement,
            user=actor,
            changes={"type": movement_type, "quantity": movement.quantity},
        )
    return movement


def _is_inbound(movement):
    if movement.movement_type == "receipt":
        return True
    # adjustments: a destination warehouse means stock came in
    return movement.movement_type == "adjustment" and movement.to_warehouse_id is not None


def _movement_cost(movement):
    cost = movement.unit_cost
    if not cost and movement.movement_type in ("receipt", "adjustment"):
        cost = movement.item.default_purchase_cost
    return cost or 0


def _bump_balance(company, item, warehouse, delta):
    balance, _ = InventoryBalance.objects.select_for_update().get_or_create(
        company=company, item=item, warehouse=warehouse
    )
    InventoryBalance.objects.filter(pk=balance.pk).update(on_hand=F("on_hand") + delta)
    balance.refresh_from_db(fields=["on_hand"])
    if balance.on_hand < 0:
        logger.warning("Negative stock: %s at %s is %s", item, warehouse, balance.on_hand)


class InventoryDeriver(LineDeriver):
    """
    Costed receipt / inbound adjustment: Dr inventory, Cr clearing (COGS)
    Issue / outbound adjustment:         Dr clearing (COGS), Cr inventory
    Transfers move stock only.
    """

    # a set of transfers posts without a journal entry
    allow_empty = True

    def derive(self, transaction_set):
        movements = list(
            transaction_set.movements.select_related("item").filter(status="draft").order_by("pk")
        )
        if not movements:
            raise ValidationError(f"Transaction set {transaction_set.pk} has no draft movements to post.")

        lines = []
        inventory = clearing = None
        for movement in movements:
            if movement.movement_type == "transfer":
                continue
            value = to_money(movement.quantity * _movement_cost(movement))
            # Uncosted movements change stock but not the ledger
            if value <= 0:
                continue
            if inventory is None:
                inventory = account_for_role(transaction_set.company, "inventory")
                clearing = account_for_role(transaction_set.company, "cogs")
            desc = f"{movement.get_movement_type_display()} {movement.item.sku} x {movement.quantity}"
            if _is_inbound(movement):
                lines.append(LineSpec(account=inventory, debit=value, description=desc))
                lines.append(LineSpec(account=clearing, credit=value, description=desc))
            else:
                lines.append(LineSpec(account=clearing, debit=value, description=desc))
                lines.append(LineSpec(account=inventory, credit=value, description=desc))

        memo = transaction_set.notes or f"Inventory movements ({len(movements)})"
        return Derivation(posting_date=transaction_set.business_date, memo=memo, lines=lines)

    def on_posted(self, transaction_set, entry, actor):
        company = transaction_set.company
        for movement in transaction_set.movements.select_related("item").filter(status="draft"):
            # Out of the source warehouse, into the destination
            if movement.from_warehouse_id:
                _bump_balance(company, movement.item, movement.from_warehouse, -movement.quantity)
            if movement.to_warehouse_id:
                _bump_balance(company, movement.item, movement.to_warehouse, movement.quantity)
            movement.status = "posted"
            movement.save(update_fields=["status"])


register_deriver("inventory", InventoryDeriver())


def post_inventory_movements(company, actor, set_id, memo=None) -> InventoryPostingResult:
    with transaction.atomic():
        ts = TransactionSet.objects.get_for_company(company, set_id, lock=True)
        if ts.source != "inventory":
            raise ValidationError(f"Transaction set {ts.pk} is not an inventory set.")
        result = post_transaction_set(company, actor, ts.pk, memo=memo)
        movement_ids = list(ts.movements.order_by("pk").values_list("pk", flat=True))
    logger.info("Posted %s inventory movements for set %s", len(movement_ids), ts.pk)
    return InventoryPostingResult(ts.pk, movement_ids, result.journal_entry_id, result.idempotent)
