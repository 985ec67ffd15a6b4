from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ledger_core.exceptions import InvalidStateError
from ledger_core.models import InventoryBalance, InventoryMovement, Item, JournalEntry, Warehouse
from ledger_core.services.inventory import post_inventory_movements, record_inventory_movement
from ledger_core.services.ledger import account_balance
from ledger_core.services.transaction_sets import create_draft_transaction_set

from .utils import POSTING_DATE, acct, make_tenant


class InventoryMovementTests(TestCase):
    def setUp(self):
        self.company, self.user = make_tenant()
        self.inventory = acct(self.company, "inventory")
        self.cogs = acct(self.company, "cogs")
        self.item = Item.objects.create(
            company=self.company, sku="WID-1", name="Widget", default_purchase_cost=Decimal("2.5000")
        )
        self.main = Warehouse.objects.create(company=self.company, code="MAIN", name="Main")
        self.annex = Warehouse.objects.create(company=self.company, code="ANX", name="Annex")

    def _set(self):
        return create_draft_transaction_set(self.company, self.user, "inventory", POSTING_DATE)

    def _on_hand(self, warehouse):
        balance = InventoryBalance.objects.filter(item=self.item, warehouse=warehouse).first()
        return balance.on_hand if balance else Decimal("0")

    def test_costed_receipt_posts_inventory_entry(self):
        ts = self._set()
        record_inventory_movement(
            self.company, self.user, ts.pk, self.item, "receipt", "10", unit_cost="4.25", to_warehouse=self.main
        )
        result = post_inventory_movements(self.company, self.user, ts.pk)

        self.assertIsNotNone(result.journal_entry_id)
        self.assertEqual(account_balance(self.company, self.inventory), Decimal("42.50"))
        self.assertEqual(account_balance(self.company, self.cogs), Decimal("-42.50"))
        self.assertEqual(self._on_hand(self.main), Decimal("10"))
        self.assertTrue(all(m.status == "posted" for m in InventoryMovement.objects.filter(transaction_set=ts)))

    def test_receipt_without_cost_uses_item_default(self):
        ts = self._set()
        record_inventory_movement(self.company, self.user, ts.pk, self.item.pk, "receipt", 4, to_warehouse=self.main.pk)
        post_inventory_movements(self.company, self.user, ts.pk)
        self.assertEqual(account_balance(self.company, self.inventory), Decimal("10.00"))

    def test_issue_credits_inventory(self):
        ts = self._set()
        record_inventory_movement(
            self.company, self.user, ts.pk, self.item, "issue", "3", unit_cost="2.00", from_warehouse=self.main
        )
        post_inventory_movements(self.company, self.user, ts.pk)
        self.assertEqual(account_balance(self.company, self.inventory), Decimal("-6.00"))
        self.assertEqual(account_balance(self.company, self.cogs), Decimal("6.00"))
        self.assertEqual(self._on_hand(self.main), Decimal("-3"))

    def test_transfer_moves_stock_without_entry(self):
        ts = self._set()
        record_inventory_movement(
            self.company, self.user, ts.pk, self.item, "transfer", "5",
            from_warehouse=self.main, to_warehouse=self.annex,
        )
        result = post_inventory_movements(self.company, self.user, ts.pk)

        self.assertIsNone(result.journal_entry_id)
        self.assertFalse(JournalEntry.objects.exists())
        ts.refresh_from_db()
        self.assertEqual(ts.status, "posted")
        self.assertEqual(self._on_hand(self.main), Decimal("-5"))
        self.assertEqual(self._on_hand(self.annex), Decimal("5"))

    def test_reposting_does_not_move_stock_twice(self):
        ts = self._set()
        record_inventory_movement(self.company, self.user, ts.pk, self.item, "receipt", "2", to_warehouse=self.main)
        first = post_inventory_movements(self.company, self.user, ts.pk)
        second = post_inventory_movements(self.company, self.user, ts.pk)

        self.assertTrue(second.idempotent)
        self.assertEqual(first.journal_entry_id, second.journal_entry_id)
        self.assertEqual(self._on_hand(self.main), Decimal("2"))

    def test_posted_set_takes_no_more_movements(self):
        ts = self._set()
        record_inventory_movement(self.company, self.user, ts.pk, self.item, "receipt", "1", to_warehouse=self.main)
        post_inventory_movements(self.company, self.user, ts.pk)
        with self.assertRaises(InvalidStateError):
            record_inventory_movement(self.company, self.user, ts.pk, self.item, "receipt", "1", to_warehouse=self.main)

    def test_movement_shape_is_validated(self):
        ts = self._set()
        with self.assertRaises(ValidationError):
            # receipts need a destination
            record_inventory_movement(self.company, self.user, ts.pk, self.item, "receipt", "1")
        with self.assertRaises(ValidationError):
            record_inventory_movement(
                self.company, self.user, ts.pk, self.item, "transfer", "1",
                from_warehouse=self.main, to_warehouse=self.main,
            )
        with self.assertRaises(ValidationError):
            record_inventory_movement(
                self.company, self.user, ts.pk, self.item, "adjustment", "1",
                from_warehouse=self.main, to_warehouse=self.annex,
            )
        with self.assertRaises(ValidationError):
            record_inventory_movement(self.company, self.user, ts.pk, self.item, "receipt", "0", to_warehouse=self.main)

    def test_only_inventory_sets_take_movements(self):
        ts = create_draft_transaction_set(self.company, self.user, "manual", POSTING_DATE)
        with self.assertRaises(ValidationError):
            record_inventory_movement(self.company, self.user, ts.pk, self.item, "receipt", "1", to_warehouse=self.main)
