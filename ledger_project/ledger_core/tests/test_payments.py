from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ledger_core.exceptions import InvalidStateError, NotFoundError
from ledger_core.models import JournalEntry, PaymentAllocation
from ledger_core.services.documents import post_purchase_doc, post_sales_doc
from ledger_core.services.ledger import account_balance
from ledger_core.services.payment import (create_allocations, post_payment, record_payment,
                                          unallocate, void_payment)
from ledger_core.services.statements import open_amount

from .utils import POSTING_DATE, acct, make_purchase_doc, make_sales_doc, make_tenant


class ReceiptLifecycleTests(TestCase):
    """Invoice 1000, receive 500 against it."""

    def setUp(self):
        self.company, self.user = make_tenant()
        self.bank = acct(self.company, "bank")
        self.ar = acct(self.company, "ar")
        self.invoice = make_sales_doc(self.company, "INV-001", "1000.00")
        post_sales_doc(self.company, self.user, self.invoice.pk)
        self.invoice.refresh_from_db()

    def _receipt(self, amount="500.00"):
        return record_payment(
            self.company, self.user, "receipt", "bank", amount, POSTING_DATE, None, reference="RCPT-1"
        )

    def test_sales_doc_posting_debits_ar(self):
        self.assertEqual(self.invoice.status, "posted")
        self.assertEqual(self.invoice.transaction_set.status, "posted")
        self.assertEqual(account_balance(self.company, self.ar), Decimal("1000.00"))
        self.assertEqual(account_balance(self.company, acct(self.company, "revenue")), Decimal("-1000.00"))

    def test_receipt_end_to_end(self):
        payment = self._receipt()
        self.assertEqual(payment.cash_account, self.bank)
        self.assertEqual(payment.transaction_set.source, "payment")

        create_allocations(
            self.company,
            self.user,
            payment.pk,
            [{"target_type": "sales_doc", "target_id": self.invoice.pk, "amount": "500.00"}],
        )
        result = post_payment(self.company, self.user, payment.pk)

        entry = JournalEntry.objects.get(pk=result.journal_entry_id)
        lines = list(entry.lines.order_by("line_number"))
        self.assertEqual(len(lines), 2)
        self.assertEqual((lines[0].account, lines[0].debit), (self.bank, Decimal("500.00")))
        self.assertEqual((lines[1].account, lines[1].credit), (self.ar, Decimal("500.00")))
        self.assertEqual(entry.memo, "Customer receipt: RCPT-1")

        payment.refresh_from_db()
        self.assertEqual(payment.status, "posted")
        self.assertEqual(payment.transaction_set.status, "posted")
        self.assertEqual(open_amount(self.invoice), Decimal("500.00"))
        self.assertEqual(account_balance(self.company, self.ar), Decimal("500.00"))

    def test_posting_payment_twice_is_idempotent(self):
        payment = self._receipt()
        create_allocations(
            self.company,
            self.user,
            payment.pk,
            [{"target_type": "sales_doc", "target_id": self.invoice.pk, "amount": "500"}],
        )
        first = post_payment(self.company, self.user, payment.pk)
        second = post_payment(self.company, self.user, payment.pk)

        self.assertTrue(second.idempotent)
        self.assertEqual(first.journal_entry_id, second.journal_entry_id)

    def test_over_allocation_is_rejected(self):
        payment = self._receipt("500.00")
        create_allocations(
            self.company,
            self.user,
            payment.pk,
            [{"target_type": "sales_doc", "target_id": self.invoice.pk, "amount": "400"}],
        )
        with self.assertRaises(ValidationError) as ctx:
            create_allocations(
                self.company,
                self.user,
                payment.pk,
                [{"target_type": "sales_doc", "target_id": self.invoice.pk, "amount": "100.01"}],
            )
        self.assertIn("exceed", ctx.exception.messages[0])
        self.assertEqual(payment.allocated_total(), Decimal("400.00"))

    def test_batch_is_all_or_nothing(self):
        payment = self._receipt("500.00")
        with self.assertRaises(ValidationError):
            create_allocations(
                self.company,
                self.user,
                payment.pk,
                [
                    {"target_type": "sales_doc", "target_id": self.invoice.pk, "amount": "100"},
                    {"target_type": "sales_doc", "target_id": self.invoice.pk, "amount": "-5"},
                ],
            )
        self.assertFalse(PaymentAllocation.objects.filter(payment=payment).exists())

    def test_receipt_cannot_target_purchase_docs(self):
        payment = self._receipt()
        bill = make_purchase_doc(self.company, "BILL-1", "50")
        with self.assertRaises(ValidationError):
            create_allocations(
                self.company,
                self.user,
                payment.pk,
                [{"target_type": "purchase_doc", "target_id": bill.pk, "amount": "10"}],
            )

    def test_missing_target_is_not_found(self):
        payment = self._receipt()
        with self.assertRaises(NotFoundError):
            create_allocations(
                self.company,
                self.user,
                payment.pk,
                [{"target_type": "sales_doc", "target_id": 424242, "amount": "10"}],
            )

    def test_allocation_entries_must_be_mappings(self):
        payment = self._receipt()
        with self.assertRaises(ValidationError):
            create_allocations(self.company, self.user, payment.pk, [5])
        with self.assertRaises(ValidationError):
            create_allocations(
                self.company,
                self.user,
                payment.pk,
                [{"target_type": "sales_doc", "target_id": self.invoice.pk, "amount": "10"}, "extra"],
            )
        self.assertFalse(PaymentAllocation.objects.filter(payment=payment).exists())

    def test_allocated_total_is_in_cents(self):
        payment = self._receipt()
        create_allocations(
            self.company,
            self.user,
            payment.pk,
            [{"target_type": "sales_doc", "target_id": self.invoice.pk, "amount": "120"}],
        )
        self.assertEqual(str(payment.allocated_total()), "120.00")
        self.assertEqual(str(open_amount(self.invoice)), "1000.00")

    def test_payment_without_allocations_cannot_post(self):
        payment = self._receipt()
        with self.assertRaises(ValidationError):
            post_payment(self.company, self.user, payment.pk)
        payment.refresh_from_db()
        self.assertEqual(payment.status, "draft")

    def test_unallocate_removes_row_and_repeats_quietly(self):
        payment = self._receipt()
        (allocation,) = create_allocations(
            self.company,
            self.user,
            payment.pk,
            [{"target_type": "sales_doc", "target_id": self.invoice.pk, "amount": "200"}],
        )
        result = unallocate(
            self.company, self.user, payment.pk, target_type="sales_doc", target_id=self.invoice.pk
        )
        self.assertEqual(result.removed_allocation_ids, [allocation.pk])
        self.assertFalse(result.idempotent)

        again = unallocate(self.company, self.user, payment.pk, allocation_id=allocation.pk)
        self.assertTrue(again.idempotent)
        self.assertEqual(again.removed_allocation_ids, [])

    def test_posted_payment_allocations_are_frozen(self):
        payment = self._receipt()
        create_allocations(
            self.company,
            self.user,
            payment.pk,
            [{"target_type": "sales_doc", "target_id": self.invoice.pk, "amount": "500"}],
        )
        post_payment(self.company, self.user, payment.pk)
        with self.assertRaises(InvalidStateError):
            unallocate(self.company, self.user, payment.pk, target_type="sales_doc", target_id=self.invoice.pk)

    def test_void_posted_payment_reverses_entry(self):
        payment = self._receipt()
        create_allocations(
            self.company,
            self.user,
            payment.pk,
            [{"target_type": "sales_doc", "target_id": self.invoice.pk, "amount": "500"}],
        )
        posted = post_payment(self.company, self.user, payment.pk)

        result = void_payment(self.company, self.user, payment.pk, reason="Cheque bounced")

        self.assertEqual(result.status, "void")
        reversal = JournalEntry.objects.get(pk=result.reversal_journal_entry_id)
        self.assertEqual(reversal.reverses_id, posted.journal_entry_id)
        self.assertEqual(account_balance(self.company, self.ar), Decimal("1000.00"))
        self.assertEqual(open_amount(self.invoice), Decimal("1000.00"))

        again = void_payment(self.company, self.user, payment.pk)
        self.assertTrue(again.idempotent)

    def test_void_draft_payment_voids_its_set(self):
        payment = self._receipt()
        result = void_payment(self.company, self.user, payment.pk, reason="Entered in error")

        self.assertIsNone(result.reversal_journal_entry_id)
        payment.refresh_from_db()
        self.assertEqual(payment.transaction_set.status, "void")
        with self.assertRaises(InvalidStateError):
            post_payment(self.company, self.user, payment.pk)

    def test_invalid_payment_inputs(self):
        with self.assertRaises(ValidationError):
            record_payment(self.company, self.user, "refund", "bank", "10", POSTING_DATE, None)
        with self.assertRaises(ValidationError):
            record_payment(self.company, self.user, "receipt", "bank", "0", POSTING_DATE, None)
        with self.assertRaises(ValidationError):
            # revenue is not a cash account
            record_payment(
                self.company, self.user, "receipt", "bank", "10", POSTING_DATE, acct(self.company, "revenue")
            )


class VendorPaymentTests(TestCase):
    def setUp(self):
        self.company, self.user = make_tenant()
        self.cash = acct(self.company, "cash")
        self.ap = acct(self.company, "ap")
        self.bill_a = make_purchase_doc(self.company, "BILL-A", "300")
        self.bill_b = make_purchase_doc(self.company, "BILL-B", "200")
        post_purchase_doc(self.company, self.user, self.bill_a.pk)
        post_purchase_doc(self.company, self.user, self.bill_b.pk)

    def test_purchase_doc_posting_credits_ap(self):
        self.assertEqual(account_balance(self.company, self.ap), Decimal("-500.00"))
        self.assertEqual(account_balance(self.company, acct(self.company, "expense")), Decimal("500.00"))

    def test_vendor_payment_across_two_bills(self):
        payment = record_payment(self.company, self.user, "payment", "cash", "450", POSTING_DATE, None)
        self.assertEqual(payment.cash_account, self.cash)
        create_allocations(
            self.company,
            self.user,
            payment.pk,
            [
                {"target_type": "purchase_doc", "target_id": self.bill_a.pk, "amount": "300"},
                {"target_type": "purchase_doc", "target_id": self.bill_b.pk, "amount": "150"},
            ],
        )
        result = post_payment(self.company, self.user, payment.pk)

        lines = list(JournalEntry.objects.get(pk=result.journal_entry_id).lines.order_by("line_number"))
        self.assertEqual([(line.account, line.debit) for line in lines[:2]],
                         [(self.ap, Decimal("300.00")), (self.ap, Decimal("150.00"))])
        self.assertEqual((lines[2].account, lines[2].credit), (self.cash, Decimal("450.00")))
        self.assertEqual(account_balance(self.company, self.ap), Decimal("-50.00"))
        self.assertEqual(open_amount(self.bill_a), Decimal("0.00"))
        self.assertEqual(open_amount(self.bill_b), Decimal("50.00"))

    def test_posted_document_posting_is_idempotent(self):
        again = post_purchase_doc(self.company, self.user, self.bill_a.pk)
        self.assertTrue(again.idempotent)

    def test_void_document_cannot_be_posted(self):
        bill = make_purchase_doc(self.company, "BILL-C", "10")
        bill.transition_to("void")
        with self.assertRaises(InvalidStateError):
            post_purchase_doc(self.company, self.user, bill.pk)
