import datetime
from decimal import Decimal

import pytest
from django.test import TestCase

from ledger_core.models import Customer
from ledger_core.services.documents import post_purchase_doc, post_sales_doc
from ledger_core.services.payment import create_allocations, post_payment, record_payment
from ledger_core.services.statements import aging_bucket, get_ar_statement, get_open_ap, get_open_ar

from .utils import make_purchase_doc, make_sales_doc, make_tenant

AS_OF = datetime.date(2025, 6, 30)


@pytest.mark.parametrize(
    "days, bucket",
    [(-3, "current"), (0, "current"), (1, "1_30"), (30, "1_30"), (31, "31_60"),
     (60, "31_60"), (61, "61_90"), (90, "61_90"), (91, "90_plus")],
)
def test_aging_bucket_edges(days, bucket):
    assert aging_bucket(days) == bucket


class AgingTests(TestCase):
    def setUp(self):
        self.company, self.user = make_tenant()
        self.customer = Customer.objects.create(company=self.company, name="Net 15 Ltd", payment_terms_days=15)

        # due 2025-06-20 → 10 days past due
        self.recent = make_sales_doc(
            self.company, "INV-1", "400", doc_date=datetime.date(2025, 6, 5), customer=self.customer
        )
        # no due date, no terms → 30-day default: due 2025-03-03 → 119 days
        self.old = make_sales_doc(self.company, "INV-2", "250", doc_date=datetime.date(2025, 2, 1))
        # not yet due
        self.future = make_sales_doc(
            self.company, "INV-3", "100",
            doc_date=datetime.date(2025, 6, 25), due_date=datetime.date(2025, 7, 25),
        )
        # drafts never show up
        make_sales_doc(self.company, "INV-DRAFT", "999", doc_date=datetime.date(2025, 6, 1))

        for doc in (self.recent, self.old, self.future):
            post_sales_doc(self.company, self.user, doc.pk)

    def test_open_ar_buckets(self):
        report = get_open_ar(self.company, as_of=AS_OF)

        by_number = {row.doc_number: row for row in report.rows}
        self.assertEqual(set(by_number), {"INV-1", "INV-2", "INV-3"})
        self.assertEqual(by_number["INV-1"].bucket, "1_30")
        self.assertEqual(by_number["INV-1"].days_past_due, 10)
        self.assertEqual(by_number["INV-2"].bucket, "90_plus")
        self.assertEqual(by_number["INV-3"].bucket, "current")
        self.assertEqual(by_number["INV-3"].days_past_due, 0)
        self.assertEqual(report.total_open, Decimal("750.00"))
        self.assertEqual(report.bucket_totals["90_plus"], Decimal("250.00"))

    def test_posted_payments_reduce_open_amounts(self):
        payment = record_payment(
            self.company, self.user, "receipt", "bank", "400", datetime.date(2025, 6, 28), None
        )
        create_allocations(
            self.company,
            self.user,
            payment.pk,
            [{"target_type": "sales_doc", "target_id": self.recent.pk, "amount": "400"}],
        )
        # draft payments do not count yet
        self.assertEqual(get_open_ar(self.company, as_of=AS_OF).total_open, Decimal("750.00"))

        post_payment(self.company, self.user, payment.pk)
        report = get_open_ar(self.company, as_of=AS_OF)
        self.assertNotIn("INV-1", [row.doc_number for row in report.rows])
        self.assertEqual(report.total_open, Decimal("350.00"))

        # before the payment date the invoice is still open
        earlier = get_open_ar(self.company, as_of=datetime.date(2025, 6, 27))
        self.assertIn("INV-1", [row.doc_number for row in earlier.rows])

    def test_open_ar_for_one_customer(self):
        report = get_open_ar(self.company, party=self.customer, as_of=AS_OF)
        self.assertEqual([row.doc_number for row in report.rows], ["INV-1"])

    def test_open_ap(self):
        bill = make_purchase_doc(self.company, "BILL-1", "80", doc_date=datetime.date(2025, 4, 1))
        post_purchase_doc(self.company, self.user, bill.pk)

        report = get_open_ap(self.company, as_of=AS_OF)
        self.assertEqual(len(report.rows), 1)
        self.assertEqual(report.rows[0].bucket, "31_60")
        self.assertEqual(report.as_dict()["total_open"], Decimal("80.00"))


class StatementTests(TestCase):
    def setUp(self):
        self.company, self.user = make_tenant()
        self.customer = Customer.objects.create(company=self.company, name="Statement Co")
        self.inv_a = make_sales_doc(
            self.company, "A-1", "300", doc_date=datetime.date(2025, 5, 1), customer=self.customer
        )
        self.inv_b = make_sales_doc(
            self.company, "A-2", "200", doc_date=datetime.date(2025, 5, 10), customer=self.customer
        )
        post_sales_doc(self.company, self.user, self.inv_a.pk)
        post_sales_doc(self.company, self.user, self.inv_b.pk)

        payment = record_payment(
            self.company, self.user, "receipt", "bank", "350", datetime.date(2025, 5, 10), None, reference="R-9"
        )
        create_allocations(
            self.company,
            self.user,
            payment.pk,
            [
                {"target_type": "sales_doc", "target_id": self.inv_a.pk, "amount": "300"},
                {"target_type": "sales_doc", "target_id": self.inv_b.pk, "amount": "50"},
            ],
        )
        post_payment(self.company, self.user, payment.pk)

    def test_running_balance(self):
        statement = get_ar_statement(self.company, self.customer.pk, as_of=AS_OF)

        self.assertEqual([line.kind for line in statement.lines], ["invoice", "invoice", "receipt"])
        self.assertEqual([line.balance for line in statement.lines],
                         [Decimal("300.00"), Decimal("500.00"), Decimal("150.00")])
        self.assertEqual(statement.lines[2].reference, "R-9")
        self.assertEqual(statement.lines[2].payment, Decimal("350.00"))
        self.assertEqual(statement.closing_balance, Decimal("150.00"))

    def test_statement_as_of_cuts_off_later_rows(self):
        statement = get_ar_statement(self.company, self.customer, as_of=datetime.date(2025, 5, 5))
        self.assertEqual(len(statement.lines), 1)
        self.assertEqual(statement.closing_balance, Decimal("300.00"))
