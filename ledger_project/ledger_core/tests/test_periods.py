import datetime
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase

from ledger_core.exceptions import InvalidStateError, PeriodClosedError
from ledger_core.models import AccountingPeriod, AuditLog, JournalEntry
from ledger_core.services import periods
from ledger_core.services.posting import create_simple_ledger_entry, post_transaction_set
from ledger_core.services.reversal import reverse_journal_entry
from ledger_core.services.transaction_sets import (add_staged_lines, create_draft_transaction_set,
                                                   submit_for_review)

from .utils import POSTING_DATE, acct, make_tenant


class PeriodSetupTests(TestCase):
    def setUp(self):
        self.company, self.user = make_tenant()

    def test_initialize_fiscal_year_creates_twelve_months(self):
        created = periods.initialize_fiscal_year(self.company, 2025)

        self.assertEqual(len(created), 12)
        first, last = created[0], created[-1]
        self.assertEqual(first.label, "January 2025")
        self.assertEqual((first.period_start, first.period_end), (datetime.date(2025, 1, 1), datetime.date(2025, 1, 31)))
        self.assertEqual(last.period_end, datetime.date(2025, 12, 31))
        self.assertTrue(all(p.status == "open" for p in created))

        # a second run keeps the existing rows
        self.assertEqual(periods.initialize_fiscal_year(self.company, 2025), [])

    def test_fiscal_year_can_start_mid_year(self):
        created = periods.initialize_fiscal_year(self.company, 2025, start_month=7)
        self.assertEqual(created[0].period_start, datetime.date(2025, 7, 1))
        self.assertEqual(created[-1].period_start, datetime.date(2026, 6, 1))

    def test_february_bounds_follow_leap_years(self):
        self.assertEqual(periods.period_bounds(datetime.date(2024, 2, 10))[1], datetime.date(2024, 2, 29))
        self.assertEqual(periods.period_bounds(datetime.date(2025, 2, 10))[1], datetime.date(2025, 2, 28))

    def test_calendar_marks_missing_months(self):
        periods.get_or_create_period(self.company, datetime.date(2025, 3, 5))
        rows = periods.period_calendar(self.company, 2025)

        self.assertEqual(len(rows), 12)
        self.assertEqual(rows[2]["status"], "open")
        self.assertEqual(rows[0]["status"], "not_created")
        self.assertIsNone(rows[0]["id"])

    def test_posting_without_periods_is_allowed(self):
        check = periods.validate_period_for_posting(self.company, POSTING_DATE)
        self.assertTrue(check.allowed)
        self.assertIsNone(check.period)


class PeriodCloseTests(TestCase):
    def setUp(self):
        self.company, self.user = make_tenant()
        self.cash = acct(self.company, "cash")
        self.revenue = acct(self.company, "revenue")
        self.expense = acct(self.company, "expense")
        self.period = periods.get_or_create_period(self.company, POSTING_DATE)

    def _entry(self, debit_account, credit_account, amount, posting_date=POSTING_DATE):
        return create_simple_ledger_entry(
            self.company,
            self.user,
            posting_date,
            "Entry",
            "manual",
            [
                {"account_id": debit_account.pk, "debit": amount},
                {"account_id": credit_account.pk, "credit": amount},
            ],
        )

    def test_hard_closed_period_rejects_posting(self):
        periods.hard_close(self.company, self.user, self.period.pk, force=True)

        with self.assertRaises(PeriodClosedError) as ctx:
            self._entry(self.cash, self.revenue, "10")
        self.assertEqual(ctx.exception.kind, "period_closed")
        self.assertIn("Cannot post to closed period March 2025", ctx.exception.messages[0])
        self.assertFalse(JournalEntry.objects.exists())

    def test_hard_closed_period_keeps_set_in_draft(self):
        ts = create_draft_transaction_set(self.company, self.user, "manual", POSTING_DATE)
        add_staged_lines(
            self.company,
            self.user,
            ts.pk,
            [{"account_id": self.cash.pk, "debit": "5"}, {"account_id": self.revenue.pk, "credit": "5"}],
        )
        periods.soft_close(self.company, self.user, self.period.pk)
        periods.hard_close(self.company, self.user, self.period.pk, force=True)

        with self.assertRaises(PeriodClosedError):
            post_transaction_set(self.company, self.user, ts.pk)
        ts.refresh_from_db()
        self.assertEqual(ts.status, "draft")

    def test_soft_closed_period_posts_with_warning(self):
        periods.soft_close(self.company, self.user, self.period.pk)
        result = self._entry(self.cash, self.revenue, "10")

        self.assertIsNotNone(result.journal_entry_id)
        self.assertIn("soft-closed", result.warning)
        self.assertTrue(
            AuditLog.objects.for_company(self.company)
            .filter(action="post_in_soft_closed_period", object_id=str(result.journal_entry_id))
            .exists()
        )

    def test_soft_close_snapshots_checklist(self):
        create_draft_transaction_set(self.company, self.user, "manual", POSTING_DATE)
        period = periods.soft_close(self.company, self.user, self.period.pk)

        self.assertEqual(period.status, "soft_closed")
        self.assertEqual(period.soft_closed_by, self.user)
        self.assertEqual(
            period.checklist_snapshot,
            {"draft_transactions": 1, "review_transactions": 0, "unmatched_payments": 0},
        )

    def test_soft_close_only_from_open(self):
        periods.soft_close(self.company, self.user, self.period.pk)
        with self.assertRaises(InvalidStateError):
            periods.soft_close(self.company, self.user, self.period.pk)

    def test_hard_close_requires_soft_close_or_force(self):
        with self.assertRaises(InvalidStateError):
            periods.hard_close(self.company, self.user, self.period.pk)

    def test_hard_close_blocked_by_outstanding_sets(self):
        create_draft_transaction_set(self.company, self.user, "manual", POSTING_DATE)
        periods.soft_close(self.company, self.user, self.period.pk)

        with self.assertRaises(ValidationError):
            periods.hard_close(self.company, self.user, self.period.pk)
        period = periods.hard_close(self.company, self.user, self.period.pk, force=True)
        self.assertEqual(period.status, "hard_closed")

    def test_hard_close_blocked_by_sets_in_review(self):
        ts = create_draft_transaction_set(self.company, self.user, "manual", POSTING_DATE)
        submit_for_review(self.company, self.user, ts.pk)
        periods.soft_close(self.company, self.user, self.period.pk)

        with self.assertRaises(ValidationError) as ctx:
            periods.hard_close(self.company, self.user, self.period.pk)
        self.assertIn("1 in-review", str(ctx.exception))

    def test_hard_close_stores_period_totals(self):
        self._entry(self.cash, self.revenue, "300")
        self._entry(self.expense, self.cash, "120")
        # outside the period
        self._entry(self.cash, self.revenue, "999", posting_date=datetime.date(2025, 4, 2))
        periods.soft_close(self.company, self.user, self.period.pk)

        period = periods.hard_close(self.company, self.user, self.period.pk)

        self.assertEqual(
            period.period_totals,
            {"revenue": "300.00", "expenses": "120.00", "net_income": "180.00", "cash_change": "180.00"},
        )
        self.assertEqual(Decimal(period.period_totals["net_income"]), Decimal("180"))

    def test_reversal_into_hard_closed_period_is_rejected(self):
        result = self._entry(self.cash, self.revenue, "10")
        periods.hard_close(self.company, self.user, self.period.pk, force=True)
        with self.assertRaises(PeriodClosedError):
            reverse_journal_entry(
                self.company, self.user, result.journal_entry_id, "Late fix", posting_date=POSTING_DATE
            )
        # reversing into an open month works
        reversal = reverse_journal_entry(
            self.company, self.user, result.journal_entry_id, "Late fix", posting_date=datetime.date(2025, 4, 1)
        )
        self.assertIsNotNone(reversal.reversal_journal_entry_id)

    def test_reopen_needs_a_real_reason(self):
        periods.hard_close(self.company, self.user, self.period.pk, force=True)
        with self.assertRaises(ValidationError):
            periods.reopen(self.company, self.user, self.period.pk, "oops")

        period = periods.reopen(self.company, self.user, self.period.pk, "Missing supplier invoice")
        self.assertEqual(period.status, "open")
        self.assertEqual(period.reopen_reason, "Missing supplier invoice")
        self.assertIsNotNone(self._entry(self.cash, self.revenue, "1").journal_entry_id)

    def test_open_period_cannot_be_reopened(self):
        with self.assertRaises(InvalidStateError):
            periods.reopen(self.company, self.user, self.period.pk, "Nothing to reopen here")


@pytest.mark.django_db
def test_closed_period_cannot_be_deleted():
    company, user = make_tenant()
    period = periods.get_or_create_period(company, POSTING_DATE)
    periods.soft_close(company, user, period.pk)

    with pytest.raises(InvalidStateError), transaction.atomic():
        AccountingPeriod.objects.filter(pk=period.pk).delete()
    assert AccountingPeriod.objects.filter(pk=period.pk).exists()
