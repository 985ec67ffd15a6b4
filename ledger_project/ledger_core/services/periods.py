import calendar
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q, Sum
from django.utils import timezone

from ..exceptions import InvalidStateError, PeriodClosedError
from ..models import AccountingPeriod, JournalLine, Payment, TransactionSet
from ..money import to_money
from .audit_helper import log_action, resolve_actor

logger = logging.getLogger(__name__)

MIN_REOPEN_REASON_LENGTH = 10


@dataclass(frozen=True)
class PeriodCheck:
    allowed: bool
    period: Optional[AccountingPeriod] = None
    warning: Optional[str] = None


"""
    Periods are calendar months.
    The posting date of an entry decides which period it lands in.
"""


def period_bounds(day):
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def period_label(period_start):
    # "January 2025"
    return f"{calendar.month_name[period_start.month]} {period_start.year}"


def find_period(company, posting_date):
    return (
        AccountingPeriod.objects.for_company(company)
        .filter(period_start__lte=posting_date, period_end__gte=posting_date)
        .first()
    )


def validate_period_for_posting(company, posting_date) -> PeriodCheck:
    """
    No period row → allowed (periods are optional).
    soft_closed → allowed, with a warning for the caller to surface.
    hard_closed → PeriodClosedError.
    """
    period = find_period(company, posting_date)
    if period is None:
        return PeriodCheck(allowed=True)

    if period.status == "hard_closed":
        raise PeriodClosedError(
            f"Cannot post to closed period {period.label}. Reopen the period first."
        )
    if period.status == "soft_closed":
        warning = (
            f"Period {period.label} is soft-closed. "
            "Transaction will be recorded but period should be reviewed."
        )
        logger.warning("Posting into soft-closed period %s (company %s)", period.label, company.pk)
        return PeriodCheck(allowed=True, period=period, warning=warning)
    return PeriodCheck(allowed=True, period=period)


def get_or_create_period(company, day):
    start, end = period_bounds(day)
    period, created = AccountingPeriod.objects.get_or_create(
        company=company,
        period_start=start,
        defaults={"period_end": end, "label": period_label(start)},
    )
    if created:
        logger.info("Created accounting period %s for company %s", period.label, company.pk)
    return period


@transaction.atomic
def initialize_fiscal_year(company, year, start_month=1):
    """Create the twelve monthly periods of a fiscal year; existing ones are kept."""
    if not 1 <= int(start_month) <= 12:
        raise ValidationError("start_month must be between 1 and 12.")

    created = []
    for offset in range(12):
        month_index = int(start_month) - 1 + offset
        first = date(int(year) + month_index // 12, month_index % 12 + 1, 1)
        exists = AccountingPeriod.objects.for_company(company).filter(period_start=first).exists()
        if not exists:
            created.append(get_or_create_period(company, first))
    return created


def period_calendar(company, year):
    """One row per calendar month of `year`, including months with no period yet."""
    existing = {
        p.period_start: p
        for p in AccountingPeriod.objects.for_company(company).filter(period_start__year=year)
    }
    rows = []
    for month in range(1, 13):
        start, end = period_bounds(date(int(year), month, 1))
        period = existing.get(start)
        rows.append(
            {
                "id": period.pk if period else None,
                "period_start": start,
                "period_end": end,
                "label": period_label(start),
                "status": period.status if period else "not_created",
                "soft_closed_at": period.soft_closed_at if period else None,
                "hard_closed_at": period.hard_closed_at if period else None,
            }
        )
    return rows


def calculate_checklist(company, start, end):
    sets = TransactionSet.objects.for_company(company).filter(
        business_date__gte=start, business_date__lte=end
    )
    return {
        "draft_transactions": sets.filter(status="draft").count(),
        "review_transactions": sets.filter(status="review").count(),
        # payments recorded but never posted
        "unmatched_payments": Payment.objects.for_company(company)
        .filter(status="draft", payment_date__gte=start, payment_date__lte=end)
        .count(),
    }


def calculate_period_totals(company, start, end):
    lines = JournalLine.objects.for_company(company).filter(
        journal__posting_date__gte=start, journal__posting_date__lte=end
    )
    cash_prefix = settings.LEDGER_CASH_ACCOUNT_PREFIX
    aggs = lines.aggregate(
        rev_debit=Sum("debit", filter=Q(account__ac_type="revenue")),
        rev_credit=Sum("credit", filter=Q(account__ac_type="revenue")),
        exp_debit=Sum("debit", filter=Q(account__ac_type="expense")),
        exp_credit=Sum("credit", filter=Q(account__ac_type="expense")),
        cash_debit=Sum("debit", filter=Q(account__code__startswith=cash_prefix)),
        cash_credit=Sum("credit", filter=Q(account__code__startswith=cash_prefix)),
    )
    totals = {k: to_money(v) for k, v in aggs.items()}
    revenue = totals["rev_credit"] - totals["rev_debit"]
    expenses = totals["exp_debit"] - totals["exp_credit"]
    return {
        "revenue": revenue,
        "expenses": expenses,
        "net_income": revenue - expenses,
        "cash_change": totals["cash_debit"] - totals["cash_credit"],
    }


def _locked_period(company, period_id):
    return AccountingPeriod.objects.get_for_company(company, period_id, lock=True)


@transaction.atomic
def soft_close(company, actor, period_id):
    actor = resolve_actor(actor)
    period = _locked_period(company, period_id)
    if period.status != "open":
        raise InvalidStateError(f"Only open periods can be soft-closed ({period.label} is {period.status}).")

    period.checklist_snapshot = calculate_checklist(company, period.period_start, period.period_end)
    period.status = "soft_closed"
    period.soft_closed_at = timezone.now()
    period.soft_closed_by = actor
    period.save()
    log_action(action="soft_close", instance=period, user=actor, changes={"checklist": period.checklist_snapshot})
    logger.info("Soft-closed period %s (company %s)", period.label, company.pk)
    return period


@transaction.atomic
def hard_close(company, actor, period_id, force=False):
    actor = resolve_actor(actor)
    period = _locked_period(company, period_id)
    if period.status == "hard_closed":
        raise InvalidStateError(f"Period {period.label} is already hard-closed.")
    if period.status == "open" and not force:
        raise InvalidStateError(f"Soft-close {period.label} before hard-closing it, or force the close.")

    # Draft and in-review sets both block a hard close
    checklist = calculate_checklist(company, period.period_start, period.period_end)
    outstanding = checklist["draft_transactions"] + checklist["review_transactions"]
    if outstanding and not force:
        raise ValidationError(
            f"Period {period.label} has {checklist['draft_transactions']} draft and "
            f"{checklist['review_transactions']} in-review transaction sets. "
            "Post or void them, or force the close."
        )

    totals = calculate_period_totals(company, period.period_start, period.period_end)
    period.checklist_snapshot = checklist
    # JSON column: keep the exact decimal text
    period.period_totals = {k: str(v) for k, v in totals.items()}
    period.status = "hard_closed"
    period.hard_closed_at = timezone.now()
    period.hard_closed_by = actor
    period.save()
    log_action(
        action="hard_close",
        instance=period,
        user=actor,
        changes={"forced": bool(force), "totals": period.period_totals, "checklist": checklist},
    )
    logger.info("Hard-closed period %s (company %s, forced=%s)", period.label, company.pk, bool(force))
    return period


@transaction.atomic
def reopen(company, actor, period_id, reason):
    actor = resolve_actor(actor)
    reason = (reason or "").strip()
    if len(reason) < MIN_REOPEN_REASON_LENGTH:
        raise ValidationError(
            f"A reopen reason of at least {MIN_REOPEN_REASON_LENGTH} characters is required."
        )
    period = _locked_period(company, period_id)
    if period.status == "open":
        raise InvalidStateError(f"Period {period.label} is already open.")

    previous = period.status
    period.status = "open"
    period.reopened_at = timezone.now()
    period.reopened_by = actor
    period.reopen_reason = reason
    period.save()
    log_action(action="reopen", instance=period, user=actor, changes={"from": previous, "reason": reason})
    logger.warning("Reopened period %s (company %s) from %s: %s", period.label, company.pk, previous, reason)
    return period
