from dataclasses import dataclass
from decimal import Decimal

from django.db.models import Prefetch, Q, Sum

from ..models import Account, JournalEntry, JournalLine
from ..money import ZERO, to_money


def _date_range(qs, prefix, start=None, end=None):
    if start is not None:
        qs = qs.filter(**{f"{prefix}posting_date__gte": start})
    if end is not None:
        qs = qs.filter(**{f"{prefix}posting_date__lte": end})
    return qs


def account_balance(company, account_ids, start=None, end=None) -> Decimal:
    """sum(debit) - sum(credit) of the accounts' lines posted within [start, end]."""
    if isinstance(account_ids, (int, str, Account)):
        account_ids = [account_ids]
    ids = [getattr(a, "pk", a) for a in account_ids]
    lines = JournalLine.objects.for_company(company).filter(account_id__in=ids)
    lines = _date_range(lines, "journal__", start, end)
    aggs = lines.aggregate(debit=Sum("debit"), credit=Sum("credit"))
    return to_money(aggs["debit"]) - to_money(aggs["credit"])


@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: int
    code: str
    name: str
    ac_type: str
    debit: Decimal
    credit: Decimal

    @property
    def net(self):
        return self.debit - self.credit


def trial_balance(company, as_of=None):
    """One row per account with postings, ordered by code."""
    line_filter = Q(journal_lines__company=company)
    if as_of is not None:
        line_filter &= Q(journal_lines__journal__posting_date__lte=as_of)
    accounts = (
        Account.objects.for_company(company)
        .annotate(
            total_debit=Sum("journal_lines__debit", filter=line_filter),
            total_credit=Sum("journal_lines__credit", filter=line_filter),
        )
        .order_by("code")
    )
    return [
        TrialBalanceRow(
            account_id=a.pk,
            code=a.code,
            name=a.name,
            ac_type=a.ac_type,
            debit=to_money(a.total_debit),
            credit=to_money(a.total_credit),
        )
        for a in accounts
        if a.total_debit or a.total_credit
    ]


def list_journal_entries(company, start=None, end=None):
    entries = JournalEntry.objects.for_company(company).order_by("posting_date", "pk")
    entries = _date_range(entries, "", start, end)
    return entries.prefetch_related(
        Prefetch(
            "lines",
            queryset=JournalLine.objects.select_related("account").order_by("line_number"),
        )
    )


def entry_totals(entry):
    """(debit, credit) of one entry; uses prefetched lines when present."""
    lines = entry.lines.all()
    return (
        to_money(sum((line.debit for line in lines), ZERO)),
        to_money(sum((line.credit for line in lines), ZERO)),
    )
