"""Open balances, aging and customer statements built from allocations."""

from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db.models import Q, Sum
from django.utils import timezone

from ..models import Customer, PaymentAllocation, PurchaseDoc, SalesDoc
from ..money import ZERO, to_money

AGING_BUCKETS = ("current", "1_30", "31_60", "61_90", "90_plus")


def aging_bucket(days_past_due):
    if days_past_due <= 0:
        return "current"
    if days_past_due <= 30:
        return "1_30"
    if days_past_due <= 60:
        return "31_60"
    if days_past_due <= 90:
        return "61_90"
    return "90_plus"


def open_amount(doc, as_of=None) -> Decimal:
    """Document total minus allocations of posted payments."""
    allocations = doc.allocations.filter(payment__status="posted")
    if as_of is not None:
        allocations = allocations.filter(payment__payment_date__lte=as_of)
    applied = to_money(allocations.aggregate(total=Sum("amount"))["total"])
    return doc.total_amount - applied


@dataclass(frozen=True)
class AgingRow:
    doc_id: int
    doc_number: str
    party_id: Optional[int]
    party_name: str
    doc_date: date
    due_date: date
    total_amount: Decimal
    applied_amount: Decimal
    open_amount: Decimal
    days_past_due: int
    bucket: str


@dataclass
class AgingReport:
    as_of: date
    rows: list = field(default_factory=list)
    bucket_totals: dict = field(default_factory=lambda: {b: ZERO for b in AGING_BUCKETS})
    total_open: Decimal = ZERO

    def as_dict(self):
        return asdict(self)


def _aging(company, model, party_field, party=None, as_of=None):
    as_of = as_of or timezone.localdate()
    default_days = settings.LEDGER_AGING_DEFAULT_TERMS_DAYS
    applied_filter = Q(allocations__payment__status="posted", allocations__payment__payment_date__lte=as_of)

    docs = (
        model.objects.for_company(company)
        .filter(status="posted", doc_date__lte=as_of)
        .select_related(party_field)
        .annotate(applied=Sum("allocations__amount", filter=applied_filter))
        .order_by("doc_date", "pk")
    )
    if party is not None:
        docs = docs.filter(**{f"{party_field}_id": getattr(party, "pk", party)})

    report = AgingReport(as_of=as_of)
    for doc in docs:
        applied = to_money(doc.applied)
        remaining = doc.total_amount - applied
        if remaining <= 0:
            continue
        due = doc.effective_due_date(default_days)
        days = (as_of - due).days
        bucket = aging_bucket(days)
        holder = getattr(doc, party_field)
        report.rows.append(
            AgingRow(
                doc_id=doc.pk,
                doc_number=doc.doc_number,
                party_id=holder.pk if holder else None,
                party_name=holder.name if holder else "",
                doc_date=doc.doc_date,
                due_date=due,
                total_amount=doc.total_amount,
                applied_amount=applied,
                open_amount=remaining,
                days_past_due=max(days, 0),
                bucket=bucket,
            )
        )
        report.bucket_totals[bucket] += remaining
        report.total_open += remaining
    return report


def get_open_ar(company, party=None, as_of=None) -> AgingReport:
    return _aging(company, SalesDoc, "customer", party=party, as_of=as_of)


def get_open_ap(company, party=None, as_of=None) -> AgingReport:
    return _aging(company, PurchaseDoc, "vendor", party=party, as_of=as_of)


@dataclass(frozen=True)
class StatementLine:
    line_date: date
    kind: str  # "invoice" or "receipt"
    reference: str
    charge: Decimal
    payment: Decimal
    balance: Decimal


@dataclass
class Statement:
    customer_id: int
    customer_name: str
    as_of: date
    lines: list = field(default_factory=list)
    closing_balance: Decimal = ZERO

    def as_dict(self):
        return asdict(self)


def get_ar_statement(company, customer, as_of=None) -> Statement:
    """Posted invoices and posted receipts of one customer with a running balance."""
    if not isinstance(customer, Customer):
        customer = Customer.objects.get_for_company(company, customer)
    as_of = as_of or timezone.localdate()

    events = []
    invoices = SalesDoc.objects.for_company(company).filter(
        customer=customer, status="posted", doc_date__lte=as_of
    )
    for doc in invoices:
        events.append((doc.doc_date, 0, doc.pk, doc.doc_number, doc.total_amount, ZERO))

    receipts = (
        PaymentAllocation.objects.for_company(company)
        .filter(
            sales_doc__customer=customer,
            payment__status="posted",
            payment__payment_date__lte=as_of,
        )
        .values("payment_id", "payment__payment_date", "payment__reference")
        .annotate(applied=Sum("amount"))
    )
    for row in receipts:
        reference = row["payment__reference"] or f"Payment {row['payment_id']}"
        events.append(
            (row["payment__payment_date"], 1, row["payment_id"], reference, ZERO, to_money(row["applied"]))
        )

    # invoices before receipts on the same day
    events.sort(key=lambda e: (e[0], e[1], e[2]))
    statement = Statement(customer_id=customer.pk, customer_name=customer.name, as_of=as_of)
    balance = ZERO
    for day, order, _, reference, charge, paid in events:
        balance += charge - paid
        statement.lines.append(
            StatementLine(
                line_date=day,
                kind="invoice" if order == 0 else "receipt",
                reference=reference,
                charge=charge,
                payment=paid,
                balance=balance,
            )
        )
    statement.closing_balance = balance
    return statement
