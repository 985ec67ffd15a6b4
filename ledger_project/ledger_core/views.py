import json
import logging
from functools import wraps

from django.core.exceptions import ValidationError
from django.db import transaction
from django.http import JsonResponse
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_http_methods

from .exceptions import NotFoundError, error_kind, error_message
from .models import Payment, TransactionSet
from .services import ledger, periods, statements
from .services.inventory import post_inventory_movements
from .services.payment import (create_allocations, post_payment, record_payment,
                               unallocate, void_payment)
from .services.posting import (create_simple_ledger_entry, has_own_workflow,
                               post_transaction_set, record_transfer)
from .services.reversal import reverse_journal_entry
from .services.transaction_sets import (add_staged_lines,
                                        create_draft_transaction_set,
                                        submit_for_review,
                                        void_transaction_set)

logger = logging.getLogger(__name__)


# ----------------------------
# Plumbing
# ----------------------------
def _json_body(request):
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (TypeError, ValueError):
        raise ValidationError("Request body must be valid JSON.")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _date(value, field, required=True):
    if value in (None, ""):
        if required:
            raise ValidationError(f"{field} is required.")
        return None
    parsed = parse_date(str(value)) if not hasattr(value, "year") else value
    if parsed is None:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD).")
    return parsed


def _int(value, field, required=True):
    if value in (None, ""):
        if required:
            raise ValidationError(f"{field} is required.")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer.")


def ledger_endpoint(*methods):
    """
    Resolve the tenant, parse the JSON body and map ledger errors to
    {"ok": false, "error": ..., "kind": ...} responses.
    """

    def decorator(view):
        @require_http_methods(list(methods))
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            company = getattr(request, "company", None)
            if company is None:
                return JsonResponse(
                    {"ok": False, "error": "No active company.", "kind": "forbidden"}, status=403
                )
            try:
                payload = _json_body(request) if request.method == "POST" else {}
                data = view(request, company, payload, *args, **kwargs)
            except NotFoundError as exc:
                return JsonResponse({"ok": False, "error": str(exc), "kind": error_kind(exc)}, status=404)
            except ValidationError as exc:
                logger.info("Rejected %s %s: %s", request.method, request.path, error_message(exc))
                return JsonResponse(
                    {"ok": False, "error": error_message(exc), "kind": error_kind(exc)}, status=400
                )
            return JsonResponse({"ok": True, **data})

        return wrapper

    return decorator


def _ts_dict(ts):
    return {
        "id": ts.pk,
        "status": ts.status,
        "source": ts.source,
        "business_date": ts.business_date,
        "notes": ts.notes,
    }


def _payment_dict(payment):
    return {
        "id": payment.pk,
        "payment_type": payment.payment_type,
        "method": payment.method,
        "amount": payment.amount,
        "payment_date": payment.payment_date,
        "reference": payment.reference,
        "status": payment.status,
        "cash_account_id": payment.cash_account_id,
        "transaction_set_id": payment.transaction_set_id,
    }


def _allocation_dict(allocation):
    return {
        "id": allocation.pk,
        "target_type": allocation.target_type,
        "target_id": allocation.target_id,
        "amount": allocation.amount,
    }


def _period_dict(period):
    return {
        "id": period.pk,
        "label": period.label,
        "period_start": period.period_start,
        "period_end": period.period_end,
        "status": period.status,
        "checklist_snapshot": period.checklist_snapshot,
        "period_totals": period.period_totals,
    }


# ----------------------------
# Transaction sets
# ----------------------------
@ledger_endpoint("POST")
def transaction_set_create_view(request, company, payload):
    source = str(payload.get("source") or "manual").strip()
    # payment, inventory and document sets are opened by their own services
    if has_own_workflow(source):
        raise ValidationError(f"'{source}' transaction sets are created through their own workflow.")
    with transaction.atomic():
        ts = create_draft_transaction_set(
            company,
            request.user,
            source,
            _date(payload.get("business_date"), "business_date"),
            notes=payload.get("notes") or "",
        )
        if payload.get("lines"):
            add_staged_lines(company, request.user, ts.pk, payload["lines"])
    return {"transaction_set": _ts_dict(ts)}


@ledger_endpoint("POST")
def transaction_set_lines_view(request, company, payload, set_id):
    created = add_staged_lines(company, request.user, set_id, payload.get("lines") or [])
    return {"line_ids": [line.pk for line in created]}


@ledger_endpoint("POST")
def transaction_set_submit_view(request, company, payload, set_id):
    return {"transaction_set": _ts_dict(submit_for_review(company, request.user, set_id))}


@ledger_endpoint("POST")
def transaction_set_post_view(request, company, payload, set_id):
    ts = TransactionSet.objects.get_for_company(company, set_id)
    if ts.source == "inventory":
        return post_inventory_movements(company, request.user, set_id, memo=payload.get("memo")).as_dict()
    return post_transaction_set(company, request.user, set_id, memo=payload.get("memo")).as_dict()


@ledger_endpoint("POST")
def transaction_set_void_view(request, company, payload, set_id):
    ts = void_transaction_set(company, request.user, set_id, reason=payload.get("reason") or "")
    return {"transaction_set": _ts_dict(ts)}


# ----------------------------
# Journal
# ----------------------------
@ledger_endpoint("POST")
def simple_entry_view(request, company, payload):
    result = create_simple_ledger_entry(
        company,
        request.user,
        _date(payload.get("posting_date"), "posting_date"),
        payload.get("memo") or "",
        payload.get("source") or "manual",
        payload.get("lines") or [],
    )
    return result.as_dict()


@ledger_endpoint("POST")
def transfer_view(request, company, payload):
    result = record_transfer(
        company,
        request.user,
        _int(payload.get("from_account_id"), "from_account_id"),
        _int(payload.get("to_account_id"), "to_account_id"),
        payload.get("amount"),
        _date(payload.get("transfer_date"), "transfer_date"),
        memo=payload.get("memo"),
    )
    return result.as_dict()


@ledger_endpoint("GET")
def journal_entry_list_view(request, company, payload):
    entries = ledger.list_journal_entries(
        company,
        start=_date(request.GET.get("start"), "start", required=False),
        end=_date(request.GET.get("end"), "end", required=False),
    )
    rows = []
    for entry in entries:
        debit, credit = ledger.entry_totals(entry)
        rows.append(
            {
                "id": entry.pk,
                "posting_date": entry.posting_date,
                "memo": entry.memo,
                "transaction_set_id": entry.transaction_set_id,
                "reverses_id": entry.reverses_id,
                "total_debit": debit,
                "total_credit": credit,
                "lines": [
                    {
                        "line_number": line.line_number,
                        "account_code": line.account.code,
                        "debit": line.debit,
                        "credit": line.credit,
                        "description": line.description,
                    }
                    for line in entry.lines.all()
                ],
            }
        )
    return {"journal_entries": rows}


@ledger_endpoint("POST")
def journal_entry_reverse_view(request, company, payload, entry_id):
    result = reverse_journal_entry(
        company,
        request.user,
        entry_id,
        payload.get("reason"),
        posting_date=_date(payload.get("posting_date"), "posting_date", required=False),
        memo=payload.get("memo"),
    )
    return result.as_dict()


@ledger_endpoint("GET")
def trial_balance_view(request, company, payload):
    as_of = _date(request.GET.get("as_of"), "as_of", required=False)
    rows = [
        {
            "account_id": row.account_id,
            "code": row.code,
            "name": row.name,
            "debit": row.debit,
            "credit": row.credit,
            "net": row.net,
        }
        for row in ledger.trial_balance(company, as_of=as_of)
    ]
    return {"rows": rows}


# ----------------------------
# Payments
# ----------------------------
@ledger_endpoint("POST")
def payment_create_view(request, company, payload):
    payment = record_payment(
        company,
        request.user,
        payload.get("payment_type"),
        payload.get("method") or "bank",
        payload.get("amount"),
        _date(payload.get("payment_date"), "payment_date"),
        _int(payload.get("cash_account_id"), "cash_account_id", required=False),
        reference=payload.get("reference") or "",
        transaction_set=_int(payload.get("transaction_set_id"), "transaction_set_id", required=False),
    )
    return {"payment": _payment_dict(payment)}


@ledger_endpoint("GET", "POST")
def payment_allocations_view(request, company, payload, payment_id):
    if request.method == "POST":
        raw_allocations = payload.get("allocations") or []
        if not isinstance(raw_allocations, list):
            raise ValidationError("allocations must be a list.")
        allocations = []
        for i, raw in enumerate(raw_allocations, start=1):
            if not isinstance(raw, dict):
                raise ValidationError(f"Allocation {i} must be an object.")
            allocations.append(
                {
                    "target_type": raw.get("target_type"),
                    "target_id": _int(raw.get("target_id"), f"allocation {i} target_id"),
                    "amount": raw.get("amount"),
                }
            )
        created = create_allocations(company, request.user, payment_id, allocations)
        return {"allocations": [_allocation_dict(a) for a in created]}

    payment = Payment.objects.get_for_company(company, payment_id)
    return {
        "payment": _payment_dict(payment),
        "allocated_total": payment.allocated_total(),
        "allocations": [_allocation_dict(a) for a in payment.allocations.order_by("pk")],
    }


@ledger_endpoint("POST")
def payment_unallocate_view(request, company, payload, payment_id):
    result = unallocate(
        company,
        request.user,
        payment_id,
        allocation_id=_int(payload.get("allocation_id"), "allocation_id", required=False),
        target_type=payload.get("target_type"),
        target_id=_int(payload.get("target_id"), "target_id", required=False),
        reason=payload.get("reason") or "",
    )
    return result.as_dict()


@ledger_endpoint("POST")
def payment_post_view(request, company, payload, payment_id):
    return post_payment(company, request.user, payment_id, memo=payload.get("memo")).as_dict()


@ledger_endpoint("POST")
def payment_void_view(request, company, payload, payment_id):
    return void_payment(company, request.user, payment_id, reason=payload.get("reason") or "").as_dict()


# ----------------------------
# Periods
# ----------------------------
@ledger_endpoint("GET")
def period_calendar_view(request, company, payload):
    year = _int(request.GET.get("year"), "year")
    return {"year": year, "periods": periods.period_calendar(company, year)}


@ledger_endpoint("POST")
def period_initialize_view(request, company, payload):
    created = periods.initialize_fiscal_year(
        company,
        _int(payload.get("year"), "year"),
        start_month=_int(payload.get("start_month"), "start_month", required=False) or 1,
    )
    return {"created": len(created), "periods": [_period_dict(p) for p in created]}


@ledger_endpoint("POST")
def period_soft_close_view(request, company, payload, period_id):
    return {"period": _period_dict(periods.soft_close(company, request.user, period_id))}


@ledger_endpoint("POST")
def period_hard_close_view(request, company, payload, period_id):
    period = periods.hard_close(company, request.user, period_id, force=bool(payload.get("force")))
    return {"period": _period_dict(period)}


@ledger_endpoint("POST")
def period_reopen_view(request, company, payload, period_id):
    period = periods.reopen(company, request.user, period_id, payload.get("reason"))
    return {"period": _period_dict(period)}


# ----------------------------
# Reports
# ----------------------------
@ledger_endpoint("GET")
def ar_aging_view(request, company, payload):
    report = statements.get_open_ar(
        company,
        party=_int(request.GET.get("customer_id"), "customer_id", required=False),
        as_of=_date(request.GET.get("as_of"), "as_of", required=False),
    )
    return report.as_dict()


@ledger_endpoint("GET")
def ap_aging_view(request, company, payload):
    report = statements.get_open_ap(
        company,
        party=_int(request.GET.get("vendor_id"), "vendor_id", required=False),
        as_of=_date(request.GET.get("as_of"), "as_of", required=False),
    )
    return report.as_dict()


@ledger_endpoint("GET")
def ar_statement_view(request, company, payload, customer_id):
    statement = statements.get_ar_statement(
        company,
        customer_id,
        as_of=_date(request.GET.get("as_of"), "as_of", required=False),
    )
    return statement.as_dict()
