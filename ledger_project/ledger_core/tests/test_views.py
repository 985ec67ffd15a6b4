import json

import pytest
from django.urls import reverse

from ledger_core.models import JournalEntry, Payment, TransactionSet
from ledger_core.services import periods

from .utils import POSTING_DATE, acct, make_sales_doc, make_tenant


@pytest.fixture
def tenant(db):
    return make_tenant("View Co")


@pytest.fixture
def api(client, tenant):
    _, user = tenant
    client.force_login(user)

    def call(name, payload=None, method="post", **kwargs):
        url = reverse(f"ledger_core:{name}", kwargs=kwargs or None)
        if method == "get":
            response = client.get(url, payload or {})
        else:
            response = client.post(url, data=json.dumps(payload or {}), content_type="application/json")
        return response.status_code, response.json()

    return call


def _lines(company, amount="25.00", credit_amount=None):
    return [
        {"account_id": acct(company, "cash").pk, "debit": amount},
        {"account_id": acct(company, "revenue").pk, "credit": credit_amount or amount},
    ]


def test_anonymous_request_is_forbidden(client, db):
    response = client.post(reverse("ledger_core:simple-entry"), data="{}", content_type="application/json")
    assert response.status_code == 403
    assert response.json()["kind"] == "forbidden"


def test_simple_entry_success(api, tenant):
    company, _ = tenant
    status, body = api(
        "simple-entry",
        {"posting_date": "2025-03-15", "memo": "Walk-in sale", "lines": _lines(company)},
    )
    assert status == 200
    assert body["ok"] is True
    assert body["idempotent"] is False
    assert len(body["journal_line_ids"]) == 2
    assert JournalEntry.objects.get(pk=body["journal_entry_id"]).memo == "Walk-in sale"


def test_unbalanced_entry_returns_kind(api, tenant):
    company, _ = tenant
    status, body = api(
        "simple-entry",
        {"posting_date": "2025-03-15", "lines": _lines(company, "25.00", "20.00")},
    )
    assert status == 400
    assert body == {"ok": False, "error": body["error"], "kind": "unbalanced_entry"}
    assert "not balanced" in body["error"]


def test_invalid_json_is_rejected(client, tenant):
    _, user = tenant
    client.force_login(user)
    response = client.post(reverse("ledger_core:simple-entry"), data="{nope", content_type="application/json")
    assert response.status_code == 400
    assert response.json()["kind"] == "validation"


def test_missing_date_is_rejected(api, tenant):
    company, _ = tenant
    status, body = api("simple-entry", {"lines": _lines(company)})
    assert status == 400
    assert "posting_date" in body["error"]


def test_transaction_set_lifecycle(api, tenant):
    company, _ = tenant
    status, body = api("transaction-set-create", {"business_date": "2025-03-15", "notes": "Manual"})
    assert status == 200
    set_id = body["transaction_set"]["id"]

    status, body = api("transaction-set-lines", {"lines": _lines(company)}, set_id=set_id)
    assert status == 200 and len(body["line_ids"]) == 2

    status, body = api("transaction-set-submit", set_id=set_id)
    assert body["transaction_set"]["status"] == "review"

    status, first = api("transaction-set-post", set_id=set_id)
    status, second = api("transaction-set-post", set_id=set_id)
    assert first["journal_entry_id"] == second["journal_entry_id"]
    assert second["idempotent"] is True

    status, body = api("transaction-set-void", set_id=set_id)
    assert status == 400
    assert body["kind"] == "invalid_state"


def test_unknown_set_is_404(api):
    status, body = api("transaction-set-post", set_id=999999)
    assert status == 404
    assert body["kind"] == "not_found"


def test_other_tenant_set_is_404(api):
    other, other_user = make_tenant("Elsewhere")
    ts = TransactionSet.objects.create(company=other, business_date=POSTING_DATE, created_by=other_user)
    status, body = api("transaction-set-submit", set_id=ts.pk)
    assert status == 404


def test_hard_closed_period_maps_to_period_closed(api, tenant):
    company, user = tenant
    period = periods.get_or_create_period(company, POSTING_DATE)
    periods.hard_close(company, user, period.pk, force=True)

    status, body = api("simple-entry", {"posting_date": "2025-03-15", "lines": _lines(company)})
    assert status == 400
    assert body["kind"] == "period_closed"


def test_reverse_and_list(api, tenant):
    company, _ = tenant
    _, posted = api("simple-entry", {"posting_date": "2025-03-15", "lines": _lines(company)})
    status, body = api("journal-entry-reverse", {"reason": "Duplicate"}, entry_id=posted["journal_entry_id"])
    assert status == 200
    assert body["original_journal_entry_id"] == posted["journal_entry_id"]

    status, body = api("journal-entry-list", method="get")
    assert [row["reverses_id"] for row in body["journal_entries"]].count(posted["journal_entry_id"]) == 1
    assert all(row["total_debit"] == row["total_credit"] for row in body["journal_entries"])

    status, body = api("journal-entry-reverse", {"reason": ""}, entry_id=posted["journal_entry_id"])
    assert status == 400


def test_payment_flow_over_http(api, tenant):
    company, user = tenant
    invoice = make_sales_doc(company, "HTTP-1", "500")

    status, body = api(
        "payment-create",
        {"payment_type": "receipt", "amount": "120.00", "payment_date": "2025-03-20", "reference": "WEB-1"},
    )
    assert status == 200
    payment_id = body["payment"]["id"]
    assert body["payment"]["status"] == "draft"

    status, body = api(
        "payment-allocations",
        {"allocations": [{"target_type": "sales_doc", "target_id": invoice.pk, "amount": "150"}]},
        payment_id=payment_id,
    )
    assert status == 400

    status, body = api(
        "payment-allocations",
        {"allocations": [{"target_type": "sales_doc", "target_id": invoice.pk, "amount": "120"}]},
        payment_id=payment_id,
    )
    assert status == 200

    status, body = api("payment-allocations", method="get", payment_id=payment_id)
    assert body["allocated_total"] == "120.00"

    status, body = api("payment-post", payment_id=payment_id)
    assert status == 200 and body["journal_entry_id"]
    assert Payment.objects.get(pk=payment_id).status == "posted"

    status, body = api("payment-void", {"reason": "Refunded"}, payment_id=payment_id)
    assert body["status"] == "void"
    assert body["reversal_journal_entry_id"]


def test_period_endpoints(api):
    status, body = api("period-initialize", {"year": 2025})
    assert body["created"] == 12
    period_id = body["periods"][0]["id"]

    status, body = api("period-soft-close", payload=None, period_id=period_id)
    assert body["period"]["status"] == "soft_closed"
    status, body = api("period-hard-close", period_id=period_id)
    assert body["period"]["status"] == "hard_closed"
    status, body = api("period-reopen", {"reason": "short"}, period_id=period_id)
    assert status == 400
    status, body = api("period-reopen", {"reason": "Auditor adjustment needed"}, period_id=period_id)
    assert body["period"]["status"] == "open"

    status, body = api("period-calendar", {"year": 2025}, method="get")
    assert [row["status"] for row in body["periods"]][:2] == ["open", "open"]


def test_trial_balance_and_aging_reports(api, tenant):
    company, _ = tenant
    api("simple-entry", {"posting_date": "2025-03-15", "lines": _lines(company, "10.00")})

    status, body = api("trial-balance", method="get")
    assert status == 200
    assert {row["code"] for row in body["rows"]} == {"1010", "4000"}

    status, body = api("ar-aging", {"as_of": "2025-06-30"}, method="get")
    assert status == 200
    assert body["total_open"] == "0.00"


@pytest.mark.parametrize("source", ["sales_doc", "purchase_doc", "payment", "inventory"])
def test_workflow_sources_cannot_be_opened_by_hand(api, source):
    status, body = api("transaction-set-create", {"business_date": "2025-03-15", "source": source})
    assert status == 400
    assert body["kind"] == "validation"
    assert not TransactionSet.objects.filter(source=source).exists()


def test_allocation_entries_must_be_objects(api, tenant):
    company, _ = tenant
    invoice = make_sales_doc(company, "HTTP-2", "80")
    _, body = api(
        "payment-create",
        {"payment_type": "receipt", "amount": "50.00", "payment_date": "2025-03-20"},
    )
    payment_id = body["payment"]["id"]

    status, body = api(
        "payment-allocations",
        {"allocations": [{"target_type": "sales_doc", "target_id": invoice.pk, "amount": "10"}, 7]},
        payment_id=payment_id,
    )
    assert status == 400
    assert body["kind"] == "validation"

    status, body = api("payment-allocations", {"allocations": "all"}, payment_id=payment_id)
    assert status == 400

    status, body = api("payment-allocations", method="get", payment_id=payment_id)
    assert body["allocations"] == []
    assert body["allocated_total"] == "0.00"
