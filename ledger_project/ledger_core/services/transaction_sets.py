import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Max

from ..exceptions import InvalidStateError
from ..models import TransactionSet, TransactionSetLine
from .audit_helper import log_action, resolve_actor
from .lines import normalize_lines, validate_lines

logger = logging.getLogger(__name__)


# ----------------------------
# Transaction set workflow
#   draft → review → posted
#     ↘       ↘
#      void    void
# ----------------------------
def create_draft_transaction_set(company, actor, source, business_date, notes="") -> TransactionSet:
    source = (source or "").strip()
    if not source:
        raise ValidationError("A transaction set needs a source.")
    if business_date is None:
        raise ValidationError("A transaction set needs a business date.")

    actor = resolve_actor(actor)
    with transaction.atomic():
        ts = TransactionSet.objects.create(
            company=company,
            source=source,
            business_date=business_date,
            notes=notes or "",
            created_by=actor,
        )
        log_action(action="create", instance=ts, user=actor, changes={"source": source})
    logger.debug("Created draft transaction set %s (%s)", ts.pk, source)
    return ts


def add_staged_lines(company, actor, set_id, lines):
    """Append proposed journal lines to a draft or in-review set."""
    actor = resolve_actor(actor)
    specs = normalize_lines(company, lines)
    # sign/side/account checks up front; balance is checked at posting time
    validate_lines(company, specs)

    with transaction.atomic():
        ts = TransactionSet.objects.get_for_company(company, set_id, lock=True)
        if not ts.is_editable:
            raise InvalidStateError(
                f"Lines can only be added to draft or review transaction sets (status: {ts.status})."
            )
        last = ts.staged_lines.aggregate(n=Max("line_number"))["n"] or 0
        created = [
            TransactionSetLine.objects.create(
                company=company,
                transaction_set=ts,
                line_number=last + i,
                account=spec.account,
                debit=spec.debit,
                credit=spec.credit,
                description=spec.description,
            )
            for i, spec in enumerate(specs, start=1)
        ]
        log_action(action="add_lines", instance=ts, user=actor, changes={"count": len(created)})
    return created


def submit_for_review(company, actor, set_id) -> TransactionSet:
    actor = resolve_actor(actor)
    with transaction.atomic():
        ts = TransactionSet.objects.get_for_company(company, set_id, lock=True)
        if ts.status != "draft":
            raise InvalidStateError(
                f"Only draft transaction sets can be submitted for review (status: {ts.status})."
            )
        ts.transition_to("review", user=actor)
        log_action(action="submit", instance=ts, user=actor)
    logger.info("Transaction set %s submitted for review", ts.pk)
    return ts


def void_transaction_set(company, actor, set_id, reason="") -> TransactionSet:
    actor = resolve_actor(actor)
    with transaction.atomic():
        ts = TransactionSet.objects.get_for_company(company, set_id, lock=True)
        if ts.status == "void":
            # voiding twice is a no-op
            return ts
        if ts.status == "posted":
            raise InvalidStateError(
                "Posted transaction sets cannot be voided; reverse the journal entry instead."
            )
        ts.transition_to("void", user=actor, reason=reason)
        log_action(action="void", instance=ts, user=actor, changes={"reason": reason or ""})
    logger.info("Transaction set %s voided", ts.pk)
    return ts
