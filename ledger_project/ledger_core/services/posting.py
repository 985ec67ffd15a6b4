"""
Posting engine.

The only code path that writes JournalEntry / JournalLine rows and moves
a transaction set to "posted". Domain workflows (payments, inventory,
sales and purchase documents) plug in a LineDeriver for their source tag
instead of writing journal rows themselves.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from ..exceptions import InvalidStateError
from ..models import JournalEntry, JournalLine, TransactionSet
from ..money import to_money
from .audit_helper import log_action, resolve_actor
from .lines import LineSpec, check_balance, resolve_account, validate_lines
from .periods import validate_period_for_posting
from .transaction_sets import add_staged_lines, create_draft_transaction_set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Derivation:
    posting_date: date
    memo: str
    lines: list = field(default_factory=list)


@dataclass(frozen=True)
class PostingResult:
    journal_entry_id: Optional[int]
    journal_line_ids: list
    transaction_set_id: Optional[int]
    idempotent: bool = False
    warning: Optional[str] = None

    def as_dict(self):
        return asdict(self)


# ----------------------------
# Line derivers (one per source)
# ----------------------------
class LineDeriver:
    """Turns a locked transaction set into journal lines."""

    # True when a set may legitimately post without any journal lines
    allow_empty = False

    def derive(self, transaction_set) -> Derivation:
        raise NotImplementedError

    def on_posted(self, transaction_set, entry, actor):
        """Domain side effects, run in the posting transaction."""


class StagedLinesDeriver(LineDeriver):
    """Manual, transfer, expense, capital, payroll ... sets carry their own lines."""

    def derive(self, transaction_set):
        staged = transaction_set.staged_lines.select_related("account").order_by("line_number")
        lines = [
            LineSpec(
                account=line.account,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
            )
            for line in staged
        ]
        if not lines:
            raise ValidationError(f"Transaction set {transaction_set.pk} has no lines to post.")
        memo = transaction_set.notes or f"{transaction_set.source.capitalize()} entry {transaction_set.pk}"
        return Derivation(posting_date=transaction_set.business_date, memo=memo, lines=lines)


_DEFAULT_DERIVER = StagedLinesDeriver()
_DERIVERS = {}


def register_deriver(source, deriver):
    _DERIVERS[source] = deriver
    return deriver


def get_deriver(source):
    return _DERIVERS.get(source, _DEFAULT_DERIVER)


def has_own_workflow(source):
    """Sources whose lines come from domain records, not staged lines."""
    return source in _DERIVERS


# ----------------------------
# Engine
# ----------------------------
def _result_for(entry, transaction_set_id, idempotent, warning=None):
    if entry is None:
        return PostingResult(None, [], transaction_set_id, idempotent, warning)
    line_ids = list(entry.lines.order_by("line_number").values_list("pk", flat=True))
    return PostingResult(entry.pk, line_ids, transaction_set_id, idempotent, warning)


def _write_entry(company, actor, lines, posting_date, memo, transaction_set=None,
                 reverses=None, reversal_reason=""):
    """Validate and insert one balanced entry. Caller holds the transaction."""
    # Reject bad legs before touching the database
    validate_lines(company, lines)
    if len(lines) < 2:
        raise ValidationError("A journal entry needs at least two lines.")
    check_balance(lines)
    # Hard-closed periods raise here; soft-closed ones come back with a warning
    check = validate_period_for_posting(company, posting_date)

    entry = JournalEntry.objects.create(
        company=company,
        transaction_set=transaction_set,
        posting_date=posting_date,
        memo=memo or "",
        posted_by=actor,
        reverses=reverses,
        reversal_reason=reversal_reason or "",
    )
    # Line numbers follow input order, starting at 1
    for number, line in enumerate(lines, start=1):
        JournalLine.objects.create(
            company=company,
            journal=entry,
            line_number=number,
            account=line.account,
            debit=line.debit,
            credit=line.credit,
            description=line.description,
        )

    if check.warning:
        log_action(
            action="post_in_soft_closed_period",
            instance=entry,
            user=actor,
            changes={"period": check.period.label, "warning": check.warning},
        )
    return entry, check.warning


def commit_transaction_set(company, actor, transaction_set, lines, posting_date, memo,
                           reverses=None, reversal_reason="", allow_empty=False):
    """
    Write the entry for an already-locked set and flip it to posted.
    Must run inside transaction.atomic().
    """
    entry, warning = None, None
    if lines or not allow_empty:
        entry, warning = _write_entry(
            company,
            actor,
            lines,
            posting_date,
            memo,
            transaction_set=transaction_set,
            reverses=reverses,
            reversal_reason=reversal_reason,
        )
    transaction_set.mark_posted(actor)
    return entry, warning


def post_transaction_set(company, actor, set_id, memo=None) -> PostingResult:
    """
    Post a draft or in-review set. Posting an already posted set returns
    the recorded entry with idempotent=True.
    """
    actor = resolve_actor(actor)
    try:
        with transaction.atomic():
            # Lock the row; a concurrent poster waits here and then sees "posted"
            ts = TransactionSet.objects.get_for_company(company, set_id, lock=True)
            if ts.status == "posted":
                logger.info("Transaction set %s already posted, returning existing entry", ts.pk)
                return _result_for(ts.posted_entry, ts.pk, idempotent=True)
            if ts.status == "void":
                raise InvalidStateError(f"Transaction set {ts.pk} is void and cannot be posted.")

            # Build the lines from the domain records behind this source tag
            deriver = get_deriver(ts.source)
            derivation = deriver.derive(ts)

            # Validate, write entry + lines and flip the set to posted
            entry, warning = commit_transaction_set(
                company,
                actor,
                ts,
                derivation.lines,
                derivation.posting_date,
                memo or derivation.memo,
                allow_empty=deriver.allow_empty,
            )
            # Domain side effects (document status, stock) in the same transaction
            deriver.on_posted(ts, entry, actor)
            log_action(
                action="post",
                instance=ts,
                user=actor,
                changes={"journal_entry_id": entry.pk if entry else None},
            )
    except IntegrityError:
        # Another transaction inserted the entry for this set first
        winner = (
            JournalEntry.objects.for_company(company).filter(transaction_set_id=set_id).first()
        )
        if winner is None:
            raise
        logger.info("Lost posting race for transaction set %s; entry %s wins", set_id, winner.pk)
        return _result_for(winner, winner.transaction_set_id, idempotent=True)

    logger.info(
        "Posted transaction set %s (%s) as journal entry %s",
        ts.pk, ts.source, entry.pk if entry else None,
    )
    return _result_for(entry, ts.pk, idempotent=False, warning=warning)


def create_simple_ledger_entry(company, actor, posting_date, memo, source, lines) -> PostingResult:
    """
    Manual entry in one call: open a draft set, stage the lines, post it.
    A rejected entry leaves nothing behind.
    """
    source = (source or "manual").strip()
    if has_own_workflow(source):
        raise ValidationError(f"'{source}' entries are posted through their own workflow.")
    with transaction.atomic():
        ts = create_draft_transaction_set(company, actor, source, posting_date, notes=memo or "")
        add_staged_lines(company, actor, ts.pk, lines)
        return post_transaction_set(company, actor, ts.pk, memo=memo)


def record_transfer(company, actor, from_account, to_account, amount, transfer_date, memo=None) -> PostingResult:
    """Move money between two cash/bank accounts: debit `to`, credit `from`."""
    source_account = resolve_account(company, from_account)
    target_account = resolve_account(company, to_account)
    if source_account.pk == target_account.pk:
        raise ValidationError("Cannot transfer to the same account.")
    for account in (source_account, target_account):
        if account.ac_type != "asset":
            raise ValidationError(f"Account {account.code} is not a cash or bank account.")
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Transfer amount must be greater than zero.")

    memo = memo or f"Transfer from {source_account.name} to {target_account.name}"
    lines = [
        LineSpec(account=target_account, debit=amount, description=f"Transfer in from {source_account.code}"),
        LineSpec(account=source_account, credit=amount, description=f"Transfer out to {target_account.code}"),
    ]
    return create_simple_ledger_entry(company, actor, transfer_date, memo, "transfer", lines)
