import logging
from dataclasses import asdict, dataclass
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from ..models import JournalEntry, TransactionSet
from .audit_helper import log_action, resolve_actor
from .lines import LineSpec
from .posting import commit_transaction_set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReversalResult:
    original_journal_entry_id: int
    reversal_journal_entry_id: int
    transaction_set_id: Optional[int]
    idempotent: bool = False
    warning: Optional[str] = None

    def as_dict(self):
        return asdict(self)


def _existing_reversal(company, original_entry_id):
    return JournalEntry.objects.for_company(company).filter(reverses_id=original_entry_id).first()


def reverse_journal_entry(company, actor, original_entry_id, reason, posting_date=None, memo=None) -> ReversalResult:
    """
    Undo a posted entry by posting its mirror image: same accounts and line
    numbers, debit and credit swapped. The original is never modified and
    can be reversed only once.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required to reverse a journal entry.")
    actor = resolve_actor(actor)

    try:
        with transaction.atomic():
            # Lock the original so two reversals of it queue up
            original = JournalEntry.objects.get_for_company(company, original_entry_id, lock=True)
            existing = _existing_reversal(company, original.pk)
            if existing is not None:
                return ReversalResult(original.pk, existing.pk, existing.transaction_set_id, idempotent=True)

            posting_date = posting_date or timezone.localdate()
            memo = memo or f"Reversal of {original.pk}: {reason}"
            # Mirror every line: same account, debit and credit swapped
            lines = [
                LineSpec(
                    account=line.account,
                    debit=line.credit,
                    credit=line.debit,
                    description=f"Reversal: {line.description}" if line.description else "Reversal",
                )
                for line in original.lines.select_related("account").order_by("line_number")
            ]

            # Reversals are posted through a set of their own
            ts = TransactionSet.objects.create(
                company=company,
                source="reversal",
                business_date=posting_date,
                notes=memo,
                created_by=actor,
            )
            entry, warning = commit_transaction_set(
                company,
                actor,
                ts,
                lines,
                posting_date,
                memo,
                reverses=original,
                reversal_reason=reason,
            )
            log_action(
                action="reverse",
                instance=original,
                user=actor,
                changes={"reversal_journal_entry_id": entry.pk, "reason": reason},
            )
    except IntegrityError:
        # reverses is unique: somebody else reversed it first
        winner = _existing_reversal(company, original_entry_id)
        if winner is None:
            raise
        return ReversalResult(winner.reverses_id, winner.pk, winner.transaction_set_id, idempotent=True)

    logger.info("Journal entry %s reversed by %s: %s", original.pk, entry.pk, reason)
    return ReversalResult(original.pk, entry.pk, ts.pk, idempotent=False, warning=warning)
