import logging
from dataclasses import asdict, dataclass
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..exceptions import InvalidStateError
from ..models import Payment, PaymentAllocation, PurchaseDoc, SalesDoc, TransactionSet
from ..models.payment import PAYMENT_METHODS, TARGET_FOR_PAYMENT_TYPE
from ..money import ZERO, to_money
from .audit_helper import log_action, resolve_actor
from .lines import LineSpec, account_for_role, resolve_account
from .posting import Derivation, LineDeriver, post_transaction_set, register_deriver
from .reversal import reverse_journal_entry
from .transaction_sets import create_draft_transaction_set, void_transaction_set

logger = logging.getLogger(__name__)

TARGET_MODELS = {
    "sales_doc": SalesDoc,
    "purchase_doc": PurchaseDoc,
}


@dataclass(frozen=True)
class PaymentPostingResult:
    journal_entry_id: Optional[int]
    transaction_set_id: Optional[int]
    idempotent: bool = False
    warning: Optional[str] = None

    def as_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class UnallocationResult:
    payment_id: int
    removed_allocation_ids: list
    idempotent: bool = False

    def as_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class PaymentVoidResult:
    payment_id: int
    status: str
    reversal_journal_entry_id: Optional[int] = None
    idempotent: bool = False

    def as_dict(self):
        return asdict(self)


# ----------------------------
# Recording and allocation
# ----------------------------
def record_payment(company, actor, payment_type, method, amount, payment_date, cash_account,
                   reference="", transaction_set=None) -> Payment:
    """Record a draft payment; opens a draft "payment" transaction set when none is given."""
    if payment_type not in TARGET_FOR_PAYMENT_TYPE:
        raise ValidationError(f"Unknown payment type {payment_type!r}.")
    if method not in dict(PAYMENT_METHODS):
        raise ValidationError(f"Unknown payment method {method!r}.")
    if payment_date is None:
        raise ValidationError("A payment date is required.")
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero.")

    # default cash/bank ledger account by method
    if cash_account in (None, ""):
        cash_account = account_for_role(company, method)
    else:
        cash_account = resolve_account(company, cash_account)
    if cash_account.ac_type != "asset":
        raise ValidationError(f"Account {cash_account.code} is not a cash or bank account.")

    actor = resolve_actor(actor)
    with transaction.atomic():
        if transaction_set is None:
            ts = create_draft_transaction_set(
                company, actor, "payment", payment_date, notes=reference or ""
            )
        else:
            set_id = transaction_set.pk if isinstance(transaction_set, TransactionSet) else transaction_set
            ts = TransactionSet.objects.get_for_company(company, set_id, lock=True)
            if ts.status != "draft" or ts.source != "payment":
                raise ValidationError("Payments need a draft transaction set with source 'payment'.")
            if Payment.objects.filter(transaction_set=ts).exists():
                raise ValidationError(f"Transaction set {ts.pk} already has a payment.")

        payment = Payment.objects.create(
            company=company,
            payment_type=payment_type,
            method=method,
            amount=amount,
            payment_date=payment_date,
            reference=reference or "",
            cash_account=cash_account,
            transaction_set=ts,
            created_by=actor,
        )
        log_action(
            action="create",
            instance=payment,
            user=actor,
            changes={"type": payment_type, "amount": amount, "transaction_set_id": ts.pk},
        )
    return payment


def _locked_draft_payment(company, payment_id):
    payment = Payment.objects.get_for_company(company, payment_id, lock=True)
    if payment.status != "draft":
        raise InvalidStateError(
            f"Allocations can only be changed on draft payments (payment {payment.pk} is {payment.status})."
        )
    return payment


def create_allocations(company, actor, payment_id, allocations):
    """
    Apply a draft payment to documents. Either every allocation is stored
    or none is.
    """
    actor = resolve_actor(actor)
    if not allocations:
        raise ValidationError("At least one allocation is required.")

    with transaction.atomic():
        payment = _locked_draft_payment(company, payment_id)
        expected = payment.target_type

        prepared = []
        for i, raw in enumerate(allocations, start=1):
            if not isinstance(raw, dict):
                raise ValidationError(f"Allocation {i} must be a mapping, got {raw!r}.")
            target_type = raw.get("target_type")
            if target_type != expected:
                raise ValidationError(
                    f"Allocation {i}: a {payment.get_payment_type_display().lower()} "
                    f"can only be applied to {expected} targets."
                )
            amount = to_money(raw.get("amount"), field=f"allocation {i} amount")
            if amount <= 0:
                raise ValidationError(f"Allocation {i}: amount must be greater than zero.")
            doc = TARGET_MODELS[target_type].objects.get_for_company(company, raw.get("target_id"))
            if doc.status == "void":
                raise ValidationError(f"Allocation {i}: {doc.doc_number} is void.")
            prepared.append((target_type, doc, amount))

        # Existing plus new allocations may not exceed the payment
        existing = payment.allocated_total()
        requested = sum((amount for _, _, amount in prepared), ZERO)
        if existing + requested > payment.amount:
            raise ValidationError(
                f"Total allocations ({existing + requested}) would exceed payment amount ({payment.amount})."
            )

        created = [
            PaymentAllocation.objects.create(
                company=company,
                payment=payment,
                target_type=target_type,
                sales_doc=doc if target_type == "sales_doc" else None,
                purchase_doc=doc if target_type == "purchase_doc" else None,
                amount=amount,
                created_by=actor,
            )
            for target_type, doc, amount in prepared
        ]
        log_action(
            action="allocate",
            instance=payment,
            user=actor,
            changes={"allocations": [{"id": a.pk, "target_id": a.target_id, "amount": a.amount} for a in created]},
        )
    return created


def unallocate(company, actor, payment_id, allocation_id=None, target_type=None, target_id=None,
               reason="") -> UnallocationResult:
    """Remove allocations from a draft payment; removing a missing one succeeds."""
    actor = resolve_actor(actor)
    if allocation_id is None and not (target_type and target_id is not None):
        raise ValidationError("Provide allocation_id, or target_type and target_id.")

    with transaction.atomic():
        payment = _locked_draft_payment(company, payment_id)
        qs = payment.allocations.all()
        if allocation_id is not None:
            qs = qs.filter(pk=allocation_id)
        else:
            if target_type not in TARGET_MODELS:
                raise ValidationError(f"Unknown target type {target_type!r}.")
            qs = qs.filter(target_type=target_type, **{f"{target_type}_id": target_id})

        removed = list(qs.values_list("pk", flat=True))
        if not removed:
            logger.info("Nothing to unallocate on payment %s", payment.pk)
            return UnallocationResult(payment.pk, [], idempotent=True)

        qs.delete()
        log_action(
            action="unallocate",
            instance=payment,
            user=actor,
            changes={"allocation_ids": removed, "reason": reason or ""},
        )
    return UnallocationResult(payment.pk, removed)


# ----------------------------
# Posting and voiding
# ----------------------------
class PaymentDeriver(LineDeriver):
    """
    Receipt:        Dr cash/bank (allocated total)  Cr AR per allocation
    Vendor payment: Dr AP per allocation            Cr cash/bank (allocated total)
    """

    def derive(self, transaction_set):
        payment = Payment.objects.select_for_update().filter(transaction_set=transaction_set).first()
        if payment is None:
            raise ValidationError(f"Transaction set {transaction_set.pk} has no payment.")
        if payment.status != "draft":
            raise InvalidStateError(f"Payment {payment.pk} is {payment.status} and cannot be posted.")

        allocations = list(
            payment.allocations.select_related("sales_doc", "purchase_doc").order_by("pk")
        )
        total = sum((a.amount for a in allocations), ZERO)
        if not allocations or total <= 0:
            raise ValidationError("Payment must have at least one allocation before posting.")

        ref = payment.reference or str(payment.pk)
        company = payment.company
        if payment.payment_type == "receipt":
            ar = account_for_role(company, "ar")
            lines = [LineSpec(account=payment.cash_account, debit=total, description=f"Receipt {ref}")]
            lines += [
                LineSpec(account=ar, credit=a.amount, description=f"Applied to {a.target.doc_number}")
                for a in allocations
            ]
            memo = f"Customer receipt: {ref}"
        else:
            ap = account_for_role(company, "ap")
            lines = [
                LineSpec(account=ap, debit=a.amount, description=f"Applied to {a.target.doc_number}")
                for a in allocations
            ]
            lines.append(LineSpec(account=payment.cash_account, credit=total, description=f"Payment {ref}"))
            memo = f"Vendor payment: {ref}"
        return Derivation(posting_date=payment.payment_date, memo=memo, lines=lines)

    def on_posted(self, transaction_set, entry, actor):
        payment = transaction_set.payment
        payment.status = "posted"
        payment.save(update_fields=["status", "updated_at"])
        log_action(action="post", instance=payment, user=actor, changes={"journal_entry_id": entry.pk})


register_deriver("payment", PaymentDeriver())


def post_payment(company, actor, payment_id, memo=None) -> PaymentPostingResult:
    actor = resolve_actor(actor)
    with transaction.atomic():
        # Lock the payment row so concurrent posts serialize
        payment = Payment.objects.get_for_company(company, payment_id, lock=True)
        if payment.status == "posted":
            entry = payment.transaction_set.posted_entry if payment.transaction_set_id else None
            return PaymentPostingResult(entry.pk if entry else None, payment.transaction_set_id, idempotent=True)
        if payment.status != "draft":
            raise InvalidStateError(f"Payment {payment.pk} is {payment.status} and cannot be posted.")
        if payment.transaction_set_id is None:
            raise ValidationError(f"Payment {payment.pk} has no transaction set.")

        result = post_transaction_set(company, actor, payment.transaction_set_id, memo=memo)
    logger.info("Posted payment %s as journal entry %s", payment.pk, result.journal_entry_id)
    return PaymentPostingResult(
        result.journal_entry_id, result.transaction_set_id, result.idempotent, result.warning
    )


def void_payment(company, actor, payment_id, reason="") -> PaymentVoidResult:
    """
    draft  → void (its transaction set is voided too)
    posted → reversal of its journal entry, then void
    void   → no-op
    """
    actor = resolve_actor(actor)
    reversal_id = None
    with transaction.atomic():
        payment = Payment.objects.get_for_company(company, payment_id, lock=True)
        if payment.status == "void":
            return PaymentVoidResult(payment.pk, payment.status, idempotent=True)

        if payment.status == "posted":
            # Posted rows are never edited: undo the entry with a reversal
            entry = payment.transaction_set.posted_entry if payment.transaction_set_id else None
            if entry is not None:
                reversal = reverse_journal_entry(
                    company,
                    actor,
                    entry.pk,
                    reason or f"Void payment {payment.reference or payment.pk}",
                )
                reversal_id = reversal.reversal_journal_entry_id
        elif payment.transaction_set_id and payment.transaction_set.is_editable:
            void_transaction_set(company, actor, payment.transaction_set_id, reason=reason)

        payment.status = "void"
        payment.voided_at = timezone.now()
        payment.void_reason = reason or ""
        payment.save(update_fields=["status", "voided_at", "void_reason", "updated_at"])
        log_action(
            action="void",
            instance=payment,
            user=actor,
            changes={"reason": reason or "", "reversal_journal_entry_id": reversal_id},
        )
    logger.info("Voided payment %s (reversal entry %s)", payment.pk, reversal_id)
    return PaymentVoidResult(payment.pk, payment.status, reversal_id)
