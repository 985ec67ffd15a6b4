import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from ..exceptions import InvalidStateError
from ..models import PurchaseDoc, SalesDoc
from .audit_helper import log_action
from .lines import LineSpec, account_for_role
from .posting import Derivation, LineDeriver, PostingResult, post_transaction_set, register_deriver
from .transaction_sets import create_draft_transaction_set

logger = logging.getLogger(__name__)


def _linked_document(model, transaction_set):
    # a set opened by hand can carry the tag without a document
    doc = model.objects.select_for_update().filter(transaction_set=transaction_set).first()
    if doc is None:
        raise ValidationError(
            f"Transaction set {transaction_set.pk} has no {model._meta.verbose_name} to post."
        )
    if doc.status != "draft":
        raise InvalidStateError(f"{doc.doc_number} is {doc.status} and cannot be posted.")
    return doc


class SalesDocDeriver(LineDeriver):
    """Dr AR / Cr revenue for the document total."""

    def derive(self, transaction_set):
        doc = _linked_document(SalesDoc, transaction_set)
        company = transaction_set.company
        revenue = doc.revenue_account or account_for_role(company, "revenue")
        ar = account_for_role(company, "ar")
        desc = f"Invoice {doc.doc_number}"
        return Derivation(
            posting_date=doc.doc_date,
            memo=f"Sales document {doc.doc_number}",
            lines=[
                LineSpec(account=ar, debit=doc.total_amount, description=desc),
                LineSpec(account=revenue, credit=doc.total_amount, description=desc),
            ],
        )

    def on_posted(self, transaction_set, entry, actor):
        doc = SalesDoc.objects.get(transaction_set=transaction_set)
        doc.transition_to("posted")
        log_action(action="post", instance=doc, user=actor, changes={"journal_entry_id": entry.pk})


class PurchaseDocDeriver(LineDeriver):
    """Dr expense (or inventory) / Cr AP for the document total."""

    def derive(self, transaction_set):
        doc = _linked_document(PurchaseDoc, transaction_set)
        company = transaction_set.company
        expense = doc.expense_account or account_for_role(company, "expense")
        ap = account_for_role(company, "ap")
        desc = f"Bill {doc.doc_number}"
        return Derivation(
            posting_date=doc.doc_date,
            memo=f"Purchase document {doc.doc_number}",
            lines=[
                LineSpec(account=expense, debit=doc.total_amount, description=desc),
                LineSpec(account=ap, credit=doc.total_amount, description=desc),
            ],
        )

    def on_posted(self, transaction_set, entry, actor):
        doc = PurchaseDoc.objects.get(transaction_set=transaction_set)
        doc.transition_to("posted")
        log_action(action="post", instance=doc, user=actor, changes={"journal_entry_id": entry.pk})


register_deriver("sales_doc", SalesDocDeriver())
register_deriver("purchase_doc", PurchaseDocDeriver())


def _post_document(model, source, company, actor, doc_id, memo):
    with transaction.atomic():
        doc = model.objects.get_for_company(company, doc_id, lock=True)
        if doc.status == "posted" and doc.transaction_set_id:
            # replays resolve to the recorded entry
            return post_transaction_set(company, actor, doc.transaction_set_id, memo=memo)
        if doc.status != "draft":
            raise InvalidStateError(f"{doc.doc_number} is {doc.status} and cannot be posted.")
        if doc.total_amount <= 0:
            raise ValidationError(f"{doc.doc_number} has no amount to post.")

        if not doc.transaction_set_id:
            ts = create_draft_transaction_set(
                company, actor, source, doc.doc_date, notes=f"{doc._meta.verbose_name.capitalize()} {doc.doc_number}"
            )
            doc.transaction_set = ts
            doc.save(update_fields=["transaction_set"])
        result = post_transaction_set(company, actor, doc.transaction_set_id, memo=memo)
    logger.info("Posted %s %s as journal entry %s", source, doc.doc_number, result.journal_entry_id)
    return result


def post_sales_doc(company, actor, doc_id, memo=None) -> PostingResult:
    return _post_document(SalesDoc, "sales_doc", company, actor, doc_id, memo)


def post_purchase_doc(company, actor, doc_id, memo=None) -> PostingResult:
    return _post_document(PurchaseDoc, "purchase_doc", company, actor, doc_id, memo)
