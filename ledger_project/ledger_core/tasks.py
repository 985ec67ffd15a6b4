import logging
from datetime import date

from celery import shared_task
from django.db import models, transaction
from django.utils import timezone

from .money import to_money

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def refresh_balance_snapshots(company_id, snapshot_date=None):
    """
    Rebuild AccountBalanceSnapshot rows of one company for one date from
    posted journal lines. Safe to re-run; returns the number of rows written.
    """
    # import models lazily to avoid circular imports at module import time
    from .models import AccountBalanceSnapshot, Company, JournalLine

    company = Company.objects.get(pk=company_id)
    if snapshot_date is None:
        snapshot_date = timezone.localdate()
    elif isinstance(snapshot_date, str):
        # JSON task payloads carry ISO dates
        snapshot_date = date.fromisoformat(snapshot_date)

    totals = (
        JournalLine.objects.for_company(company)
        .filter(journal__posting_date__lte=snapshot_date)
        .values("account_id")
        .annotate(debit=models.Sum("debit"), credit=models.Sum("credit"))
        .order_by("account_id")
    )

    with transaction.atomic():
        AccountBalanceSnapshot.objects.for_company(company).filter(snapshot_date=snapshot_date).delete()
        written = 0
        for row in totals:
            AccountBalanceSnapshot.objects.create(
                company=company,
                account_id=row["account_id"],
                snapshot_date=snapshot_date,
                debit_total=to_money(row["debit"]),
                credit_total=to_money(row["credit"]),
            )
            written += 1

    logger.info("Refreshed %s balance snapshots for company %s on %s", written, company.pk, snapshot_date)
    return written
