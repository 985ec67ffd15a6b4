import datetime
import io
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management import call_command

from ledger_core.models import Account, Company, Customer, PurchaseDoc, SalesDoc, Vendor

POSTING_DATE = datetime.date(2025, 3, 15)


def make_tenant(name="Test Co", username=None):
    """Company + owner user (default company set) + seeded chart of accounts."""
    User = get_user_model()
    user = User.objects.create_user(
        username=username or f"{name.lower().replace(' ', '_')}_user", password="pw"
    )
    company = Company.objects.create(name=name, owner=user)
    user.default_company = company
    user.save(update_fields=["default_company"])
    call_command("seed_chart_of_accounts", company=company.slug, stdout=io.StringIO())
    return company, user


def acct(company, role):
    return Account.objects.get(company=company, code=settings.LEDGER_ACCOUNT_CODES[role])


def make_sales_doc(company, number, total, doc_date=POSTING_DATE, customer=None, due_date=None):
    customer = customer or Customer.objects.get_or_create(company=company, name="Acme Customer")[0]
    return SalesDoc.objects.create(
        company=company,
        customer=customer,
        doc_number=number,
        doc_date=doc_date,
        due_date=due_date,
        total_amount=Decimal(total),
    )


def make_purchase_doc(company, number, total, doc_date=POSTING_DATE, vendor=None, due_date=None):
    vendor = vendor or Vendor.objects.get_or_create(company=company, name="Supply Co")[0]
    return PurchaseDoc.objects.create(
        company=company,
        vendor=vendor,
        doc_number=number,
        doc_date=doc_date,
        due_date=due_date,
        total_amount=Decimal(total),
    )
