import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import BaseCommand
from django.db import transaction

from ledger_core.models import Company, Customer, SalesDoc
from ledger_core.services.periods import initialize_fiscal_year
from ledger_core.services.transaction_sets import create_draft_transaction_set

User = get_user_model()


class Command(BaseCommand):
    help = (
        "Create a demo tenant (company), user, chart of accounts, "
        "fiscal year and a draft sales document."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--company-name",  # Define flag
            default="Demo Company",
            help="Name of the demo company to create.",
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        # Read arguments from add_arguments()
        company_name = options["company_name"]
        username = options["username"]
        password = options["password"]

        # 1. Create user and company
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com"},
        )
        if created:  # if user newly created
            user.set_password(password)
            user.save()

        company, _ = Company.objects.get_or_create(
            name=company_name, defaults={"owner": user}
        )
        user.default_company = company
        user.save(update_fields=["default_company"])
        self.stdout.write(self.style.SUCCESS(f"Company: {company} (slug={company.slug})"))
        self.stdout.write(self.style.SUCCESS(f"User: {user.username}"))

        # 2. Chart of accounts and periods for the current year
        call_command("seed_chart_of_accounts", company=company.slug, stdout=self.stdout)
        today = datetime.date.today()
        periods = initialize_fiscal_year(company, today.year)
        self.stdout.write(self.style.SUCCESS(f"Fiscal year {today.year}: {len(periods)} period(s) created"))

        # 3. A draft sales document ready to post
        customer, _ = Customer.objects.get_or_create(
            company=company, name=f"{company_name} Customer"
        )
        if not SalesDoc.objects.filter(company=company, customer=customer).exists():
            ts = create_draft_transaction_set(company, user, "sales_doc", today, notes="Demo invoice")
            doc = SalesDoc.objects.create(
                company=company,
                customer=customer,
                doc_number="DEMO-001",
                doc_date=today,
                total_amount=Decimal("1000.00"),
                transaction_set=ts,
            )
            self.stdout.write(self.style.SUCCESS(f"Created sales document {doc.doc_number}"))
