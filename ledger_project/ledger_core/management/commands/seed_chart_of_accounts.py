from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from ledger_core.models import Account, Company

# role → (account name, account type) for the codes in LEDGER_ACCOUNT_CODES
DEFAULT_CHART = {
    "bank": ("Bank", "asset"),
    "savings": ("Savings", "asset"),
    "cash": ("Cash on Hand", "asset"),
    "ar": ("Accounts Receivable", "asset"),
    "inventory": ("Inventory", "asset"),
    "ap": ("Accounts Payable", "liability"),
    "equity": ("Owner's Equity", "equity"),
    "revenue": ("Sales Revenue", "revenue"),
    "cogs": ("Cost of Goods Sold", "expense"),
    "expense": ("Operating Expenses", "expense"),
}


class Command(BaseCommand):
    help = "Create the default chart of accounts the posting engine resolves by role."

    # Define command-line argument
    def add_arguments(self, parser):
        parser.add_argument(
            "--company",  # Define flag
            required=True,
            help="Slug of the company to seed.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        slug = options["company"]  # Read argument from add_arguments()
        try:
            company = Company.objects.get(slug=slug)
        except Company.DoesNotExist:
            raise CommandError(f"Company '{slug}' does not exist.")

        created_count = 0
        for role, code in settings.LEDGER_ACCOUNT_CODES.items():
            name, ac_type = DEFAULT_CHART.get(role, (role.title(), "asset"))
            # get_or_create keeps the command safe to run twice
            _, created = Account.objects.get_or_create(
                company=company,
                code=code,
                defaults={"name": name, "ac_type": ac_type},
            )
            if created:
                created_count += 1
                self.stdout.write(f"  {code} {name}")

        self.stdout.write(
            self.style.SUCCESS(
                f"Chart of accounts ready for {company}: {created_count} account(s) created."
            )
        )
