from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError

from ..exceptions import UnbalancedEntryError
from ..models import Account
from ..money import ZERO, is_balanced, to_money


@dataclass(frozen=True)
class LineSpec:
    """A validated journal line waiting to be written."""

    account: Account
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str = ""


def resolve_account(company, account=None, *, account_id=None, account_code=None):
    """
    Find a ledger account of `company` from an Account instance, a primary
    key or a chart-of-accounts code. Foreign or unknown accounts are a
    ValidationError, never a cross-tenant read.
    """
    qs = Account.objects.for_company(company)
    if isinstance(account, Account):
        if account.company_id != company.pk:
            raise ValidationError(f"Account {account.pk} does not belong to this company.")
        return account
    if account is not None:
        account_id = account

    found = None
    if account_id not in (None, ""):
        try:
            found = qs.filter(pk=int(account_id)).first()
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid account id {account_id!r}.")
        label = f"id {account_id}"
    elif account_code not in (None, ""):
        found = qs.filter(code=str(account_code)).first()
        label = f"code {account_code}"
    else:
        raise ValidationError("Each line needs an account, account_id or account_code.")

    if found is None:
        raise ValidationError(f"Account not found ({label}).")
    return found


def account_for_role(company, role):
    """Resolve a configured account, e.g. role "ar" → LEDGER_ACCOUNT_CODES["ar"]."""
    code = settings.LEDGER_ACCOUNT_CODES.get(role)
    if not code:
        raise ValidationError(f"No account code configured for '{role}'.")
    account = Account.objects.for_company(company).filter(code=code, is_active=True).first()
    if account is None:
        raise ValidationError(f"Required {role} account not found (code {code}).")
    return account


def normalize_line(company, raw, index=1):
    """
    Accepts a LineSpec or a dict with either debit/credit or a signed
    `amount` (positive = debit, negative = credit).
    """
    if isinstance(raw, LineSpec):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError(f"Line {index}: expected an object, got {type(raw).__name__}.")

    account = resolve_account(
        company,
        raw.get("account"),
        account_id=raw.get("account_id"),
        account_code=raw.get("account_code"),
    )
    has_sides = raw.get("debit") not in (None, "") or raw.get("credit") not in (None, "")
    if "amount" in raw and not has_sides:
        amount = to_money(raw["amount"], field=f"line {index} amount")
        debit = amount if amount > 0 else ZERO
        credit = -amount if amount < 0 else ZERO
    else:
        debit = to_money(raw.get("debit"), field=f"line {index} debit")
        credit = to_money(raw.get("credit"), field=f"line {index} credit")

    return LineSpec(
        account=account,
        debit=debit,
        credit=credit,
        description=(raw.get("description") or "").strip(),
    )


def normalize_lines(company, raw_lines):
    if not raw_lines:
        raise ValidationError("At least one line is required.")
    return [normalize_line(company, raw, i) for i, raw in enumerate(raw_lines, start=1)]


def validate_lines(company, lines):
    """Per-line rules: one positive side, active account of this company."""
    for i, line in enumerate(lines, start=1):
        if line.debit < 0 or line.credit < 0:
            raise ValidationError(f"Line {i}: amounts cannot be negative.")
        if line.debit > 0 and line.credit > 0:
            raise ValidationError(f"Line {i}: a line cannot have both a debit and a credit.")
        if line.debit == 0 and line.credit == 0:
            raise ValidationError(f"Line {i}: a line needs a non-zero debit or credit.")
        if line.account.company_id != company.pk:
            raise ValidationError(f"Line {i}: account does not belong to this company.")
        if not line.account.is_active:
            raise ValidationError(f"Line {i}: account {line.account.code} is inactive.")


def line_totals(lines):
    total_debit = sum((line.debit for line in lines), ZERO)
    total_credit = sum((line.credit for line in lines), ZERO)
    return total_debit, total_credit


def check_balance(lines):
    total_debit, total_credit = line_totals(lines)
    if not is_balanced(total_debit, total_credit):
        raise UnbalancedEntryError(
            f"Entry is not balanced: debits={total_debit}, credits={total_credit}"
        )
    return total_debit, total_credit
