from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Debits and credits are compared with this tolerance, never exactly
BALANCE_EPSILON = Decimal("0.005")


def to_money(value, field="amount"):
    """Parse a monetary input into a Decimal rounded to cents."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, float):
        # go through str() so 0.1 stays 0.1
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def is_balanced(total_debit, total_credit):
    return abs(total_debit - total_credit) <= BALANCE_EPSILON


QUANTITY_PLACES = Decimal("0.0001")


def to_quantity(value, field="quantity"):
    """Parse a stock quantity or unit cost (four decimal places)."""
    if isinstance(value, float):
        value = str(value)
    try:
        qty = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}")
    if not qty.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return qty.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)
