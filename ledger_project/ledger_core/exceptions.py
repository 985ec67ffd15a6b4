from django.core.exceptions import ObjectDoesNotExist, ValidationError

# ---------------------------------------------------------------
# Posting errors carry a machine-checkable `kind` next to the
# human-readable message. State, balance and period errors are
# ValidationError subclasses so callers that already catch
# ValidationError keep working.
# ---------------------------------------------------------------


class InvalidStateError(ValidationError):
    """Operation is not allowed in the entity's current state."""

    kind = "invalid_state"


class UnbalancedEntryError(ValidationError):
    """Raised when journal lines fail the double-entry balance check."""

    kind = "unbalanced_entry"


class PeriodClosedError(ValidationError):
    """Posting date falls inside a hard-closed accounting period."""

    kind = "period_closed"


class NotFoundError(ObjectDoesNotExist):
    """Tenant-scoped lookup found nothing."""

    kind = "not_found"


def error_kind(exc):
    kind = getattr(exc, "kind", None)
    if kind:
        return kind
    if isinstance(exc, ValidationError):
        return "validation"
    return "error"


def error_message(exc):
    if isinstance(exc, ValidationError):
        return "; ".join(exc.messages)
    return str(exc)
