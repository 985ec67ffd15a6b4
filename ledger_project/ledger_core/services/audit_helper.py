from typing import Optional

from ..models import AuditLog, Company


def resolve_actor(user):
    """Model user or None; AnonymousUser and friends are recorded as system."""
    return user if getattr(user, "pk", None) else None


def log_action(
    *,
    action: str,
    instance,
    user=None,
    company: Optional[Company] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Writes inside the caller's transaction, so a rolled back operation
    leaves no audit row behind.
    """

    if not company:
        company = getattr(instance, "company", None)

    return AuditLog.objects.create(
        company=company,
        user=resolve_actor(user),
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=changes,
    )
