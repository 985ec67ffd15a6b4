from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .exceptions import InvalidStateError
from .models import AccountingPeriod, JournalEntry, JournalLine

""" The ledger is append-only: posted rows are never deleted."""


# pre_delete fires for queryset deletes and cascades too, not only instance.delete()
@receiver(pre_delete, sender=JournalEntry)
def prevent_delete_journal_entry(sender, instance, **kwargs):
    raise InvalidStateError("Journal entries cannot be deleted; post a reversal instead.")


@receiver(pre_delete, sender=JournalLine)
def prevent_delete_journal_line(sender, instance, **kwargs):
    raise InvalidStateError("Journal lines cannot be deleted.")


"""Block deletion of closed periods."""


@receiver(pre_delete, sender=AccountingPeriod)
def prevent_delete_closed_period(sender, instance, **kwargs):
    if instance.status != "open":
        raise InvalidStateError(f"Cannot delete {instance.status} period {instance.label}.")
