from django.apps import AppConfig


class LedgerCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ledger_core"
    verbose_name = "Ledger"

    def ready(self):
        # ensure receivers are registered
        from . import signals  # noqa: F401

        # line derivers register themselves with the posting engine on import
        from .services import documents, inventory, payment  # noqa: F401
