# fees/apps.py

from django.apps import AppConfig


class FeesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "fees"
    verbose_name = "Fee Management"

    def ready(self):
        """
        Import signal handlers when the app is ready.
        Ledger totals are recomputed by these handlers, so they must load.
        """
        import fees.signals  # noqa: F401
