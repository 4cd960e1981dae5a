"""App config for the MEDDPICC module."""
from django.apps import AppConfig


class MeddpiccConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "meddpicc"
    verbose_name = "MEDDPICC qualification"

    def ready(self):
        import meddpicc.signals  # noqa: F401
