from django.apps import AppConfig


class PeakConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "peak"
    verbose_name = "PEAK pipeline"
