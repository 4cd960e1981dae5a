from django.apps import AppConfig


class BiConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "bi"
    verbose_name = "Pharmaceutical BI"
