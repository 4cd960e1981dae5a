"""Celery configuration."""
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE",
    os.getenv("DJANGO_SETTINGS_MODULE", "config.settings.prod"),
)

app = Celery("peakcrm")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# Beat schedule
app.conf.beat_schedule = {
    "bi-precompute-daily-kpis": {
        "task": "bi.tasks.precompute_daily_kpis",
        "schedule": crontab(minute=0, hour=1),  # Daily at 1am
    },
    "meddpicc-recalculate-scores": {
        "task": "meddpicc.tasks.recalculate_all_scores",
        "schedule": crontab(minute=30, hour=1),  # Daily
    },
    "performance-refresh-leaderboards": {
        "task": "performance.tasks.refresh_all_leaderboards",
        "schedule": crontab(minute=0, hour="*"),  # Every hour
    },
}
