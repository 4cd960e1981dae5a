"""Celery tasks for the sales performance module."""
from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def refresh_all_leaderboards():
    """
    Run every hour (Celery Beat).
    Refresh leaderboard snapshots for the current month for all organizations.
    """
    from organizations.models import Organization
    from performance.leaderboard import LeaderboardEngine, current_period

    period = current_period()
    organization_ids = list(Organization.objects.filter(is_active=True).values_list("id", flat=True))
    for organization_id in organization_ids:
        try:
            LeaderboardEngine(organization_id=str(organization_id)).compute_snapshot(period=period)
        except Exception as exc:
            logger.warning("Leaderboard refresh failed org=%s: %s", organization_id, exc)

    logger.info("Refreshed leaderboards for %d organizations (period=%s)", len(organization_ids), period)
