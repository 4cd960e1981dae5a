"""Celery tasks for the pharma BI module."""
from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def precompute_organization_kpis(*, organization_id: str) -> int:
    """Precompute the default-window KPIs of one organization."""
    from bi.engine import KPIParams
    from bi.services import KPIService, default_period
    from organizations.models import Organization

    organization = Organization.objects.filter(pk=organization_id).first()
    if organization is None:
        logger.warning("precompute_organization_kpis: organization %s not found", organization_id)
        return 0
    period_start, period_end = default_period()
    return KPIService(organization).precompute(KPIParams(period_start=period_start, period_end=period_end))


@shared_task
def precompute_daily_kpis():
    """
    Nightly (Celery Beat).
    Precompute organization-wide KPIs for the default window.
    """
    from organizations.models import Organization

    organization_ids = list(Organization.objects.filter(is_active=True).values_list("id", flat=True))
    for organization_id in organization_ids:
        try:
            precompute_organization_kpis(organization_id=str(organization_id))
        except Exception as exc:
            logger.warning("KPI precompute failed org=%s: %s", organization_id, exc)

    logger.info("Precomputed KPIs for %d organizations", len(organization_ids))
