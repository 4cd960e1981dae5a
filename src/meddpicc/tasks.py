"""Celery tasks for the MEDDPICC module."""
from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def recalculate_organization_scores(*, organization_id: str) -> int:
    """Recompute and persist every opportunity score of one organization."""
    from meddpicc.services import MEDDPICCScoringService
    from organizations.models import Organization

    organization = Organization.objects.filter(pk=organization_id).first()
    if organization is None:
        logger.warning("recalculate_organization_scores: organization %s not found", organization_id)
        return 0
    return MEDDPICCScoringService(organization).recalculate_organization()


@shared_task
def recalculate_all_scores():
    """
    Nightly (Celery Beat).
    Refresh persisted scores for every active organization.
    """
    from organizations.models import Organization

    organization_ids = list(Organization.objects.filter(is_active=True).values_list("id", flat=True))
    for organization_id in organization_ids:
        try:
            recalculate_organization_scores(organization_id=str(organization_id))
        except Exception as exc:
            logger.warning("Score recalculation failed org=%s: %s", organization_id, exc)

    logger.info("Recalculated MEDDPICC scores for %d organizations", len(organization_ids))
