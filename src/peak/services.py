"""PEAK stage transitions gated by the MEDDPICC assessment."""
from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from crm.models import Opportunity, OpportunityStageHistory
from meddpicc.scoring import gate_key, unmet_gate_criteria

logger = logging.getLogger(__name__)

STAGE_ORDER = [choice for choice, _ in Opportunity.PeakStage.choices]


class PEAKTransitionError(Exception):
    """A stage move was refused."""

    def __init__(self, message, unmet_criteria=None):
        super().__init__(message)
        self.message = message
        self.unmet_criteria = list(unmet_criteria or [])


def stage_index(stage: str) -> int:
    try:
        return STAGE_ORDER.index(stage)
    except ValueError:
        raise PEAKTransitionError(f"Unknown PEAK stage '{stage}'.") from None


def gates_on_path(from_stage: str, to_stage: str) -> list[str]:
    """Gate keys crossed when moving forward from ``from_stage`` to ``to_stage``."""
    start, end = stage_index(from_stage), stage_index(to_stage)
    return [gate_key(STAGE_ORDER[i], STAGE_ORDER[i + 1]) for i in range(start, end)]


def transition_opportunity(opportunity: Opportunity, to_stage: str, *, user=None, reason: str = ""):
    """Move ``opportunity`` to ``to_stage`` and log the change.

    Backward moves are always accepted. Forward moves require every gate
    crossed to be ready in the current assessment; otherwise
    ``PEAKTransitionError`` carries the unmet criterion labels.
    """
    from meddpicc.services import ConfigurationService, MEDDPICCScoringService

    with transaction.atomic():
        locked = (
            Opportunity.objects.select_for_update()
            .select_related("organization")
            .get(pk=opportunity.pk)
        )
        from_stage = locked.peak_stage
        if stage_index(to_stage) == stage_index(from_stage):
            raise PEAKTransitionError(f"Opportunity is already in stage '{to_stage}'.")
        if locked.status != Opportunity.Status.OPEN:
            raise PEAKTransitionError("Closed opportunities cannot change stage.")

        details = {"direction": "backward"}
        if stage_index(to_stage) > stage_index(from_stage):
            organization = locked.organization
            config, _ = ConfigurationService(organization).get_config()
            assessment = MEDDPICCScoringService(organization).get_opportunity_score(locked)
            readiness = assessment.get("stage_gate_readiness") or {}
            min_score = ((config.get("algorithm") or {}).get("stage_gate_min_score", 50)
                         if isinstance(config, dict) else 50)
            gates = {
                gate_key(gate["from"], gate["to"]): gate
                for gate in (config.get("stage_gates") or [] if isinstance(config, dict) else [])
            }

            unmet = []
            for key in gates_on_path(from_stage, to_stage):
                if key in gates and not readiness.get(key, False):
                    unmet.extend(unmet_gate_criteria(gates[key], assessment.get("pillar_scores") or {}, min_score))
            if unmet:
                logger.info(
                    "PEAK transition refused opportunity=%s %s->%s unmet=%s",
                    locked.pk,
                    from_stage,
                    to_stage,
                    unmet,
                )
                raise PEAKTransitionError("Stage gate criteria not met.", unmet)
            details = {
                "direction": "forward",
                "score": assessment.get("score"),
                "config_version": assessment.get("config_version"),
            }

        Opportunity.objects.filter(pk=locked.pk).update(peak_stage=to_stage, updated_at=timezone.now())
        history = OpportunityStageHistory.objects.create(
            opportunity=locked,
            from_stage=from_stage,
            to_stage=to_stage,
            changed_by=user,
            reason=reason or "",
            details=details,
        )

    opportunity.peak_stage = to_stage
    logger.info("PEAK transition opportunity=%s %s->%s", opportunity.pk, from_stage, to_stage)
    return history
