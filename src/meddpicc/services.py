"""MEDDPICC configuration storage and cached opportunity scoring."""
from __future__ import annotations

import logging

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

from core.middleware import get_current_user
from meddpicc.config import get_default_config, validate_config
from meddpicc.scoring import calculate_assessment, get_qualification_level

logger = logging.getLogger(__name__)

SCORE_CACHE_PREFIX = "meddpicc:score"


class ConfigurationError(Exception):
    """A configuration document failed validation."""

    def __init__(self, errors, warnings=None):
        super().__init__("; ".join(errors))
        self.errors = list(errors)
        self.warnings = list(warnings or [])


def score_cache_key(organization_id, opportunity_id) -> str:
    return f"{SCORE_CACHE_PREFIX}:{organization_id}:{opportunity_id}"


def score_cache_ttl() -> int:
    return int(getattr(settings, "MEDDPICC_SCORE_CACHE_SECONDS", 300))


def invalidate_score(organization_id, opportunity_id) -> None:
    """Drop the memoized score so the next read recomputes it."""
    cache.delete(score_cache_key(organization_id, opportunity_id))


class ConfigurationService:
    """Read and version the MEDDPICC configuration of one organization."""

    def __init__(self, organization) -> None:
        self.organization = organization

    def get_active(self):
        from meddpicc.models import MEDDPICCConfiguration

        return MEDDPICCConfiguration.objects.filter(
            organization=self.organization,
            is_active=True,
        ).first()

    def get_config(self) -> tuple[dict, int]:
        """Return ``(config, version)``; version 0 means the built-in default."""
        active = self.get_active()
        if active is None:
            return get_default_config(), 0
        return active.config, active.version

    def history(self):
        from meddpicc.models import MEDDPICCConfigurationHistory

        return (
            MEDDPICCConfigurationHistory.objects
            .filter(organization=self.organization)
            .select_related("configuration", "changed_by")
        )

    def save(self, config: dict, *, user=None, reason: str = "", name: str | None = None,
             description: str | None = None):
        """Validate ``config`` and store it as the new active version."""
        from meddpicc.models import MEDDPICCConfiguration, MEDDPICCConfigurationHistory

        report = validate_config(config)
        if not report["is_valid"]:
            raise ConfigurationError(report["errors"], report["warnings"])
        for warning in report["warnings"]:
            logger.info("MEDDPICC config warning org=%s: %s", self.organization.pk, warning)

        user = user or get_current_user()
        History = MEDDPICCConfigurationHistory

        with transaction.atomic():
            previous = (
                MEDDPICCConfiguration.objects
                .select_for_update()
                .filter(organization=self.organization, is_active=True)
                .first()
            )
            last_version = (
                MEDDPICCConfiguration.objects
                .filter(organization=self.organization)
                .order_by("-version")
                .values_list("version", flat=True)
                .first()
            ) or 0

            if previous is not None:
                previous.is_active = False
                previous.save(update_fields=["is_active", "updated_at"])
                History.objects.create(
                    organization=self.organization,
                    configuration=previous,
                    action=History.Action.DEACTIVATE,
                    previous_config=previous.config,
                    changed_by=user,
                    reason=reason,
                )

            created = MEDDPICCConfiguration.objects.create(
                organization=self.organization,
                name=name or (previous.name if previous else "MEDDPICC"),
                description=description if description is not None else (previous.description if previous else ""),
                version=last_version + 1,
                is_active=True,
                config=config,
                created_by=user,
            )
            History.objects.create(
                organization=self.organization,
                configuration=created,
                action=History.Action.UPDATE if previous else History.Action.CREATE,
                previous_config=previous.config if previous else None,
                new_config=config,
                changed_by=user,
                reason=reason,
            )
            History.objects.create(
                organization=self.organization,
                configuration=created,
                action=History.Action.ACTIVATE,
                new_config=config,
                changed_by=user,
                reason=reason,
            )

        logger.info(
            "MEDDPICC configuration v%s activated for org=%s",
            created.version,
            self.organization.pk,
        )
        return created

    def reset_to_default(self, *, user=None):
        return self.save(get_default_config(), user=user, reason="Reset to default configuration")


class MEDDPICCScoringService:
    """Single entry point for opportunity scores.

    Scores are memoized in the Django cache per opportunity for
    ``MEDDPICC_SCORE_CACHE_SECONDS``. A cached entry computed under an older
    configuration version is treated as stale.
    """

    def __init__(self, organization) -> None:
        self.organization = organization
        self._config = None
        self._version = None

    def _load_config(self) -> tuple[dict, int]:
        if self._config is None:
            self._config, self._version = ConfigurationService(self.organization).get_config()
        return self._config, self._version

    def calculate(self, opportunity, *, source: str = "calculated") -> dict:
        config, version = self._load_config()
        assessment = calculate_assessment(opportunity.pillar_texts(), config)
        return {
            "opportunity_id": str(opportunity.pk),
            "score": assessment["overall_score"],
            "qualification_level": assessment["qualification_level"],
            "pillar_scores": assessment["pillar_scores"],
            "next_actions": assessment["next_actions"],
            "stage_gate_readiness": assessment["stage_gate_readiness"],
            "config_version": version,
            "last_calculated": timezone.now().isoformat(),
            "source": source,
        }

    def get_opportunity_score(self, opportunity) -> dict:
        _, version = self._load_config()
        key = score_cache_key(self.organization.pk, opportunity.pk)
        cached = cache.get(key)
        if cached is not None and cached.get("config_version") == version:
            return cached

        result = self.calculate(opportunity)
        cache.set(key, result, score_cache_ttl())
        return result

    def get_score_with_fallback(self, opportunity) -> dict:
        """Prefer the persisted overall score, computing only when there is none."""
        if opportunity.meddpicc_score is not None:
            config, _ = self._load_config()
            thresholds = (config.get("scoring") or {}).get("thresholds") if isinstance(config, dict) else None
            return {
                "opportunity_id": str(opportunity.pk),
                "score": opportunity.meddpicc_score,
                "qualification_level": get_qualification_level(opportunity.meddpicc_score, thresholds),
                "pillar_scores": {},
                "source": "database",
            }
        return self.get_opportunity_score(opportunity)

    def update_opportunity_score(self, opportunity) -> dict:
        """Recompute, persist ``meddpicc_score`` and refresh the cache."""
        from crm.models import Opportunity

        result = self.calculate(opportunity, source="database")
        Opportunity.objects.filter(pk=opportunity.pk).update(meddpicc_score=result["score"])
        opportunity.meddpicc_score = result["score"]
        cache.set(score_cache_key(self.organization.pk, opportunity.pk), result, score_cache_ttl())
        logger.info(
            "Updated MEDDPICC score opportunity=%s score=%s",
            opportunity.pk,
            result["score"],
        )
        return result

    def invalidate(self, opportunity) -> None:
        invalidate_score(self.organization.pk, opportunity.pk)

    def recalculate_organization(self) -> int:
        """Recompute and persist the score of every opportunity; returns the count changed."""
        from crm.models import Opportunity

        changed = []
        opportunities = Opportunity.objects.filter(organization=self.organization)
        for opportunity in opportunities.iterator():
            result = self.calculate(opportunity)
            invalidate_score(self.organization.pk, opportunity.pk)
            if opportunity.meddpicc_score != result["score"]:
                opportunity.meddpicc_score = result["score"]
                changed.append(opportunity)

        Opportunity.objects.bulk_update(changed, ["meddpicc_score"], batch_size=500)
        logger.info(
            "Recalculated MEDDPICC scores org=%s changed=%d",
            self.organization.pk,
            len(changed),
        )
        return len(changed)
