import time

import pytest
from django.core.cache import cache

from crm.models import Opportunity
from meddpicc.config import get_default_config
from meddpicc.services import (
    ConfigurationService,
    MEDDPICCScoringService,
    invalidate_score,
    score_cache_key,
)
from meddpicc.tasks import recalculate_organization_scores


@pytest.mark.django_db
class TestScoreCache:
    def test_second_read_is_served_from_cache(self, organization, opportunity):
        service = MEDDPICCScoringService(organization)
        first = service.get_opportunity_score(opportunity)

        # Bypass post_save so the cached entry stays in place.
        Opportunity.objects.filter(pk=opportunity.pk).update(metrics="x" * 60)
        opportunity.refresh_from_db()

        second = MEDDPICCScoringService(organization).get_opportunity_score(opportunity)
        assert second == first
        assert second["score"] == 0

    def test_invalidate_forces_recompute(self, organization, opportunity):
        MEDDPICCScoringService(organization).get_opportunity_score(opportunity)
        Opportunity.objects.filter(pk=opportunity.pk).update(metrics="x" * 60)
        opportunity.refresh_from_db()

        invalidate_score(organization.pk, opportunity.pk)
        result = MEDDPICCScoringService(organization).get_opportunity_score(opportunity)

        assert result["pillar_scores"]["metrics"] == 100
        assert result["score"] == 13  # 15 / 120 of the weight

    def test_entry_expires_after_the_freshness_window(self, settings, monkeypatch, organization, opportunity):
        settings.MEDDPICC_SCORE_CACHE_SECONDS = 300
        started = time.time()
        monkeypatch.setattr(time, "time", lambda: started)
        MEDDPICCScoringService(organization).get_opportunity_score(opportunity)
        Opportunity.objects.filter(pk=opportunity.pk).update(metrics="x" * 60)
        opportunity.refresh_from_db()

        monkeypatch.setattr(time, "time", lambda: started + 299)
        assert MEDDPICCScoringService(organization).get_opportunity_score(opportunity)["score"] == 0

        monkeypatch.setattr(time, "time", lambda: started + 301)
        assert MEDDPICCScoringService(organization).get_opportunity_score(opportunity)["score"] == 13

    def test_saving_the_opportunity_drops_cached_score(self, organization, opportunity):
        MEDDPICCScoringService(organization).get_opportunity_score(opportunity)
        assert cache.get(score_cache_key(organization.pk, opportunity.pk)) is not None

        opportunity.metrics = "Short"
        opportunity.save()

        assert cache.get(score_cache_key(organization.pk, opportunity.pk)) is None
        result = MEDDPICCScoringService(organization).get_opportunity_score(opportunity)
        assert result["pillar_scores"]["metrics"] == 80

    def test_entry_from_older_configuration_is_stale(self, organization, admin_user, opportunity):
        cached = MEDDPICCScoringService(organization).get_opportunity_score(opportunity)
        assert cached["config_version"] == 0

        ConfigurationService(organization).save(get_default_config(), user=admin_user)

        fresh = MEDDPICCScoringService(organization).get_opportunity_score(opportunity)
        assert fresh["config_version"] == 1

    def test_scores_are_keyed_per_organization(self, organization, other_organization, opportunity):
        MEDDPICCScoringService(organization).get_opportunity_score(opportunity)

        assert cache.get(score_cache_key(other_organization.pk, opportunity.pk)) is None


@pytest.mark.django_db
class TestPersistedScore:
    def test_update_persists_overall_score(self, organization, full_opportunity):
        result = MEDDPICCScoringService(organization).update_opportunity_score(full_opportunity)

        full_opportunity.refresh_from_db()
        assert result["score"] == 100
        assert full_opportunity.meddpicc_score == 100
        assert result["source"] == "database"

    def test_fallback_prefers_stored_score(self, organization, opportunity):
        Opportunity.objects.filter(pk=opportunity.pk).update(meddpicc_score=64)
        opportunity.refresh_from_db()

        result = MEDDPICCScoringService(organization).get_score_with_fallback(opportunity)

        assert result["source"] == "database"
        assert result["score"] == 64
        assert result["qualification_level"] == "good"

    def test_fallback_computes_when_nothing_is_stored(self, organization, opportunity):
        result = MEDDPICCScoringService(organization).get_score_with_fallback(opportunity)

        assert result["source"] == "calculated"
        assert result["score"] == 0

    def test_recalculate_counts_changed_opportunities(self, organization, opportunity, full_opportunity):
        Opportunity.objects.filter(pk=opportunity.pk).update(meddpicc_score=0)

        changed = recalculate_organization_scores(organization_id=str(organization.pk))

        full_opportunity.refresh_from_db()
        assert changed == 1
        assert full_opportunity.meddpicc_score == 100

    def test_recalculate_unknown_organization(self, db):
        assert recalculate_organization_scores(organization_id="00000000-0000-0000-0000-000000000000") == 0
