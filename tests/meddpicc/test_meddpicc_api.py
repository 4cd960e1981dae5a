import json

import pytest

from crm.models import Opportunity
from meddpicc.config import get_default_config
from meddpicc.models import MEDDPICCConfiguration


def _meddpicc_url(opportunity):
    return f"/api/v1/opportunities/{opportunity.pk}/meddpicc/"


def _patch(client, url, payload):
    return client.patch(url, data=json.dumps(payload), content_type="application/json")


def _put(client, url, payload):
    return client.put(url, data=json.dumps(payload), content_type="application/json")


@pytest.mark.django_db
class TestOpportunityAssessment:
    def test_owner_reads_assessment(self, client, sales_user, full_opportunity):
        client.force_login(sales_user)

        response = client.get(_meddpicc_url(full_opportunity))

        assert response.status_code == 200
        payload = response.json()
        assert payload["opportunity_id"] == str(full_opportunity.pk)
        assert payload["score"] == 100
        assert payload["qualification_level"] == "excellent"
        assert payload["next_actions"] == []
        assert payload["stage_gate_readiness"]["prospecting_to_engaging"] is True

    def test_patch_updates_pillars_and_persists_score(self, client, sales_user, opportunity):
        client.force_login(sales_user)

        response = _patch(client, _meddpicc_url(opportunity), {
            "identify_pain": "Adverse events drive a 12% readmission rate at the flagship site",
            "implicate_pain": "Each readmission costs the network about $12k in penalties",
        })

        assert response.status_code == 200
        payload = response.json()
        assert payload["pillar_scores"]["identifyPain"] == 100
        assert payload["score"] == 33
        opportunity.refresh_from_db()
        assert opportunity.meddpicc_score == 33
        assert opportunity.identify_pain.startswith("Adverse events")

    def test_patch_without_pillars_is_rejected(self, client, sales_user, opportunity):
        client.force_login(sales_user)

        response = _patch(client, _meddpicc_url(opportunity), {})

        assert response.status_code == 400
        assert response.json()["code"] == "invalid"

    def test_rep_cannot_touch_other_reps_opportunity(self, client, organization, manager_user, sales_user):
        managers_deal = Opportunity.objects.create(
            organization=organization,
            owner=manager_user,
            name="Manager owned",
        )
        client.force_login(sales_user)

        response = client.get(_meddpicc_url(managers_deal))

        assert response.status_code == 403
        assert response.json()["code"] == "permission_denied"

    def test_manager_reads_team_opportunity(self, client, manager_user, opportunity):
        client.force_login(manager_user)

        assert client.get(_meddpicc_url(opportunity)).status_code == 200

    def test_other_tenant_gets_not_found(self, client, other_organization, other_sales_user, opportunity):
        client.force_login(other_sales_user)

        response = client.get(_meddpicc_url(opportunity))

        assert response.status_code == 404
        assert response.json() == {"detail": "Opportunity not found.", "code": "not_found"}

    def test_user_without_organization_gets_not_found(self, client, orphan_user, opportunity):
        client.force_login(orphan_user)

        response = client.get(_meddpicc_url(opportunity))

        assert response.status_code == 404
        assert response.json()["detail"] == "Organization not found."

    def test_anonymous_is_rejected(self, client, opportunity):
        assert client.get(_meddpicc_url(opportunity)).status_code in (401, 403)

    def test_bearer_token_is_accepted(self, bearer_client, sales_user, opportunity):
        response = bearer_client(sales_user).get(_meddpicc_url(opportunity))

        assert response.status_code == 200
        assert response.json()["score"] == 0


@pytest.mark.django_db
class TestRecalculate:
    def test_manager_queues_recalculation(self, client, manager_user, full_opportunity):
        client.force_login(manager_user)

        response = client.post("/api/v1/meddpicc/recalculate/")

        assert response.status_code == 202
        assert response.json()["detail"] == "Recalculation queued."
        full_opportunity.refresh_from_db()
        assert full_opportunity.meddpicc_score == 100

    def test_sales_rep_cannot_recalculate(self, client, sales_user, organization):
        client.force_login(sales_user)

        response = client.post("/api/v1/meddpicc/recalculate/")

        assert response.status_code == 403


@pytest.mark.django_db
class TestConfigurationAdmin:
    url = "/api/v1/admin/meddpicc-config/"

    def test_get_returns_builtin_default(self, client, admin_user, organization):
        client.force_login(admin_user)

        response = client.get(self.url)

        assert response.status_code == 200
        payload = response.json()
        assert payload["version"] == 0
        assert payload["config"] == get_default_config()

    def test_put_creates_active_version(self, client, admin_user, organization):
        client.force_login(admin_user)
        config = get_default_config()
        config["pillars"][0]["weight"] = 25

        response = _put(client, self.url, {"config": config, "reason": "weight metrics higher"})

        assert response.status_code == 201
        payload = response.json()
        assert payload["version"] == 1
        assert payload["warnings"] == ["Pillar weights sum to 130, not 100."]
        assert MEDDPICCConfiguration.objects.get(organization=organization, is_active=True).version == 1

    def test_put_invalid_configuration_is_rejected(self, client, admin_user, organization):
        client.force_login(admin_user)

        response = _put(client, self.url, {"config": {"pillars": []}})

        assert response.status_code == 400
        assert response.json()["code"] == "invalid"
        assert "config" in response.json()["errors"]
        assert not MEDDPICCConfiguration.objects.filter(organization=organization).exists()

    def test_validate_does_not_save(self, client, admin_user, organization):
        client.force_login(admin_user)

        response = client.post(
            f"{self.url}validate/",
            data=json.dumps({"config": get_default_config()}),
            content_type="application/json",
        )

        assert response.status_code == 200
        assert response.json()["is_valid"] is True
        assert not MEDDPICCConfiguration.objects.filter(organization=organization).exists()

    def test_reset_and_history(self, client, admin_user, organization):
        client.force_login(admin_user)
        config = get_default_config()
        config["pillars"] = config["pillars"][:4]
        assert _put(client, self.url, {"config": config}).status_code == 201

        reset = client.post(f"{self.url}reset/")
        assert reset.status_code == 201
        assert reset.json()["version"] == 2
        assert reset.json()["config"] == get_default_config()

        history = client.get(f"{self.url}history/")
        assert history.status_code == 200
        actions = [entry["action"] for entry in history.json()["results"]]
        assert actions.count("ACTIVATE") == 2
        assert "DEACTIVATE" in actions

    def test_sales_rep_cannot_read_configuration(self, client, sales_user, organization):
        client.force_login(sales_user)

        assert client.get(self.url).status_code == 403
