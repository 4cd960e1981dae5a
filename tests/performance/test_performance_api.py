from datetime import date
from decimal import Decimal

import pytest

from crm.models import Opportunity
from performance.models import LeaderboardSnapshot

KPIS_URL = "/api/v1/kpis/"
LEADERBOARD_URL = "/api/v1/performance/leaderboard/"
JANUARY = {"period_start": "2026-01-01", "period_end": "2026-01-31"}


@pytest.fixture
def january_deals(organization, sales_user, manager_user):
    for owner, amount, status in (
        (sales_user, "30000", Opportunity.Status.WON),
        (sales_user, "5000", Opportunity.Status.LOST),
        (manager_user, "50000", Opportunity.Status.WON),
    ):
        Opportunity.objects.create(
            organization=organization,
            owner=owner,
            name="Hospital deal",
            amount=Decimal(amount),
            status=status,
            closed_on=date(2026, 1, 15),
        )


@pytest.mark.django_db
class TestSalesKPIEndpoint:
    def test_rep_reads_own_kpis(self, client, sales_user, january_deals):
        client.force_login(sales_user)

        response = client.get(KPIS_URL, {**JANUARY, "kpi_type": "win_rate"})

        assert response.status_code == 200
        payload = response.json()
        assert payload["user"] == str(sales_user.pk)
        assert payload["view_mode"] == "individual"
        assert payload["kpis"]["win_rate"]["win_rate"] == 50.0
        assert payload["kpis"]["win_rate"]["deals_won"] == 1

    def test_all_kpis_by_default(self, client, sales_user, january_deals):
        client.force_login(sales_user)

        response = client.get(KPIS_URL, JANUARY)

        assert response.status_code == 200
        assert set(response.json()["kpis"]) == {
            "win_rate", "revenue_growth", "avg_deal_size", "sales_cycle_length",
            "lead_conversion_rate", "cac", "quota_attainment", "clv", "pipeline_coverage",
            "activities_per_rep", "funnel",
        }

    def test_rep_cannot_read_someone_else(self, client, sales_user, manager_user, organization):
        client.force_login(sales_user)

        response = client.get(KPIS_URL, {"user": str(manager_user.pk)})

        assert response.status_code == 403
        assert response.json()["detail"] == "You can only view your own KPIs."

    def test_manager_rolls_up_team(self, client, manager_user, sales_user, january_deals):
        client.force_login(manager_user)

        response = client.get(KPIS_URL, {**JANUARY, "kpi_type": "win_rate", "rollup": "true"})

        assert response.status_code == 200
        payload = response.json()
        assert payload["view_mode"] == "rollup"
        assert set(payload["user_ids"]) == {str(manager_user.pk), str(sales_user.pk)}
        assert payload["kpis"]["win_rate"]["deals_won"] == 2

    def test_territory_scope(self, client, sales_user, organization, territory, january_deals):
        Opportunity.objects.filter(owner=sales_user, status=Opportunity.Status.WON).update(territory=territory)
        client.force_login(sales_user)

        scoped = client.get(KPIS_URL, {**JANUARY, "kpi_type": "cac", "territory": str(territory.pk)})
        assert scoped.status_code == 200
        assert scoped.json()["territory"] == str(territory.pk)
        assert scoped.json()["kpis"]["cac"]["new_customers"] == 1

        unknown = client.get(KPIS_URL, {**JANUARY, "territory": "00000000-0000-0000-0000-000000000000"})
        assert unknown.status_code == 404
        assert unknown.json()["detail"] == "Territory not found."

        malformed = client.get(KPIS_URL, {**JANUARY, "territory": "north-east"})
        assert malformed.status_code == 400
        assert set(malformed.json()["errors"]) == {"territory"}

    def test_invalid_queries(self, client, manager_user, organization, other_sales_user):
        client.force_login(manager_user)

        assert client.get(KPIS_URL, {"kpi_type": "churn"}).status_code == 400
        assert client.get(KPIS_URL, {"period_start": "2026-02-01", "period_end": "2026-01-01"}).status_code == 400
        # Not a member of the manager's organization.
        assert client.get(KPIS_URL, {"user": str(other_sales_user.pk)}).status_code == 404


@pytest.mark.django_db
class TestLeaderboardEndpoint:
    def test_computes_snapshot_for_period(self, client, sales_user, january_deals):
        client.force_login(sales_user)

        response = client.get(LEADERBOARD_URL, {"period": "2026-01"})

        assert response.status_code == 200
        payload = response.json()
        assert payload["period"] == "2026-01"
        assert payload["entries"][0]["user_id"] == str(sales_user.pk)
        assert payload["entries"][0]["won_revenue"] == "30000.00"

    def test_fresh_snapshot_is_reused(self, client, sales_user, organization, january_deals):
        client.force_login(sales_user)
        client.get(LEADERBOARD_URL, {"period": "2026-01"})
        LeaderboardSnapshot.objects.filter(organization=organization).update(data=[])

        cached = client.get(LEADERBOARD_URL, {"period": "2026-01", "refresh": "true"})

        # Reps cannot force a refresh.
        assert cached.json()["entries"] == []

    def test_manager_can_force_refresh(self, client, manager_user, organization, january_deals):
        client.force_login(manager_user)
        client.get(LEADERBOARD_URL, {"period": "2026-01"})
        LeaderboardSnapshot.objects.filter(organization=organization).update(data=[])

        refreshed = client.get(LEADERBOARD_URL, {"period": "2026-01", "refresh": "true"})

        assert len(refreshed.json()["entries"]) == 1

    def test_bad_period_format(self, client, sales_user, organization):
        client.force_login(sales_user)

        response = client.get(LEADERBOARD_URL, {"period": "2026-13"})

        assert response.status_code == 400
        assert response.json()["code"] == "invalid"
