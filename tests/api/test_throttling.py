import pytest

from api.throttling import STRICT_DEFAULT_RATE, SafeScopedRateThrottle

KPIS_URL = "/api/v1/kpis/"


def test_unconfigured_scope_falls_back_to_strict_rate():
    throttle = SafeScopedRateThrottle()
    throttle.scope = "not_configured_anywhere"

    assert throttle.get_rate() == STRICT_DEFAULT_RATE


@pytest.mark.django_db
def test_kpi_requests_beyond_the_rate_are_rejected(client, sales_user, organization):
    client.force_login(sales_user)

    statuses = [client.get(KPIS_URL, {"kpi_type": "win_rate"}).status_code for _ in range(5)]
    assert statuses == [200] * 5

    response = client.get(KPIS_URL, {"kpi_type": "win_rate"})
    assert response.status_code == 429
    payload = response.json()
    assert payload["code"] == "throttled"
    assert payload["retry_after"] > 0


@pytest.mark.django_db
def test_rate_is_tracked_per_user(client, sales_user, manager_user, organization):
    client.force_login(sales_user)
    for _ in range(5):
        client.get(KPIS_URL, {"kpi_type": "win_rate"})
    assert client.get(KPIS_URL, {"kpi_type": "win_rate"}).status_code == 429

    client.force_login(manager_user)
    assert client.get(KPIS_URL, {"kpi_type": "win_rate"}).status_code == 200


@pytest.mark.django_db
def test_bi_and_sales_kpis_share_the_calculation_budget(client, sales_user, organization):
    client.force_login(sales_user)
    for _ in range(3):
        client.get(KPIS_URL, {"kpi_type": "win_rate"})
    for _ in range(2):
        client.get("/api/v1/bi/kpis/", {"kpi": "trx"})

    assert client.get("/api/v1/bi/kpis/", {"kpi": "trx"}).status_code == 429
