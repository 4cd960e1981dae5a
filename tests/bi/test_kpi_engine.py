from datetime import date, datetime
from decimal import Decimal

import pytest
from django.utils import timezone

from bi.engine import KPICalculationError, KPIEngine, KPIParams
from bi.models import (
    CallActivity,
    FormularyAccess,
    HealthcareProvider,
    PrescriptionEvent,
    Product,
    SampleDistribution,
)
from organizations.models import Territory

JANUARY = KPIParams(period_start=date(2026, 1, 1), period_end=date(2026, 1, 31))


def _at(day):
    return timezone.make_aware(datetime(2026, 1, day, 12, 0))


@pytest.fixture
def field_data(organization, territory, sales_user, manager_user):
    south_west = Territory.objects.create(organization=organization, name="South West", code="SW")
    cardio = Product.objects.create(organization=organization, name="Cardiozen", code="CZN")
    onco = Product.objects.create(organization=organization, name="Oncovex", code="OVX")

    kol = HealthcareProvider.objects.create(
        organization=organization, first_name="Ada", last_name="Stone", territory=territory, is_kol=True,
    )
    gp = HealthcareProvider.objects.create(
        organization=organization, first_name="Ben", last_name="Ray", territory=territory,
    )
    oncologist = HealthcareProvider.objects.create(
        organization=organization, first_name="Cleo", last_name="Marsh", territory=south_west,
    )
    retired = HealthcareProvider.objects.create(
        organization=organization, first_name="Dan", last_name="Old", territory=territory, is_active=False,
    )

    new, refill = PrescriptionEvent.PrescriptionType.NEW, PrescriptionEvent.PrescriptionType.REFILL
    for product, hcp, area, day, kind, volume in [
        (cardio, kol, territory, date(2026, 1, 5), new, "10"),
        (cardio, gp, territory, date(2026, 1, 10), refill, "5"),
        (onco, oncologist, south_west, date(2026, 1, 15), new, "15"),
        (cardio, oncologist, south_west, date(2026, 1, 20), new, "10"),
        (cardio, kol, territory, date(2025, 12, 20), new, "20"),
    ]:
        PrescriptionEvent.objects.create(
            organization=organization,
            product=product,
            hcp=hcp,
            territory=area,
            prescription_date=day,
            prescription_type=kind,
            volume=Decimal(volume),
        )

    for rep, hcp, product, area, day in [
        (sales_user, kol, cardio, territory, 6),
        (sales_user, kol, cardio, territory, 12),
        (manager_user, oncologist, onco, south_west, 14),
        (sales_user, retired, cardio, territory, 16),
    ]:
        CallActivity.objects.create(
            organization=organization, rep=rep, hcp=hcp, product=product, territory=area, call_date=_at(day),
        )

    SampleDistribution.objects.create(
        organization=organization, rep=sales_user, hcp=kol, product=cardio, territory=territory,
        distribution_date=date(2026, 1, 5), quantity=20,
    )
    SampleDistribution.objects.create(
        organization=organization, rep=manager_user, hcp=oncologist, product=onco, territory=south_west,
        distribution_date=date(2026, 1, 15), quantity=10,
    )

    coverage = FormularyAccess.CoverageLevel
    for level, effective, end in [
        (coverage.PREFERRED, date(2025, 6, 1), None),
        (coverage.NOT_COVERED, date(2025, 1, 1), date(2025, 12, 31)),
        (coverage.NON_PREFERRED, date(2026, 1, 10), None),
        (coverage.STANDARD, date(2026, 2, 15), None),
    ]:
        FormularyAccess.objects.create(
            organization=organization, payer="BlueShield", product=cardio,
            coverage_level=level, effective_date=effective, end_date=end,
        )

    return {"cardio": cardio, "onco": onco, "north_east": territory, "south_west": south_west}


def _value(organization, code, params=JANUARY):
    return KPIEngine(organization.pk).calculate(code, params)["value"]


@pytest.mark.django_db
class TestPrescriptionKPIs:
    def test_trx_and_nrx(self, organization, field_data):
        assert _value(organization, "trx") == Decimal("40")
        assert _value(organization, "nrx") == Decimal("35")

    def test_territory_totals_add_up(self, organization, field_data):
        north = KPIParams(JANUARY.period_start, JANUARY.period_end, territory_id=str(field_data["north_east"].pk))
        south = KPIParams(JANUARY.period_start, JANUARY.period_end, territory_id=str(field_data["south_west"].pk))

        assert _value(organization, "trx", north) == Decimal("15")
        assert _value(organization, "trx", north) + _value(organization, "trx", south) == _value(organization, "trx")

    def test_market_share_and_growth_for_product(self, organization, field_data):
        params = KPIParams(JANUARY.period_start, JANUARY.period_end, product_id=str(field_data["cardio"].pk))

        assert _value(organization, "market_share", params) == Decimal("62.5")
        result = KPIEngine(organization.pk).calculate("growth", params)
        assert result["value"] == Decimal("25")
        assert result["metadata"]["previous_period_start"] == "2025-12-01"
        assert result["metadata"]["previous_period_end"] == "2025-12-31"

    def test_market_share_requires_product(self, organization, field_data):
        with pytest.raises(KPICalculationError):
            KPIEngine(organization.pk).calculate("market_share", JANUARY)

    def test_other_organizations_rows_are_ignored(self, other_organization, field_data):
        assert _value(other_organization, "trx") == Decimal("0")


@pytest.mark.django_db
class TestFieldForceKPIs:
    def test_reach_frequency_and_kol_engagement(self, organization, field_data):
        assert _value(organization, "reach") == Decimal("66.6667")
        assert _value(organization, "frequency") == Decimal("1.3333")
        assert _value(organization, "kol_engagement") == Decimal("100")

    def test_rep_filter_applies_to_calls(self, organization, sales_user, field_data):
        params = KPIParams(JANUARY.period_start, JANUARY.period_end, rep_id=str(sales_user.pk))

        assert _value(organization, "frequency", params) == Decimal("1.5")
        # Prescriptions are not attributed to reps.
        assert _value(organization, "trx", params) == Decimal("40")

    def test_call_effectiveness_and_samples(self, organization, field_data):
        assert _value(organization, "call_effectiveness") == Decimal("8.75")
        assert _value(organization, "sample_to_script") == Decimal("0.8571")
        assert _value(organization, "sample_efficiency") == Decimal("133.3333")

    def test_formulary_access_counts_records_active_in_period(self, organization, field_data):
        params = KPIParams(JANUARY.period_start, JANUARY.period_end, product_id=str(field_data["cardio"].pk))

        result = KPIEngine(organization.pk).calculate("formulary_access", params)

        assert result["value"] == Decimal("50")
        assert result["metadata"]["total_records"] == 2


@pytest.mark.django_db
class TestEngineContract:
    def test_result_shape(self, organization, field_data):
        result = KPIEngine(organization.pk).calculate("trx", JANUARY)

        assert result["kpi_id"] == "trx"
        assert result["kpi_name"] == "Total Prescriptions (TRx)"
        assert result["confidence"] == Decimal("1.0")
        assert result["metadata"]["period_start"] == "2026-01-01"
        assert result["metadata"]["records"] == 4

    def test_unknown_kpi_and_inverted_period(self, organization):
        engine = KPIEngine(organization.pk)
        with pytest.raises(KPICalculationError, match="Unknown KPI"):
            engine.calculate("ltv", JANUARY)
        with pytest.raises(KPICalculationError, match="period_end"):
            engine.calculate("trx", KPIParams(date(2026, 2, 1), date(2026, 1, 1)))

    def test_calculate_all_skips_kpis_needing_a_product(self, organization, field_data):
        codes = [result["kpi_id"] for result in KPIEngine(organization.pk).calculate_all(JANUARY)]

        assert "market_share" not in codes
        assert "formulary_access" not in codes
        assert len(codes) == len(KPIEngine.KPIS) - 2

    def test_empty_data_gives_zero_not_error(self, organization):
        assert _value(organization, "reach") == Decimal("0")
        assert _value(organization, "sample_to_script") == Decimal("0")

    def test_filters_key_is_canonical(self):
        params = KPIParams(date(2026, 1, 1), date(2026, 1, 31), territory_id="t1", product_id="p1")

        assert params.filters_key() == '{"product":"p1","territory":"t1"}'
        assert KPIParams(date(2026, 1, 1), date(2026, 1, 31)).filters_key() == "{}"
