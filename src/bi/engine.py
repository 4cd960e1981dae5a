"""Pharmaceutical KPI calculation engine.

Every KPI is a plain count, sum or ratio over the organization's field data
(prescriptions, calls, samples, formulary records) for one closed date
interval, optionally narrowed to a product, a territory and a rep. The rep
filter only applies to call and sample based KPIs.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from django.db.models import Count, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

logger = logging.getLogger(__name__)

QUANT = Decimal("0.0001")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


class KPICalculationError(Exception):
    """A KPI cannot be computed for the given parameters."""


@dataclass(frozen=True)
class KPIParams:
    period_start: date
    period_end: date
    product_id: str | None = None
    territory_id: str | None = None
    rep_id: str | None = None

    def filters(self) -> dict:
        return {
            key: str(value)
            for key, value in (
                ("product", self.product_id),
                ("territory", self.territory_id),
                ("rep", self.rep_id),
            )
            if value
        }

    def filters_key(self) -> str:
        return json.dumps(self.filters(), sort_keys=True, separators=(",", ":"))

    def previous_period(self) -> "KPIParams":
        """Window of the same length ending the day before this one starts."""
        prev_end = self.period_start - timedelta(days=1)
        prev_start = prev_end - (self.period_end - self.period_start)
        return KPIParams(
            period_start=prev_start,
            period_end=prev_end,
            product_id=self.product_id,
            territory_id=self.territory_id,
            rep_id=self.rep_id,
        )


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _q(value) -> Decimal:
    return _dec(value).quantize(QUANT)


def _ratio(numerator, denominator, scale=1) -> Decimal:
    denominator = _dec(denominator)
    if denominator == 0:
        return ZERO
    return _dec(numerator) / denominator * scale


class KPIEngine:
    """Compute pharma KPIs for one organization."""

    KPIS = {
        "trx": ("Total Prescriptions (TRx)", Decimal("1.0")),
        "nrx": ("New Prescriptions (NRx)", Decimal("1.0")),
        "market_share": ("Market Share %", Decimal("0.9")),
        "growth": ("Growth %", Decimal("0.8")),
        "reach": ("Reach %", Decimal("0.9")),
        "frequency": ("Frequency", Decimal("0.95")),
        "call_effectiveness": ("Call Effectiveness Index", Decimal("0.7")),
        "sample_to_script": ("Sample-to-Script Ratio", Decimal("0.8")),
        "formulary_access": ("Formulary Access %", Decimal("0.7")),
        "kol_engagement": ("KOL Engagement Rate", Decimal("0.92")),
        "sample_efficiency": ("Sample Efficiency Index", Decimal("0.85")),
    }

    def __init__(self, organization_id) -> None:
        self.organization_id = organization_id

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def calculate(self, kpi_code: str, params: KPIParams) -> dict:
        if kpi_code not in self.KPIS:
            raise KPICalculationError(f"Unknown KPI '{kpi_code}'.")
        if params.period_end < params.period_start:
            raise KPICalculationError("period_end must not precede period_start.")

        value, metadata = getattr(self, f"_calc_{kpi_code}")(params)
        name, confidence = self.KPIS[kpi_code]
        return {
            "kpi_id": kpi_code,
            "kpi_name": name,
            "value": _q(value),
            "confidence": confidence,
            "calculated_at": timezone.now(),
            "metadata": {
                **params.filters(),
                "period_start": params.period_start.isoformat(),
                "period_end": params.period_end.isoformat(),
                **metadata,
            },
        }

    def calculate_all(self, params: KPIParams, kpi_codes=None) -> list[dict]:
        """Compute every requested KPI, skipping (and logging) the ones that fail."""
        results = []
        for kpi_code in kpi_codes or self.KPIS:
            try:
                results.append(self.calculate(kpi_code, params))
            except KPICalculationError as exc:
                logger.info("KPI %s skipped org=%s: %s", kpi_code, self.organization_id, exc)
            except Exception as exc:
                logger.warning("KPI %s failed org=%s: %s", kpi_code, self.organization_id, exc)
        return results

    # ------------------------------------------------------------------
    # Querysets
    # ------------------------------------------------------------------

    def _prescriptions(self, params: KPIParams, *, product=True):
        from bi.models import PrescriptionEvent

        qs = PrescriptionEvent.objects.filter(
            organization_id=self.organization_id,
            prescription_date__gte=params.period_start,
            prescription_date__lte=params.period_end,
        )
        if product and params.product_id:
            qs = qs.filter(product_id=params.product_id)
        if params.territory_id:
            qs = qs.filter(territory_id=params.territory_id)
        return qs

    def _calls(self, params: KPIParams):
        from bi.models import CallActivity

        qs = CallActivity.objects.filter(
            organization_id=self.organization_id,
            call_date__date__gte=params.period_start,
            call_date__date__lte=params.period_end,
        )
        if params.product_id:
            qs = qs.filter(product_id=params.product_id)
        if params.territory_id:
            qs = qs.filter(territory_id=params.territory_id)
        if params.rep_id:
            qs = qs.filter(rep_id=params.rep_id)
        return qs

    def _samples(self, params: KPIParams):
        from bi.models import SampleDistribution

        qs = SampleDistribution.objects.filter(
            organization_id=self.organization_id,
            distribution_date__gte=params.period_start,
            distribution_date__lte=params.period_end,
        )
        if params.product_id:
            qs = qs.filter(product_id=params.product_id)
        if params.territory_id:
            qs = qs.filter(territory_id=params.territory_id)
        if params.rep_id:
            qs = qs.filter(rep_id=params.rep_id)
        return qs

    def _active_hcps(self, params: KPIParams):
        from bi.models import HealthcareProvider

        qs = HealthcareProvider.objects.filter(organization_id=self.organization_id, is_active=True)
        if params.territory_id:
            qs = qs.filter(territory_id=params.territory_id)
        return qs

    @staticmethod
    def _volume(qs) -> Decimal:
        return _dec(qs.aggregate(total=Coalesce(Sum("volume"), Value(ZERO)))["total"])

    def _sample_count(self, params: KPIParams) -> int:
        return int(self._samples(params).aggregate(total=Coalesce(Sum("quantity"), Value(0)))["total"])

    def _nrx_volume(self, params: KPIParams) -> Decimal:
        from bi.models import PrescriptionEvent

        return self._volume(
            self._prescriptions(params).filter(prescription_type=PrescriptionEvent.PrescriptionType.NEW)
        )

    # ------------------------------------------------------------------
    # KPIs
    # ------------------------------------------------------------------

    def _calc_trx(self, params):
        qs = self._prescriptions(params)
        return self._volume(qs), {"records": qs.count()}

    def _calc_nrx(self, params):
        return self._nrx_volume(params), {}

    def _calc_market_share(self, params):
        if not params.product_id:
            raise KPICalculationError("A product is required for market share.")
        product_trx = self._volume(self._prescriptions(params))
        market_trx = self._volume(self._prescriptions(params, product=False))
        return _ratio(product_trx, market_trx, HUNDRED), {
            "product_trx": str(product_trx),
            "market_trx": str(market_trx),
        }

    def _calc_growth(self, params):
        previous = params.previous_period()
        current_trx = self._volume(self._prescriptions(params))
        previous_trx = self._volume(self._prescriptions(previous))
        growth = _ratio(current_trx - previous_trx, previous_trx, HUNDRED)
        return growth, {
            "current_period": str(current_trx),
            "previous_period": str(previous_trx),
            "previous_period_start": previous.period_start.isoformat(),
            "previous_period_end": previous.period_end.isoformat(),
        }

    def _calc_reach(self, params):
        active = self._active_hcps(params)
        total = active.count()
        reached = (
            self._calls(params)
            .filter(hcp__in=active)
            .aggregate(n=Count("hcp", distinct=True))["n"]
        )
        return _ratio(reached, total, HUNDRED), {"hcps_reached": reached, "hcps_total": total}

    def _calc_frequency(self, params):
        stats = self._calls(params).aggregate(calls=Count("id"), hcps=Count("hcp", distinct=True))
        return _ratio(stats["calls"], stats["hcps"]), {"calls": stats["calls"], "hcps": stats["hcps"]}

    def _calc_call_effectiveness(self, params):
        from bi.models import PrescriptionEvent

        calls = self._calls(params)
        call_count = calls.count()
        nrx = self._volume(
            self._prescriptions(params).filter(
                prescription_type=PrescriptionEvent.PrescriptionType.NEW,
                hcp_id__in=calls.values("hcp_id"),
            )
        )
        return _ratio(nrx, call_count), {"calls": call_count, "nrx_from_called_hcps": str(nrx)}

    def _calc_sample_to_script(self, params):
        samples = self._sample_count(params)
        nrx = self._nrx_volume(params)
        return _ratio(samples, nrx), {"samples": samples, "nrx": str(nrx)}

    def _calc_formulary_access(self, params):
        from bi.models import FormularyAccess

        if not params.product_id:
            raise KPICalculationError("A product is required for formulary access.")
        qs = FormularyAccess.objects.filter(
            organization_id=self.organization_id,
            product_id=params.product_id,
            effective_date__lte=params.period_end,
        ).filter(Q(end_date__isnull=True) | Q(end_date__gte=params.period_start))
        if params.territory_id:
            qs = qs.filter(territory_id=params.territory_id)
        stats = qs.aggregate(
            total=Count("id"),
            favorable=Count("id", filter=Q(coverage_level__in=FormularyAccess.FAVORABLE_LEVELS)),
        )
        return _ratio(stats["favorable"], stats["total"], HUNDRED), {
            "favorable_records": stats["favorable"],
            "total_records": stats["total"],
        }

    def _calc_kol_engagement(self, params):
        kols = self._active_hcps(params).filter(is_kol=True)
        total = kols.count()
        engaged = (
            self._calls(params)
            .filter(hcp__in=kols)
            .aggregate(n=Count("hcp", distinct=True))["n"]
        )
        return _ratio(engaged, total, HUNDRED), {"kols_engaged": engaged, "kols_total": total}

    def _calc_sample_efficiency(self, params):
        trx = self._volume(self._prescriptions(params))
        samples = self._sample_count(params)
        return _ratio(trx, samples, HUNDRED), {"trx": str(trx), "samples": samples}
