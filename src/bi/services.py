"""KPI retrieval with a precomputed-value cache in front of the engine."""
from __future__ import annotations

import logging
from datetime import date, timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from bi.engine import KPICalculationError, KPIEngine, KPIParams
from bi.models import KPICalculatedValue

logger = logging.getLogger(__name__)


def default_period(today: date | None = None) -> tuple[date, date]:
    today = today or timezone.localdate()
    days = int(getattr(settings, "KPI_DEFAULT_PERIOD_DAYS", 30))
    return today - timedelta(days=days), today


def _from_row(row: KPICalculatedValue) -> dict:
    name, _ = KPIEngine.KPIS.get(row.kpi_code, (row.kpi_code, None))
    return {
        "kpi_id": row.kpi_code,
        "kpi_name": name,
        "value": row.value,
        "confidence": row.confidence,
        "calculated_at": row.updated_at,
        "metadata": row.metadata,
        "source": "cache",
    }


class KPIService:
    """Serve KPI values for one organization.

    Cached rows are used unless ``force_recalculate`` is set; anything
    computed is written back, one row per organization, KPI, day, window
    and filter set.
    """

    def __init__(self, organization) -> None:
        self.organization = organization
        self.engine = KPIEngine(organization.pk)

    def get_cached(self, kpi_code: str, params: KPIParams) -> KPICalculatedValue | None:
        return (
            KPICalculatedValue.objects
            .filter(
                organization=self.organization,
                kpi_code=kpi_code,
                period_start=params.period_start,
                period_end=params.period_end,
                filters_key=params.filters_key(),
                calculation_date=timezone.localdate(),
            )
            .order_by("-updated_at")
            .first()
        )

    @transaction.atomic
    def store(self, result: dict, params: KPIParams, calculation_date: date | None = None) -> KPICalculatedValue:
        row, _ = KPICalculatedValue.objects.update_or_create(
            organization=self.organization,
            kpi_code=result["kpi_id"],
            calculation_date=calculation_date or timezone.localdate(),
            period_start=params.period_start,
            period_end=params.period_end,
            filters_key=params.filters_key(),
            defaults={
                "filters": params.filters(),
                "value": result["value"],
                "confidence": result["confidence"],
                "metadata": result["metadata"],
            },
        )
        return row

    def get_kpis(self, params: KPIParams, kpi_codes=None, *, force_recalculate: bool = False) -> list[dict]:
        results = []
        for kpi_code in kpi_codes or KPIEngine.KPIS:
            if not force_recalculate:
                cached = self.get_cached(kpi_code, params)
                if cached is not None:
                    results.append(_from_row(cached))
                    continue
            try:
                result = self.engine.calculate(kpi_code, params)
            except KPICalculationError as exc:
                logger.info("KPI %s skipped org=%s: %s", kpi_code, self.organization.pk, exc)
                continue
            self.store(result, params)
            results.append({**result, "source": "calculated"})
        return results

    def precompute(self, params: KPIParams) -> int:
        """Compute and store every KPI that can be computed for ``params``."""
        results = self.engine.calculate_all(params)
        for result in results:
            self.store(result, params)
        logger.info(
            "Precomputed %d KPIs org=%s (%s -> %s)",
            len(results),
            self.organization.pk,
            params.period_start,
            params.period_end,
        )
        return len(results)
