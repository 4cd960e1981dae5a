"""Sales KPI engine for individual reps and manager roll-ups.

All KPIs are computed over a list of user ids: a single rep, or a manager
plus every direct and indirect report (see
:func:`organizations.services.get_team_user_ids`). An optional territory
narrows the opportunity and target based KPIs; leads and activities carry no
territory and are never narrowed.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from statistics import median

from django.db.models import Count, Q, Sum, Value
from django.db.models.functions import Coalesce

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
ON_TRACK_PCT = Decimal("95")
# Acquisition cost is not tracked; it is estimated as this share of won revenue.
ACQUISITION_COST_RATE = Decimal("0.10")

KPI_TYPES = (
    "win_rate",
    "revenue_growth",
    "avg_deal_size",
    "sales_cycle_length",
    "lead_conversion_rate",
    "cac",
    "quota_attainment",
    "clv",
    "pipeline_coverage",
    "activities_per_rep",
    "funnel",
)


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _pct(numerator, denominator) -> Decimal:
    denominator = _dec(denominator)
    if denominator == 0:
        return ZERO
    return (_dec(numerator) / denominator * 100).quantize(TWO_PLACES)


def _months_between(first: date, last: date) -> int:
    months = (last.year - first.year) * 12 + (last.month - first.month)
    if last.day < first.day:
        months -= 1
    return max(0, months)


class SalesKPIEngine:
    """Compute sales KPIs for a set of reps in one organization."""

    def __init__(self, organization_id, user_ids, territory_id=None) -> None:
        self.organization_id = organization_id
        self.user_ids = [str(user_id) for user_id in user_ids]
        self.territory_id = str(territory_id) if territory_id else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def calculate(self, kpi_type: str, period_start: date, period_end: date) -> dict:
        if kpi_type not in KPI_TYPES:
            raise ValueError(f"Unknown KPI type '{kpi_type}'.")
        return getattr(self, kpi_type)(period_start, period_end)

    def calculate_all(self, period_start: date, period_end: date) -> dict:
        return {kpi_type: self.calculate(kpi_type, period_start, period_end) for kpi_type in KPI_TYPES}

    # ------------------------------------------------------------------
    # Querysets
    # ------------------------------------------------------------------

    def _opportunities(self):
        from crm.models import Opportunity

        qs = Opportunity.objects.filter(organization_id=self.organization_id, owner_id__in=self.user_ids)
        if self.territory_id:
            qs = qs.filter(territory_id=self.territory_id)
        return qs

    def _won(self, period_start, period_end):
        from crm.models import Opportunity

        return self._opportunities().filter(
            status=Opportunity.Status.WON,
            closed_on__gte=period_start,
            closed_on__lte=period_end,
        )

    def _won_revenue(self, period_start, period_end) -> Decimal:
        total = self._won(period_start, period_end).aggregate(
            total=Coalesce(Sum("amount"), Value(ZERO))
        )["total"]
        return _dec(total)

    # ------------------------------------------------------------------
    # KPIs
    # ------------------------------------------------------------------

    def win_rate(self, period_start, period_end) -> dict:
        from crm.models import Opportunity

        stats = self._opportunities().filter(
            status__in=[Opportunity.Status.WON, Opportunity.Status.LOST],
            closed_on__gte=period_start,
            closed_on__lte=period_end,
        ).aggregate(
            total=Count("id"),
            won=Count("id", filter=Q(status=Opportunity.Status.WON)),
        )
        return {
            "win_rate": _pct(stats["won"], stats["total"]),
            "deals_won": stats["won"],
            "deals_lost": stats["total"] - stats["won"],
            "total_closed": stats["total"],
        }

    def revenue_growth(self, period_start, period_end) -> dict:
        prev_end = period_start - timedelta(days=1)
        prev_start = prev_end - (period_end - period_start)
        current = self._won_revenue(period_start, period_end)
        previous = self._won_revenue(prev_start, prev_end)
        return {
            "current_period_revenue": current,
            "previous_period_revenue": previous,
            "growth_amount": current - previous,
            "growth_percentage": _pct(current - previous, previous),
        }

    def avg_deal_size(self, period_start, period_end) -> dict:
        amounts = [_dec(a) for a in self._won(period_start, period_end).values_list("amount", flat=True)]
        if not amounts:
            return {
                "total_revenue": ZERO,
                "total_deals": 0,
                "avg_deal_size": ZERO,
                "median_deal_size": ZERO,
                "largest_deal": ZERO,
                "smallest_deal": ZERO,
            }
        total = sum(amounts, ZERO)
        return {
            "total_revenue": total,
            "total_deals": len(amounts),
            "avg_deal_size": (total / len(amounts)).quantize(TWO_PLACES),
            "median_deal_size": _dec(median(amounts)).quantize(TWO_PLACES),
            "largest_deal": max(amounts),
            "smallest_deal": min(amounts),
        }

    def sales_cycle_length(self, period_start, period_end) -> dict:
        """Average days from creation to close for deals won in the period."""
        rows = self._won(period_start, period_end).values_list("created_at", "closed_on")
        durations = [max(0, (closed_on - created_at.date()).days) for created_at, closed_on in rows]
        total_days = sum(durations)
        return {
            "total_days": total_days,
            "total_deals": len(durations),
            "avg_cycle_days": (
                (Decimal(total_days) / len(durations)).quantize(TWO_PLACES) if durations else ZERO
            ),
        }

    def lead_conversion_rate(self, period_start, period_end) -> dict:
        from crm.models import Lead

        stats = Lead.objects.filter(
            organization_id=self.organization_id,
            owner_id__in=self.user_ids,
            created_at__date__gte=period_start,
            created_at__date__lte=period_end,
        ).aggregate(
            total=Count("id"),
            converted=Count("id", filter=Q(status=Lead.Status.CONVERTED)),
        )
        return {
            "total_leads": stats["total"],
            "converted_leads": stats["converted"],
            "conversion_rate": _pct(stats["converted"], stats["total"]),
        }

    def cac(self, period_start, period_end) -> dict:
        """Customer acquisition cost per deal won in the period."""
        stats = self._won(period_start, period_end).aggregate(
            revenue=Coalesce(Sum("amount"), Value(ZERO)),
            won=Count("id"),
        )
        total_cost = (_dec(stats["revenue"]) * ACQUISITION_COST_RATE).quantize(TWO_PLACES)
        new_customers = stats["won"]
        return {
            "total_cost": total_cost,
            "new_customers": new_customers,
            "cac": (total_cost / new_customers).quantize(TWO_PLACES) if new_customers else ZERO,
        }

    def _target(self, period_start, period_end) -> Decimal:
        from performance.models import SalesTarget

        targets = SalesTarget.objects.filter(
            organization_id=self.organization_id,
            user_id__in=self.user_ids,
            period_start__lte=period_end,
            period_end__gte=period_start,
        )
        if self.territory_id:
            targets = targets.filter(territory_id=self.territory_id)
        total = targets.aggregate(total=Coalesce(Sum("target_value"), Value(ZERO)))["total"]
        return _dec(total)

    def quota_attainment(self, period_start, period_end) -> dict:
        """Won revenue against the targets overlapping the period.

        Without any target the attainment is 0 and the period is not on track.
        """
        actual = self._won_revenue(period_start, period_end)
        target = self._target(period_start, period_end)
        attainment = _pct(actual, target)
        return {
            "actual_value": actual,
            "target_value": target,
            "variance": actual - target,
            "attainment_percentage": attainment,
            "on_track": target > 0 and attainment >= ON_TRACK_PCT,
        }

    def clv(self, period_start, period_end) -> dict:
        """Customer lifetime value from the deals won in the period.

        Average deal value x deals per company x lifespan in years, where the
        lifespan is the mean number of whole months between a repeat
        company's first and last win. Deals without a company only count
        towards the average deal value.
        """
        rows = list(self._won(period_start, period_end).values_list("company_id", "amount", "closed_on"))
        amounts = [_dec(amount) for _, amount, _ in rows]
        avg_purchase = (sum(amounts, ZERO) / len(amounts)).quantize(TWO_PLACES) if amounts else ZERO

        closes_by_company = defaultdict(list)
        for company_id, _, closed_on in rows:
            if company_id is not None:
                closes_by_company[company_id].append(closed_on)
        purchases = sum(len(closes) for closes in closes_by_company.values())
        frequency = (
            (Decimal(purchases) / len(closes_by_company)).quantize(TWO_PLACES) if closes_by_company else ZERO
        )
        spans = [
            _months_between(min(closes), max(closes))
            for closes in closes_by_company.values()
            if len(closes) > 1
        ]
        lifespan = (Decimal(sum(spans)) / len(spans)).quantize(TWO_PLACES) if spans else ZERO

        return {
            "avg_purchase_value": avg_purchase,
            "purchase_frequency": frequency,
            "customer_lifespan_months": lifespan,
            "clv": (avg_purchase * frequency * lifespan / 12).quantize(TWO_PLACES),
        }

    def pipeline_coverage(self, period_start, period_end) -> dict:
        """Open pipeline expected to close in the period over the target."""
        from crm.models import Opportunity

        pipeline = _dec(
            self._opportunities().filter(
                status=Opportunity.Status.OPEN,
                expected_close_date__gte=period_start,
                expected_close_date__lte=period_end,
            ).aggregate(total=Coalesce(Sum("amount"), Value(ZERO)))["total"]
        )
        target = self._target(period_start, period_end)
        coverage = (pipeline / target).quantize(TWO_PLACES) if target > 0 else ZERO
        return {
            "pipeline_value": pipeline,
            "target_value": target,
            "coverage_ratio": coverage,
        }

    def activities_per_rep(self, period_start, period_end) -> dict:
        from crm.models import Activity

        rows = (
            Activity.objects.filter(
                organization_id=self.organization_id,
                actor_id__in=self.user_ids,
                occurred_at__date__gte=period_start,
                occurred_at__date__lte=period_end,
            )
            .values("type")
            .annotate(n=Count("id"))
        )
        by_type = {row["type"]: row["n"] for row in rows}
        total = sum(by_type.values())
        reps = len(self.user_ids)
        return {
            "total_activities": total,
            "rep_count": reps,
            "activities_per_rep": (Decimal(total) / reps).quantize(TWO_PLACES) if reps else ZERO,
            "by_type": by_type,
        }

    def funnel(self, period_start, period_end) -> dict:
        """Open opportunities per PEAK stage."""
        from crm.models import Opportunity

        rows = (
            self._opportunities()
            .filter(status=Opportunity.Status.OPEN)
            .values("peak_stage")
            .annotate(count=Count("id"), value=Coalesce(Sum("amount"), Value(ZERO)))
        )
        by_stage = {row["peak_stage"]: row for row in rows}
        breakdown = []
        for stage, label in Opportunity.PeakStage.choices:
            row = by_stage.get(stage, {})
            breakdown.append({
                "stage": stage,
                "label": label,
                "count": row.get("count", 0),
                "value": _dec(row.get("value")),
            })
        return {
            "number_of_opportunities": sum(item["count"] for item in breakdown),
            "total_value": sum((item["value"] for item in breakdown), ZERO),
            "breakdown": breakdown,
        }
