"""Leaderboard computation engine."""
from __future__ import annotations

import logging
from calendar import monthrange
from datetime import date, timedelta
from decimal import Decimal

from django.db.models import Count, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

logger = logging.getLogger(__name__)


def month_bounds(period: str) -> tuple[date, date]:
    """``"YYYY-MM"`` -> first and last day of that month."""
    year, month = int(period[:4]), int(period[5:7])
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def current_period() -> str:
    today = timezone.localdate()
    return f"{today.year}-{today.month:02d}"


class LeaderboardEngine:
    """Build and cache the won-revenue ranking of an organization's reps."""

    def __init__(self, organization_id) -> None:
        self.organization_id = organization_id

    def compute_snapshot(self, period: str):
        """Rank reps by won revenue for ``period``, detect rank changes, persist."""
        from accounts.models import User
        from crm.models import Opportunity
        from performance.models import LeaderboardSnapshot

        period_start, period_end = month_bounds(period)
        won = Q(
            opportunities_owned__organization_id=self.organization_id,
            opportunities_owned__status=Opportunity.Status.WON,
            opportunities_owned__closed_on__gte=period_start,
            opportunities_owned__closed_on__lte=period_end,
        )
        reps = (
            User.objects.filter(
                memberships__organization_id=self.organization_id,
                role=User.Role.SALES,
                is_active=True,
            )
            .annotate(
                won_revenue=Coalesce(Sum("opportunities_owned__amount", filter=won), Value(Decimal("0.00"))),
                deals_won=Count("opportunities_owned", filter=won),
            )
            .order_by("-won_revenue", "-deals_won", "email")
        )

        entries = []
        for rank, rep in enumerate(reps, start=1):
            entries.append(
                {
                    "rank": rank,
                    "user_id": str(rep.pk),
                    "name": rep.get_full_name() or rep.email,
                    "won_revenue": str(rep.won_revenue),
                    "deals_won": rep.deals_won,
                }
            )

        previous = LeaderboardSnapshot.objects.filter(
            organization_id=self.organization_id,
            period=period,
        ).first()
        previous_ranks = {e["user_id"]: e["rank"] for e in (previous.data if previous else [])}
        for entry in entries:
            previous_rank = previous_ranks.get(entry["user_id"])
            # Positive means the rep moved up.
            entry["rank_change"] = previous_rank - entry["rank"] if previous_rank is not None else 0

        snapshot, _ = LeaderboardSnapshot.objects.update_or_create(
            organization_id=self.organization_id,
            period=period,
            defaults={"data": entries},
        )
        logger.info(
            "Leaderboard computed org=%s period=%s (%d reps)",
            self.organization_id,
            period,
            len(entries),
        )
        return snapshot

    def get_cached_snapshot(self, period: str, max_age_minutes: int = 60):
        """Return snapshot if fresh enough, else None (caller should recompute)."""
        from performance.models import LeaderboardSnapshot

        threshold = timezone.now() - timedelta(minutes=max_age_minutes)
        return LeaderboardSnapshot.objects.filter(
            organization_id=self.organization_id,
            period=period,
            computed_at__gte=threshold,
        ).first()
