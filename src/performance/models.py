"""Models for the sales performance module."""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from core.models import TimeStampedModel


class SalesTarget(TimeStampedModel):
    """Revenue target of one rep over a closed date interval."""

    class PeriodType(models.TextChoices):
        WEEKLY = "weekly", "Weekly"
        MONTHLY = "monthly", "Monthly"
        QUARTERLY = "quarterly", "Quarterly"
        ANNUALLY = "annually", "Annually"

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="sales_targets",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sales_targets",
    )
    territory = models.ForeignKey(
        "organizations.Territory",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sales_targets",
    )
    period_type = models.CharField(max_length=10, choices=PeriodType.choices, default=PeriodType.MONTHLY)
    period_start = models.DateField()
    period_end = models.DateField()
    target_value = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    notes = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["-period_start"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "user", "period_type", "period_start"],
                name="uniq_sales_target_period",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user} {self.period_type} {self.period_start}: {self.target_value}"

    def clean(self) -> None:
        if self.period_end < self.period_start:
            raise ValidationError("Period end must not precede period start.")


class LeaderboardSnapshot(TimeStampedModel):
    """Cached leaderboard ranking for an organization and month."""

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="leaderboard_snapshots",
    )
    period = models.CharField("period (YYYY-MM)", max_length=7)
    data = models.JSONField(default=list)
    computed_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-period"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "period"],
                name="uniq_leaderboard_snapshot",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.organization} {self.period}"
