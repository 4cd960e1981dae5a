"""Models for the CRM module: accounts, leads, opportunities and activities."""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.models import TimeStampedModel


class Company(TimeStampedModel):
    """Customer account (hospital group, clinic, distributor...)."""

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="companies",
    )
    name = models.CharField(max_length=255)
    industry = models.CharField(max_length=100, blank=True, default="")
    website = models.URLField(blank=True, default="")
    territory = models.ForeignKey(
        "organizations.Territory",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="companies",
    )

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "companies"
        indexes = [
            models.Index(fields=["organization", "name"]),
        ]

    def __str__(self):
        return self.name


class Contact(TimeStampedModel):
    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="contacts",
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="contacts",
    )
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    title = models.CharField(max_length=150, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=40, blank=True, default="")

    class Meta:
        ordering = ["last_name", "first_name"]

    def __str__(self):
        return f"{self.first_name} {self.last_name}".strip()


class Lead(TimeStampedModel):
    """Unqualified demand; converted leads spawn an opportunity."""

    class Status(models.TextChoices):
        NEW = "NEW", "New"
        QUALIFIED = "QUALIFIED", "Qualified"
        CONVERTED = "CONVERTED", "Converted"
        DISQUALIFIED = "DISQUALIFIED", "Disqualified"

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="leads",
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="leads_owned",
    )
    company_name = models.CharField(max_length=255)
    contact_name = models.CharField(max_length=255, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    source = models.CharField(max_length=100, blank=True, default="")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.NEW, db_index=True)
    score = models.PositiveSmallIntegerField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    converted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["organization", "status", "owner"]),
        ]

    def __str__(self):
        return self.company_name


class Opportunity(TimeStampedModel):
    """Deal in the pipeline, qualified with MEDDPICC and staged with PEAK."""

    class Status(models.TextChoices):
        OPEN = "OPEN", "Open"
        WON = "WON", "Won"
        LOST = "LOST", "Lost"

    class PeakStage(models.TextChoices):
        PROSPECTING = "prospecting", "Prospecting"
        ENGAGING = "engaging", "Engaging"
        ADVANCING = "advancing", "Advancing"
        KEY_DECISION = "key_decision", "Key Decision"

    # Pillar id used by the scoring configuration -> model field.
    PILLAR_FIELDS = {
        "metrics": "metrics",
        "economicBuyer": "economic_buyer",
        "decisionCriteria": "decision_criteria",
        "decisionProcess": "decision_process",
        "paperProcess": "paper_process",
        "identifyPain": "identify_pain",
        "implicatePain": "implicate_pain",
        "champion": "champion",
        "competition": "competition",
    }

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="opportunities",
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="opportunities_owned",
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="opportunities",
    )
    contact = models.ForeignKey(
        Contact,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="opportunities",
    )
    lead = models.ForeignKey(
        Lead,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="opportunities",
    )
    territory = models.ForeignKey(
        "organizations.Territory",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="opportunities",
    )
    name = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    probability_pct = models.PositiveSmallIntegerField(
        default=10,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.OPEN, db_index=True)
    peak_stage = models.CharField(
        max_length=20,
        choices=PeakStage.choices,
        default=PeakStage.PROSPECTING,
        db_index=True,
    )
    expected_close_date = models.DateField(null=True, blank=True, db_index=True)
    closed_on = models.DateField(null=True, blank=True, db_index=True)

    # MEDDPICC pillars (free text)
    metrics = models.TextField(blank=True, default="")
    economic_buyer = models.TextField(blank=True, default="")
    decision_criteria = models.TextField(blank=True, default="")
    decision_process = models.TextField(blank=True, default="")
    paper_process = models.TextField(blank=True, default="")
    identify_pain = models.TextField(blank=True, default="")
    implicate_pain = models.TextField(blank=True, default="")
    champion = models.TextField(blank=True, default="")
    competition = models.TextField(blank=True, default="")

    meddpicc_score = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MaxValueValidator(100)],
        help_text="Last computed overall MEDDPICC score.",
    )

    class Meta:
        ordering = ["-updated_at"]
        verbose_name_plural = "opportunities"
        indexes = [
            models.Index(fields=["organization", "status", "owner"]),
            models.Index(fields=["organization", "peak_stage"]),
            models.Index(fields=["organization", "closed_on"]),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        for attr in ("company", "contact", "lead", "territory"):
            related = getattr(self, attr)
            if related is not None and related.organization_id != self.organization_id:
                raise ValidationError({attr: f"{attr.capitalize()} must belong to the same organization."})
        if self.status != self.Status.OPEN and self.closed_on is None:
            raise ValidationError({"closed_on": "Closed opportunities need a close date."})

    def pillar_texts(self) -> dict[str, str]:
        return {pillar_id: getattr(self, field) or "" for pillar_id, field in self.PILLAR_FIELDS.items()}


class OpportunityStageHistory(TimeStampedModel):
    """Immutable PEAK stage transition log for opportunities."""

    opportunity = models.ForeignKey(
        Opportunity,
        on_delete=models.CASCADE,
        related_name="stage_history",
    )
    from_stage = models.CharField(max_length=20, choices=Opportunity.PeakStage.choices)
    to_stage = models.CharField(max_length=20, choices=Opportunity.PeakStage.choices)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stage_changes",
    )
    reason = models.CharField(max_length=255, blank=True, default="")
    details = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "opportunity stage history"
        indexes = [
            models.Index(fields=["opportunity", "created_at"]),
        ]


class Activity(TimeStampedModel):
    """Sales activity log (call, meeting, email, note)."""

    class Type(models.TextChoices):
        CALL = "CALL", "Call"
        MEETING = "MEETING", "Meeting"
        EMAIL = "EMAIL", "Email"
        NOTE = "NOTE", "Note"

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="activities",
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="activities_logged",
    )
    lead = models.ForeignKey(
        Lead,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activities",
    )
    opportunity = models.ForeignKey(
        Opportunity,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activities",
    )
    type = models.CharField(max_length=20, choices=Type.choices)
    subject = models.CharField(max_length=255)
    notes = models.TextField(blank=True, default="")
    occurred_at = models.DateTimeField(db_index=True)

    class Meta:
        ordering = ["-occurred_at"]
        verbose_name_plural = "activities"
        indexes = [
            models.Index(fields=["organization", "actor", "occurred_at"]),
        ]

    def clean(self):
        if not self.lead_id and not self.opportunity_id:
            raise ValidationError("Activity must be linked to a lead or an opportunity.")
        if self.opportunity_id and self.opportunity.organization_id != self.organization_id:
            raise ValidationError({"opportunity": "Opportunity must belong to the same organization."})
