"""Models for pharmaceutical BI: field data and KPI definitions/values."""
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from core.models import TimeStampedModel


class Product(TimeStampedModel):
    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="products",
    )
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50)
    therapeutic_area = models.CharField(max_length=120, blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "code"],
                name="uniq_product_code_per_org",
            ),
        ]

    def __str__(self):
        return self.name


class HealthcareProvider(TimeStampedModel):
    """Prescriber (HCP). Key opinion leaders are flagged with ``is_kol``."""

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="healthcare_providers",
    )
    npi = models.CharField("NPI", max_length=20, blank=True, default="")
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    specialty = models.CharField(max_length=120, blank=True, default="")
    territory = models.ForeignKey(
        "organizations.Territory",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="healthcare_providers",
    )
    is_kol = models.BooleanField("key opinion leader", default=False, db_index=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["last_name", "first_name"]
        indexes = [
            models.Index(fields=["organization", "territory", "is_active"]),
        ]

    def __str__(self):
        return f"{self.first_name} {self.last_name}".strip()


class PrescriptionEvent(TimeStampedModel):
    class PrescriptionType(models.TextChoices):
        NEW = "new", "New"
        REFILL = "refill", "Refill"

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="prescription_events",
    )
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="prescriptions")
    hcp = models.ForeignKey(HealthcareProvider, on_delete=models.CASCADE, related_name="prescriptions")
    territory = models.ForeignKey(
        "organizations.Territory",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="prescriptions",
    )
    prescription_date = models.DateField(db_index=True)
    prescription_type = models.CharField(max_length=10, choices=PrescriptionType.choices)
    volume = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("1.00"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    payer = models.CharField(max_length=120, blank=True, default="")
    channel = models.CharField(max_length=60, blank=True, default="")

    class Meta:
        ordering = ["-prescription_date"]
        indexes = [
            models.Index(fields=["organization", "prescription_date"]),
            models.Index(fields=["organization", "product", "prescription_date"]),
        ]


class CallActivity(TimeStampedModel):
    """Rep visit to an HCP."""

    class CallType(models.TextChoices):
        IN_PERSON = "in_person", "In person"
        VIRTUAL = "virtual", "Virtual"
        PHONE = "phone", "Phone"
        EMAIL = "email", "Email"

    class Outcome(models.TextChoices):
        SUCCESSFUL = "successful", "Successful"
        FOLLOW_UP = "follow_up", "Follow-up needed"
        NO_INTEREST = "no_interest", "No interest"
        NOT_REACHED = "not_reached", "Not reached"

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="call_activities",
    )
    rep = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="call_activities",
    )
    hcp = models.ForeignKey(HealthcareProvider, on_delete=models.CASCADE, related_name="calls")
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="calls",
    )
    territory = models.ForeignKey(
        "organizations.Territory",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="calls",
    )
    call_date = models.DateTimeField(db_index=True)
    call_type = models.CharField(max_length=20, choices=CallType.choices, default=CallType.IN_PERSON)
    outcome = models.CharField(max_length=20, choices=Outcome.choices, blank=True, default="")
    samples_distributed = models.PositiveIntegerField(default=0)
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-call_date"]
        verbose_name_plural = "call activities"
        indexes = [
            models.Index(fields=["organization", "call_date"]),
            models.Index(fields=["organization", "rep", "call_date"]),
        ]


class SampleDistribution(TimeStampedModel):
    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="sample_distributions",
    )
    rep = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="sample_distributions",
    )
    hcp = models.ForeignKey(HealthcareProvider, on_delete=models.CASCADE, related_name="samples")
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="samples")
    territory = models.ForeignKey(
        "organizations.Territory",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="samples",
    )
    distribution_date = models.DateField(db_index=True)
    quantity = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-distribution_date"]


class FormularyAccess(TimeStampedModel):
    """Payer coverage of a product over an effective window."""

    class CoverageLevel(models.TextChoices):
        PREFERRED = "preferred", "Preferred"
        STANDARD = "standard", "Standard"
        NON_PREFERRED = "non_preferred", "Non-preferred"
        NOT_COVERED = "not_covered", "Not covered"

    FAVORABLE_LEVELS = (CoverageLevel.PREFERRED, CoverageLevel.STANDARD)

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="formulary_access",
    )
    payer = models.CharField(max_length=120)
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="formulary_access")
    territory = models.ForeignKey(
        "organizations.Territory",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="formulary_access",
    )
    coverage_level = models.CharField(max_length=20, choices=CoverageLevel.choices)
    effective_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)

    class Meta:
        ordering = ["payer"]
        verbose_name_plural = "formulary access"

    def clean(self):
        if self.end_date and self.end_date < self.effective_date:
            raise ValidationError({"end_date": "End date must not precede the effective date."})


class KPIDefinition(TimeStampedModel):
    """Named KPI formula with its grain, dimensions and alert thresholds."""

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="kpi_definitions",
    )
    code = models.SlugField(max_length=60)
    name = models.CharField(max_length=150)
    definition = models.TextField(blank=True, default="")
    formula = models.TextField(blank=True, default="")
    grain = models.JSONField(default=list, blank=True)
    dimensions = models.JSONField(default=list, blank=True)
    thresholds = models.JSONField(default=dict, blank=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="kpi_definitions",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "code"],
                name="uniq_kpi_code_per_org",
            ),
        ]

    def __str__(self):
        return self.name


class KPICalculatedValue(TimeStampedModel):
    """Precomputed KPI value for one organization, window and filter set."""

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="kpi_values",
    )
    kpi_code = models.CharField(max_length=60, db_index=True)
    calculation_date = models.DateField(db_index=True)
    period_start = models.DateField()
    period_end = models.DateField()
    # Canonical JSON of the product/territory/rep filters.
    filters_key = models.CharField(max_length=255, default="{}")
    filters = models.JSONField(default=dict, blank=True)
    value = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    confidence = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal("1.00"))
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-calculation_date", "kpi_code"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "kpi_code", "calculation_date", "period_start", "period_end", "filters_key"],
                name="uniq_kpi_calculated_value",
            ),
        ]

    def clean(self):
        if self.period_end < self.period_start:
            raise ValidationError({"period_end": "Period end must not precede period start."})

    def __str__(self):
        return f"{self.kpi_code} {self.period_start}..{self.period_end} = {self.value}"
