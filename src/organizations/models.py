"""Tenancy models: organizations, memberships and territories."""
from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


class Organization(TimeStampedModel):
    """Tenant root. Every business row hangs off exactly one organization."""

    name = models.CharField("name", max_length=255)
    code = models.CharField("code", max_length=50, unique=True)
    industry = models.CharField("industry", max_length=100, blank=True, default="")
    currency = models.CharField("currency", max_length=10, default="USD")
    is_active = models.BooleanField("active", default=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "organization"
        verbose_name_plural = "organizations"

    def __str__(self):
        return f"{self.name} ({self.code})"


class OrganizationMember(TimeStampedModel):
    """Link between a user and an organization.

    ``manager`` is the member's reporting line inside the organization and
    drives the roll-up views of the sales KPIs.
    """

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="members",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="managed_memberships",
    )
    territory = models.ForeignKey(
        "organizations.Territory",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="members",
    )
    is_default = models.BooleanField("default organization", default=False)

    class Meta:
        verbose_name = "organization member"
        verbose_name_plural = "organization members"
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "user"],
                name="uniq_organization_member",
            ),
        ]

    def __str__(self):
        return f"{self.user} @ {self.organization.code}"

    def save(self, *args, **kwargs):
        # Only one default organization per user.
        if self.is_default:
            (
                OrganizationMember.objects
                .filter(user_id=self.user_id, is_default=True)
                .exclude(pk=self.pk)
                .update(is_default=False)
            )
        super().save(*args, **kwargs)


class Territory(TimeStampedModel):
    """Sales territory inside an organization."""

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="territories",
    )
    name = models.CharField("name", max_length=150)
    code = models.CharField("code", max_length=50)
    region = models.CharField("region", max_length=150, blank=True, default="")
    is_active = models.BooleanField("active", default=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "territory"
        verbose_name_plural = "territories"
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "code"],
                name="uniq_territory_code",
            ),
        ]

    def __str__(self):
        return self.name
