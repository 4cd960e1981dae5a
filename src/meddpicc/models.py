"""Per-organization MEDDPICC configuration with version history."""
from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


class MEDDPICCConfiguration(TimeStampedModel):
    """Versioned scoring configuration. Saving a change creates a new version."""

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="meddpicc_configurations",
    )
    name = models.CharField(max_length=150, default="MEDDPICC")
    description = models.TextField(blank=True, default="")
    version = models.PositiveIntegerField(default=1)
    is_active = models.BooleanField(default=True, db_index=True)
    config = models.JSONField(default=dict)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="meddpicc_configurations_created",
    )

    class Meta:
        ordering = ["-version"]
        verbose_name = "MEDDPICC configuration"
        verbose_name_plural = "MEDDPICC configurations"
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "version"],
                name="uniq_meddpicc_config_version",
            ),
            models.UniqueConstraint(
                fields=["organization"],
                condition=models.Q(is_active=True),
                name="uniq_active_meddpicc_config",
            ),
        ]

    def __str__(self):
        return f"{self.name} v{self.version} ({self.organization_id})"


class MEDDPICCConfigurationHistory(TimeStampedModel):
    """Audit trail of configuration changes."""

    class Action(models.TextChoices):
        CREATE = "CREATE", "Create"
        UPDATE = "UPDATE", "Update"
        ACTIVATE = "ACTIVATE", "Activate"
        DEACTIVATE = "DEACTIVATE", "Deactivate"

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="meddpicc_configuration_history",
    )
    configuration = models.ForeignKey(
        MEDDPICCConfiguration,
        on_delete=models.CASCADE,
        related_name="history",
    )
    action = models.CharField(max_length=20, choices=Action.choices)
    previous_config = models.JSONField(null=True, blank=True)
    new_config = models.JSONField(null=True, blank=True)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="meddpicc_configuration_changes",
    )
    reason = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "MEDDPICC configuration change"
        verbose_name_plural = "MEDDPICC configuration history"
