"""DRF serializers for the MEDDPICC module."""
from __future__ import annotations

from rest_framework import serializers

from crm.models import Opportunity
from meddpicc.config import validate_config
from meddpicc.models import MEDDPICCConfiguration, MEDDPICCConfigurationHistory

PILLAR_TEXT_MAX_LENGTH = 5000


class PillarUpdateSerializer(serializers.Serializer):
    """Partial update of the nine pillar texts of an opportunity."""

    def get_fields(self):
        return {
            field: serializers.CharField(
                required=False,
                allow_blank=True,
                max_length=PILLAR_TEXT_MAX_LENGTH,
                trim_whitespace=True,
            )
            for field in Opportunity.PILLAR_FIELDS.values()
        }

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide at least one MEDDPICC pillar.")
        return attrs

    def update(self, instance, validated_data):
        for field, value in validated_data.items():
            setattr(instance, field, value)
        instance.save(update_fields=[*validated_data.keys(), "updated_at"])
        return instance


class MEDDPICCConfigurationSerializer(serializers.ModelSerializer):
    created_by = serializers.CharField(source="created_by.email", read_only=True, default=None)

    class Meta:
        model = MEDDPICCConfiguration
        fields = [
            "id", "name", "description", "version", "is_active",
            "config", "created_by", "created_at",
        ]
        read_only_fields = fields


class MEDDPICCConfigurationWriteSerializer(serializers.Serializer):
    """Used for save/import: the document is validated before a version is created."""

    config = serializers.JSONField()
    name = serializers.CharField(max_length=150, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    def validate_config(self, value):
        report = validate_config(value)
        if not report["is_valid"]:
            raise serializers.ValidationError(report["errors"])
        self.context["warnings"] = report["warnings"]
        return value


class MEDDPICCConfigurationHistorySerializer(serializers.ModelSerializer):
    changed_by = serializers.CharField(source="changed_by.email", read_only=True, default=None)
    version = serializers.IntegerField(source="configuration.version", read_only=True)

    class Meta:
        model = MEDDPICCConfigurationHistory
        fields = [
            "id", "action", "version", "previous_config", "new_config",
            "changed_by", "reason", "created_at",
        ]
        read_only_fields = fields
