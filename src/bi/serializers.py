"""DRF serializers for the pharma BI module."""
from rest_framework import serializers

from bi.engine import KPIEngine
from bi.models import KPIDefinition


class BIKPIQuerySerializer(serializers.Serializer):
    product = serializers.UUIDField(required=False)
    territory = serializers.UUIDField(required=False)
    rep = serializers.UUIDField(required=False)
    period_start = serializers.DateField(required=False)
    period_end = serializers.DateField(required=False)
    kpi = serializers.CharField(required=False, allow_blank=True, default="all")
    force_recalculate = serializers.BooleanField(required=False, default=False)

    def validate_kpi(self, value):
        """Return the requested KPI codes, or ``None`` for all of them."""
        if not value or value == "all":
            return None
        codes = [code.strip() for code in value.split(",") if code.strip()]
        unknown = [code for code in codes if code not in KPIEngine.KPIS]
        if unknown:
            raise serializers.ValidationError(f"Unknown KPI: {', '.join(unknown)}.")
        return codes

    def validate(self, attrs):
        start, end = attrs.get("period_start"), attrs.get("period_end")
        if start and end and end < start:
            raise serializers.ValidationError({"period_end": "Period end must not precede period start."})
        return attrs



class KPIResultSerializer(serializers.Serializer):
    kpi_id = serializers.CharField()
    kpi_name = serializers.CharField()
    value = serializers.DecimalField(max_digits=18, decimal_places=4)
    confidence = serializers.DecimalField(max_digits=4, decimal_places=2)
    calculated_at = serializers.DateTimeField()
    metadata = serializers.JSONField()
    source = serializers.CharField()


class KPIDefinitionSerializer(serializers.ModelSerializer):
    owner = serializers.CharField(source="owner.email", read_only=True, default=None)

    class Meta:
        model = KPIDefinition
        fields = [
            "id", "code", "name", "definition", "formula", "grain", "dimensions",
            "thresholds", "owner", "is_active", "created_at", "updated_at",
        ]
        read_only_fields = ["id", "owner", "created_at", "updated_at"]

    def validate_code(self, value):
        organization = self.context.get("organization")
        qs = KPIDefinition.objects.filter(organization=organization, code=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if organization is not None and qs.exists():
            raise serializers.ValidationError("A KPI with this code already exists.")
        return value

    def _validate_string_list(self, value, label):
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise serializers.ValidationError(f"{label} must be a list of strings.")
        return value

    def validate_grain(self, value):
        return self._validate_string_list(value, "Grain")

    def validate_dimensions(self, value):
        return self._validate_string_list(value, "Dimensions")

    def validate_thresholds(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Thresholds must be an object.")
        return value
