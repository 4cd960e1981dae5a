from rest_framework import serializers

from performance.engine import KPI_TYPES
from performance.models import LeaderboardSnapshot


class SalesKPIQuerySerializer(serializers.Serializer):
    user = serializers.UUIDField(required=False)
    territory = serializers.UUIDField(required=False)
    period_start = serializers.DateField(required=False)
    period_end = serializers.DateField(required=False)
    kpi_type = serializers.ChoiceField(choices=[*KPI_TYPES, "all"], required=False, default="all")
    rollup = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        start, end = attrs.get("period_start"), attrs.get("period_end")
        if start and end and end < start:
            raise serializers.ValidationError({"period_end": "Period end must not precede period start."})
        return attrs


class LeaderboardSnapshotSerializer(serializers.ModelSerializer):
    entries = serializers.JSONField(source="data", read_only=True)

    class Meta:
        model = LeaderboardSnapshot
        fields = ["period", "entries", "computed_at"]
        read_only_fields = fields
