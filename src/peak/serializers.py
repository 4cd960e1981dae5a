from rest_framework import serializers

from crm.models import Opportunity, OpportunityStageHistory


class StageTransitionSerializer(serializers.Serializer):
    opportunity = serializers.UUIDField()
    to_stage = serializers.ChoiceField(choices=Opportunity.PeakStage.choices)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class StageHistorySerializer(serializers.ModelSerializer):
    opportunity = serializers.UUIDField(source="opportunity_id", read_only=True)
    changed_by = serializers.CharField(source="changed_by.email", read_only=True, default=None)

    class Meta:
        model = OpportunityStageHistory
        fields = ["id", "opportunity", "from_stage", "to_stage", "changed_by", "reason", "details", "created_at"]
        read_only_fields = fields
