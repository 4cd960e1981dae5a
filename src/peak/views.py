"""API view for PEAK stage transitions."""
from __future__ import annotations

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from crm.services import get_opportunity_for_user
from organizations.services import resolve_organization
from peak.serializers import StageHistorySerializer, StageTransitionSerializer
from peak.services import PEAKTransitionError, transition_opportunity


class PEAKTransitionView(APIView):
    """
    POST /api/v1/peak/transition/
    Body: {"opportunity": "<uuid>", "to_stage": "engaging", "reason": "..."}
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        organization = resolve_organization(request)
        if organization is None:
            return Response({"detail": "Organization not found.", "code": "not_found"},
                            status=status.HTTP_404_NOT_FOUND)

        serializer = StageTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        opportunity = get_opportunity_for_user(request.user, organization, data["opportunity"])
        try:
            history = transition_opportunity(
                opportunity,
                data["to_stage"],
                user=request.user,
                reason=data["reason"],
            )
        except PEAKTransitionError as exc:
            return Response(
                {"detail": exc.message, "code": "transition_rejected", "unmet_criteria": exc.unmet_criteria},
                status=status.HTTP_400_BAD_REQUEST,
            )

        return Response(StageHistorySerializer(history).data, status=status.HTTP_201_CREATED)
