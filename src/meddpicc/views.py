"""API views for MEDDPICC assessments and configuration."""
from __future__ import annotations

import logging

from rest_framework import permissions, status
from rest_framework.generics import ListAPIView
from rest_framework.response import Response
from rest_framework.views import APIView

from api.throttling import SafeScopedRateThrottle
from api.v1.pagination import StandardResultsSetPagination
from api.v1.permissions import IsManagerOrAdmin
from crm.services import get_opportunity_for_user
from meddpicc.config import get_default_config, validate_config
from meddpicc.serializers import (
    MEDDPICCConfigurationHistorySerializer,
    MEDDPICCConfigurationSerializer,
    MEDDPICCConfigurationWriteSerializer,
    PillarUpdateSerializer,
)
from meddpicc.services import ConfigurationService, MEDDPICCScoringService
from organizations.services import resolve_organization

logger = logging.getLogger(__name__)

ORGANIZATION_NOT_FOUND = {"detail": "Organization not found.", "code": "not_found"}


class OpportunityMEDDPICCView(APIView):
    """
    GET   /api/v1/opportunities/<id>/meddpicc/  -> cached assessment
    PATCH /api/v1/opportunities/<id>/meddpicc/  -> update pillar texts, persist score
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        organization = resolve_organization(request)
        if organization is None:
            return Response(ORGANIZATION_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        opportunity = get_opportunity_for_user(request.user, organization, pk)

        service = MEDDPICCScoringService(organization)
        return Response(service.get_opportunity_score(opportunity))

    def patch(self, request, pk):
        organization = resolve_organization(request)
        if organization is None:
            return Response(ORGANIZATION_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        opportunity = get_opportunity_for_user(request.user, organization, pk)

        serializer = PillarUpdateSerializer(opportunity, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()

        service = MEDDPICCScoringService(organization)
        return Response(service.update_opportunity_score(opportunity))


class MEDDPICCRecalculateView(APIView):
    """POST /api/v1/meddpicc/recalculate/ -> recompute every score of the tenant."""
    permission_classes = [permissions.IsAuthenticated, IsManagerOrAdmin]
    throttle_classes = [SafeScopedRateThrottle]
    throttle_scope = "meddpicc_recalculate"

    def post(self, request):
        organization = resolve_organization(request)
        if organization is None:
            return Response(ORGANIZATION_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        from meddpicc.tasks import recalculate_organization_scores

        try:
            task = recalculate_organization_scores.delay(organization_id=str(organization.pk))
        except Exception as exc:
            # Broker unavailable: do the work inline rather than failing the request.
            logger.warning("MEDDPICC recalculation dispatch failed, running inline: %s", exc)
            changed = MEDDPICCScoringService(organization).recalculate_organization()
            return Response({"detail": "Scores recalculated.", "changed": changed})

        return Response(
            {"detail": "Recalculation queued.", "task_id": task.id},
            status=status.HTTP_202_ACCEPTED,
        )


class MEDDPICCConfigView(APIView):
    """
    GET /api/v1/admin/meddpicc-config/  -> active configuration (or the default)
    PUT /api/v1/admin/meddpicc-config/  -> store a new active version
    """
    permission_classes = [permissions.IsAuthenticated, IsManagerOrAdmin]

    def get(self, request):
        organization = resolve_organization(request)
        if organization is None:
            return Response(ORGANIZATION_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        active = ConfigurationService(organization).get_active()
        if active is None:
            return Response({
                "id": None,
                "name": "MEDDPICC",
                "description": "Built-in default configuration",
                "version": 0,
                "is_active": True,
                "config": get_default_config(),
                "created_by": None,
                "created_at": None,
            })
        return Response(MEDDPICCConfigurationSerializer(active).data)

    def put(self, request):
        organization = resolve_organization(request)
        if organization is None:
            return Response(ORGANIZATION_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        serializer = MEDDPICCConfigurationWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        created = ConfigurationService(organization).save(
            data["config"],
            user=request.user,
            reason=data.get("reason", ""),
            name=data.get("name"),
            description=data.get("description"),
        )
        payload = MEDDPICCConfigurationSerializer(created).data
        payload["warnings"] = serializer.context.get("warnings", [])
        return Response(payload, status=status.HTTP_201_CREATED)


class MEDDPICCConfigValidateView(APIView):
    """POST /api/v1/admin/meddpicc-config/validate/ -> errors and warnings, nothing saved."""
    permission_classes = [permissions.IsAuthenticated, IsManagerOrAdmin]

    def post(self, request):
        config = request.data.get("config", request.data)
        return Response(validate_config(config))


class MEDDPICCConfigResetView(APIView):
    """POST /api/v1/admin/meddpicc-config/reset/ -> activate the built-in default."""
    permission_classes = [permissions.IsAuthenticated, IsManagerOrAdmin]

    def post(self, request):
        organization = resolve_organization(request)
        if organization is None:
            return Response(ORGANIZATION_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        created = ConfigurationService(organization).reset_to_default(user=request.user)
        return Response(MEDDPICCConfigurationSerializer(created).data, status=status.HTTP_201_CREATED)


class MEDDPICCConfigHistoryView(ListAPIView):
    """GET /api/v1/admin/meddpicc-config/history/"""
    permission_classes = [permissions.IsAuthenticated, IsManagerOrAdmin]
    serializer_class = MEDDPICCConfigurationHistorySerializer
    pagination_class = StandardResultsSetPagination

    def get_queryset(self):
        organization = resolve_organization(self.request)
        if organization is None:
            from meddpicc.models import MEDDPICCConfigurationHistory

            return MEDDPICCConfigurationHistory.objects.none()
        return ConfigurationService(organization).history()
