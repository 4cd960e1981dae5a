"""API views for pharma KPIs."""
from __future__ import annotations

import logging

from rest_framework import permissions, status
from rest_framework.generics import ListAPIView
from rest_framework.response import Response
from rest_framework.views import APIView

from api.throttling import SafeScopedRateThrottle
from api.v1.pagination import StandardResultsSetPagination
from api.v1.permissions import IsManagerOrAdminForWrites
from bi.engine import KPIParams
from bi.models import KPIDefinition, Product
from bi.serializers import BIKPIQuerySerializer, KPIDefinitionSerializer, KPIResultSerializer
from bi.services import KPIService, default_period
from organizations.models import OrganizationMember, Territory
from organizations.services import resolve_organization

logger = logging.getLogger(__name__)

ORGANIZATION_NOT_FOUND = {"detail": "Organization not found.", "code": "not_found"}


class KPIView(APIView):
    """
    GET  /api/v1/bi/kpis/?product=&territory=&rep=&period_start=&period_end=&kpi=&force_recalculate=
    POST /api/v1/bi/kpis/  -> create a KPI definition (admin/manager)
    """
    permission_classes = [permissions.IsAuthenticated, IsManagerOrAdminForWrites]
    throttle_classes = [SafeScopedRateThrottle]
    throttle_scope = "kpi_calculation"

    def get(self, request):
        organization = resolve_organization(request)
        if organization is None:
            return Response(ORGANIZATION_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        query = BIKPIQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data

        default_start, default_end = default_period()
        period_start = data.get("period_start") or default_start
        period_end = data.get("period_end") or default_end
        if period_end < period_start:
            return Response(
                {"detail": "period_end must not precede period_start.", "code": "invalid"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        product_id = data.get("product")
        territory_id = data.get("territory")
        rep_id = data.get("rep")
        if product_id and not Product.objects.filter(organization=organization, pk=product_id).exists():
            return Response({"detail": "Product not found.", "code": "not_found"}, status=status.HTTP_404_NOT_FOUND)
        if territory_id and not Territory.objects.filter(organization=organization, pk=territory_id).exists():
            return Response({"detail": "Territory not found.", "code": "not_found"}, status=status.HTTP_404_NOT_FOUND)
        if rep_id and not OrganizationMember.objects.filter(organization=organization, user_id=rep_id).exists():
            return Response({"detail": "Rep not found.", "code": "not_found"}, status=status.HTTP_404_NOT_FOUND)

        params = KPIParams(
            period_start=period_start,
            period_end=period_end,
            product_id=str(product_id) if product_id else None,
            territory_id=str(territory_id) if territory_id else None,
            rep_id=str(rep_id) if rep_id else None,
        )
        results = KPIService(organization).get_kpis(
            params,
            data["kpi"],
            force_recalculate=data["force_recalculate"],
        )
        return Response({
            "organization": str(organization.pk),
            "period_start": period_start.isoformat(),
            "period_end": period_end.isoformat(),
            "filters": params.filters(),
            "kpis": KPIResultSerializer(results, many=True).data,
        })

    def post(self, request):
        organization = resolve_organization(request)
        if organization is None:
            return Response(ORGANIZATION_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        serializer = KPIDefinitionSerializer(data=request.data, context={"organization": organization})
        serializer.is_valid(raise_exception=True)
        definition = serializer.save(organization=organization, owner=request.user)
        logger.info("KPI definition %s created org=%s", definition.code, organization.pk)
        return Response(KPIDefinitionSerializer(definition).data, status=status.HTTP_201_CREATED)


class KPIDefinitionListView(ListAPIView):
    """GET /api/v1/bi/kpi-definitions/?is_active=&code=&search="""
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = KPIDefinitionSerializer
    pagination_class = StandardResultsSetPagination
    filterset_fields = ["code", "is_active"]
    search_fields = ["code", "name"]
    ordering_fields = ["name", "code", "created_at"]

    def get_queryset(self):
        organization = resolve_organization(self.request)
        if organization is None:
            return KPIDefinition.objects.none()
        return KPIDefinition.objects.filter(organization=organization).select_related("owner")
