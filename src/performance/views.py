"""API views for sales KPIs and the leaderboard."""
from __future__ import annotations

import re

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from api.throttling import SafeScopedRateThrottle
from bi.services import default_period
from organizations.models import OrganizationMember, Territory
from organizations.services import get_team_user_ids, resolve_organization
from performance.engine import SalesKPIEngine
from performance.leaderboard import LeaderboardEngine, current_period
from performance.serializers import LeaderboardSnapshotSerializer, SalesKPIQuerySerializer

ORGANIZATION_NOT_FOUND = {"detail": "Organization not found.", "code": "not_found"}
PERIOD_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class SalesKPIView(APIView):
    """
    GET /api/v1/kpis/?user=&territory=&period_start=&period_end=&kpi_type=&rollup=
    Reps see their own numbers; admins and managers may look at anyone in
    the organization and roll a manager's team up.
    """
    permission_classes = [permissions.IsAuthenticated]
    throttle_classes = [SafeScopedRateThrottle]
    throttle_scope = "kpi_calculation"

    def get(self, request):
        organization = resolve_organization(request)
        if organization is None:
            return Response(ORGANIZATION_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        query = SalesKPIQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        user_id = str(params.get("user") or request.user.pk)
        if user_id != str(request.user.pk) and not request.user.can_manage:
            return Response(
                {"detail": "You can only view your own KPIs.", "code": "permission_denied"},
                status=status.HTTP_403_FORBIDDEN,
            )
        if not OrganizationMember.objects.filter(organization=organization, user_id=user_id).exists():
            return Response({"detail": "User not found.", "code": "not_found"}, status=status.HTTP_404_NOT_FOUND)
        territory_id = params.get("territory")
        if territory_id and not Territory.objects.filter(organization=organization, pk=territory_id).exists():
            return Response({"detail": "Territory not found.", "code": "not_found"}, status=status.HTTP_404_NOT_FOUND)

        default_start, default_end = default_period()
        period_start = params.get("period_start") or default_start
        period_end = params.get("period_end") or default_end
        if period_end < period_start:
            return Response(
                {"detail": "period_end must not precede period_start.", "code": "invalid"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        rollup = params["rollup"]
        user_ids = get_team_user_ids(organization, user_id) if rollup else [user_id]
        engine = SalesKPIEngine(organization.pk, user_ids, territory_id=territory_id)
        if params["kpi_type"] == "all":
            kpis = engine.calculate_all(period_start, period_end)
        else:
            kpis = {params["kpi_type"]: engine.calculate(params["kpi_type"], period_start, period_end)}

        return Response({
            "user": user_id,
            "view_mode": "rollup" if rollup else "individual",
            "territory": str(territory_id) if territory_id else None,
            "user_ids": user_ids,
            "period_start": period_start.isoformat(),
            "period_end": period_end.isoformat(),
            "kpis": kpis,
        })


class LeaderboardView(APIView):
    """GET /api/v1/performance/leaderboard/?period=YYYY-MM&refresh=true"""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        organization = resolve_organization(request)
        if organization is None:
            return Response(ORGANIZATION_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        period = request.query_params.get("period") or current_period()
        if not PERIOD_RE.match(period):
            return Response(
                {"detail": "period must use the YYYY-MM format.", "code": "invalid"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        engine = LeaderboardEngine(organization.pk)
        refresh = request.query_params.get("refresh") in ("1", "true", "yes")
        snapshot = None if refresh and request.user.can_manage else engine.get_cached_snapshot(period)
        if snapshot is None:
            snapshot = engine.compute_snapshot(period)
        return Response(LeaderboardSnapshotSerializer(snapshot).data)
