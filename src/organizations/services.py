"""Tenant scoping helpers shared by the API views."""
from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import PermissionDenied

from organizations.models import Organization, OrganizationMember

logger = logging.getLogger(__name__)


def _requested_organization_id(request):
    query_params = getattr(request, "query_params", {}) or {}
    organization_id = query_params.get("organization")
    if not organization_id:
        payload = getattr(request, "data", {}) or {}
        if isinstance(payload, dict):
            organization_id = payload.get("organization")
    return organization_id


def resolve_organization(request) -> Organization | None:
    """Resolve the organization a request acts on.

    An explicit ``organization`` parameter must match one of the caller's
    memberships (superusers excepted), otherwise ``PermissionDenied`` is
    raised. Without it, the middleware's current organization or the caller's
    default membership is used. Returns ``None`` when the caller belongs to
    no active organization.
    """
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        return None

    active = Organization.objects.filter(is_active=True)
    organization_id = _requested_organization_id(request)
    if organization_id:
        try:
            qs = active.filter(pk=organization_id)
            if not user.is_superuser:
                qs = qs.filter(members__user=user)
            organization = qs.first()
        except (DjangoValidationError, ValueError):
            organization = None
        if organization is None:
            logger.info(
                "Organization access denied user=%s organization=%s",
                user.pk,
                organization_id,
            )
            raise PermissionDenied("You do not have access to this organization.")
        return organization

    current = getattr(request, "current_organization", None)
    if current is not None:
        return current

    membership = (
        OrganizationMember.objects
        .filter(user=user, organization__is_active=True)
        .select_related("organization")
        .order_by("-is_default", "created_at")
        .first()
    )
    if membership is not None:
        return membership.organization
    return None


def get_team_user_ids(organization, manager_id) -> list[str]:
    """Return ``manager_id`` followed by every direct and indirect report."""
    links = OrganizationMember.objects.filter(
        organization=organization,
        manager__isnull=False,
    ).values_list("manager_id", "user_id")
    reports: dict[str, list[str]] = {}
    for manager, report in links:
        reports.setdefault(str(manager), []).append(str(report))

    team = [str(manager_id)]
    seen = set(team)
    index = 0
    while index < len(team):
        for report in reports.get(team[index], []):
            if report not in seen:
                seen.add(report)
                team.append(report)
        index += 1
    return team
