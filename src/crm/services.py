"""Opportunity access rules shared by the API views."""
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import NotFound, PermissionDenied

from crm.models import Opportunity


def visible_opportunities(user, organization):
    """Managers and admins see the whole tenant; reps see what they own."""
    qs = Opportunity.objects.filter(organization=organization)
    if user.can_manage:
        return qs
    return qs.filter(owner=user)


def get_opportunity_for_user(user, organization, opportunity_id) -> Opportunity:
    """Fetch an opportunity of ``organization`` the user may work on.

    Raises ``NotFound`` for unknown ids and for opportunities of another
    tenant, ``PermissionDenied`` for a rep touching someone else's deal.
    """
    try:
        opportunity = (
            Opportunity.objects
            .select_related("organization", "owner")
            .filter(pk=opportunity_id, organization=organization)
            .first()
        )
    except (DjangoValidationError, ValueError):
        opportunity = None
    if opportunity is None:
        raise NotFound("Opportunity not found.")
    if not visible_opportunities(user, organization).filter(pk=opportunity.pk).exists():
        raise PermissionDenied("You can only work on your own opportunities.")
    return opportunity
