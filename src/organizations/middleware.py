"""Middleware exposing the active organization on the request."""
from organizations.models import OrganizationMember


class CurrentOrganizationMiddleware:
    """Read the active organization from the session and set ``request.current_organization``.

    Resolution order:
    1. ``organization_id`` stored in the session (set when the user switches tenants).
    2. The user's default membership (``OrganizationMember.is_default=True``).
    3. The first organization the user belongs to.

    If the user is anonymous or has no membership, ``request.current_organization``
    is set to ``None``. Token-authenticated API calls are resolved later by
    :func:`organizations.services.resolve_organization` because DRF
    authenticates inside the view.
    """

    SESSION_KEY = "organization_id"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.current_organization = None

        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            memberships = (
                OrganizationMember.objects
                .filter(user=user, organization__is_active=True)
                .select_related("organization")
            )
            organization_id = request.session.get(self.SESSION_KEY)

            membership = None
            if organization_id:
                membership = memberships.filter(organization_id=organization_id).first()
                if membership is None:
                    # Stale session value -- clear it and fall through
                    del request.session[self.SESSION_KEY]

            if membership is None:
                membership = memberships.order_by("-is_default", "created_at").first()
                if membership is not None:
                    request.session[self.SESSION_KEY] = str(membership.organization_id)

            if membership is not None:
                request.current_organization = membership.organization

        return self.get_response(request)
