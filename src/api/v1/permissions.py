"""Custom DRF permissions for the CRM API."""
from rest_framework.permissions import BasePermission


class IsManagerOrAdmin(BasePermission):
    """Allow access to users with the ADMIN or MANAGER role."""

    message = "Administrator or manager role required."

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return bool(getattr(user, "can_manage", False))


class IsManagerOrAdminForWrites(IsManagerOrAdmin):
    """Reads for every authenticated user, writes for managers and admins."""

    SAFE_METHODS = ("GET", "HEAD", "OPTIONS")

    def has_permission(self, request, view):
        if request.method in self.SAFE_METHODS:
            return bool(request.user and request.user.is_authenticated)
        return super().has_permission(request, view)
