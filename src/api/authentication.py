"""Bearer token verification for the API.

Identity is owned by the hosted auth provider; this module only verifies the
access tokens it signs (shared signing key, audience and issuer come from
``SIMPLE_JWT``) and maps the subject claim onto a local ``User`` row.
"""
import logging

from django.conf import settings
from rest_framework import exceptions
from rest_framework.authentication import CSRFCheck
from rest_framework.request import Request
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError

logger = logging.getLogger(__name__)


class CookieJWTAuthentication(JWTAuthentication):
    """Provider-issued JWT from the ``Authorization`` header or an HttpOnly cookie.

    - A header token that fails verification is a hard 401.
    - A stale cookie token leaves the request anonymous instead, so public
      endpoints keep working for browsers holding an expired session.
    - Writes authenticated through the cookie must pass the CSRF check.
    """

    def _enforce_csrf(self, request: Request) -> None:
        check = CSRFCheck(lambda req: None)
        check.process_request(request)
        reason = check.process_view(request, None, (), {})
        if reason:
            raise exceptions.PermissionDenied(f"CSRF Failed: {reason}")

    def _cookie_token(self, request: Request):
        raw_token = request.COOKIES.get(getattr(settings, "JWT_AUTH_COOKIE", "access_token"))
        if not raw_token:
            return None
        try:
            return self.get_validated_token(raw_token)
        except (InvalidToken, TokenError):
            logger.debug("Ignoring invalid access cookie")
            return None

    def authenticate(self, request: Request):
        header = self.get_header(request)
        raw_token = self.get_raw_token(header) if header is not None else None
        if raw_token is not None:
            validated_token = self.get_validated_token(raw_token)
            return self.get_user(validated_token), validated_token

        validated_token = self._cookie_token(request)
        if validated_token is None:
            return None
        self._enforce_csrf(request)
        return self.get_user(validated_token), validated_token
