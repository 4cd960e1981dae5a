"""API error normalization.

Every error leaving the API has the shape::

    {"detail": "<human readable message>", "code": "<machine code>"}

Validation failures additionally carry ``errors``, the field -> messages
mapping produced by the serializer. Unhandled exceptions are logged with
their traceback and surface as a generic 500 body.
"""
import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

logger = logging.getLogger(__name__)


def _first_message(detail):
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
        return ""
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ""
    return str(detail)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception(
            "Unhandled API error in %s",
            view.__class__.__name__ if view is not None else "unknown view",
        )
        set_rollback()
        return Response(
            {"detail": "Internal server error.", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, exceptions.ValidationError):
        errors = response.data
        if isinstance(errors, list):
            errors = {"non_field_errors": errors}
        response.data = {
            "detail": _first_message(errors) or "Invalid input.",
            "code": "invalid",
            "errors": errors,
        }
        return response

    if isinstance(exc, Http404):
        code = "not_found"
    elif isinstance(exc, DjangoPermissionDenied):
        code = "permission_denied"
    else:
        code = getattr(exc, "default_code", "error")
        detail_codes = exc.get_codes() if isinstance(exc, exceptions.APIException) else None
        if isinstance(detail_codes, str):
            code = detail_codes

    data = response.data if isinstance(response.data, dict) else {"detail": response.data}
    data.setdefault("detail", _first_message(data))
    data["code"] = code
    if isinstance(exc, exceptions.Throttled) and exc.wait is not None:
        data["retry_after"] = int(exc.wait)
    response.data = data
    return response
