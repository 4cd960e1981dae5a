"""Rate limiting helpers."""
import logging

from django.core.exceptions import ImproperlyConfigured
from rest_framework.throttling import ScopedRateThrottle

logger = logging.getLogger(__name__)

STRICT_DEFAULT_RATE = "5/min"


class SafeScopedRateThrottle(ScopedRateThrottle):
    """Scoped throttle that falls back to a strict default if scope config is missing."""

    def get_rate(self):
        try:
            return super().get_rate()
        except ImproperlyConfigured:
            logger.warning(
                "Throttle scope '%s' not configured, applying strict default %s.",
                self.scope,
                STRICT_DEFAULT_RATE,
            )
            return STRICT_DEFAULT_RATE
