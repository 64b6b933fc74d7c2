"""Request rate limiting."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from eventsync.config import get_settings

limiter = Limiter(key_func=get_remote_address)


def sync_rate_limit() -> str:
    """Rate limit applied to endpoints that call Google."""
    return f"{get_settings().rate_limit_per_minute}/minute"
