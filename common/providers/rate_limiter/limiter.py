"""Global rate limiter instance for SlowAPI."""

from slowapi import Limiter
from slowapi.util import get_remote_address
from common.core.config import settings

# Multiple limits: all must be satisfied (whichever is hit first applies).
# Use a shared storage_uri (e.g. redis://) when running more than one API pod.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[
        limit.strip() for limit in settings.rate_limit_default.split(";") if limit
    ],
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)
