from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from immobilien.config import settings

# Shared limiter; the default limit applies to every route through the middleware
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT])

__all__ = [
    "limiter",
    "RateLimitExceeded",
    "SlowAPIMiddleware",
]
