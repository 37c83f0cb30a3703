"""Per-client HTTP rate limiting using slowapi.

This throttles individual clients at the HTTP edge; the token-aware
proposal budget shared by all callers lives in app.gateway.rate_limiter.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Keyed by remote address
limiter = Limiter(key_func=get_remote_address)
