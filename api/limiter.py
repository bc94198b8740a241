"""
api/limiter.py -- Shared slowapi rate limiter instance for the login route.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. Registration is throttled separately by the sliding window
limiter in core/ratelimit.py, which owns the RATE_LIMIT_EXCEEDED contract.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://", strategy="moving-window")
