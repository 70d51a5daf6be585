"""
rate_limit.py — Global HTTP flood guard.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address.

This is transport-level protection only. The rating rules (per-pair
cooldown + per-target daily cap) live in services/rate_limiter.py and are
evaluated against stored rating history, not request counts.

Usage in routes:
    from fastapi import Request
    from rating_service.core.rate_limit import limiter

    @router.post("/api/rating")
    @limiter.limit(settings.rating_request_limit)
    async def submit(request: Request, payload: RatingRequest):
        ...
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
