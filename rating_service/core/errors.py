"""
errors.py — Failure taxonomy for rating submissions and summaries.

Every service-level failure carries the HTTP status it maps to, so routes
can translate it into an HTTPException without a lookup table:

  InvalidClaims        400  malformed / unverifiable token or incomplete claims
  RateLimited          429  cooldown + daily cap both hit
  StoreUnavailable     503  MongoDB not connected or a driver error
  PartialStatsFailure  503  rating event stored, stats upsert failed
  ServiceNotReady      503  verification key not loaded yet (fail closed)
"""

from typing import Any, Optional


class RatingServiceError(Exception):
    """Base class for all rating service failures."""

    status_code: int = 500
    code: str = "rating_error"

    def __init__(self, message: str, *, data: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.data = data or {}

    def __str__(self) -> str:
        return self.message


class InvalidClaims(RatingServiceError):
    status_code = 400
    code = "invalid_claims"


class RateLimited(RatingServiceError):
    status_code = 429
    code = "rate_limited"


class StoreUnavailable(RatingServiceError):
    status_code = 503
    code = "store_unavailable"


class PartialStatsFailure(StoreUnavailable):
    """
    The RatingEvent is already durable but the stats upsert did not finish.

    Kept distinct from a clean StoreUnavailable: retrying the submission
    would record the event twice.
    """

    code = "partial_stats_failure"


class ServiceNotReady(RatingServiceError):
    status_code = 503
    code = "service_not_ready"
