"""
rating.py — Pydantic schemas for ratings, stats and the HTTP bodies.

Field names on the wire and in MongoDB are camelCase (clientId, roomId,
ratingsGiven …) to stay compatible with the room front ends and the existing
`ratingsDB` collections; Python code uses snake_case via aliases.

Separation of concerns:
  RatingClaims    — verified token claims, validated before any store access
  RatingEvent     — one document in the `ratings` collection
  StatsRecord     — one document in the `ratingStats` collection
  RatingRequest / RatingResponse   — POST /api/rating
  SummaryRequest / ClientSummary   — POST /api/summary
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Domain ────────────────────────────────────────────────────────────────────

class RatingClaims(_CamelModel):
    """Claims carried by a verified rating token. All four are required."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    rater:   str = Field(alias="clientId", min_length=1)
    target:  str = Field(alias="targetClientId", min_length=1)
    room_id: str = Field(alias="roomId", min_length=1)
    emoji:   str = Field(min_length=1)


class RatingEvent(_CamelModel):
    """Append-only record of one accepted rating. Never updated or deleted."""
    rater:     str
    target:    str
    room_id:   str = Field(alias="roomId")
    emoji:     str
    timestamp: datetime

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class StatsRecord(_CamelModel):
    """Aggregate counters for one participant in one room."""
    client_id:        str = Field(alias="clientId")
    # Older records were written without a room.
    room_id:          Optional[str] = Field(default=None, alias="roomId")
    ratings_given:    int = Field(default=0, ge=0, alias="ratingsGiven")
    ratings_received: int = Field(default=0, ge=0, alias="ratingsReceived")
    score_sum:        int = Field(default=0, ge=0, alias="scoreSum")

    @property
    def average_score(self) -> float:
        """
        Mean received score rounded to 2 places; 0 when nothing received.

        Ties round up (1.125 -> 1.13), matching what the room front ends
        already display.
        """
        if self.ratings_received <= 0:
            return 0
        mean = Decimal(self.score_sum / self.ratings_received)
        return float(mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# ── HTTP bodies ───────────────────────────────────────────────────────────────

class RatingRequest(BaseModel):
    """Payload for POST /api/rating. A missing token is a 400, not a 422."""
    token: Optional[str] = None


class RatingResponse(BaseModel):
    accepted: bool = True


class SummaryRequest(_CamelModel):
    """Payload for POST /api/summary."""
    client_ids: list[str] = Field(alias="clientIds", max_length=500)
    # Restrict the lookup to a single room. Omit to use whichever record
    # the store returns first for each client.
    room_id: Optional[str] = Field(default=None, alias="roomId")


class ClientSummary(BaseModel):
    """Per-client entry in the POST /api/summary response."""
    given:    int
    received: int
    avg:      float
