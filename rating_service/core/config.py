"""
Application configuration loaded from environment variables.

Uses pydantic-settings for type-safe env var parsing with automatic
.env file loading. Keys and secrets are injected via environment — never
hard-coded.

To extend: add new fields here and document them in .env.example.
See https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ─── Core ──────────────────────────────────────────────────────
    environment: str = "development"
    debug: bool = False

    # ─── MongoDB ───────────────────────────────────────────────────
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "ratingsDB"
    mongo_timeout_ms: int = 5000

    # ─── CORS ──────────────────────────────────────────────────────
    # Comma-separated allowed origins for the room front ends.
    cors_origins_str: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins_str.split(",") if o.strip()]

    # ─── Rating token verification ─────────────────────────────────
    # Tokens are signed by the trust hub. The verification key is resolved
    # at startup in this order: inline PEM, PEM file, shared secret (HS*
    # algorithms only), then a fetch from trust_hub_url.
    jwt_algorithm: str = "RS256"
    jwt_public_key: str = ""
    jwt_public_key_file: str = ""
    jwt_secret: str = ""
    trust_hub_url: str = ""
    trust_hub_retries: int = Field(default=5, ge=1)
    trust_hub_retry_delay_seconds: float = Field(default=2.0, ge=0.0)

    # ─── Rating rules ──────────────────────────────────────────────
    rating_daily_cap: int = Field(default=5, ge=1)
    rating_cooldown_hours: float = Field(default=24.0, gt=0)
    # IANA zone name for the daily-cap midnight. Empty = server local time.
    rating_day_timezone: str = ""
    allow_self_rating: bool = True

    # ─── HTTP flood guard (slowapi) ────────────────────────────────
    # Per-IP request throttle on the submission endpoint. Independent of
    # the rating cooldown / daily cap rules.
    rating_request_limit: str = "120/minute"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Don't fail on unknown env vars
    )


# Module-level singleton — import this everywhere instead of instantiating Settings()
settings = Settings()
