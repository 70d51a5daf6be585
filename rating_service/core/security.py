"""
security.py — Rating token verification.

Uses:
  - python-jose for JWT verification (RS256 by default, HS* supported for
    local development and tests)
  - httpx to fetch the verification key from the trust hub at startup

Rating tokens are issued by the trust hub, never by this service. A token's
claims name the rater (clientId), the rated participant (targetClientId),
the room (roomId) and the emoji. This module only answers "is this token
genuine, and what does it say?". Checking that the claims are complete is
the submission pipeline's job.

Until the verification key has been loaded every verification attempt
raises ServiceNotReady: requests that arrive during the bootstrap are
rejected, never accepted unverified.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import httpx
from jose import JWTError, jwt

from rating_service.core.config import Settings, settings
from rating_service.core.errors import ServiceNotReady

logger = logging.getLogger(__name__)

_HMAC_ALGORITHMS = {"HS256", "HS384", "HS512"}
_TRUST_HUB_TIMEOUT = 10.0


class VerificationKey:
    """Holds the key (and algorithm) used to verify rating tokens."""

    def __init__(self) -> None:
        self.key: Optional[str] = None
        self.algorithm: str = settings.jwt_algorithm
        self.source: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.key is not None

    def set(self, key: str, algorithm: str, source: str) -> None:
        self.key = key
        self.algorithm = algorithm
        self.source = source
        logger.info("Rating token verification key loaded (source: %s, alg: %s)", source, algorithm)

    async def bootstrap(
        self,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Resolve the verification key.

        Local sources (inline PEM, PEM file, shared secret) are used when
        configured; otherwise the key is fetched from the trust hub with
        retries. If every attempt fails the key stays unset and the service
        keeps rejecting submissions.
        """
        config = config or settings

        try:
            local = _load_local_key(config)
        except OSError as exc:
            logger.error(
                "Could not read verification key file %s: %s. Rating submissions will be rejected.",
                config.jwt_public_key_file, exc,
            )
            return
        if local is not None:
            key, source = local
            self.set(key, config.jwt_algorithm, source)
            return

        if not config.trust_hub_url:
            logger.warning(
                "No rating token verification key configured "
                "(JWT_PUBLIC_KEY, JWT_PUBLIC_KEY_FILE, JWT_SECRET or TRUST_HUB_URL). "
                "All rating submissions will be rejected."
            )
            return

        async with httpx.AsyncClient(timeout=_TRUST_HUB_TIMEOUT, transport=transport) as client:
            for attempt in range(1, config.trust_hub_retries + 1):
                try:
                    key = await _fetch_trust_hub_key(client, config.trust_hub_url)
                except (httpx.HTTPError, ValueError, KeyError) as exc:
                    logger.warning(
                        "Trust hub key fetch failed (attempt %d/%d): %s",
                        attempt, config.trust_hub_retries, exc,
                    )
                    if attempt < config.trust_hub_retries:
                        await asyncio.sleep(config.trust_hub_retry_delay_seconds)
                    continue
                self.set(key, config.jwt_algorithm, "trust_hub")
                return

        logger.error(
            "Could not obtain a verification key from %s; rating submissions will be rejected",
            config.trust_hub_url,
        )


# Module-level singleton — populated by the lifespan bootstrap
verification_key = VerificationKey()


def get_verification_key() -> VerificationKey:
    """FastAPI dependency — the process-wide verification key."""
    return verification_key


def _load_local_key(config: Settings) -> Optional[tuple[str, str]]:
    if config.jwt_public_key:
        return config.jwt_public_key, "env"
    if config.jwt_public_key_file:
        return Path(config.jwt_public_key_file).read_text(encoding="utf-8"), "file"
    if config.jwt_secret and config.jwt_algorithm.upper() in _HMAC_ALGORITHMS:
        return config.jwt_secret, "secret"
    return None


async def _fetch_trust_hub_key(client: httpx.AsyncClient, url: str) -> str:
    """GET the trust hub key endpoint; expects {"publicKey": "<pem>"}."""
    response = await client.get(url)
    response.raise_for_status()
    key = response.json()["publicKey"]
    if not isinstance(key, str) or not key.strip():
        raise ValueError("trust hub returned an empty publicKey")
    return key


# ── Tokens ────────────────────────────────────────────────────────────────────

def decode_rating_token(
    token: Optional[str],
    key: Optional[VerificationKey] = None,
) -> Optional[dict[str, Any]]:
    """
    Verify a rating token and return its claims.

    Returns None if the token is missing, expired, or otherwise invalid.
    Raises ServiceNotReady while the verification key is not loaded.
    """
    key = key or verification_key
    if not key.is_ready:
        raise ServiceNotReady("Rating token verification key not loaded yet")
    if not token:
        return None
    try:
        return jwt.decode(token, key.key, algorithms=[key.algorithm])
    except JWTError as exc:
        logger.warning("Invalid rating token: %s", exc)
        return None


def create_rating_token(
    claims: dict[str, Any],
    signing_key: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Sign a rating token.

    The trust hub issues tokens in production; this helper exists for local
    development and the test suite.
    """
    payload = dict(claims)
    if expires_delta is not None:
        payload["exp"] = datetime.now(tz=timezone.utc) + expires_delta
    return jwt.encode(payload, signing_key, algorithm=algorithm)
