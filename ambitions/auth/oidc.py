"""Bearer token validation.

Production tokens are RS256/ES256 JWTs signed by the identity provider.
Keys come from the issuer's JWKS (or JWKS_LOCAL_PATH when the service runs
offline) and are looked up by the token's ``kid``. An unknown ``kid`` forces
one refresh of the key set, which is how provider key rotation is picked up.

Dev and test environments accept HS256 tokens signed with DEV_JWT_SECRET.

Every accepted token carries ``sub`` and ``email``: the email is what
ties the caller to goal ownership and approver relationships.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

import httpx
import jwt
import structlog
from jwt.exceptions import InvalidTokenError

from ambitions.config import Settings

log = structlog.get_logger(__name__)

REQUIRED_CLAIMS = ("sub", "email")

_PROVIDER_ALGORITHMS = ["RS256", "ES256"]


class TokenValidationError(Exception):
    """Raised when a bearer token is not acceptable."""


class _KeySet:
    """Signing keys by kid, refreshed at most every ``ttl`` seconds."""

    def __init__(self, ttl: float = 300.0) -> None:
        self.ttl = ttl
        self._keys: dict[str, jwt.PyJWK] = {}
        self._loaded_at: float | None = None

    def clear(self) -> None:
        self._keys = {}
        self._loaded_at = None

    async def key_for(self, kid: str, settings: Settings) -> jwt.PyJWK:
        if self._stale() or kid not in self._keys:
            await self._reload(settings)
        try:
            return self._keys[kid]
        except KeyError:
            raise TokenValidationError(f"Unknown signing key: {kid}") from None

    def _stale(self) -> bool:
        return self._loaded_at is None or time.monotonic() - self._loaded_at > self.ttl

    async def _reload(self, settings: Settings) -> None:
        try:
            if settings.jwks_local_path:
                document = _read_jwks_file(settings.jwks_local_path)
            else:
                document = await _download_jwks(settings.oidc_issuer_url)
            keys = {
                entry["kid"]: jwt.PyJWK(entry)
                for entry in document["keys"]
                if "kid" in entry
            }
        except (httpx.HTTPError, OSError, ValueError, KeyError, TypeError, jwt.PyJWKError) as exc:
            log.error("oidc.jwks_unavailable", error=str(exc))
            raise TokenValidationError("Signing keys unavailable") from exc

        self._keys = keys
        self._loaded_at = time.monotonic()
        log.info("oidc.jwks_refreshed", key_count=len(keys))


async def _download_jwks(issuer_url: str) -> dict[str, Any]:
    discovery_url = f"{issuer_url.rstrip('/')}/.well-known/openid-configuration"
    async with httpx.AsyncClient(timeout=10.0) as client:
        discovery = await client.get(discovery_url)
        discovery.raise_for_status()
        response = await client.get(discovery.json()["jwks_uri"])
        response.raise_for_status()
        return response.json()  # type: ignore[no-any-return]


def _read_jwks_file(path: str) -> dict[str, Any]:
    log.warning("oidc.local_jwks_mode_active", jwks_local_path=path)
    return json.loads(Path(path).read_text(encoding="utf-8"))  # type: ignore[no-any-return]


_keyset = _KeySet()
_dev_mode_warned = False


async def validate_token(token: str, settings: Settings) -> dict[str, Any]:
    """Validate a bearer token and return its claims.

    Raises:
        TokenValidationError: Bad signature, expired, wrong audience or
            issuer, unknown key, or a missing sub/email claim.
    """
    if settings.is_dev:
        _warn_dev_mode()
        claims = _decode(
            token,
            settings.dev_jwt_secret.get_secret_value(),
            ["HS256"],
            audience=settings.oidc_audience,
        )
    else:
        try:
            kid = jwt.get_unverified_header(token).get("kid")
        except InvalidTokenError as exc:
            raise TokenValidationError(f"Cannot decode token header: {exc}") from exc
        if not kid:
            raise TokenValidationError("Token header has no kid")

        signing_key = await _keyset.key_for(kid, settings)
        claims = _decode(
            token,
            signing_key.key,
            _PROVIDER_ALGORITHMS,
            audience=settings.oidc_audience,
            issuer=settings.oidc_issuer_url,
        )

    missing = [name for name in REQUIRED_CLAIMS if not claims.get(name)]
    if missing:
        raise TokenValidationError(f"Missing required JWT claims: {missing}")
    return claims


def _decode(
    token: str,
    key: Any,
    algorithms: list[str],
    *,
    audience: str,
    issuer: str | None = None,
) -> dict[str, Any]:
    try:
        return jwt.decode(  # type: ignore[no-any-return]
            token, key, algorithms=algorithms, audience=audience, issuer=issuer
        )
    except InvalidTokenError as exc:
        raise TokenValidationError(f"Token validation failed: {exc}") from exc


def _warn_dev_mode() -> None:
    global _dev_mode_warned
    if not _dev_mode_warned:
        log.warning(
            "oidc.dev_mode_validation",
            message="Using symmetric JWT secret - NOT for production",
        )
        _dev_mode_warned = True
