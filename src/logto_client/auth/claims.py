"""Token claims: structural decode and verified decode.

Two ways to read a token's claims:

- decode_id_token() / decode_organization_token(): structural decode, no
  signature check. Used for tokens this client just received from the
  token endpoint over TLS, and for display.
- ClaimsVerifier: signature, issuer, audience and expiry checked against the
  tenant JWKS. Use this for anything that makes authorization decisions.

Call sites:
- LogtoClient.get_id_token_claims: structural
- LogtoClient.get_organization_token_claims: structural (token obtained
  directly from the token endpoint)
- TokenManager.verify_and_save_token_response: structural, or verified when
  LogtoConfig.verify_id_token is set
"""

from __future__ import annotations

__all__ = [
    "ClaimsVerifier",
    "IdTokenClaims",
    "OrganizationAccessTokenClaims",
    "decode_id_token",
    "decode_organization_token",
    "decode_unverified",
]

import threading
import time
from dataclasses import dataclass
from typing import Any

import jwt
from jwt import PyJWKClient, PyJWKClientError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from logto_client.constants import ID_TOKEN_ALGORITHMS, JWKS_CACHE_TTL_SECONDS
from logto_client.exceptions import ClaimsDecodeError

# Fail fast if the tenant JWKS endpoint is unreachable
JWKS_FETCH_TIMEOUT_SECONDS = 5


class IdTokenClaims(BaseModel):
    """Identity claims carried by a Logto ID token.

    Unknown claims are kept (``model_extra``) for forward compatibility.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    iss: str
    sub: str
    aud: str | list[str]
    exp: int
    iat: int
    at_hash: str | None = None
    name: str | None = None
    username: str | None = None
    picture: str | None = None
    email: str | None = None
    email_verified: bool | None = None
    phone_number: str | None = None
    phone_number_verified: bool | None = None
    roles: list[str] = Field(default_factory=list)
    organizations: list[str] = Field(default_factory=list)
    organization_roles: list[str] = Field(default_factory=list)


class OrganizationAccessTokenClaims(BaseModel):
    """Claims of an organization-scoped access token."""

    model_config = ConfigDict(extra="allow")

    iss: str
    sub: str
    aud: str | list[str]
    exp: int
    iat: int
    jti: str | None = None
    client_id: str | None = None
    scope: str = ""

    @property
    def scopes(self) -> frozenset[str]:
        return frozenset(self.scope.split())


def decode_unverified(token: str) -> dict[str, Any]:
    """Decode a JWT payload without validating its signature.

    Args:
        token: Compact JWT.

    Returns:
        Claims dict.

    Raises:
        ClaimsDecodeError: If the token is malformed.
    """
    if not token:
        raise ClaimsDecodeError("Failed to decode token: token is empty")
    try:
        claims: dict[str, Any] = jwt.decode(token, options={"verify_signature": False})
    except jwt.DecodeError as e:
        raise ClaimsDecodeError(f"Failed to decode token: {e}") from e
    return claims


def decode_id_token(id_token: str) -> IdTokenClaims:
    """Structurally decode an ID token (no signature check).

    Raises:
        ClaimsDecodeError: If the token is malformed or lacks required claims.
    """
    try:
        return IdTokenClaims.model_validate(decode_unverified(id_token))
    except ValidationError as e:
        raise ClaimsDecodeError(f"ID token is missing required claims: {e.error_count()} error(s)") from e


def decode_organization_token(access_token: str) -> OrganizationAccessTokenClaims:
    """Structurally decode an organization access token (no signature check).

    Raises:
        ClaimsDecodeError: If the token is malformed or lacks required claims.
    """
    try:
        return OrganizationAccessTokenClaims.model_validate(decode_unverified(access_token))
    except ValidationError as e:
        raise ClaimsDecodeError(
            f"Organization token is missing required claims: {e.error_count()} error(s)"
        ) from e


@dataclass
class _CachedJWKS:
    """Cached JWKS client with expiration tracking."""

    client: PyJWKClient
    jwks_uri: str
    fetched_at: float
    ttl: float = JWKS_CACHE_TTL_SECONDS

    @property
    def is_expired(self) -> bool:
        return time.monotonic() - self.fetched_at > self.ttl


class ClaimsVerifier:
    """Verifies ID tokens against the tenant JWKS.

    Features:
    - Caches the PyJWKClient per JWKS URI with a TTL (supports key rotation)
    - Verifies signature, issuer, audience (application ID) and expiry

    Usage:
        verifier = ClaimsVerifier(app_id)
        claims = verifier.verify_id_token(id_token, issuer=oidc.issuer, jwks_uri=oidc.jwks_uri)
    """

    def __init__(self, app_id: str, leeway_seconds: int = 60) -> None:
        """Initialize verifier.

        Args:
            app_id: Expected ``aud`` of ID tokens.
            leeway_seconds: Clock skew allowed for exp/iat.
        """
        self._app_id = app_id
        self._leeway = leeway_seconds
        self._jwks_cache: _CachedJWKS | None = None
        self._lock = threading.Lock()

    def _get_jwks_client(self, jwks_uri: str) -> PyJWKClient:
        with self._lock:
            cache = self._jwks_cache
            if cache is not None and cache.jwks_uri == jwks_uri and not cache.is_expired:
                return cache.client

            client = PyJWKClient(
                jwks_uri,
                cache_keys=True,
                lifespan=JWKS_CACHE_TTL_SECONDS,
                timeout=JWKS_FETCH_TIMEOUT_SECONDS,
            )
            self._jwks_cache = _CachedJWKS(
                client=client,
                jwks_uri=jwks_uri,
                fetched_at=time.monotonic(),
            )
            return client

    def verify_id_token(self, id_token: str, *, issuer: str, jwks_uri: str) -> IdTokenClaims:
        """Verify an ID token and return its claims.

        Args:
            id_token: Compact JWT from the token endpoint.
            issuer: Expected ``iss`` (from the discovery document).
            jwks_uri: Tenant JWKS endpoint (from the discovery document).

        Returns:
            Verified IdTokenClaims.

        Raises:
            ClaimsDecodeError: If any check fails.
        """
        try:
            signing_key = self._get_jwks_client(jwks_uri).get_signing_key_from_jwt(id_token)
        except PyJWKClientError as e:
            raise ClaimsDecodeError(f"Failed to get signing key: {e}") from e
        except jwt.DecodeError as e:
            raise ClaimsDecodeError(f"Failed to decode token: {e}") from e

        try:
            claims = jwt.decode(
                id_token,
                signing_key.key,
                algorithms=list(ID_TOKEN_ALGORITHMS),
                issuer=issuer,
                audience=self._app_id,
                leeway=self._leeway,
                options={"require": ["exp", "iat", "sub", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise ClaimsDecodeError("ID token has expired") from e
        except jwt.InvalidIssuerError as e:
            raise ClaimsDecodeError(f"ID token issuer mismatch: expected {issuer}") from e
        except jwt.InvalidAudienceError as e:
            raise ClaimsDecodeError(f"ID token audience mismatch: expected {self._app_id}") from e
        except jwt.InvalidSignatureError as e:
            raise ClaimsDecodeError("ID token signature is invalid") from e
        except jwt.PyJWTError as e:
            raise ClaimsDecodeError(f"ID token validation error: {e}") from e

        try:
            return IdTokenClaims.model_validate(claims)
        except ValidationError as e:
            raise ClaimsDecodeError(f"ID token is missing required claims: {e.error_count()} error(s)") from e
