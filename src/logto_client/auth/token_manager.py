"""Token acquisition engine.

Decides per request whether a cached access token is usable, and if not
obtains a new one from the provider:

- get_access_token / get_organization_token: delegated user, refresh_token grant
- get_machine_access_token: application principal, client_credentials grant

Every successful exchange goes through verify_and_save_token_response(), which
decodes the new ID token and writes refresh token, ID token and cache entry
to Storage before the in-memory cache changes.

Thread-safety: one lock per cache key makes concurrent requests for the same
stale key collapse into a single exchange (the waiter re-checks the cache).
Refresh-token grants are also serialized across keys, since all user keys
share one rotating refresh token.
"""

from __future__ import annotations

__all__ = [
    "TokenManager",
]

import threading
import time
from collections.abc import Callable

import httpx

from logto_client.auth.claims import ClaimsVerifier, IdTokenClaims, decode_id_token
from logto_client.auth.oidc_discovery import OidcConfig, OidcConfigResolver
from logto_client.auth.storage import Storage
from logto_client.auth.token_cache import AccessToken, AccessTokenCache, build_access_token_key
from logto_client.auth.token_exchange import (
    TokenResponse,
    fetch_token_by_credentials,
    fetch_token_by_refresh_token,
)
from logto_client.config import LogtoConfig
from logto_client.constants import (
    STORAGE_KEY_ID_TOKEN,
    STORAGE_KEY_REFRESH_TOKEN,
    USER_SCOPE_ORGANIZATIONS,
)
from logto_client.exceptions import (
    MissingScopeOrganizationsError,
    NotAuthenticatedError,
    StorageError,
    UnacknowledgedResourceError,
)
from logto_client.telemetry.system_logger import get_system_logger


class TokenManager:
    """Owns the access-token cache and the stored credentials.

    Usage:
        manager = TokenManager(config, storage)
        token = manager.get_access_token("https://api.example.com")
        headers = {"Authorization": f"Bearer {token.token}"}
    """

    def __init__(
        self,
        config: LogtoConfig,
        storage: Storage,
        oidc_resolver: OidcConfigResolver | None = None,
        http_client: httpx.Client | None = None,
        claims_verifier: ClaimsVerifier | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize token manager.

        Args:
            config: Application configuration.
            storage: Backend for credentials and the serialized cache.
            oidc_resolver: Discovery resolver (default: built from config).
            http_client: Optional httpx client shared by all exchanges.
            claims_verifier: ID token verifier, used when config.verify_id_token is set.
            clock: Source of unix time (injectable for tests).
        """
        self._config = config
        self._storage = storage
        self._http_client = http_client
        self._resolver = oidc_resolver or OidcConfigResolver(
            config.endpoint,
            cache_ttl_seconds=config.discovery_cache_ttl_seconds,
            http_client=http_client,
            timeout=config.http_timeout_seconds,
        )
        self._verifier = claims_verifier or ClaimsVerifier(config.app_id)
        self._clock = clock
        self._cache = AccessTokenCache(storage)
        self._logger = get_system_logger()

        self._key_locks: dict[str, threading.Lock] = {}
        self._key_locks_lock = threading.Lock()
        # Guards the refresh token across keys (it may rotate on every use)
        self._refresh_lock = threading.Lock()

    # =========================================================================
    # Stored credentials
    # =========================================================================

    @property
    def cache(self) -> AccessTokenCache:
        return self._cache

    @property
    def storage(self) -> Storage:
        return self._storage

    @property
    def oidc_resolver(self) -> OidcConfigResolver:
        return self._resolver

    def get_refresh_token(self) -> str:
        return self._storage.get_item(STORAGE_KEY_REFRESH_TOKEN)

    def set_refresh_token(self, refresh_token: str) -> None:
        self._storage.set_item(STORAGE_KEY_REFRESH_TOKEN, refresh_token)

    def get_id_token(self) -> str:
        return self._storage.get_item(STORAGE_KEY_ID_TOKEN)

    def set_id_token(self, id_token: str) -> None:
        self._storage.set_item(STORAGE_KEY_ID_TOKEN, id_token)

    @property
    def is_authenticated(self) -> bool:
        return self.get_id_token() != ""

    def clear_session(self) -> None:
        """Forget refresh token, ID token and all cached access tokens."""
        with self._refresh_lock:
            self.set_refresh_token("")
            self.set_id_token("")
            self._cache.clear()
        self._logger.info({"event": "session_cleared", "message": "Session cleared"})

    # =========================================================================
    # Acquisition
    # =========================================================================

    def _lock_for(self, key: str) -> threading.Lock:
        with self._key_locks_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def get_access_token(self, resource: str = "", organization_id: str = "") -> AccessToken:
        """Get a usable access token for the signed-in user.

        Args:
            resource: Declared API resource, "" for the default (userinfo) resource.
            organization_id: Organization to scope the token to, "" for none.

        Returns:
            Cached or freshly refreshed AccessToken.

        Raises:
            NotAuthenticatedError: No ID token, or no refresh token when one is needed.
            UnacknowledgedResourceError: Resource not in config.resources.
            ConfigResolutionError: Discovery failed.
            TokenExchangeError: Refresh grant failed.
            ClaimsDecodeError: Returned ID token is malformed or fails verification.
            StorageError: Persisting the result failed.
        """
        if not self.is_authenticated:
            raise NotAuthenticatedError()

        if resource and resource not in self._config.resources:
            raise UnacknowledgedResourceError(resource)

        key = build_access_token_key((), resource, organization_id)
        cached = self._cache.get_fresh(key, self._clock())
        if cached is not None:
            self._log_cache_hit(resource, organization_id)
            return cached

        with self._lock_for(key):
            # Another thread may have refreshed this key while we waited
            cached = self._cache.get_fresh(key, self._clock())
            if cached is not None:
                self._log_cache_hit(resource, organization_id)
                return cached

            with self._refresh_lock:
                refresh_token = self.get_refresh_token()
                if not refresh_token:
                    raise NotAuthenticatedError(
                        "No refresh token available. Sign in again to continue."
                    )

                oidc_config = self._resolver.fetch()

                response = fetch_token_by_refresh_token(
                    token_endpoint=oidc_config.token_endpoint,
                    client_id=self._config.app_id,
                    client_secret=self._config.app_secret,
                    refresh_token=refresh_token,
                    resource=resource,
                    organization_id=organization_id,
                    http_client=self._http_client,
                    timeout=self._config.http_timeout_seconds,
                )

                access_token = self._to_access_token(response)
                self.verify_and_save_token_response(
                    id_token=response.id_token,
                    refresh_token=response.refresh_token,
                    key=key,
                    access_token=access_token,
                    oidc_config=oidc_config,
                )

        self._logger.info(
            {
                "event": "token_refreshed",
                "message": "Access token refreshed",
                "resource": resource or None,
                "organization_id": organization_id or None,
                "expires_at": access_token.expires_at,
                "refresh_token_rotated": bool(response.refresh_token),
            }
        )
        return access_token

    def get_organization_token(self, organization_id: str) -> AccessToken:
        """Get an access token scoped to an organization.

        Raises:
            MissingScopeOrganizationsError: Organizations scope not declared.
            Plus everything get_access_token() raises.
        """
        if USER_SCOPE_ORGANIZATIONS not in self._config.scopes:
            raise MissingScopeOrganizationsError()

        return self.get_access_token(organization_id=organization_id)

    def get_machine_access_token(self, resource: str) -> AccessToken:
        """Get an access token for the application itself (client_credentials).

        No session or resource-membership checks: the caller supplies the resource.

        Raises:
            ConfigResolutionError: Discovery failed.
            TokenExchangeError: Client credentials grant failed.
            ClaimsDecodeError: Response carried a malformed ID token.
            StorageError: Persisting the result failed.
        """
        key = build_access_token_key((), resource, "")
        cached = self._cache.get_fresh(key, self._clock())
        if cached is not None:
            self._log_cache_hit(resource, "")
            return cached

        with self._lock_for(key):
            cached = self._cache.get_fresh(key, self._clock())
            if cached is not None:
                self._log_cache_hit(resource, "")
                return cached

            oidc_config = self._resolver.fetch()

            response = fetch_token_by_credentials(
                token_endpoint=oidc_config.token_endpoint,
                client_id=self._config.app_id,
                client_secret=self._config.app_secret,
                resource=resource,
                http_client=self._http_client,
                timeout=self._config.http_timeout_seconds,
            )

            access_token = self._to_access_token(response)
            self.verify_and_save_token_response(
                id_token=response.id_token,
                refresh_token=response.refresh_token,
                key=key,
                access_token=access_token,
                oidc_config=oidc_config,
            )

        self._logger.info(
            {
                "event": "machine_token_acquired",
                "message": "Machine access token acquired",
                "resource": resource or None,
                "expires_at": access_token.expires_at,
            }
        )
        return access_token

    def _to_access_token(self, response: TokenResponse) -> AccessToken:
        return AccessToken(
            token=response.access_token,
            scope=response.scope,
            expires_at=int(self._clock()) + response.expires_in,
        )

    def _log_cache_hit(self, resource: str, organization_id: str) -> None:
        self._logger.debug(
            {
                "event": "token_cache_hit",
                "resource": resource or None,
                "organization_id": organization_id or None,
            }
        )

    # =========================================================================
    # Verification & persistence
    # =========================================================================

    def verify_and_save_token_response(
        self,
        id_token: str,
        refresh_token: str,
        key: str,
        access_token: AccessToken,
        oidc_config: OidcConfig,
    ) -> IdTokenClaims | None:
        """Validate an exchange result and persist it as one unit.

        Empty ``id_token`` / ``refresh_token`` mean "unchanged": the stored
        values are kept. The ID token is decoded before anything is written,
        so a malformed one leaves all state untouched.

        Write order is refresh token, ID token, cache entry. The refresh
        token goes first because the provider may already have invalidated
        the previous one; if a later write fails, Storage still holds a
        usable refresh token and the caller can simply retry.

        Args:
            id_token: New ID token or "".
            refresh_token: New refresh token or "".
            key: Cache key for the access token.
            access_token: New access token.
            oidc_config: Resolved configuration (issuer and JWKS for verification).

        Returns:
            Decoded claims of the new ID token, or None if none was returned.

        Raises:
            ClaimsDecodeError: ID token malformed or failed verification.
            StorageError: A write failed.
        """
        claims: IdTokenClaims | None = None
        if id_token:
            if self._config.verify_id_token:
                claims = self._verifier.verify_id_token(
                    id_token,
                    issuer=oidc_config.issuer,
                    jwks_uri=oidc_config.jwks_uri,
                )
            else:
                claims = decode_id_token(id_token)

        try:
            if refresh_token:
                self.set_refresh_token(refresh_token)
            if id_token:
                self.set_id_token(id_token)
            self._cache.put(key, access_token)
        except StorageError as e:
            self._logger.error(
                {
                    "event": "token_persist_failed",
                    "message": "Failed to persist token response",
                    "refresh_token_rotated": bool(refresh_token),
                    "error": str(e),
                }
            )
            raise

        return claims
