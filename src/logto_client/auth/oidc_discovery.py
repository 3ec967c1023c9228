"""OIDC discovery for the Logto tenant.

Fetches the provider endpoints (token, userinfo, JWKS) from
``{endpoint}/oidc/.well-known/openid-configuration`` and reuses the document
for a configurable TTL so repeated acquisitions don't hit discovery each time.
"""

from __future__ import annotations

__all__ = [
    "OidcConfig",
    "OidcConfigResolver",
]

import threading
import time
from dataclasses import dataclass

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from logto_client.constants import DEFAULT_HTTP_TIMEOUT_SECONDS, DISCOVERY_PATH
from logto_client.exceptions import ConfigResolutionError
from logto_client.telemetry.system_logger import get_system_logger


class OidcConfig(BaseModel):
    """Provider endpoints from the discovery document.

    Unknown fields in the document are ignored.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: str
    jwks_uri: str
    end_session_endpoint: str | None = None
    revocation_endpoint: str | None = None


@dataclass
class _CachedOidcConfig:
    """Discovery document with fetch time for TTL checks."""

    config: OidcConfig
    fetched_at: float
    ttl: float

    @property
    def is_expired(self) -> bool:
        return time.monotonic() - self.fetched_at >= self.ttl


class OidcConfigResolver:
    """Resolves and caches the tenant's OIDC configuration.

    Usage:
        resolver = OidcConfigResolver("https://tenant.logto.app", cache_ttl_seconds=600)
        oidc_config = resolver.fetch()
        print(oidc_config.token_endpoint)
    """

    def __init__(
        self,
        endpoint: str,
        cache_ttl_seconds: float = 0,
        http_client: httpx.Client | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize resolver.

        Args:
            endpoint: Logto tenant base URL.
            cache_ttl_seconds: Reuse a fetched document this long. 0 disables caching.
            http_client: Optional httpx client (for testing / connection reuse).
            timeout: Request timeout when no client is provided.
        """
        self._discovery_url = f"{endpoint.rstrip('/')}{DISCOVERY_PATH}"
        self._cache_ttl = cache_ttl_seconds
        self._http_client = http_client
        self._timeout = timeout
        self._cache: _CachedOidcConfig | None = None
        self._lock = threading.Lock()

    def fetch(self) -> OidcConfig:
        """Return the OIDC configuration, from cache when still valid.

        Raises:
            ConfigResolutionError: If the document cannot be fetched or parsed.
        """
        with self._lock:
            if self._cache is not None and not self._cache.is_expired:
                return self._cache.config

            config = self._fetch_remote()
            if self._cache_ttl > 0:
                self._cache = _CachedOidcConfig(
                    config=config,
                    fetched_at=time.monotonic(),
                    ttl=self._cache_ttl,
                )
            return config

    def _fetch_remote(self) -> OidcConfig:
        client = self._http_client or httpx.Client(timeout=self._timeout)
        owns_client = self._http_client is None

        try:
            response = client.get(self._discovery_url)
            response.raise_for_status()
            config = OidcConfig.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            raise ConfigResolutionError(
                f"Discovery endpoint returned HTTP {e.response.status_code}: {self._discovery_url}"
            ) from e
        except httpx.HTTPError as e:
            raise ConfigResolutionError(
                f"Cannot reach discovery endpoint {self._discovery_url}: {type(e).__name__}"
            ) from e
        except ValueError as e:
            # JSONDecodeError and pydantic ValidationError are both ValueErrors
            detail = f"{e.error_count()} invalid field(s)" if isinstance(e, ValidationError) else str(e)
            raise ConfigResolutionError(
                f"Invalid discovery document from {self._discovery_url}: {detail}"
            ) from e
        finally:
            if owns_client:
                client.close()

        get_system_logger().debug(
            {
                "event": "oidc_config_fetched",
                "discovery_url": self._discovery_url,
                "issuer": config.issuer,
            }
        )
        return config

    def clear_cache(self) -> None:
        """Forget the cached document; the next fetch() goes to the network."""
        with self._lock:
            self._cache = None
