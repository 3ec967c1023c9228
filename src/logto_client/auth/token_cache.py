"""In-memory access-token cache mirrored to Storage.

One client can hold several concurrently valid access tokens (default
resource, API resources, organizations). Each is cached under a composite
key built from (scopes, resource, organization_id), so refreshing one never
invalidates another.

Freshness is checked on read; expired entries stay until overwritten.
"""

from __future__ import annotations

__all__ = [
    "AccessToken",
    "AccessTokenCache",
    "build_access_token_key",
]

import json
import threading
import time
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from logto_client.auth.storage import Storage
from logto_client.constants import STORAGE_KEY_ACCESS_TOKEN_MAP
from logto_client.telemetry.system_logger import get_system_logger


class AccessToken(BaseModel):
    """Access token with its granted scope and absolute expiry.

    Immutable; a refresh produces a new instance.

    Attributes:
        token: Bearer token value.
        scope: Space-separated scopes granted by the provider.
        expires_at: Unix timestamp (seconds) after which the token is stale.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: str
    scope: str = ""
    expires_at: int = Field(alias="expiresAt")

    def is_expired(self, now: float | None = None) -> bool:
        """True once ``now`` has reached expires_at."""
        current = time.time() if now is None else now
        return self.expires_at <= current


_TOKEN_MAP_ADAPTER = TypeAdapter(dict[str, AccessToken])


def build_access_token_key(
    scopes: Iterable[str] = (),
    resource: str = "",
    organization_id: str = "",
) -> str:
    """Build the cache key for a token request.

    Scopes are de-duplicated and sorted so call order does not matter. The
    parts are JSON-encoded, so separators inside a resource or organization
    ID cannot make two different requests collide.

    Args:
        scopes: Requested scopes (order-insensitive).
        resource: API resource indicator, "" for the default resource.
        organization_id: Organization ID, "" for non-organization tokens.

    Returns:
        Deterministic string key.
    """
    return json.dumps(
        [sorted(set(scopes)), resource, organization_id],
        separators=(",", ":"),
    )


class AccessTokenCache:
    """Thread-safe access-token map persisted to Storage as one JSON blob.

    Writes go to Storage first; the in-memory map is replaced only after the
    durable write succeeds, so the two never diverge.
    """

    def __init__(self, storage: Storage, storage_key: str = STORAGE_KEY_ACCESS_TOKEN_MAP) -> None:
        self._storage = storage
        self._storage_key = storage_key
        self._lock = threading.Lock()
        self._tokens: dict[str, AccessToken] = self._load()

    def _load(self) -> dict[str, AccessToken]:
        """Rehydrate from Storage. A corrupt blob is logged and ignored."""
        blob = self._storage.get_item(self._storage_key)
        if not blob:
            return {}

        try:
            return _TOKEN_MAP_ADAPTER.validate_json(blob)
        except ValidationError as e:
            get_system_logger().warning(
                {
                    "event": "access_token_cache_corrupt",
                    "message": "Ignoring unreadable access token cache in storage",
                    "error_count": e.error_count(),
                }
            )
            return {}

    def _persist(self, tokens: dict[str, AccessToken]) -> None:
        blob = _TOKEN_MAP_ADAPTER.dump_json(tokens, by_alias=True).decode()
        self._storage.set_item(self._storage_key, blob)

    def get(self, key: str) -> AccessToken | None:
        """Return the cached token for key, fresh or not."""
        with self._lock:
            return self._tokens.get(key)

    def get_fresh(self, key: str, now: float | None = None) -> AccessToken | None:
        """Return the cached token for key only if it has not expired."""
        token = self.get(key)
        if token is None or token.is_expired(now):
            return None
        return token

    def put(self, key: str, token: AccessToken) -> None:
        """Insert or overwrite key, then persist the whole map.

        Raises:
            StorageError: If persistence fails. The in-memory map is unchanged.
        """
        with self._lock:
            updated = {**self._tokens, key: token}
            self._persist(updated)
            self._tokens = updated

    def clear(self) -> None:
        """Drop every entry and persist the empty map.

        Raises:
            StorageError: If persistence fails.
        """
        with self._lock:
            self._persist({})
            self._tokens = {}

    def snapshot(self) -> dict[str, AccessToken]:
        """Copy of the current map."""
        with self._lock:
            return dict(self._tokens)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._tokens
