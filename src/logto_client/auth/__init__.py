"""Token lifecycle for logto-client.

This module provides:
- Storage backends (memory, OS keychain, encrypted file)
- Access-token cache keyed by (scopes, resource, organization)
- OIDC discovery with TTL caching
- Token endpoint grants (refresh_token, client_credentials)
- Claims decoding (structural and JWKS-verified)
- TokenManager, the acquisition engine tying these together
"""

from logto_client.auth.claims import (
    ClaimsVerifier,
    IdTokenClaims,
    OrganizationAccessTokenClaims,
    decode_id_token,
    decode_organization_token,
)
from logto_client.auth.oidc_discovery import OidcConfig, OidcConfigResolver
from logto_client.auth.storage import (
    EncryptedFileStorage,
    KeychainStorage,
    MemoryStorage,
    Storage,
    create_storage,
    get_storage_info,
)
from logto_client.auth.token_cache import AccessToken, AccessTokenCache, build_access_token_key
from logto_client.auth.token_exchange import (
    TokenResponse,
    fetch_token_by_credentials,
    fetch_token_by_refresh_token,
)
from logto_client.auth.token_manager import TokenManager

__all__ = [
    # Storage
    "Storage",
    "MemoryStorage",
    "KeychainStorage",
    "EncryptedFileStorage",
    "create_storage",
    "get_storage_info",
    # Cache
    "AccessToken",
    "AccessTokenCache",
    "build_access_token_key",
    # Discovery
    "OidcConfig",
    "OidcConfigResolver",
    # Exchange
    "TokenResponse",
    "fetch_token_by_credentials",
    "fetch_token_by_refresh_token",
    # Claims
    "ClaimsVerifier",
    "IdTokenClaims",
    "OrganizationAccessTokenClaims",
    "decode_id_token",
    "decode_organization_token",
    # Engine
    "TokenManager",
]
