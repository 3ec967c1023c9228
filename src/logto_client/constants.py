"""Application-wide constants for logto-client.

Constants that define client behavior.
For user-configurable settings per application, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    "CONFIG_FILE_NAME",
    # Storage keys
    "STORAGE_KEY_REFRESH_TOKEN",
    "STORAGE_KEY_ID_TOKEN",
    "STORAGE_KEY_ACCESS_TOKEN_MAP",
    "ENCRYPTED_STORAGE_FILE",
    # Scopes
    "USER_SCOPE_OPENID",
    "USER_SCOPE_OFFLINE_ACCESS",
    "USER_SCOPE_PROFILE",
    "USER_SCOPE_ORGANIZATIONS",
    "RESERVED_SCOPES",
    # OIDC / HTTP
    "DISCOVERY_PATH",
    "DEFAULT_DISCOVERY_CACHE_TTL_SECONDS",
    "DEFAULT_HTTP_TIMEOUT_SECONDS",
    "JWKS_CACHE_TTL_SECONDS",
    "ID_TOKEN_ALGORITHMS",
]

APP_NAME = "logto-client"

# Config file inside click.get_app_dir(APP_NAME)
CONFIG_FILE_NAME = "config.json"

# =============================================================================
# Storage keys
# =============================================================================

STORAGE_KEY_REFRESH_TOKEN = "logto_refresh_token"
STORAGE_KEY_ID_TOKEN = "logto_id_token"
STORAGE_KEY_ACCESS_TOKEN_MAP = "logto_access_token_map"

# Encrypted fallback storage, relative to the app dir
ENCRYPTED_STORAGE_FILE = "storage.enc"

# =============================================================================
# Scopes
# =============================================================================

USER_SCOPE_OPENID = "openid"
USER_SCOPE_OFFLINE_ACCESS = "offline_access"
USER_SCOPE_PROFILE = "profile"
USER_SCOPE_ORGANIZATIONS = "urn:logto:scope:organizations"

# Always requested, whatever the application declares
RESERVED_SCOPES: tuple[str, ...] = (
    USER_SCOPE_OPENID,
    USER_SCOPE_OFFLINE_ACCESS,
    USER_SCOPE_PROFILE,
)

# =============================================================================
# OIDC / HTTP
# =============================================================================

DISCOVERY_PATH = "/oidc/.well-known/openid-configuration"

# 0 disables caching of the discovery document
DEFAULT_DISCOVERY_CACHE_TTL_SECONDS = 600

DEFAULT_HTTP_TIMEOUT_SECONDS = 30

JWKS_CACHE_TTL_SECONDS = 600

# Logto signs ID tokens with ES384 by default; RS256 for custom signing keys
ID_TOKEN_ALGORITHMS: tuple[str, ...] = ("ES384", "ES256", "RS256")
