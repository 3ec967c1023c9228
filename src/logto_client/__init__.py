"""logto-client: token lifecycle client for Logto (OpenID Connect).

Obtains, caches, refreshes and decodes access tokens and ID tokens for an
application acting as a signed-in user or as itself (client credentials).
"""

__version__ = "0.1.0"

from logto_client.auth.storage import (
    EncryptedFileStorage,
    KeychainStorage,
    MemoryStorage,
    Storage,
    create_storage,
)
from logto_client.auth.token_cache import AccessToken
from logto_client.client import LogtoClient
from logto_client.config import LogtoConfig, load_logto_config
from logto_client.exceptions import (
    ClaimsDecodeError,
    ConfigResolutionError,
    ConfigurationError,
    LogtoError,
    MissingScopeOrganizationsError,
    NotAuthenticatedError,
    RequestError,
    StorageError,
    TokenExchangeError,
    UnacknowledgedResourceError,
    UnauthorizedError,
)

__all__ = [
    "__version__",
    "AccessToken",
    "LogtoClient",
    "LogtoConfig",
    "load_logto_config",
    # Storage
    "Storage",
    "MemoryStorage",
    "KeychainStorage",
    "EncryptedFileStorage",
    "create_storage",
    # Errors
    "LogtoError",
    "NotAuthenticatedError",
    "UnacknowledgedResourceError",
    "MissingScopeOrganizationsError",
    "ConfigResolutionError",
    "TokenExchangeError",
    "ClaimsDecodeError",
    "RequestError",
    "UnauthorizedError",
    "StorageError",
    "ConfigurationError",
]
