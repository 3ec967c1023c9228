"""Custom exceptions for logto-client.

This module contains all custom exceptions used throughout the package.
Every exception derives from LogtoError and carries a ``failure_type``
string that is used as the error category in log events.

Session / precondition errors (raised before any network access):
    - NotAuthenticatedError: No session established
    - UnacknowledgedResourceError: Resource not declared in LogtoConfig
    - MissingScopeOrganizationsError: Organizations scope not declared

Provider errors (passed through to the caller, never retried):
    - ConfigResolutionError: OIDC discovery failed
    - TokenExchangeError: Token endpoint rejected the grant or was unreachable
    - ClaimsDecodeError: ID / organization token could not be decoded
    - UnauthorizedError: Management API returned 401
    - RequestError: Any other failed request to the provider

Local errors:
    - StorageError: Storage backend failed to read or write
    - ConfigurationError: Configuration is missing or invalid

Usage:
    from logto_client.exceptions import NotAuthenticatedError, TokenExchangeError
"""

from __future__ import annotations

__all__ = [
    "ClaimsDecodeError",
    "ConfigResolutionError",
    "ConfigurationError",
    "LogtoError",
    "MissingScopeOrganizationsError",
    "NotAuthenticatedError",
    "RequestError",
    "StorageError",
    "TokenExchangeError",
    "UnacknowledgedResourceError",
    "UnauthorizedError",
]


class LogtoError(Exception):
    """Base exception for all logto-client failures.

    Attributes:
        failure_type: Category string for logging.
    """

    failure_type: str = "unknown"


# =============================================================================
# Session / precondition errors
# =============================================================================


class NotAuthenticatedError(LogtoError):
    """No session established.

    Raised when:
    - No ID token is stored (user never signed in, or signed out)
    - A refresh is needed but no refresh token is stored
    """

    failure_type = "not_authenticated"

    def __init__(self, message: str = "Not authenticated. Sign in first.") -> None:
        super().__init__(message)


class UnacknowledgedResourceError(LogtoError):
    """Requested resource is not declared in LogtoConfig.resources."""

    failure_type = "unacknowledged_resource"

    def __init__(self, resource: str) -> None:
        self.resource = resource
        super().__init__(
            f"Resource {resource!r} is not declared in the client configuration. "
            "Add it to 'resources' before requesting tokens for it."
        )


class MissingScopeOrganizationsError(LogtoError):
    """Organization token requested without the organizations scope declared."""

    failure_type = "missing_scope_organizations"

    def __init__(self) -> None:
        super().__init__(
            "The organizations scope is not declared in the client configuration. "
            "Add it to 'scopes' before requesting organization tokens."
        )


# =============================================================================
# Provider errors
# =============================================================================


class ConfigResolutionError(LogtoError):
    """OIDC discovery document could not be fetched or parsed."""

    failure_type = "config_resolution_failed"


class TokenExchangeError(LogtoError):
    """Token endpoint rejected the grant, or the request failed in transit.

    The provider's response is passed through unclassified.

    Attributes:
        status_code: HTTP status code (None for transport failures).
        error: OAuth ``error`` code from the response body, if any.
        error_description: OAuth ``error_description``, if any.
    """

    failure_type = "token_exchange_failed"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.error_description = error_description


class ClaimsDecodeError(LogtoError):
    """Token is malformed, or failed signature verification."""

    failure_type = "claims_decode_failed"


class RequestError(LogtoError):
    """Request to the provider failed (non-2xx or transport error).

    Attributes:
        status_code: HTTP status code (None for transport failures).
    """

    failure_type = "request_failed"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnauthorizedError(RequestError):
    """Provider returned 401 for a profile or password update."""

    failure_type = "unauthorized"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, status_code=401)


# =============================================================================
# Local errors
# =============================================================================


class StorageError(LogtoError):
    """Storage backend failed to read or write an item."""

    failure_type = "storage_failed"


class ConfigurationError(LogtoError):
    """Configuration is invalid or incomplete.

    Raised when:
    - Config file does not exist
    - Config file contains invalid JSON
    - Config file fails Pydantic validation
    - An operation needs a setting that is not configured
    """

    failure_type = "configuration_failed"
