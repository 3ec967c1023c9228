"""LogtoClient: the application-facing facade.

Answers "am I authenticated", "give me a usable access token for X",
"give me my identity claims", and runs profile/password updates with a
token obtained from the TokenManager.

Interactive sign-in is not part of this client. After an application
completes sign-in elsewhere, it hands the resulting tokens over with
set_refresh_token() / set_id_token().
"""

from __future__ import annotations

__all__ = [
    "LogtoClient",
]

from typing import Any
from urllib.parse import quote

import httpx

from logto_client.auth.claims import (
    IdTokenClaims,
    OrganizationAccessTokenClaims,
    decode_id_token,
    decode_organization_token,
)
from logto_client.auth.oidc_discovery import OidcConfigResolver
from logto_client.auth.storage import Storage
from logto_client.auth.token_cache import AccessToken
from logto_client.auth.token_manager import TokenManager
from logto_client.config import LogtoConfig
from logto_client.exceptions import ConfigurationError, NotAuthenticatedError
from logto_client.user_api import (
    UserInfoResponse,
    fetch_user_info,
    update_user_custom_data,
    update_user_password,
)


class LogtoClient:
    """Client for a Logto tenant acting as a user or as the application.

    Usage:
        client = LogtoClient(config, create_storage())
        if client.is_authenticated:
            token = client.get_access_token("https://api.example.com")
            claims = client.get_id_token_claims()
    """

    def __init__(
        self,
        config: LogtoConfig,
        storage: Storage,
        http_client: httpx.Client | None = None,
        oidc_resolver: OidcConfigResolver | None = None,
        token_manager: TokenManager | None = None,
    ) -> None:
        """Initialize client. Rehydrates the access-token cache from storage.

        Args:
            config: Application configuration.
            storage: Credential storage backend.
            http_client: Optional httpx client for all calls (for testing / pooling).
            oidc_resolver: Discovery resolver (default: built from config).
            token_manager: Acquisition engine (default: built from the above).
        """
        self._config = config
        self._http_client = http_client
        self._tokens = token_manager or TokenManager(
            config,
            storage,
            oidc_resolver=oidc_resolver,
            http_client=http_client,
        )

    @property
    def config(self) -> LogtoConfig:
        return self._config

    @property
    def token_manager(self) -> TokenManager:
        return self._tokens

    # =========================================================================
    # Session state
    # =========================================================================

    @property
    def is_authenticated(self) -> bool:
        """True when an ID token is stored. Does not validate it."""
        return self._tokens.is_authenticated

    def get_refresh_token(self) -> str:
        return self._tokens.get_refresh_token()

    def set_refresh_token(self, refresh_token: str) -> None:
        self._tokens.set_refresh_token(refresh_token)

    def get_id_token(self) -> str:
        return self._tokens.get_id_token()

    def set_id_token(self, id_token: str) -> None:
        self._tokens.set_id_token(id_token)

    def sign_out(self) -> None:
        """Clear stored credentials and cached access tokens locally."""
        self._tokens.clear_session()

    def get_id_token_claims(self) -> IdTokenClaims:
        """Decode the stored ID token (structural decode, no signature check).

        Raises:
            NotAuthenticatedError: No ID token stored.
            ClaimsDecodeError: Stored ID token is malformed.
        """
        if not self.is_authenticated:
            raise NotAuthenticatedError()
        return decode_id_token(self.get_id_token())

    # =========================================================================
    # Tokens
    # =========================================================================

    def get_access_token(self, resource: str = "") -> AccessToken:
        """Access token for a declared resource ("" for userinfo).

        User and machine tokens for the same resource share one cache entry.
        After update_user_info() or update_user_password(), a call for
        resources[0] returns the cached machine token until it expires, not a
        token issued to the user.
        """
        return self._tokens.get_access_token(resource)

    def get_organization_token(self, organization_id: str) -> AccessToken:
        """Access token scoped to an organization the user belongs to."""
        return self._tokens.get_organization_token(organization_id)

    def get_organization_token_claims(self, organization_id: str) -> OrganizationAccessTokenClaims:
        """Claims of the organization token, decoded without signature check.

        The token comes straight from the token endpoint in the same call, so
        only structural decoding is done. Callers that authorize on these
        claims should verify the token themselves.

        Raises:
            ClaimsDecodeError: Token is not a decodable JWT.
            Plus everything get_organization_token() raises.
        """
        token = self.get_organization_token(organization_id)
        return decode_organization_token(token.token)

    def get_machine_access_token(self, resource: str) -> AccessToken:
        """Access token for the application itself (client_credentials)."""
        return self._tokens.get_machine_access_token(resource)

    # =========================================================================
    # Profile
    # =========================================================================

    def fetch_user_info(self) -> UserInfoResponse:
        """Fetch the signed-in user's claims from the userinfo endpoint.

        Raises:
            NotAuthenticatedError: No session.
            ConfigResolutionError, TokenExchangeError, RequestError: Provider failures.
        """
        if not self.is_authenticated:
            raise NotAuthenticatedError()

        oidc_config = self._tokens.oidc_resolver.fetch()
        access_token = self.get_access_token()
        return fetch_user_info(
            oidc_config.userinfo_endpoint,
            access_token.token,
            http_client=self._http_client,
            timeout=self._config.http_timeout_seconds,
        )

    def _management_token(self) -> AccessToken:
        if not self._config.resources:
            raise ConfigurationError(
                "No resource declared. The first entry of 'resources' must be the "
                "Management API resource to update users."
            )
        return self.get_machine_access_token(self._config.resources[0])

    def _user_url(self, user_id: str) -> str:
        return f"{self._config.endpoint}/api/users/{quote(user_id, safe='')}"

    def update_user_info(self, user_id: str, custom_data: dict[str, Any]) -> None:
        """Replace a user's custom data via the Management API.

        Uses a machine token for the first declared resource. It is cached
        under the same key as a user token for that resource, so it replaces
        any user token cached there and get_access_token(resources[0]) returns
        it until it expires. Keep the Management API out of the resources the
        user calls with their own token.

        Raises:
            ConfigurationError: No resource declared.
            UnauthorizedError: Management API returned 401.
            RequestError, TokenExchangeError, ConfigResolutionError: Other failures.
        """
        access_token = self._management_token()
        update_user_custom_data(
            self._user_url(user_id),
            access_token.token,
            custom_data,
            http_client=self._http_client,
            timeout=self._config.http_timeout_seconds,
        )

    def update_user_password(self, user_id: str, new_password: str) -> None:
        """Set a user's password via the Management API.

        Shares the machine-token caching caveat of update_user_info().

        Raises:
            ConfigurationError: No resource declared.
            UnauthorizedError: Management API returned 401.
            RequestError, TokenExchangeError, ConfigResolutionError: Other failures.
        """
        access_token = self._management_token()
        update_user_password(
            f"{self._user_url(user_id)}/password",
            access_token.token,
            new_password,
            http_client=self._http_client,
            timeout=self._config.http_timeout_seconds,
        )
