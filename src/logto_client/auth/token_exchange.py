"""Token endpoint grants: refresh_token and client_credentials.

Flow (delegated user):
1. Cached access token for a resource/organization is missing or stale
2. Call fetch_token_by_refresh_token() with the stored refresh token
3. Get new access_token (and possibly new refresh_token / id_token)
4. Caller persists the result

Flow (machine):
1. Call fetch_token_by_credentials() with the application secret
2. Get an access_token for the requested resource

Provider errors are raised as TokenExchangeError with the status code and
OAuth error fields attached; they are not retried or reclassified here.
"""

from __future__ import annotations

__all__ = [
    "TokenResponse",
    "fetch_token_by_credentials",
    "fetch_token_by_refresh_token",
    "parse_token_response",
]

from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from logto_client.constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from logto_client.exceptions import TokenExchangeError
from logto_client.telemetry.system_logger import get_system_logger


class TokenResponse(BaseModel):
    """Token endpoint response.

    ``id_token`` and ``refresh_token`` are "" when the provider omits them,
    meaning the stored values stay as they are.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    id_token: str = ""
    refresh_token: str = ""
    scope: str = ""
    token_type: str = "Bearer"
    expires_in: int = Field(ge=0)


def parse_token_response(data: Any) -> TokenResponse:
    """Parse the token endpoint's JSON body.

    Raises:
        TokenExchangeError: If required fields are missing or malformed.
    """
    if isinstance(data, dict):
        # Some providers send explicit nulls for omitted tokens
        data = {k: v for k, v in data.items() if v is not None}
    try:
        return TokenResponse.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(x) for x in err["loc"]) for err in e.errors())
        raise TokenExchangeError(f"Malformed token response (fields: {fields})") from e


def _post_token_request(
    token_endpoint: str,
    form: dict[str, str],
    client_id: str,
    client_secret: str,
    grant_type: str,
    http_client: httpx.Client | None,
    timeout: float,
) -> TokenResponse:
    client = http_client or httpx.Client(timeout=timeout)
    owns_client = http_client is None

    # client_secret_basic for confidential clients; public clients send client_id only
    auth = httpx.BasicAuth(client_id, client_secret) if client_secret else None
    if auth is None:
        form = {**form, "client_id": client_id}

    try:
        response = client.post(
            token_endpoint,
            data=form,
            auth=auth,
            headers={"Accept": "application/json"},
        )

        if response.status_code == 200:
            try:
                body = response.json()
            except ValueError as e:
                raise TokenExchangeError(
                    "Token endpoint returned a non-JSON body", status_code=200
                ) from e
            return parse_token_response(body)

        error_data: dict[str, Any] = {}
        try:
            parsed = response.json()
            if isinstance(parsed, dict):
                error_data = parsed
        except ValueError:
            pass

        error = error_data.get("error") or error_data.get("code")
        error_desc = error_data.get("error_description") or error_data.get("message")

        get_system_logger().warning(
            {
                "event": "token_exchange_failed",
                "grant_type": grant_type,
                "status_code": response.status_code,
                "error": error,
            }
        )
        raise TokenExchangeError(
            f"Token request ({grant_type}) failed: HTTP {response.status_code}"
            + (f" {error}" if error else "")
            + (f": {error_desc}" if error_desc else ""),
            status_code=response.status_code,
            error=error,
            error_description=error_desc,
        )

    except httpx.HTTPError as e:
        get_system_logger().warning(
            {
                "event": "token_exchange_failed",
                "grant_type": grant_type,
                "error_type": type(e).__name__,
            }
        )
        raise TokenExchangeError(f"HTTP error during token request ({grant_type}): {e}") from e

    finally:
        if owns_client:
            client.close()


def fetch_token_by_refresh_token(
    token_endpoint: str,
    client_id: str,
    client_secret: str,
    refresh_token: str,
    resource: str = "",
    scopes: Sequence[str] = (),
    organization_id: str = "",
    http_client: httpx.Client | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> TokenResponse:
    """Exchange a refresh token for a new token set.

    Args:
        token_endpoint: Provider token endpoint.
        client_id: Application ID.
        client_secret: Application secret ("" for public clients).
        refresh_token: Stored refresh token.
        resource: Resource indicator for the new access token.
        scopes: Narrowed scopes; empty keeps the granted scopes.
        organization_id: Organization the token should be scoped to.
        http_client: Optional httpx client (for testing).
        timeout: Request timeout when no client is provided.

    Returns:
        Parsed TokenResponse.

    Raises:
        TokenExchangeError: If the provider rejects the grant or is unreachable.
    """
    form = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
    }
    if resource:
        form["resource"] = resource
    if scopes:
        form["scope"] = " ".join(scopes)
    if organization_id:
        form["organization_id"] = organization_id

    return _post_token_request(
        token_endpoint,
        form,
        client_id,
        client_secret,
        "refresh_token",
        http_client,
        timeout,
    )


def fetch_token_by_credentials(
    token_endpoint: str,
    client_id: str,
    client_secret: str,
    resource: str,
    scopes: Sequence[str] = (),
    http_client: httpx.Client | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> TokenResponse:
    """Obtain a machine-to-machine access token (client_credentials grant).

    Args:
        token_endpoint: Provider token endpoint.
        client_id: Application ID.
        client_secret: Application secret.
        resource: Resource indicator the token is for.
        scopes: Requested scopes; empty requests the resource defaults.
        http_client: Optional httpx client (for testing).
        timeout: Request timeout when no client is provided.

    Returns:
        Parsed TokenResponse (normally without id/refresh tokens).

    Raises:
        TokenExchangeError: If the provider rejects the grant or is unreachable.
    """
    form = {"grant_type": "client_credentials"}
    if resource:
        form["resource"] = resource
    if scopes:
        form["scope"] = " ".join(scopes)

    return _post_token_request(
        token_endpoint,
        form,
        client_id,
        client_secret,
        "client_credentials",
        http_client,
        timeout,
    )
