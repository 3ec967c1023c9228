"""User profile calls made with a bearer access token.

- fetch_user_info: OIDC userinfo endpoint
- update_user_custom_data: Management API, PATCH /api/users/{id}
- update_user_password: Management API, PATCH /api/users/{id}/password

A 401 from the Management API raises UnauthorizedError; any other failure
raises RequestError.
"""

from __future__ import annotations

__all__ = [
    "UserInfoResponse",
    "fetch_user_info",
    "update_user_custom_data",
    "update_user_password",
]

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from logto_client.constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from logto_client.exceptions import RequestError, UnauthorizedError


class UserInfoResponse(BaseModel):
    """Userinfo endpoint response.

    Which claims are present depends on the scopes granted; unknown claims
    are kept for forward compatibility.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sub: str
    name: str | None = None
    username: str | None = None
    picture: str | None = None
    email: str | None = None
    email_verified: bool | None = None
    phone_number: str | None = None
    phone_number_verified: bool | None = None
    custom_data: dict[str, Any] | None = None
    identities: dict[str, Any] | None = None
    roles: list[str] = Field(default_factory=list)
    organizations: list[str] = Field(default_factory=list)
    organization_roles: list[str] = Field(default_factory=list)


def _send(
    method: str,
    url: str,
    access_token: str,
    json_body: dict[str, Any] | None,
    http_client: httpx.Client | None,
    timeout: float,
) -> httpx.Response:
    client = http_client or httpx.Client(timeout=timeout)
    owns_client = http_client is None

    try:
        response = client.request(
            method,
            url,
            json=json_body,
            headers={"Authorization": f"Bearer {access_token}"},
        )
    except httpx.HTTPError as e:
        raise RequestError(f"HTTP error during {method} {url}: {e}") from e
    finally:
        if owns_client:
            client.close()

    if response.status_code == 401:
        raise UnauthorizedError(f"{method} {url} was rejected: HTTP 401")
    if not 200 <= response.status_code < 300:
        raise RequestError(
            f"{method} {url} failed: HTTP {response.status_code}",
            status_code=response.status_code,
        )
    return response


def fetch_user_info(
    userinfo_endpoint: str,
    access_token: str,
    http_client: httpx.Client | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> UserInfoResponse:
    """Fetch the signed-in user's claims from the userinfo endpoint.

    Raises:
        UnauthorizedError: Token rejected.
        RequestError: Any other failure, including an unparseable body.
    """
    response = _send("GET", userinfo_endpoint, access_token, None, http_client, timeout)
    try:
        return UserInfoResponse.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        raise RequestError(
            f"Invalid userinfo response from {userinfo_endpoint}",
            status_code=response.status_code,
        ) from e


def update_user_custom_data(
    endpoint: str,
    access_token: str,
    custom_data: dict[str, Any],
    http_client: httpx.Client | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> None:
    """Replace a user's custom data.

    Args:
        endpoint: Management API user URL (``{tenant}/api/users/{id}``).
        access_token: Machine token for the Management API.
        custom_data: Schema-less document stored as the user's customData.
        http_client: Optional httpx client (for testing).
        timeout: Request timeout when no client is provided.

    Raises:
        UnauthorizedError: Token rejected.
        RequestError: Any other failure.
    """
    _send("PATCH", endpoint, access_token, {"customData": custom_data}, http_client, timeout)


def update_user_password(
    endpoint: str,
    access_token: str,
    new_password: str,
    http_client: httpx.Client | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> None:
    """Set a user's password.

    Args:
        endpoint: Management API password URL (``{tenant}/api/users/{id}/password``).
        access_token: Machine token for the Management API.
        new_password: New password.
        http_client: Optional httpx client (for testing).
        timeout: Request timeout when no client is provided.

    Raises:
        UnauthorizedError: Token rejected.
        RequestError: Any other failure.
    """
    _send("PATCH", endpoint, access_token, {"password": new_password}, http_client, timeout)
