"""Tests for refresh_token and client_credentials grants (mocked HTTP)."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest

from logto_client.auth.token_exchange import (
    fetch_token_by_credentials,
    fetch_token_by_refresh_token,
    parse_token_response,
)
from logto_client.exceptions import TokenExchangeError

TOKEN_ENDPOINT = "https://tenant.logto.test/oidc/token"


@pytest.fixture
def token_body() -> dict[str, Any]:
    return {
        "access_token": "new-access-token",
        "refresh_token": "new-refresh-token",
        "id_token": "new-id-token",
        "scope": "openid offline_access",
        "token_type": "Bearer",
        "expires_in": 3600,
    }


class TestParseTokenResponse:
    """Tests for token response parsing."""

    def test_parses_all_fields(self, token_body: dict) -> None:
        response = parse_token_response(token_body)

        assert response.access_token == "new-access-token"
        assert response.refresh_token == "new-refresh-token"
        assert response.id_token == "new-id-token"
        assert response.expires_in == 3600

    def test_omitted_tokens_default_to_empty(self) -> None:
        response = parse_token_response({"access_token": "at", "expires_in": 60})

        assert response.id_token == ""
        assert response.refresh_token == ""
        assert response.scope == ""

    def test_null_tokens_treated_as_omitted(self) -> None:
        response = parse_token_response({"access_token": "at", "expires_in": 60, "refresh_token": None})

        assert response.refresh_token == ""

    @pytest.mark.parametrize(
        "body",
        [{"expires_in": 60}, {"access_token": "at"}, {"access_token": "", "expires_in": 60}, []],
        ids=["no_access_token", "no_expires_in", "empty_access_token", "not_object"],
    )
    def test_malformed_body_raises(self, body: Any) -> None:
        with pytest.raises(TokenExchangeError, match="Malformed"):
            parse_token_response(body)


class TestFetchTokenByRefreshToken:
    """Tests for the refresh_token grant."""

    def test_posts_refresh_grant_with_selectors(
        self, http_client: MagicMock, response_factory: Any, token_body: dict
    ) -> None:
        http_client.post.return_value = response_factory(200, token_body)

        result = fetch_token_by_refresh_token(
            TOKEN_ENDPOINT,
            client_id="app",
            client_secret="secret",
            refresh_token="old-refresh",
            resource="https://api.test.com",
            scopes=["read", "write"],
            organization_id="org-1",
            http_client=http_client,
        )

        assert result.access_token == "new-access-token"
        args, kwargs = http_client.post.call_args
        assert args[0] == TOKEN_ENDPOINT
        assert kwargs["data"] == {
            "grant_type": "refresh_token",
            "refresh_token": "old-refresh",
            "resource": "https://api.test.com",
            "scope": "read write",
            "organization_id": "org-1",
        }
        assert isinstance(kwargs["auth"], httpx.BasicAuth)

    def test_omits_empty_selectors(
        self, http_client: MagicMock, response_factory: Any, token_body: dict
    ) -> None:
        http_client.post.return_value = response_factory(200, token_body)

        fetch_token_by_refresh_token(
            TOKEN_ENDPOINT, "app", "secret", "old-refresh", http_client=http_client
        )

        form = http_client.post.call_args.kwargs["data"]
        assert set(form) == {"grant_type", "refresh_token"}

    def test_public_client_sends_client_id_without_auth(
        self, http_client: MagicMock, response_factory: Any, token_body: dict
    ) -> None:
        http_client.post.return_value = response_factory(200, token_body)

        fetch_token_by_refresh_token(TOKEN_ENDPOINT, "app", "", "old-refresh", http_client=http_client)

        kwargs = http_client.post.call_args.kwargs
        assert kwargs["auth"] is None
        assert kwargs["data"]["client_id"] == "app"

    def test_provider_error_passes_through_fields(
        self, http_client: MagicMock, response_factory: Any
    ) -> None:
        http_client.post.return_value = response_factory(
            400, {"error": "invalid_grant", "error_description": "grant request is invalid"}
        )

        with pytest.raises(TokenExchangeError) as exc_info:
            fetch_token_by_refresh_token(TOKEN_ENDPOINT, "app", "s", "rt", http_client=http_client)

        assert exc_info.value.status_code == 400
        assert exc_info.value.error == "invalid_grant"
        assert exc_info.value.error_description == "grant request is invalid"

    def test_error_without_json_body(self, http_client: MagicMock, response_factory: Any) -> None:
        http_client.post.return_value = response_factory(502)

        with pytest.raises(TokenExchangeError, match="HTTP 502") as exc_info:
            fetch_token_by_refresh_token(TOKEN_ENDPOINT, "app", "s", "rt", http_client=http_client)

        assert exc_info.value.error is None

    def test_transport_error_raises_exchange_error(self, http_client: MagicMock) -> None:
        http_client.post.side_effect = httpx.ConnectError("Connection refused")

        with pytest.raises(TokenExchangeError, match="HTTP error") as exc_info:
            fetch_token_by_refresh_token(TOKEN_ENDPOINT, "app", "s", "rt", http_client=http_client)

        assert exc_info.value.status_code is None

    def test_does_not_close_injected_client(
        self, http_client: MagicMock, response_factory: Any, token_body: dict
    ) -> None:
        http_client.post.return_value = response_factory(200, token_body)

        fetch_token_by_refresh_token(TOKEN_ENDPOINT, "app", "s", "rt", http_client=http_client)

        http_client.close.assert_not_called()


class TestFetchTokenByCredentials:
    """Tests for the client_credentials grant."""

    def test_posts_client_credentials_grant(
        self, http_client: MagicMock, response_factory: Any
    ) -> None:
        http_client.post.return_value = response_factory(
            200, {"access_token": "m2m", "expires_in": 3600, "scope": "all"}
        )

        result = fetch_token_by_credentials(
            TOKEN_ENDPOINT,
            client_id="app",
            client_secret="secret",
            resource="https://default.logto.app/api",
            http_client=http_client,
        )

        assert result.access_token == "m2m"
        assert result.refresh_token == ""
        kwargs = http_client.post.call_args.kwargs
        assert kwargs["data"] == {
            "grant_type": "client_credentials",
            "resource": "https://default.logto.app/api",
        }

    def test_unauthorized_client_raises(self, http_client: MagicMock, response_factory: Any) -> None:
        http_client.post.return_value = response_factory(401, {"error": "invalid_client"})

        with pytest.raises(TokenExchangeError) as exc_info:
            fetch_token_by_credentials(TOKEN_ENDPOINT, "app", "bad", "res", http_client=http_client)

        assert exc_info.value.status_code == 401
        assert exc_info.value.error == "invalid_client"


class TestOwnedClient:
    """Tests for the client built when none is injected."""

    def test_uses_given_timeout_and_closes_client(self, response_factory: Any, token_body: dict) -> None:
        with patch("logto_client.auth.token_exchange.httpx.Client") as mock_client_cls:
            mock_client_cls.return_value.post.return_value = response_factory(200, token_body)

            fetch_token_by_refresh_token(TOKEN_ENDPOINT, "app", "s", "rt", timeout=2)

        mock_client_cls.assert_called_once_with(timeout=2)
        mock_client_cls.return_value.close.assert_called_once()

    def test_credentials_grant_uses_given_timeout(self, response_factory: Any) -> None:
        with patch("logto_client.auth.token_exchange.httpx.Client") as mock_client_cls:
            mock_client_cls.return_value.post.return_value = response_factory(
                200, {"access_token": "m2m", "expires_in": 60}
            )

            fetch_token_by_credentials(TOKEN_ENDPOINT, "app", "s", "res", timeout=7.5)

        mock_client_cls.assert_called_once_with(timeout=7.5)
