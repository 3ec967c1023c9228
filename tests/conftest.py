"""Shared fixtures: config, storage, signed tokens, mocked HTTP."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from logto_client.auth.oidc_discovery import OidcConfig
from logto_client.auth.storage import MemoryStorage
from logto_client.config import LogtoConfig
from logto_client.constants import USER_SCOPE_ORGANIZATIONS

ENDPOINT = "https://tenant.logto.test"
APP_ID = "test-app-id"
RESOURCE = "https://api.test.com"


@pytest.fixture
def logto_config() -> LogtoConfig:
    """Confidential app with one declared resource and the organizations scope."""
    return LogtoConfig(
        endpoint=ENDPOINT,
        app_id=APP_ID,
        app_secret="test-app-secret",
        resources=[RESOURCE],
        scopes=[USER_SCOPE_ORGANIZATIONS],
    )


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def oidc_config() -> OidcConfig:
    return OidcConfig(
        issuer=f"{ENDPOINT}/oidc",
        authorization_endpoint=f"{ENDPOINT}/oidc/auth",
        token_endpoint=f"{ENDPOINT}/oidc/token",
        userinfo_endpoint=f"{ENDPOINT}/oidc/me",
        jwks_uri=f"{ENDPOINT}/oidc/jwks",
    )


@pytest.fixture
def discovery_document(oidc_config: OidcConfig) -> dict[str, Any]:
    """Discovery document as served by the tenant (with extra fields)."""
    return {
        **oidc_config.model_dump(exclude_none=True),
        "response_types_supported": ["code"],
        "end_session_endpoint": f"{ENDPOINT}/oidc/session/end",
    }


@pytest.fixture
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def make_jwt(rsa_private_key: rsa.RSAPrivateKey) -> Callable[..., str]:
    """Factory for RS256-signed JWTs with sensible default claims."""
    pem = rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

    def _make(**claims: Any) -> str:
        now = int(time.time())
        payload = {
            "iss": f"{ENDPOINT}/oidc",
            "sub": "user-123",
            "aud": APP_ID,
            "iat": now,
            "exp": now + 3600,
            **claims,
        }
        return jwt.encode(payload, pem, algorithm="RS256", headers={"kid": "test-key"})

    return _make


@pytest.fixture
def id_token(make_jwt: Callable[..., str]) -> str:
    return make_jwt(name="Test User", email="user@example.com")


def make_response(status_code: int = 200, json_data: Any = None) -> MagicMock:
    """Mock httpx.Response with status code and JSON body."""
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    if json_data is None:
        response.json.side_effect = ValueError("no JSON body")
    else:
        response.json.return_value = json_data
    if status_code >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"HTTP {status_code}",
            request=httpx.Request("GET", ENDPOINT),
            response=response,
        )
    else:
        response.raise_for_status.return_value = response
    return response


@pytest.fixture
def http_client() -> MagicMock:
    """Mock httpx client. Tests set get/post/request return values."""
    return MagicMock(spec=httpx.Client)


@pytest.fixture
def response_factory() -> Callable[..., MagicMock]:
    return make_response
