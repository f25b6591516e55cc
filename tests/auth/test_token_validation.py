"""Tests for JWT validation and the get_current_caller dependency."""

from __future__ import annotations

import json
import time

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import HTTPException
from jwt.algorithms import RSAAlgorithm
from starlette.requests import Request

from ambitions.auth import oidc
from ambitions.auth.dependencies import CallerIdentity, get_current_caller
from ambitions.auth.oidc import TokenValidationError, validate_token
from ambitions.config import Environment, Settings

ISSUER = "https://idp.example.test/realms/people"


def _request(headers: dict[str, str]) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
    }
    return Request(scope)


class TestValidateDevToken:
    async def test_valid_token(self, fake_settings, token_for):
        claims = await validate_token(token_for("alice@example.test"), fake_settings)
        assert claims["email"] == "alice@example.test"
        assert claims["sub"] == "ext-alice"

    async def test_wrong_secret(self, fake_settings, token_for):
        token = token_for("alice@example.test", secret="another-secret")
        with pytest.raises(TokenValidationError):
            await validate_token(token, fake_settings)

    async def test_wrong_audience(self, fake_settings, token_for):
        token = token_for("alice@example.test", audience="someone-else")
        with pytest.raises(TokenValidationError):
            await validate_token(token, fake_settings)

    async def test_expired(self, fake_settings, token_for):
        token = token_for("alice@example.test", expires_in=-60)
        with pytest.raises(TokenValidationError):
            await validate_token(token, fake_settings)

    async def test_missing_email_claim(self, fake_settings, token_for):
        token = token_for("", sub="service-account")
        with pytest.raises(TokenValidationError, match="email"):
            await validate_token(token, fake_settings)


class TestGetCurrentCaller:
    async def test_resolves_identity(self, fake_settings, token_for):
        token = token_for("Alice@Example.test", name="Alice Smith")
        request = _request({"Authorization": f"Bearer {token}"})

        caller = await get_current_caller(request, fake_settings)

        assert caller == CallerIdentity(
            email="alice@example.test", subject="ext-Alice", name="Alice Smith"
        )

    async def test_missing_header(self, fake_settings):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_caller(_request({}), fake_settings)
        assert exc_info.value.status_code == 401

    async def test_non_bearer_scheme(self, fake_settings):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_caller(_request({"Authorization": "Basic abc"}), fake_settings)
        assert exc_info.value.status_code == 401

    async def test_invalid_token(self, fake_settings):
        request = _request({"Authorization": "Bearer garbage"})
        with pytest.raises(HTTPException) as exc_info:
            await get_current_caller(request, fake_settings)
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


@pytest.fixture
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def prod_settings(tmp_path, rsa_key):
    jwk = RSAAlgorithm.to_jwk(rsa_key.public_key(), as_dict=True)
    jwk.update({"kid": "key-1", "use": "sig", "alg": "RS256"})
    jwks_file = tmp_path / "jwks.json"
    jwks_file.write_text(json.dumps({"keys": [jwk]}), encoding="utf-8")

    oidc._keyset.clear()
    yield Settings(
        environment=Environment.PROD,
        dev_jwt_secret="a-real-production-secret",
        oidc_issuer_url=ISSUER,
        oidc_audience="ambitions-api",
        jwks_local_path=str(jwks_file),
    )
    oidc._keyset.clear()


def _provider_token(key, kid: str | None = "key-1", **overrides) -> str:
    now = int(time.time())
    payload = {
        "sub": "ext-alice",
        "email": "alice@example.test",
        "aud": "ambitions-api",
        "iss": ISSUER,
        "iat": now,
        "exp": now + 300,
        **overrides,
    }
    headers = {"kid": kid} if kid else {}
    return jwt.encode(payload, key, algorithm="RS256", headers=headers)


class TestValidateProviderToken:
    async def test_valid_token(self, prod_settings, rsa_key):
        claims = await validate_token(_provider_token(rsa_key), prod_settings)
        assert claims["email"] == "alice@example.test"

    async def test_token_without_kid_rejected(self, prod_settings, rsa_key):
        with pytest.raises(TokenValidationError, match="kid"):
            await validate_token(_provider_token(rsa_key, kid=None), prod_settings)

    async def test_unknown_kid_rejected(self, prod_settings, rsa_key):
        with pytest.raises(TokenValidationError, match="Unknown signing key"):
            await validate_token(_provider_token(rsa_key, kid="rotated"), prod_settings)

    async def test_wrong_issuer(self, prod_settings, rsa_key):
        token = _provider_token(rsa_key, iss="https://elsewhere.example.test")
        with pytest.raises(TokenValidationError):
            await validate_token(token, prod_settings)

    async def test_signed_by_another_key(self, prod_settings):
        other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        with pytest.raises(TokenValidationError):
            await validate_token(_provider_token(other), prod_settings)

    async def test_dev_secret_not_accepted(self, prod_settings):
        token = jwt.encode(
            {"sub": "x", "email": "alice@example.test", "aud": "ambitions-api"},
            "a-real-production-secret",
            algorithm="HS256",
            headers={"kid": "key-1"},
        )
        with pytest.raises(TokenValidationError):
            await validate_token(token, prod_settings)

    async def test_missing_jwks_file(self, prod_settings, rsa_key, tmp_path):
        settings = prod_settings.model_copy(
            update={"jwks_local_path": str(tmp_path / "absent.json")}
        )
        with pytest.raises(TokenValidationError, match="Signing keys unavailable"):
            await validate_token(_provider_token(rsa_key), settings)
