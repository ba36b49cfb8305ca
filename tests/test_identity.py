from __future__ import annotations

import jwt
import pytest
from appwrite.exception import AppwriteException

from app.features.auth.errors import IdentityProviderError
from app.features.auth.identity import AppwriteIdentityProvider, Identity, JWTIdentityProvider
from conftest import JWT_SECRET, make_token


@pytest.mark.asyncio
async def test_jwt_provider_returns_identity_with_claims():
    provider = JWTIdentityProvider(JWT_SECRET)
    identity = await provider.verify(make_token("user-1", email="user-1@example.com"))

    assert isinstance(identity, Identity)
    assert identity.subject_id == "user-1"
    assert identity.email == "user-1@example.com"
    assert identity.claims["sub"] == "user-1"


@pytest.mark.asyncio
async def test_jwt_provider_accepts_appwrite_user_id_claim():
    token = jwt.encode({"userId": "aw-42", "sessionId": "s"}, JWT_SECRET, algorithm="HS256")
    identity = await JWTIdentityProvider(JWT_SECRET).verify(token)
    assert identity is not None
    assert identity.subject_id == "aw-42"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "token",
    [
        make_token("user-1", expires_in=-60),
        make_token("user-1", secret="other-secret"),
        jwt.encode({"email": "nobody@example.com"}, JWT_SECRET, algorithm="HS256"),
        "not-a-jwt",
    ],
    ids=["expired", "wrong-secret", "no-subject", "garbage"],
)
async def test_jwt_provider_rejects_bad_tokens(token):
    assert await JWTIdentityProvider(JWT_SECRET).verify(token) is None


@pytest.mark.asyncio
async def test_jwt_provider_checks_audience_when_configured():
    provider = JWTIdentityProvider(JWT_SECRET, audience="authenticated")

    assert await provider.verify(make_token("user-1", aud="authenticated")) is not None
    assert await provider.verify(make_token("user-1", aud="anon")) is None
    assert await provider.verify(make_token("user-1")) is None


@pytest.mark.asyncio
async def test_jwt_provider_ignores_audience_when_not_configured():
    assert await JWTIdentityProvider(JWT_SECRET).verify(make_token("user-1", aud="authenticated")) is not None


def test_jwt_provider_requires_secret():
    with pytest.raises(IdentityProviderError):
        JWTIdentityProvider("")


def test_appwrite_provider_requires_endpoint_and_project():
    with pytest.raises(IdentityProviderError):
        AppwriteIdentityProvider(None, "project")


def _appwrite_provider(monkeypatch: pytest.MonkeyPatch, outcome) -> AppwriteIdentityProvider:
    provider = AppwriteIdentityProvider("https://appwrite.test/v1", "project")

    def fake_get_account(token: str) -> dict:
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(provider, "_get_account", fake_get_account)
    return provider


@pytest.mark.asyncio
async def test_appwrite_provider_maps_account_to_identity(monkeypatch: pytest.MonkeyPatch):
    provider = _appwrite_provider(monkeypatch, {"$id": "aw-1", "email": "staff@example.com"})
    identity = await provider.verify("jwt")

    assert identity is not None
    assert identity.subject_id == "aw-1"
    assert identity.email == "staff@example.com"


@pytest.mark.asyncio
async def test_appwrite_provider_treats_401_as_invalid_token(monkeypatch: pytest.MonkeyPatch):
    provider = _appwrite_provider(monkeypatch, AppwriteException("Failed to verify JWT", 401))
    assert await provider.verify("jwt") is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        AppwriteException("Server Error", 500),
        AppwriteException("Connection refused"),
    ],
    ids=["server-error", "transport"],
)
async def test_appwrite_provider_surfaces_unexpected_failures(monkeypatch: pytest.MonkeyPatch, error):
    provider = _appwrite_provider(monkeypatch, error)
    with pytest.raises(IdentityProviderError):
        await provider.verify("jwt")


@pytest.mark.asyncio
async def test_appwrite_provider_rejects_account_without_id(monkeypatch: pytest.MonkeyPatch):
    provider = _appwrite_provider(monkeypatch, {"email": "staff@example.com"})
    with pytest.raises(IdentityProviderError):
        await provider.verify("jwt")


@pytest.mark.asyncio
async def test_jwt_provider_surfaces_key_misconfiguration(monkeypatch: pytest.MonkeyPatch):
    def decode_with_bad_key(*args, **kwargs):
        raise jwt.InvalidKeyError("Could not parse the provided public key.")

    monkeypatch.setattr(jwt, "decode", decode_with_bad_key)
    with pytest.raises(IdentityProviderError):
        await JWTIdentityProvider(JWT_SECRET, algorithms=["RS256"]).verify(make_token("user-1"))
