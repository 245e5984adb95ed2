import time

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

from duet_chat.api.v1 import dependencies
from duet_chat.core.errors import AuthError
from duet_chat.models.user import AUTH_PROVIDER_GOOGLE
from duet_chat.services.oauth import GoogleTokenVerifier, sign_in_with_google

CLIENT_ID = "duet-web.apps.googleusercontent.com"
JWKS_URL = "https://keys.google.test/oauth2/v3/certs"


@pytest.fixture(scope="module")
def signing_key():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = "test-key"
    return private_pem, {"keys": [public_jwk]}


@pytest.fixture
def jwks_requests():
    return []


@pytest.fixture
def verifier(signing_key, jwks_requests):
    _, jwks = signing_key

    def handler(request: httpx.Request) -> httpx.Response:
        jwks_requests.append(request)
        return httpx.Response(200, json=jwks)

    return GoogleTokenVerifier(
        client_id=CLIENT_ID,
        jwks_url=JWKS_URL,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def make_id_token(signing_key):
    private_pem, _ = signing_key

    def _make(**overrides):
        now = int(time.time())
        claims = {
            "iss": "https://accounts.google.com",
            "aud": CLIENT_ID,
            "sub": "google-sub-1",
            "email": "erin@example.com",
            "email_verified": True,
            "name": "Erin",
            "picture": "https://lh3.googleusercontent.test/erin.png",
            "iat": now,
            "exp": now + 600,
        }
        claims.update(overrides)
        return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": "test-key"})

    return _make


@pytest.mark.asyncio
async def test_first_google_sign_in_creates_profile(db_session, verifier, make_id_token):
    session = await sign_in_with_google(db_session, make_id_token(), verifier=verifier)

    assert session.persistence == "local"
    assert session.user.email == "erin@example.com"
    assert session.user.name == "Erin"
    assert session.user.image == "https://lh3.googleusercontent.test/erin.png"
    assert session.user.provider == AUTH_PROVIDER_GOOGLE
    assert session.user.google_subject == "google-sub-1"


@pytest.mark.asyncio
async def test_google_sign_in_links_existing_account(db_session, make_user, verifier, make_id_token):
    existing = make_user("Erin")
    session = await sign_in_with_google(
        db_session, make_id_token(), remember=False, verifier=verifier
    )

    assert session.user.id == existing.id
    assert session.user.google_subject == "google-sub-1"
    assert session.persistence == "session"


@pytest.mark.asyncio
async def test_signing_keys_are_cached(verifier, make_id_token, jwks_requests):
    await verifier.verify(make_id_token())
    await verifier.verify(make_id_token(sub="google-sub-2"))
    assert len(jwks_requests) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"aud": "someone-else"},
        {"iss": "https://evil.example.com"},
        {"email_verified": False},
        {"exp": int(time.time()) - 60},
    ],
)
async def test_rejects_untrusted_tokens(verifier, make_id_token, overrides):
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify(make_id_token(**overrides))
    assert excinfo.value.code == "auth/invalid-credential"


@pytest.mark.asyncio
async def test_rejects_garbage(verifier):
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("not-a-token")
    assert excinfo.value.code == "auth/invalid-credential"


@pytest.mark.asyncio
async def test_disabled_without_client_id(make_id_token):
    verifier = GoogleTokenVerifier(client_id="", jwks_url=JWKS_URL)
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify(make_id_token())
    assert excinfo.value.code == "auth/operation-not-allowed"


@pytest.mark.asyncio
async def test_unreachable_key_endpoint(make_id_token):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    verifier = GoogleTokenVerifier(
        client_id=CLIENT_ID, jwks_url=JWKS_URL, transport=httpx.MockTransport(handler)
    )
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify(make_id_token())
    assert excinfo.value.code == "auth/network-request-failed"
    assert excinfo.value.status_code == 503


def test_google_endpoint_returns_session(app, client, verifier, make_id_token):
    app.dependency_overrides[dependencies.get_verifier] = lambda: verifier
    try:
        response = client.post("/api/v1/auth/oauth/google", json={"id_token": make_id_token()})
        rejected = client.post(
            "/api/v1/auth/oauth/google", json={"id_token": make_id_token(aud="other")}
        )
    finally:
        app.dependency_overrides.pop(dependencies.get_verifier, None)

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "erin@example.com"
    assert rejected.status_code == 401
    assert rejected.json()["detail"]["code"] == "auth/invalid-credential"
