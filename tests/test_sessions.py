from urllib.parse import parse_qs, urlparse

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import ALICE, login_as
from todo_ui_bff.config import settings
from todo_ui_bff.identity_gateway import get_identity_gateway
from todo_ui_bff.main import app
from todo_ui_bff.session_data import SessionData
from todo_ui_bff.sessions import SessionStore, session_store, sign_session_id, unsign_session_id

SECRET = "s3cret"


def test_signed_session_id_round_trip():
    cookie = sign_session_id("abc-123", SECRET)
    assert cookie.startswith("abc-123.")
    assert unsign_session_id(cookie, SECRET) == "abc-123"


@pytest.mark.parametrize("cookie", [None, "", "no-signature", "abc-123.deadbeef"])
def test_unsign_rejects_bad_cookies(cookie):
    assert unsign_session_id(cookie, SECRET) is None


def test_unsign_rejects_other_secret():
    assert unsign_session_id(sign_session_id("abc-123", "other"), SECRET) is None


def test_store_get_set_destroy():
    store = SessionStore()
    session_id, data = store.create()
    assert store.get(session_id) is data

    replacement = SessionData(access_token="tok")
    store.set(session_id, replacement)
    assert store.get(session_id).access_token == "tok"

    store.destroy(session_id)
    assert store.get(session_id) is None
    store.destroy(session_id)


def test_store_expires_idle_sessions():
    store = SessionStore(max_age=-1)
    session_id, _ = store.create()
    assert store.get(session_id) is None


@pytest.mark.asyncio
async def test_session_cookie_attributes(client: AsyncClient):
    response = await client.get("/")
    cookie = next(c for c in response.headers.get_list("set-cookie") if c.startswith("session_id="))
    assert "HttpOnly" in cookie
    assert "Max-Age=86400" in cookie
    assert "samesite=lax" in cookie.lower()
    assert "Secure" not in cookie


@pytest.mark.asyncio
async def test_tampered_session_cookie_starts_fresh_session(client: AsyncClient, other_client: AsyncClient):
    await login_as(client, ALICE)
    signed = client.cookies["session_id"]
    session_id = signed.rpartition(".")[0]

    other_client.cookies.set("session_id", f"{session_id}.forged")
    response = await other_client.get("/api/user")
    assert response.status_code == 302

    other_client.cookies.clear()
    other_client.cookies.set("session_id", signed)
    response = await other_client.get("/api/user")
    assert response.json() == {"user": ALICE}


@pytest.mark.asyncio
async def test_logout_removes_server_side_record(client: AsyncClient):
    await login_as(client, ALICE)
    session_id = client.cookies["session_id"].rpartition(".")[0]
    assert session_store.get(session_id) is not None

    await client.post("/api/logout")
    assert session_store.get(session_id) is None


@pytest.mark.parametrize("user", ["alice", ["alice"], 7])
def test_store_tokens_drops_user_that_is_not_an_object(user):
    data = SessionData()
    data.store_tokens("tok", "ref", user)
    assert data.access_token == "tok"
    assert data.user is None


@pytest_asyncio.fixture
async def production_client(gateway, monkeypatch) -> AsyncClient:
    """A browser on https talking to the app with NODE_ENV=production."""
    monkeypatch.setattr(settings, "NODE_ENV", "production")
    app.dependency_overrides[get_identity_gateway] = lambda: gateway
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as c:
        yield c
    app.dependency_overrides.clear()


def _set_cookie(response, name: str) -> str:
    return next(c for c in response.headers.get_list("set-cookie") if c.startswith(f"{name}="))


@pytest.mark.asyncio
async def test_production_cookies_are_secure(production_client: AsyncClient):
    response = await production_client.get("/auth/login")
    assert "Secure" in _set_cookie(response, "session_id")
    state = parse_qs(urlparse(response.headers["location"]).query)["state"][0]

    response = await production_client.get("/auth/callback", params={"code": "code-alice", "state": state})
    assert response.headers["location"] == "/dashboard"
    for name in ("session_id", "accessToken", "refreshToken"):
        cookie = _set_cookie(response, name)
        assert "Secure" in cookie, name
        assert "HttpOnly" in cookie, name

    response = await production_client.post("/api/logout")
    for name in ("session_id", "accessToken", "refreshToken"):
        assert "Secure" in _set_cookie(response, name), name
