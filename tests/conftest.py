"""Shared test fixtures: fake identity service, ASGI test client, store resets."""

import base64
import json
import os
from urllib.parse import parse_qs

os.environ.update({
    "SESSION_SECRET": "test-session-secret",
    "NODE_ENV": "test",
    "CLIENT_ID": "todo-web-client",
    "CLIENT_SECRET": "todo-web-secret",
    "REDIRECT_URI": "http://test/auth/callback",
    "AUTH_SERVICE_URL": "http://identity.test",
})

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from todo_ui_bff.config import settings  # noqa: E402
from todo_ui_bff.identity_gateway import IdentityGatewayClient, get_identity_gateway  # noqa: E402
from todo_ui_bff.main import app  # noqa: E402
from todo_ui_bff.sessions import session_store  # noqa: E402
from todo_ui_bff.todo_store import todo_store  # noqa: E402

ALICE = {
    "id": 1,
    "email": "alice@example.com",
    "firstName": "Alice",
    "lastName": "Anders",
    "role": "user",
    "isVerified": True,
}
BOB = {
    "id": 2,
    "email": "bob@example.com",
    "firstName": "Bob",
    "lastName": "Berg",
    "role": "user",
    "isVerified": False,
}
PASSWORD = "correct-horse"


class FakeIdentityService:
    """Scriptable stand-in for the identity service, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.users = {ALICE["email"]: ALICE, BOB["email"]: BOB}
        self.codes = {"code-alice": ALICE, "code-bob": BOB}
        self.active_tokens: dict[str, dict] = {}
        self.failures: dict[str, tuple[int, dict]] = {}
        self.unreachable: set[str] = set()
        # Introspection answers with only `sub` (a string) as the subject id
        self.sub_only_claims = False
        self.requests: list[httpx.Request] = []
        self._issued = 0

    def issue_token(self, user: dict) -> str:
        self._issued += 1
        token = f"access-{user['id']}-{self._issued}"
        self.active_tokens[token] = user
        return token

    def revoke_all(self) -> None:
        self.active_tokens.clear()

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.unreachable:
            raise httpx.ConnectError("identity service down", request=request)
        if path in self.failures:
            status_code, body = self.failures[path]
            return httpx.Response(status_code, json=body)

        if path == "/login":
            body = json.loads(request.content)
            user = self.users.get(body.get("email"))
            if user is None or body.get("password") != PASSWORD:
                return httpx.Response(401, json={"message": "Invalid email or password"})
            return httpx.Response(200, json={
                "accessToken": self.issue_token(user),
                "refreshToken": f"refresh-{user['id']}",
                "user": user,
            })

        if path == "/register":
            body = json.loads(request.content)
            if body.get("email") in self.users:
                return httpx.Response(409, json={"message": "Email already registered"})
            return httpx.Response(201, json={"message": "Registration successful"})

        if path == "/auth/token":
            body = json.loads(request.content)
            user = self.codes.get(body.get("code"))
            if user is None or body.get("client_secret") != settings.CLIENT_SECRET:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(200, json={
                "access_token": self.issue_token(user),
                "refresh_token": f"refresh-{user['id']}",
                "user": user,
            })

        if path == "/introspect":
            expected = base64.b64encode(
                f"{settings.CLIENT_ID}:{settings.CLIENT_SECRET}".encode()
            ).decode()
            if request.headers.get("Authorization") != f"Basic {expected}":
                return httpx.Response(401, json={"message": "invalid client"})
            form = parse_qs(request.content.decode())
            user = self.active_tokens.get(form.get("token", [""])[0])
            if user is None:
                return httpx.Response(200, json={"active": False})
            if self.sub_only_claims:
                return httpx.Response(200, json={"active": True, "sub": str(user["id"])})
            return httpx.Response(200, json={
                "active": True,
                "sub": str(user["id"]),
                "userId": user["id"],
                "email": user["email"],
                "client_id": settings.CLIENT_ID,
            })

        if path == "/logout":
            token = request.headers.get("Authorization", "").removeprefix("Bearer ")
            self.active_tokens.pop(token, None)
            return httpx.Response(200, json={"message": "Logged out"})

        return httpx.Response(404, json={"message": "not found"})


@pytest.fixture(autouse=True)
def reset_stores():
    session_store.clear()
    todo_store.clear()
    yield
    session_store.clear()
    todo_store.clear()


@pytest.fixture
def identity_service() -> FakeIdentityService:
    return FakeIdentityService()


@pytest.fixture
def gateway(identity_service: FakeIdentityService) -> IdentityGatewayClient:
    return IdentityGatewayClient(settings, transport=httpx.MockTransport(identity_service.handler))


@pytest_asyncio.fixture
async def client(gateway: IdentityGatewayClient) -> AsyncClient:
    """Yield an httpx AsyncClient wired to the fake identity service."""
    app.dependency_overrides[get_identity_gateway] = lambda: gateway
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def other_client(client: AsyncClient) -> AsyncClient:
    """A second browser with its own cookie jar, sharing the same app and identity service."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def login_as(client: AsyncClient, user: dict) -> httpx.Response:
    response = await client.post("/api/login", json={"email": user["email"], "password": PASSWORD})
    assert response.status_code == 200
    return response
