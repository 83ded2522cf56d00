# src/todo_ui_bff/identity_gateway.py

import logging
import typing
from urllib.parse import urlencode

import httpx

from .config import Settings, settings
from .errors import UpstreamAuthError

logger = logging.getLogger(__name__)


class IdentityGatewayClient:
    """
    Thin pass-through to the external identity service.
    Every operation is a single HTTP request with a bounded timeout and no retry.
    """

    def __init__(self, config: Settings, transport: typing.Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.base_url = config.auth_service_base_url
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.AUTH_HTTP_TIMEOUT_SECONDS,
            transport=self._transport,
        )

    async def _post(self, path: str, operation: str, **kwargs) -> httpx.Response:
        async with self._client() as client:
            try:
                response = await client.post(path, **kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                message = _upstream_message(e.response)
                logger.warning("IDENTITY: %s failed: %s - %s", operation, e.response.status_code, message or e.response.text)
                raise UpstreamAuthError(status_code=e.response.status_code, message=message) from e
            except httpx.RequestError as e:
                logger.warning("IDENTITY: %s could not reach identity service: %s", operation, e)
                raise UpstreamAuthError(status_code=None, message=None) from e

    # --- Authorization-code flow ---

    def build_authorize_url(self, state: str, scopes: typing.Optional[typing.List[str]] = None) -> str:
        if not scopes:
            scopes = self.config.OAUTH_SCOPES
        params = {
            "client_id": self.config.CLIENT_ID,
            "redirect_uri": str(self.config.REDIRECT_URI),
            "response_type": "code",
            "state": state,
            "scope": " ".join(scopes),
        }
        return f"{self.base_url}/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: typing.Optional[str] = None) -> dict:
        """Exchanges an authorization code for ``{access_token, refresh_token, user}``."""
        response = await self._post(
            "/auth/token",
            "token exchange",
            json={
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self.config.CLIENT_ID,
                "client_secret": self.config.CLIENT_SECRET,
                "redirect_uri": redirect_uri or str(self.config.REDIRECT_URI),
            },
        )
        return _json_body(response)

    async def introspect(self, token: str) -> dict:
        """RFC 7662 token introspection, authenticated with the client credentials."""
        response = await self._post(
            "/introspect",
            "introspection",
            data={"token": token, "token_type_hint": "access_token"},
            auth=httpx.BasicAuth(self.config.CLIENT_ID, self.config.CLIENT_SECRET),
        )
        return _json_body(response)

    # --- Direct credential operations ---

    async def login(self, email: typing.Optional[str], password: typing.Optional[str]) -> dict:
        response = await self._post("/login", "login", json={"email": email, "password": password})
        return _json_body(response)

    async def register(self, fields: typing.Dict[str, typing.Any]) -> dict:
        response = await self._post("/register", "register", json=fields)
        return _json_body(response)

    async def logout(self, access_token: str) -> None:
        await self._post("/logout", "logout", json={}, headers={"Authorization": f"Bearer {access_token}"})


def _json_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _upstream_message(response: httpx.Response) -> typing.Optional[str]:
    body = _json_body(response)
    message = body.get("message")
    return message if isinstance(message, str) else None


_gateway = IdentityGatewayClient(settings)


def get_identity_gateway() -> IdentityGatewayClient:
    return _gateway
