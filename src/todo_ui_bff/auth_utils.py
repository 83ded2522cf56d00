# src/todo_ui_bff/auth_utils.py
import logging
import typing

from fastapi import Depends, Request, Response

from .errors import NotAuthenticated, UpstreamAuthError
from .identity_gateway import IdentityGatewayClient, get_identity_gateway
from .session_data import SessionData
from .sessions import get_session

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

_CLAIM_USER_ID_KEYS = ("userId", "user_id", "id", "sub")


def get_bearer_token(request: Request, session: SessionData) -> typing.Optional[str]:
    """The session-held access token wins over the cookie copy."""
    return session.access_token or request.cookies.get(ACCESS_TOKEN_COOKIE)


def user_from_claims(claims: dict) -> typing.Optional[dict]:
    for key in _CLAIM_USER_ID_KEYS:
        if claims.get(key) is not None:
            user = {"id": claims[key]}
            if claims.get("email"):
                user["email"] = claims["email"]
            return user
    return None


async def get_authenticated_user(
        request: Request,
        session: SessionData = Depends(get_session),
        gateway: IdentityGatewayClient = Depends(get_identity_gateway),
) -> dict:
    """
    Gates a protected route. Every call introspects the bearer token once;
    a missing, inactive or unverifiable token sends the browser to /login.
    """
    token = get_bearer_token(request, session)
    if not token:
        raise NotAuthenticated("missing_token")

    try:
        claims = await gateway.introspect(token)
    except UpstreamAuthError as e:
        logger.warning("AUTH: Token validation error for %s: status=%s", request.url.path, e.status_code)
        raise NotAuthenticated("introspection_failed") from e

    if not claims.get("active"):
        logger.info("AUTH: Inactive token presented for %s.", request.url.path)
        raise NotAuthenticated("inactive_token")

    request.state.identity = claims
    user = session.user if isinstance(session.user, dict) else None
    user = user or user_from_claims(claims)
    if not user or user.get("id") is None:
        logger.warning("AUTH: Active token for %s but no user id could be resolved.", request.url.path)
        raise NotAuthenticated("unknown_user")
    return user


# --- Token cookies ---
ACCESS_TOKEN_COOKIE_MAX_AGE = 60 * 60  # 1 hour
REFRESH_TOKEN_COOKIE_MAX_AGE = 30 * 24 * 60 * 60  # 30 days


def set_token_cookies(response: Response, access_token: typing.Optional[str],
                      refresh_token: typing.Optional[str], secure: bool) -> None:
    if access_token:
        response.set_cookie(
            key=ACCESS_TOKEN_COOKIE,
            value=access_token,
            max_age=ACCESS_TOKEN_COOKIE_MAX_AGE,
            httponly=True,
            secure=secure,
            samesite="lax",
        )
    if refresh_token:
        response.set_cookie(
            key=REFRESH_TOKEN_COOKIE,
            value=refresh_token,
            max_age=REFRESH_TOKEN_COOKIE_MAX_AGE,
            httponly=True,
            secure=secure,
            samesite="lax",
        )


def clear_token_cookies(response: Response, secure: bool) -> None:
    for key in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(key=key, httponly=True, secure=secure, samesite="lax")
