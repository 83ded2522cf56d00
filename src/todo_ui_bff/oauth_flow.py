# src/todo_ui_bff/oauth_flow.py
"""
Authorization-code flow against the identity service, as an explicit state machine:

    idle -> awaiting_callback -> exchanging -> authenticated
                      \\               \\
                       +-> failed      +-> failed

A failed flow is terminal; the browser has to start again at /auth/login.
"""

import enum
import logging
import secrets
import string
import typing
from dataclasses import dataclass
from urllib.parse import quote

from .errors import LOGIN_PATH, UpstreamAuthError
from .identity_gateway import IdentityGatewayClient
from .session_data import SessionData

logger = logging.getLogger(__name__)

STATE_LENGTH = 16
_STATE_ALPHABET = string.ascii_letters + string.digits

DASHBOARD_PATH = "/dashboard"


class FlowState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class FailureReason(str, enum.Enum):
    PROVIDER_ERROR = "provider_error"
    INVALID_STATE = "invalid_state"
    EXCHANGE_FAILED = "exchange_failed"


# Query value sent back to the login page for each failure
_REDIRECT_ERROR_CODES = {
    FailureReason.INVALID_STATE: "invalid_state",
    FailureReason.EXCHANGE_FAILED: "token_exchange_failed",
}


@dataclass
class FlowOutcome:
    state: FlowState
    reason: typing.Optional[FailureReason] = None
    provider_error: typing.Optional[str] = None
    access_token: typing.Optional[str] = None
    refresh_token: typing.Optional[str] = None
    user: typing.Optional[dict] = None

    @property
    def authenticated(self) -> bool:
        return self.state is FlowState.AUTHENTICATED

    @property
    def redirect_url(self) -> str:
        if self.authenticated:
            return DASHBOARD_PATH
        if self.reason is FailureReason.PROVIDER_ERROR:
            error_code = self.provider_error or ""
        else:
            error_code = _REDIRECT_ERROR_CODES[self.reason]
        return f"{LOGIN_PATH}?error={quote(error_code, safe='')}"


def generate_state(length: int = STATE_LENGTH) -> str:
    return "".join(secrets.choice(_STATE_ALPHABET) for _ in range(length))


def current_state(session: SessionData) -> FlowState:
    """Where a session sits in the flow between requests."""
    if session.oauth_state:
        return FlowState.AWAITING_CALLBACK
    if session.access_token:
        return FlowState.AUTHENTICATED
    return FlowState.IDLE


def _failed(reason: FailureReason, provider_error: typing.Optional[str] = None) -> FlowOutcome:
    return FlowOutcome(state=FlowState.FAILED, reason=reason, provider_error=provider_error)


class OAuthFlowController:
    def __init__(self, gateway: IdentityGatewayClient):
        self.gateway = gateway

    def begin(self, session: SessionData) -> str:
        """idle -> awaiting_callback. Returns the provider authorize URL."""
        previous = current_state(session)
        state = generate_state()
        session.oauth_state = state
        logger.info("OAUTH: Authorization started from %s, redirecting to identity service.", previous.value)
        return self.gateway.build_authorize_url(state=state)

    async def complete(
            self,
            session: SessionData,
            code: typing.Optional[str],
            state: typing.Optional[str],
            error: typing.Optional[str] = None,
    ) -> FlowOutcome:
        """Handles the provider callback; the stored state is consumed whatever the outcome."""
        expected_state = session.oauth_state
        session.oauth_state = None

        if error:
            logger.warning("OAUTH: Provider returned error: %s", error)
            return _failed(FailureReason.PROVIDER_ERROR, provider_error=error)

        if not expected_state or state != expected_state:
            logger.warning("OAUTH: State mismatch on callback (stored state present: %s).", bool(expected_state))
            return _failed(FailureReason.INVALID_STATE)

        logger.debug("OAUTH: %s -> %s", FlowState.AWAITING_CALLBACK.value, FlowState.EXCHANGING.value)
        if not code:
            logger.warning("OAUTH: Callback carried no authorization code.")
            return _failed(FailureReason.EXCHANGE_FAILED)
        try:
            token_result = await self.gateway.exchange_code(code)
        except UpstreamAuthError as e:
            logger.warning("OAUTH: Token exchange error: status=%s message=%s", e.status_code, e.message)
            return _failed(FailureReason.EXCHANGE_FAILED)

        outcome = FlowOutcome(
            state=FlowState.AUTHENTICATED,
            access_token=token_result.get("access_token"),
            refresh_token=token_result.get("refresh_token"),
        )
        session.store_tokens(outcome.access_token, outcome.refresh_token, token_result.get("user"))
        outcome.user = session.user
        logger.info("OAUTH: Callback successful, user id in session: %s", (outcome.user or {}).get("id"))
        return outcome
