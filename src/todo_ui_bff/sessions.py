# src/todo_ui_bff/sessions.py

import hashlib
import hmac
import logging
import threading
import time
import typing
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response as StarletteResponse

from .config import Settings
from .session_data import SessionData

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "session_id"
SESSION_COOKIE_MAX_AGE = 24 * 60 * 60  # 24 hours


class SessionStore:
    """In-memory session records keyed by opaque session id.

    Records live for the lifetime of the process and expire ``max_age``
    seconds after they were last touched.
    """

    def __init__(self, max_age: int = SESSION_COOKIE_MAX_AGE):
        self._max_age = max_age
        self._records: typing.Dict[str, typing.Tuple[SessionData, float]] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> typing.Optional[SessionData]:
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return None
            data, last_seen = record
            now = time.monotonic()
            if now - last_seen > self._max_age:
                del self._records[session_id]
                return None
            self._records[session_id] = (data, now)
            return data

    def set(self, session_id: str, data: SessionData) -> None:
        with self._lock:
            self._records[session_id] = (data, time.monotonic())

    def create(self) -> typing.Tuple[str, SessionData]:
        session_id = str(uuid.uuid4())
        data = SessionData()
        with self._lock:
            self._prune_expired()
            self._records[session_id] = (data, time.monotonic())
        return session_id, data

    def destroy(self, session_id: str) -> None:
        with self._lock:
            self._records.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def _prune_expired(self) -> None:
        cutoff = time.monotonic() - self._max_age
        expired = [sid for sid, (_, last_seen) in self._records.items() if last_seen < cutoff]
        for sid in expired:
            del self._records[sid]


session_store = SessionStore()


def sign_session_id(session_id: str, secret: str) -> str:
    signature = hmac.new(secret.encode(), session_id.encode(), hashlib.sha256).hexdigest()
    return f"{session_id}.{signature}"


def unsign_session_id(cookie_value: typing.Optional[str], secret: str) -> typing.Optional[str]:
    if not cookie_value or "." not in cookie_value:
        return None
    session_id, _, signature = cookie_value.rpartition(".")
    expected = hmac.new(secret.encode(), session_id.encode(), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(signature, expected):
        logger.warning("Session cookie with invalid signature ignored.")
        return None
    return session_id


class SessionMiddlewareCustom(BaseHTTPMiddleware):
    """Loads the session named by the signed cookie, or starts one, and writes the cookie back."""

    def __init__(self, app, store: SessionStore, config: Settings):
        super().__init__(app)
        self.store = store
        self.config = config

    @property
    def secret(self) -> str:
        return self.config.SESSION_SECRET

    @property
    def secure(self) -> bool:
        return self.config.is_production

    async def dispatch(self, request, call_next):
        session_id = unsign_session_id(request.cookies.get(SESSION_COOKIE_NAME), self.secret)
        session = self.store.get(session_id) if session_id else None
        if session is None:
            session_id, session = self.store.create()
        request.state.session_id = session_id
        request.state.session = session
        request.state.session_destroyed = False

        response: StarletteResponse = await call_next(request)

        if request.state.session_destroyed:
            self.store.destroy(session_id)
            response.delete_cookie(
                SESSION_COOKIE_NAME,
                httponly=True,
                secure=self.secure,
                samesite="lax",
            )
        else:
            response.set_cookie(
                SESSION_COOKIE_NAME,
                sign_session_id(request.state.session_id, self.secret),
                max_age=SESSION_COOKIE_MAX_AGE,
                httponly=True,
                secure=self.secure,
                samesite="lax",
            )
        return response


def get_session(request: Request) -> SessionData:
    return request.state.session


def destroy_session(request: Request) -> None:
    """Mark the session for removal; the middleware drops the record and the cookie."""
    request.state.session = SessionData()
    request.state.session_destroyed = True
