# src/todo_ui_bff/main.py

import logging
import typing
from contextlib import asynccontextmanager

from fastapi import Body, Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from . import auth_utils
from .config import PACKAGE_DIR, settings
from .errors import UpstreamAuthError, failure_response, register_error_handlers
from .identity_gateway import IdentityGatewayClient, get_identity_gateway
from .oauth_flow import OAuthFlowController
from .session_data import SessionData
from .sessions import SessionMiddlewareCustom, destroy_session, get_session, session_store
from .todo_routes import router as todo_router

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(application: FastAPI):
    configure_logging()
    logger.info("--- Todo-UI-BFF (FastAPI) Starting Up ---")
    logger.info("Environment: %s", settings.NODE_ENV)
    logger.info("Client ID: %s", settings.CLIENT_ID)
    logger.info("Redirect URI: %s", settings.REDIRECT_URI)
    logger.info("Auth Service URL: %s", settings.auth_service_base_url)
    logger.info("OAuth Scopes: %s", settings.OAUTH_SCOPES)
    logger.info("Direct login sets token cookies: %s", settings.DIRECT_LOGIN_SET_COOKIES)
    logger.info("Client app running on http://localhost:%s", settings.PORT)
    yield
    logger.info("--- Todo-UI-BFF shutting down ---")


# --- FastAPI App Setup ---
app = FastAPI(
    title="Todo-UI-BFF",
    description="Backend-For-Frontend for the to-do web UI, handling auth against the identity service.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    SessionMiddlewareCustom,
    store=session_store,
    config=settings,
)

register_error_handlers(app)

# --- Static Files and Templates ---
app.mount("/static", StaticFiles(directory=PACKAGE_DIR / "static"), name="static")
templates = Jinja2Templates(directory=PACKAGE_DIR / "templates")

app.include_router(todo_router)


def get_oauth_flow(gateway: IdentityGatewayClient = Depends(get_identity_gateway)) -> OAuthFlowController:
    return OAuthFlowController(gateway)


class LoginRequest(BaseModel):
    email: typing.Optional[str] = None
    password: typing.Optional[str] = None


# --- Pages ---
@app.get("/")
async def index_page(request: Request):
    return templates.TemplateResponse(request, "index.html")


@app.get("/login")
async def login_page(request: Request):
    return templates.TemplateResponse(request, "login.html", {"error": request.query_params.get("error")})


@app.get("/register")
async def register_page(request: Request):
    return templates.TemplateResponse(request, "register.html")


@app.get("/dashboard")
async def dashboard_page(request: Request, user: dict = Depends(auth_utils.get_authenticated_user)):
    return templates.TemplateResponse(request, "dashboard.html", {"user": user})


@app.get("/health")
async def health_check():
    return {"status": "ok"}


# --- OAuth authorization-code flow ---
@app.get("/auth/login")
async def oauth_login(
        session: SessionData = Depends(get_session),
        flow: OAuthFlowController = Depends(get_oauth_flow),
):
    return RedirectResponse(url=flow.begin(session), status_code=status.HTTP_302_FOUND)


@app.get("/auth/callback")
async def oauth_callback(
        code: typing.Optional[str] = None,
        state: typing.Optional[str] = None,
        error: typing.Optional[str] = None,
        session: SessionData = Depends(get_session),
        flow: OAuthFlowController = Depends(get_oauth_flow),
):
    outcome = await flow.complete(session, code=code, state=state, error=error)
    response = RedirectResponse(url=outcome.redirect_url, status_code=status.HTTP_302_FOUND)
    if outcome.authenticated:
        auth_utils.set_token_cookies(response, outcome.access_token, outcome.refresh_token,
                                     secure=settings.is_production)
    return response


# --- Direct credential API ---
@app.post("/api/login")
async def api_login(
        body: LoginRequest,
        session: SessionData = Depends(get_session),
        gateway: IdentityGatewayClient = Depends(get_identity_gateway),
):
    try:
        result = await gateway.login(body.email, body.password)
    except UpstreamAuthError as e:
        return failure_response(e.response_status, e.message or "Login failed")

    session.store_tokens(result.get("accessToken"), result.get("refreshToken"), result.get("user"))
    response = JSONResponse({"success": True, "user": session.user})
    if settings.DIRECT_LOGIN_SET_COOKIES:
        auth_utils.set_token_cookies(response, session.access_token, session.refresh_token,
                                     secure=settings.is_production)
    return response


@app.post("/api/register")
async def api_register(
        fields: typing.Dict[str, typing.Any] = Body(...),
        gateway: IdentityGatewayClient = Depends(get_identity_gateway),
):
    try:
        result = await gateway.register(fields)
    except UpstreamAuthError as e:
        return failure_response(e.response_status, e.message or "Registration failed")
    return {"success": True, "message": result.get("message")}


@app.get("/api/user")
async def api_user(user: dict = Depends(auth_utils.get_authenticated_user)):
    return {"user": user}


@app.post("/api/logout")
async def api_logout(
        request: Request,
        session: SessionData = Depends(get_session),
        gateway: IdentityGatewayClient = Depends(get_identity_gateway),
):
    if session.access_token:
        try:
            await gateway.logout(session.access_token)
        except UpstreamAuthError as e:
            # The local session goes regardless of what the identity service says
            logger.warning("LOGOUT: Upstream logout failed (status=%s); destroying session anyway.", e.status_code)
        except Exception:
            logger.warning("LOGOUT: Upstream logout raised; destroying session anyway.", exc_info=True)

    destroy_session(request)
    response = JSONResponse({"success": True})
    auth_utils.clear_token_cookies(response, secure=settings.is_production)
    return response


def run() -> None:
    import uvicorn

    uvicorn.run("todo_ui_bff.main:app", host=settings.HOST, port=settings.PORT)
