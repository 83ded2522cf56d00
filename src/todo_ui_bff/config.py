# src/todo_ui_bff/config.py

import logging
from pathlib import Path
from typing import Any, List, Union

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# .env is at the project root, two levels up from src/todo_ui_bff/
CONFIG_FILE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT_DIR = CONFIG_FILE_DIR.parent.parent
PACKAGE_DIR = CONFIG_FILE_DIR
ENV_FILE_PATH = PROJECT_ROOT_DIR / ".env"


def load_env_file(path: Path) -> bool:
    """
    Loads `path` into the environment without overriding what is already set.
    Runs at import, before logging is configured, so it reports at WARNING
    where the last-resort handler still shows it.
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=False)
        logger.warning("Todo-UI-BFF: loaded .env file from: %s", path)
        return True
    logger.warning("Todo-UI-BFF: no .env file at %s. Relying on environment variables.", path)
    return False


load_env_file(ENV_FILE_PATH)


class Settings(BaseSettings):
    # === Session Management ===
    SESSION_SECRET: str
    NODE_ENV: str = "development"

    # === Server ===
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"

    # === Identity service / OAuth client registration ===
    CLIENT_ID: str
    CLIENT_SECRET: str
    REDIRECT_URI: AnyHttpUrl
    AUTH_SERVICE_URL: AnyHttpUrl
    # Comma- or space-separated in the environment, a list once validated
    OAUTH_SCOPES: Union[str, List[str]] = ["openid", "email", "profile"]
    AUTH_HTTP_TIMEOUT_SECONDS: float = 10.0

    # Whether POST /api/login also mirrors the tokens into cookies like the OAuth callback does
    DIRECT_LOGIN_SET_COOKIES: bool = False

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    @property
    def is_production(self) -> bool:
        return self.NODE_ENV == "production"

    @property
    def auth_service_base_url(self) -> str:
        return str(self.AUTH_SERVICE_URL).rstrip("/")

    @field_validator("OAUTH_SCOPES", mode='before')
    @classmethod
    def parse_scopes(cls, v: Any) -> List[str]:
        if isinstance(v, str):
            return [scope for scope in v.replace(",", " ").split() if scope]
        if isinstance(v, list):
            return v
        raise TypeError('OAUTH_SCOPES: Expected a comma/space-separated string or a list.')

    @field_validator("AUTH_HTTP_TIMEOUT_SECONDS")
    @classmethod
    def check_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("AUTH_HTTP_TIMEOUT_SECONDS must be positive.")
        return v


try:
    settings = Settings()
except Exception as e:
    logger.exception("Todo-UI-BFF: Error instantiating Settings: %s", e)
    raise
