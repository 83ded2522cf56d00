# src/todo_ui_bff/session_data.py

from pydantic import BaseModel
from typing import Dict, Any, Optional


class SessionData(BaseModel):
    """
    Represents the data stored server-side for a browser session.
    Only a signed session ID is stored in the browser cookie.
    """
    user: Optional[Dict[str, Any]] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    oauth_state: Optional[str] = None  # Single-use, cleared on callback

    def store_tokens(self, access_token: Optional[str], refresh_token: Optional[str],
                     user: Optional[Dict[str, Any]]) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token
        # A user that is not a JSON object is dropped; identity then comes from introspection
        self.user = user if isinstance(user, dict) else None

    def clear(self) -> None:
        self.user = None
        self.access_token = None
        self.refresh_token = None
        self.oauth_state = None
