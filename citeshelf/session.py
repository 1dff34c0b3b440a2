"""Bearer-token session shared by every authenticated call."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .errors import NotAuthenticatedError

logger = logging.getLogger(__name__)

TOKEN_KEY = "access_token"


class TokenStore:
    """Persist the access token in a small JSON file."""

    def __init__(self, home_dir: Optional[Path] = None):
        if home_dir is None:
            home_dir = Path.home() / ".citeshelf"
        try:
            Path(home_dir).mkdir(parents=True, exist_ok=True)
        except (PermissionError, OSError):
            home_dir = Path(os.getcwd()) / ".citeshelf"
            home_dir.mkdir(parents=True, exist_ok=True)
        self.path = Path(home_dir) / "session.json"

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return None
        token = data.get(TOKEN_KEY) if isinstance(data, dict) else None
        return token or None

    def save(self, token: str) -> None:
        self.path.write_text(json.dumps({TOKEN_KEY: token}), encoding="utf-8")
        try:
            os.chmod(self.path, 0o600)
        except OSError:
            pass

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


class AuthSession:
    """
    Holds the current bearer token.

    The session is the only place the token is cleared: the API client
    calls invalidate() when the service answers 401.
    """

    def __init__(self, token: Optional[str] = None, store: Optional[TokenStore] = None):
        self.store = store
        if token is None and store is not None:
            token = store.load()
        self._token = token or None

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def login(self, token: str) -> None:
        token = token.strip()
        if not token:
            raise ValueError("Token must not be empty")
        self._token = token
        if self.store:
            self.store.save(token)

    def require_token(self) -> str:
        if self._token is None:
            raise NotAuthenticatedError()
        return self._token

    def authorization_header(self) -> dict:
        return {"Authorization": f"Bearer {self.require_token()}"}

    def invalidate(self) -> None:
        """Forget the token, in memory and on disk."""
        if self._token is not None:
            logger.info("Clearing rejected access token")
        self._token = None
        if self.store:
            self.store.clear()
