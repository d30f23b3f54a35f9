"""
Authenticated session for LabDesk

The session is an explicit object handed to the API client and the screens.
Only the opaque token survives a restart; the user record is known again
after the next login.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import AuthenticationException

logger = logging.getLogger(__name__)


class TokenStore:
    """Persists the session token in a single file"""

    def __init__(self, path):
        self.path = Path(path).expanduser()

    def read(self) -> Optional[str]:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return token or None

    def write(self, token: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token, encoding="utf-8")
        try:
            self.path.chmod(0o600)
        except OSError:
            logger.warning(f"Could not restrict permissions on {self.path}")

    def clear(self):
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class SessionContext:
    """Current identity (user, token) gating every screen"""

    def __init__(self, store: TokenStore):
        self.store = store
        self.user: Optional[Dict[str, Any]] = None
        self.token: Optional[str] = None

    def restore(self) -> bool:
        """Load the persisted token; returns whether a session exists"""
        self.token = self.store.read()
        self.user = None
        if self.token:
            logger.info("Session restored from persisted token")
        return self.is_authenticated

    async def login(self, client, username: str, password: str) -> Dict[str, Any]:
        """Exchange credentials for a token and persist it"""
        response = await client.login(username, password)
        self.user = response.user
        self.token = response.token
        self.store.write(response.token)
        logger.info(f"User logged in: {self.display_name}")
        return self.user

    def logout(self):
        logger.info(f"User logged out: {self.display_name}")
        self.user = None
        self.token = None
        self.store.clear()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def display_name(self) -> str:
        if not self.user:
            return "unknown"
        return str(self.user.get("name") or self.user.get("username") or "unknown")

    @property
    def authorization_header(self) -> str:
        """Bearer credential, empty when there is no token"""
        return f"Bearer {self.token}" if self.token else ""

    def require(self):
        if not self.is_authenticated:
            raise AuthenticationException("You must log in first", "NOT_AUTHENTICATED")
