"""Current identity and credential for a client process."""
import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol

from chore_cycle.models.user import UserResponse

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
    def load(self) -> Optional[str]: ...

    def save(self, token: str) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStore:
    def __init__(self, token: Optional[str] = None):
        self._token = token

    def load(self) -> Optional[str]:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStore:
    """Keeps the token in a JSON file readable only by the current user."""

    def __init__(self, path: os.PathLike):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable token file %s", self.path)
            return None
        token = data.get("auth_token") if isinstance(data, dict) else None
        return token or None

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"auth_token": token}), encoding="utf-8")
        os.chmod(self.path, 0o600)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class Session:
    """Who is logged in, and with which token.

    Every client component reads identity from here. The token is persisted
    through the ``TokenStore``; the user is always re-fetched from the server.
    """

    def __init__(self, token_store: Optional[TokenStore] = None):
        self.token_store = token_store or MemoryTokenStore()
        self.token: Optional[str] = None
        self.user: Optional[UserResponse] = None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def display_name(self) -> Optional[str]:
        return self.user.full_name if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.user)

    def set_token(self, token: str) -> None:
        self.token = token
        self.token_store.save(token)

    def start(self, token: str, user: UserResponse) -> None:
        self.set_token(token)
        self.user = user
        logger.info("Session started for %s", user.email)

    def stored_token(self) -> Optional[str]:
        return self.token_store.load()

    def clear(self) -> None:
        if self.token or self.user:
            logger.info("Session cleared")
        self.token = None
        self.user = None
        self.token_store.clear()
