"""Console session persistence and sign-in."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

import httpx
import orjson
from atomicwrites import atomic_write
from pydantic import BaseModel, Field, ValidationError

from dify_sync.errors import SessionUnavailableError

logger = logging.getLogger(__name__)

CSRF_COOKIE = "csrf_token"


class Credentials(BaseModel):
    """Console sign-in credentials."""

    email: str
    password: str


class ConsoleSession(BaseModel):
    """Authenticated console session: cookie jar plus CSRF token."""

    cookies: dict[str, str] = Field(default_factory=dict)
    csrf_token: str
    base_url: str
    saved_at: datetime = Field(default_factory=datetime.now)

    @property
    def cookie_header(self) -> str:
        """Render the cookie jar as a Cookie header value."""
        return "; ".join(f"{name}={value}" for name, value in self.cookies.items())

    def matches(self, base_url: str) -> bool:
        return self.base_url.rstrip("/") == base_url.rstrip("/")


class SessionStore:
    """JSON file holding the last console session.

    Writes are atomic so an interrupted save never leaves a truncated file.

    Example:
        store = SessionStore(".dify-auth-state.json")
        session = store.load()
        if session is None:
            store.save(new_session)
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> ConsoleSession | None:
        """Return the stored session, or None if absent or unreadable."""
        if not self.path.exists():
            logger.debug("No session file at %s", self.path)
            return None

        try:
            payload: Any = orjson.loads(self.path.read_bytes())
            return ConsoleSession.model_validate(payload)
        except (orjson.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring invalid session file %s: %s", self.path, e)
            return None

    def save(self, session: ConsoleSession) -> None:
        """Write the session atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = orjson.dumps(session.model_dump(mode="json"), option=orjson.OPT_INDENT_2)
        try:
            with atomic_write(self.path, mode="wb", overwrite=True) as f:
                f.write(payload)
                f.write(b"\n")
        except OSError as e:
            logger.error("Failed to write session file %s: %s", self.path, e)
            raise

    def clear(self) -> bool:
        """Delete the session file. Returns True if one existed."""
        if not self.path.exists():
            return False
        self.path.unlink()
        return True


class SessionProvider(Protocol):
    """Source of authenticated console sessions."""

    def get_session(
        self, target_url: str, credentials: Credentials | None = None
    ) -> ConsoleSession: ...

    def clear_session(self) -> bool: ...


class PasswordSessionProvider:
    """Session provider that signs in with email and password.

    A stored session for the same base URL is reused as-is; it is not
    validated against the server.
    """

    def __init__(self, store: SessionStore, transport: httpx.BaseTransport | None = None):
        self.store = store
        self._transport = transport

    def get_session(
        self, target_url: str, credentials: Credentials | None = None
    ) -> ConsoleSession:
        """Return a reusable session, signing in when there is none.

        Raises:
            SessionUnavailableError: If nothing is stored and no credentials are given
            httpx.HTTPStatusError: If the sign-in request is rejected
        """
        stored = self.store.load()
        if stored is not None and stored.matches(target_url):
            logger.debug("Reusing console session saved at %s", stored.saved_at)
            return stored

        if credentials is None:
            raise SessionUnavailableError(
                "No console session available; set DIFY_EMAIL and DIFY_PASSWORD"
            )

        session = self._sign_in(target_url, credentials)
        self.store.save(session)
        return session

    def clear_session(self) -> bool:
        return self.store.clear()

    def _sign_in(self, target_url: str, credentials: Credentials) -> ConsoleSession:
        base_url = target_url.rstrip("/")
        logger.info("Signing in to %s as %s", base_url, credentials.email)

        with httpx.Client(base_url=base_url, transport=self._transport) as http:
            response = http.post(
                "/console/api/login",
                json={
                    "email": credentials.email,
                    "password": credentials.password,
                    "remember_me": True,
                },
            )
            response.raise_for_status()
            cookies = {name: value for name, value in http.cookies.items()}

        csrf_token = cookies.get(CSRF_COOKIE)
        if not csrf_token:
            raise SessionUnavailableError(f"Sign-in to {base_url} returned no {CSRF_COOKIE} cookie")

        return ConsoleSession(cookies=cookies, csrf_token=csrf_token, base_url=base_url)
