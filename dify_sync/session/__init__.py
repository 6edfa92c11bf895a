"""Console session handling."""

from dify_sync.session.store import (
    ConsoleSession,
    Credentials,
    PasswordSessionProvider,
    SessionProvider,
    SessionStore,
)

__all__ = [
    "ConsoleSession",
    "Credentials",
    "PasswordSessionProvider",
    "SessionProvider",
    "SessionStore",
]
