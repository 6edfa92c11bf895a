"""Exception hierarchy for dify-sync."""

from pathlib import Path
from typing import Any


class DifySyncError(Exception):
    """Base class for all dify-sync errors."""


class ConfigurationError(DifySyncError):
    """Sync configuration is missing or malformed."""


class PathNotFoundError(DifySyncError):
    """A local dataset directory does not exist."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(f"Path not found: {self.path}")


class KnowledgeClientError(DifySyncError):
    """Non-success response from the Knowledge API."""

    def __init__(self, message: str, status_code: int, response_body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    @property
    def is_transient(self) -> bool:
        """Return True for server-side (5xx) failures."""
        return self.status_code >= 500


class RemotePayloadError(DifySyncError):
    """Response payload is not JSON or lacks required fields."""


class DatasetResolutionError(DifySyncError):
    """A dataset named in the sync config cannot be found or created."""


class IndexingTimeoutError(DifySyncError):
    """Documents did not leave the pending state before the deadline."""

    def __init__(self, remaining: int, timeout: float):
        self.remaining = remaining
        self.timeout = timeout
        super().__init__(
            f"Timeout waiting for indexing ({remaining} documents remaining after {timeout:g}s)"
        )


class ConsoleClientError(DifySyncError):
    """Non-success response from the console API."""

    def __init__(self, message: str, status_code: int, response_body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class SessionUnavailableError(DifySyncError):
    """No reusable console session and no credentials to create one."""


class DatasetNotFoundError(DifySyncError):
    """A definition placeholder references a dataset that does not exist."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Dataset not found: {name}")
