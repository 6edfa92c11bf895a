"""Domain models for document synchronization."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dify_sync.errors import RemotePayloadError

FINGERPRINT_FIELD = "source_hash"


class IndexingStatus(str, Enum):
    """Indexing state of a remote document."""

    PENDING = "pending"  # Any non-terminal server state (waiting, parsing, indexing, ...)
    COMPLETED = "completed"
    ERROR = "error"

    @classmethod
    def from_server(cls, value: str) -> "IndexingStatus":
        """Collapse the server's indexing states into the three tracked here."""
        if value == "completed":
            return cls.COMPLETED
        if value == "error":
            return cls.ERROR
        return cls.PENDING


class DiffAction(str, Enum):
    """Planned reconciliation action for a single filename."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SKIP = "skip"


class ErrorKind(str, Enum):
    """Where in the sync pass an error was recorded."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RESOLVE_DATASET = "resolve_dataset"
    LOAD_DOCUMENTS = "load_documents"
    LIST_DOCUMENTS = "list_documents"
    INDEXING = "indexing"


class ProcessRule(BaseModel):
    """Chunking rule sent with document creation."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["automatic", "custom"] = "automatic"
    rules: dict[str, Any] | None = None  # Only meaningful for custom mode


class IndexingOptions(BaseModel):
    """Indexing options for newly created documents."""

    model_config = ConfigDict(frozen=True)

    technique: Literal["high_quality", "economy"] = "high_quality"
    process_rule: ProcessRule = Field(default_factory=ProcessRule)


class LocalDocument(BaseModel):
    """A markdown file selected for sync, fingerprinted on creation."""

    model_config = ConfigDict(frozen=True)

    filename: str
    path: Path
    content: str
    fingerprint: str

    @field_validator("filename")
    @classmethod
    def filename_not_blank(cls, v: str) -> str:
        """Reject empty or whitespace-only filenames."""
        if not v or not v.strip():
            raise ValueError("Filename cannot be empty")
        return v

    @classmethod
    def create(cls, filename: str, path: Path, content: str) -> "LocalDocument":
        """Build a document, computing its fingerprint from content."""
        from dify_sync.domain.services import fingerprint

        return cls(filename=filename, path=Path(path), content=content, fingerprint=fingerprint(content))

    def fingerprint_matches(self, other: str | None) -> bool:
        """Return True only if other is set and equal to this fingerprint."""
        return other is not None and self.fingerprint == other


class RemoteDocument(BaseModel):
    """A document as reported by the Knowledge API."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    indexing_status: IndexingStatus
    error: str | None = None
    stored_fingerprint: str | None = None

    @model_validator(mode="before")
    @classmethod
    def error_only_when_failed(cls, data: Any) -> Any:
        """Keep the error message iff the status is ERROR."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        status = data.get("indexing_status")
        if status in (IndexingStatus.ERROR, IndexingStatus.ERROR.value):
            data["error"] = data.get("error") or "unknown indexing error"
        else:
            data["error"] = None
        return data

    @classmethod
    def from_api(cls, payload: Any) -> "RemoteDocument":
        """Validate a raw API document payload.

        Raises:
            RemotePayloadError: If the payload is not a mapping or lacks
                id, name or indexing_status.
        """
        if not isinstance(payload, dict):
            raise RemotePayloadError(f"Expected document object, got {type(payload).__name__}")

        missing = [key for key in ("id", "name", "indexing_status") if not payload.get(key)]
        if missing:
            raise RemotePayloadError(f"Document payload missing fields: {', '.join(missing)}")

        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            indexing_status=IndexingStatus.from_server(str(payload["indexing_status"])),
            error=payload.get("error"),
            stored_fingerprint=_read_stored_fingerprint(payload.get("doc_metadata")),
        )

    @property
    def is_indexing_completed(self) -> bool:
        return self.indexing_status == IndexingStatus.COMPLETED

    @property
    def is_indexing_error(self) -> bool:
        return self.indexing_status == IndexingStatus.ERROR

    @property
    def is_indexing_pending(self) -> bool:
        return self.indexing_status == IndexingStatus.PENDING

    @property
    def has_stored_fingerprint(self) -> bool:
        return self.stored_fingerprint is not None


def _read_stored_fingerprint(doc_metadata: Any) -> str | None:
    """Extract the fingerprint from either metadata shape the API returns."""
    if isinstance(doc_metadata, dict):
        value = doc_metadata.get(FINGERPRINT_FIELD)
        return str(value) if value else None

    if isinstance(doc_metadata, list):
        for item in doc_metadata:
            if isinstance(item, dict) and item.get("name") == FINGERPRINT_FIELD:
                value = item.get("value")
                return str(value) if value else None

    return None


class Dataset(BaseModel):
    """A remote dataset (knowledge base)."""

    id: str
    name: str


class DiffEntry(BaseModel):
    """One planned reconciliation action."""

    model_config = ConfigDict(frozen=True)

    action: DiffAction
    filename: str
    local_path: Path | None = None
    remote_id: str | None = None
    reason: str | None = None


class DiffPlan(BaseModel):
    """Diff entries grouped by action."""

    creates: list[DiffEntry] = Field(default_factory=list)
    updates: list[DiffEntry] = Field(default_factory=list)
    deletes: list[DiffEntry] = Field(default_factory=list)
    skips: list[DiffEntry] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """Return True if anything would be created, updated or deleted."""
        return bool(self.creates or self.updates or self.deletes)

    def __repr__(self) -> str:
        return (
            f"DiffPlan("
            f"create={len(self.creates)}, "
            f"update={len(self.updates)}, "
            f"delete={len(self.deletes)}, "
            f"skip={len(self.skips)})"
        )


class ItemOutcome(BaseModel):
    """Result of applying one diff entry: a document or an error message."""

    entry: DiffEntry
    document: RemoteDocument | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncError(BaseModel):
    """A failure recorded during a sync pass."""

    model_config = ConfigDict(frozen=True)

    filename: str
    action: ErrorKind
    error: str


class SyncResult(BaseModel):
    """Immutable outcome of syncing one dataset."""

    model_config = ConfigDict(frozen=True)

    dataset_label: str
    dataset_id: str | None = None
    path: Path
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: list[SyncError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    finished_at: datetime | None = None

    @property
    def total_processed(self) -> int:
        return self.created + self.updated + self.deleted + self.skipped

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class SyncResultBuilder:
    """Mutable accumulator for one dataset's sync pass.

    Owned by the orchestrator for the duration of a single dataset; call
    build() to freeze it into a SyncResult.
    """

    def __init__(self, dataset_label: str, path: Path, dataset_id: str | None = None):
        self.dataset_label = dataset_label
        self.path = Path(path)
        self.dataset_id = dataset_id
        self.counts = {action: 0 for action in DiffAction}
        self.errors: list[SyncError] = []
        self.warnings: list[str] = []

    def increment(self, action: DiffAction) -> None:
        self.counts[action] += 1

    def add_error(self, filename: str, action: ErrorKind, message: str) -> None:
        self.errors.append(SyncError(filename=filename, action=action, error=message))

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def record(self, outcome: ItemOutcome) -> None:
        """Count a successful outcome or record its error, never both."""
        if outcome.ok:
            self.increment(outcome.entry.action)
        else:
            self.add_error(
                outcome.entry.filename,
                ErrorKind(outcome.entry.action.value),
                outcome.error or "",
            )

    def build(self) -> SyncResult:
        return SyncResult(
            dataset_label=self.dataset_label,
            dataset_id=self.dataset_id,
            path=self.path,
            created=self.counts[DiffAction.CREATE],
            updated=self.counts[DiffAction.UPDATE],
            deleted=self.counts[DiffAction.DELETE],
            skipped=self.counts[DiffAction.SKIP],
            errors=list(self.errors),
            warnings=list(self.warnings),
            finished_at=datetime.now(),
        )


class DatasetPlan(BaseModel):
    """Dry-run view of what a sync pass would do for one dataset."""

    dataset_label: str
    dataset_id: str | None = None
    path: Path
    entries: list[DiffEntry] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[SyncError] = Field(default_factory=list)
