"""Domain models and business logic."""

from dify_sync.domain.models import (
    DatasetPlan,
    DiffAction,
    DiffEntry,
    DiffPlan,
    ErrorKind,
    IndexingOptions,
    IndexingStatus,
    LocalDocument,
    ProcessRule,
    RemoteDocument,
    SyncError,
    SyncResult,
)
from dify_sync.domain.services import DocumentDiffService, fingerprint
from dify_sync.domain.types import Clock, Sleep

__all__ = [
    "LocalDocument",
    "RemoteDocument",
    "IndexingStatus",
    "IndexingOptions",
    "ProcessRule",
    "DiffAction",
    "DiffEntry",
    "DiffPlan",
    "DatasetPlan",
    "ErrorKind",
    "SyncError",
    "SyncResult",
    "DocumentDiffService",
    "fingerprint",
    "Clock",
    "Sleep",
]
