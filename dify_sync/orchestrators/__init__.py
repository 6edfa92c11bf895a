"""Orchestrators coordinating operations into complete workflows."""

from dify_sync.orchestrators.dataset_sync import DatasetResolver, DatasetSync
from dify_sync.orchestrators.definitions import (
    ExportResult,
    ImportResult,
    ImportStatus,
    export_definitions,
    import_definitions,
)

__all__ = [
    "DatasetResolver",
    "DatasetSync",
    "ExportResult",
    "ImportResult",
    "ImportStatus",
    "export_definitions",
    "import_definitions",
]
