"""Dify Sync SDK.

A Python library for mirroring local markdown folders into Dify knowledge
datasets, and for moving application definitions between Dify instances.

Quick Start (High-Level API):
    >>> from dify_sync import sync_datasets
    >>> results = sync_datasets()  # Reads dify-settings/sync.yaml

Quick Start (SDK API):
    >>> from dify_sync import DatasetSync, Settings, load_sync_config
    >>> config = Settings(api_key="dataset-...")
    >>> sync_config = load_sync_config("dify-settings/sync.yaml")
    >>> with DatasetSync(config) as orchestrator:
    ...     results = orchestrator.run(sync_config.datasets)

Configuration:
    >>> import os
    >>> os.environ["DIFY_API_URL"] = "https://dify.example.com/v1"
    >>> config = Settings()  # Loads from environment

Public API:
    High-level functions:
        - sync_datasets: Sync every dataset in the sync config

    Orchestrators:
        - DatasetSync: Per-dataset reconciliation
        - export_definitions / import_definitions: Application definition transfer

    Configuration:
        - Settings: Runtime configuration
        - load_sync_config: Load the YAML dataset list

    Domain Models:
        - LocalDocument, RemoteDocument, DiffEntry, SyncResult

    Reporters (for custom UIs):
        - Reporter: Progress reporter (use silent=True for headless mode)
"""

# Configuration
from dify_sync.config import DatasetSpec, Settings, SyncConfig, load_sync_config

# Domain models
from dify_sync.domain import (
    DiffAction,
    DiffEntry,
    IndexingStatus,
    LocalDocument,
    RemoteDocument,
    SyncResult,
)

# Errors
from dify_sync.errors import DifySyncError

# Clients
from dify_sync.operations import ConsoleClient, KnowledgeClient

# Orchestrators
from dify_sync.orchestrators import DatasetSync, export_definitions, import_definitions

# UI Reporters
from dify_sync.ui import Reporter

__all__ = [
    # High-level functions
    "sync_datasets",
    # Orchestrators
    "DatasetSync",
    "export_definitions",
    "import_definitions",
    # Clients
    "KnowledgeClient",
    "ConsoleClient",
    # Configuration
    "Settings",
    "SyncConfig",
    "DatasetSpec",
    "load_sync_config",
    # Domain models
    "LocalDocument",
    "RemoteDocument",
    "IndexingStatus",
    "DiffAction",
    "DiffEntry",
    "SyncResult",
    # Errors
    "DifySyncError",
    # Reporters
    "Reporter",
]

# Version
__version__ = "0.1.0"


def sync_datasets(
    config: Settings | None = None,
    reporter: Reporter | None = None,
) -> list[SyncResult]:
    """Run a complete sync pass (high-level convenience function).

    Loads the dataset list from ``config.sync_config_file`` and syncs each
    dataset in order.

    Args:
        config: Runtime configuration. If None, loads Settings() from environment.
        reporter: Progress reporter. If None, uses Reporter().

    Returns:
        One SyncResult per configured dataset

    Raises:
        ConfigurationError: If the sync config is missing or invalid

    Example:
        >>> from dify_sync import sync_datasets, Settings
        >>> results = sync_datasets(Settings(sync_config_file="sync.yaml"))
        >>> any(r.has_errors for r in results)
        False
    """
    config = config if config is not None else Settings()
    sync_config = load_sync_config(config.sync_config_file)
    with DatasetSync(config) as orchestrator:
        return orchestrator.run(sync_config.datasets, reporter=reporter)
