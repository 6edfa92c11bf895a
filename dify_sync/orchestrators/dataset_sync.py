"""Dataset synchronization orchestrator.

Coordinates the complete local-to-remote reconciliation of each configured
dataset.
"""

import logging
from collections.abc import Callable, Iterator, Sequence
from typing import Any

import httpx

from dify_sync.config import DatasetSpec, Settings
from dify_sync.domain.models import (
    DatasetPlan,
    DiffAction,
    DiffEntry,
    ErrorKind,
    ItemOutcome,
    LocalDocument,
    RemoteDocument,
    SyncError,
    SyncResult,
    SyncResultBuilder,
)
from dify_sync.domain.services import DocumentDiffService
from dify_sync.errors import (
    DatasetResolutionError,
    IndexingTimeoutError,
    KnowledgeClientError,
    PathNotFoundError,
    RemotePayloadError,
)
from dify_sync.operations.indexing import IndexingMonitor
from dify_sync.operations.knowledge import DocumentDirectory, KnowledgeClient
from dify_sync.operations.local import load_documents
from dify_sync.ui import Reporter

logger = logging.getLogger(__name__)

# Failures of a single remote call, after the client's own retries
REMOTE_ERRORS = (KnowledgeClientError, RemotePayloadError, httpx.HTTPError)


def _chunks(entries: Sequence[DiffEntry], size: int) -> Iterator[Sequence[DiffEntry]]:
    for start in range(0, len(entries), size):
        yield entries[start : start + size]


class DatasetResolver:
    """Resolve dataset specs to remote dataset ids.

    The dataset listing is fetched once per resolver and reused for every
    spec that names its dataset.
    """

    def __init__(self, client: KnowledgeClient):
        self.client = client
        self._ids_by_name: dict[str, str] | None = None

    def resolve(
        self,
        spec: DatasetSpec,
        allow_create: bool = True,
        reporter: Reporter | None = None,
    ) -> str | None:
        """Return the dataset id for a spec.

        Args:
            spec: Dataset spec with either dataset_id or dataset_name
            allow_create: If False, a dataset that would be created yields None
            reporter: Optional reporter notified about created datasets

        Raises:
            DatasetResolutionError: If the name is unknown and create_if_missing is off
        """
        if spec.dataset_id:
            return spec.dataset_id

        name = spec.dataset_name or ""
        if self._ids_by_name is None:
            self._ids_by_name = {d.name: d.id for d in self.client.list_datasets()}

        if name in self._ids_by_name:
            return self._ids_by_name[name]

        if not spec.create_if_missing:
            raise DatasetResolutionError(
                f"Dataset not found: {name} (set create_if_missing to create it)"
            )
        if not allow_create:
            return None

        dataset = self.client.create_dataset(name, indexing_technique=spec.indexing_technique)
        self._ids_by_name[name] = dataset.id
        logger.info("Created dataset %s (%s)", name, dataset.id)
        if reporter:
            reporter.report_dataset_created(name, dataset.id)
        return dataset.id


class DatasetSync:
    """Orchestrates the reconciliation of local directories with remote datasets.

    For each dataset, sequentially:
    1. Resolve the remote dataset id
    2. Load local documents (a missing directory is a warning)
    3. List remote documents
    4. Diff by name and fingerprint
    5. Count skips, apply deletes one by one
    6. Apply creates, then updates, in batches, waiting for indexing after each
    """

    def __init__(
        self,
        config: Settings | None = None,
        client: KnowledgeClient | None = None,
        monitor: IndexingMonitor | None = None,
    ):
        """Initialize the dataset sync orchestrator.

        Args:
            config: Runtime configuration. If None, creates new Settings() from environment.
            client: Knowledge API client. If None, built from config.
            monitor: Indexing monitor. If None, built from config timings.
        """
        self.config = config if config is not None else Settings()
        self._owns_client = client is None
        self.client = client if client is not None else KnowledgeClient.from_settings(self.config)
        self.monitor = monitor or IndexingMonitor(
            timeout=self.config.indexing_timeout,
            poll_interval=self.config.indexing_poll_interval,
        )
        self.diff_service = DocumentDiffService()

    def __enter__(self) -> "DatasetSync":
        return self

    def __exit__(self, *args) -> None:
        if self._owns_client:
            self.client.close()

    def run(
        self,
        datasets: Sequence[DatasetSpec],
        reporter: Reporter | None = None,
    ) -> list[SyncResult]:
        """Sync every dataset in order.

        Args:
            datasets: Dataset specs from the sync configuration
            reporter: Optional reporter for progress. Defaults to Reporter().

        Returns:
            One SyncResult per dataset, in input order
        """
        if reporter is None:
            reporter = Reporter()

        resolver = DatasetResolver(self.client)
        return [self._sync_dataset(spec, resolver, reporter) for spec in datasets]

    def plan(
        self,
        datasets: Sequence[DatasetSpec],
        reporter: Reporter | None = None,
    ) -> list[DatasetPlan]:
        """Compute what run() would do without changing anything remotely.

        Datasets that would be auto-created are treated as empty.
        """
        if reporter is None:
            reporter = Reporter()

        resolver = DatasetResolver(self.client)
        return [self._plan_dataset(spec, resolver, reporter) for spec in datasets]

    def _sync_dataset(
        self,
        spec: DatasetSpec,
        resolver: DatasetResolver,
        reporter: Reporter,
    ) -> SyncResult:
        reporter.report_dataset_start(spec.label, spec.path)
        result = SyncResultBuilder(spec.label, spec.path)

        try:
            dataset_id = resolver.resolve(spec, reporter=reporter)
        except (DatasetResolutionError, *REMOTE_ERRORS) as e:
            self._fail(result, reporter, ErrorKind.RESOLVE_DATASET, f"Failed to resolve dataset: {e}")
            return result.build()
        assert dataset_id is not None
        result.dataset_id = dataset_id

        try:
            local_documents = load_documents(spec.path)
        except PathNotFoundError as e:
            reporter.report_warning(str(e))
            result.add_warning(str(e))
            return result.build()
        except OSError as e:
            self._fail(result, reporter, ErrorKind.LOAD_DOCUMENTS, f"Failed to read local documents: {e}")
            return result.build()

        directory = self.client.documents(dataset_id)
        try:
            remote_documents = directory.list()
        except REMOTE_ERRORS as e:
            self._fail(result, reporter, ErrorKind.LIST_DOCUMENTS, f"Failed to list documents: {e}")
            return result.build()

        plan = self.diff_service.partition(
            self.diff_service.calculate_diff(local_documents, remote_documents)
        )
        if plan.has_changes:
            logger.info("%s: %r", spec.label, plan)
        else:
            logger.info("%s: up to date (%d unchanged)", spec.label, len(plan.skips))
        local_by_name = {doc.filename: doc for doc in local_documents}

        for entry in plan.skips:
            reporter.report_action(entry)
            result.increment(DiffAction.SKIP)

        # Deletes need no indexing wait
        for entry in plan.deletes:
            reporter.report_action(entry)
            outcome = self._attempt(entry, directory.delete, entry.remote_id)
            self._record(result, outcome, reporter)

        try:
            self._apply_batches(plan.creates, spec, directory, local_by_name, result, reporter)
            self._apply_batches(plan.updates, spec, directory, local_by_name, result, reporter)
        except (IndexingTimeoutError, *REMOTE_ERRORS) as e:
            self._fail(result, reporter, ErrorKind.INDEXING, f"Indexing wait failed: {e}")

        return result.build()

    def _apply_batches(
        self,
        entries: Sequence[DiffEntry],
        spec: DatasetSpec,
        directory: DocumentDirectory,
        local_by_name: dict[str, LocalDocument],
        result: SyncResultBuilder,
        reporter: Reporter,
    ) -> None:
        """Apply creates or updates in batches, each followed by an indexing wait."""
        for batch in _chunks(entries, self.config.batch_size):
            document_ids = []

            for entry in batch:
                local_doc = local_by_name[entry.filename]
                reporter.report_action(entry)

                if entry.action == DiffAction.CREATE:
                    outcome = self._attempt(
                        entry,
                        directory.create,
                        entry.filename,
                        local_doc.content,
                        spec.indexing_options,
                    )
                else:
                    outcome = self._attempt(
                        entry,
                        directory.update,
                        entry.remote_id,
                        entry.filename,
                        local_doc.content,
                    )

                self._record(result, outcome, reporter)
                if outcome.ok and outcome.document is not None:
                    document_ids.append(outcome.document.id)
                    self._store_fingerprint(directory, outcome.document, local_doc, result, reporter)

            if document_ids:
                reporter.report_waiting(len(document_ids))
                self.monitor.wait(directory, document_ids, reporter=reporter)

    @staticmethod
    def _attempt(entry: DiffEntry, operation: Callable[..., Any], *args: Any) -> ItemOutcome:
        """Run one remote operation, capturing its failure as an outcome."""
        try:
            document = operation(*args)
        except REMOTE_ERRORS as e:
            return ItemOutcome(entry=entry, error=str(e))
        if isinstance(document, RemoteDocument):
            return ItemOutcome(entry=entry, document=document)
        return ItemOutcome(entry=entry)

    @staticmethod
    def _record(result: SyncResultBuilder, outcome: ItemOutcome, reporter: Reporter) -> None:
        result.record(outcome)
        if not outcome.ok:
            logger.error("%s %s failed: %s", outcome.entry.action.value, outcome.entry.filename, outcome.error)
            reporter.report_error(f"{outcome.entry.filename}: {outcome.error}")

    def _store_fingerprint(
        self,
        directory: DocumentDirectory,
        document: RemoteDocument,
        local_doc: LocalDocument,
        result: SyncResultBuilder,
        reporter: Reporter,
    ) -> None:
        """Save the fingerprint remotely so the next pass can skip this document."""
        if not self.config.record_fingerprints:
            return
        try:
            directory.record_fingerprint(document.id, local_doc.fingerprint)
        except REMOTE_ERRORS as e:
            message = f"Could not record fingerprint for {local_doc.filename}: {e}"
            logger.warning(message)
            reporter.report_warning(message)
            result.add_warning(message)

    @staticmethod
    def _fail(result: SyncResultBuilder, reporter: Reporter, kind: ErrorKind, message: str) -> None:
        logger.error("%s: %s", result.dataset_label, message)
        reporter.report_error(message)
        result.add_error("", kind, message)

    def _plan_dataset(
        self,
        spec: DatasetSpec,
        resolver: DatasetResolver,
        reporter: Reporter,
    ) -> DatasetPlan:
        warnings: list[str] = []

        try:
            dataset_id = resolver.resolve(spec, allow_create=False)
        except (DatasetResolutionError, *REMOTE_ERRORS) as e:
            message = f"Failed to resolve dataset: {e}"
            reporter.report_error(message)
            return DatasetPlan(
                dataset_label=spec.label,
                path=spec.path,
                errors=[SyncError(filename="", action=ErrorKind.RESOLVE_DATASET, error=message)],
            )

        if dataset_id is None:
            warnings.append(f"Dataset {spec.label} would be created")

        try:
            local_documents = load_documents(spec.path)
        except PathNotFoundError as e:
            reporter.report_warning(str(e))
            warnings.append(str(e))
            return DatasetPlan(
                dataset_label=spec.label, dataset_id=dataset_id, path=spec.path, warnings=warnings
            )
        except OSError as e:
            message = f"Failed to read local documents: {e}"
            reporter.report_error(message)
            return DatasetPlan(
                dataset_label=spec.label,
                dataset_id=dataset_id,
                path=spec.path,
                warnings=warnings,
                errors=[SyncError(filename="", action=ErrorKind.LOAD_DOCUMENTS, error=message)],
            )

        remote_documents: list[RemoteDocument] = []
        if dataset_id is not None:
            try:
                remote_documents = self.client.documents(dataset_id).list()
            except REMOTE_ERRORS as e:
                message = f"Failed to list documents: {e}"
                reporter.report_error(message)
                return DatasetPlan(
                    dataset_label=spec.label,
                    dataset_id=dataset_id,
                    path=spec.path,
                    warnings=warnings,
                    errors=[SyncError(filename="", action=ErrorKind.LIST_DOCUMENTS, error=message)],
                )

        return DatasetPlan(
            dataset_label=spec.label,
            dataset_id=dataset_id,
            path=spec.path,
            entries=self.diff_service.calculate_diff(local_documents, remote_documents),
            warnings=warnings,
        )
