"""Indexing completion monitor."""

import logging
import time
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from dify_sync.domain.models import IndexingStatus, RemoteDocument
from dify_sync.domain.types import Clock, Sleep
from dify_sync.errors import IndexingTimeoutError

if TYPE_CHECKING:
    from dify_sync.ui import Reporter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600.0
DEFAULT_POLL_INTERVAL = 2.0


class DocumentLister(Protocol):
    """Anything that can list a dataset's documents."""

    def list(self) -> list[RemoteDocument]: ...


class IndexingMonitor:
    """Poll a dataset until watched documents reach a terminal indexing state.

    Each watched id moves pending -> completed or pending -> error. Terminal
    ids leave the pending set; an error is reported but does not stop the
    wait for the others.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
        reporter: "Reporter | None" = None,
    ):
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self.reporter = reporter

    def wait(
        self,
        directory: DocumentLister,
        document_ids: Iterable[str],
        reporter: "Reporter | None" = None,
    ) -> dict[str, IndexingStatus]:
        """Block until every id is completed or errored.

        Args:
            directory: Document directory of the dataset being indexed
            document_ids: Ids produced by one batch of creates or updates
            reporter: Overrides the monitor's reporter for this wait

        Returns:
            Terminal status per watched id

        Raises:
            IndexingTimeoutError: If ids are still pending after the timeout
        """
        reporter = reporter or self.reporter
        pending = set(document_ids)
        finished: dict[str, IndexingStatus] = {}
        start = self._clock()

        while pending:
            if self._clock() - start > self.timeout:
                raise IndexingTimeoutError(remaining=len(pending), timeout=self.timeout)

            documents = {doc.id: doc for doc in directory.list()}
            for document_id in sorted(pending):
                status = self._advance(documents.get(document_id), reporter)
                if status is not IndexingStatus.PENDING:
                    pending.discard(document_id)
                    finished[document_id] = status

            if pending:
                logger.debug("%d documents still indexing", len(pending))
                self._sleep(self.poll_interval)

        return finished

    @staticmethod
    def _advance(document: RemoteDocument | None, reporter: "Reporter | None") -> IndexingStatus:
        """Return the document's state, reporting terminal transitions.

        A document missing from the listing is still pending.
        """
        if document is None or document.is_indexing_pending:
            return IndexingStatus.PENDING

        if document.is_indexing_error:
            logger.warning("Indexing failed for %s: %s", document.name, document.error)
            if reporter:
                reporter.report_index_error(document.name, document.error or "")
        elif document.is_indexing_completed:
            logger.debug("Indexed %s", document.name)
            if reporter:
                reporter.report_indexed(document.name)

        return document.indexing_status
