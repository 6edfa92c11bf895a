"""Business logic services for document synchronization."""

import hashlib
from collections.abc import Iterable, Sequence

from dify_sync.domain.models import (
    DiffAction,
    DiffEntry,
    DiffPlan,
    LocalDocument,
    RemoteDocument,
)

REASON_FINGERPRINT_CHANGED = "fingerprint changed"
REASON_FINGERPRINT_NOT_SET = "fingerprint not set"


def fingerprint(content: str) -> str:
    """Compute the SHA256 fingerprint of text content.

    Args:
        content: Text to hash (encoded as UTF-8)

    Returns:
        Hexadecimal SHA256 hash string (64 characters)
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class DocumentDiffService:
    """Service for classifying local/remote document pairs."""

    @staticmethod
    def calculate_diff(
        local_documents: Sequence[LocalDocument],
        remote_documents: Sequence[RemoteDocument],
    ) -> list[DiffEntry]:
        """Determine the create/update/delete/skip action for every filename.

        Local and remote documents are matched by name. A remote document
        without a stored fingerprint never counts as a match.

        Args:
            local_documents: Documents loaded from the dataset directory
            remote_documents: Documents currently in the remote dataset

        Returns:
            One DiffEntry per distinct filename across both sides
        """
        remote_by_name = {doc.name: doc for doc in remote_documents}
        local_names = {doc.filename for doc in local_documents}
        entries = []

        for local_doc in local_documents:
            remote_doc = remote_by_name.get(local_doc.filename)

            if remote_doc is None:
                entries.append(
                    DiffEntry(
                        action=DiffAction.CREATE,
                        filename=local_doc.filename,
                        local_path=local_doc.path,
                    )
                )
            elif local_doc.fingerprint_matches(remote_doc.stored_fingerprint):
                entries.append(
                    DiffEntry(
                        action=DiffAction.SKIP,
                        filename=local_doc.filename,
                        local_path=local_doc.path,
                        remote_id=remote_doc.id,
                    )
                )
            else:
                entries.append(
                    DiffEntry(
                        action=DiffAction.UPDATE,
                        filename=local_doc.filename,
                        local_path=local_doc.path,
                        remote_id=remote_doc.id,
                        reason=(
                            REASON_FINGERPRINT_CHANGED
                            if remote_doc.has_stored_fingerprint
                            else REASON_FINGERPRINT_NOT_SET
                        ),
                    )
                )

        deleted_names = set()
        for remote_doc in remote_documents:
            if remote_doc.name in local_names or remote_doc.name in deleted_names:
                continue
            deleted_names.add(remote_doc.name)
            entries.append(
                DiffEntry(
                    action=DiffAction.DELETE,
                    filename=remote_doc.name,
                    remote_id=remote_by_name[remote_doc.name].id,
                )
            )

        return entries

    @staticmethod
    def partition(entries: Iterable[DiffEntry]) -> DiffPlan:
        """Group diff entries by action, preserving their order."""
        plan = DiffPlan()
        buckets = {
            DiffAction.CREATE: plan.creates,
            DiffAction.UPDATE: plan.updates,
            DiffAction.DELETE: plan.deletes,
            DiffAction.SKIP: plan.skips,
        }
        for entry in entries:
            buckets[entry.action].append(entry)
        return plan
