"""Local document loading."""

import logging
from pathlib import Path

from dify_sync.domain.models import LocalDocument
from dify_sync.errors import PathNotFoundError

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"


def load_documents(directory: str | Path, suffix: str = MARKDOWN_SUFFIX) -> list[LocalDocument]:
    """Load sync-eligible files from a dataset directory.

    Only direct children are considered; subdirectories are ignored.

    Args:
        directory: Dataset directory to scan
        suffix: File extension selecting eligible files

    Returns:
        Fingerprinted documents, sorted by filename

    Raises:
        PathNotFoundError: If the directory does not exist
        OSError: If a file cannot be read
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise PathNotFoundError(directory)

    documents = []
    for file_path in sorted(directory.iterdir()):
        if not file_path.is_file() or not file_path.name.endswith(suffix):
            continue
        # Undecodable bytes become U+FFFD
        content = file_path.read_text(encoding="utf-8", errors="replace")
        documents.append(LocalDocument.create(file_path.name, file_path, content))

    logger.debug("Loaded %d documents from %s", len(documents), directory)
    return documents
