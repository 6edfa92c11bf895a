"""Operations that talk to the filesystem or remote APIs."""

from dify_sync.operations.console import Application, ConsoleClient
from dify_sync.operations.indexing import IndexingMonitor
from dify_sync.operations.knowledge import DocumentDirectory, KnowledgeClient, RetryPolicy
from dify_sync.operations.local import load_documents

__all__ = [
    "Application",
    "ConsoleClient",
    "DocumentDirectory",
    "IndexingMonitor",
    "KnowledgeClient",
    "RetryPolicy",
    "load_documents",
]
