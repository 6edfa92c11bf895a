"""UI."""

from dify_sync.ui.reporter import Reporter

__all__ = ["Reporter"]
