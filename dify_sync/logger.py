"""Logging setup for the CLI."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str | int = "INFO", log_file: str | None = None) -> None:
    """Configure root logging with a rich stderr handler.

    Args:
        level: Level name or number (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path that also receives plain-text records
    """
    if isinstance(level, str):
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        log_level = level

    handlers: list[logging.Handler] = [
        RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    ]

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, format="%(message)s", handlers=handlers, force=True)

    # Silence HTTP libraries unless DEBUG
    if log_level != logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
