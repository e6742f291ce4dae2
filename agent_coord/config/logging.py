"""
Logging setup for the command line.
"""
import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .settings import Settings


def configure_logging(settings: Settings, console: Optional[Console] = None):
    """Send log records to stderr through rich and, optionally, to ``settings.log_file``."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handlers = [
        RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
    ]
    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(process)d] %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)
