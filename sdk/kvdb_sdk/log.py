"""
Logging setup for KvDB command line tools.

The SDK itself only creates module loggers; applications decide how log
records are formatted. The CLI uses setup_logging() below.
"""

from __future__ import annotations

import logging

import json_log_formatter

from .config import ClientSettings


def setup_logging(settings: ClientSettings) -> None:
    """Configure logging based on configuration.

    Args:
        settings: Client settings (log_level, log_format)
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
