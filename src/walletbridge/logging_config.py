"""Logging setup shared by the adapter and the widget client."""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(debug: bool = False) -> None:
    """Configure root logging for a host process.

    Args:
        debug: Log at DEBUG level (verbose protocol tracing) instead of INFO
    """
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=log_level, format=LOG_FORMAT)


def redact_secret(secret: Optional[str], visible: int = 4) -> str:
    """Return a log-safe rendering of a shared secret."""
    if not secret:
        return "(not set)"
    if len(secret) <= visible * 2:
        return "***"
    return f"{secret[:visible]}***"
