"""Logging setup shared by every storefront module."""
from __future__ import annotations

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("storefront")


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the root storefront logger once."""
    resolved = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    if not any(getattr(h, "_storefront", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._storefront = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(getattr(logging, resolved, logging.INFO))
    return logger


__all__ = ["logger", "setup_logging", "LOG_FORMAT"]
