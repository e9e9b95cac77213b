"""Process-wide logging setup."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stream handler to the ``sentinelsim`` logger."""
    root = logging.getLogger("sentinelsim")
    root.setLevel(level)
    if not any(getattr(handler, "_sentinelsim", False) for handler in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._sentinelsim = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    return root
