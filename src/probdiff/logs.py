from __future__ import annotations

"""Logging helpers shared by all probdiff modules."""

import logging

from .config import LoggingSettings

_ROOT = "probdiff"


def getLogger(name: str) -> logging.Logger:
    """Return a logger below the ``probdiff`` hierarchy."""
    if name != _ROOT and not name.startswith(_ROOT + "."):
        name = f"{_ROOT}.{name}"
    return logging.getLogger(name)


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """
    Attach a stream handler to the ``probdiff`` logger using the configured
    level and format. Calling it again replaces the previous handler.
    """
    root = logging.getLogger(_ROOT)
    for handler in list(root.handlers):
        if getattr(handler, "_probdiff", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(settings.format))
    handler._probdiff = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(settings.level)
    return root
