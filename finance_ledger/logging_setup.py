"""Package logging.

Modules log through ``get_logger``. Only entrypoints (the CLI and the web app
factory) call ``configure_logging``, which attaches the single stderr handler.
"""

from __future__ import annotations

import logging
import os

_ROOT = "finance_ledger"
_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_configured = False


def resolve_level(level: str | int | None) -> int:
    """``level`` if recognised, else ``FINANCE_LEDGER_LOG_LEVEL``, else INFO."""
    for candidate in (level, os.getenv("FINANCE_LEDGER_LOG_LEVEL")):
        if isinstance(candidate, int):
            return candidate
        if candidate:
            value = logging.getLevelName(str(candidate).strip().upper())
            if isinstance(value, int):
                return value
    return logging.INFO


def configure_logging(level: str | int | None = None) -> None:
    global _configured
    if _configured:
        return
    root = logging.getLogger(_ROOT)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.handlers = [handler]
    root.setLevel(resolve_level(level))
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    root = logging.getLogger(_ROOT)
    if not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)
