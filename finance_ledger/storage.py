"""Storage collaborators for ledger documents.

A storage object maps a session key to one persisted document. ``load``
returns ``None`` when nothing usable is stored; ``save`` reports failure as
``False`` and never raises, leaving retry policy to the host.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from .logging_setup import get_logger

logger = get_logger("finance_ledger.storage")

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class Storage(Protocol):
    def load(self, session_key: str) -> Optional[Dict[str, Any]]: ...

    def save(self, session_key: str, document: Dict[str, Any]) -> bool: ...


class JsonFileStorage:
    """One ``<session_key>.json`` file per ledger under ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, session_key: str) -> Path:
        name = _SAFE_KEY.sub("_", session_key) or "default"
        return self.root / f"{name}.json"

    def load(self, session_key: str) -> Optional[Dict[str, Any]]:
        target = self.path_for(session_key)
        if not target.exists():
            return None
        try:
            with target.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError):
            logger.warning("Could not read ledger document %s", target, exc_info=True)
            return None
        return data if isinstance(data, dict) else None

    def save(self, session_key: str, document: Dict[str, Any]) -> bool:
        target = self.path_for(session_key)
        tmp = target.with_suffix(".json.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, sort_keys=True)
            tmp.replace(target)
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to save ledger document %s", target)
            return False
        return True
