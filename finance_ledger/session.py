"""Host-side session around one ledger.

The core never touches storage or timers. A :class:`LedgerSession` loads the
document, routes mutations through a :class:`~finance_ledger.store.LedgerStore`
while holding a lock, and persists through a :class:`DebouncedSaver` so bursts
of field edits turn into a single save. Switching the active month flushes a
pending save first, so edits are never lost when the view moves away.
"""

from __future__ import annotations

import datetime as dt
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

from .config import AppConfig
from .errors import IndexOutOfRange
from .logging_setup import get_logger
from .models import MONTHS_PER_YEAR
from .normalizer import normalize, to_document
from .recurring import MaterializeResult, materialize
from .reports import build_month_report
from .storage import Storage
from .store import LedgerStore

logger = get_logger("finance_ledger.session")


class DebouncedSaver:
    """Coalesce repeated save requests into one call after ``delay`` seconds."""

    def __init__(self, save_fn: Callable[[], bool], delay: float) -> None:
        self._save_fn = save_fn
        self.delay = delay
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self.last_result: Optional[bool] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.delay, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> bool:
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is None:
            return False
        timer.cancel()
        return True

    def flush(self) -> bool:
        """Save right away if a save is pending. Returns whether one was issued."""
        if not self.cancel():
            return False
        self.save_now()
        return True

    def save_now(self) -> bool:
        try:
            ok = bool(self._save_fn())
        except Exception:  # noqa: BLE001 - persistence failures are reported, not raised
            logger.exception("Ledger save raised")
            ok = False
        if not ok:
            logger.warning("Ledger save failed")
        self.last_result = ok
        return ok

    def _fire(self) -> None:
        with self._lock:
            if self._timer is None or self._timer is not threading.current_thread():
                return
            self._timer = None
        self.save_now()


class LedgerSession:
    def __init__(
        self,
        session_key: str,
        storage: Storage,
        config: Optional[AppConfig] = None,
        year: Optional[int] = None,
    ) -> None:
        self.session_key = session_key
        self.storage = storage
        self.config = config or AppConfig()
        self.year = year or dt.date.today().year
        self.lock = threading.RLock()
        self.ledger = normalize(storage.load(session_key), self.config)
        self.store = LedgerStore(self.ledger, self.config.fallback_category, year=self.year)
        self.saver = DebouncedSaver(self._save, self.config.save_delay)
        self.active_month: Optional[int] = None

    def _save(self) -> bool:
        with self.lock:
            document = to_document(self.ledger)
        return self.storage.save(self.session_key, document)

    def show_month(self, month_index: int) -> MaterializeResult:
        """Make ``month_index`` active and materialize its recurring entries."""
        if not isinstance(month_index, int) or not 0 <= month_index < MONTHS_PER_YEAR:
            raise IndexOutOfRange(f"Month index must be 0-{MONTHS_PER_YEAR - 1}, got {month_index}", month_index)
        with self.lock:
            if self.active_month != month_index and self.saver.pending:
                self.saver.flush()
            self.active_month = month_index
            result = materialize(self.ledger, month_index, self.year)
        if result.mutated:
            self.saver.save_now()
        return result

    @contextmanager
    def editing(self) -> Iterator[LedgerStore]:
        """Run mutations under the session lock and schedule a save afterwards."""
        with self.lock:
            yield self.store
        self.touch()

    def touch(self) -> None:
        self.saver.schedule()

    def save(self) -> bool:
        self.saver.cancel()
        return self.saver.save_now()

    def snapshot(self, month_index: int) -> Dict[str, Any]:
        with self.lock:
            return build_month_report(self.ledger, month_index)

    def close(self) -> None:
        self.saver.flush()
