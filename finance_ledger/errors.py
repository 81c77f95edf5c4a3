"""Error kinds raised (or reported) by the ledger core.

Every error derives from :class:`LedgerError` so hosts can map the whole
family in one place. ``InvalidTemplate`` and ``OutOfRangeDay`` are never raised
out of materialization; the recurring engine reports them as skip reasons.
"""

from __future__ import annotations

from typing import Any, Optional


class LedgerError(Exception):
    """Base class for domain errors."""

    def __init__(self, message: str, value: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.value = value


class NameCollision(LedgerError):
    """A category or card name already exists (case-insensitive for categories)."""


class InvalidName(LedgerError):
    pass


class InvalidTemplate(LedgerError):
    """Recurring template with an unknown kind or missing required fields."""


class OutOfRangeDay(LedgerError):
    """Template day does not fall inside the target month."""

    def __init__(self, message: str, value: Any = None, month_index: Optional[int] = None) -> None:
        super().__init__(message, value)
        self.month_index = month_index


class CategoryNotFound(LedgerError):
    pass


class CategoryInUse(LedgerError):
    pass


class EntryNotFound(LedgerError):
    pass


class TemplateNotFound(LedgerError):
    pass


class IndexOutOfRange(LedgerError):
    """Month or day index outside the ledger's fixed shape."""
