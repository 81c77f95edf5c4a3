"""Shared fixtures for ledger tests."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

from finance_ledger.models import Category, Ledger
from finance_ledger.normalizer import normalize
from finance_ledger.store import LedgerStore


class MemoryStorage:
    """In-memory storage collaborator that records every save."""

    def __init__(self, document: Optional[Dict[str, Any]] = None, ok: bool = True) -> None:
        self.document = document
        self.ok = ok
        self.saves: List[Dict[str, Any]] = []

    def load(self, session_key: str) -> Optional[Dict[str, Any]]:
        return self.document

    def save(self, session_key: str, document: Dict[str, Any]) -> bool:
        self.saves.append(document)
        if self.ok:
            self.document = document
        return self.ok


@pytest.fixture
def ledger() -> Ledger:
    led = normalize(None)
    led.categories = [
        Category("Food", Decimal("100.00")),
        Category("Leisure", Decimal("300.00")),
        Category("Uncategorized", Decimal("0.00")),
    ]
    return led


@pytest.fixture
def store(ledger: Ledger) -> LedgerStore:
    return LedgerStore(ledger)


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()
