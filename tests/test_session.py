import threading
import time

import pytest

from finance_ledger.config import AppConfig
from finance_ledger.errors import IndexOutOfRange
from finance_ledger.session import DebouncedSaver, LedgerSession


def _session(storage, delay=60.0):
    return LedgerSession("alice", storage, AppConfig(save_delay=delay), year=2025)


def test_session_loads_and_normalizes(memory_storage):
    memory_storage.document = {"categories": [{"name": "Rent", "budget": 900}]}
    session = _session(memory_storage)
    assert [c.name for c in session.ledger.categories] == ["Rent"]
    assert len(session.ledger.months) == 12


def test_edits_are_debounced_until_flushed(memory_storage):
    session = _session(memory_storage)
    with session.editing() as store:
        store.add_income(0, "pf", "Salary", 100)
    with session.editing() as store:
        store.add_income(0, "pf", "Bonus", 50)

    assert session.saver.pending
    assert memory_storage.saves == []

    session.close()
    assert not session.saver.pending
    assert len(memory_storage.saves) == 1
    assert len(memory_storage.saves[0]["monthlyData"]["0"]["pfEntries"]) == 2


def test_debounce_timer_coalesces_saves(memory_storage):
    session = _session(memory_storage, delay=0.05)
    for amount in (1, 2, 3):
        with session.editing() as store:
            store.add_income(0, "pj", "Invoice", amount)
    deadline = time.monotonic() + 2
    while session.saver.pending and time.monotonic() < deadline:
        time.sleep(0.01)
    time.sleep(0.1)
    assert len(memory_storage.saves) == 1
    assert session.saver.last_result is True


def test_switching_month_flushes_pending_save(memory_storage):
    session = _session(memory_storage)
    session.show_month(0)
    with session.editing() as store:
        store.add_income(0, "pf", "Salary", 100)

    session.show_month(0)
    assert memory_storage.saves == []

    session.show_month(1)
    assert len(memory_storage.saves) == 1
    assert not session.saver.pending
    assert session.active_month == 1


def test_materializing_saves_immediately(memory_storage):
    session = _session(memory_storage)
    with session.lock:
        session.store.add_template("Rent", 1200, 5, "PersonalExpense")

    result = session.show_month(3)
    assert result.mutated
    assert len(memory_storage.saves) == 1

    again = session.show_month(3)
    assert not again.mutated
    assert len(memory_storage.saves) == 1


def test_show_month_rejects_bad_index(memory_storage):
    session = _session(memory_storage)
    with pytest.raises(IndexOutOfRange):
        session.show_month(12)


def test_failed_save_is_reported_not_raised(memory_storage):
    memory_storage.ok = False
    session = _session(memory_storage)
    with session.editing() as store:
        store.add_card("Visa")
    assert session.save() is False
    assert session.saver.last_result is False
    assert not session.saver.pending


def test_raising_save_function_is_contained():
    def boom():
        raise RuntimeError("disk on fire")

    saver = DebouncedSaver(boom, delay=60)
    assert saver.save_now() is False
    assert saver.last_result is False


def test_cancel_and_flush_without_pending_save():
    calls = []
    saver = DebouncedSaver(lambda: calls.append(1) or True, delay=60)
    assert saver.cancel() is False
    assert saver.flush() is False
    saver.schedule()
    assert saver.flush() is True
    assert calls == [1]


def test_snapshot_reflects_edits(memory_storage):
    session = _session(memory_storage)
    with session.editing() as store:
        store.add_income(2, "pj", "Invoice", 1000)
        store.add_expense(2, 0, "business", "Hosting", 200)
    snapshot = session.snapshot(2)
    assert snapshot["totals"]["remainingBusiness"] == 800.0
    assert snapshot["month_name"] == "March"
    session.saver.cancel()


def test_editing_holds_the_session_lock(memory_storage):
    session = _session(memory_storage)
    seen = []

    def contender():
        seen.append(session.lock.acquire(blocking=False))

    with session.editing():
        t = threading.Thread(target=contender)
        t.start()
        t.join()
    session.saver.cancel()
    assert seen == [False]
