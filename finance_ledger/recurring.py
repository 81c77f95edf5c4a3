"""Recurring template materialization and cascade deletion.

A template is applied to a month at most once. "Already applied" is decided by
rescanning the month for entries carrying the template's id, not by a flag, so
templates added after a month was first visited are still picked up the next
time that month becomes active.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from typing import List, Union

from .errors import IndexOutOfRange, InvalidTemplate, OutOfRangeDay, TemplateNotFound
from .logging_setup import get_logger
from .models import (
    CREDIT_PAYMENT_METHOD,
    DEFAULT_RECURRING_DESCRIPTION,
    FALLBACK_CATEGORY,
    MONTHS_PER_YEAR,
    EntryKind,
    ExpenseEntry,
    Ledger,
    LedgerEntry,
    MonthLedger,
    RecurringTemplate,
    canonical_payment_method,
)

logger = get_logger("finance_ledger.recurring")


@dataclass
class TemplateSkip:
    template_id: int
    reason: Union[InvalidTemplate, OutOfRangeDay]


@dataclass
class MaterializeResult:
    mutated: bool = False
    created: List[LedgerEntry] = field(default_factory=list)
    skipped: List[TemplateSkip] = field(default_factory=list)


def days_in_month(year: int, month_index: int) -> int:
    return calendar.monthrange(year, month_index + 1)[1]


def _check_month(month_index: int) -> None:
    if not 0 <= month_index < MONTHS_PER_YEAR:
        raise IndexOutOfRange(f"Month index must be 0-{MONTHS_PER_YEAR - 1}, got {month_index}", month_index)


def _build_entry(ledger: Ledger, template: RecurringTemplate, kind: EntryKind) -> LedgerEntry:
    common = dict(
        id=ledger.new_id(),
        description=template.description or DEFAULT_RECURRING_DESCRIPTION,
        amount=template.amount,
        is_recurring=True,
        recurring_id=template.id,
    )
    if not kind.is_expense:
        return LedgerEntry(**common)
    payment_method = canonical_payment_method(template.payment_method)
    return ExpenseEntry(
        **common,
        category=template.category or FALLBACK_CATEGORY,
        payment_method=payment_method,
        card=template.card if payment_method == CREDIT_PAYMENT_METHOD else None,
    )


def materialize(ledger: Ledger, month_index: int, calendar_year: int) -> MaterializeResult:
    """Create this month's entry for every template not yet applied to it.

    Unknown kinds and days that fall outside the month are reported in
    ``skipped`` and never raised. A skipped day is retried the next time the
    month is materialized but never backfilled into months already visited.
    """
    _check_month(month_index)
    month = ledger.months[month_index]
    applied = month.recurring_ids()
    month_days = days_in_month(calendar_year, month_index)
    result = MaterializeResult()

    for template in ledger.templates:
        if template.id in applied:
            continue
        kind = template.entry_kind
        if not template.id or kind is None:
            result.skipped.append(
                TemplateSkip(template.id, InvalidTemplate(f"Unknown recurring kind {template.kind!r}", template.kind))
            )
            logger.debug("Skipping template %s: unknown kind %r", template.id, template.kind)
            continue

        effective_day = min(template.day_of_month, month_days)
        day_index = effective_day - 1
        if kind.is_expense and not 0 <= day_index < month_days:
            result.skipped.append(
                TemplateSkip(
                    template.id,
                    OutOfRangeDay(
                        f"Day {template.day_of_month} is outside month {month_index}",
                        template.day_of_month,
                        month_index,
                    ),
                )
            )
            logger.debug("Skipping template %s for month %d: day %s", template.id, month_index, template.day_of_month)
            continue

        entry = _build_entry(ledger, template, kind)
        _collection_for(month, kind, day_index).append(entry)
        applied.add(template.id)
        result.created.append(entry)

    result.mutated = bool(result.created)
    if result.mutated:
        logger.info("Materialized %d recurring entr(ies) into month %d", len(result.created), month_index)
    return result


def _collection_for(month: MonthLedger, kind: EntryKind, day_index: int) -> list:
    if kind is EntryKind.INCOME_PF:
        return month.income_personal
    if kind is EntryKind.INCOME_LEGAL_ENTITY:
        return month.income_legal_entity
    day = month.days[day_index]
    if kind is EntryKind.PERSONAL_EXPENSE:
        return day.personal_entries
    return day.business_entries


def delete_by_recurring_id(ledger: Ledger, recurring_id: int, from_month_index: int = 0) -> int:
    """Remove entries materialized from ``recurring_id`` in months ``from_month_index``..11.

    Earlier months keep their entries. The template itself is left alone.
    Returns the number of entries removed.
    """
    _check_month(from_month_index)
    removed = 0
    for month in ledger.months[from_month_index:]:
        for collection in (*month.income_collections(), *month.expense_collections()):
            kept = [e for e in collection if e.recurring_id != recurring_id]
            removed += len(collection) - len(kept)
            collection[:] = kept
    return removed


def delete_template(ledger: Ledger, template_id: int, from_month_index: int = 0) -> RecurringTemplate:
    """Delete a template by id together with its entries from ``from_month_index`` on.

    ``from_month_index=0`` removes it everywhere; passing the active month
    keeps the history of earlier months.
    """
    template = ledger.find_template(template_id)
    if template is None:
        raise TemplateNotFound(f"No recurring template with id {template_id}", template_id)
    removed = delete_by_recurring_id(ledger, template_id, from_month_index)
    ledger.templates[:] = [t for t in ledger.templates if t.id != template_id]
    logger.info(
        "Deleted template %s and %d materialized entr(ies) from month %d on",
        template_id,
        removed,
        from_month_index,
    )
    return template
