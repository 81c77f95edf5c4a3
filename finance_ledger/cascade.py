"""Category rename cascade.

Entries and templates reference categories by name, so renaming a category
means rewriting every reference to it across all twelve months and all
recurring templates. Comparison is case-insensitive throughout.
"""

from __future__ import annotations

from .errors import CategoryNotFound, InvalidName, NameCollision
from .logging_setup import get_logger
from .models import Category, Ledger

logger = get_logger("finance_ledger.cascade")


def reassign_category(ledger: Ledger, name: str, target: str) -> int:
    """Point every entry and template in category ``name`` at ``target``.

    Returns the number of references rewritten.
    """
    old = name.strip().lower()
    rewritten = 0
    for month in ledger.months:
        for entry in month.iter_expenses():
            if (entry.category or "").lower() == old:
                entry.category = target
                rewritten += 1
    for template in ledger.templates:
        if template.category is not None and template.category.lower() == old:
            template.category = target
            rewritten += 1
    return rewritten


def rename_category(ledger: Ledger, old_name: str, new_name: str) -> Category:
    """Rename a category in place and cascade the new name everywhere.

    Raises ``NameCollision`` when ``new_name`` already belongs to a different
    category; the ledger is left untouched in that case.
    """
    new_name = (new_name or "").strip()
    if not new_name:
        raise InvalidName("Category name cannot be blank", new_name)
    category = ledger.find_category(old_name)
    if category is None:
        raise CategoryNotFound(f"No category named {old_name!r}", old_name)
    clash = ledger.find_category(new_name)
    if clash is not None and clash is not category:
        raise NameCollision(f"A category named {clash.name!r} already exists", new_name)

    rewritten = reassign_category(ledger, category.name, new_name)
    previous = category.name
    category.name = new_name
    logger.info("Renamed category %r to %r (%d reference(s) updated)", previous, new_name, rewritten)
    return category
