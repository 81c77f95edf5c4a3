"""Mutation surface over an owned :class:`~finance_ledger.models.Ledger`.

Every method runs synchronously and leaves the ledger structurally valid.
Re-running the aggregator and scheduling persistence is the caller's job
(see :mod:`finance_ledger.session`).
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from . import cascade, recurring
from .errors import (
    CategoryInUse,
    CategoryNotFound,
    EntryNotFound,
    IndexOutOfRange,
    InvalidName,
    InvalidTemplate,
    NameCollision,
)
from .logging_setup import get_logger
from .models import (
    BASE_PAYMENT_METHODS,
    CREDIT_PAYMENT_METHOD,
    DAYS_PER_MONTH_SLOTS,
    FALLBACK_CATEGORY,
    MONTHS_PER_YEAR,
    Category,
    EntryKind,
    ExpenseEntry,
    Ledger,
    LedgerEntry,
    MonthLedger,
    RecurringTemplate,
    canonical_payment_method,
    parse_amount,
)

logger = get_logger("finance_ledger.store")

_INCOME_SIDES = {
    "pj": "income_legal_entity",
    "legal_entity": "income_legal_entity",
    "pf": "income_personal",
    "personal": "income_personal",
}
_EXPENSE_SIDES = {"personal": "personal_entries", "business": "business_entries"}
_INCOME_FIELDS = {"description", "amount"}
_EXPENSE_FIELDS = {"description", "amount", "category", "payment_method", "card"}


class LedgerStore:
    """Mutations over one ledger.

    With a ``year`` set, new expenses must land on a day that exists in that
    month of the calendar. Without one, any of the 31 slots is accepted.
    """

    def __init__(self, ledger: Ledger, fallback_category: str = FALLBACK_CATEGORY, year: Optional[int] = None) -> None:
        self.ledger = ledger
        self.fallback_category = fallback_category
        self.year = year

    # -- lookups ---------------------------------------------------------------
    def month(self, month_index: int) -> MonthLedger:
        if not isinstance(month_index, int) or not 0 <= month_index < MONTHS_PER_YEAR:
            raise IndexOutOfRange(f"Month index must be 0-{MONTHS_PER_YEAR - 1}, got {month_index}", month_index)
        return self.ledger.months[month_index]

    def _income(self, month_index: int, side: str) -> List[LedgerEntry]:
        attr = _INCOME_SIDES.get((side or "").lower())
        if attr is None:
            raise InvalidName(f"Unknown income side {side!r}", side)
        return getattr(self.month(month_index), attr)

    def _expenses(self, month_index: int, day_index: int, side: str) -> List[ExpenseEntry]:
        attr = _EXPENSE_SIDES.get((side or "").lower())
        if attr is None:
            raise InvalidName(f"Unknown expense side {side!r}", side)
        month = self.month(month_index)
        if not isinstance(day_index, int) or not 0 <= day_index < DAYS_PER_MONTH_SLOTS:
            raise IndexOutOfRange(f"Day index must be 0-{DAYS_PER_MONTH_SLOTS - 1}, got {day_index}", day_index)
        return getattr(month.days[day_index], attr)

    @staticmethod
    def _find(collection: List[Any], entry_id: int):
        for entry in collection:
            if entry.id == entry_id:
                return entry
        raise EntryNotFound(f"No entry with id {entry_id}", entry_id)

    def _category_name(self, name: Optional[str]) -> str:
        """Canonical spelling of an existing category; blank means the default."""
        if name is None or not str(name).strip():
            if self.ledger.categories:
                return self.ledger.categories[0].name
            return self._ensure_fallback().name
        cat = self.ledger.find_category(str(name))
        if cat is None:
            raise CategoryNotFound(f"No category named {name!r}", name)
        return cat.name

    def _ensure_fallback(self) -> Category:
        cat = self.ledger.find_category(self.fallback_category)
        if cat is None:
            cat = Category(self.fallback_category)
            self.ledger.categories.append(cat)
        return cat

    @staticmethod
    def _check_fields(fields: Mapping[str, Any], allowed: set) -> None:
        unknown = set(fields) - allowed
        if unknown:
            raise InvalidName(f"Field(s) {sorted(unknown)} cannot be edited", sorted(unknown))

    def _card_for(self, payment_method: str, card: Optional[str]) -> Optional[str]:
        if payment_method != CREDIT_PAYMENT_METHOD:
            return None
        if card:
            return card
        return self.ledger.cards[0] if self.ledger.cards else None

    # -- income ----------------------------------------------------------------
    def add_income(self, month_index: int, side: str, description: str = "", amount: Any = 0) -> LedgerEntry:
        collection = self._income(month_index, side)
        entry = LedgerEntry(id=self.ledger.new_id(), description=description or "", amount=parse_amount(amount))
        collection.append(entry)
        return entry

    def remove_income(self, month_index: int, side: str, entry_id: int) -> LedgerEntry:
        collection = self._income(month_index, side)
        entry = self._find(collection, entry_id)
        collection[:] = [e for e in collection if e.id != entry_id]
        return entry

    def update_income(self, month_index: int, side: str, entry_id: int, fields: Mapping[str, Any]) -> LedgerEntry:
        entry = self._find(self._income(month_index, side), entry_id)
        self._check_fields(fields, _INCOME_FIELDS)
        if "description" in fields:
            entry.description = fields["description"] or ""
        if "amount" in fields:
            entry.amount = parse_amount(fields["amount"])
        return entry

    # -- expenses --------------------------------------------------------------
    def add_expense(
        self,
        month_index: int,
        day_index: int,
        side: str,
        description: str = "",
        amount: Any = 0,
        category: Optional[str] = None,
        payment_method: str = BASE_PAYMENT_METHODS[0],
        card: Optional[str] = None,
    ) -> ExpenseEntry:
        collection = self._expenses(month_index, day_index, side)
        if self.year is not None and day_index >= recurring.days_in_month(self.year, month_index):
            raise IndexOutOfRange(
                f"Day {day_index + 1} does not exist in month {month_index} of {self.year}", day_index
            )
        payment_method = canonical_payment_method(payment_method)
        entry = ExpenseEntry(
            id=self.ledger.new_id(),
            description=description or "",
            amount=parse_amount(amount),
            category=self._category_name(category),
            payment_method=payment_method,
            card=self._card_for(payment_method, card),
        )
        collection.append(entry)
        return entry

    def remove_expense(self, month_index: int, day_index: int, side: str, entry_id: int) -> ExpenseEntry:
        collection = self._expenses(month_index, day_index, side)
        entry = self._find(collection, entry_id)
        collection[:] = [e for e in collection if e.id != entry_id]
        return entry

    def update_expense(
        self, month_index: int, day_index: int, side: str, entry_id: int, fields: Mapping[str, Any]
    ) -> ExpenseEntry:
        entry = self._find(self._expenses(month_index, day_index, side), entry_id)
        self._check_fields(fields, _EXPENSE_FIELDS)
        if "category" in fields:
            # Validate before touching anything else.
            entry.category = self._category_name(fields["category"])
        if "description" in fields:
            entry.description = fields["description"] or ""
        if "amount" in fields:
            entry.amount = parse_amount(fields["amount"])
        if "payment_method" in fields:
            entry.payment_method = canonical_payment_method(fields["payment_method"])
        if "card" in fields or "payment_method" in fields:
            entry.card = self._card_for(entry.payment_method, fields.get("card", entry.card))
        return entry

    # -- recurring templates ---------------------------------------------------
    def add_template(
        self,
        description: str,
        amount: Any,
        day_of_month: Any,
        kind: Any,
        category: Optional[str] = None,
        payment_method: Optional[str] = None,
        card: Optional[str] = None,
    ) -> RecurringTemplate:
        parsed_kind = EntryKind.parse(kind)
        if parsed_kind is None:
            raise InvalidTemplate(f"Unknown recurring kind {kind!r}", kind)
        value = parse_amount(amount)
        if not (description or "").strip() or value <= 0:
            raise InvalidTemplate("A recurring entry needs a description and a positive amount", description)
        try:
            day = int(day_of_month)
        except (TypeError, ValueError):
            day = 1
        template = RecurringTemplate(
            id=self.ledger.new_id(),
            description=description.strip(),
            amount=value,
            day_of_month=min(max(day, 1), DAYS_PER_MONTH_SLOTS),
            kind=parsed_kind.value,
        )
        if parsed_kind.is_expense:
            template.category = self._category_name(category)
            template.payment_method = canonical_payment_method(payment_method)
            template.card = self._card_for(template.payment_method, card)
        self.ledger.templates.append(template)
        logger.info("Added recurring template %s (%s)", template.id, template.kind)
        return template

    def remove_template(self, template_id: int, from_month_index: int = 0) -> RecurringTemplate:
        return recurring.delete_template(self.ledger, template_id, from_month_index)

    # -- categories ------------------------------------------------------------
    def add_category(self, name: str, budget: Any = 0) -> Category:
        name = (name or "").strip()
        if not name:
            raise InvalidName("Category name cannot be blank", name)
        existing = self.ledger.find_category(name)
        if existing is not None:
            raise NameCollision(f"A category named {existing.name!r} already exists", name)
        cat = Category(name=name, budget=max(parse_amount(budget), parse_amount(0)))
        self.ledger.categories.append(cat)
        return cat

    def set_budget(self, name: str, budget: Any) -> Category:
        cat = self.ledger.find_category(name)
        if cat is None:
            raise CategoryNotFound(f"No category named {name!r}", name)
        cat.budget = max(parse_amount(budget), parse_amount(0))
        return cat

    def rename_category(self, old_name: str, new_name: str) -> Category:
        return cascade.rename_category(self.ledger, old_name, new_name)

    def remove_category(self, name: str) -> Category:
        cat = self.ledger.find_category(name)
        if cat is None:
            raise CategoryNotFound(f"No category named {name!r}", name)
        if cat.name.lower() == self.fallback_category.lower():
            if self._is_referenced(cat.name):
                raise CategoryInUse(f"{cat.name!r} is still used by entries or templates", cat.name)
        elif self._is_referenced(cat.name):
            fallback = self._ensure_fallback()
            moved = cascade.reassign_category(self.ledger, cat.name, fallback.name)
            logger.info("Moved %d reference(s) from %r to %r", moved, cat.name, fallback.name)
        self.ledger.categories[:] = [c for c in self.ledger.categories if c is not cat]
        return cat

    def _is_referenced(self, name: str) -> bool:
        wanted = name.lower()
        for month in self.ledger.months:
            for entry in month.iter_expenses():
                if (entry.category or "").lower() == wanted:
                    return True
        return any((t.category or "").lower() == wanted for t in self.ledger.templates)

    # -- cards -----------------------------------------------------------------
    def add_card(self, name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise InvalidName("Card name cannot be blank", name)
        if name in self.ledger.cards:
            raise NameCollision(f"A card named {name!r} already exists", name)
        self.ledger.cards.append(name)
        return name

    def remove_card(self, name: str) -> str:
        if name not in self.ledger.cards:
            raise EntryNotFound(f"No card named {name!r}", name)
        self.ledger.cards[:] = [c for c in self.ledger.cards if c != name]
        return name
