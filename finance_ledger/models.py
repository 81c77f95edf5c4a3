"""Ledger data model.

A :class:`Ledger` owns twelve :class:`MonthLedger` values (month index 0-11),
the recurring templates, the categories and the credit card names. Amounts are
``Decimal`` values quantized to cents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

MONTHS_PER_YEAR = 12
DAYS_PER_MONTH_SLOTS = 31
FALLBACK_CATEGORY = "Uncategorized"
CREDIT_PAYMENT_METHOD = "Credit"
BASE_PAYMENT_METHODS = ("Pix", "Debit", "Credit", "Cash", "Other")
DEFAULT_RECURRING_DESCRIPTION = "Recurring entry"

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class EntryKind(str, Enum):
    INCOME_PF = "IncomePF"
    INCOME_LEGAL_ENTITY = "IncomeLegalEntity"
    PERSONAL_EXPENSE = "PersonalExpense"
    BUSINESS_EXPENSE = "BusinessExpense"

    @property
    def is_expense(self) -> bool:
        return self in (EntryKind.PERSONAL_EXPENSE, EntryKind.BUSINESS_EXPENSE)

    @classmethod
    def parse(cls, value: Any) -> Optional["EntryKind"]:
        """Map a persisted ``type`` string to a kind, or ``None`` if unknown.

        Older documents store the Portuguese UI labels, so those are accepted
        as aliases.
        """
        if isinstance(value, EntryKind):
            return value
        if not isinstance(value, str):
            return None
        text = value.strip()
        for kind in cls:
            if text == kind.value:
                return kind
        return _LEGACY_KIND_LABELS.get(text.lower())


_LEGACY_KIND_LABELS: Dict[str, EntryKind] = {
    "ganho pf": EntryKind.INCOME_PF,
    "ganho pj": EntryKind.INCOME_LEGAL_ENTITY,
    "gasto pessoal": EntryKind.PERSONAL_EXPENSE,
    "gasto empresa": EntryKind.BUSINESS_EXPENSE,
}

_LEGACY_PAYMENT_METHODS: Dict[str, str] = {
    "débito": "Debit",
    "debito": "Debit",
    "crédito": CREDIT_PAYMENT_METHOD,
    "credito": CREDIT_PAYMENT_METHOD,
    "dinheiro": "Cash",
    "outro": "Other",
}


def canonical_payment_method(value: Any) -> str:
    """Map a stored payment method to its current name; blank means the default.

    Older documents use the Portuguese labels, which are translated here.
    Anything else is kept as written.
    """
    if value is None:
        return BASE_PAYMENT_METHODS[0]
    text = str(value).strip()
    if not text:
        return BASE_PAYMENT_METHODS[0]
    return _LEGACY_PAYMENT_METHODS.get(text.lower(), text)


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: Any) -> Decimal:
    """Parse a user-entered amount; anything unparsable is zero.

    Accepts ints, floats, Decimals and strings such as ``"1,234.50"``,
    ``"1.234,50"``, ``"12,5"`` or ``"(12.34)"``.
    """
    if isinstance(value, bool) or value is None:
        return ZERO
    if isinstance(value, Decimal):
        return to_cents(value) if value.is_finite() else ZERO
    if isinstance(value, (int, float)):
        try:
            dec = Decimal(str(value))
        except InvalidOperation:
            return ZERO
        return to_cents(dec) if dec.is_finite() else ZERO
    if not isinstance(value, str):
        return ZERO

    v = value.strip().replace(" ", "")
    negative = False
    # Some inputs wrap negatives in parentheses, e.g., (12.34)
    if v.startswith("(") and v.endswith(")"):
        v = v[1:-1]
        negative = True
    if "," in v and "." in v:
        if v.rfind(",") > v.rfind("."):
            v = v.replace(".", "").replace(",", ".")
        else:
            v = v.replace(",", "")
    elif "," in v:
        head, _, tail = v.rpartition(",")
        if v.count(",") == 1 and len(tail) in (1, 2):
            v = f"{head}.{tail}"
        else:
            v = v.replace(",", "")
    try:
        dec = Decimal(v)
    except InvalidOperation:
        return ZERO
    if not dec.is_finite():
        return ZERO
    return to_cents(-dec if negative else dec)


@dataclass
class Category:
    name: str
    budget: Decimal = ZERO


@dataclass
class RecurringTemplate:
    id: int
    description: str
    amount: Decimal
    day_of_month: int
    kind: str  # raw persisted value; see EntryKind.parse
    category: Optional[str] = None
    payment_method: Optional[str] = None
    card: Optional[str] = None

    @property
    def entry_kind(self) -> Optional[EntryKind]:
        return EntryKind.parse(self.kind)


@dataclass
class LedgerEntry:
    id: int
    description: str = ""
    amount: Decimal = ZERO
    is_recurring: bool = False
    recurring_id: Optional[int] = None


@dataclass
class ExpenseEntry(LedgerEntry):
    category: str = FALLBACK_CATEGORY
    payment_method: str = BASE_PAYMENT_METHODS[0]
    card: Optional[str] = None


@dataclass
class DayRecord:
    personal_entries: List[ExpenseEntry] = field(default_factory=list)
    business_entries: List[ExpenseEntry] = field(default_factory=list)


def _empty_days() -> List[DayRecord]:
    return [DayRecord() for _ in range(DAYS_PER_MONTH_SLOTS)]


@dataclass
class MonthLedger:
    income_legal_entity: List[LedgerEntry] = field(default_factory=list)
    income_personal: List[LedgerEntry] = field(default_factory=list)
    days: List[DayRecord] = field(default_factory=_empty_days)

    def income_collections(self) -> Tuple[List[LedgerEntry], List[LedgerEntry]]:
        return self.income_legal_entity, self.income_personal

    def expense_collections(self) -> Iterator[List[ExpenseEntry]]:
        for day in self.days:
            yield day.personal_entries
            yield day.business_entries

    def iter_personal_expenses(self) -> Iterator[ExpenseEntry]:
        for day in self.days:
            yield from day.personal_entries

    def iter_business_expenses(self) -> Iterator[ExpenseEntry]:
        for day in self.days:
            yield from day.business_entries

    def iter_expenses(self) -> Iterator[ExpenseEntry]:
        for collection in self.expense_collections():
            yield from collection

    def iter_entries(self) -> Iterator[LedgerEntry]:
        yield from self.income_legal_entity
        yield from self.income_personal
        yield from self.iter_expenses()

    def recurring_ids(self) -> set:
        return {e.recurring_id for e in self.iter_entries() if e.recurring_id}


@dataclass
class Profile:
    name: str = ""
    avatar_url: str = ""


@dataclass
class Ledger:
    months: List[MonthLedger] = field(default_factory=lambda: [MonthLedger() for _ in range(MONTHS_PER_YEAR)])
    templates: List[RecurringTemplate] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    cards: List[str] = field(default_factory=list)
    profile: Profile = field(default_factory=Profile)
    # Top-level document keys the ledger does not model, kept for round trips.
    extra: Dict[str, Any] = field(default_factory=dict)
    _last_id: int = field(default=0, repr=False, compare=False)

    def new_id(self) -> int:
        """Return an id never handed out before in this session."""
        if not self._last_id:
            self.reseed_ids()
        self._last_id += 1
        return self._last_id

    def reseed_ids(self) -> None:
        highest = 0
        for month in self.months:
            for entry in month.iter_entries():
                if isinstance(entry.id, int) and entry.id > highest:
                    highest = entry.id
        for template in self.templates:
            if isinstance(template.id, int) and template.id > highest:
                highest = template.id
        self._last_id = max(self._last_id, highest)

    def find_category(self, name: Optional[str]) -> Optional[Category]:
        if not name:
            return None
        wanted = name.strip().lower()
        for cat in self.categories:
            if cat.name.lower() == wanted:
                return cat
        return None

    def find_template(self, template_id: int) -> Optional[RecurringTemplate]:
        for template in self.templates:
            if template.id == template_id:
                return template
        return None
