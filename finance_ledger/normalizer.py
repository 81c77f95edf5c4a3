"""Load-time repair of persisted ledger documents.

``normalize`` turns whatever the storage collaborator returned (possibly
nothing, possibly a document written by an older version) into a structurally
valid :class:`~finance_ledger.models.Ledger`: twelve months, 31 day slots per
month, unique case-insensitive category names and every expense entry pointing
at an existing category. ``to_document`` is the inverse used when saving.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Set

from .config import AppConfig
from .logging_setup import get_logger
from .models import (
    CREDIT_PAYMENT_METHOD,
    DAYS_PER_MONTH_SLOTS,
    MONTHS_PER_YEAR,
    Category,
    DayRecord,
    ExpenseEntry,
    Ledger,
    LedgerEntry,
    MonthLedger,
    Profile,
    RecurringTemplate,
    EntryKind,
    canonical_payment_method,
    parse_amount,
)

logger = get_logger("finance_ledger.normalizer")

_KNOWN_KEYS = {"profile", "categories", "creditCards", "recurringEntries", "monthlyData"}


def _as_int(value: Any) -> Optional[int]:
    """Integer ids only; bools, fractional floats and junk map to ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _card_for(payment_method: str, card: Any) -> Optional[str]:
    if payment_method != CREDIT_PAYMENT_METHOD:
        return None
    return _as_text(card).strip() or None


class _Repairs:
    def __init__(self) -> None:
        self.count = 0

    def note(self, what: str, *args: Any) -> None:
        self.count += 1
        logger.debug("normalize: " + what, *args)


def normalize(raw: Any, config: Optional[AppConfig] = None) -> Ledger:
    """Build a valid ledger from a partial document. Never raises."""
    cfg = config or AppConfig()
    repairs = _Repairs()
    doc: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
    if raw is not None and not isinstance(raw, Mapping):
        repairs.note("document of type %s replaced by an empty ledger", type(raw).__name__)

    ledger = Ledger()
    ledger.profile = _normalize_profile(doc.get("profile"))
    ledger.extra = {k: v for k, v in doc.items() if k not in _KNOWN_KEYS}
    ledger.categories = _normalize_categories(doc.get("categories"), cfg, repairs)
    ledger.cards = _normalize_cards(doc.get("creditCards"))

    fallback = cfg.fallback_category
    uses_fallback = False

    def canonical_category(name: Any) -> str:
        nonlocal uses_fallback
        cat = ledger.find_category(_as_text(name).strip())
        if cat is not None:
            return cat.name
        uses_fallback = True
        return fallback

    ledger.templates = _normalize_templates(doc.get("recurringEntries"), canonical_category, repairs)

    monthly = doc.get("monthlyData")
    monthly = monthly if isinstance(monthly, Mapping) else {}
    for i in range(MONTHS_PER_YEAR):
        raw_month = monthly.get(str(i), monthly.get(i))
        if not isinstance(raw_month, Mapping):
            if raw_month is not None:
                repairs.note("month %d was not a mapping", i)
            continue
        ledger.months[i] = _normalize_month(i, raw_month, canonical_category, repairs)

    if uses_fallback and ledger.find_category(fallback) is None:
        ledger.categories.append(Category(fallback))
        repairs.note("added fallback category %r", fallback)

    _assign_missing_ids(ledger, repairs)

    if repairs.count:
        logger.info("Normalized ledger document with %d repair(s)", repairs.count)
    return ledger


def _normalize_profile(raw: Any) -> Profile:
    if not isinstance(raw, Mapping):
        return Profile()
    return Profile(name=_as_text(raw.get("name")), avatar_url=_as_text(raw.get("avatarUrl")))


def _normalize_categories(raw: Any, cfg: AppConfig, repairs: _Repairs) -> List[Category]:
    if not isinstance(raw, list) or not raw:
        return cfg.default_categories()
    seen: Set[str] = set()
    cats: List[Category] = []
    for item in raw:
        if not isinstance(item, Mapping):
            repairs.note("dropped category %r", item)
            continue
        name = _as_text(item.get("name")).strip()
        if not name or name.lower() in seen:
            repairs.note("dropped blank or duplicate category %r", name)
            continue
        seen.add(name.lower())
        budget = parse_amount(item.get("budget"))
        if budget < 0:
            budget = parse_amount(0)
        cats.append(Category(name=name, budget=budget))
    return cats or cfg.default_categories()


def _normalize_cards(raw: Any) -> List[str]:
    cards: List[str] = []
    if not isinstance(raw, list):
        return cards
    for item in raw:
        if isinstance(item, str) and item.strip() and item.strip() not in cards:
            cards.append(item.strip())
    return cards


def _normalize_templates(raw: Any, canonical_category, repairs: _Repairs) -> List[RecurringTemplate]:
    templates: List[RecurringTemplate] = []
    if not isinstance(raw, list):
        return templates
    seen_ids: Set[int] = set()
    for item in raw:
        if not isinstance(item, Mapping):
            repairs.note("dropped recurring template %r", item)
            continue
        tid = _as_int(item.get("id"))
        if not tid or tid in seen_ids:
            repairs.note("template id %r reassigned", item.get("id"))
            tid = None
        else:
            seen_ids.add(tid)
        kind_raw = _as_text(item.get("type", item.get("kind")))
        kind = EntryKind.parse(kind_raw)
        day = _as_int(item.get("dayOfMonth"))
        template = RecurringTemplate(
            id=tid,  # type: ignore[arg-type]  # filled by _assign_missing_ids
            description=_as_text(item.get("description")),
            amount=parse_amount(item.get("amount")),
            day_of_month=day if day is not None else 1,
            kind=kind_raw,
        )
        if kind is None:
            # Unknown kinds are skipped at materialization; keep their fields as stored.
            template.category = _as_text(item.get("category")) or None
            template.payment_method = _as_text(item.get("paymentMethod")) or None
            template.card = _as_text(item.get("card")) or None
        elif kind.is_expense:
            template.category = canonical_category(item.get("category"))
            template.payment_method = canonical_payment_method(item.get("paymentMethod"))
            template.card = _card_for(template.payment_method, item.get("card"))
        templates.append(template)
    return templates


def _normalize_income(raw: Any, repairs: _Repairs) -> List[LedgerEntry]:
    entries: List[LedgerEntry] = []
    if not isinstance(raw, list):
        return entries
    seen_ids: Set[int] = set()
    for item in raw:
        if not isinstance(item, Mapping):
            repairs.note("dropped income entry %r", item)
            continue
        entries.append(
            LedgerEntry(
                id=_unique_id(item.get("id"), seen_ids, repairs),  # type: ignore[arg-type]
                description=_as_text(item.get("description")),
                amount=parse_amount(item.get("amount")),
                is_recurring=bool(item.get("isRecurring", False)),
                recurring_id=_as_int(item.get("recurringId")),
            )
        )
    return entries


def _normalize_expenses(raw: Any, canonical_category, seen_ids: Set[int], repairs: _Repairs) -> List[ExpenseEntry]:
    entries: List[ExpenseEntry] = []
    if not isinstance(raw, list):
        return entries
    for item in raw:
        if not isinstance(item, Mapping):
            repairs.note("dropped expense entry %r", item)
            continue
        category = item.get("category")
        if not category:
            repairs.note("expense entry %r had no category", item.get("id"))
        payment_method = canonical_payment_method(item.get("paymentMethod"))
        entries.append(
            ExpenseEntry(
                id=_unique_id(item.get("id"), seen_ids, repairs),  # type: ignore[arg-type]
                description=_as_text(item.get("description")),
                amount=parse_amount(item.get("amount")),
                is_recurring=bool(item.get("isRecurring", False)),
                recurring_id=_as_int(item.get("recurringId")),
                category=canonical_category(category),
                payment_method=payment_method,
                card=_card_for(payment_method, item.get("card")),
            )
        )
    return entries


def _normalize_month(index: int, raw: Mapping[str, Any], canonical_category, repairs: _Repairs) -> MonthLedger:
    month = MonthLedger(
        income_legal_entity=_normalize_income(raw.get("pjEntries"), repairs),
        income_personal=_normalize_income(raw.get("pfEntries"), repairs),
    )
    raw_days = raw.get("expenses")
    if not isinstance(raw_days, list):
        repairs.note("month %d had no expenses list", index)
        return month
    if len(raw_days) != DAYS_PER_MONTH_SLOTS:
        repairs.note("month %d had %d day slots", index, len(raw_days))
    # Ids only need to be unique within their owning collection, but one set per
    # side of the month keeps update-by-id unambiguous across days.
    personal_ids: Set[int] = set()
    business_ids: Set[int] = set()
    for d, raw_day in enumerate(raw_days[:DAYS_PER_MONTH_SLOTS]):
        if not isinstance(raw_day, Mapping):
            continue
        month.days[d] = DayRecord(
            personal_entries=_normalize_expenses(raw_day.get("personalEntries"), canonical_category, personal_ids, repairs),
            business_entries=_normalize_expenses(raw_day.get("businessEntries"), canonical_category, business_ids, repairs),
        )
    return month


def _unique_id(value: Any, seen: Set[int], repairs: _Repairs) -> Optional[int]:
    eid = _as_int(value)
    if eid is None or eid in seen:
        repairs.note("entry id %r reassigned", value)
        return None
    seen.add(eid)
    return eid


def _assign_missing_ids(ledger: Ledger, repairs: _Repairs) -> None:
    ledger.reseed_ids()
    for template in ledger.templates:
        if template.id is None:
            template.id = ledger.new_id()
    for month in ledger.months:
        for entry in month.iter_entries():
            if entry.id is None:
                entry.id = ledger.new_id()


def _amount_out(value) -> float:
    return float(value)


def entry_to_dict(entry: LedgerEntry) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": entry.id,
        "description": entry.description,
        "amount": _amount_out(entry.amount),
    }
    if entry.is_recurring:
        out["isRecurring"] = True
    if entry.recurring_id is not None:
        out["recurringId"] = entry.recurring_id
    if isinstance(entry, ExpenseEntry):
        out["category"] = entry.category
        out["paymentMethod"] = entry.payment_method
        out["card"] = entry.card or ""
    return out


def template_to_dict(template: RecurringTemplate) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": template.id,
        "description": template.description,
        "amount": _amount_out(template.amount),
        "dayOfMonth": template.day_of_month,
        "type": template.kind,
    }
    if template.category is not None:
        out["category"] = template.category
    if template.payment_method is not None:
        out["paymentMethod"] = template.payment_method
    if template.card is not None:
        out["card"] = template.card
    return out


def to_document(ledger: Ledger) -> Dict[str, Any]:
    """Serialize a ledger into the persisted document shape."""
    doc: Dict[str, Any] = dict(ledger.extra)
    doc.update(
        {
            "profile": {"name": ledger.profile.name, "avatarUrl": ledger.profile.avatar_url},
            "categories": [{"name": c.name, "budget": _amount_out(c.budget)} for c in ledger.categories],
            "creditCards": list(ledger.cards),
            "recurringEntries": [template_to_dict(t) for t in ledger.templates],
            "monthlyData": {
                str(i): {
                    "pjEntries": [entry_to_dict(e) for e in month.income_legal_entity],
                    "pfEntries": [entry_to_dict(e) for e in month.income_personal],
                    "expenses": [
                        {
                            "personalEntries": [entry_to_dict(e) for e in day.personal_entries],
                            "businessEntries": [entry_to_dict(e) for e in day.business_entries],
                        }
                        for day in month.days
                    ],
                }
                for i, month in enumerate(ledger.months)
            },
        }
    )
    return doc
