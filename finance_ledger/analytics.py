"""Totals, budget alerts and breakdowns.

Pure functions over a month's entries. Nothing here is cached; callers
recompute after every mutation that touches an amount, a category or the set
of entries.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .models import (
    CREDIT_PAYMENT_METHOD,
    BASE_PAYMENT_METHODS,
    ZERO,
    Category,
    Ledger,
    MonthLedger,
    to_cents,
)


@dataclass(frozen=True)
class Totals:
    income_legal_entity: Decimal = ZERO
    income_personal: Decimal = ZERO
    personal_expense: Decimal = ZERO
    business_expense: Decimal = ZERO

    @property
    def remaining_personal(self) -> Decimal:
        return self.income_personal - self.personal_expense

    @property
    def remaining_business(self) -> Decimal:
        return self.income_legal_entity - self.business_expense

    @property
    def remaining_total(self) -> Decimal:
        return self.remaining_personal + self.remaining_business

    @property
    def total_income(self) -> Decimal:
        return self.income_legal_entity + self.income_personal

    @property
    def total_expense(self) -> Decimal:
        return self.personal_expense + self.business_expense

    def __add__(self, other: "Totals") -> "Totals":
        return Totals(
            income_legal_entity=self.income_legal_entity + other.income_legal_entity,
            income_personal=self.income_personal + other.income_personal,
            personal_expense=self.personal_expense + other.personal_expense,
            business_expense=self.business_expense + other.business_expense,
        )

    def as_dict(self) -> Dict[str, float]:
        return {
            "incomeLegalEntity": float(self.income_legal_entity),
            "incomePersonal": float(self.income_personal),
            "personalExpense": float(self.personal_expense),
            "businessExpense": float(self.business_expense),
            "remainingPersonal": float(self.remaining_personal),
            "remainingBusiness": float(self.remaining_business),
            "remainingTotal": float(self.remaining_total),
        }


@dataclass(frozen=True)
class BudgetAlert:
    category: str
    overage: Decimal

    def as_dict(self) -> Dict[str, object]:
        return {"category": self.category, "overage": float(self.overage)}


def _sum(amounts: Iterable[Decimal]) -> Decimal:
    return to_cents(sum(amounts, ZERO))


def compute_totals(month: MonthLedger) -> Totals:
    return Totals(
        income_legal_entity=_sum(e.amount for e in month.income_legal_entity),
        income_personal=_sum(e.amount for e in month.income_personal),
        personal_expense=_sum(e.amount for e in month.iter_personal_expenses()),
        business_expense=_sum(e.amount for e in month.iter_business_expenses()),
    )


def _personal_spend_by_name(month: MonthLedger) -> Dict[str, Decimal]:
    spent: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for entry in month.iter_personal_expenses():
        spent[(entry.category or "").lower()] += entry.amount
    return spent


def compute_budget_alerts(month: MonthLedger, categories: Iterable[Category]) -> List[BudgetAlert]:
    """One alert per category whose personal spend strictly exceeds its budget.

    Business entries do not count against budgets, and a budget of zero or
    less means no budget is configured.
    """
    spent = _personal_spend_by_name(month)
    alerts: List[BudgetAlert] = []
    for cat in categories:
        if cat.budget <= 0:
            continue
        actual = spent.get(cat.name.lower(), ZERO)
        if actual > cat.budget:
            alerts.append(BudgetAlert(category=cat.name, overage=to_cents(actual - cat.budget)))
    return alerts


def category_breakdown(month: MonthLedger, categories: Iterable[Category]) -> Dict[str, Decimal]:
    """Personal spend per configured category, in category order."""
    spent = _personal_spend_by_name(month)
    return {cat.name: to_cents(spent.get(cat.name.lower(), ZERO)) for cat in categories}


def budget_usage(month: MonthLedger, categories: Iterable[Category]) -> List[Dict[str, object]]:
    spent = _personal_spend_by_name(month)
    usage: List[Dict[str, object]] = []
    for cat in categories:
        if cat.budget <= 0:
            continue
        actual = to_cents(spent.get(cat.name.lower(), ZERO))
        usage.append({
            "category": cat.name,
            "spent": float(actual),
            "budget": float(cat.budget),
            "remaining": float(cat.budget - actual),
            "percent_used": round(float(actual / cat.budget) * 100, 2),
        })
    return usage


def payment_method_label(payment_method: str, card: Optional[str]) -> str:
    if payment_method == CREDIT_PAYMENT_METHOD:
        return f"{CREDIT_PAYMENT_METHOD} ({card or ''})"
    return payment_method


def payment_method_breakdown(month: MonthLedger, cards: Iterable[str]) -> Dict[str, Decimal]:
    """Personal and business spend per payment method; credit is split per card.

    Every base method and every configured card gets a key even when unused.
    Spend on methods or cards that are no longer configured gets its own key.
    """
    totals: Dict[str, Decimal] = {m: ZERO for m in BASE_PAYMENT_METHODS if m != CREDIT_PAYMENT_METHOD}
    for card in cards:
        totals[payment_method_label(CREDIT_PAYMENT_METHOD, card)] = ZERO
    for entry in month.iter_expenses():
        key = payment_method_label(entry.payment_method, entry.card)
        totals[key] = totals.get(key, ZERO) + entry.amount
    return {k: to_cents(v) for k, v in totals.items()}


def annual_summary(ledger: Ledger) -> Dict[str, object]:
    """Per-month totals for the whole year plus the year total."""
    monthly = [compute_totals(month) for month in ledger.months]
    year = Totals()
    for totals in monthly:
        year = year + totals
    return {"months": monthly, "year": year}
