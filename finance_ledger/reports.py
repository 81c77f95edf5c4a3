"""Reporting utilities.

Turns a month of the ledger into the stable, JSON-serializable shape that the
exporters and the web API consume, and writes it out as text, CSV or JSON.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Dict, IO, List, Optional

from . import analytics as an
from .models import MONTHS_PER_YEAR, ExpenseEntry, Ledger, LedgerEntry, EntryKind
from .errors import IndexOutOfRange

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def _entry_row(kind: EntryKind, entry: LedgerEntry, day: Optional[int] = None) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "kind": kind.value,
        "day": day,
        "id": entry.id,
        "description": entry.description,
        "amount": float(entry.amount),
        "category": "",
        "payment_method": "",
        "card": "",
        "recurring_id": entry.recurring_id,
    }
    if isinstance(entry, ExpenseEntry):
        row.update(category=entry.category, payment_method=entry.payment_method, card=entry.card or "")
    return row


def build_month_report(ledger: Ledger, month_index: int) -> Dict[str, Any]:
    if not 0 <= month_index < MONTHS_PER_YEAR:
        raise IndexOutOfRange(f"Month index must be 0-{MONTHS_PER_YEAR - 1}, got {month_index}", month_index)
    month = ledger.months[month_index]
    entries: List[Dict[str, Any]] = []
    entries.extend(_entry_row(EntryKind.INCOME_LEGAL_ENTITY, e) for e in month.income_legal_entity)
    entries.extend(_entry_row(EntryKind.INCOME_PF, e) for e in month.income_personal)
    for d, day in enumerate(month.days):
        entries.extend(_entry_row(EntryKind.PERSONAL_EXPENSE, e, d + 1) for e in day.personal_entries)
        entries.extend(_entry_row(EntryKind.BUSINESS_EXPENSE, e, d + 1) for e in day.business_entries)

    return {
        "month": month_index,
        "month_name": MONTH_NAMES[month_index],
        "totals": an.compute_totals(month).as_dict(),
        "category_breakdown": {k: float(v) for k, v in an.category_breakdown(month, ledger.categories).items()},
        "payment_methods": {k: float(v) for k, v in an.payment_method_breakdown(month, ledger.cards).items()},
        "budget_alerts": [a.as_dict() for a in an.compute_budget_alerts(month, ledger.categories)],
        "budget_usage": an.budget_usage(month, ledger.categories),
        "entries": entries,
    }


def build_annual_report(ledger: Ledger) -> Dict[str, Any]:
    summary = an.annual_summary(ledger)
    return {
        "months": [
            {"month": i, "month_name": MONTH_NAMES[i], **totals.as_dict()}
            for i, totals in enumerate(summary["months"])
        ],
        "year": summary["year"].as_dict(),
    }


def format_text_report(report: Dict[str, Any]) -> str:
    lines: List[str] = []
    t = report["totals"]
    lines.append(f"=== {report.get('month_name', report['month'])} ===")
    lines.append(f"Income (legal entity): {t['incomeLegalEntity']:.2f}")
    lines.append(f"Income (personal):     {t['incomePersonal']:.2f}")
    lines.append(f"Personal expenses:     {t['personalExpense']:.2f}")
    lines.append(f"Business expenses:     {t['businessExpense']:.2f}")
    lines.append(f"Remaining personal:    {t['remainingPersonal']:.2f}")
    lines.append(f"Remaining business:    {t['remainingBusiness']:.2f}")
    lines.append(f"Remaining total:       {t['remainingTotal']:.2f}")
    lines.append("")

    lines.append("-- Spend by Category --")
    for cat, amt in report["category_breakdown"].items():
        lines.append(f"{cat:15} {amt:.2f}")
    lines.append("")

    alerts = report.get("budget_alerts") or []
    if alerts:
        lines.append("-- Budget Alerts --")
        for alert in alerts:
            lines.append(f"{alert['category']:15} over by {alert['overage']:.2f}")
        lines.append("")

    lines.append("-- Payment Methods --")
    for method, amt in report["payment_methods"].items():
        lines.append(f"{method:20} {amt:.2f}")
    return "\n".join(lines)


def format_annual_report(report: Dict[str, Any]) -> str:
    lines = ["=== Annual Balance ==="]
    for row in report["months"]:
        lines.append(
            f"{row['month_name']:10} | Inc {row['incomeLegalEntity'] + row['incomePersonal']:.2f}"
            f"  Exp {row['personalExpense'] + row['businessExpense']:.2f}  Bal {row['remainingTotal']:.2f}"
        )
    year = report["year"]
    lines.append("")
    lines.append(f"Year balance: {year['remainingTotal']:.2f}")
    return "\n".join(lines)


def save_json(report: Dict[str, Any], path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)


def _ensure_text_writer(target: str | Path | IO[str]):
    if hasattr(target, "write"):
        return target, None
    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = path.open("w", newline="", encoding="utf-8")
    return handle, handle


def export_month_csv(report: Dict[str, Any], path: str | Path | IO[str]) -> None:
    def fmt_amount(value) -> str:
        if value is None:
            return ""
        return f"{float(value):.2f}"

    t = report.get("totals") or {}
    rows: List[List[str]] = [
        ["Section", "Item", "Metric", "Value"],
        ["Summary", "", "Total Income", fmt_amount(t.get("incomeLegalEntity", 0) + t.get("incomePersonal", 0))],
        ["Summary", "", "Total Expenses", fmt_amount(t.get("personalExpense", 0) + t.get("businessExpense", 0))],
        ["Summary", "", "Balance", fmt_amount(t.get("remainingTotal"))],
    ]
    for cat, amt in (report.get("category_breakdown") or {}).items():
        rows.append(["Category Spend", cat, "Amount", fmt_amount(amt)])
    for alert in report.get("budget_alerts") or []:
        rows.append(["Budget Alerts", alert["category"], "Overage", fmt_amount(alert["overage"])])

    rows.append([])
    rows.append(["Kind", "Day", "Description", "Amount", "Category", "Payment Method", "Card"])
    for e in report.get("entries") or []:
        rows.append([
            e["kind"],
            "" if e["day"] is None else str(e["day"]),
            e["description"],
            fmt_amount(e["amount"]),
            e["category"],
            e["payment_method"],
            e["card"],
        ])

    writer_target, to_close = _ensure_text_writer(path)
    try:
        writer = csv.writer(writer_target, lineterminator="\n")
        writer.writerows(rows)
    finally:
        if to_close is not None:
            to_close.close()


def export_report_json(report: Dict[str, Any], path: str | Path | IO[str]) -> None:
    if hasattr(path, "write"):
        json.dump(report, path, indent=2)
        path.write("\n")
        return
    save_json(report, path)
