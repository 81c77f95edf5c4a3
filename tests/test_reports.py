import csv
import io
import json

import pytest

from finance_ledger.errors import IndexOutOfRange
from finance_ledger.reports import (
    build_annual_report,
    build_month_report,
    export_month_csv,
    export_report_json,
    format_annual_report,
    format_text_report,
)


@pytest.fixture
def report(store, ledger):
    ledger.cards.append("Visa")
    store.add_income(1, "pj", "Invoice", 1000)
    store.add_income(1, "pf", "Salary", 500)
    store.add_expense(1, 4, "personal", "Groceries", 150, category="Food")
    store.add_expense(1, 9, "business", "Laptop", 200, category="Leisure", payment_method="Credit")
    return build_month_report(ledger, 1)


def test_month_report_shape(report):
    assert report["month"] == 1
    assert report["month_name"] == "February"
    assert report["totals"]["remainingTotal"] == 1150.0
    assert report["category_breakdown"] == {"Food": 150.0, "Leisure": 0.0, "Uncategorized": 0.0}
    assert report["budget_alerts"] == [{"category": "Food", "overage": 50.0}]
    assert report["payment_methods"]["Credit (Visa)"] == 200.0
    kinds = [(row["kind"], row["day"]) for row in report["entries"]]
    assert kinds == [
        ("IncomeLegalEntity", None),
        ("IncomePF", None),
        ("PersonalExpense", 5),
        ("BusinessExpense", 10),
    ]


def test_month_report_rejects_bad_index(ledger):
    with pytest.raises(IndexOutOfRange):
        build_month_report(ledger, -1)


def test_text_report(report):
    text = format_text_report(report)
    assert text.startswith("=== February ===")
    assert "Remaining total:       1150.00" in text
    assert "-- Budget Alerts --" in text
    assert "over by 50.00" in text


def test_csv_export(report):
    buffer = io.StringIO()
    export_month_csv(report, buffer)
    rows = list(csv.reader(io.StringIO(buffer.getvalue())))
    assert rows[0] == ["Section", "Item", "Metric", "Value"]
    assert ["Summary", "", "Total Income", "1500.00"] in rows
    assert ["Summary", "", "Total Expenses", "350.00"] in rows
    assert ["Budget Alerts", "Food", "Overage", "50.00"] in rows
    assert ["Kind", "Day", "Description", "Amount", "Category", "Payment Method", "Card"] in rows
    assert rows[-1] == ["BusinessExpense", "10", "Laptop", "200.00", "Leisure", "Credit", "Visa"]


def test_csv_and_json_export_to_paths(report, tmp_path):
    csv_path = tmp_path / "out" / "month.csv"
    json_path = tmp_path / "out" / "month.json"
    export_month_csv(report, csv_path)
    export_report_json(report, json_path)
    assert csv_path.read_text(encoding="utf-8").startswith("Section,Item,Metric,Value\n")
    assert json.loads(json_path.read_text(encoding="utf-8"))["month_name"] == "February"


def test_annual_report(store, ledger):
    store.add_income(0, "pf", "Salary", 100)
    store.add_expense(11, 0, "personal", "Gift", 30)
    annual = build_annual_report(ledger)
    assert len(annual["months"]) == 12
    assert annual["months"][11]["month_name"] == "December"
    assert annual["year"]["remainingTotal"] == 70.0
    assert format_annual_report(annual).endswith("Year balance: 70.00")
