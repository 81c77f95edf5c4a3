import json

import pytest

from finance_ledger.cli import main


@pytest.fixture
def data_dir(tmp_path):
    document = {
        "categories": [{"name": "Food", "budget": 100}, {"name": "Leisure", "budget": 0}],
        "recurringEntries": [
            {"id": 7, "description": "Salary", "amount": 3000, "dayOfMonth": 5, "type": "IncomePF"},
            {
                "id": 8,
                "description": "Groceries",
                "amount": 250,
                "dayOfMonth": 31,
                "type": "PersonalExpense",
                "category": "Food",
                "paymentMethod": "Pix",
            },
        ],
    }
    (tmp_path / "alice.json").write_text(json.dumps(document), encoding="utf-8")
    return tmp_path


def _run(data_dir, *args):
    return main(["--data", str(data_dir), "--key", "alice", "--year", "2025", *args])


def _stored(data_dir):
    return json.loads((data_dir / "alice.json").read_text(encoding="utf-8"))


def test_materialize_persists_entries(data_dir, capsys):
    assert _run(data_dir, "materialize", "--month", "4") == 0
    out = capsys.readouterr().out
    assert "Created 2 entr(ies); skipped 0 template(s)" in out
    month = _stored(data_dir)["monthlyData"]["3"]
    assert month["pfEntries"][0]["recurringId"] == 7
    assert month["expenses"][29]["personalEntries"][0]["recurringId"] == 8


def test_summary_shows_alerts(data_dir, capsys):
    assert _run(data_dir, "summary", "--month", "1") == 0
    out = capsys.readouterr().out
    assert "=== January ===" in out
    assert "Food            over by 150.00" in out


def test_annual(data_dir, capsys):
    _run(data_dir, "materialize", "--month", "1")
    capsys.readouterr()
    assert _run(data_dir, "annual") == 0
    assert "Year balance: 2750.00" in capsys.readouterr().out


def test_rename_category(data_dir, capsys):
    assert _run(data_dir, "rename-category", "food", "Groceries") == 0
    assert "Renamed category to Groceries" in capsys.readouterr().out
    stored = _stored(data_dir)
    assert stored["categories"][0]["name"] == "Groceries"
    assert stored["recurringEntries"][1]["category"] == "Groceries"


def test_rename_collision_reports_error(data_dir, capsys):
    assert _run(data_dir, "rename-category", "Food", "leisure") == 1
    assert "error:" in capsys.readouterr().err
    assert _stored(data_dir)["categories"][0]["name"] == "Food"


def test_delete_template_from_month(data_dir, capsys):
    for month in ("1", "2", "3"):
        _run(data_dir, "materialize", "--month", month)
    assert _run(data_dir, "delete-template", "7", "--from-month", "2") == 0
    assert "Deleted recurring entry 'Salary'" in capsys.readouterr().out
    stored = _stored(data_dir)
    assert [t["id"] for t in stored["recurringEntries"]] == [8]
    assert len(stored["monthlyData"]["0"]["pfEntries"]) == 1
    assert stored["monthlyData"]["1"]["pfEntries"] == []
    assert stored["monthlyData"]["2"]["pfEntries"] == []


def test_delete_unknown_template(data_dir, capsys):
    assert _run(data_dir, "delete-template", "99") == 1
    assert "error:" in capsys.readouterr().err


def test_export(data_dir, tmp_path, capsys):
    csv_path = tmp_path / "exports" / "jan.csv"
    json_path = tmp_path / "exports" / "jan.json"
    assert _run(data_dir, "export", "--month", "1", "--csv", str(csv_path), "--json", str(json_path)) == 0
    assert csv_path.exists()
    assert json.loads(json_path.read_text(encoding="utf-8"))["month_name"] == "January"


def test_export_without_target(data_dir, capsys):
    assert _run(data_dir, "export", "--month", "1") == 2


def test_month_must_be_in_range(data_dir):
    with pytest.raises(SystemExit):
        _run(data_dir, "summary", "--month", "13")
