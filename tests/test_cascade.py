from decimal import Decimal

import pytest

from finance_ledger.cascade import rename_category
from finance_ledger.errors import CategoryNotFound, InvalidName, NameCollision
from finance_ledger.models import Category, ExpenseEntry, RecurringTemplate
from finance_ledger.normalizer import to_document


def _seed(ledger):
    ledger.months[0].days[0].personal_entries.append(ExpenseEntry(id=1, category="Leisure"))
    ledger.months[7].days[12].personal_entries.append(ExpenseEntry(id=2, category="leisure"))
    ledger.months[11].days[30].business_entries.append(ExpenseEntry(id=3, category="LEISURE"))
    ledger.months[3].days[3].personal_entries.append(ExpenseEntry(id=4, category="Food"))
    ledger.templates.append(RecurringTemplate(10, "Cinema", Decimal("30"), 5, "PersonalExpense", category="leisure"))
    ledger.templates.append(RecurringTemplate(11, "Salary", Decimal("3000"), 1, "IncomePF"))


def test_rename_cascades_across_months_and_templates(ledger):
    _seed(ledger)
    cat = rename_category(ledger, "Leisure", "Entertainment")

    assert cat.name == "Entertainment"
    assert cat.budget == Decimal("300.00")
    assert [e.category for m in ledger.months for e in m.iter_expenses()] == [
        "Entertainment",
        "Food",
        "Entertainment",
        "Entertainment",
    ]
    assert ledger.templates[0].category == "Entertainment"
    assert ledger.templates[1].category is None


def test_rename_collision_leaves_state_untouched(ledger):
    _seed(ledger)
    ledger.categories.append(Category("Entertainment", Decimal("50")))
    before = to_document(ledger)

    with pytest.raises(NameCollision):
        rename_category(ledger, "Leisure", "entertainment")

    assert to_document(ledger) == before


def test_rename_matches_old_name_case_insensitively(ledger):
    _seed(ledger)
    rename_category(ledger, "LEISURE", "Fun")
    assert ledger.find_category("fun").name == "Fun"
    assert ledger.find_category("leisure") is None


def test_case_only_rename_is_allowed(ledger):
    _seed(ledger)
    rename_category(ledger, "Leisure", "leisure")
    assert [c.name for c in ledger.categories][1] == "leisure"
    assert ledger.templates[0].category == "leisure"


def test_rename_rejects_blank_and_unknown(ledger):
    with pytest.raises(InvalidName):
        rename_category(ledger, "Leisure", "   ")
    with pytest.raises(CategoryNotFound):
        rename_category(ledger, "Travel", "Trips")
