from datetime import date, datetime
from bson import ObjectId
from models.expense import Expense, ExpenseIn, expense_from_document, expense_to_document


def test_expense_in_ignores_client_id():
    expense_in = ExpenseIn.model_validate({"id": "abc", "title": "Lunch", "amount": 12.5})
    assert "id" not in expense_in.model_dump()
    assert expense_in.title == "Lunch"


def test_expense_in_defaults():
    expense_in = ExpenseIn()
    assert expense_in.amount == 0.0
    assert expense_in.date is None
    assert expense_in.notes is None


def test_document_stores_date_as_midnight_datetime():
    doc = expense_to_document(ExpenseIn(title="Taxi", amount=8, category="Transport", date=date(2024, 3, 1)))
    assert doc["date"] == datetime(2024, 3, 1)
    assert "_id" not in doc


def test_document_keeps_existing_id():
    oid = ObjectId()
    doc = expense_to_document(Expense(id=str(oid), title="Taxi", date=date(2024, 3, 1)))
    assert doc["_id"] == oid


def test_expense_from_document():
    oid = ObjectId()
    expense = expense_from_document({
        "_id": oid,
        "title": "Groceries",
        "amount": -4.2,
        "category": "Food",
        "date": datetime(2024, 5, 17),
        "notes": None,
    })
    assert expense.id == str(oid)
    assert expense.date == date(2024, 5, 17)
    assert expense.amount == -4.2


def test_wire_format_uses_iso_dates():
    expense = Expense(id="x1", title="Book", amount=20, category="Leisure", date=date(2024, 1, 9))
    assert expense.model_dump(mode="json")["date"] == "2024-01-09"
