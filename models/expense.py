"""Pydantic models for Expense data and their MongoDB document mapping"""
import datetime as dt
from pydantic import BaseModel
from typing import Any, Dict, Optional
from bson import ObjectId


class ExpenseIn(BaseModel):
    """
    Request body for creating or replacing an expense.
    Any `id` sent by the client is ignored; ids are assigned by the store.
    """
    title: Optional[str] = None
    amount: float = 0.0
    category: Optional[str] = None
    date: Optional[dt.date] = None
    notes: Optional[str] = None


class Expense(ExpenseIn):
    """
    A stored expense record. `id` is None only before the record is persisted.
    """
    id: Optional[str] = None

    class Config:
        populate_by_name = True
        from_attributes = True


def expense_to_document(expense: ExpenseIn) -> Dict[str, Any]:
    """Maps an expense to a MongoDB document. `_id` is only set when the expense already has one."""
    doc = {
        "title": expense.title,
        "amount": expense.amount,
        "category": expense.category,
        # BSON has no date-only type, store midnight
        "date": dt.datetime.combine(expense.date, dt.datetime.min.time()) if expense.date else None,
        "notes": expense.notes,
    }
    expense_id = getattr(expense, "id", None)
    if expense_id is not None:
        doc["_id"] = ObjectId(expense_id)
    return doc


def expense_from_document(doc: Dict[str, Any]) -> Expense:
    """Maps a MongoDB document back to an Expense."""
    stored_date = doc.get("date")
    if isinstance(stored_date, dt.datetime):
        stored_date = stored_date.date()
    return Expense(
        id=str(doc["_id"]) if "_id" in doc else None,
        title=doc.get("title"),
        amount=doc.get("amount", 0.0),
        category=doc.get("category"),
        date=stored_date,
        notes=doc.get("notes"),
    )
