"""Store adapters translating expense queries into collection operations."""
import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection
from models.expense import Expense, expense_from_document, expense_to_document

logger = logging.getLogger(__name__)

# Newest first, ties in insertion order (ObjectIds grow with insertion time)
DATE_DESC_SORT = [("date", -1), ("_id", 1)]


class ExpenseStore(ABC):
    """The query and mutation shapes the expense service relies on."""

    @abstractmethod
    async def find_all(self) -> List[Expense]:
        """All records, unspecified order."""

    @abstractmethod
    async def find_all_ordered_by_date_desc(self) -> List[Expense]:
        """All records, newest date first."""

    @abstractmethod
    async def find_by_id(self, expense_id: str) -> Optional[Expense]:
        """The record with this id, or None."""

    @abstractmethod
    async def find_by_date_range(self, start: date, end: date) -> List[Expense]:
        """Records with start <= date <= end."""

    @abstractmethod
    async def find_by_category(self, category: str) -> List[Expense]:
        """Records whose category matches exactly."""

    @abstractmethod
    async def find_by_date_range_and_category(self, start: date, end: date, category: str) -> List[Expense]:
        """Records in the inclusive date range with exactly this category."""

    @abstractmethod
    async def insert(self, expense: Expense) -> Expense:
        """Persists a record, assigning an id if it has none."""

    @abstractmethod
    async def replace(self, expense_id: str, expense: Expense) -> Optional[Expense]:
        """Overwrites every field of an existing record. None if the id is unknown."""

    @abstractmethod
    async def delete_by_id(self, expense_id: str) -> bool:
        """Removes a record. Returns False, without failing, if it was already absent."""


def _to_object_id(expense_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(expense_id)
    except (InvalidId, TypeError):
        return None


def _midnight(day: date) -> datetime:
    return datetime.combine(day, datetime.min.time())


class MongoExpenseStore(ExpenseStore):
    """Expense store backed by a motor collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def _find(self, query: Dict[str, Any], operation: str, ordered: bool = True) -> List[Expense]:
        expenses = []
        try:
            cursor = self.collection.find(query)
            if ordered:
                cursor = cursor.sort(DATE_DESC_SORT)
            async for doc in cursor:
                expenses.append(expense_from_document(doc))
        except Exception as e:
            logger.error(f"Database error during {operation}: {e}")
            raise ConnectionError(f"Database error during {operation}: {e}") from e
        logger.debug(f"{operation} matched {len(expenses)} documents in '{self.collection.name}'.")
        return expenses

    async def find_all(self) -> List[Expense]:
        return await self._find({}, "find_all", ordered=False)

    async def find_all_ordered_by_date_desc(self) -> List[Expense]:
        return await self._find({}, "find_all_ordered_by_date_desc")

    async def find_by_id(self, expense_id: str) -> Optional[Expense]:
        oid = _to_object_id(expense_id)
        if oid is None:
            logger.debug(f"'{expense_id}' is not a valid ObjectId, treating as not found.")
            return None
        try:
            doc = await self.collection.find_one({"_id": oid})
        except Exception as e:
            logger.error(f"Database error fetching expense {expense_id}: {e}")
            raise ConnectionError(f"Database error fetching expense {expense_id}: {e}") from e
        return expense_from_document(doc) if doc else None

    async def find_by_date_range(self, start: date, end: date) -> List[Expense]:
        query = {"date": {"$gte": _midnight(start), "$lte": _midnight(end)}}
        return await self._find(query, "find_by_date_range")

    async def find_by_category(self, category: str) -> List[Expense]:
        return await self._find({"category": category}, "find_by_category")

    async def find_by_date_range_and_category(self, start: date, end: date, category: str) -> List[Expense]:
        query = {
            "date": {"$gte": _midnight(start), "$lte": _midnight(end)},
            "category": category,
        }
        return await self._find(query, "find_by_date_range_and_category")

    async def insert(self, expense: Expense) -> Expense:
        doc = expense_to_document(expense)
        try:
            result = await self.collection.insert_one(doc)
        except Exception as e:
            logger.error(f"Database error inserting expense: {e}")
            raise ConnectionError(f"Database error inserting expense: {e}") from e
        return expense.model_copy(update={"id": str(result.inserted_id)})

    async def replace(self, expense_id: str, expense: Expense) -> Optional[Expense]:
        oid = _to_object_id(expense_id)
        if oid is None:
            return None
        doc = expense_to_document(expense)
        doc.pop("_id", None)
        try:
            if await self.collection.find_one({"_id": oid}, {"_id": 1}) is None:
                return None
            result = await self.collection.replace_one({"_id": oid}, doc)
        except Exception as e:
            logger.error(f"Database error replacing expense {expense_id}: {e}")
            raise ConnectionError(f"Database error replacing expense {expense_id}: {e}") from e
        if result.matched_count == 0:
            # Deleted between the existence check and the replace
            return None
        return expense.model_copy(update={"id": str(oid)})

    async def delete_by_id(self, expense_id: str) -> bool:
        oid = _to_object_id(expense_id)
        if oid is None:
            return False
        try:
            result = await self.collection.delete_one({"_id": oid})
        except Exception as e:
            logger.error(f"Database error deleting expense {expense_id}: {e}")
            raise ConnectionError(f"Database error deleting expense {expense_id}: {e}") from e
        return result.deleted_count > 0


class InMemoryExpenseStore(ExpenseStore):
    """
    Dict-backed expense store for running without MongoDB and for tests.
    Ids are ObjectId strings, so they are never reused after deletion.
    Records are copied on the way in and out.
    """

    def __init__(self):
        self._records: Dict[str, Expense] = {}

    def _ordered(self, expenses: List[Expense]) -> List[Expense]:
        # sorted() is stable with reverse=True, so ties keep insertion order
        ordered = sorted(expenses, key=lambda e: e.date or date.min, reverse=True)
        return [e.model_copy() for e in ordered]

    def _in_range(self, expense: Expense, start: date, end: date) -> bool:
        return expense.date is not None and start <= expense.date <= end

    async def find_all(self) -> List[Expense]:
        return [e.model_copy() for e in self._records.values()]

    async def find_all_ordered_by_date_desc(self) -> List[Expense]:
        return self._ordered(self._records.values())

    async def find_by_id(self, expense_id: str) -> Optional[Expense]:
        stored = self._records.get(expense_id)
        return stored.model_copy() if stored else None

    async def find_by_date_range(self, start: date, end: date) -> List[Expense]:
        return self._ordered([e for e in self._records.values() if self._in_range(e, start, end)])

    async def find_by_category(self, category: str) -> List[Expense]:
        return self._ordered([e for e in self._records.values() if e.category == category])

    async def find_by_date_range_and_category(self, start: date, end: date, category: str) -> List[Expense]:
        return self._ordered([
            e for e in self._records.values()
            if self._in_range(e, start, end) and e.category == category
        ])

    async def insert(self, expense: Expense) -> Expense:
        stored = expense.model_copy(update={"id": expense.id or str(ObjectId())})
        self._records[stored.id] = stored
        return stored.model_copy()

    async def replace(self, expense_id: str, expense: Expense) -> Optional[Expense]:
        if expense_id not in self._records:
            return None
        stored = expense.model_copy(update={"id": expense_id})
        self._records[expense_id] = stored
        return stored.model_copy()

    async def delete_by_id(self, expense_id: str) -> bool:
        return self._records.pop(expense_id, None) is not None
