"""Service layer for handling expense-related logic."""
import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional
from models.expense import Expense, ExpenseIn
from services.expense_store import ExpenseStore

logger = logging.getLogger(__name__)


class ExpenseService:
    """
    Business operations over expense records.

    Every call is a stateless transformation over the store passed in at
    construction; the service holds no caches and no locks.
    """

    def __init__(self, store: ExpenseStore):
        self.store = store

    async def create(self, expense_in: ExpenseIn) -> Expense:
        """
        Stores a new expense and returns it with its assigned id.
        A missing date defaults to today's local date.
        """
        expense = Expense(**expense_in.model_dump(exclude={"id"}))
        if expense.date is None:
            expense.date = date.today()
            logger.debug(f"No date supplied, defaulting to {expense.date}.")
        try:
            stored = await self.store.insert(expense)
        except ConnectionError:
            logger.error(f"Failed to create expense: {expense.model_dump(mode='json', exclude={'id'})}")
            raise
        logger.info(f"Expense created with ID: {stored.id}")
        return stored

    async def get(self, expense_id: str) -> Optional[Expense]:
        """Returns the expense with this id, or None if there is none."""
        return await self.store.find_by_id(expense_id)

    async def list_all(self) -> List[Expense]:
        return await self.store.find_all()

    async def list_ordered(self) -> List[Expense]:
        expenses = await self.store.find_all_ordered_by_date_desc()
        logger.info(f"Fetched {len(expenses)} expenses.")
        return expenses

    async def filter_by_date_range(self, start: date, end: date) -> List[Expense]:
        """
        Expenses dated within [start, end], both ends included.
        An inverted range (start > end) is not rejected; it matches nothing.
        """
        return await self.store.find_by_date_range(start, end)

    async def filter_by_category(self, category: str) -> List[Expense]:
        # Exact and case-sensitive, no trimming
        return await self.store.find_by_category(category)

    async def filter_by_date_range_and_category(self, start: date, end: date, category: str) -> List[Expense]:
        return await self.store.find_by_date_range_and_category(start, end, category)

    async def summarize(self, start: date, end: date) -> Dict[str, float]:
        """
        Sums `amount` per category over expenses dated within [start, end].

        Only categories with at least one matching expense appear in the
        result. Categories are compared by exact string equality; expenses
        without a category are totalled under the empty string.
        """
        totals: Dict[str, float] = defaultdict(float)
        for expense in await self.store.find_by_date_range(start, end):
            totals[expense.category or ""] += expense.amount
        logger.info(f"Summarized {len(totals)} categories between {start} and {end}.")
        return dict(totals)

    async def update(self, expense_id: str, expense_in: ExpenseIn) -> Optional[Expense]:
        """
        Replaces every field of an existing expense with the supplied values.

        This is not a patch: fields left out of `expense_in` are cleared to
        their defaults, and the date is not defaulted. Returns None if no
        expense has this id.
        """
        replacement = Expense(**expense_in.model_dump(exclude={"id"}))
        updated = await self.store.replace(expense_id, replacement)
        if updated is None:
            logger.info(f"Expense {expense_id} not found for update.")
        else:
            logger.info(f"Expense {expense_id} updated.")
        return updated

    async def delete(self, expense_id: str) -> bool:
        """
        Deletes an expense. Returns False if it was already absent; that
        case is not an error.
        """
        deleted = await self.store.delete_by_id(expense_id)
        logger.info(f"Delete expense {expense_id}: {'deleted' if deleted else 'already absent'}.")
        return deleted
