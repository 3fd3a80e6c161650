"""API Routes for expenses"""
from fastapi import APIRouter, HTTPException, Depends, Request, Query, Response
from typing import List, Annotated, Dict
from datetime import date
from models.expense import Expense, ExpenseIn
from services.expenses_service import ExpenseService
import logging
import os
from slowapi import Limiter
from slowapi.util import get_remote_address

router = APIRouter()
logger = logging.getLogger(__name__)

# --- Rate Limiting ---
# Disabled until main enables it from RATE_LIMIT; the limit is read per request.
limiter = Limiter(key_func=get_remote_address, enabled=False)
DEFAULT_RATE_LIMIT = "60/minute"

def current_rate_limit() -> str:
    return os.getenv("RATE_LIMIT") or DEFAULT_RATE_LIMIT

# --- Dependency Function ---
def get_expense_service(request: Request) -> ExpenseService:
    """Dependency to get the expense service from the request state."""
    service = getattr(request.state, "expense_service", None)
    if service is None:
        logger.error("Expense service not found in application state. Check MongoDB connection.")
        raise HTTPException(status_code=503, detail="Database service not available.")
    return service

# Type hints for the dependencies
ExpenseServiceDep = Annotated[ExpenseService, Depends(get_expense_service)]
StartDate = Annotated[date, Query(alias="startDate", description="First day of the range (YYYY-MM-DD), inclusive.")]
EndDate = Annotated[date, Query(alias="endDate", description="Last day of the range (YYYY-MM-DD), inclusive.")]
Category = Annotated[str, Query(description="Exact, case-sensitive category name.")]


def _server_error(operation: str) -> HTTPException:
    return HTTPException(status_code=500, detail=f"An unexpected server error occurred while {operation}.")

# --- API Routes ---
# Fixed paths are registered before /expenses/{expense_id} so they are not captured as ids.

@router.get("/expenses", response_model=List[Expense], summary="Get All Expenses", description="Retrieves all expense records, sorted by date descending.")
@limiter.limit(current_rate_limit)
async def get_expenses(request: Request, service: ExpenseServiceDep) -> List[Expense]:
    logger.info("GET /expenses endpoint called.")
    try:
        return await service.list_ordered()
    except ConnectionError as ce:
        logger.error(f"Connection error fetching expenses: {ce}")
        raise _server_error("fetching expenses")
    except Exception as e:
        logger.exception(f"Unexpected error fetching expenses: {e}")
        raise _server_error("fetching expenses")

@router.get("/expenses/byDate", response_model=List[Expense], summary="Get Expenses By Date Range")
@limiter.limit(current_rate_limit)
async def get_expenses_by_date_range(request: Request, service: ExpenseServiceDep, start_date: StartDate, end_date: EndDate) -> List[Expense]:
    """Expenses dated within the inclusive range. An inverted range returns an empty list."""
    logger.info(f"GET /expenses/byDate endpoint called for {start_date}..{end_date}")
    try:
        return await service.filter_by_date_range(start_date, end_date)
    except ConnectionError as ce:
        logger.error(f"Connection error filtering expenses by date: {ce}")
        raise _server_error("filtering expenses by date")
    except Exception as e:
        logger.exception(f"Unexpected error filtering expenses by date: {e}")
        raise _server_error("filtering expenses by date")

@router.get("/expenses/byCategory", response_model=List[Expense], summary="Get Expenses By Category")
@limiter.limit(current_rate_limit)
async def get_expenses_by_category(request: Request, service: ExpenseServiceDep, category: Category) -> List[Expense]:
    logger.info(f"GET /expenses/byCategory endpoint called for category '{category}'")
    try:
        return await service.filter_by_category(category)
    except ConnectionError as ce:
        logger.error(f"Connection error filtering expenses by category: {ce}")
        raise _server_error("filtering expenses by category")
    except Exception as e:
        logger.exception(f"Unexpected error filtering expenses by category: {e}")
        raise _server_error("filtering expenses by category")

@router.get("/expenses/byDateAndCategory", response_model=List[Expense], summary="Get Expenses By Date Range And Category")
@limiter.limit(current_rate_limit)
async def get_expenses_by_date_and_category(
    request: Request,
    service: ExpenseServiceDep,
    start_date: StartDate,
    end_date: EndDate,
    category: Category,
) -> List[Expense]:
    logger.info(f"GET /expenses/byDateAndCategory endpoint called for {start_date}..{end_date}, category '{category}'")
    try:
        return await service.filter_by_date_range_and_category(start_date, end_date, category)
    except ConnectionError as ce:
        logger.error(f"Connection error filtering expenses by date and category: {ce}")
        raise _server_error("filtering expenses by date and category")
    except Exception as e:
        logger.exception(f"Unexpected error filtering expenses by date and category: {e}")
        raise _server_error("filtering expenses by date and category")

@router.get("/expenses/summary", response_model=Dict[str, float], summary="Summarize Expenses By Category", description="Total amount per category for expenses dated within the inclusive range.")
@limiter.limit(current_rate_limit)
async def get_expenses_summary(request: Request, service: ExpenseServiceDep, start_date: StartDate, end_date: EndDate) -> Dict[str, float]:
    logger.info(f"GET /expenses/summary endpoint called for {start_date}..{end_date}")
    try:
        return await service.summarize(start_date, end_date)
    except ConnectionError as ce:
        logger.error(f"Connection error summarizing expenses: {ce}")
        raise _server_error("summarizing expenses")
    except Exception as e:
        logger.exception(f"Unexpected error summarizing expenses: {e}")
        raise _server_error("summarizing expenses")

@router.get("/expenses/{expense_id}", response_model=Expense, summary="Get Expense")
@limiter.limit(current_rate_limit)
async def get_expense(request: Request, service: ExpenseServiceDep, expense_id: str) -> Expense:
    try:
        expense = await service.get(expense_id)
    except ConnectionError as ce:
        logger.error(f"Connection error fetching expense {expense_id}: {ce}")
        raise _server_error("fetching the expense")
    except Exception as e:
        logger.exception(f"Unexpected error fetching expense {expense_id}: {e}")
        raise _server_error("fetching the expense")
    if expense is None:
        raise HTTPException(status_code=404, detail=f"Expense {expense_id} not found.")
    return expense

@router.post("/expenses", response_model=Expense, status_code=201, summary="Create Expense", description="Stores a new expense. The date defaults to today when omitted; any id in the body is ignored.")
@limiter.limit(current_rate_limit)
async def create_expense(request: Request, service: ExpenseServiceDep, expense_in: ExpenseIn) -> Expense:
    logger.info(f"POST /expenses endpoint called: {expense_in}")
    try:
        return await service.create(expense_in)
    except ConnectionError as ce:
        logger.error(f"Connection error creating expense {expense_in}: {ce}")
        raise _server_error("creating the expense")
    except Exception as e:
        logger.exception(f"Unexpected error creating expense {expense_in}: {e}")
        raise _server_error("creating the expense")

@router.put("/expenses/{expense_id}", response_model=Expense, summary="Replace Expense", description="Overwrites every field of an existing expense; omitted fields are cleared.")
@limiter.limit(current_rate_limit)
async def update_expense(request: Request, service: ExpenseServiceDep, expense_id: str, expense_in: ExpenseIn) -> Expense:
    logger.info(f"PUT /expenses/{expense_id} endpoint called.")
    try:
        updated = await service.update(expense_id, expense_in)
    except ConnectionError as ce:
        logger.error(f"Connection error updating expense {expense_id}: {ce}")
        raise _server_error("updating the expense")
    except Exception as e:
        logger.exception(f"Unexpected error updating expense {expense_id}: {e}")
        raise _server_error("updating the expense")
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Expense {expense_id} not found.")
    return updated

@router.delete("/expenses/{expense_id}", summary="Delete Expense")
@limiter.limit(current_rate_limit)
async def delete_expense(request: Request, service: ExpenseServiceDep, expense_id: str) -> Response:
    """
    Deletes an expense. Deleting an unknown id succeeds unless strict delete
    is enabled, in which case it answers 404.
    """
    logger.info(f"DELETE /expenses/{expense_id} endpoint called.")
    try:
        deleted = await service.delete(expense_id)
    except ConnectionError as ce:
        logger.error(f"Connection error deleting expense {expense_id}: {ce}")
        raise _server_error("deleting the expense")
    except Exception as e:
        logger.exception(f"Unexpected error deleting expense {expense_id}: {e}")
        raise _server_error("deleting the expense")
    if not deleted and getattr(request.state, "strict_delete", False):
        raise HTTPException(status_code=404, detail=f"Expense {expense_id} not found.")
    return Response(status_code=200)
