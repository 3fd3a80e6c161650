import os

# main reads its configuration at import time
os.environ["STORE_BACKEND"] = "memory"
os.environ["STRICT_DELETE"] = "false"
os.environ["RATE_LIMIT"] = ""

import pytest
from fastapi.testclient import TestClient
from services.expense_store import InMemoryExpenseStore
from services.expenses_service import ExpenseService


@pytest.fixture
def store():
    return InMemoryExpenseStore()


@pytest.fixture
def service(store):
    return ExpenseService(store)


@pytest.fixture
def client():
    from main import app
    with TestClient(app) as test_client:
        yield test_client
