from datetime import date
from unittest.mock import AsyncMock
import main


def create(client, **fields):
    response = client.post("/api/expenses", json=fields)
    assert response.status_code == 201
    return response.json()


def test_create_and_get_by_id(client):
    created = create(client, title="Lunch", amount=12.5, category="Food", date="2024-06-01", notes="with team")
    assert created["id"]
    response = client.get(f"/api/expenses/{created['id']}")
    assert response.status_code == 200
    assert response.json() == created


def test_create_ignores_body_id_and_defaults_date(client):
    created = create(client, id="client-id", title="Snack", amount=2, category="Food")
    assert created["id"] != "client-id"
    assert created["date"] == date.today().isoformat()


def test_get_unknown_id_is_404(client):
    assert client.get("/api/expenses/665f1c2e9b1e8a3d4c5b6a79").status_code == 404


def test_list_is_ordered_by_date_desc(client):
    assert client.get("/api/expenses").json() == []
    create(client, title="old", date="2024-01-01")
    create(client, title="new", date="2024-03-01")
    create(client, title="mid", date="2024-02-01")
    titles = [e["title"] for e in client.get("/api/expenses").json()]
    assert titles == ["new", "mid", "old"]


def test_by_date_is_inclusive_and_inverted_range_is_empty(client):
    create(client, title="start", date="2024-06-01")
    create(client, title="end", date="2024-06-30")
    create(client, title="outside", date="2024-05-31")

    response = client.get("/api/expenses/byDate", params={"startDate": "2024-06-01", "endDate": "2024-06-30"})
    assert response.status_code == 200
    assert {e["title"] for e in response.json()} == {"start", "end"}

    inverted = client.get("/api/expenses/byDate", params={"startDate": "2024-06-30", "endDate": "2024-06-01"})
    assert inverted.status_code == 200
    assert inverted.json() == []


def test_malformed_date_is_rejected_by_binding(client):
    response = client.get("/api/expenses/byDate", params={"startDate": "06/01/2024", "endDate": "2024-06-30"})
    assert response.status_code == 422


def test_by_category_and_by_date_and_category(client):
    create(client, title="a", category="Food", date="2024-06-02")
    create(client, title="b", category="food", date="2024-06-02")
    create(client, title="c", category="Food", date="2024-08-02")

    by_category = client.get("/api/expenses/byCategory", params={"category": "Food"}).json()
    assert {e["title"] for e in by_category} == {"a", "c"}

    combined = client.get(
        "/api/expenses/byDateAndCategory",
        params={"startDate": "2024-06-01", "endDate": "2024-06-30", "category": "Food"},
    ).json()
    assert [e["title"] for e in combined] == ["a"]


def test_summary(client):
    create(client, category="A", amount=10, date="2024-06-01")
    create(client, category="A", amount=5, date="2024-06-15")
    create(client, category="B", amount=3, date="2024-06-01")
    create(client, category="C", amount=7, date="2024-07-01")

    response = client.get("/api/expenses/summary", params={"startDate": "2024-06-01", "endDate": "2024-06-30"})
    assert response.status_code == 200
    summary = response.json()
    assert set(summary) == {"A", "B"}
    assert abs(summary["A"] - 15.0) < 1e-9
    assert abs(summary["B"] - 3.0) < 1e-9

    empty = client.get("/api/expenses/summary", params={"startDate": "2020-01-01", "endDate": "2020-01-31"})
    assert empty.json() == {}


def test_update_replaces_every_field(client):
    created = create(client, title="Gym", amount=30, category="Health", date="2024-01-05", notes="monthly")
    response = client.put(
        f"/api/expenses/{created['id']}",
        json={"title": "Gym", "amount": 35, "category": "Health", "date": "2024-01-05"},
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["id"] == created["id"]
    assert updated["amount"] == 35
    assert updated["notes"] is None


def test_update_unknown_id_is_404(client):
    assert client.put("/api/expenses/unknown", json={"title": "x"}).status_code == 404


def test_delete_unknown_id_succeeds_by_default(client):
    created = create(client, title="Temp")
    first = client.delete(f"/api/expenses/{created['id']}")
    assert first.status_code == 200
    assert first.content == b""
    assert client.delete(f"/api/expenses/{created['id']}").status_code == 200
    assert client.get(f"/api/expenses/{created['id']}").status_code == 404


def test_strict_delete_reports_not_found(client):
    main.app_state["strict_delete"] = True
    created = create(client, title="Temp")
    assert client.delete(f"/api/expenses/{created['id']}").status_code == 200
    assert client.delete(f"/api/expenses/{created['id']}").status_code == 404


def test_store_fault_is_500(client):
    service = main.app_state["expense_service"]
    service.store.find_all_ordered_by_date_desc = AsyncMock(side_effect=ConnectionError("down"))
    service.store.insert = AsyncMock(side_effect=ConnectionError("down"))
    assert client.get("/api/expenses").status_code == 500
    assert client.post("/api/expenses", json={"title": "x"}).status_code == 500


def test_missing_service_is_503(client):
    main.app_state["expense_service"] = None
    assert client.get("/api/expenses").status_code == 503


def test_cors_allows_any_origin(client):
    response = client.get("/api/expenses", headers={"Origin": "http://example.com"})
    assert response.headers.get("access-control-allow-origin") in ("*", "http://example.com")


def test_rate_limit_answers_429(client, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT", "2/minute")
    monkeypatch.setattr(main.limiter, "enabled", True)
    main.limiter.reset()
    try:
        statuses = [client.get("/api/expenses").status_code for _ in range(3)]
    finally:
        main.limiter.reset()
    assert statuses == [200, 200, 429]


def test_rate_limit_disabled_by_default(client):
    assert main.limiter.enabled is False
    assert all(client.get("/api/expenses").status_code == 200 for _ in range(5))


def test_unknown_store_backend_leaves_service_unavailable(monkeypatch):
    from fastapi.testclient import TestClient
    monkeypatch.setattr(main, "STORE_BACKEND", "mongoo")
    with TestClient(main.app) as test_client:
        assert main.app_state["expense_service"] is None
        assert test_client.get("/api/expenses").status_code == 503
