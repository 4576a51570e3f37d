from fastapi.testclient import TestClient

from database import Base, make_engine, make_session_factory
from main import app, get_db


def _client() -> TestClient:
    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    TestingSession = make_session_factory(engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def test_interval_endpoint() -> None:
    client = _client()
    response = client.get("/api/interval/2024-01", params={"payday": 25})
    assert response.status_code == 200
    body = response.json()
    assert body["start"] == "2023-12-25"
    assert body["end"] == "2024-01-24"
    assert body["days"] == 31

    assert client.get("/api/interval/2024-13").status_code == 400
    assert client.get("/api/interval/2024-01", params={"payday": 40}).status_code == 400


def test_bucket_lifecycle_over_http() -> None:
    client = _client()
    created = client.post(
        "/api/buckets",
        json={
            "name": "Rent",
            "type": "FIXED",
            "month": "2024-01",
            "data": {"amount_cents": 900000},
        },
    )
    assert created.status_code == 201
    bucket_id = created.json()["id"]

    resolved = client.get(f"/api/buckets/{bucket_id}/months/2024-04").json()
    assert resolved["value"]["amount_cents"] == 900000
    assert resolved["is_inherited"] is True
    assert resolved["source"] == "explicit"

    deleted = client.post(
        f"/api/buckets/{bucket_id}/months/2024-04/delete",
        params={"scope": "THIS_MONTH"},
    )
    assert deleted.status_code == 200
    assert deleted.json()["monthly_data"]["2024-04"]["is_explicitly_deleted"] is True
    assert client.get(f"/api/buckets/{bucket_id}/months/2024-04").json()["value"] is None

    overview = client.get("/api/months/2024-05/overview").json()
    assert overview["total_cents"] == 900000
    assert overview["buckets"][0]["type"] == "FIXED"

    removed = client.post(
        f"/api/buckets/{bucket_id}/months/2024-04/delete", params={"scope": "ALL"}
    )
    assert removed.status_code == 204
    assert client.get(f"/api/buckets/{bucket_id}/months/2024-04").status_code == 404


def test_unknown_scope_is_rejected() -> None:
    client = _client()
    response = client.post("/api/buckets/x/months/2024-01/delete", params={"scope": "SOME"})
    assert response.status_code == 422


def test_locked_month_returns_bad_request() -> None:
    client = _client()
    group = client.post(
        "/api/groups", json={"name": "Food", "month": "2024-01", "limit_cents": 4000}
    ).json()

    assert client.post("/api/months/2024-02/lock").json()["is_locked"] is True
    response = client.post(
        "/api/months/2024-02/limits",
        json={"target": "GROUP", "entity_id": group["id"], "amount_cents": 100},
    )
    assert response.status_code == 400
    assert "locked" in response.json()["detail"]


def test_payday_settings_and_backup() -> None:
    client = _client()
    assert client.put("/api/settings/payday", json={"payday": 27}).json() == {"payday": 27}
    assert client.get("/api/settings/payday").json() == {"payday": 27}

    snapshot = client.get("/api/backup").json()
    assert snapshot["payday"] == 27

    snapshot["payday"] = 10
    assert client.post("/api/backup", json=snapshot).status_code == 204
    assert client.get("/api/settings/payday").json() == {"payday": 10}


def test_override_limit_reaches_group_created_over_http() -> None:
    client = _client()
    group = client.post(
        "/api/groups", json={"name": "Food", "month": "2024-01", "limit_cents": 4000}
    ).json()
    response = client.post(
        "/api/months/2024-03/limits",
        json={"target": "GROUP", "entity_id": group["id"], "amount_cents": 9999},
    )
    assert response.status_code == 204
    resolved = client.get(f"/api/groups/{group['id']}/months/2024-03").json()
    assert resolved["value"]["limit_cents"] == 9999
    assert resolved["source"] == "overridden"


def test_backup_with_unfunded_income_goal_is_rejected() -> None:
    client = _client()
    snapshot = client.get("/api/backup").json()
    snapshot["buckets"] = [
        {
            "id": "g",
            "name": "Trip",
            "type": "GOAL",
            "payment_source": "INCOME",
            "target_amount_cents": 0,
        }
    ]
    assert client.post("/api/backup", json=snapshot).status_code == 422
    assert client.get("/api/months/2024-02/overview").status_code == 200
