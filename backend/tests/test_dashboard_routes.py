from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from seller_hub.main import app
from seller_hub.services import session_service as session_service_module
from seller_hub.services.auth import create_access_token
from seller_hub.services.session_service import session_service

from fake_seller_api import account_record, order_record, register_account


@pytest.fixture
def client(db_session, fake_api, monkeypatch):
    """TestClient whose seller API calls all land on ``fake_api``."""
    monkeypatch.setattr(
        session_service,
        "client_for_session",
        lambda session, **kwargs: fake_api.client(session.upstream_token, user_id=session.user_id),
    )
    monkeypatch.setattr(
        session_service_module,
        "SellerApiClient",
        lambda *args, **kwargs: fake_api.client(token=None),
    )
    return TestClient(app)


def _headers_for(db, user_id: str, email: str) -> dict:
    session = session_service.create_session(db, user_id=user_id, email=email, upstream_token=f"upstream-{user_id}")
    return {"Authorization": f"Bearer {create_access_token(session)}"}


@pytest.fixture
def auth_headers(db_session):
    return _headers_for(db_session, "user-1", "seller@example.com")


def _recent(days_ago: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days_ago)).isoformat()


def test_healthz(client):
    resp = client.get("/healthz")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers.get("X-Request-ID")


def test_overview_requires_session(client):
    assert client.get("/api/dashboard/overview").status_code == 401
    assert client.get("/api/dashboard/overview", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_login_then_overview(client, fake_api):
    fake_api.add("POST", "/auth/login", {
        "success": True,
        "data": {"token": "upstream-jwt", "user": {"id": "u1", "email": "seller@example.com", "name": "Loja"}},
    })
    fake_api.add("GET", "/ml-accounts", {"success": True, "data": {"accounts": [account_record("a"), account_record("b")]}})
    register_account(fake_api, "a", orders=[
        order_record("1", 100.0, _recent(1)),
        order_record("2", 20.0, _recent(2), status="cancelled"),
    ], visits=50, questions=2)
    # Account "b" has nothing registered and fails every call.

    login = client.post("/api/session/login", json={"email": "seller@example.com", "password": "secret"})
    assert login.status_code == 200
    token = login.json()["access_token"]
    assert login.json()["user"]["display_name"] == "Loja"

    resp = client.get("/api/dashboard/overview?period_days=7", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["empty"] is False
    assert body["accounts_count"] == 2
    assert body["stats"]["total_revenue"] == 100.0
    assert body["stats"]["total_orders"] == 2
    assert body["stats"]["conversion_rate"] == 4.0
    assert [alert["type"] for alert in body["alerts"]] == ["pending_questions"]
    assert len(body["sales_chart"]) == 2

    account_list_calls = [call for call in fake_api.calls if call[1] == "/ml-accounts"]
    assert len(account_list_calls) == 1


def test_login_rejected(client, fake_api):
    fake_api.fail("POST", "/auth/login", status_code=401, message="Credenciais inválidas")

    resp = client.post("/api/session/login", json={"email": "seller@example.com", "password": "nope"})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Credenciais inválidas"


def test_login_validates_email(client):
    resp = client.post("/api/session/login", json={"email": "not-an-email", "password": "x"})
    assert resp.status_code == 422


def test_overview_empty_state(client, fake_api, auth_headers):
    fake_api.add("GET", "/ml-accounts", {"success": True, "data": {"accounts": []}})

    resp = client.get("/api/dashboard/overview", headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json()["empty"] is True
    assert resp.json()["period_days"] == 30
    assert [call[1] for call in fake_api.calls] == ["/ml-accounts"]


@pytest.mark.parametrize("period_days", [14, 0, 365])
def test_overview_rejects_unsupported_period(client, fake_api, auth_headers, period_days):
    resp = client.get(f"/api/dashboard/overview?period_days={period_days}", headers=auth_headers)

    assert resp.status_code == 422
    assert fake_api.calls == []


def test_overview_unknown_account(client, fake_api, auth_headers):
    fake_api.add("GET", "/ml-accounts", {"accounts": [account_record("a")]})

    resp = client.get("/api/dashboard/overview?account_id=zzz", headers=auth_headers)

    assert resp.status_code == 404


def test_overview_upstream_token_expired(client, fake_api, auth_headers):
    fake_api.fail("GET", "/ml-accounts", status_code=401, message="Token expirado")

    resp = client.get("/api/dashboard/overview", headers=auth_headers)

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expirado"


def test_overview_upstream_outage(client, fake_api, auth_headers):
    fake_api.fail("GET", "/ml-accounts", status_code=500, message="db down")

    resp = client.get("/api/dashboard/overview", headers=auth_headers)

    assert resp.status_code == 502


def test_accounts_listing(client, fake_api, auth_headers):
    fake_api.add("GET", "/ml-accounts", {"success": True, "data": {"accounts": [
        account_record("a", isPrimary=True),
        account_record("b", status="paused"),
    ]}})

    resp = client.get("/api/dashboard/accounts", headers=auth_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert body["accounts"][0]["is_primary"] is True
    assert body["accounts"][1]["status"] == "paused"


def test_me_and_logout(client, auth_headers):
    me = client.get("/api/session/me", headers=auth_headers)
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "seller@example.com"

    logout = client.post("/api/session/logout", headers=auth_headers)
    assert logout.status_code == 200
    assert logout.json() == {"status": "success"}

    assert client.get("/api/session/me", headers=auth_headers).status_code == 401


def test_sync_then_overview_and_history(client, fake_api, auth_headers):
    fake_api.add("POST", "/ml-accounts/sync-all", {
        "success": True,
        "data": {"results": [{"accountId": "a", "success": True}], "summary": {"total": 1, "successful": 1, "failed": 0}},
    })
    fake_api.add("GET", "/ml-accounts", {"accounts": [account_record("a")]})
    register_account(fake_api, "a", orders=[order_record("1", 30.0, _recent(3))])

    resp = client.post("/api/dashboard/sync?period_days=7", headers=auth_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["sync"]["status"] == "completed"
    assert body["sync"]["successful"] == 1
    assert body["overview"]["stats"]["total_revenue"] == 30.0
    assert fake_api.called_paths()[0] == "POST /ml-accounts/sync-all"

    runs = client.get("/api/dashboard/sync-runs", headers=auth_headers)
    assert runs.status_code == 200
    assert [run["status"] for run in runs.json()] == ["completed"]


def test_sync_upstream_failure(client, fake_api, auth_headers):
    fake_api.fail("POST", "/ml-accounts/sync-all", status_code=500, message="sync failed")

    resp = client.post("/api/dashboard/sync", headers=auth_headers)

    assert resp.status_code == 502
    runs = client.get("/api/dashboard/sync-runs", headers=auth_headers).json()
    assert runs[0]["status"] == "failed"


def test_upstream_logs(client, fake_api, auth_headers):
    fake_api.add("GET", "/ml-accounts", {"accounts": []})
    client.get("/api/dashboard/accounts", headers=auth_headers)

    resp = client.get("/api/dashboard/upstream-logs?limit=10", headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json()["total"] == 1
    assert "GET /ml-accounts" in resp.json()["logs"][0]["description"]


def test_upstream_logs_only_show_own_calls(client, fake_api, db_session, auth_headers):
    other_headers = _headers_for(db_session, "user-2", "other@example.com")
    fake_api.add("GET", "/ml-accounts", {"accounts": []})

    client.get("/api/dashboard/accounts", headers=auth_headers)
    client.get("/api/dashboard/accounts", headers=other_headers)
    client.get("/api/dashboard/accounts", headers=other_headers)

    mine = client.get("/api/dashboard/upstream-logs", headers=auth_headers).json()
    theirs = client.get("/api/dashboard/upstream-logs", headers=other_headers).json()

    assert mine["total"] == 1
    assert theirs["total"] == 2
    assert all(entry["path"] == "/ml-accounts" for entry in mine["logs"] + theirs["logs"])


def test_overview_tolerates_non_text_upstream_fields(client, fake_api, auth_headers):
    fake_api.add("GET", "/ml-accounts", {"accounts": [account_record("a", nickname=4242)]})
    register_account(
        fake_api,
        "a",
        orders=[order_record("1", 30.0, _recent(2), buyer={"nickname": 987})],
        products=[{"id": 55, "title": 12345, "sold_quantity": 3, "price": 10.0}],
    )

    resp = client.get("/api/dashboard/overview?period_days=7", headers=auth_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["recent_orders"][0]["buyer_nickname"] == "987"
    assert body["top_products"][0]["title"] == "12345"
    assert body["top_products"][0]["id"] == "55"
    assert body["revenue_by_account"][0]["nickname"] == "4242"
