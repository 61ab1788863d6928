from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

import simbank.api.routes.accounts as accounts_routes
from simbank.core.security import hash_password
from simbank.models.audit_log import AuditLog
from simbank.models.transaction import Transaction
from simbank.models.user import User
from simbank.utils.timezone import utcnow


def _open(client, headers, rate=5.0, deposit=1000.0) -> dict:
    r = client.post("/api/accounts", json={"interestRate": rate, "openingDeposit": deposit}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/api/health").json() == {"status": "ok"}


def test_open_and_read_account(client, auth_headers):
    acct = _open(client, auth_headers, rate=4.5, deposit=250)
    assert acct["interestRate"] == 4.5
    assert acct["balance"] == 250.0
    assert len(acct["accountNumber"]) == 10
    assert acct["transactions"][0]["runningBalance"] == 250.0

    r = client.get(f"/api/accounts/{acct['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["id"] == acct["id"]

    listed = client.get("/api/accounts", headers=auth_headers).json()
    assert [a["id"] for a in listed] == [acct["id"]]


def test_accounts_require_a_session(client):
    assert client.get("/api/accounts").status_code == 401
    assert client.get("/api/accounts", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_unknown_account_is_404(client, auth_headers):
    r = client.get("/api/accounts/does-not-exist", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "account_not_found"


def test_interest_rate_update_requires_account_id(client):
    r = client.post("/api/accounts/%20/interestRate", json={"interestRate": 3})
    assert r.status_code == 400
    assert r.json()["detail"] == "account_id_required"


def test_interest_rate_update_requires_session(client, auth_headers):
    acct = _open(client, auth_headers)
    r = client.post(f"/api/accounts/{acct['id']}/interestRate", json={"interestRate": 3})
    assert r.status_code == 401


@pytest.mark.parametrize("payload", [{}, {"rate": 3}, None])
def test_interest_rate_update_requires_rate(client, auth_headers, payload):
    acct = _open(client, auth_headers)
    r = client.post(f"/api/accounts/{acct['id']}/interestRate", json=payload, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "interest_rate_required"


def test_interest_rate_update_unknown_account(client, auth_headers):
    r = client.post("/api/accounts/missing/interestRate", json={"interestRate": 3}, headers=auth_headers)
    assert r.status_code == 404


def test_interest_rate_update_returns_updated_account(client, auth_headers, session):
    acct = _open(client, auth_headers, rate=5)

    r = client.post(f"/api/accounts/{acct['id']}/interestRate", json={"interestRate": 6.5}, headers=auth_headers)

    assert r.status_code == 200
    body = r.json()
    assert body["id"] == acct["id"]
    assert body["interestRate"] == 6.5
    assert len(body["transactions"]) == 2
    assert body["transactions"][0]["amount"] == 0.0
    assert body["transactions"][0]["description"] == "Interest rate changed from 5% to 6.5%"

    logged = session.execute(
        select(AuditLog).where(AuditLog.action == "account.interest_rate", AuditLog.entity_id == acct["id"])
    ).scalar_one()
    assert logged.details == {"old_rate": "5.0000", "new_rate": "6.5000"}


def test_interest_rate_update_storage_failure_is_500(client, auth_headers, monkeypatch):
    acct = _open(client, auth_headers)

    def boom(*args, **kwargs):
        raise OperationalError("UPDATE accounts", {}, Exception("database unavailable"))

    monkeypatch.setattr(accounts_routes, "update_interest_rate", boom)
    r = client.post(f"/api/accounts/{acct['id']}/interestRate", json={"interestRate": 2}, headers=auth_headers)
    assert r.status_code == 500
    assert r.json()["detail"] == "internal_server_error"


def test_non_numeric_rate_is_a_validation_error(client, auth_headers):
    acct = _open(client, auth_headers)
    r = client.post(f"/api/accounts/{acct['id']}/interestRate", json={"interestRate": "high"}, headers=auth_headers)
    assert r.status_code == 422


def test_overview_and_interest(client, auth_headers):
    acct = _open(client, auth_headers, rate=5, deposit=1000)
    r = client.post(
        f"/api/accounts/{acct['id']}/transactions",
        json={"type": "withdrawal", "amount": 25, "description": " ATM "},
        headers=auth_headers,
    )
    assert r.status_code == 201

    ov = client.get(f"/api/accounts/{acct['id']}/overview", headers=auth_headers).json()
    assert ov["balanceDisplay"] == "$975.00"
    assert ov["interestRateDisplay"] == "5%"
    assert ov["lastTransaction"]["amount"] == -25.0
    assert ov["lastTransaction"]["amountDisplay"] == "-$25.00"
    assert ov["lastTransaction"]["description"] == "ATM"
    assert ov["accrual"]["newBalance"] == pytest.approx(975.0)

    acc = client.get(f"/api/accounts/{acct['id']}/interest", headers=auth_headers).json()
    assert acc["interestSinceLastTransaction"] == pytest.approx(0.0)
    assert acc["newBalance"] == pytest.approx(975.0)


def test_projection(client, auth_headers):
    acct = _open(client, auth_headers, rate=12, deposit=1000)

    body = client.get(f"/api/accounts/{acct['id']}/projection", headers=auth_headers).json()
    assert body["years"] == 5
    assert len(body["points"]) == 61
    assert body["points"][12]["amount"] == pytest.approx(1126.83, abs=0.01)

    short = client.get(f"/api/accounts/{acct['id']}/projection?years=1", headers=auth_headers).json()
    assert len(short["points"]) == 13

    assert client.get(f"/api/accounts/{acct['id']}/projection?years=-1", headers=auth_headers).status_code == 422


def test_transactions(client, auth_headers):
    acct = _open(client, auth_headers, rate=0, deposit=100)

    r = client.post(f"/api/accounts/{acct['id']}/transactions", json={"type": "deposit", "amount": 40}, headers=auth_headers)
    assert r.status_code == 201
    assert r.json()["runningBalance"] == 140.0

    r = client.post(f"/api/accounts/{acct['id']}/transactions", json={"type": "withdrawal", "amount": 500}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "insufficient_funds"

    r = client.post(f"/api/accounts/{acct['id']}/transactions", json={"type": "deposit", "amount": 0}, headers=auth_headers)
    assert r.status_code == 422

    txs = client.get(f"/api/accounts/{acct['id']}/transactions", headers=auth_headers).json()
    assert [t["amount"] for t in txs] == [40.0, 100.0]
    assert client.get(f"/api/accounts/{acct['id']}", headers=auth_headers).json()["balance"] == 140.0


def test_audit_is_admin_only(client, auth_headers, admin_headers):
    acct = _open(client, auth_headers)
    assert client.get("/audit", headers=auth_headers).status_code == 403

    rows = client.get(f"/audit?entity_id={acct['id']}", headers=admin_headers).json()
    assert [r["action"] for r in rows] == ["account.create"]


def test_login_issues_a_usable_token(client, session):
    alice = User(username="alice", password_hash=hash_password("s3cret!"), role="viewer")
    session.add(alice)
    session.commit()

    assert client.post("/auth/login", json={"username": "alice", "password": "wrong"}).status_code == 401

    r = client.post("/auth/login", json={"username": "alice", "password": "s3cret!"})
    assert r.status_code == 200
    token = r.json()["access_token"]
    assert r.json()["role"] == "viewer"
    assert r.json()["user_id"] == alice.id
    assert r.json()["token_type"] == "bearer"

    r = client.get("/api/accounts", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json() == []


def test_other_users_account_is_404(client, auth_headers, other_headers):
    acct = _open(client, auth_headers, rate=5, deposit=1000)
    base = f"/api/accounts/{acct['id']}"

    for path in ("", "/overview", "/interest", "/projection", "/transactions"):
        r = client.get(base + path, headers=other_headers)
        assert r.status_code == 404, path
        assert r.json()["detail"] == "account_not_found"

    r = client.post(f"{base}/interestRate", json={"interestRate": 0}, headers=other_headers)
    assert r.status_code == 404
    r = client.post(f"{base}/transactions", json={"type": "withdrawal", "amount": 999}, headers=other_headers)
    assert r.status_code == 404

    assert client.get("/api/accounts", headers=other_headers).json() == []
    mine = client.get(base, headers=auth_headers).json()
    assert mine["balance"] == 1000.0
    assert mine["interestRate"] == 5.0
    assert len(mine["transactions"]) == 1


@pytest.mark.parametrize("rate", [-1, -0.01, 1000.01, 10000])
def test_interest_rate_out_of_range_is_a_validation_error(client, auth_headers, rate):
    acct = _open(client, auth_headers, rate=5)
    r = client.post(f"/api/accounts/{acct['id']}/interestRate", json={"interestRate": rate}, headers=auth_headers)
    assert r.status_code == 422
    assert client.get(f"/api/accounts/{acct['id']}", headers=auth_headers).json()["interestRate"] == 5.0


def test_opening_rate_out_of_range_is_a_validation_error(client, auth_headers):
    for rate in (-2, 5000):
        r = client.post("/api/accounts", json={"interestRate": rate}, headers=auth_headers)
        assert r.status_code == 422
    assert client.get("/api/accounts", headers=auth_headers).json() == []


def _future_entry(session, account_id: str, balance: float = 1000.0):
    session.add(
        Transaction(
            account_id=account_id,
            type="deposit",
            amount=0,
            timestamp=utcnow() + timedelta(days=2),
            running_balance=balance,
            description="Scheduled",
        )
    )
    session.commit()


def test_interest_rate_update_after_future_dated_entry_is_500(client, auth_headers, session):
    acct = _open(client, auth_headers, rate=5, deposit=1000)
    _future_entry(session, acct["id"])

    r = client.post(f"/api/accounts/{acct['id']}/interestRate", json={"interestRate": 7}, headers=auth_headers)
    assert r.status_code == 500
    assert r.json()["detail"] == "internal_server_error"

    after = client.get(f"/api/accounts/{acct['id']}", headers=auth_headers).json()
    assert after["interestRate"] == 5.0
    assert len(after["transactions"]) == 2


def test_transaction_after_future_dated_entry_is_500(client, auth_headers, session):
    acct = _open(client, auth_headers, rate=5, deposit=1000)
    _future_entry(session, acct["id"])

    r = client.post(f"/api/accounts/{acct['id']}/transactions", json={"type": "deposit", "amount": 10}, headers=auth_headers)
    assert r.status_code == 500
    assert r.json()["detail"] == "internal_server_error"

    after = client.get(f"/api/accounts/{acct['id']}", headers=auth_headers).json()
    assert after["balance"] == 1000.0
    assert len(after["transactions"]) == 2
