"""Tests for the subscription ledger HTTP API."""

import pytest
from fastapi.testclient import TestClient

from auth import issue_token
from conftest import OWNER, TOKEN_ID, fund
from database import session_scope
from main import create_app
from services.subscription_ledger import SECONDS_PER_PERIOD, create_ledger


def headers(subject: str) -> dict:
    return {"Authorization": f"Bearer {issue_token(subject)}"}


@pytest.fixture
def events():
    return []


@pytest.fixture
def client(session_factory, registry, clock, events):
    app = create_app(
        session_factory=session_factory,
        token_registry=registry,
        clock=clock,
        payment_listeners=[events.append],
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def created_ledger(client):
    response = client.post("/api/ledgers", headers=headers(OWNER))
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def custody(created_ledger):
    return created_ledger["custody_account"]


@pytest.fixture
def ledger_url(client, created_ledger):
    """A configured ledger (fee=10, TKN) created through the API."""
    url = f"/api/ledgers/{created_ledger['id']}"
    assert client.put(f"{url}/fee", json={"fee_amount": 10}, headers=headers(OWNER)).status_code == 200
    assert client.put(f"{url}/token", json={"token_identifier": TOKEN_ID}, headers=headers(OWNER)).status_code == 200
    return url


class TestAuthentication:
    def test_missing_token(self, client, ledger_url):
        response = client.post(f"{ledger_url}/payments", json={"period_count": 1})
        assert response.status_code == 401

    def test_invalid_token(self, client, ledger_url):
        response = client.post(
            f"{ledger_url}/payments",
            json={"period_count": 1},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 403


class TestLedgerLifecycle:
    def test_create_ledger_makes_caller_owner(self, client):
        response = client.post("/api/ledgers", json={}, headers=headers("founder"))

        assert response.status_code == 201
        body = response.json()
        assert body["owner"] == "founder"
        assert body["fee_collector"] == "founder"
        assert body["fee_amount"] is None
        assert body["token_identifier"] is None
        assert body["custody_account"] == f"subscription-ledger-{body['id']}"

    def test_foreign_custody_account_cannot_be_claimed(self, client, token):
        token.mint("victim", 1000)

        response = client.post("/api/ledgers", json={"custody_account": "victim"}, headers=headers("mallory"))
        assert response.status_code == 201
        created = response.json()
        assert created["custody_account"] == f"subscription-ledger-{created['id']}"

        url = f"/api/ledgers/{created['id']}"
        client.put(f"{url}/token", json={"token_identifier": TOKEN_ID}, headers=headers("mallory"))
        withdrawn = client.post(f"{url}/withdraw", headers=headers("mallory"))

        assert withdrawn.status_code == 200
        assert withdrawn.json()["amount"] == 0
        assert token.balance_of("victim") == 1000
        assert token.balance_of("mallory") == 0

    def test_ledgers_never_share_custody(self, client):
        first = client.post("/api/ledgers", headers=headers("founder")).json()
        second = client.post("/api/ledgers", headers=headers("founder")).json()

        assert first["custody_account"] != second["custody_account"]

    def test_derived_custody_already_taken(self, client, session_factory):
        with session_scope(session_factory) as db:
            create_ledger(db, owner=OWNER, custody_account="subscription-ledger-2")

        response = client.post("/api/ledgers", headers=headers("founder"))

        assert response.status_code == 409
        assert "subscription-ledger-2" in response.json()["detail"]

    def test_unknown_ledger(self, client):
        assert client.get("/api/ledgers/999").status_code == 404
        response = client.post("/api/ledgers/999/payments", json={"period_count": 1}, headers=headers("alice"))
        assert response.status_code == 404

    def test_payment_before_configuration(self, client):
        ledger_id = client.post("/api/ledgers", json={}, headers=headers(OWNER)).json()["id"]

        response = client.post(
            f"/api/ledgers/{ledger_id}/payments", json={"period_count": 1}, headers=headers("alice")
        )

        assert response.status_code == 409
        assert "not configured" in response.json()["detail"]


class TestPayments:
    def test_pay_and_access(self, client, ledger_url, custody, token, events):
        fund(token, "alice", 30, custody)

        response = client.post(f"{ledger_url}/payments", json={"period_count": 3}, headers=headers("alice"))

        assert response.status_code == 201
        body = response.json()
        assert body["payer"] == "alice"
        assert body["paid_at"] == 1000
        assert body["expires_at"] == 1000 + 3 * SECONDS_PER_PERIOD
        assert body["nominal_fee"] == 30
        assert body["amount_received"] == 30
        assert [(e.payer, e.nominal_fee, e.period_count) for e in events] == [("alice", 30, 3)]

        access = client.get(f"{ledger_url}/access", headers=headers("alice"))
        assert access.status_code == 200
        assert access.json()["id"] == body["id"]

    def test_access_denied_without_subscription(self, client, ledger_url):
        response = client.get(f"{ledger_url}/access", headers=headers("bob"))
        assert response.status_code == 403
        assert "no subscription" in response.json()["detail"]

    def test_access_denied_after_expiry(self, client, ledger_url, custody, token, clock):
        fund(token, "alice", 10, custody)
        client.post(f"{ledger_url}/payments", json={"period_count": 1}, headers=headers("alice"))
        clock.advance(SECONDS_PER_PERIOD)

        response = client.get(f"{ledger_url}/access", headers=headers("alice"))

        assert response.status_code == 403
        assert "expired" in response.json()["detail"]

    def test_transfer_failure_is_payment_required(self, client, ledger_url, token):
        token.mint("alice", 100)  # not approved

        response = client.post(f"{ledger_url}/payments", json={"period_count": 1}, headers=headers("alice"))

        assert response.status_code == 402
        assert client.get(f"{ledger_url}/payments").json()["total"] == 0

    def test_period_count_validated(self, client, ledger_url):
        response = client.post(f"{ledger_url}/payments", json={"period_count": 0}, headers=headers("alice"))
        assert response.status_code == 422

    def test_history_events_and_subscriber(self, client, ledger_url, custody, token, clock):
        fund(token, "alice", 10, custody)
        fund(token, "bob", 20, custody)
        client.post(f"{ledger_url}/payments", json={"period_count": 1}, headers=headers("alice"))
        clock.advance(5)
        client.post(f"{ledger_url}/payments", json={"period_count": 2}, headers=headers("bob"))

        history = client.get(f"{ledger_url}/payments", params={"limit": 1, "offset": 1}).json()
        assert history["total"] == 2
        assert [p["payer"] for p in history["items"]] == ["bob"]

        events = client.get(f"{ledger_url}/events").json()
        assert [(e["payer"], e["nominal_fee"], e["period_count"]) for e in events] == [
            ("alice", 10, 1),
            ("bob", 20, 2),
        ]

        subscriber = client.get(f"{ledger_url}/subscribers/bob").json()
        assert subscriber["active"] is True
        assert subscriber["last_payment_moment"] == 1005
        assert subscriber["total_paid"] == 20
        assert subscriber["latest_payment"]["period_count"] == 2

        stranger = client.get(f"{ledger_url}/subscribers/carol").json()
        assert stranger == {
            "subscriber": "carol",
            "active": False,
            "last_payment_moment": 0,
            "total_paid": 0,
            "latest_payment": None,
        }

        state = client.get(ledger_url).json()
        assert state["total_collected"] == 30


class TestOwnerRoutes:
    @pytest.mark.parametrize(
        "method,path,payload",
        [
            ("put", "/fee", {"fee_amount": 1}),
            ("put", "/token", {"token_identifier": "EVIL"}),
            ("put", "/fee-collector", {"fee_collector": "mallory"}),
            ("put", "/owner", {"new_owner": "mallory"}),
            ("post", "/withdraw", None),
        ],
    )
    def test_non_owner_forbidden(self, client, ledger_url, method, path, payload):
        before = client.get(ledger_url).json()

        response = client.request(method.upper(), f"{ledger_url}{path}", json=payload, headers=headers("mallory"))

        assert response.status_code == 403
        assert client.get(ledger_url).json() == before

    def test_configuration_updates(self, client, ledger_url):
        client.put(f"{ledger_url}/fee-collector", json={"fee_collector": "treasury"}, headers=headers(OWNER))
        response = client.put(f"{ledger_url}/owner", json={"new_owner": "successor"}, headers=headers(OWNER))

        assert response.status_code == 200
        assert response.json()["owner"] == "successor"
        assert response.json()["fee_collector"] == "treasury"
        assert client.put(f"{ledger_url}/fee", json={"fee_amount": 5}, headers=headers(OWNER)).status_code == 403

    def test_negative_fee_rejected(self, client, ledger_url):
        response = client.put(f"{ledger_url}/fee", json={"fee_amount": -1}, headers=headers(OWNER))
        assert response.status_code == 422

    def test_withdraw_to_caller(self, client, ledger_url, custody, token):
        token.mint(custody, 100)
        assert client.get(f"{ledger_url}/balance").json() == {"token_identifier": TOKEN_ID, "balance": 100}

        response = client.post(f"{ledger_url}/withdraw", headers=headers(OWNER))

        assert response.status_code == 200
        assert response.json() == {"recipient": OWNER, "amount": 100, "token_identifier": TOKEN_ID}
        assert token.balance_of(OWNER) == 100
        assert client.get(f"{ledger_url}/balance").json()["balance"] == 0


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
