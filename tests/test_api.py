"""
Integration tests for the SecureBank API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from securebank.api import create_app
from securebank.api.dependencies import BankingSystem
from securebank.config import BankConfig

TEST_KEY = "0123456789abcdef" * 4
PASSWORD = "Str0ng!Pass"


def signup_body(**overrides):
    body = {
        "email": "jane@securebank.io",
        "password": PASSWORD,
        "firstName": "Jane",
        "lastName": "Doe",
        "phoneNumber": "+14155550123",
        "dateOfBirth": "1990-04-01",
        "ssn": "123456789",
        "address": "1 Market St",
        "city": "San Francisco",
        "state": "CA",
        "zipCode": "94105",
    }
    body.update(overrides)
    return body


@pytest.fixture
def settings():
    return BankConfig(
        database_url="memory://",
        jwt_secret="test-secret-key-with-enough-length",
        encryption_key=TEST_KEY,
    )


@pytest.fixture
def system(settings):
    banking_system = BankingSystem(settings)
    yield banking_system
    banking_system.close()


@pytest.fixture
def client(settings, system):
    """Test client over an in-memory banking system"""
    return TestClient(create_app(settings, system=system))


@pytest.fixture
def authed_client(client):
    r = client.post("/auth/signup", json=signup_body())
    assert r.status_code == 200
    return client


class TestHealthEndpoint:

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_request_id_echoed(self, client):
        r = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert r.headers["x-request-id"] == "abc123"
        assert client.get("/health").headers["x-request-id"]


class TestAuthEndpoints:
    """Signup, login, logout and me over HTTP"""

    def test_signup_sets_session_cookie(self, client):
        r = client.post("/auth/signup", json=signup_body())
        assert r.status_code == 200

        data = r.json()
        assert data["success"] is True
        assert data["user"]["email"] == "jane@securebank.io"
        assert "ssn" not in data["user"]
        assert "passwordHash" not in data["user"]

        set_cookie = r.headers["set-cookie"]
        assert set_cookie.startswith("session=")
        assert "HttpOnly" in set_cookie
        assert "SameSite=strict" in set_cookie or "SameSite=Strict" in set_cookie
        assert "Max-Age=604800" in set_cookie
        assert "Path=/" in set_cookie

    def test_signup_validation_errors(self, client):
        r = client.post("/auth/signup", json=signup_body(ssn="12", zipCode=None))
        assert r.status_code == 400

        error = r.json()["error"]
        assert error["code"] == "BAD_REQUEST"
        assert set(error["fields"]) == {"ssn", "zipCode"}

    def test_duplicate_signup_conflict(self, client):
        client.post("/auth/signup", json=signup_body())
        client.post("/auth/logout")

        r = client.post("/auth/signup", json=signup_body(email="JANE@securebank.io"))
        assert r.status_code == 409
        assert r.json()["error"]["message"] == "User already exists"

    def test_signup_while_authenticated(self, authed_client):
        r = authed_client.post("/auth/signup", json=signup_body(email="john@securebank.io"))
        assert r.status_code == 400

    def test_me(self, authed_client):
        r = authed_client.get("/auth/me")
        assert r.status_code == 200
        assert r.json()["user"]["firstName"] == "Jane"

    def test_me_anonymous(self, client):
        r = client.get("/auth/me")
        assert r.status_code == 200
        assert r.json()["user"] is None

    def test_logout_then_login(self, authed_client):
        r = authed_client.post("/auth/logout")
        assert r.status_code == 200
        assert r.json()["message"] == "Logged out successfully"
        assert "Max-Age=0" in r.headers["set-cookie"]
        assert authed_client.get("/auth/me").json()["user"] is None

        r = authed_client.post("/auth/login", json={"email": "jane@securebank.io", "password": PASSWORD})
        assert r.status_code == 200
        assert authed_client.get("/auth/me").json()["user"]["email"] == "jane@securebank.io"

    def test_logout_without_session(self, client):
        r = client.post("/auth/logout")
        assert r.status_code == 200
        assert r.json() == {"success": True, "message": "No active session"}

    def test_login_bad_credentials(self, authed_client):
        authed_client.post("/auth/logout")

        wrong = authed_client.post("/auth/login", json={"email": "jane@securebank.io", "password": "Wr0ng!Pass"})
        unknown = authed_client.post("/auth/login", json={"email": "nobody@securebank.io", "password": PASSWORD})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    def test_raw_cookie_header_is_accepted(self, client):
        r = client.post("/auth/signup", json=signup_body())
        token = r.cookies["session"]
        client.cookies.clear()

        r = client.get("/auth/me", headers={"Cookie": f"theme=dark; session={token}"})
        assert r.json()["user"]["email"] == "jane@securebank.io"


class TestAccountEndpoints:
    """Account RPCs over HTTP"""

    def test_requires_session(self, client):
        assert client.get("/account/getAccounts").status_code == 401
        r = client.post("/account/createAccount", json={"accountType": "checking"})
        assert r.status_code == 401
        assert r.json()["error"]["code"] == "UNAUTHORIZED"

    def test_create_and_list_accounts(self, authed_client):
        r = authed_client.post("/account/createAccount", json={"accountType": "checking"})
        assert r.status_code == 201
        account = r.json()["account"]
        assert account["balance"] == 0
        assert len(account["accountNumber"]) == 10

        r = authed_client.post("/account/createAccount", json={"accountType": "checking"})
        assert r.status_code == 409

        accounts = authed_client.get("/account/getAccounts").json()["accounts"]
        assert [a["id"] for a in accounts] == [account["id"]]

    def test_fund_and_history(self, authed_client):
        account_id = authed_client.post(
            "/account/createAccount", json={"accountType": "savings"}
        ).json()["account"]["id"]

        r = authed_client.post("/account/fundAccount", json={
            "accountId": account_id,
            "amount": "25.50",
            "fundingSource": {"type": "card", "accountNumber": "4111111111111111"},
        })
        assert r.status_code == 200
        assert r.json()["newBalance"] == 25.5

        authed_client.post("/account/fundAccount", json={
            "accountId": account_id,
            "amount": 10,
            "fundingSource": {
                "type": "bank", "accountNumber": "000123456789", "routingNumber": "021000021",
            },
        })

        r = authed_client.get("/account/getTransactions", params={"accountId": account_id})
        assert r.status_code == 200
        transactions = r.json()["transactions"]
        assert [t["description"] for t in transactions] == ["Funding from bank", "Funding from card"]
        assert all(t["accountType"] == "savings" for t in transactions)

    def test_fund_rejects_bad_input(self, authed_client):
        account_id = authed_client.post(
            "/account/createAccount", json={"accountType": "checking"}
        ).json()["account"]["id"]

        zero = authed_client.post("/account/fundAccount", json={
            "accountId": account_id,
            "amount": "0.00",
            "fundingSource": {"type": "card", "accountNumber": "4111111111111111"},
        })
        assert zero.status_code == 400
        assert zero.json()["error"]["message"] == "Amount must be greater than $0.00"

        bad_card = authed_client.post("/account/fundAccount", json={
            "accountId": account_id,
            "amount": "5",
            "fundingSource": {"type": "card", "accountNumber": "4111111111111112"},
        })
        assert bad_card.status_code == 400
        assert bad_card.json()["error"]["fields"] == {
            "fundingSource.accountNumber": ["Invalid visa card number"]
        }

        no_routing = authed_client.post("/account/fundAccount", json={
            "accountId": account_id,
            "amount": "5",
            "fundingSource": {"type": "bank", "accountNumber": "000123456789"},
        })
        assert no_routing.status_code == 400

        history = authed_client.get("/account/getTransactions", params={"accountId": account_id})
        assert history.json()["transactions"] == []

    def test_other_users_account_not_found(self, authed_client):
        account_id = authed_client.post(
            "/account/createAccount", json={"accountType": "checking"}
        ).json()["account"]["id"]
        authed_client.post("/auth/logout")
        authed_client.post("/auth/signup", json=signup_body(email="john@securebank.io"))

        r = authed_client.get("/account/getTransactions", params={"accountId": account_id})
        assert r.status_code == 404

        r = authed_client.post("/account/fundAccount", json={
            "accountId": account_id,
            "amount": "5",
            "fundingSource": {"type": "card", "accountNumber": "4111111111111111"},
        })
        assert r.status_code == 404
