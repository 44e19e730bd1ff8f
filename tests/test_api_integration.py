"""
Integration tests for the SOBS Banking API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from sobs_banking.api import create_app
from sobs_banking.config import SobsConfig
from sobs_banking.seed import DEMO_EMAIL, DEMO_PASSWORD
from sobs_banking.system import BankingSystem


PRIMARY = "12345678901234"
BUSINESS = "99887766554433"


def login(client, email=DEMO_EMAIL, password=DEMO_PASSWORD):
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200
    data = r.json()["data"]
    r = client.post("/api/auth/verify-otp", json={"session_id": data["session_id"], "otp": data["debug_otp"]})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['data']['session_token']}"}


@pytest.fixture
def system():
    return BankingSystem(config=SobsConfig(seed_demo_data=False))


@pytest.fixture
def client(system):
    """Test client over a fresh, seeded in-memory banking system"""
    return TestClient(create_app(system, seed=True))


@pytest.fixture
def auth(client):
    return login(client)


class TestHealthEndpoints:
    """Test basic health endpoint"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"


class TestAuthFlow:
    """Registration, login and bearer tokens"""

    def test_requests_without_token_are_rejected(self, client):
        r = client.get("/api/accounts")
        assert r.status_code == 401
        assert r.json() == {"success": False, "error": "UNAUTHENTICATED", "message": "Authentication required"}

        r = client.get("/api/accounts", headers={"Authorization": "Bearer not-a-token"})
        assert r.status_code == 401

    def test_wrong_password(self, client):
        r = client.post("/api/auth/login", json={"email": DEMO_EMAIL, "password": "nope"})
        assert r.status_code == 401
        assert r.json()["error"] == "INVALID_CREDENTIALS"

    def test_wrong_otp(self, client):
        r = client.post("/api/auth/login", json={"email": DEMO_EMAIL, "password": DEMO_PASSWORD})
        session_id = r.json()["data"]["session_id"]
        otp = r.json()["data"]["debug_otp"]

        r = client.post("/api/auth/verify-otp", json={"session_id": session_id, "otp": "x" + otp[1:]})
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_OTP"

    def test_register_then_login(self, client):
        r = client.post("/api/auth/register", json={
            "full_name": "Mona Adel",
            "email": "mona@example.com",
            "password": "Secret123!",
            "phone": "+201000000000"
        })
        assert r.status_code == 201
        assert r.json()["success"] is True

        r = client.post("/api/auth/register", json={
            "full_name": "Mona Again", "email": "MONA@example.com", "password": "x"
        })
        assert r.status_code == 400
        assert r.json()["error"] == "REGISTRATION_FAILED"

        headers = login(client, "mona@example.com", "Secret123!")
        accounts = client.get("/api/accounts", headers=headers).json()["data"]
        assert len(accounts) == 1
        assert accounts[0]["balance"] == "1000.00"
        assert accounts[0]["card_settings"]["spending_limit"] == "50000"

    def test_login_raises_security_alert(self, client, auth):
        notifications = client.get("/api/notifications", headers=auth).json()["data"]["notifications"]
        assert [(n["notification_type"], n["title"]) for n in notifications] == [("security", "Security Alert")]

    def test_login_alert_follows_notification_switch(self):
        quiet = BankingSystem(config=SobsConfig(seed_demo_data=False, enable_notifications=False))
        client = TestClient(create_app(quiet, seed=True))
        headers = login(client)
        assert client.get("/api/notifications", headers=headers).json()["data"]["unread_count"] == 0

    def test_logout_revokes_token(self, client, auth):
        assert client.post("/api/auth/logout", headers=auth).json()["data"]["revoked"] is True
        assert client.get("/api/accounts", headers=auth).status_code == 401


class TestAccountsFlow:
    """Accounts, history and deposits"""

    def test_list_accounts(self, client, auth):
        r = client.get("/api/accounts", headers=auth)
        assert r.status_code == 200
        accounts = r.json()["data"]
        assert [a["account_number"] for a in accounts] == [PRIMARY, BUSINESS]
        assert accounts[0]["balance"] == "50000.00"
        assert accounts[1]["card_settings"]["international_transactions"] is False

    def test_deposit_and_history(self, client, auth):
        r = client.post("/api/accounts/deposit", headers=auth, json={"amount": 15000, "account_number": PRIMARY})
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["data"]["new_balance"] == "65000.00"

        r = client.get(f"/api/accounts/{PRIMARY}/transactions", headers=auth)
        data = r.json()["data"]
        assert data["total_count"] == 2
        assert data["transactions"][0]["id"] == body["data"]["transaction_id"]
        assert data["transactions"][0]["direction"] == "credit"

        r = client.get(f"/api/accounts/{PRIMARY}/transactions?limit=1", headers=auth)
        assert len(r.json()["data"]["transactions"]) == 1

    def test_invalid_deposit_amount(self, client, auth):
        r = client.post("/api/accounts/deposit", headers=auth, json={"amount": "abc"})
        assert r.status_code == 400
        assert r.json()["success"] is False
        assert r.json()["error"] == "INVALID_AMOUNT"

    def test_foreign_or_unknown_account(self, client, auth):
        r = client.get("/api/accounts/00000000000000/transactions", headers=auth)
        assert r.status_code == 404
        assert r.json()["error"] == "ACCOUNT_NOT_FOUND"


class TestCardControlsFlow:
    """Card settings and the policy gate over HTTP"""

    def test_partial_update(self, client, auth):
        r = client.put(f"/api/cards/{PRIMARY}/settings", headers=auth, json={"is_frozen": True})
        assert r.status_code == 200
        settings = r.json()["data"]
        assert settings["is_frozen"] is True
        assert settings["spending_limit"] == "50000"

        r = client.get(f"/api/cards/{PRIMARY}/settings", headers=auth)
        assert r.json()["data"]["is_frozen"] is True

    def test_invalid_limit(self, client, auth):
        r = client.put(f"/api/cards/{PRIMARY}/settings", headers=auth, json={"spending_limit": "-10"})
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_SETTINGS"

    def test_frozen_card_blocks_bill(self, client, auth):
        client.put(f"/api/cards/{PRIMARY}/settings", headers=auth, json={"is_frozen": True})

        r = client.post("/api/bills/pay", headers=auth, json={
            "provider": "Electricity", "amount": 500, "from_account_number": PRIMARY
        })
        assert r.status_code == 400
        assert r.json()["error"] == "CARD_FROZEN"

        history = client.get(f"/api/accounts/{PRIMARY}/transactions", headers=auth).json()["data"]
        assert history["total_count"] == 1

    def test_transfer_over_limit(self, client, auth):
        r = client.post("/api/transfers", headers=auth, json={
            "recipient_account_number": "5555666677778888",
            "amount": 30000,
            "from_account_number": BUSINESS
        })
        assert r.status_code == 400
        body = r.json()
        assert body["success"] is False
        assert body["error"] == "LIMIT_EXCEEDED"
        assert body["limit"] == "25000.00"
        assert body["amount"] == "30000.00"

    def test_transfer_success(self, client, auth):
        r = client.post("/api/transfers", headers=auth, json={
            "recipient_account_number": "5555666677778888",
            "amount": "2500.50",
            "from_account_number": BUSINESS,
            "description": "Rent"
        })
        assert r.status_code == 200
        assert r.json()["data"]["new_balance"] == "10000.00"

    def test_transfer_requires_recipient(self, client, auth):
        r = client.post("/api/transfers", headers=auth, json={"recipient_account_number": "", "amount": 10})
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_REQUEST"

    def test_transfer_to_beneficiary(self, client, auth):
        mom = client.get("/api/beneficiaries?favorites_only=true", headers=auth).json()["data"][1]
        assert mom["nickname"] == "Mom"

        r = client.post("/api/transfers", headers=auth, json={"beneficiary_id": mom["id"], "amount": 1000})
        assert r.status_code == 200
        assert r.json()["data"]["new_balance"] == "49000.00"

        history = client.get(f"/api/accounts/{PRIMARY}/transactions", headers=auth).json()["data"]
        assert history["transactions"][0]["description"] == "Transfer to 5555666677778888"

    def test_transfer_to_unknown_beneficiary(self, client, auth):
        r = client.post("/api/transfers", headers=auth, json={"beneficiary_id": "missing", "amount": 10})
        assert r.status_code == 404
        assert r.json()["error"] == "BENEFICIARY_NOT_FOUND"

        beneficiary_id = client.get("/api/beneficiaries", headers=auth).json()["data"][0]["id"]
        r = client.post("/api/transfers", headers=auth, json={
            "beneficiary_id": beneficiary_id, "recipient_account_number": "1234", "amount": 10
        })
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_REQUEST"


class TestBeneficiariesFlow:
    """Saved beneficiaries over HTTP"""

    def test_seeded_beneficiaries(self, client, auth):
        beneficiaries = client.get("/api/beneficiaries", headers=auth).json()["data"]
        assert len(beneficiaries) == 8
        assert beneficiaries[0]["name"] == "Mohamed Ali"
        assert beneficiaries[0]["bank"] == "CIB"

        favorites = client.get("/api/beneficiaries?favorites_only=true", headers=auth).json()["data"]
        assert [b["nickname"] for b in favorites] == ["Brother", "Mom", "Sister", "Wife"]

    def test_beneficiary_lifecycle(self, client, auth):
        r = client.post("/api/beneficiaries", headers=auth, json={
            "name": "Hany Samir", "account_number": "2222333344445555", "bank": "CIB"
        })
        assert r.status_code == 201
        beneficiary = r.json()["data"]
        assert beneficiary["is_favorite"] is False

        r = client.put(f"/api/beneficiaries/{beneficiary['id']}", headers=auth, json={"is_favorite": True})
        assert r.status_code == 200
        assert r.json()["data"]["is_favorite"] is True
        assert r.json()["data"]["bank"] == "CIB"

        assert client.delete(f"/api/beneficiaries/{beneficiary['id']}", headers=auth).status_code == 200
        r = client.delete(f"/api/beneficiaries/{beneficiary['id']}", headers=auth)
        assert r.status_code == 404
        assert r.json()["error"] == "BENEFICIARY_NOT_FOUND"

    def test_invalid_beneficiary(self, client, auth):
        r = client.post("/api/beneficiaries", headers=auth, json={"name": " ", "account_number": "1"})
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_REQUEST"

        r = client.post("/api/beneficiaries", headers=auth, json={
            "name": "Duplicate", "account_number": "9876543210123456"
        })
        assert r.status_code == 400

    def test_beneficiaries_are_private(self, client, auth):
        beneficiary_id = client.get("/api/beneficiaries", headers=auth).json()["data"][0]["id"]

        client.post("/api/auth/register", json={"full_name": "Other", "email": "o@example.com", "password": "pw"})
        other = login(client, "o@example.com", "pw")

        assert client.get("/api/beneficiaries", headers=other).json()["data"] == []
        r = client.put(f"/api/beneficiaries/{beneficiary_id}", headers=other, json={"name": "Mine"})
        assert r.status_code == 404


class TestScheduledPaymentsFlow:
    """Scheduled payments over HTTP"""

    def test_seeded_payments(self, client, auth):
        payments = client.get("/api/scheduled-payments", headers=auth).json()["data"]
        assert [(p["name"], p["payment_type"], p["amount"]) for p in payments] == [
            ("Monthly Rent", "rent", "8000.00"),
            ("Internet Bill", "bill", "350.00"),
        ]
        assert payments[0]["from_account_number"] == PRIMARY
        assert payments[0]["next_due_date"].endswith("-01")

    def test_payment_lifecycle(self, client, auth):
        r = client.post("/api/scheduled-payments", headers=auth, json={
            "name": "Gym", "amount": "750", "recipient_account": "7777888899990000",
            "frequency": "weekly", "start_date": "2099-01-05", "from_account_number": BUSINESS
        })
        assert r.status_code == 201
        payment = r.json()["data"]
        assert payment["payment_type"] == "transfer"
        assert payment["from_account_number"] == BUSINESS
        assert payment["next_due_date"] == "2099-01-05"

        r = client.put(f"/api/scheduled-payments/{payment['id']}", headers=auth, json={"amount": 800, "name": "Gym+"})
        assert r.json()["data"]["amount"] == "800.00"
        assert r.json()["data"]["frequency"] == "weekly"

        r = client.post(f"/api/scheduled-payments/{payment['id']}/pause", headers=auth)
        assert r.json()["data"]["is_paused"] is True
        assert r.json()["data"]["next_due_date"] is None

        r = client.post(f"/api/scheduled-payments/{payment['id']}/resume", headers=auth)
        assert r.json()["data"]["is_paused"] is False

        assert client.delete(f"/api/scheduled-payments/{payment['id']}", headers=auth).status_code == 200
        r = client.post(f"/api/scheduled-payments/{payment['id']}/pause", headers=auth)
        assert r.status_code == 404
        assert r.json()["error"] == "SCHEDULED_PAYMENT_NOT_FOUND"

    def test_payment_to_beneficiary(self, client, auth):
        brother = client.get("/api/beneficiaries", headers=auth).json()["data"][0]
        r = client.post("/api/scheduled-payments", headers=auth, json={
            "name": "Allowance", "amount": 500, "beneficiary_id": brother["id"]
        })
        assert r.status_code == 201
        assert r.json()["data"]["recipient_account"] == brother["account_number"]
        assert r.json()["data"]["from_account_number"] == PRIMARY

    def test_invalid_payments(self, client, auth):
        base = {"name": "Bad", "amount": "100", "recipient_account": "1"}

        r = client.post("/api/scheduled-payments", headers=auth, json={**base, "amount": "0"})
        assert r.json()["error"] == "INVALID_AMOUNT"
        r = client.post("/api/scheduled-payments", headers=auth, json={**base, "frequency": "daily"})
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_REQUEST"
        r = client.post("/api/scheduled-payments", headers=auth, json={**base, "from_account_number": "00000000000000"})
        assert r.status_code == 404

        payment_id = client.get("/api/scheduled-payments", headers=auth).json()["data"][0]["id"]
        r = client.put(f"/api/scheduled-payments/{payment_id}", headers=auth, json={"amount": "1.001"})
        assert r.json()["error"] == "INVALID_AMOUNT"


class TestSavingsFlow:
    """Savings goals over HTTP"""

    def test_list_and_contribute(self, client, auth):
        goals = client.get("/api/savings/goals", headers=auth).json()["data"]
        assert len(goals) == 3
        vacation = goals[0]
        assert vacation["progress"] == "41.67"

        r = client.post(f"/api/savings/goals/{vacation['id']}/deposit", headers=auth, json={"amount": 2500})
        assert r.status_code == 200
        assert r.json()["data"]["goal"]["current_amount"] == "15000.00"
        assert r.json()["data"]["new_balance"] == "47500.00"

    def test_unknown_goal(self, client, auth):
        r = client.post("/api/savings/goals/missing/deposit", headers=auth, json={"amount": 10})
        assert r.status_code == 404
        assert r.json()["error"] == "SAVINGS_GOAL_NOT_FOUND"

    def test_create_goal(self, client, auth):
        r = client.post("/api/savings/goals", headers=auth, json={"name": "Laptop", "target_amount": "40000"})
        assert r.status_code == 201
        assert r.json()["data"]["current_amount"] == "0.00"

        r = client.post("/api/savings/goals", headers=auth, json={"name": "Bad", "target_amount": "0"})
        assert r.status_code == 400


class TestNotificationsFlow:
    """Notifications follow posted movements"""

    def test_notifications_lifecycle(self, client, auth):
        client.post("/api/accounts/deposit", headers=auth, json={"amount": 100})
        client.post("/api/bills/pay", headers=auth, json={"provider": "Water", "amount": 50})

        data = client.get("/api/notifications", headers=auth).json()["data"]
        assert data["unread_count"] == 3
        newest = data["notifications"][0]
        assert newest["title"] == "Bill Paid"
        assert data["notifications"][-1]["title"] == "Security Alert"

        assert client.put(f"/api/notifications/{newest['id']}/read", headers=auth).status_code == 200
        assert client.get("/api/notifications", headers=auth).json()["data"]["unread_count"] == 2

        r = client.put("/api/notifications/read-all", headers=auth)
        assert r.json()["data"]["updated"] == 2

        assert client.delete(f"/api/notifications/{newest['id']}", headers=auth).status_code == 200
        assert client.delete(f"/api/notifications/{newest['id']}", headers=auth).status_code == 404


class TestAnalyticsFlow:
    """Analytics summary over HTTP"""

    def test_week_analytics(self, client, auth):
        client.post("/api/bills/pay", headers=auth, json={"provider": "Water", "amount": 70})

        r = client.get("/api/analytics?period=week", headers=auth)
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["account_number"] == PRIMARY
        assert data["insights"]["total_spent"] == "70.00"
        assert data["insights"]["avg_daily"] == "10.00"
        assert len(data["buckets"]) == 7

    def test_invalid_period(self, client, auth):
        r = client.get("/api/analytics?period=decade", headers=auth)
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_PERIOD"

    def test_other_account(self, client, auth):
        r = client.get(f"/api/analytics?period=month&account={BUSINESS}", headers=auth)
        assert r.json()["data"]["account_number"] == BUSINESS
