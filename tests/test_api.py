from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from conftest import make_user, CPF_B
from molda_ledger.crud import crud_user
from molda_ledger.db.core import get_db, NotificationError
from molda_ledger.main import app


class FailingNotifier:
    def send(self, address, template_kind, payload):
        raise NotificationError("mail service down")


class Outbox:
    def __init__(self):
        self.sent = []

    def send(self, address, template_kind, payload):
        self.sent.append(payload)
        return "delivery-1"


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def owner(db):
    user = make_user(db)
    return {"X-User-Id": str(user.id)}


@pytest.fixture
def stranger(db):
    user = make_user(db, name="Bruno Lima", email="bruno@example.com", national_id=CPF_B, phone="21912345678")
    return {"X-User-Id": str(user.id)}


@pytest.fixture
def setup(client, owner):
    """Checking account with 100.00 and one category per type used below."""
    account = client.post("/accounts/", json={"account_name": "Checking", "balance": "100.00"}, headers=owner).json()
    categories = {}
    for name, kind in [("Salary", "INCOME"), ("Food", "EXPENSE"), ("Transfer", "TRANSFER")]:
        categories[kind] = client.post("/categories/", json={"name": name, "type": kind}, headers=owner).json()
    return account, categories


def post_transaction(client, headers, account_id, category_id, kind, amount, **extra):
    body = {
        "account_id": account_id,
        "category_id": category_id,
        "transaction_type": kind,
        "amount": amount,
        "transaction_date": "2026-03-10",
        "description": f"{kind.title()} entry",
    }
    body.update(extra)
    return client.post("/transactions/", json=body, headers=headers)


def test_root(client):
    assert client.get("/").json() == "Server is running."


def test_owner_header_is_required(client):
    assert client.get("/accounts/").status_code == 422
    assert client.get("/accounts/", headers={"X-User-Id": "0"}).status_code == 422


class TestTransactionsApi:
    def test_create_and_read(self, client, owner, setup):
        account, categories = setup

        response = post_transaction(client, owner, account["id"], categories["EXPENSE"]["id"], "EXPENSE", "30.00",
                                    tags=["groceries"])

        assert response.status_code == 201
        body = response.json()
        assert body["reference_number"].startswith("EXP-")
        assert body["transaction_type"] == "EXPENSE"
        assert Decimal(body["balance_before"]) == Decimal("100.00")
        assert Decimal(body["balance_after"]) == Decimal("70.00")

        fetched = client.get(f"/transactions/{body['id']}", headers=owner)
        assert fetched.status_code == 200
        assert fetched.json()["tags"] == ["groceries"]

        balance = client.get(f"/accounts/{account['id']}/balance", headers=owner).json()
        assert Decimal(balance["balance"]) == Decimal("70.00")

    def test_insufficient_balance(self, client, owner, setup):
        account, categories = setup

        response = post_transaction(client, owner, account["id"], categories["EXPENSE"]["id"], "EXPENSE", "200.00")

        assert response.status_code == 400
        assert "Insufficient balance" in response.json()["detail"]

    def test_category_type_mismatch(self, client, owner, setup):
        account, categories = setup

        response = post_transaction(client, owner, account["id"], categories["INCOME"]["id"], "EXPENSE", "1.00")

        assert response.status_code == 400

    def test_non_positive_amount_is_a_validation_error(self, client, owner, setup):
        account, categories = setup

        response = post_transaction(client, owner, account["id"], categories["INCOME"]["id"], "INCOME", "0")

        assert response.status_code == 422

    def test_other_owner_sees_nothing(self, client, owner, stranger, setup):
        account, categories = setup
        created = post_transaction(client, owner, account["id"], categories["INCOME"]["id"], "INCOME", "5.00").json()

        assert client.get(f"/transactions/{created['id']}", headers=stranger).status_code == 404
        assert client.get(f"/accounts/{account['id']}", headers=stranger).status_code == 404
        assert client.delete(f"/transactions/{created['id']}", headers=stranger).status_code == 404
        assert client.get("/transactions/", headers=stranger).json() == []

    def test_immutable_fields_rejected_on_update(self, client, owner, setup):
        account, categories = setup
        created = post_transaction(client, owner, account["id"], categories["INCOME"]["id"], "INCOME", "5.00").json()

        response = client.put(f"/transactions/{created['id']}", json={"amount": "6.00"}, headers=owner)
        assert response.status_code == 400

        response = client.put(f"/transactions/{created['id']}", json={"description": "Bonus"}, headers=owner)
        assert response.status_code == 200
        assert response.json()["description"] == "Bonus"

    def test_null_tags_do_not_break_listings(self, client, owner, setup):
        account, categories = setup
        created = post_transaction(client, owner, account["id"], categories["INCOME"]["id"], "INCOME", "5.00",
                                   tags=["bonus"]).json()

        response = client.put(f"/transactions/{created['id']}", json={"tags": None}, headers=owner)

        assert response.status_code == 200
        assert response.json()["tags"] == []
        assert client.get("/transactions/", headers=owner).status_code == 200
        assert client.get(f"/accounts/{account['id']}/statement", headers=owner).status_code == 200

    def test_blank_description_update_is_a_validation_error(self, client, owner, setup):
        account, categories = setup
        created = post_transaction(client, owner, account["id"], categories["INCOME"]["id"], "INCOME", "5.00").json()

        response = client.put(f"/transactions/{created['id']}", json={"description": "   "}, headers=owner)

        assert response.status_code == 422

    def test_delete_restores_balance(self, client, owner, setup):
        account, categories = setup
        created = post_transaction(client, owner, account["id"], categories["INCOME"]["id"], "INCOME", "50.00").json()

        response = client.delete(f"/transactions/{created['id']}", headers=owner)

        assert response.status_code == 200
        assert Decimal(response.json()["previous_balance"]) == Decimal("150.00")
        assert Decimal(response.json()["new_balance"]) == Decimal("100.00")

    def test_filters_count_and_stats(self, client, owner, setup):
        account, categories = setup
        post_transaction(client, owner, account["id"], categories["INCOME"]["id"], "INCOME", "50.00")
        post_transaction(client, owner, account["id"], categories["EXPENSE"]["id"], "EXPENSE", "20.00",
                         description="Market run", transaction_date="2026-04-02")

        listed = client.get("/transactions/", params={"transaction_type": "EXPENSE"}, headers=owner).json()
        assert [t["description"] for t in listed] == ["Market run"]
        assert client.get("/transactions/count", params={"search": "market"}, headers=owner).json() == {"count": 1}

        stats = client.get("/transactions/stats", headers=owner).json()
        assert Decimal(stats["balance"]) == Decimal("30.00")
        assert stats["total_transactions"] == 2

        by_category = client.get("/transactions/by-category", headers=owner).json()
        assert [row["category_name"] for row in by_category] == ["Food"]


class TestTransfersApi:
    def test_transfer_and_reversal(self, client, owner, setup):
        account, _ = setup
        savings = client.post("/accounts/", json={"account_name": "Savings"}, headers=owner).json()

        response = client.post("/transactions/transfers", json={
            "from_account_id": account["id"],
            "to_account_id": savings["id"],
            "amount": "40.00",
            "transaction_date": "2026-03-12",
            "description": "Save",
        }, headers=owner)

        assert response.status_code == 201
        reference = response.json()["transfer_reference"]
        assert reference.startswith("TRF-")
        out_leg = response.json()["out_transaction"]

        assert client.delete(f"/transactions/{out_leg['id']}", headers=owner).status_code == 400

        reversal = client.delete(f"/transactions/transfers/{reference}", headers=owner)
        assert reversal.status_code == 200
        balances = reversal.json()["balances"]
        assert Decimal(balances[str(account["id"])]) == Decimal("100.00")
        assert Decimal(balances[str(savings["id"])]) == Decimal("0.00")

    def test_same_account(self, client, owner, setup):
        account, _ = setup

        response = client.post("/transactions/transfers", json={
            "from_account_id": account["id"],
            "to_account_id": account["id"],
            "amount": "1.00",
            "transaction_date": "2026-03-12",
            "description": "Loop",
        }, headers=owner)

        assert response.status_code == 422


class TestAccountsAndCategoriesApi:
    def test_duplicate_account_name(self, client, owner, setup):
        response = client.post("/accounts/", json={"account_name": "Checking"}, headers=owner)

        assert response.status_code == 409

    def test_account_with_history_cannot_be_deleted(self, client, owner, setup):
        account, categories = setup
        post_transaction(client, owner, account["id"], categories["INCOME"]["id"], "INCOME", "1.00")

        assert client.delete(f"/accounts/{account['id']}", headers=owner).status_code == 409

    def test_empty_account_delete_returns_it(self, client, owner):
        account = client.post("/accounts/", json={"account_name": "Spare"}, headers=owner).json()

        response = client.delete(f"/accounts/{account['id']}", headers=owner)

        assert response.status_code == 200
        assert response.json()["account_name"] == "Spare"
        assert client.get(f"/accounts/{account['id']}", headers=owner).status_code == 404

    def test_category_in_use_cannot_be_deleted(self, client, owner, setup):
        account, categories = setup
        post_transaction(client, owner, account["id"], categories["EXPENSE"]["id"], "EXPENSE", "1.00")

        assert client.delete(f"/categories/{categories['EXPENSE']['id']}", headers=owner).status_code == 409
        assert client.delete(f"/categories/{categories['INCOME']['id']}", headers=owner).status_code == 204

    def test_statement(self, client, owner, setup):
        account, categories = setup
        post_transaction(client, owner, account["id"], categories["INCOME"]["id"], "INCOME", "25.00")

        statement = client.get(f"/accounts/{account['id']}/statement", headers=owner).json()

        assert Decimal(statement["opening_balance"]) == Decimal("100.00")
        assert Decimal(statement["closing_balance"]) == Decimal("125.00")
        assert len(statement["transactions"]) == 1


class TestUsersApi:
    registration = {
        "name": "Carla Dias",
        "email": "carla@example.com",
        "national_id": "390.533.447-05",
        "phone": "31988887777",
    }

    def test_register_verify_and_onboard(self, client, db):
        response = client.post("/users/", json=self.registration)
        assert response.status_code == 201
        user = response.json()
        assert user["status"] == "PENDING"
        assert "verification_token" not in user
        assert "national_id" not in user

        assert client.post("/users/", json=self.registration).status_code == 409

        token = crud_user.read_db_user(db, user_id=user["id"]).verification_token
        verified = client.post("/users/verify-email", json={"token": token})
        assert verified.status_code == 200
        assert verified.json()["is_email_verified"] is True

        headers = {"X-User-Id": str(user["id"])}
        onboarding = client.post("/users/me/onboarding", headers=headers)
        assert onboarding.status_code == 201
        assert onboarding.json()["account"]["account_name"] == "Wallet"
        assert len(onboarding.json()["categories"]) == 17
        assert client.post("/users/me/onboarding", headers=headers).status_code == 409

        assert client.get("/users/me", headers=headers).json()["email"] == "carla@example.com"

    def test_resend_reports_delivery_failure(self, client, monkeypatch):
        client.post("/users/", json=self.registration)
        monkeypatch.setattr(crud_user, "get_notifier", lambda: FailingNotifier())

        response = client.post("/users/resend-verification", json={"email": "carla@example.com"})

        assert response.status_code == 502

    def test_unknown_token(self, client):
        assert client.post("/users/verify-email", json={"token": "nope"}).status_code == 404

    def test_otp_login(self, client, db, monkeypatch):
        outbox = Outbox()
        monkeypatch.setattr(crud_user, "get_notifier", lambda: outbox)
        user = client.post("/users/", json=self.registration).json()

        assert client.post("/users/login", json={"identifier": "carla@example.com"}).status_code == 401

        client.post("/users/verify-email", json={"token": outbox.sent[0]["token"]})
        response = client.post("/users/login", json={"identifier": "390.533.447-05"})
        assert response.status_code == 202
        code = outbox.sent[-1]["code"]
        wrong = "000000" if code != "000000" else "111111"

        assert client.post("/users/login/verify", json={"identifier": "carla@example.com", "otp_code": wrong}).status_code == 401
        assert client.post("/users/login/verify", json={"identifier": "carla@example.com", "otp_code": "12"}).status_code == 422

        verified = client.post("/users/login/verify", json={"identifier": "carla@example.com", "otp_code": code})
        assert verified.status_code == 200
        assert verified.json()["id"] == user["id"]
        assert client.post("/users/login/verify", json={"identifier": "carla@example.com", "otp_code": code}).status_code == 401
