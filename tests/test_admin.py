import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from core.entities.account import Role
from core.errors import AdminAlreadyExistsError
from core.use_cases.admin_use_cases import bootstrap_admin
from infrastructure.db.sqlite import SQLiteAccountRepository, connect

from conftest import bearer, login, signup


@pytest.fixture
def admin_token(client):
    first = signup(client, "root@x.com")
    token = login(client, "root@x.com")
    response = client.post("/admin", json={"action": "makeAdmin", "target_account_id": first["id"]},
                           headers=bearer(token))
    assert response.status_code == 200, response.text
    return token


def test_bootstrap_grants_first_admin(client):
    user = signup(client, "first@x.com")
    token = login(client, "first@x.com")

    response = client.post("/admin", json={"action": "makeAdmin", "target_account_id": user["id"]},
                           headers=bearer(token))

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["account"]["role"] == "admin"


def test_bootstrap_closed_once_an_admin_exists(client, admin_token):
    user = signup(client, "late@x.com")
    token = login(client, "late@x.com")

    response = client.post("/admin", json={"action": "makeAdmin", "target_account_id": user["id"]},
                           headers=bearer(token))

    assert response.status_code == 403
    assert client.get(f"/accounts/{user['id']}").json()["account"]["role"] == "user"


def test_bootstrap_race_has_one_winner(db_path, accounts, make_account):
    candidates = [make_account(f"c{i}@x.com") for i in range(6)]
    barrier = threading.Barrier(len(candidates))

    def attempt(candidate):
        conn = connect(db_path)
        try:
            barrier.wait()
            bootstrap_admin(SQLiteAccountRepository(conn), candidate, candidate.id)
            return "granted"
        except AdminAlreadyExistsError:
            return "rejected"
        finally:
            conn.close()

    with ThreadPoolExecutor(max_workers=len(candidates)) as pool:
        results = list(pool.map(attempt, candidates))

    assert results.count("granted") == 1
    assert sum(1 for a in accounts.list_all() if a.role is Role.ADMIN) == 1


@pytest.mark.parametrize("body", [
    {"action": "removeAdmin"},
    {"action": "changePlan", "plan": "pro"},
    {"action": "disableUser", "reason": "spam"},
    {"action": "enableUser"},
    {"action": "resetPassword", "new_password": "newsecret"},
    {"action": "deleteUser"},
    {"action": "getUserDetails"},
    {"action": "makeAdmin"},
])
def test_non_admin_is_forbidden(client, admin_token, body):
    target = signup(client, "target@x.com")
    signup(client, "plain@x.com")
    token = login(client, "plain@x.com")

    response = client.post("/admin", json={**body, "target_account_id": target["id"]}, headers=bearer(token))

    assert response.status_code == 403
    assert client.get(f"/accounts/{target['id']}").status_code == 200


@pytest.mark.parametrize("body", [
    {"action": "makeAdmin", "target_account_id": "no-such-account"},
    {"action": "makeAdmin"},
    {"action": "deleteUser"},
    {"action": "deleteUser", "target_account_id": "no-such-account"},
    {"action": "launchRockets", "target_account_id": "no-such-account"},
    {},
])
def test_non_admin_gets_forbidden_before_any_lookup(client, admin_token, body):
    signup(client, "nosy@x.com")
    token = login(client, "nosy@x.com")

    response = client.post("/admin", json=body, headers=bearer(token))

    assert response.status_code == 403


def test_bootstrap_reports_missing_or_unknown_target_while_open(client):
    signup(client, "early@x.com")
    token = login(client, "early@x.com")

    unknown = client.post("/admin", json={"action": "makeAdmin", "target_account_id": "no-such-account"},
                          headers=bearer(token))
    missing = client.post("/admin", json={"action": "makeAdmin"}, headers=bearer(token))

    assert unknown.status_code == 404
    assert missing.status_code == 400
    assert "target_account_id" in missing.json()["error"]


def test_dashboard_requires_identity_and_admin(client, admin_token):
    assert client.get("/admin").status_code == 401
    assert client.get("/admin", headers=bearer("not-a-token")).status_code == 401

    signup(client, "plain@x.com")
    assert client.get("/admin", headers=bearer(login(client, "plain@x.com"))).status_code == 403


def test_dashboard_is_redacted_with_statistics(client, admin_token):
    signup(client, "u1@x.com")
    response = client.get("/admin", headers=bearer(admin_token))

    assert response.status_code == 200
    assert "password_hash" not in response.text
    data = response.json()
    assert len(data["accounts"]) == 2
    assert data["statistics"]["accounts"]["by_role"] == {"user": 1, "admin": 1}
    assert data["statistics"]["accounts"]["by_plan"]["free"] == 2
    assert data["statistics"]["revenue"] == {"USD": 0, "INR": 0}


def test_disabled_account_cannot_login(client, admin_token):
    user = signup(client, "d@x.com")
    response = client.post("/admin", json={"action": "disableUser", "target_account_id": user["id"],
                                           "reason": "fraud"}, headers=bearer(admin_token))
    assert response.status_code == 200

    login_response = client.post("/accounts", json={"action": "login", "email": "d@x.com", "password": "abcdef"})
    assert login_response.status_code == 401
    assert login_response.json()["reason"] == "fraud"

    account = client.get(f"/accounts/{user['id']}").json()["account"]
    assert account["status"] == "disabled"
    assert account["role"] == "user"
    assert account["plan"] == "free"

    client.post("/admin", json={"action": "enableUser", "target_account_id": user["id"]},
                headers=bearer(admin_token))
    assert login(client, "d@x.com")


def test_change_plan_and_reset_password(client, admin_token):
    user = signup(client, "p@x.com")

    response = client.post("/admin", json={"action": "changePlan", "target_account_id": user["id"],
                                           "plan": "enterprise", "currency": "USD"}, headers=bearer(admin_token))
    assert response.json()["message"] == "Plan changed to enterprise"
    assert response.json()["account"]["currency"] == "USD"

    bad = client.post("/admin", json={"action": "changePlan", "target_account_id": user["id"],
                                      "plan": "platinum"}, headers=bearer(admin_token))
    assert bad.status_code == 400

    client.post("/admin", json={"action": "resetPassword", "target_account_id": user["id"],
                                "new_password": "fresh-secret"}, headers=bearer(admin_token))
    assert login(client, "p@x.com", "fresh-secret")


def test_delete_and_details(client, admin_token):
    user = signup(client, "gone@x.com")

    details = client.post("/admin", json={"action": "getUserDetails", "target_account_id": user["id"]},
                          headers=bearer(admin_token))
    assert details.json()["account"]["email"] == "gone@x.com"
    assert details.json()["payments"] == []

    deleted = client.post("/admin", json={"action": "deleteUser", "target_account_id": user["id"]},
                          headers=bearer(admin_token))
    assert deleted.json() == {"success": True, "message": "User deleted", "account": None, "payments": []}
    assert client.get(f"/accounts/{user['id']}").status_code == 404

    missing = client.post("/admin", json={"action": "deleteUser", "target_account_id": user["id"]},
                          headers=bearer(admin_token))
    assert missing.status_code == 404


def test_unknown_or_incomplete_action(client, admin_token):
    assert client.post("/admin", json={"action": "launchRockets", "target_account_id": "x"},
                       headers=bearer(admin_token)).status_code == 400
    missing_target = client.post("/admin", json={"action": "enableUser"}, headers=bearer(admin_token))
    assert missing_target.status_code == 400
    assert missing_target.json() == {"error": "Missing target_account_id"}

    user = signup(client, "reset@x.com")
    missing_password = client.post("/admin", json={"action": "resetPassword", "target_account_id": user["id"]},
                                   headers=bearer(admin_token))
    assert missing_password.status_code == 400
    assert missing_password.json() == {"error": "Missing new_password"}


def test_demoted_admin_loses_access_immediately(client, admin_token):
    other = signup(client, "second@x.com")
    client.post("/admin", json={"action": "makeAdmin", "target_account_id": other["id"]},
                headers=bearer(admin_token))
    other_token = login(client, "second@x.com")
    assert client.get("/admin", headers=bearer(other_token)).status_code == 200

    client.post("/admin", json={"action": "removeAdmin", "target_account_id": other["id"]},
                headers=bearer(admin_token))
    assert client.get("/admin", headers=bearer(other_token)).status_code == 403
