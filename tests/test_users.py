from __future__ import annotations

from civic_portal_api.app.core.security import create_access_token, hash_password, verify_password


API = "/api/v1/users"
CITIZEN = {"email": "juan@example.com", "password": "citizenpass"}


def test_password_hashing_round_trip():
    hashed = hash_password("s3cret!")
    assert hashed != "s3cret!"
    assert verify_password("s3cret!", hashed)
    assert not verify_password("wrong", hashed)


def test_first_user_is_admin_then_citizens(client, admin_headers, citizen_headers):
    me = client.get(f"{API}/me", headers=admin_headers).json()
    assert me["role_id"] == 1
    citizen = client.get(f"{API}/me", headers=citizen_headers).json()
    assert citizen["role_id"] == 3
    assert "password" not in citizen


def test_duplicate_email_and_bad_login(client, admin_headers, citizen_headers):
    assert client.post(f"{API}/", json=CITIZEN).status_code == 400
    r = client.post(f"{API}/login", json={"email": CITIZEN["email"], "password": "nope"})
    assert r.status_code == 401


def test_missing_or_invalid_token(client):
    assert client.get(f"{API}/me").status_code == 401
    assert client.get(f"{API}/me", headers={"Authorization": "Bearer garbage"}).status_code == 401
    token = create_access_token({"sub": "ghost@example.com"})
    assert client.get(f"{API}/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_only_admin_changes_roles(client, admin_headers, citizen_headers):
    citizen_id = client.get(f"{API}/me", headers=citizen_headers).json()["id"]

    own = client.put(f"{API}/{citizen_id}", json={"contact_number": "09170001111"}, headers=citizen_headers)
    assert own.status_code == 200
    assert own.json()["contact_number"] == "09170001111"

    escalate = client.put(f"{API}/{citizen_id}", json={"role_id": 1}, headers=citizen_headers)
    assert escalate.status_code == 403
    assert client.put(f"{API}/1", json={"full_name": "Hijacked"}, headers=citizen_headers).status_code == 403
    assert client.get(f"{API}/", headers=citizen_headers).status_code == 403

    promoted = client.put(f"{API}/{citizen_id}", json={"role_id": 2}, headers=admin_headers)
    assert promoted.status_code == 200
    assert promoted.json()["role_id"] == 2
    staff = client.get(f"{API}/", params={"role_id": 2}, headers=citizen_headers)
    assert staff.status_code == 200
    assert [u["id"] for u in staff.json()] == [citizen_id]

    logs = client.get("/api/v1/audit/logs", params={"object_type": "user"}, headers=admin_headers).json()
    assert any(log["object_id"] == citizen_id and log["action"] != "create" for log in logs)


def test_disabled_account_is_locked_out(client, admin_headers, citizen_headers):
    citizen_id = client.get(f"{API}/me", headers=citizen_headers).json()["id"]
    r = client.put(f"{API}/{citizen_id}", json={"disabled": True}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["disabled"] is True
    assert client.get(f"{API}/me", headers=citizen_headers).status_code == 401
    assert client.post(f"{API}/login", json={"email": CITIZEN["email"], "password": CITIZEN["password"]}).status_code == 401


def test_password_change_allows_new_login(client, admin_headers, citizen_headers):
    citizen_id = client.get(f"{API}/me", headers=citizen_headers).json()["id"]
    client.put(f"{API}/{citizen_id}", json={"password": "brandnewpass"}, headers=citizen_headers)
    r = client.post(f"{API}/login", json={"email": CITIZEN["email"], "password": "brandnewpass"})
    assert r.status_code == 200
    assert r.json()["role_id"] == 3
