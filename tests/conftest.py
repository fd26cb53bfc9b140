from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure the project root is on sys.path so `import civic_portal_api.*` works in tests.
ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from civic_portal_api.app.core.config import settings  # noqa: E402
from civic_portal_api.app.main import create_app  # noqa: E402

ADMIN = {"email": "admin@city.gov.ph", "password": "adminpass", "full_name": "Portal Admin"}
CITIZEN = {"email": "juan@example.com", "password": "citizenpass", "full_name": "Juan Dela Cruz"}


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "database_url", str(tmp_path / "portal.db"))
    monkeypatch.setattr(settings, "openroute_api_key", "")
    monkeypatch.setattr(settings, "super_admin_static_token", "")
    monkeypatch.setattr(settings, "service_tokens", "")
    monkeypatch.setattr(settings, "log_file", "")
    with TestClient(create_app()) as test_client:
        yield test_client


def login(client: TestClient, account: dict) -> dict:
    r = client.post("/api/v1/users/login", json={"email": account["email"], "password": account["password"]})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture()
def admin_headers(client):
    r = client.post("/api/v1/users/", json=ADMIN)
    assert r.status_code == 201, r.text
    return login(client, ADMIN)


@pytest.fixture()
def citizen_headers(client, admin_headers):
    r = client.post("/api/v1/users/", json=CITIZEN)
    assert r.status_code == 201, r.text
    return login(client, CITIZEN)
