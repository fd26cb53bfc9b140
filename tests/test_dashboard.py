from __future__ import annotations

import sqlite3

from civic_portal_api.app.services import dashboard_service

API = "/api/v1"


def test_overview_reports_every_department(client, admin_headers):
    client.post(
        f"{API}/water-issues/",
        json={"reporter_name": "Nena Cruz", "issue_type": "leak", "description": "Pipe burst"},
    )
    r = client.get(f"{API}/dashboard/overview", headers=admin_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert set(dashboard_service.PARTS) <= set(body)
    assert body["water"] == {"total": 1, "pending": 1, "in_progress": 0, "resolved": 0}
    assert body["users"]["admins"] == 1
    assert body["system_health"]["overall"] == "healthy"
    assert set(body["system_health"]["services"].values()) == {"up"}
    assert body["generated_at"]


def test_failed_part_degrades_overview(client, admin_headers, monkeypatch):
    async def broken():
        raise sqlite3.OperationalError("no such table: water_issues")

    monkeypatch.setitem(dashboard_service.PARTS, "water", broken)
    body = client.get(f"{API}/dashboard/overview", headers=admin_headers).json()
    assert body["water"] == dashboard_service.PART_DEFAULTS["water"]
    assert body["system_health"]["services"]["water"] == "down"
    assert body["system_health"]["services"]["permits"] == "up"
    assert body["system_health"]["overall"] == "degraded"


def test_overview_requires_staff(client, citizen_headers):
    assert client.get(f"{API}/dashboard/overview", headers=citizen_headers).status_code == 403
    assert client.get(f"{API}/dashboard/overview").status_code == 401


def test_cemetery_dashboard_recent_activity(client, admin_headers):
    cemetery = client.post(f"{API}/cemeteries/", json={"name": "Bagbag"}, headers=admin_headers).json()
    plot = client.post(
        f"{API}/plots/", json={"cemetery_id": cemetery["id"], "plot_number": "R-1"}, headers=admin_headers
    ).json()
    burial = client.post(
        f"{API}/deceased/burial-assignment",
        json={"plot_id": plot["id"], "deceased": {"first_name": "Juan", "last_name": "Luna",
                                                   "date_of_death": "2023-01-01"}},
        headers=admin_headers,
    ).json()
    client.post(
        f"{API}/permits/",
        json={"permit_type": "BURIAL", "deceased_id": burial["deceased"]["id"], "applicant_name": "Ana Luna"},
        headers=admin_headers,
    )

    body = client.get(f"{API}/dashboard/cemetery", headers=admin_headers).json()
    assert body["total_cemeteries"] == 1
    assert body["plots"]["occupied_plots"] == 1
    assert body["permits"]["burial_permits"] == 1
    assert {a["type"] for a in body["recent_activities"]} == {"permit", "assignment"}
    assert all(a["deceased_name"] == "Juan Luna" for a in body["recent_activities"])


def test_health_is_up(client):
    r = client.get(f"{API}/health")
    assert r.status_code == 200
    assert r.json()["database"] == "up"
    assert r.json()["plots"] == 0


def test_health_reports_database_failure(client, monkeypatch):
    def unavailable():
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(dashboard_service, "get_connection", unavailable)
    r = client.get(f"{API}/health")
    assert r.status_code == 503
    assert r.json()["status"] == "unhealthy"
    assert r.json()["database"] == "down"
