from __future__ import annotations

import re

import pytest

from civic_portal_api.app.services.water_service import normalize_code, normalize_priority

API = "/api/v1"


def _report(client, path, **extra):
    body = {
        "reporter_name": "Nena Cruz",
        "contact_number": "09181234567",
        "issue_type": "no-water",
        "description": "No water since morning",
        "barangay": "Bagbag",
        **extra,
    }
    return client.post(f"{API}/{path}/", json=body)


def test_normalizers():
    assert normalize_code("in-progress") == "IN_PROGRESS"
    assert normalize_code(" clogged drain ") == "CLOGGED_DRAIN"
    assert normalize_priority(None) == "MEDIUM"
    assert normalize_priority("urgent") == "URGENT"
    with pytest.raises(ValueError):
        normalize_priority("whenever")


def test_water_issue_ticket_and_defaults(client):
    r = _report(client, "water-issues", photos=["https://example.com/1.jpg"])
    assert r.status_code == 201, r.text
    body = r.json()
    assert re.fullmatch(r"WI-\d{4}-00001", body["ticket_number"])
    assert body["status"] == "PENDING"
    assert body["priority"] == "MEDIUM"
    assert body["issue_type"] == "NO_WATER"
    assert body["photos"] == ["https://example.com/1.jpg"]

    second = _report(client, "water-issues").json()
    assert second["ticket_number"].endswith("-00002")

    assert _report(client, "water-issues", priority="someday").status_code == 400


def test_resolving_water_issue_sets_timestamp(client, admin_headers):
    issue = _report(client, "water-issues").json()
    r = client.post(
        f"{API}/water-issues/{issue['id']}/updates",
        json={"status": "in-progress", "description": "Crew dispatched", "updated_by": "Engr. Santos"},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "IN_PROGRESS"
    assert client.get(f"{API}/water-issues/{issue['id']}").json()["resolved_at"] is None

    client.post(f"{API}/water-issues/{issue['id']}/updates", json={"status": "RESOLVED"}, headers=admin_headers)
    detail = client.get(f"{API}/water-issues/{issue['id']}").json()
    assert detail["status"] == "RESOLVED"
    assert detail["resolved_at"]
    assert [u["status"] for u in detail["updates"]] == ["RESOLVED", "IN_PROGRESS"]


def test_staff_assignment_and_permissions(client, admin_headers, citizen_headers):
    issue = _report(client, "water-issues").json()
    r = client.put(
        f"{API}/water-issues/{issue['id']}",
        json={"assigned_staff_id": 7, "assigned_staff_name": "Crew 7", "priority": "high"},
        headers=admin_headers,
    )
    assert r.status_code == 200, r.text
    assert r.json()["assigned_at"]
    assert r.json()["priority"] == "HIGH"

    assert client.put(f"{API}/water-issues/{issue['id']}", json={"priority": "HIGH"},
                      headers=citizen_headers).status_code == 403
    assert client.delete(f"{API}/water-issues/{issue['id']}", headers=citizen_headers).status_code == 403
    assert client.delete(f"{API}/water-issues/{issue['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"{API}/water-issues/{issue['id']}").status_code == 404


def test_list_filters_and_recent_updates(client, admin_headers):
    issue = _report(client, "water-issues").json()
    _report(client, "water-issues", issue_type="leak", barangay="Talipapa", account_number="ACC-42")
    for status in ("ASSIGNED", "IN_PROGRESS", "IN_PROGRESS", "RESOLVED"):
        client.post(f"{API}/water-issues/{issue['id']}/updates", json={"status": status}, headers=admin_headers)

    page = client.get(f"{API}/water-issues/", params={"status": "resolved"}).json()
    assert page["total"] == 1
    assert len(page["items"][0]["updates"]) == 3

    leaks = client.get(f"{API}/water-issues/", params={"search": "acc-42"}).json()
    assert [i["issue_type"] for i in leaks["items"]] == ["LEAK"]

    paged = client.get(f"{API}/water-issues/", params={"limit": 1, "page": 2}).json()
    assert paged["total"] == 2
    assert paged["pages"] == 2
    assert len(paged["items"]) == 1


def test_drainage_completion_and_summary(client, admin_headers):
    request = _report(client, "drainage", issue_type="clogged-drain", priority="urgent").json()
    assert re.fullmatch(r"DR-\d{4}-00001", request["ticket_number"])
    _report(client, "drainage", issue_type="flooding", barangay="Talipapa")
    _report(client, "drainage", issue_type="flooding", barangay="Talipapa")

    client.post(f"{API}/drainage/{request['id']}/updates", json={"status": "completed"}, headers=admin_headers)
    detail = client.get(f"{API}/drainage/{request['id']}").json()
    assert detail["completed_at"]

    summary = client.get(f"{API}/drainage/stats/summary", headers=admin_headers).json()
    assert summary["total"] == 3
    assert summary["by_status"] == {"PENDING": 2, "COMPLETED": 1}
    assert summary["by_issue_type"] == {"FLOODING": 2, "CLOGGED_DRAIN": 1}
    assert list(summary["by_barangay"]) == ["Talipapa", "Bagbag"]
    assert summary["by_priority"] == {"MEDIUM": 2, "URGENT": 1}


def test_barangay_crud(client, admin_headers):
    r = client.post(f"{API}/barangays/", json={"name": "Bagbag", "district": "District 5"}, headers=admin_headers)
    assert r.status_code == 201, r.text
    barangay = r.json()
    dup = client.post(f"{API}/barangays/", json={"name": "Bagbag"}, headers=admin_headers)
    assert dup.status_code == 400

    listed = client.get(f"{API}/barangays/", params={"district": "District 5"}).json()
    assert [b["name"] for b in listed] == ["Bagbag"]

    updated = client.put(f"{API}/barangays/{barangay['id']}", json={"population": 30000}, headers=admin_headers)
    assert updated.json()["population"] == 30000
    assert client.delete(f"{API}/barangays/{barangay['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"{API}/barangays/{barangay['id']}").status_code == 404


def test_ticket_sequence_is_numeric_past_five_digits(client):
    from civic_portal_api.app.core.db import get_connection

    first = _report(client, "water-issues").json()
    second = _report(client, "water-issues").json()
    prefix = first["ticket_number"].rsplit("-", 1)[0]
    conn = get_connection()
    try:
        conn.execute("UPDATE water_issues SET ticket_number = ? WHERE id = ?", (f"{prefix}-99999", first["id"]))
        conn.execute("UPDATE water_issues SET ticket_number = ? WHERE id = ?", (f"{prefix}-100000", second["id"]))
        conn.commit()
    finally:
        conn.close()

    r = _report(client, "water-issues")
    assert r.status_code == 201, r.text
    assert r.json()["ticket_number"] == f"{prefix}-100001"
