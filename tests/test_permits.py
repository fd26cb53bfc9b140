from __future__ import annotations

import re

import pytest

from civic_portal_api.app.services.permit_service import permit_fee

API = "/api/v1"


@pytest.fixture()
def deceased_id(client, admin_headers):
    r = client.post(
        f"{API}/deceased/",
        json={"first_name": "Lorenzo", "last_name": "Ruiz", "date_of_death": "2024-03-01"},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]


def _apply(client, headers, deceased_id, permit_type="BURIAL", **extra):
    body = {"permit_type": permit_type, "deceased_id": deceased_id, "applicant_name": "Rosa Ruiz", **extra}
    return client.post(f"{API}/permits/", json=body, headers=headers)


def test_fee_by_permit_type():
    assert permit_fee("burial") == 500.0
    assert permit_fee("EXHUMATION") == 1000.0
    assert permit_fee("CREMATION") == 750.0


def test_citizen_submits_and_reads_own_permit(client, citizen_headers, admin_headers, deceased_id):
    r = _apply(client, citizen_headers, deceased_id, "exhumation", requested_date="2024-03-05",
               requested_time="09:00", contact_number="09171234567")
    assert r.status_code == 201, r.text
    permit = r.json()
    assert re.fullmatch(r"EP-\d{4}-00001", permit["permit_number"])
    assert permit["status"] == "SUBMITTED"
    assert permit["fee_amount"] == 1000.0
    assert permit["deceased_name"] == "Lorenzo Ruiz"
    assert "Requested Date: 2024-03-05 at 09:00" in permit["remarks"]
    assert "Contact Number: 09171234567" in permit["remarks"]

    second = _apply(client, citizen_headers, deceased_id, "EXHUMATION").json()
    assert second["permit_number"].endswith("-00002")

    mine = client.get(f"{API}/permits/mine", headers=citizen_headers).json()
    assert {p["id"] for p in mine} == {permit["id"], second["id"]}
    assert client.get(f"{API}/permits/{permit['id']}", headers=citizen_headers).status_code == 200
    assert client.get(f"{API}/permits/", headers=citizen_headers).status_code == 403


def test_citizen_cannot_read_foreign_permit(client, citizen_headers, admin_headers, deceased_id):
    permit = _apply(client, admin_headers, deceased_id).json()
    r = client.get(f"{API}/permits/{permit['id']}", headers=citizen_headers)
    assert r.status_code == 403


def test_invalid_type_and_unknown_deceased(client, admin_headers, deceased_id):
    assert _apply(client, admin_headers, deceased_id, "MARRIAGE").status_code == 400
    assert _apply(client, admin_headers, 999).status_code == 404


def test_status_workflow_issues_permit(client, admin_headers, deceased_id):
    permit = _apply(client, admin_headers, deceased_id).json()
    r = client.put(f"{API}/permits/{permit['id']}/status", json={"status": "issued"}, headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "ISSUED"
    assert r.json()["pickup_status"] == "READY"
    assert r.json()["issued_at"]

    bad = client.put(f"{API}/permits/{permit['id']}/status", json={"status": "LOST"}, headers=admin_headers)
    assert bad.status_code == 400


def test_override_waives_fee_and_is_audited(client, admin_headers, deceased_id):
    permit = _apply(client, admin_headers, deceased_id, "CREMATION").json()
    r = client.post(
        f"{API}/permits/{permit['id']}/override",
        json={"action": "waive_fee", "reason": "Indigent family"},
        headers=admin_headers,
    )
    assert r.status_code == 200, r.text
    assert r.json()["fee_amount"] == 0
    assert r.json()["fee_waived"] is True

    logs = client.get(f"{API}/audit/logs", params={"action": "PERMIT_OVERRIDE_WAIVE_FEE"}, headers=admin_headers)
    assert logs.status_code == 200
    entry = logs.json()[0]
    assert entry["object_id"] == permit["id"]
    assert entry["details"]["reason"] == "Indigent family"
    assert entry["details"]["previous_fee"] == 750.0


def test_permit_history_in_audit_log(client, admin_headers, citizen_headers, deceased_id):
    permit = _apply(client, admin_headers, deceased_id).json()
    other = _apply(client, admin_headers, deceased_id).json()
    client.post(f"{API}/permits/{permit['id']}/override", json={"action": "approve", "reason": "Urgent"},
                headers=admin_headers)
    client.post(f"{API}/permits/{other['id']}/override", json={"action": "reject", "reason": "Duplicate"},
                headers=admin_headers)

    trail = client.get(f"{API}/audit/logs/permit/{permit['id']}", headers=admin_headers)
    assert trail.status_code == 200, trail.text
    assert [e["action"] for e in trail.json()] == ["create", "PERMIT_OVERRIDE_APPROVE"]

    filtered = client.get(
        f"{API}/audit/logs", params={"object_type": "Permit", "object_id": other["id"]}, headers=admin_headers
    ).json()
    assert {e["action"] for e in filtered} == {"create", "PERMIT_OVERRIDE_REJECT"}
    assert all(e["object_id"] == other["id"] for e in filtered)

    assert client.get(f"{API}/audit/logs", params={"object_type": "invoice"}, headers=admin_headers).status_code == 400
    assert client.get(f"{API}/audit/logs/invoice/1", headers=admin_headers).status_code == 400
    assert client.get(f"{API}/audit/logs/permit/{permit['id']}", headers=citizen_headers).status_code == 403


def test_override_requires_reason_and_admin(client, admin_headers, citizen_headers, deceased_id):
    permit = _apply(client, admin_headers, deceased_id).json()
    blank = client.post(
        f"{API}/permits/{permit['id']}/override", json={"action": "approve", "reason": "   "}, headers=admin_headers
    )
    assert blank.status_code == 400

    no_fee = client.post(
        f"{API}/permits/{permit['id']}/override", json={"action": "adjust_fee", "reason": "Promo"},
        headers=admin_headers,
    )
    assert no_fee.status_code == 400

    forbidden = client.post(
        f"{API}/permits/{permit['id']}/override", json={"action": "approve", "reason": "Please"},
        headers=citizen_headers,
    )
    assert forbidden.status_code == 403


def test_statistics_counts_pending_and_issued(client, admin_headers, deceased_id):
    first = _apply(client, admin_headers, deceased_id).json()
    _apply(client, admin_headers, deceased_id, "CREMATION")
    client.post(f"{API}/permits/{first['id']}/override", json={"action": "approve", "reason": "Urgent"},
                headers=admin_headers)
    stats = client.get(f"{API}/permits/statistics", headers=admin_headers).json()
    assert stats["total_permits"] == 2
    assert stats["burial_permits"] == 1
    assert stats["cremation_permits"] == 1
    assert stats["issued_permits"] == 1
    assert stats["pending_permits"] == 1
