from __future__ import annotations

import re
from datetime import datetime

import pytest

from civic_portal_api.app.services.facility_service import payment_amount

API = "/api/v1/facilities"


@pytest.fixture()
def facility(client, admin_headers):
    r = client.post(
        f"{API}/",
        json={"name": "City Hall Auditorium", "facility_type": "AUDITORIUM", "capacity": 300, "hourly_rate": 1000},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


def _request(client, facility_id, start="2030-05-10T10:00:00", end="2030-05-10T12:00:00", **extra):
    body = {
        "facility_id": facility_id,
        "applicant_name": "Barangay Council",
        "applicant_email": "council@example.com",
        "contact_number": "09170000000",
        "event_title": "Town Hall Meeting",
        "start_at": start,
        "end_at": end,
        **extra,
    }
    return client.post(f"{API}/requests", json=body)


def test_payment_amount_rounds_hours_up():
    start = datetime(2030, 1, 1, 8, 0)
    assert payment_amount(500, start, datetime(2030, 1, 1, 10, 30), "PRIVATE") == 1500.0
    assert payment_amount(500, start, datetime(2030, 1, 1, 10, 0), "community") == 1000.0
    assert payment_amount(500, start, datetime(2030, 1, 1, 10, 30), "government") == 0.0


def test_request_number_and_amount(client, facility):
    r = _request(client, facility["id"], end="2030-05-10T12:15:00")
    assert r.status_code == 201, r.text
    body = r.json()
    assert re.fullmatch(r"FR-\d{4}-0001", body["request_number"])
    assert body["status"] == "PENDING_REVIEW"
    assert body["payment_amount"] == 3000.0
    assert body["payment_status"] == "PENDING"
    assert body["facility_name"] == "City Hall Auditorium"

    by_number = client.get(f"{API}/requests/by-number/{body['request_number']}")
    assert by_number.status_code == 200
    assert by_number.json()["id"] == body["id"]


def test_government_events_are_exempt(client, facility):
    body = _request(client, facility["id"], event_type="government").json()
    assert body["event_type"] == "GOVERNMENT"
    assert body["payment_amount"] == 0
    assert body["payment_status"] == "EXEMPTED"


def test_overlap_is_inclusive(client, facility):
    assert _request(client, facility["id"]).status_code == 201
    touching = _request(client, facility["id"], start="2030-05-10T12:00:00", end="2030-05-10T14:00:00")
    assert touching.status_code == 400
    assert touching.json()["detail"] == "Facility is not available for the selected dates"
    later = _request(client, facility["id"], start="2030-05-10T12:01:00", end="2030-05-10T14:00:00")
    assert later.status_code == 201


def test_empty_range_and_unknown_facility(client, facility):
    assert _request(client, facility["id"], start="2030-05-10T12:00:00", end="2030-05-10T12:00:00").status_code == 400
    assert _request(client, 999).status_code == 404


def test_blackout_blocks_availability(client, admin_headers, facility):
    r = client.post(
        f"{API}/{facility['id']}/blackouts",
        json={"start_at": "2030-06-01T00:00:00", "end_at": "2030-06-02T00:00:00", "reason": "Repainting"},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    blackout = r.json()

    check = client.get(
        f"{API}/availability",
        params={"facility_id": facility["id"], "start_at": "2030-06-01T09:00:00", "end_at": "2030-06-01T11:00:00"},
    ).json()
    assert check["available"] is False
    assert [b["id"] for b in check["blackouts"]] == [blackout["id"]]
    assert _request(client, facility["id"], start="2030-06-01T09:00:00", end="2030-06-01T11:00:00").status_code == 400

    bad = client.post(
        f"{API}/{facility['id']}/blackouts",
        json={"start_at": "2030-06-02T00:00:00", "end_at": "2030-06-01T00:00:00"},
        headers=admin_headers,
    )
    assert bad.status_code == 400

    assert client.delete(f"{API}/blackouts/{blackout['id']}", headers=admin_headers).status_code == 204
    check = client.get(
        f"{API}/availability",
        params={"facility_id": facility["id"], "start_at": "2030-06-01T09:00:00", "end_at": "2030-06-01T11:00:00"},
    ).json()
    assert check["available"] is True


def test_availability_can_exclude_a_request(client, facility):
    request = _request(client, facility["id"]).json()
    params = {"facility_id": facility["id"], "start_at": "2030-05-10T11:00:00", "end_at": "2030-05-10T13:00:00"}
    check = client.get(f"{API}/availability", params=params).json()
    assert check["available"] is False
    assert [c["id"] for c in check["conflicts"]] == [request["id"]]
    check = client.get(f"{API}/availability", params={**params, "exclude_id": request["id"]}).json()
    assert check["available"] is True


def test_approval_schedules_event_and_records_history(client, admin_headers, facility):
    request = _request(client, facility["id"]).json()
    r = client.put(
        f"{API}/requests/{request['id']}/status",
        json={"status": "approved", "remarks": "Bring your own chairs", "payment_status": "paid"},
        headers=admin_headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "APPROVED"
    assert body["event_status"] == "SCHEDULED"
    assert body["payment_status"] == "PAID"
    assert body["admin_notes"] == "Bring your own chairs"

    history = client.get(f"{API}/requests/{request['id']}/history").json()
    assert [(h["from_status"], h["to_status"]) for h in history] == [
        (None, "PENDING_REVIEW"),
        ("PENDING_REVIEW", "APPROVED"),
    ]
    assert history[0]["remarks"] == "Request submitted"

    stats = client.get(f"{API}/requests/stats", headers=admin_headers).json()
    assert stats["approved_requests"] == 1
    assert stats["total_revenue"] == 2000.0


def test_applicant_cancellation_rules(client, admin_headers, facility):
    request = _request(client, facility["id"]).json()

    wrong = client.put(f"{API}/requests/{request['id']}/cancel", json={"contact_number": "09999999999"})
    assert wrong.status_code == 403

    client.put(f"{API}/requests/{request['id']}/status", json={"status": "APPROVED"}, headers=admin_headers)
    late = client.put(f"{API}/requests/{request['id']}/cancel", json={"contact_number": "09170000000"})
    assert late.status_code == 400

    other = _request(client, facility["id"], start="2030-07-01T10:00:00", end="2030-07-01T12:00:00").json()
    ok = client.put(f"{API}/requests/{other['id']}/cancel", json={"contact_number": "09170000000"})
    assert ok.status_code == 200
    assert ok.json()["status"] == "CANCELLED"
    assert ok.json()["event_status"] == "CANCELLED"

    again = _request(client, facility["id"], start="2030-07-01T10:00:00", end="2030-07-01T12:00:00")
    assert again.status_code == 201


def test_my_requests_needs_an_identifier(client, facility):
    _request(client, facility["id"])
    assert client.get(f"{API}/requests/mine").status_code == 400
    mine = client.get(f"{API}/requests/mine", params={"email": "council@example.com"}).json()
    assert len(mine) == 1


def test_request_numbers_continue_past_four_digits(client, facility):
    from civic_portal_api.app.core.db import get_connection

    first = _request(client, facility["id"]).json()
    second = _request(client, facility["id"], start="2030-05-11T10:00:00", end="2030-05-11T12:00:00").json()
    prefix = first["request_number"].rsplit("-", 1)[0]
    conn = get_connection()
    try:
        conn.execute("UPDATE facility_requests SET request_number = ? WHERE id = ?", (f"{prefix}-9999", first["id"]))
        conn.execute("UPDATE facility_requests SET request_number = ? WHERE id = ?", (f"{prefix}-10000", second["id"]))
        conn.commit()
    finally:
        conn.close()

    third = _request(client, facility["id"], start="2030-05-12T10:00:00", end="2030-05-12T12:00:00")
    assert third.status_code == 201, third.text
    assert third.json()["request_number"] == f"{prefix}-10001"
