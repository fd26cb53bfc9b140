from __future__ import annotations

from datetime import date, timedelta

import pytest

from civic_portal_api.app.services.parks_service import generate_booking_code

API = "/api/v1/parks"
DAY = (date.today() + timedelta(days=2)).isoformat()


@pytest.fixture()
def amenity(client, admin_headers):
    r = client.post(
        f"{API}/amenities",
        json={"name": "Pavilion 1", "amenity_type": "pavilion", "capacity": 80, "daily_rate": 1500},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


def _reserve(client, amenity_id, start="09:00", end="12:00", day=DAY):
    return client.post(
        f"{API}/reservations",
        json={
            "amenity_id": amenity_id,
            "requester_name": "Liza Reyes",
            "requester_email": "liza@example.com",
            "reservation_date": day,
            "start_time": start,
            "end_time": end,
        },
    )


def _set_status(client, headers, reservation_id, status, **extra):
    return client.put(f"{API}/reservations/{reservation_id}/status", json={"status": status, **extra},
                      headers=headers)


def test_booking_code_format():
    code = generate_booking_code()
    prefix, millis, suffix = code.split("-")
    assert prefix == "AMN"
    assert len(millis) == 6 and millis.isdigit()
    assert len(suffix) == 4


def test_amenity_type_is_uppercased(client, amenity):
    assert amenity["amenity_type"] == "PAVILION"
    listed = client.get(f"{API}/amenities", params={"type": "PAVILION"}).json()
    assert [a["id"] for a in listed] == [amenity["id"]]


def test_new_reservation_is_held_for_review(client, amenity):
    r = _reserve(client, amenity["id"])
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "PENDING_REVIEW"
    assert body["payment_status"] == "UNPAID"
    assert body["total_amount"] == 1500
    assert body["start_time"] == "09:00"
    assert body["hold_expires_at"]
    assert body["booking_code"].startswith("AMN-")


def test_end_before_start_is_rejected(client, amenity):
    assert _reserve(client, amenity["id"], start="12:00", end="09:00").status_code == 400


def test_pending_reservations_do_not_block_the_slot(client, amenity):
    assert _reserve(client, amenity["id"]).status_code == 201
    assert _reserve(client, amenity["id"]).status_code == 201


def test_overlap_with_approved_reservation_is_rejected(client, admin_headers, amenity):
    first = _reserve(client, amenity["id"], "09:00", "12:00").json()
    _set_status(client, admin_headers, first["id"], "APPROVED")

    inside = _reserve(client, amenity["id"], "10:00", "11:00")
    assert inside.status_code == 400
    assert inside.json()["detail"] == "Selected time slot is not available"
    assert _reserve(client, amenity["id"], "08:00", "13:00").status_code == 400
    assert _reserve(client, amenity["id"], "11:00", "14:00").status_code == 400

    assert _reserve(client, amenity["id"], "12:00", "14:00").status_code == 201
    other_day = (date.today() + timedelta(days=3)).isoformat()
    assert _reserve(client, amenity["id"], "09:00", "12:00", day=other_day).status_code == 201


def test_inactive_amenity_cannot_be_booked(client, admin_headers, amenity):
    r = client.put(f"{API}/amenities/{amenity['id']}", json={"is_active": False}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["is_active"] is False
    assert _reserve(client, amenity["id"]).status_code == 400
    assert _reserve(client, 999).status_code == 404


def test_approval_issues_single_use_qr(client, admin_headers, amenity):
    reservation = _reserve(client, amenity["id"]).json()

    early = client.post(f"{API}/reservations/{reservation['id']}/check-in", headers=admin_headers)
    assert early.status_code == 400

    waiting = _set_status(client, admin_headers, reservation["id"], "AWAITING_PAYMENT").json()
    assert waiting["payment_due_at"]
    assert waiting["reviewed_at"]

    paid = client.put(f"{API}/reservations/{reservation['id']}/payment", json={"payment_status": "paid"},
                      headers=admin_headers).json()
    assert paid["payment_status"] == "PAID"
    assert paid["paid_at"]

    approved = _set_status(client, admin_headers, reservation["id"], "APPROVED").json()
    assert approved["qr_payload"] == {
        "bookingCode": reservation["booking_code"],
        "type": "AMENITY",
        "date": DAY,
        "requester": "Liza Reyes",
    }

    checked_in = client.post(f"{API}/reservations/{reservation['id']}/check-in", headers=admin_headers)
    assert checked_in.status_code == 200
    assert checked_in.json()["status"] == "CHECKED_IN"
    assert checked_in.json()["qr_used_at"]

    again = client.post(f"{API}/reservations/{reservation['id']}/check-in", headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["detail"] == "QR code has already been used"

    cancel = client.post(f"{API}/reservations/{reservation['id']}/cancel")
    assert cancel.status_code == 400


def test_rejection_and_cancellation(client, admin_headers, amenity):
    rejected = _reserve(client, amenity["id"]).json()
    r = _set_status(client, admin_headers, rejected["id"], "REJECTED", rejection_reason="Venue under repair")
    assert r.json()["rejection_reason"] == "Venue under repair"

    cancelled = _reserve(client, amenity["id"]).json()
    r = client.post(f"{API}/reservations/{cancelled['id']}/cancel")
    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"
    assert r.json()["cancelled_at"]

    assert _set_status(client, admin_headers, cancelled["id"], "LOST").status_code == 400


def test_amenity_lists_upcoming_reservations_and_stats(client, admin_headers, amenity):
    approved = _reserve(client, amenity["id"]).json()
    _set_status(client, admin_headers, approved["id"], "APPROVED")
    _reserve(client, amenity["id"], "13:00", "15:00")

    detail = client.get(f"{API}/amenities/{amenity['id']}").json()
    assert [r["id"] for r in detail["upcoming_reservations"]] == [approved["id"]]

    stats = client.get(f"{API}/reservations/stats", headers=admin_headers).json()
    assert stats == {
        "total_reservations": 2,
        "upcoming_reservations": 1,
        "pending_reservations": 1,
        "active_amenities": 1,
    }

    listed = client.get(f"{API}/reservations", params={"status": "PENDING_REVIEW", "date": DAY},
                        headers=admin_headers).json()
    assert len(listed) == 1


def test_check_availability(client, admin_headers, amenity):
    held = _reserve(client, amenity["id"], "09:00", "12:00").json()
    _set_status(client, admin_headers, held["id"], "AWAITING_PAYMENT")
    _reserve(client, amenity["id"], "14:00", "16:00")

    url = f"{API}/amenities/{amenity['id']}/check-availability"
    busy = client.post(url, json={"reservation_date": DAY, "start_time": "11:00", "end_time": "13:00"})
    assert busy.status_code == 200, busy.text
    assert busy.json()["available"] is False
    assert [r["id"] for r in busy.json()["conflicts"]] == [held["id"]]

    free = client.post(url, json={"reservation_date": DAY, "start_time": "12:00", "end_time": "17:00"}).json()
    assert free == {"available": True, "conflicts": []}

    bad = client.post(url, json={"reservation_date": DAY, "start_time": "13:00", "end_time": "13:00"})
    assert bad.status_code == 400
    missing = client.post(f"{API}/amenities/999/check-availability",
                          json={"reservation_date": DAY, "start_time": "09:00", "end_time": "10:00"})
    assert missing.status_code == 404


def test_delete_amenity_refused_while_slots_are_held(client, admin_headers, amenity):
    reservation = _reserve(client, amenity["id"]).json()
    _set_status(client, admin_headers, reservation["id"], "APPROVED")

    r = client.delete(f"{API}/amenities/{amenity['id']}", headers=admin_headers)
    assert r.status_code == 400
    assert "active reservation" in r.json()["detail"]

    _set_status(client, admin_headers, reservation["id"], "CANCELLED")
    assert client.delete(f"{API}/amenities/{amenity['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"{API}/amenities/{amenity['id']}").status_code == 404
    assert client.get(f"{API}/reservations/{reservation['id']}").status_code == 404
    assert client.delete(f"{API}/amenities/{amenity['id']}", headers=admin_headers).status_code == 404


def test_approval_rechecks_the_slot(client, admin_headers, amenity):
    first = _reserve(client, amenity["id"], "09:00", "12:00").json()
    second = _reserve(client, amenity["id"], "10:00", "11:00").json()

    assert _set_status(client, admin_headers, first["id"], "APPROVED").status_code == 200
    clash = _set_status(client, admin_headers, second["id"], "AWAITING_PAYMENT")
    assert clash.status_code == 400
    assert first["booking_code"] in clash.json()["detail"]
    assert _set_status(client, admin_headers, second["id"], "APPROVED").status_code == 400

    assert _set_status(client, admin_headers, second["id"], "REJECTED").status_code == 200
    assert _set_status(client, admin_headers, first["id"], "CHECKED_IN").status_code == 200
