from __future__ import annotations

import pytest

API = "/api/v1"

CEMETERY_BOUNDARY = [[14.0, 121.0], [14.0, 121.002], [14.002, 121.002], [14.002, 121.0]]
BLOCK_BOUNDARY = [[14.0, 121.0], [14.0, 121.0001], [14.0001, 121.0001], [14.0001, 121.0]]


@pytest.fixture()
def layout(client, admin_headers):
    cemetery = client.post(
        f"{API}/cemeteries/",
        json={"name": "Bagbag Public Cemetery", "city": "Quezon City", "boundary": CEMETERY_BOUNDARY},
        headers=admin_headers,
    )
    assert cemetery.status_code == 201, cemetery.text
    cemetery_id = cemetery.json()["id"]
    section = client.post(
        f"{API}/sections/", json={"cemetery_id": cemetery_id, "name": "A"}, headers=admin_headers
    )
    assert section.status_code == 201, section.text
    block = client.post(
        f"{API}/blocks/",
        json={"section_id": section.json()["id"], "name": "1", "boundary": BLOCK_BOUNDARY},
        headers=admin_headers,
    )
    assert block.status_code == 201, block.text
    return {"cemetery_id": cemetery_id, "section_id": section.json()["id"], "block_id": block.json()["id"]}


def _plot(client, headers, cemetery_id, number, **extra):
    body = {"cemetery_id": cemetery_id, "plot_number": number, **extra}
    r = client.post(f"{API}/plots/", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def _deceased(client, headers, first, last, died="2020-06-01"):
    r = client.post(
        f"{API}/deceased/",
        json={"first_name": first, "last_name": last, "date_of_birth": "1940-01-01", "date_of_death": died},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_cemetery_defaults_and_area(client, admin_headers, layout):
    r = client.get(f"{API}/cemeteries/{layout['cemetery_id']}")
    assert r.status_code == 200
    body = r.json()
    assert body["standard_price"] == 5000
    assert body["maintenance_fee"] == 500
    assert body["total_area"] > 0
    assert body["center"] == pytest.approx([14.001, 121.001])


def test_citizen_cannot_create_cemetery(client, citizen_headers):
    r = client.post(f"{API}/cemeteries/", json={"name": "Private"}, headers=citizen_headers)
    assert r.status_code == 403


def test_duplicate_section_name_is_rejected(client, admin_headers, layout):
    r = client.post(
        f"{API}/sections/", json={"cemetery_id": layout["cemetery_id"], "name": "a"}, headers=admin_headers
    )
    assert r.status_code == 400


def test_plot_fee_defaults_from_cemetery(client, admin_headers, layout):
    plot = _plot(client, admin_headers, layout["cemetery_id"], "X-1", coordinates=[14.001, 121.001])
    assert plot["base_fee"] == 5000
    assert plot["maintenance_fee"] == 500
    assert plot["status"] == "VACANT"
    assert plot["max_layers"] == 3
    assert plot["latitude"] == pytest.approx(14.001)
    assert len(plot["boundary"]) == 4
    assert plot["color"] == "#10b981"

    dup = client.post(
        f"{API}/plots/", json={"cemetery_id": layout["cemetery_id"], "plot_number": "X-1"}, headers=admin_headers
    )
    assert dup.status_code == 400


def test_generate_plots_skips_existing_numbers(client, admin_headers, layout):
    r = client.post(f"{API}/blocks/{layout['block_id']}/generate-plots", headers=admin_headers)
    assert r.status_code == 201, r.text
    first = r.json()
    assert first["created"] == first["grid_size"] > 0
    assert first["skipped"] == 0

    again = client.post(f"{API}/blocks/{layout['block_id']}/generate-plots", headers=admin_headers).json()
    assert again["created"] == 0
    assert again["skipped"] == first["grid_size"]

    plots = client.get(f"{API}/plots/", params={"block_id": layout["block_id"], "limit": 500}).json()
    assert plots["total"] == first["created"]
    assert plots["items"][0]["plot_number"].startswith("A-1-")


def test_generate_plots_requires_boundary(client, admin_headers, layout):
    block = client.post(
        f"{API}/blocks/", json={"section_id": layout["section_id"], "name": "2"}, headers=admin_headers
    ).json()
    r = client.post(f"{API}/blocks/{block['id']}/generate-plots", headers=admin_headers)
    assert r.status_code == 400


def test_layer_assignment_and_vacate(client, admin_headers, layout):
    plot = _plot(client, admin_headers, layout["cemetery_id"], "L-1", max_layers=2)
    first = _deceased(client, admin_headers, "Jose", "Rizal")
    second = _deceased(client, admin_headers, "Andres", "Bonifacio")

    r = client.post(f"{API}/plots/{plot['id']}/assign", json={"deceased_id": first["id"], "layer": 1},
                    headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "OCCUPIED"
    assert r.json()["occupied_layers"] == 1

    taken = client.post(f"{API}/plots/{plot['id']}/assign", json={"deceased_id": second["id"], "layer": 1},
                        headers=admin_headers)
    assert taken.status_code == 400
    assert taken.json()["detail"] == "Layer 1 is already occupied"

    too_deep = client.post(f"{API}/plots/{plot['id']}/assign", json={"deceased_id": second["id"], "layer": 3},
                           headers=admin_headers)
    assert too_deep.status_code == 400

    twice = client.post(f"{API}/plots/{plot['id']}/assign", json={"deceased_id": first["id"], "layer": 2},
                        headers=admin_headers)
    assert twice.status_code == 400

    missing_permit = client.post(
        f"{API}/plots/{plot['id']}/assign",
        json={"deceased_id": second["id"], "layer": 2, "permit_id": 999},
        headers=admin_headers,
    )
    assert missing_permit.status_code == 404

    assignment_id = r.json()["assignments"][0]["id"]
    vacated = client.post(f"{API}/plots/{plot['id']}/assignments/{assignment_id}/vacate", headers=admin_headers)
    assert vacated.status_code == 200
    assert vacated.json()["status"] == "VACANT"
    assert vacated.json()["assignments"][0]["status"] == "VACATED"

    again = client.post(f"{API}/plots/{plot['id']}/assignments/{assignment_id}/vacate", headers=admin_headers)
    assert again.status_code == 400


def test_blocked_plot_rejects_burial_without_side_effects(client, admin_headers, layout):
    plot = _plot(client, admin_headers, layout["cemetery_id"], "B-1", status="BLOCKED")
    r = client.post(
        f"{API}/deceased/burial-assignment",
        json={
            "plot_id": plot["id"],
            "layer": 1,
            "deceased": {"first_name": "Maria", "last_name": "Clara", "date_of_death": "2021-01-01"},
        },
        headers=admin_headers,
    )
    assert r.status_code == 400
    records = client.get(f"{API}/deceased/", params={"name": "Clara"}, headers=admin_headers)
    assert records.json() == []


def test_burial_assignment_creates_both_records(client, admin_headers, layout):
    plot = _plot(client, admin_headers, layout["cemetery_id"], "C-1")
    r = client.post(
        f"{API}/deceased/burial-assignment",
        json={
            "plot_id": plot["id"],
            "layer": 2,
            "deceased": {
                "first_name": "Gabriela",
                "last_name": "Silang",
                "date_of_birth": "1940-01-01",
                "date_of_death": "2020-06-01",
            },
        },
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["deceased"]["full_name"] == "Gabriela Silang"
    assert body["deceased"]["age"] == 80
    assert body["assignment"]["layer"] == 2
    assert body["assignment"]["notes"] == "Burial assignment for Gabriela Silang - Layer 2"


def test_statistics_and_map(client, admin_headers, layout):
    occupied = _plot(client, admin_headers, layout["cemetery_id"], "S-1")
    _plot(client, admin_headers, layout["cemetery_id"], "S-2")
    person = _deceased(client, admin_headers, "Apolinario", "Mabini")
    client.post(f"{API}/plots/{occupied['id']}/assign", json={"deceased_id": person["id"]}, headers=admin_headers)

    stats = client.get(f"{API}/cemeteries/{layout['cemetery_id']}/statistics").json()
    assert stats["total_plots"] == 2
    assert stats["occupied_plots"] == 1
    assert stats["vacant_plots"] == 1
    assert stats["total_burials"] == 1
    assert stats["total_sections"] == 1
    assert stats["total_blocks"] == 1
    assert stats["occupancy_rate"] == 50.0

    layers = client.get(f"{API}/cemeteries/{layout['cemetery_id']}/map").json()
    colors = {p["plot_number"]: p["color"] for p in layers["plots"]}
    assert colors == {"S-1": "#ef4444", "S-2": "#10b981"}
    assert layers["sections"][0]["color"] == "#3b82f6"


def test_delete_requires_cascade_when_not_empty(client, admin_headers, layout):
    plot = _plot(client, admin_headers, layout["cemetery_id"], "D-1")
    person = _deceased(client, admin_headers, "Emilio", "Jacinto")
    client.post(f"{API}/plots/{plot['id']}/assign", json={"deceased_id": person["id"]}, headers=admin_headers)

    r = client.delete(f"{API}/cemeteries/{layout['cemetery_id']}", headers=admin_headers)
    assert r.status_code == 400

    r = client.delete(f"{API}/cemeteries/{layout['cemetery_id']}", params={"cascade": True}, headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["deleted"] == {"sections": 1, "blocks": 1, "plots": 1, "assignments": 1}
    assert client.get(f"{API}/cemeteries/{layout['cemetery_id']}").status_code == 404
    assert client.get(f"{API}/deceased/{person['id']}").status_code == 200


def test_search_orders_by_last_name_and_falls_back_to_cemetery_center(client, admin_headers, layout):
    for number, first, last in (("Q-1", "Juan", "Santos"), ("Q-2", "Pedro", "Abad"), ("Q-3", "Ana", "Santos")):
        plot = _plot(client, admin_headers, layout["cemetery_id"], number)
        person = _deceased(client, admin_headers, first, last)
        client.post(f"{API}/plots/{plot['id']}/assign", json={"deceased_id": person["id"]}, headers=admin_headers)

    short = client.get(f"{API}/cemetery-search/", params={"query": "a"})
    assert short.status_code == 400

    r = client.get(f"{API}/cemetery-search/", params={"query": "an"})
    assert r.status_code == 200
    names = [(x["last_name"], x["first_name"]) for x in r.json()["results"]]
    assert names == [("Santos", "Ana"), ("Santos", "Juan")]

    abad = client.get(f"{API}/cemetery-search/", params={"query": "abad"}).json()["results"][0]
    assert abad["location"]["cemetery_name"] == "Bagbag Public Cemetery"
    assert abad["location"]["coordinates"] == pytest.approx([14.001, 121.001])


def test_area_occupants(client, admin_headers, layout):
    plot = _plot(client, admin_headers, layout["cemetery_id"], "O-1", block_id=layout["block_id"])
    person = _deceased(client, admin_headers, "Melchora", "Aquino")
    client.post(f"{API}/plots/{plot['id']}/assign", json={"deceased_id": person["id"]}, headers=admin_headers)

    r = client.get(f"{API}/cemetery-search/occupants/block/{layout['block_id']}")
    assert r.status_code == 200
    assert [o["full_name"] for o in r.json()] == ["Melchora Aquino"]
    assert client.get(f"{API}/cemetery-search/occupants/row/1").status_code == 400


def test_block_rename_keeps_names_unique(client, admin_headers, layout):
    other = client.post(
        f"{API}/blocks/", json={"section_id": layout["section_id"], "name": "2"}, headers=admin_headers
    ).json()
    clash = client.put(f"{API}/blocks/{other['id']}", json={"name": "1"}, headers=admin_headers)
    assert clash.status_code == 400
    assert "already exists" in clash.json()["detail"]

    renamed = client.put(f"{API}/blocks/{other['id']}", json={"name": "2B", "block_type": "family"},
                         headers=admin_headers)
    assert renamed.status_code == 200, renamed.text
    assert renamed.json()["block_type"] == "FAMILY"
    names = [b["name"] for b in client.get(f"{API}/blocks/", params={"section_id": layout["section_id"]}).json()]
    assert sorted(names) == ["1", "2B"]


def test_null_update_fields_are_ignored(client, admin_headers, layout):
    plot = _plot(client, admin_headers, layout["cemetery_id"], "N-1")
    r = client.put(f"{API}/plots/{plot['id']}", json={"status": None, "notes": "Near the gate"}, headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "VACANT"
    assert r.json()["notes"] == "Near the gate"

    r = client.put(f"{API}/cemeteries/{layout['cemetery_id']}", json={"name": None, "city": "Caloocan"},
                   headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "Bagbag Public Cemetery"
    assert r.json()["city"] == "Caloocan"

    r = client.put(f"{API}/sections/{layout['section_id']}", json={"name": None}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["name"] == "A"

    person = _deceased(client, admin_headers, "Andres", "Bonifacio")
    r = client.put(f"{API}/deceased/{person['id']}", json={"first_name": None}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["first_name"] == "Andres"


def test_reserve_only_vacant_plots(client, admin_headers, layout):
    plot = _plot(client, admin_headers, layout["cemetery_id"], "R-1")
    r = client.post(f"{API}/plots/{plot['id']}/reserve", json={"reserved_by": "Dela Cruz family"},
                    headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "RESERVED"
    assert r.json()["reserved_by"] == "Dela Cruz family"
    assert r.json()["color"] == "#f59e0b"

    again = client.post(f"{API}/plots/{plot['id']}/reserve", json={"reserved_by": "Someone else"},
                        headers=admin_headers)
    assert again.status_code == 400
    assert client.post(f"{API}/plots/999/reserve", json={"reserved_by": "x"}, headers=admin_headers).status_code == 404


def test_plot_status_rules_and_aliases(client, admin_headers, layout):
    plot = _plot(client, admin_headers, layout["cemetery_id"], "U-1")
    blocked = client.put(f"{API}/plots/{plot['id']}", json={"status": "unavailable"}, headers=admin_headers)
    assert blocked.json()["status"] == "BLOCKED"
    reopened = client.put(f"{API}/plots/{plot['id']}", json={"status": "Available"}, headers=admin_headers)
    assert reopened.json()["status"] == "VACANT"
    assert client.put(f"{API}/plots/{plot['id']}", json={"status": "haunted"}, headers=admin_headers).status_code == 400

    person = _deceased(client, admin_headers, "Marcelo", "del Pilar")
    client.post(f"{API}/plots/{plot['id']}/assign", json={"deceased_id": person["id"], "layer": 2},
                headers=admin_headers)
    r = client.put(f"{API}/plots/{plot['id']}", json={"status": "VACANT"}, headers=admin_headers)
    assert r.status_code == 400
    r = client.put(f"{API}/plots/{plot['id']}", json={"max_layers": 1}, headers=admin_headers)
    assert r.status_code == 400


def test_delete_plot_refused_with_burials(client, admin_headers, layout):
    empty = _plot(client, admin_headers, layout["cemetery_id"], "X-1")
    used = _plot(client, admin_headers, layout["cemetery_id"], "X-2")
    person = _deceased(client, admin_headers, "Diego", "Silang")
    client.post(f"{API}/plots/{used['id']}/assign", json={"deceased_id": person["id"]}, headers=admin_headers)

    assert client.delete(f"{API}/plots/{used['id']}", headers=admin_headers).status_code == 400
    assert client.delete(f"{API}/plots/{empty['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"{API}/plots/{empty['id']}").status_code == 404


def test_gravestones(client, admin_headers, layout):
    plot = _plot(client, admin_headers, layout["cemetery_id"], "G-1")
    r = client.post(
        f"{API}/plots/{plot['id']}/gravestones",
        json={"material": "Granite", "inscription": "Rest in peace", "condition": "fair"},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    stone = r.json()
    assert stone["condition"] == "FAIR"

    listed = client.get(f"{API}/plots/{plot['id']}/gravestones").json()
    assert [g["id"] for g in listed] == [stone["id"]]
    assert client.get(f"{API}/plots/{plot['id']}").json()["gravestones"][0]["material"] == "Granite"

    assert client.delete(f"{API}/plots/{plot['id']}/gravestones/{stone['id']}", headers=admin_headers).status_code == 204
    assert client.delete(f"{API}/plots/{plot['id']}/gravestones/{stone['id']}", headers=admin_headers).status_code == 404
    assert client.get(f"{API}/plots/{plot['id']}/gravestones").json() == []
    assert client.get(f"{API}/plots/999/gravestones").status_code == 404


def test_plot_list_search_and_pages(client, admin_headers, layout):
    for number in ("P-1", "P-2", "P-3"):
        _plot(client, admin_headers, layout["cemetery_id"], number)
    person = _deceased(client, admin_headers, "Apolinario", "Mabini")
    plots = client.get(f"{API}/plots/", params={"cemetery_id": layout["cemetery_id"]}).json()["items"]
    client.post(f"{API}/plots/{plots[1]['id']}/assign", json={"deceased_id": person["id"]}, headers=admin_headers)

    found = client.get(f"{API}/plots/", params={"search": "MABINI"}).json()
    assert [p["plot_number"] for p in found["items"]] == ["P-2"]
    assert [p["plot_number"] for p in client.get(f"{API}/plots/", params={"search": "p-3"}).json()["items"]] == ["P-3"]

    page = client.get(f"{API}/plots/", params={"limit": 2, "page": 2}).json()
    assert page["total"] == 3
    assert page["pages"] == 2
    assert [p["plot_number"] for p in page["items"]] == ["P-3"]

    occupied = client.get(f"{API}/plots/", params={"status": "occupied"}).json()
    assert [p["plot_number"] for p in occupied["items"]] == ["P-2"]


def test_search_through_blocks_with_gravestone_and_permit(client, admin_headers, layout):
    plot = _plot(client, admin_headers, layout["cemetery_id"], "B-1", block_id=layout["block_id"],
                 coordinates=[14.00005, 121.00005])
    person = _deceased(client, admin_headers, "Teodora", "Alonso")
    permit = client.post(
        f"{API}/permits/",
        json={"permit_type": "BURIAL", "deceased_id": person["id"], "applicant_name": "Jose Rizal"},
        headers=admin_headers,
    ).json()
    client.post(f"{API}/plots/{plot['id']}/assign", json={"deceased_id": person["id"], "permit_id": permit["id"]},
                headers=admin_headers)
    client.post(f"{API}/plots/{plot['id']}/gravestones", json={"material": "Marble"}, headers=admin_headers)

    results = client.get(f"{API}/cemetery-search/", params={"query": "alonso"}).json()["results"]
    assert len(results) == 1
    hit = results[0]
    assert hit["location"]["section_name"] == "A"
    assert hit["location"]["block_name"] == "1"
    assert hit["location"]["block_id"] == layout["block_id"]
    assert hit["location"]["coordinates"] == pytest.approx([14.00005, 121.00005])
    assert hit["gravestone"]["material"] == "Marble"
    assert hit["permit_number"] == permit["permit_number"]


def test_plot_coordinates_fallback_order():
    from civic_portal_api.app.services.search_service import plot_coordinates

    boundary = [[14.0, 121.0], [14.0, 121.002], [14.002, 121.002], [14.002, 121.0]]
    assert plot_coordinates({"latitude": 14.5, "longitude": 121.5, "boundary": boundary}, (1.0, 2.0)) == [14.5, 121.5]
    assert plot_coordinates({"latitude": None, "longitude": None, "boundary": boundary}, (1.0, 2.0)) == \
        pytest.approx([14.001, 121.001])
    assert plot_coordinates({"latitude": None, "longitude": None, "boundary": None}, (1.0, 2.0)) == [1.0, 2.0]


def test_area_occupants_newest_burial_first(client, admin_headers, layout):
    for number, first, last, died in (("O-2", "Gregorio", "Zaldua", "2019-02-01"),
                                      ("O-3", "Josefa", "Llanes", "2022-08-15")):
        plot = _plot(client, admin_headers, layout["cemetery_id"], number, block_id=layout["block_id"])
        person = _deceased(client, admin_headers, first, last, died=died)
        client.post(f"{API}/plots/{plot['id']}/assign", json={"deceased_id": person["id"]}, headers=admin_headers)

    occupants = client.get(f"{API}/cemetery-search/occupants/section/{layout['section_id']}").json()
    assert [o["full_name"] for o in occupants] == ["Josefa Llanes", "Gregorio Zaldua"]
