from __future__ import annotations

import pytest
import requests

from civic_portal_api.app.services.navigation_service import NavigationService, walking_estimate
from civic_portal_api.app.services.routing_client import OpenRouteServiceClient

API = "/api/v1/navigation"

ORS_ROUTE = {
    "summary": {"distance": 250.0, "duration": 180.0},
    "bbox": [121.0, 14.0, 121.001, 14.001],
    "geometry": "encoded-polyline",
    "segments": [
        {
            "steps": [
                {"instruction": "Head north", "distance": 100.0, "duration": 70.0, "name": "Main Path"},
                {"instruction": "Arrive at plot", "distance": 150.0, "duration": 110.0},
            ]
        }
    ],
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


@pytest.fixture()
def plot(client, admin_headers):
    cemetery = client.post(
        "/api/v1/cemeteries/",
        json={
            "name": "Novaliches Memorial",
            "address": "Quirino Highway",
            "boundary": [[14.0, 121.0], [14.0, 121.002], [14.002, 121.002], [14.002, 121.0]],
        },
        headers=admin_headers,
    ).json()
    r = client.post(
        "/api/v1/plots/",
        json={"cemetery_id": cemetery["id"], "plot_number": "N-1", "coordinates": [14.001, 121.001]},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_walking_estimate_uses_speed():
    assert walking_estimate(140, 1.4) == 100


def test_client_disabled_without_key():
    client = OpenRouteServiceClient(api_key="", session=FakeSession())
    assert client.enabled is False
    route, error = client.directions([121.0, 14.0], [121.001, 14.001])
    assert route is None
    assert "not configured" in error["message"]


def test_client_returns_first_route():
    session = FakeSession(FakeResponse(payload={"routes": [ORS_ROUTE]}))
    client = OpenRouteServiceClient(api_key="secret", base_url="https://ors.test/", session=session)
    route, error = client.directions([121.0, 14.0], [121.001, 14.001], "foot-walking")
    assert error is None
    assert route["summary"]["distance"] == 250.0
    call = session.calls[0]
    assert call["url"] == "https://ors.test/v2/directions/foot-walking"
    assert call["headers"]["Authorization"] == "Bearer secret"
    assert call["json"]["coordinates"] == [[121.0, 14.0], [121.001, 14.001]]
    assert [s["name"] for s in client.flatten_steps(route)] == ["Main Path", ""]


@pytest.mark.parametrize(
    "session, status_code",
    [
        (FakeSession(FakeResponse(status_code=403, payload={})), 403),
        (FakeSession(error=requests.ConnectionError("unreachable")), None),
        (FakeSession(FakeResponse(payload=None)), None),
        (FakeSession(FakeResponse(payload={"routes": []})), None),
    ],
)
def test_client_failures_are_reported_not_raised(session, status_code):
    client = OpenRouteServiceClient(api_key="secret", session=session)
    route, error = client.directions([121.0, 14.0], [121.001, 14.001])
    assert route is None
    assert error["status_code"] == status_code


def test_plot_navigation_with_visitor_location(client, plot):
    r = client.get(f"{API}/plots/{plot['id']}", params={"lat": 14.0, "lng": 121.001})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["plot_name"] == "N-1"
    assert body["cemetery_name"] == "Novaliches Memorial"
    assert body["plot_coordinates"] == pytest.approx([14.001, 121.001])
    assert body["destination"] == pytest.approx([121.001, 14.001])
    assert body["visitor_location"] == [121.001, 14.0]
    assert 105 <= body["distance_m"] <= 115
    assert body["estimated_walk_seconds"] == pytest.approx(body["distance_m"] / 1.4, abs=1)


def test_plot_navigation_without_location(client, plot):
    body = client.get(f"{API}/plots/{plot['id']}").json()
    assert body["distance_m"] is None
    assert body["cemetery_center"] == pytest.approx([14.001, 121.001])
    assert client.get(f"{API}/plots/999").status_code == 404


def test_route_falls_back_without_api_key(client):
    r = client.post(f"{API}/route", json={"start": [121.0, 14.0], "end": [121.0, 14.01]})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["source"] == "google-maps-fallback"
    assert 1100 < body["distance_m"] < 1125
    assert body["duration_s"] == pytest.approx(body["distance_m"] / 1000 * 120)
    assert body["bbox"] == [121.0, 14.0, 121.0, 14.01]
    assert "origin=14.0,121.0" in body["google_maps_url"]
    assert body["google_maps_url"].endswith("travelmode=walking")
    assert body["google_maps_driving_url"].endswith("travelmode=driving")


def test_route_uses_provider_when_configured(client, monkeypatch):
    session = FakeSession(FakeResponse(payload={"routes": [ORS_ROUTE]}))
    monkeypatch.setattr(
        NavigationService, "client_factory", lambda: OpenRouteServiceClient(api_key="secret", session=session)
    )
    body = client.post(f"{API}/route", json={"start": [121.0, 14.0], "end": [121.001, 14.001]}).json()
    assert body["source"] == "openrouteservice"
    assert body["distance_m"] == 250.0
    assert body["duration_s"] == 180.0
    assert [s["instruction"] for s in body["steps"]] == ["Head north", "Arrive at plot"]


def test_route_falls_back_when_provider_fails(client, monkeypatch):
    session = FakeSession(error=requests.Timeout("slow"))
    monkeypatch.setattr(
        NavigationService, "client_factory", lambda: OpenRouteServiceClient(api_key="secret", session=session)
    )
    body = client.post(f"{API}/route", json={"start": [121.0, 14.0], "end": [121.001, 14.001]}).json()
    assert body["source"] == "google-maps-fallback"
    assert len(session.calls) == 1
