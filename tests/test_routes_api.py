from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from voicenav.api.v1.routes import get_route_assembler
from voicenav.main import app, create_app
from voicenav.schemas.locations import AlternativeCandidate, NearbyPlace, ResolvedLocation
from voicenav.schemas.routes import Measure, Route, RouteTotals
from voicenav.services.assembler import RouteAssembler
from voicenav.services.errors import (
    NavigationError,
    ResolutionAmbiguous,
    ResolverUnavailable,
)


client = TestClient(app)


class _StubEngine:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.biases = []

    async def resolve(self, descriptor, bias=None):
        self.biases.append(bias)
        if self.error is not None:
            raise self.error
        return ResolvedLocation(
            latitude=40.7,
            longitude=-74.0,
            formatted_address="Target, 1 Main St, Edison, NJ",
            display_name="Target",
            source_label="Places API",
        )


async def _stub_router(stops):
    return Route(
        stops=list(stops),
        totals=RouteTotals(
            distance=Measure(value=1609.34, text="1.0 mi"),
            duration=Measure(value=120, text="2 min"),
        ),
    )


@pytest.fixture
def use_engine():
    def _install(engine):
        app.dependency_overrides[get_route_assembler] = lambda: RouteAssembler(
            engine, router=_stub_router
        )
        return engine

    yield _install
    app.dependency_overrides.clear()


def test_health():
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_route_endpoint_returns_route(use_engine):
    engine = use_engine(_StubEngine())

    payload = {
        "stops": [
            {"name": "Depot", "latitude": 40.5, "longitude": -74.4},
            {"original": "Target", "kind": "landmark", "parsedComponents": {"businessName": "Target"}},
        ],
        "userLocation": {"latitude": 40.6, "longitude": -74.2},
    }

    response = client.post("/v1/routes", json=payload)
    assert response.status_code == 200

    data = response.json()
    assert [stop["name"] for stop in data["stops"]] == ["Depot", "Target"]
    assert data["stops"][0]["sourceLabel"] == "Provided"
    assert data["stops"][1]["sourceLabel"] == "Places API"
    assert data["totals"]["distance"] == {"value": 1609.34, "text": "1.0 mi"}
    assert engine.biases == [(40.6, -74.2)]


def test_route_endpoint_accepts_plain_strings(use_engine):
    use_engine(_StubEngine())

    response = client.post("/v1/routes", json={"stops": ["Home", "Target"]})

    assert response.status_code == 200
    assert len(response.json()["stops"]) == 2


def test_ambiguous_stop_returns_confirmation_payload(use_engine):
    use_engine(
        _StubEngine(
            ResolutionAmbiguous(
                "Places and Geocoding differ by 5.00km",
                [
                    AlternativeCandidate(
                        source_label="Places API",
                        latitude=40.0,
                        longitude=-74.0,
                        formatted_address="Target, Edison, NJ",
                    )
                ],
            )
        )
    )

    response = client.post(
        "/v1/routes",
        json={"stops": [{"name": "Depot", "latitude": 40.5, "longitude": -74.4}, "Target"]},
    )

    assert response.status_code == 409
    data = response.json()
    assert data["failingStopIndex"] == 1
    assert data["reason"] == "Places and Geocoding differ by 5.00km"
    assert [stop["resolved"] for stop in data["batchStopsForDisplay"]] == [True, False]
    assert data["alternativeCandidates"][0]["sourceLabel"] == "Places API"


def test_single_stop_is_rejected(use_engine):
    use_engine(_StubEngine())

    response = client.post("/v1/routes", json={"stops": ["Home"]})

    assert response.status_code == 400
    assert "two stops" in response.json()["detail"]


def test_resolver_outage_is_bad_gateway(use_engine):
    use_engine(_StubEngine(ResolverUnavailable("Target", {"Places API": "timeout"})))

    response = client.post("/v1/routes", json={"stops": ["Home", "Target"]})

    assert response.status_code == 502
    assert response.json()["detail"] == (
        "Location or routing providers are unavailable right now"
    )


def test_stop_with_half_a_coordinate_is_invalid():
    response = client.post(
        "/v1/routes",
        json={"stops": [{"name": "Depot", "latitude": 40.5}, "Target"]},
    )

    assert response.status_code == 422


def test_nearest_places_endpoint(monkeypatch):
    async def _stub_nearest(keyword, latitude, longitude, *, limit=None):
        assert keyword == "coffee"
        assert limit == 2
        return [
            NearbyPlace(
                name="Cafe",
                latitude=latitude + 0.001,
                longitude=longitude,
                provider_place_id="cafe-1",
                distance_km=0.11,
            )
        ]

    monkeypatch.setattr("voicenav.api.v1.places.find_nearest_places", _stub_nearest)

    response = client.post(
        "/v1/places/nearest",
        json={"keyword": "coffee", "latitude": 40.0, "longitude": -74.0, "limit": 2},
    )

    assert response.status_code == 200
    data = response.json()
    assert data[0]["name"] == "Cafe"
    assert data[0]["providerPlaceId"] == "cafe-1"
    assert data[0]["distanceKm"] == 0.11


def test_nearest_places_provider_error_is_bad_gateway(monkeypatch):
    async def _stub_nearest(keyword, latitude, longitude, *, limit=None):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("voicenav.api.v1.places.find_nearest_places", _stub_nearest)

    response = client.post(
        "/v1/places/nearest",
        json={"keyword": "coffee", "latitude": 40.0, "longitude": -74.0},
    )

    assert response.status_code == 502
    assert response.json()["detail"] == (
        "Location or routing providers are unavailable right now"
    )


def test_each_app_gets_its_own_error_handlers():
    fresh = create_app()

    assert fresh is not app
    assert ResolutionAmbiguous in fresh.exception_handlers
    assert NavigationError in fresh.exception_handlers
