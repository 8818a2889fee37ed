from __future__ import annotations

import httpx
import pytest

from voicenav.domain.geometry import Coordinate
from voicenav.services.errors import PlaceNotFound, ProviderError
from voicenav.services.places import find_nearest_places, search_place


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _place(name: str, lat: float, lng: float, **extra) -> dict:
    place = {
        "name": name,
        "geometry": {"location": {"lat": lat, "lng": lng}},
        "place_id": f"id-{name}",
    }
    place.update(extra)
    return place


@pytest.mark.asyncio
async def test_search_place_returns_top_candidate_with_bias():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "status": "OK",
                "candidates": [
                    _place(
                        "Target",
                        40.52,
                        -74.35,
                        formatted_address="100 Route 1, Edison, NJ",
                        rating=4.2,
                        types=["department_store", "store"],
                    ),
                    _place("Target Express", 40.6, -74.3),
                ],
            },
        )

    async with _client(handler) as client:
        match = await search_place("Target", bias=Coordinate(40.5, -74.4), client=client)

    params = seen[0].url.params
    assert params["input"] == "Target"
    assert params["inputtype"] == "textquery"
    assert params["locationbias"] == "circle:50000@40.5,-74.4"
    assert match.name == "Target"
    assert match.formatted_address == "100 Route 1, Edison, NJ"
    assert match.place_id == "id-Target"
    assert match.types == ("department_store", "store")
    assert match.latitude == pytest.approx(40.52)


@pytest.mark.asyncio
async def test_search_place_without_candidates_raises_not_found():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "locationbias" not in request.url.params
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "candidates": []})

    async with _client(handler) as client:
        with pytest.raises(PlaceNotFound):
            await search_place("Nowhere Diner", client=client)


@pytest.mark.asyncio
async def test_search_place_error_status_raises_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"status": "REQUEST_DENIED", "error_message": "bad key"}
        )

    async with _client(handler) as client:
        with pytest.raises(ProviderError, match="REQUEST_DENIED - bad key"):
            await search_place("Target", client=client)


@pytest.mark.asyncio
async def test_nearest_places_sorted_by_distance_and_limited():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "status": "OK",
                "results": [
                    _place("Far Shell", 40.10, -74.0, vicinity="Far Rd"),
                    _place("Near Shell", 40.01, -74.0, vicinity="Near Rd", rating=3.9),
                    {"name": "Broken", "place_id": "id-Broken"},
                    _place("Mid Shell", 40.05, -74.0),
                ],
            },
        )

    async with _client(handler) as client:
        places = await find_nearest_places("gas station", 40.0, -74.0, limit=2, client=client)

    params = seen[0].url.params
    assert params["rankby"] == "distance"
    assert params["keyword"] == "gas station"
    assert [place.name for place in places] == ["Near Shell", "Mid Shell"]
    assert places[0].distance_km == pytest.approx(1.112, abs=0.001)
    assert places[0].vicinity == "Near Rd"
    assert places[0].rating == 3.9


@pytest.mark.asyncio
async def test_nearest_places_zero_results_is_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

    async with _client(handler) as client:
        assert await find_nearest_places("ferry", 40.0, -74.0, client=client) == []
