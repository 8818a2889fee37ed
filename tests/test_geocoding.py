from __future__ import annotations

import pytest
from geopy.geocoders import GoogleV3, Nominatim
from geopy.location import Location

from voicenav.core.config import Settings
from voicenav.domain.geometry import Coordinate
from voicenav.services import geocoding
from voicenav.services.errors import PlaceNotFound
from voicenav.services.geocoding import (
    GeocodeConfigurationError,
    _bias_box,
    _create_geocoder,
    geocode_location,
)


def _location(address: str, lat: float, lng: float, place_id: str) -> Location:
    return Location(address, (lat, lng, 0.0), {"place_id": place_id})


@pytest.mark.asyncio
async def test_geocode_location_keeps_top_three_and_caches(monkeypatch):
    calls: list[dict] = []

    async def _stub_geocode(query, *, bias, components):
        calls.append({"query": query, "bias": bias, "components": components})
        return [
            _location("Main St, Edison, NJ", 40.5, -74.4, "a"),
            _location("Main St, Metuchen, NJ", 40.54, -74.36, "b"),
            _location("Main St, Woodbridge, NJ", 40.56, -74.29, "c"),
            _location("Main St, Rahway, NJ", 40.6, -74.28, "d"),
        ]

    monkeypatch.setattr(geocoding, "_geocode", _stub_geocode)
    bias = Coordinate(40.5, -74.4)

    first = await geocode_location("Main St", bias=bias, components={"locality": "Edison"})
    second = await geocode_location("Main St", bias=bias, components={"locality": "Edison"})

    assert first is second
    assert len(calls) == 1
    assert calls[0]["components"] == {"locality": "Edison"}
    assert [candidate.place_id for candidate in first.candidates] == ["a", "b", "c"]
    assert first.top.formatted_address == "Main St, Edison, NJ"
    assert first.top.latitude == pytest.approx(40.5)


@pytest.mark.asyncio
async def test_geocode_location_without_results_raises_not_found(monkeypatch):
    async def _stub_geocode(query, *, bias, components):
        return []

    monkeypatch.setattr(geocoding, "_geocode", _stub_geocode)

    with pytest.raises(PlaceNotFound):
        await geocode_location("Nowhere Lane")


@pytest.mark.asyncio
async def test_different_bias_is_a_separate_lookup(monkeypatch):
    calls: list[Coordinate | None] = []

    async def _stub_geocode(query, *, bias, components):
        calls.append(bias)
        return [_location("Main St", 40.5, -74.4, "a")]

    monkeypatch.setattr(geocoding, "_geocode", _stub_geocode)

    await geocode_location("Main St", bias=Coordinate(40.5, -74.4))
    await geocode_location("Main St", bias=Coordinate(41.5, -74.4))

    assert calls == [Coordinate(40.5, -74.4), Coordinate(41.5, -74.4)]


def test_bias_box_spans_half_a_degree():
    assert _bias_box(Coordinate(40.0, -74.0)) == [(39.5, -74.5), (40.5, -73.5)]


def test_create_geocoder_for_each_provider():
    google = _create_geocoder(
        Settings(VOICENAV_GEOCODER_PROVIDER="google", VOICENAV_GOOGLE_MAPS_API_KEY="abc")
    )
    nominatim = _create_geocoder(Settings(VOICENAV_GEOCODER_PROVIDER="Nominatim"))

    assert isinstance(google, GoogleV3)
    assert isinstance(nominatim, Nominatim)


def test_google_geocoder_requires_api_key():
    with pytest.raises(GeocodeConfigurationError):
        _create_geocoder(
            Settings(VOICENAV_GEOCODER_PROVIDER="google", VOICENAV_GOOGLE_MAPS_API_KEY=" ")
        )
