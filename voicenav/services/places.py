from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx

from voicenav.core.config import get_settings
from voicenav.core.logging import get_logger
from voicenav.domain.geometry import Coordinate, haversine_km
from voicenav.schemas.locations import NearbyPlace
from voicenav.services.errors import PlaceNotFound, ProviderError
from voicenav.services.http import request_json, require_api_key


_logger = get_logger(__name__)
_FIND_PLACE_ENDPOINT = (
    "https://maps.googleapis.com/maps/api/place/findplacefromtext/json"
)
_NEARBY_SEARCH_ENDPOINT = (
    "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
)
_FIND_PLACE_FIELDS = "name,formatted_address,geometry,place_id,rating,types"


@dataclass(slots=True, frozen=True)
class PlaceMatch:
    latitude: float
    longitude: float
    formatted_address: str
    name: str | None = None
    place_id: str | None = None
    rating: float | None = None
    types: tuple[str, ...] = field(default_factory=tuple)


async def search_place(
    query: str,
    *,
    bias: Coordinate | None = None,
    client: httpx.AsyncClient | None = None,
) -> PlaceMatch:
    """Return the top business/landmark candidate for ``query``."""

    settings = get_settings()
    params: dict[str, Any] = {
        "input": query,
        "inputtype": "textquery",
        "fields": _FIND_PLACE_FIELDS,
        "language": settings.language,
        "key": require_api_key(),
    }
    if bias is not None:
        params["locationbias"] = (
            f"circle:{settings.places_bias_radius_meters}"
            f"@{bias.latitude},{bias.longitude}"
        )

    _logger.info("Places lookup", query=query, bias=bias)
    payload = await request_json("GET", _FIND_PLACE_ENDPOINT, params=params, client=client)
    _raise_for_status(payload, query)

    candidates = [
        place
        for place in (payload.get("candidates") or [])
        if _location_of(place) is not None
    ]
    _logger.info("Places response", query=query, candidates=len(candidates))
    if not candidates:
        raise PlaceNotFound(f"Could not find place: {query}")

    top = candidates[0]
    latitude, longitude = _location_of(top)  # type: ignore[misc]
    match = PlaceMatch(
        latitude=latitude,
        longitude=longitude,
        formatted_address=top.get("formatted_address") or top.get("name") or query,
        name=top.get("name"),
        place_id=top.get("place_id"),
        rating=top.get("rating"),
        types=tuple(top.get("types") or ()),
    )
    _logger.info(
        "Places top candidate",
        query=query,
        name=match.name,
        formatted_address=match.formatted_address,
        latitude=match.latitude,
        longitude=match.longitude,
    )
    return match


async def find_nearest_places(
    keyword: str,
    latitude: float,
    longitude: float,
    *,
    limit: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[NearbyPlace]:
    """Places matching ``keyword`` closest to the given coordinate, nearest first."""

    settings = get_settings()
    limit = limit or settings.nearest_places_limit
    params = {
        "location": f"{latitude},{longitude}",
        "rankby": "distance",
        "keyword": keyword,
        "language": settings.language,
        "key": require_api_key(),
    }

    _logger.info(
        "Nearest places lookup", keyword=keyword, latitude=latitude, longitude=longitude
    )
    payload = await request_json(
        "GET", _NEARBY_SEARCH_ENDPOINT, params=params, client=client
    )
    if payload.get("status") == "ZERO_RESULTS":
        return []
    _raise_for_status(payload, keyword)

    places: list[NearbyPlace] = []
    for result in payload.get("results") or []:
        location = _location_of(result)
        if location is None:
            continue
        place_lat, place_lng = location
        places.append(
            NearbyPlace(
                name=result.get("name") or keyword,
                latitude=place_lat,
                longitude=place_lng,
                provider_place_id=result.get("place_id"),
                vicinity=result.get("vicinity"),
                rating=result.get("rating"),
                distance_km=haversine_km(latitude, longitude, place_lat, place_lng),
            )
        )

    places.sort(key=lambda place: place.distance_km)
    _logger.info("Nearest places found", keyword=keyword, total=len(places))
    return places[:limit]


def _raise_for_status(payload: Mapping[str, Any], query: str) -> None:
    status = payload.get("status", "OK")
    if status in ("OK", "ZERO_RESULTS"):
        return
    message = payload.get("error_message") or "no error message"
    _logger.warning("Places provider error", query=query, status=status, error=message)
    raise ProviderError(f"Places API error: {status} - {message}")


def _location_of(place: Mapping[str, Any]) -> tuple[float, float] | None:
    geometry = place.get("geometry")
    if not isinstance(geometry, Mapping):
        return None
    location = geometry.get("location")
    if not isinstance(location, Mapping):
        return None
    try:
        return float(location["lat"]), float(location["lng"])
    except (KeyError, TypeError, ValueError):
        return None
