from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping, TYPE_CHECKING, cast

from cachetools import TTLCache
from geopy.geocoders import get_geocoder_for_service
from geopy.geocoders.base import Geocoder

from voicenav.core.config import get_settings
from voicenav.core.logging import get_logger
from voicenav.domain.geometry import Coordinate
from voicenav.services.errors import PlaceNotFound

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from geopy.location import Location

    from voicenav.core.config import Settings

_logger = get_logger(__name__)
_cache: TTLCache = TTLCache(maxsize=512, ttl=60 * 60 * 24)
_geocoder: Geocoder | None = None

MAX_CANDIDATES = 3
BIAS_BOX_DEGREES = 0.5


class GeocodeConfigurationError(RuntimeError):
    """Raised when the geocoder cannot be configured with provided settings."""


@dataclass(slots=True, frozen=True)
class GeocodeCandidate:
    latitude: float
    longitude: float
    formatted_address: str
    place_id: str | None = None


@dataclass(slots=True, frozen=True)
class GeocodeMatch:
    """Top geocoding result first, followed by at most two runner-up candidates."""

    candidates: tuple[GeocodeCandidate, ...]

    @property
    def top(self) -> GeocodeCandidate:
        return self.candidates[0]


async def geocode_location(
    query: str,
    *,
    bias: Coordinate | None = None,
    components: Mapping[str, str] | None = None,
) -> GeocodeMatch:
    """Geocode free text with the configured provider, biased towards ``bias``."""

    cache_key = (
        query,
        tuple(bias) if bias else None,
        tuple(sorted(components.items())) if components else None,
    )
    cached = _cache.get(cache_key)
    if cached is not None:
        _logger.info("Geocoding cache hit", query=query)
        return cached

    _logger.info("Geocoding lookup", query=query, bias=bias, components=components)
    locations = await _geocode(query, bias=bias, components=components)

    candidates = tuple(
        candidate
        for candidate in (_to_candidate(location) for location in locations)
        if candidate is not None
    )[:MAX_CANDIDATES]
    if not candidates:
        _logger.info("Geocoding found nothing", query=query)
        raise PlaceNotFound(f"Could not geocode location: {query}")

    match = GeocodeMatch(candidates)
    _cache[cache_key] = match
    _logger.info(
        "Geocoding success",
        query=query,
        latitude=match.top.latitude,
        longitude=match.top.longitude,
        formatted_address=match.top.formatted_address,
        candidates=len(candidates),
    )
    return match


def clear_cache() -> None:
    _cache.clear()


def _to_candidate(location: "Location") -> GeocodeCandidate | None:
    latitude = getattr(location, "latitude", None)
    longitude = getattr(location, "longitude", None)
    if latitude is None or longitude is None:
        return None

    raw_obj = getattr(location, "raw", {}) or {}
    raw: Mapping[str, Any] = (
        cast(Mapping[str, Any], raw_obj) if isinstance(raw_obj, Mapping) else {}
    )

    label = getattr(location, "address", None)
    if not label:
        label = raw.get("formatted_address") or raw.get("display_name") or ""

    place_id = raw.get("place_id")
    return GeocodeCandidate(
        latitude=float(latitude),
        longitude=float(longitude),
        formatted_address=str(label),
        place_id=str(place_id) if place_id is not None else None,
    )


async def _geocode(
    query: str,
    *,
    bias: Coordinate | None,
    components: Mapping[str, str] | None,
) -> list["Location"]:
    geocoder = _get_geocoder()
    settings = get_settings()
    kwargs: dict[str, Any] = {"exactly_one": False}

    if settings.geocoder_provider == "google":
        kwargs["region"] = settings.region_code.lower()
        kwargs["language"] = settings.language
        if bias is not None:
            kwargs["bounds"] = _bias_box(bias)
        if components:
            kwargs["components"] = dict(components)
    else:
        kwargs["limit"] = MAX_CANDIDATES
        kwargs["language"] = settings.language
        kwargs["country_codes"] = settings.region_code.lower()
        if bias is not None:
            kwargs["viewbox"] = _bias_box(bias)

    locations = await asyncio.to_thread(geocoder.geocode, query, **kwargs)
    return list(locations or [])


def _bias_box(bias: Coordinate) -> list[tuple[float, float]]:
    return [
        (bias.latitude - BIAS_BOX_DEGREES, bias.longitude - BIAS_BOX_DEGREES),
        (bias.latitude + BIAS_BOX_DEGREES, bias.longitude + BIAS_BOX_DEGREES),
    ]


def _get_geocoder() -> Geocoder:
    global _geocoder
    if _geocoder is None:
        _geocoder = _create_geocoder(get_settings())
    return _geocoder


def _create_geocoder(settings: "Settings") -> Geocoder:
    provider = settings.geocoder_provider
    timeout = settings.geocoder_timeout
    user_agent = settings.geocoder_user_agent or "voicenav-geocoder"

    if provider == "google":
        api_key = _require_api_key(provider, settings.google_maps_api_key)
        geocoder_cls = get_geocoder_for_service("googlev3")
        kwargs: dict[str, Any] = {
            "api_key": api_key,
            "timeout": timeout,
            "user_agent": user_agent,
        }
        if settings.geocoder_domain:
            kwargs["domain"] = settings.geocoder_domain
        return geocoder_cls(**kwargs)

    if provider == "nominatim":
        geocoder_cls = get_geocoder_for_service("nominatim")
        kwargs = {"user_agent": user_agent, "timeout": timeout}
        if settings.geocoder_domain:
            kwargs["domain"] = settings.geocoder_domain
        return geocoder_cls(**kwargs)

    raise GeocodeConfigurationError(f"Unsupported geocoder provider '{provider}'")


def _require_api_key(provider: str, value: str | None) -> str:
    if value and value.strip():
        return value.strip()
    raise GeocodeConfigurationError(
        f"Geocoder provider '{provider}' requires VOICENAV_GOOGLE_MAPS_API_KEY to be set"
    )
