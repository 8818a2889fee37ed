from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

import httpx

from voicenav.core.config import get_settings
from voicenav.core.logging import get_logger
from voicenav.domain.geometry import Coordinate, decode_polyline, initial_bearing
from voicenav.schemas.locations import LatLng
from voicenav.schemas.routes import (
    Bounds,
    Leg,
    Measure,
    Route,
    RouteStep,
    RouteTotals,
    Stop,
)
from voicenav.services.errors import RouteUnavailable
from voicenav.services.http import request_json, require_api_key


_logger = get_logger(__name__)
_DIRECTIONS_ENDPOINT = "https://maps.googleapis.com/maps/api/directions/json"
_ROUTES_ENDPOINT = "https://routes.googleapis.com/directions/v2:computeRoutes"
_ROUTES_FIELD_MASK = ",".join(
    [
        "routes.legs.duration",
        "routes.legs.distanceMeters",
        "routes.legs.startLocation",
        "routes.legs.endLocation",
        "routes.legs.steps.navigationInstruction",
        "routes.legs.steps.distanceMeters",
        "routes.legs.steps.staticDuration",
        "routes.legs.localizedValues",
        "routes.polyline",
        "routes.viewport",
        "routes.distanceMeters",
        "routes.duration",
        "routes.localizedValues",
    ]
)
_METERS_PER_MILE = 1609.34
_DURATION_RE = re.compile(r"^(-?\d+)(?:\.(\d+))?s$")
_HTML_TAG_RE = re.compile(r"<[^>]*>")


async def compute_route(
    stops: Sequence[Stop],
    *,
    client: httpx.AsyncClient | None = None,
) -> Route:
    """Route through already-resolved stops with the configured backend."""

    backend = get_settings().routing_api
    _logger.info("Route request", backend=backend, stops=len(stops))

    try:
        if backend == "routes":
            data = await _request_routes_api(stops, client)
            route = normalize_routes_response(data, stops)
        else:
            data = await _request_directions_api(stops, client)
            route = normalize_directions_response(data, stops)
    except httpx.HTTPError as exc:
        _logger.error("Routing backend request failed", backend=backend, error=str(exc))
        raise RouteUnavailable(f"Routing backend request failed: {exc}") from exc
    except (ValueError, IndexError, KeyError, TypeError) as exc:
        # Non-JSON bodies, truncated polylines and malformed legs.
        _logger.error(
            "Routing backend returned an unreadable response",
            backend=backend,
            error=repr(exc),
        )
        raise RouteUnavailable("Routing backend returned an unreadable response") from exc

    _logger.info(
        "Route computed",
        backend=backend,
        legs=len(route.legs),
        distance_meters=route.totals.distance.value,
        duration_seconds=route.totals.duration.value,
    )
    return route


async def _request_directions_api(
    stops: Sequence[Stop], client: httpx.AsyncClient | None
) -> Mapping[str, Any]:
    params: dict[str, Any] = {
        "origin": _latlng_param(stops[0]),
        "destination": _latlng_param(stops[-1]),
        "mode": "driving",
        "key": require_api_key(),
    }
    intermediates = stops[1:-1]
    if intermediates:
        params["waypoints"] = "|".join(
            f"via:{_latlng_param(stop)}" if stop.is_via_waypoint else _latlng_param(stop)
            for stop in intermediates
        )

    data = await request_json("GET", _DIRECTIONS_ENDPOINT, params=params, client=client)
    status = data.get("status", "OK")
    if status != "OK" or not data.get("routes"):
        raise RouteUnavailable(f"No route found ({status})")
    return data


async def _request_routes_api(
    stops: Sequence[Stop], client: httpx.AsyncClient | None
) -> Mapping[str, Any]:
    settings = get_settings()
    body: dict[str, Any] = {
        "origin": _routes_waypoint(stops[0]),
        "destination": _routes_waypoint(stops[-1]),
        "travelMode": "DRIVE",
        "languageCode": f"{settings.language}-{settings.region_code}",
        "units": "IMPERIAL",
    }
    if len(stops) > 2:
        body["intermediates"] = [
            _routes_waypoint(stop, previous=stops[index])
            for index, stop in enumerate(stops[1:-1])
        ]

    headers = {
        "X-Goog-Api-Key": require_api_key(),
        "X-Goog-FieldMask": _ROUTES_FIELD_MASK,
        "Content-Type": "application/json",
    }
    data = await request_json(
        "POST", _ROUTES_ENDPOINT, json=body, headers=headers, client=client
    )
    if not data.get("routes"):
        raise RouteUnavailable("No route found from Routes API")
    return data


def _latlng_param(stop: Stop) -> str:
    return f"{stop.latitude},{stop.longitude}"


def _routes_waypoint(stop: Stop, previous: Stop | None = None) -> dict[str, Any]:
    location: dict[str, Any] = {
        "latLng": {"latitude": stop.latitude, "longitude": stop.longitude}
    }
    waypoint: dict[str, Any] = {"location": location}
    if stop.is_via_waypoint:
        waypoint["via"] = True
        if previous is not None:
            location["heading"] = round(
                initial_bearing(
                    Coordinate(previous.latitude, previous.longitude),
                    Coordinate(stop.latitude, stop.longitude),
                )
            ) % 360
    return waypoint


def normalize_directions_response(
    data: Mapping[str, Any], stops: Sequence[Stop]
) -> Route:
    route = data["routes"][0]

    legs = [
        Leg(
            start_address=leg.get("start_address", ""),
            end_address=leg.get("end_address", ""),
            distance=_measure(leg.get("distance"), _miles_text),
            duration=_measure(leg.get("duration"), format_duration),
            steps=[
                RouteStep(
                    instruction=_HTML_TAG_RE.sub("", step.get("html_instructions", "")),
                    distance=_measure(step.get("distance"), _miles_text),
                    duration=_measure(step.get("duration"), format_duration),
                )
                for step in leg.get("steps", [])
            ],
        )
        for leg in route.get("legs", [])
    ]

    bounds = None
    raw_bounds = route.get("bounds") or {}
    if "southwest" in raw_bounds and "northeast" in raw_bounds:
        bounds = Bounds(
            southwest=_latlng(raw_bounds["southwest"], "lat", "lng"),
            northeast=_latlng(raw_bounds["northeast"], "lat", "lng"),
        )

    encoded = (route.get("overview_polyline") or {}).get("points", "")
    return _assemble(stops, legs, encoded, bounds, {})


def normalize_routes_response(data: Mapping[str, Any], stops: Sequence[Stop]) -> Route:
    route = data["routes"][0]

    # Via intermediates do not split legs.
    endpoints = [stop for stop in stops if not stop.is_via_waypoint]

    legs: list[Leg] = []
    for index, leg in enumerate(route.get("legs", [])):
        distance_meters = float(leg.get("distanceMeters") or 0)
        duration_seconds = _parse_duration_seconds(leg.get("duration")) or 0
        localized = leg.get("localizedValues") or {}
        legs.append(
            Leg(
                start_address=_address_at(endpoints, index),
                end_address=_address_at(endpoints, index + 1),
                distance=Measure(
                    value=distance_meters,
                    text=_localized_text(localized, "distance")
                    or _miles_text(distance_meters),
                ),
                duration=Measure(
                    value=duration_seconds,
                    text=_localized_text(localized, "duration")
                    or format_duration(duration_seconds),
                ),
                steps=[_routes_step(step) for step in leg.get("steps", [])],
            )
        )

    bounds = None
    viewport = route.get("viewport") or {}
    if "low" in viewport and "high" in viewport:
        bounds = Bounds(
            southwest=_latlng(viewport["low"], "latitude", "longitude"),
            northeast=_latlng(viewport["high"], "latitude", "longitude"),
        )

    encoded = (route.get("polyline") or {}).get("encodedPolyline", "")
    return _assemble(stops, legs, encoded, bounds, route.get("localizedValues") or {})


def _assemble(
    stops: Sequence[Stop],
    legs: list[Leg],
    encoded: str,
    bounds: Bounds | None,
    localized: Mapping[str, Any],
) -> Route:
    total_distance = sum(leg.distance.value for leg in legs)
    total_duration = sum(leg.duration.value for leg in legs)
    path = [
        LatLng(latitude=point.latitude, longitude=point.longitude)
        for point in decode_polyline(encoded)
    ]
    return Route(
        stops=list(stops),
        legs=legs,
        overview_polyline=encoded,
        path=path,
        bounds=bounds,
        totals=RouteTotals(
            distance=Measure(
                value=total_distance,
                text=_localized_text(localized, "distance")
                or _miles_text(total_distance),
            ),
            duration=Measure(
                value=total_duration,
                text=_localized_text(localized, "duration")
                or format_duration(total_duration),
            ),
        ),
    )


def _routes_step(step: Mapping[str, Any]) -> RouteStep:
    distance_meters = float(step.get("distanceMeters") or 0)
    duration_seconds = _parse_duration_seconds(step.get("staticDuration")) or 0
    instruction = (step.get("navigationInstruction") or {}).get("instructions", "")
    return RouteStep(
        instruction=instruction,
        distance=Measure(value=distance_meters, text=_miles_text(distance_meters)),
        duration=Measure(value=duration_seconds, text=format_duration(duration_seconds)),
    )


def _address_at(stops: Sequence[Stop], index: int) -> str:
    if 0 <= index < len(stops):
        return stops[index].formatted_address
    return ""


def _latlng(raw: Mapping[str, Any], lat_key: str, lng_key: str) -> LatLng:
    return LatLng(latitude=float(raw[lat_key]), longitude=float(raw[lng_key]))


def _measure(raw: Mapping[str, Any] | None, formatter) -> Measure:
    raw = raw or {}
    value = float(raw.get("value") or 0)
    return Measure(value=value, text=raw.get("text") or formatter(value))


def _localized_text(localized: Mapping[str, Any], key: str) -> str | None:
    entry = localized.get(key)
    if isinstance(entry, Mapping):
        text = entry.get("text")
        if isinstance(text, str) and text:
            return text
    return None


def _miles_text(meters: float) -> str:
    return f"{meters / _METERS_PER_MILE:.1f} mi"


def format_duration(seconds: float) -> str:
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours} hr {minutes} min"
    return f"{minutes} min"


def _parse_duration_seconds(value: Any) -> int | None:
    if value is None:
        return None

    if isinstance(value, (int, float)):
        return int(round(float(value)))

    if isinstance(value, str):
        stripped = value.strip()
        if _DURATION_RE.match(stripped):
            return int(round(float(stripped[:-1])))
        try:
            return int(round(float(stripped)))
        except ValueError:
            return None

    if isinstance(value, dict):
        seconds = value.get("seconds", 0)
        nanos = value.get("nanos", 0)
        try:
            total = float(seconds) + float(nanos) / 1_000_000_000
        except (TypeError, ValueError):
            return None
        return int(round(total))

    return None
