from __future__ import annotations

from typing import Awaitable, Callable, Sequence, Union

from voicenav.core.config import get_settings
from voicenav.core.logging import get_logger, log_context
from voicenav.domain.geometry import Coordinate, nearest_path_point
from voicenav.schemas.locations import LocationDescriptor, ResolvedLocation
from voicenav.schemas.routes import DisplayStop, Route, Stop
from voicenav.services.errors import InvalidBatch, ResolutionAmbiguous
from voicenav.services.resolution import ResolutionEngine
from voicenav.services.routing import compute_route


StopLike = Union[str, LocationDescriptor, Stop]
RouterCallable = Callable[[Sequence[Stop]], Awaitable[Route]]

_DUPLICATE_DEGREES = 0.0001


_logger = get_logger(__name__)


class RouteAssembler:
    """Resolve a batch of stops in order and route through them."""

    def __init__(
        self,
        engine: ResolutionEngine | None = None,
        *,
        router: RouterCallable = compute_route,
        low_confidence_threshold: float | None = None,
    ) -> None:
        self._engine = engine or ResolutionEngine()
        self._router = router
        self._low_confidence_threshold = (
            low_confidence_threshold
            if low_confidence_threshold is not None
            else get_settings().low_confidence_threshold
        )

    async def assemble(
        self,
        stops: Sequence[StopLike],
        *,
        route_midpoint: Coordinate | None = None,
        user_location: Coordinate | None = None,
    ) -> Route:
        items = [_normalize(item, index) for index, item in enumerate(stops)]
        _check_batch(items)

        _logger.info(
            "Route assembly started",
            stops=len(items),
            pre_resolved=sum(isinstance(item, Stop) for item in items),
            route_midpoint=route_midpoint,
            user_location=user_location,
        )

        resolved: list[Stop] = []
        for index, item in enumerate(items):
            with log_context(stop_index=index):
                if isinstance(item, Stop):
                    stop = item
                else:
                    stop = await self._resolve_stop(
                        index, item, items, resolved, route_midpoint, user_location
                    )
                _warn_if_duplicate(stop, resolved)
            resolved.append(stop)

        route = await self._router(resolved)
        route = _snap_via_stops(route, resolved)
        route.warnings.extend(self._collect_warnings(route.stops))

        _logger.info(
            "Route assembled",
            stops=len(route.stops),
            legs=len(route.legs),
            distance=route.totals.distance.text,
            duration=route.totals.duration.text,
            warnings=len(route.warnings),
        )
        return route

    async def _resolve_stop(
        self,
        index: int,
        descriptor: LocationDescriptor,
        items: Sequence[LocationDescriptor | Stop],
        resolved: Sequence[Stop],
        route_midpoint: Coordinate | None,
        user_location: Coordinate | None,
    ) -> Stop:
        previous = resolved[-1] if resolved else None
        if route_midpoint is not None:
            bias, bias_source = route_midpoint, "route_midpoint"
        elif user_location is not None:
            bias, bias_source = user_location, "user_location"
        elif previous is not None:
            bias = Coordinate(previous.latitude, previous.longitude)
            bias_source = "previous_stop"
        else:
            bias, bias_source = None, "none"

        _logger.info(
            "Resolving stop",
            original=descriptor.original,
            bias_source=bias_source,
            bias=bias,
        )
        try:
            location = await self._engine.resolve(descriptor, bias)
        except ResolutionAmbiguous as exc:
            batch = [_display_resolved(stop) for stop in resolved]
            batch.append(_display_pending(descriptor, exc))
            batch.extend(
                _display_resolved(item)
                if isinstance(item, Stop)
                else _display_pending(item)
                for item in items[index + 1 :]
            )
            raise exc.for_batch(index, batch) from exc

        return _to_stop(descriptor, location)

    def _collect_warnings(self, stops: Sequence[Stop]) -> list[str]:
        warnings: list[str] = []
        low_confidence = [
            stop
            for stop in stops
            if stop.confidence is not None
            and stop.confidence < self._low_confidence_threshold
        ]
        if low_confidence:
            warnings.append(
                f"{len(low_confidence)} location(s) had low confidence "
                "and may be inaccurate"
            )
        for stop in stops:
            warnings.extend(stop.notes)
        return warnings


def _normalize(item: StopLike, index: int) -> LocationDescriptor | Stop:
    if isinstance(item, (Stop, LocationDescriptor)):
        return item
    if not item.strip():
        raise InvalidBatch(f"Stop {index} is empty")
    return LocationDescriptor.from_text(item)


def _check_batch(items: Sequence[LocationDescriptor | Stop]) -> None:
    if len(items) < 2:
        raise InvalidBatch("At least two stops are required to build a route")
    if items[0].is_via_waypoint or items[-1].is_via_waypoint:
        raise InvalidBatch("The first and last stops cannot be via waypoints")
    if sum(not item.is_via_waypoint for item in items) < 2:
        raise InvalidBatch("At least two stops must be regular stops")


def _to_stop(descriptor: LocationDescriptor, location: ResolvedLocation) -> Stop:
    return Stop(
        **location.model_dump(),
        name=location.display_name or descriptor.original,
        original=descriptor.original,
        kind=descriptor.kind,
        is_via_waypoint=descriptor.is_via_waypoint,
    )


def _warn_if_duplicate(stop: Stop, earlier: Sequence[Stop]) -> None:
    for index, other in enumerate(earlier):
        if (
            abs(stop.latitude - other.latitude) < _DUPLICATE_DEGREES
            and abs(stop.longitude - other.longitude) < _DUPLICATE_DEGREES
        ):
            _logger.warning(
                "Stop resolved to the same coordinates as an earlier stop",
                name=stop.name,
                duplicate_of=index,
                latitude=stop.latitude,
                longitude=stop.longitude,
            )


def _snap_via_stops(route: Route, stops: Sequence[Stop]) -> Route:
    path = [Coordinate(point.latitude, point.longitude) for point in route.path]
    snapped: list[Stop] = []
    for stop in stops:
        if not stop.is_via_waypoint:
            snapped.append(stop)
            continue

        nearest = nearest_path_point(Coordinate(stop.latitude, stop.longitude), path)
        update: dict[str, object] = {"name": stop.original or stop.name}
        if nearest is not None:
            update["latitude"] = nearest.latitude
            update["longitude"] = nearest.longitude
        _logger.info(
            "Via waypoint snapped to route",
            name=update["name"],
            latitude=update.get("latitude", stop.latitude),
            longitude=update.get("longitude", stop.longitude),
        )
        snapped.append(stop.model_copy(update=update))

    return route.model_copy(update={"stops": snapped, "warnings": list(route.warnings)})


def _display_resolved(stop: Stop) -> DisplayStop:
    return DisplayStop(
        name=stop.name,
        original=stop.original,
        kind=stop.kind,
        is_via_waypoint=stop.is_via_waypoint,
        resolved=True,
        latitude=stop.latitude,
        longitude=stop.longitude,
        formatted_address=stop.formatted_address,
    )


def _display_pending(
    descriptor: LocationDescriptor, ambiguity: ResolutionAmbiguous | None = None
) -> DisplayStop:
    return DisplayStop(
        name=descriptor.original,
        original=descriptor.original,
        kind=descriptor.kind,
        is_via_waypoint=descriptor.is_via_waypoint,
        alternatives=ambiguity.alternatives if ambiguity is not None else [],
    )
