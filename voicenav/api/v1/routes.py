from __future__ import annotations

from fastapi import APIRouter, Depends, status

from voicenav.domain.geometry import Coordinate
from voicenav.schemas.locations import LatLng, LocationDescriptor
from voicenav.schemas.routes import Route, RouteRequest, Stop
from voicenav.services.assembler import RouteAssembler


router = APIRouter()


def get_route_assembler() -> RouteAssembler:
    return RouteAssembler()


@router.post(
    "/",
    response_model=Route,
    status_code=status.HTTP_200_OK,
    responses={
        status.HTTP_400_BAD_REQUEST: {"description": "The batch cannot form a route"},
        status.HTTP_409_CONFLICT: {"description": "A stop needs confirmation"},
        status.HTTP_502_BAD_GATEWAY: {"description": "Providers could not build a route"},
    },
)
async def create_route(
    payload: RouteRequest,
    assembler: RouteAssembler = Depends(get_route_assembler),
) -> Route:
    """Resolve the batch in order and route through it.

    Ambiguous stops, invalid batches and provider outages are turned into 409, 400
    and 502 responses by the application's exception handlers.
    """

    stops: list[str | LocationDescriptor | Stop] = [
        item if isinstance(item, str) else item.to_stop_or_descriptor()
        for item in payload.stops
    ]
    return await assembler.assemble(
        stops,
        route_midpoint=_coordinate(payload.route_midpoint),
        user_location=_coordinate(payload.user_location),
    )


def _coordinate(value: LatLng | None) -> Coordinate | None:
    if value is None:
        return None
    return Coordinate(value.latitude, value.longitude)
