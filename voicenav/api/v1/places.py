from __future__ import annotations

import httpx
from fastapi import APIRouter

from voicenav.schemas.locations import NearbyPlace
from voicenav.schemas.routes import NearestPlacesRequest
from voicenav.services.errors import ProviderError
from voicenav.services.places import find_nearest_places


router = APIRouter()


@router.post("/nearest", response_model=list[NearbyPlace])
async def nearest_places(payload: NearestPlacesRequest) -> list[NearbyPlace]:
    try:
        return await find_nearest_places(
            payload.keyword,
            payload.latitude,
            payload.longitude,
            limit=payload.limit,
        )
    except httpx.HTTPError as exc:
        raise ProviderError(f"Nearby search failed for '{payload.keyword}': {exc}") from exc
