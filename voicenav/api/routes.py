from __future__ import annotations

from fastapi import APIRouter

from voicenav.api.v1 import places, routes

router = APIRouter()
router.include_router(routes.router, prefix="/v1/routes", tags=["routes"])
router.include_router(places.router, prefix="/v1/places", tags=["places"])
