from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from voicenav.core.config import get_settings
from voicenav.core.logging import get_logger
from voicenav.services.http import request_json, require_api_key


_logger = get_logger(__name__)
_VALIDATE_ENDPOINT = "https://addressvalidation.googleapis.com/v1:validateAddress"


@dataclass(slots=True, frozen=True)
class AddressVerdict:
    address_complete: bool
    has_unconfirmed_components: bool
    unconfirmed_components: tuple[str, ...] = field(default_factory=tuple)
    granularity: str | None = None


@dataclass(slots=True, frozen=True)
class ValidatedAddress:
    latitude: float
    longitude: float
    formatted_address: str
    place_id: str | None
    verdict: AddressVerdict


async def validate_address(
    query: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> ValidatedAddress | None:
    """
    Validate and geocode a postal address.

    Returns ``None`` when the provider answers but cannot place the address; HTTP
    failures propagate as ``httpx.HTTPError``.
    """

    settings = get_settings()
    body = {
        "address": {
            "regionCode": settings.region_code,
            "addressLines": [query],
        }
    }

    _logger.info("Address validation lookup", query=query)
    payload = await request_json(
        "POST",
        _VALIDATE_ENDPOINT,
        params={"key": require_api_key()},
        json=body,
        client=client,
    )

    result = payload.get("result") or {}
    geocode = result.get("geocode") or {}
    location = geocode.get("location") or {}
    if "latitude" not in location or "longitude" not in location:
        _logger.info("Address validation returned no geocode", query=query)
        return None

    raw_verdict = result.get("verdict") or {}
    address = result.get("address") or {}
    # proto3 JSON leaves out false booleans, so a missing flag means false.
    verdict = AddressVerdict(
        address_complete=bool(raw_verdict.get("addressComplete", False)),
        has_unconfirmed_components=bool(
            raw_verdict.get("hasUnconfirmedComponents", False)
        ),
        unconfirmed_components=tuple(address.get("unconfirmedComponentTypes") or ()),
        granularity=raw_verdict.get("validationGranularity"),
    )

    validated = ValidatedAddress(
        latitude=float(location["latitude"]),
        longitude=float(location["longitude"]),
        formatted_address=address.get("formattedAddress") or query,
        place_id=geocode.get("placeId"),
        verdict=verdict,
    )
    _logger.info(
        "Address validation result",
        query=query,
        formatted_address=validated.formatted_address,
        latitude=validated.latitude,
        longitude=validated.longitude,
        address_complete=verdict.address_complete,
        unconfirmed=list(verdict.unconfirmed_components),
        granularity=verdict.granularity,
    )
    return validated
