from __future__ import annotations

from typing import Any, Mapping

import httpx

from voicenav.core.config import get_settings
from voicenav.services.errors import ProviderError


def require_api_key() -> str:
    key = get_settings().google_maps_api_key
    if key and key.strip():
        return key.strip()
    raise ProviderError("VOICENAV_GOOGLE_MAPS_API_KEY is not set")


async def request_json(
    method: str,
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    json: Any = None,
    headers: Mapping[str, str] | None = None,
    client: httpx.AsyncClient | None = None,
) -> Any:
    """Send one provider request and decode the JSON body.

    Uses ``client`` when given so callers and tests can share a transport;
    otherwise opens a short-lived client with the configured provider timeout.
    Non-2xx answers raise ``httpx.HTTPStatusError``.
    """

    if client is None:
        async with httpx.AsyncClient(
            timeout=get_settings().provider_timeout
        ) as owned_client:
            response = await owned_client.request(
                method, url, params=params, json=json, headers=headers
            )
    else:
        response = await client.request(
            method, url, params=params, json=json, headers=headers
        )
    response.raise_for_status()
    return response.json()
