from __future__ import annotations

import pytest

from voicenav.core.config import get_settings
from voicenav.services import geocoding


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    monkeypatch.setenv("VOICENAV_GOOGLE_MAPS_API_KEY", "test-key")
    monkeypatch.setenv("VOICENAV_ROUTING_API", "directions")
    monkeypatch.setenv("VOICENAV_GEOCODER_PROVIDER", "google")
    get_settings.cache_clear()
    geocoding.clear_cache()
    yield
    get_settings.cache_clear()
    geocoding.clear_cache()
