from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from voicenav.core.logging import get_logger


_logger = get_logger(__name__)


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    debug: bool = Field(False, alias="VOICENAV_DEBUG")

    google_maps_api_key: str | None = Field(None, alias="VOICENAV_GOOGLE_MAPS_API_KEY")
    provider_timeout: float = Field(10.0, alias="VOICENAV_PROVIDER_TIMEOUT")
    region_code: str = Field("US", alias="VOICENAV_REGION_CODE")
    language: str = Field("en", alias="VOICENAV_LANGUAGE")

    geocoder_provider: Literal["google", "nominatim"] = Field(
        "google", alias="VOICENAV_GEOCODER_PROVIDER"
    )
    geocoder_user_agent: str = Field(
        "voicenav-geocoder", alias="VOICENAV_GEOCODER_USER_AGENT"
    )
    geocoder_domain: str | None = Field(None, alias="VOICENAV_GEOCODER_DOMAIN")
    geocoder_timeout: float = Field(10.0, alias="VOICENAV_GEOCODER_TIMEOUT")

    routing_api: Literal["directions", "routes"] = Field(
        "directions", alias="VOICENAV_ROUTING_API"
    )

    # Resolution thresholds
    places_bias_radius_meters: int = Field(
        50_000, alias="VOICENAV_PLACES_BIAS_RADIUS_METERS"
    )
    disagreement_threshold_km: float = Field(
        1.0, alias="VOICENAV_DISAGREEMENT_THRESHOLD_KM"
    )
    distance_guard_km: float = Field(50.0, alias="VOICENAV_DISTANCE_GUARD_KM")
    low_confidence_threshold: float = Field(
        0.7, alias="VOICENAV_LOW_CONFIDENCE_THRESHOLD"
    )
    nearest_places_limit: int = Field(5, alias="VOICENAV_NEAREST_PLACES_LIMIT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("geocoder_provider", mode="before")
    def _normalize_provider(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("routing_api", mode="before")
    def _normalize_routing_api(cls, value: str) -> str:
        if not isinstance(value, str):
            return value
        normalized = value.strip().lower()
        if normalized not in {"directions", "routes"}:
            _logger.warning(
                "Unknown routing api, falling back to directions", value=value
            )
            return "directions"
        return normalized


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()  # type: ignore[call-arg]
