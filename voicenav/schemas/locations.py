from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


LocationKind = Literal["full_address", "landmark", "partial", "relative"]


class CamelModel(BaseModel):
    """Accepts and emits the camelCase keys used by the extraction step and clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ParsedComponents(CamelModel):
    street_number: str | None = None
    street_name: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    postal_code: str | None = None
    landmark: str | None = None
    business_name: str | None = None

    @field_validator("*", mode="before")
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str):
            cleaned = value.strip()
            if not cleaned or cleaned.lower() == "null":
                return None
            return cleaned
        return value

    @property
    def has_place_name(self) -> bool:
        return bool(self.business_name or self.landmark)

    @property
    def has_regional_context(self) -> bool:
        return bool(self.city or self.state or self.country)


class LocationDescriptor(CamelModel):
    """A stop as described by the user, before it has coordinates."""

    original: str
    kind: LocationKind | None = None
    parsed_components: ParsedComponents | None = None
    search_query_hint: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    is_via_waypoint: bool = False

    @classmethod
    def from_text(cls, text: str) -> "LocationDescriptor":
        """Wrap a legacy free-text stop."""
        return cls(original=text.strip())

    @property
    def components(self) -> ParsedComponents:
        return self.parsed_components or ParsedComponents()


class AlternativeCandidate(CamelModel):
    source_label: str
    latitude: float
    longitude: float
    formatted_address: str
    provider_place_id: str | None = None
    display_name: str | None = None
    distance_warning_km: float | None = None

    @property
    def identity(self) -> tuple[float, float, str]:
        return (self.latitude, self.longitude, self.formatted_address)


class ResolvedLocation(CamelModel):
    latitude: float
    longitude: float
    formatted_address: str
    provider_place_id: str | None = None
    display_name: str | None = None
    source_label: str
    confidence: float | None = None
    distance_warning_km: float | None = None
    unconfirmed_address_parts: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


class LatLng(CamelModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class NearbyPlace(CamelModel):
    name: str
    latitude: float
    longitude: float
    provider_place_id: str | None = None
    vicinity: str | None = None
    rating: float | None = None
    distance_km: float
