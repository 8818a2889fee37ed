from __future__ import annotations

from pydantic import Field, model_validator

from voicenav.schemas.locations import (
    AlternativeCandidate,
    CamelModel,
    LatLng,
    LocationDescriptor,
    LocationKind,
    ResolvedLocation,
)


class Stop(ResolvedLocation):
    """A resolved location placed in a route."""

    name: str
    original: str | None = None
    kind: LocationKind | None = None
    is_via_waypoint: bool = False
    source_label: str = "Provided"


class Measure(CamelModel):
    value: float
    text: str


class RouteStep(CamelModel):
    instruction: str
    distance: Measure
    duration: Measure


class Leg(CamelModel):
    start_address: str
    end_address: str
    distance: Measure
    duration: Measure
    steps: list[RouteStep] = Field(default_factory=list)


class Bounds(CamelModel):
    southwest: LatLng
    northeast: LatLng


class RouteTotals(CamelModel):
    distance: Measure
    duration: Measure


class Route(CamelModel):
    stops: list[Stop] = Field(default_factory=list)
    legs: list[Leg] = Field(default_factory=list)
    overview_polyline: str = ""
    path: list[LatLng] = Field(default_factory=list)
    bounds: Bounds | None = None
    totals: RouteTotals
    warnings: list[str] = Field(default_factory=list)


class DisplayStop(CamelModel):
    """A batch entry normalized for a confirmation UI, resolved or not."""

    name: str
    original: str | None = None
    kind: LocationKind | None = None
    is_via_waypoint: bool = False
    resolved: bool = False
    latitude: float | None = None
    longitude: float | None = None
    formatted_address: str | None = None
    alternatives: list[AlternativeCandidate] = Field(default_factory=list)


class StopInput(CamelModel):
    """A request item: either pre-resolved coordinates or a location description."""

    original: str | None = None
    name: str | None = None
    kind: LocationKind | None = None
    parsed_components: dict[str, str | None] | None = None
    search_query_hint: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    is_via_waypoint: bool = False
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    formatted_address: str | None = None

    @model_validator(mode="after")
    def _require_label(self) -> "StopInput":
        if not (self.original or self.name):
            raise ValueError("A stop needs an 'original' phrase or a 'name'")
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be supplied together")
        return self

    def to_stop_or_descriptor(self) -> Stop | LocationDescriptor:
        label = self.name or self.original or ""
        if self.latitude is not None and self.longitude is not None:
            return Stop(
                name=label,
                original=self.original,
                kind=self.kind,
                latitude=self.latitude,
                longitude=self.longitude,
                formatted_address=self.formatted_address or label,
                confidence=self.confidence,
                is_via_waypoint=self.is_via_waypoint,
            )
        return LocationDescriptor.model_validate(
            {
                "original": self.original or label,
                "kind": self.kind,
                "parsedComponents": self.parsed_components,
                "searchQueryHint": self.search_query_hint,
                "confidence": self.confidence,
                "isViaWaypoint": self.is_via_waypoint,
            }
        )


class RouteRequest(CamelModel):
    stops: list[StopInput | str] = Field(..., min_length=1)
    route_midpoint: LatLng | None = None
    user_location: LatLng | None = None


class NearestPlacesRequest(CamelModel):
    keyword: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    limit: int | None = Field(default=None, ge=1, le=20)
