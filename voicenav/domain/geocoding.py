from __future__ import annotations

from enum import Enum

from voicenav.schemas.locations import LocationDescriptor


class Strategy(str, Enum):
    PLACES_PRIMARY = "places_primary"
    ADDRESS_VALIDATION = "address_validation"
    GEOCODING_ONLY = "geocoding_only"
    HYBRID = "hybrid"


def build_search_query(descriptor: LocationDescriptor) -> str:
    """
    Turn a location description into the free-text query sent to providers.

    Priority: the extraction step's own hint, then business/landmark names for
    landmarks, then the joined components of a full address, then the verbatim
    phrase.
    """
    if descriptor.search_query_hint and descriptor.search_query_hint.strip():
        return descriptor.search_query_hint.strip()

    parsed = descriptor.components

    if descriptor.kind == "landmark":
        if parsed.business_name:
            parts = [parsed.business_name, parsed.city, parsed.state]
            return " ".join(part for part in parts if part)
        if parsed.landmark:
            return parsed.landmark

    if descriptor.kind == "full_address":
        parts = [
            parsed.street_number,
            parsed.street_name,
            parsed.city,
            parsed.state,
            parsed.country,
        ]
        present = [part for part in parts if part]
        if present:
            return ", ".join(present)

    return descriptor.original.strip()


def select_strategy(descriptor: LocationDescriptor) -> Strategy:
    """Pick which providers to consult for a stop and how to judge disagreement."""

    named = descriptor.kind == "landmark" or descriptor.components.has_place_name

    # Places search tends to return a shop next to a bridge or tunnel rather than
    # the structure itself.
    if named and descriptor.is_via_waypoint:
        return Strategy.GEOCODING_ONLY
    if named:
        return Strategy.PLACES_PRIMARY
    if descriptor.kind == "full_address":
        return Strategy.ADDRESS_VALIDATION
    return Strategy.HYBRID


def needs_distance_guard(descriptor: LocationDescriptor) -> bool:
    """Vague stops without any regional context are checked against the bias point."""

    if descriptor.kind not in ("partial", "relative"):
        return False
    return not descriptor.components.has_regional_context


def component_filters(descriptor: LocationDescriptor) -> dict[str, str] | None:
    """Geocoder component restrictions for vague stops that name their region."""

    if descriptor.kind not in ("partial", "relative"):
        return None
    parsed = descriptor.components
    filters = {
        "locality": parsed.city,
        "administrative_area": parsed.state,
        "country": parsed.country,
        "postal_code": parsed.postal_code,
    }
    cleaned = {key: value for key, value in filters.items() if value}
    return cleaned or None
