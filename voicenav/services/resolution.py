from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Iterable, Mapping, cast

from voicenav.core.config import get_settings
from voicenav.core.logging import get_logger
from voicenav.domain.geocoding import (
    Strategy,
    build_search_query,
    component_filters,
    needs_distance_guard,
    select_strategy,
)
from voicenav.domain.geometry import Coordinate, haversine_km
from voicenav.domain.text import check_text_mismatch, missing_tokens
from voicenav.schemas.locations import (
    AlternativeCandidate,
    LocationDescriptor,
    ResolvedLocation,
)
from voicenav.services.errors import ResolutionAmbiguous, ResolverUnavailable
from voicenav.services.geocoding import GeocodeCandidate, GeocodeMatch, geocode_location
from voicenav.services.places import PlaceMatch, search_place
from voicenav.services.validation import (
    AddressVerdict,
    ValidatedAddress,
    validate_address,
)


PlacesSearchCallable = Callable[..., Awaitable[PlaceMatch]]
AddressValidatorCallable = Callable[[str], Awaitable[ValidatedAddress | None]]
GeocoderCallable = Callable[..., Awaitable[GeocodeMatch]]

PLACES = "Places API"
VALIDATION = "Address Validation API"
GEOCODING = "Geocoding API"

_SHORT_NAMES = {PLACES: "Places", VALIDATION: "Address Validation", GEOCODING: "Geocoding"}


_logger = get_logger(__name__)


@dataclass(slots=True)
class SourceResult:
    """One resolver's answer in the shape the decision rules work on."""

    source: str
    latitude: float
    longitude: float
    formatted_address: str
    place_id: str | None = None
    display_name: str | None = None
    candidates: tuple[GeocodeCandidate, ...] = ()
    verdict: AddressVerdict | None = None
    distance_warning_km: float | None = None

    def distance_to(self, other: "SourceResult") -> float:
        return haversine_km(self.latitude, self.longitude, other.latitude, other.longitude)


@dataclass(slots=True)
class Decision:
    accepted: SourceResult
    reasons: list[str] = field(default_factory=list)


class ResolutionEngine:
    """Resolve one location description against several disagreeing providers."""

    def __init__(
        self,
        *,
        places_search: PlacesSearchCallable = search_place,
        address_validator: AddressValidatorCallable = validate_address,
        geocoder: GeocoderCallable = geocode_location,
        disagreement_threshold_km: float | None = None,
        distance_guard_km: float | None = None,
    ) -> None:
        settings = get_settings()
        self._places_search = places_search
        self._address_validator = address_validator
        self._geocoder = geocoder
        self._threshold_km = (
            disagreement_threshold_km
            if disagreement_threshold_km is not None
            else settings.disagreement_threshold_km
        )
        self._guard_km = (
            distance_guard_km
            if distance_guard_km is not None
            else settings.distance_guard_km
        )

    async def resolve(
        self,
        descriptor: LocationDescriptor,
        bias: Coordinate | None = None,
    ) -> ResolvedLocation:
        query = build_search_query(descriptor)
        strategy = select_strategy(descriptor)
        _logger.info(
            "Resolution started",
            original=descriptor.original,
            query=query,
            kind=descriptor.kind or "legacy",
            strategy=strategy.value,
            bias=bias,
        )

        results = await self._lookup(strategy, query, descriptor, bias)
        if needs_distance_guard(descriptor) and bias is not None:
            results = {
                source: self._guard(result, bias) for source, result in results.items()
            }

        if strategy is Strategy.PLACES_PRIMARY:
            decision = self._decide_places_primary(results)
        elif strategy is Strategy.GEOCODING_ONLY:
            decision = self._decide_geocoding_only(descriptor, results[GEOCODING])
        elif strategy is Strategy.ADDRESS_VALIDATION:
            decision = self._cross_check(
                results.get(VALIDATION), results.get(GEOCODING)
            )
        else:
            decision = self._cross_check(results.get(GEOCODING), results.get(PLACES))

        if decision.reasons:
            reason = "; ".join(decision.reasons)
            alternatives = _build_alternatives(results.values(), decision.accepted)
            _logger.warning(
                "Resolution needs confirmation",
                original=descriptor.original,
                strategy=strategy.value,
                reason=reason,
                alternatives=len(alternatives),
            )
            raise ResolutionAmbiguous(reason, alternatives)

        resolved = self._to_resolved(descriptor, decision.accepted)
        _logger.info(
            "Resolution accepted",
            original=descriptor.original,
            strategy=strategy.value,
            source=resolved.source_label,
            latitude=resolved.latitude,
            longitude=resolved.longitude,
            formatted_address=resolved.formatted_address,
        )
        return resolved

    async def _lookup(
        self,
        strategy: Strategy,
        query: str,
        descriptor: LocationDescriptor,
        bias: Coordinate | None,
    ) -> dict[str, SourceResult]:
        components = component_filters(descriptor)
        calls: dict[str, Awaitable[SourceResult | None]] = {}

        if strategy in (Strategy.PLACES_PRIMARY, Strategy.HYBRID):
            calls[PLACES] = self._search_places(query, bias)
        if strategy is Strategy.ADDRESS_VALIDATION:
            calls[VALIDATION] = self._validate(query)
        calls[GEOCODING] = self._geocode(query, bias, components)

        outcomes = await asyncio.gather(*calls.values(), return_exceptions=True)

        results: dict[str, SourceResult] = {}
        errors: dict[str, str] = {}
        for source, outcome in zip(calls, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                _logger.warning(
                    "Resolver failed", source=source, query=query, error=str(outcome)
                )
                errors[source] = str(outcome) or type(outcome).__name__
            elif outcome is None:
                errors[source] = "no result"
            else:
                results[source] = outcome

        if not results:
            _logger.error("All resolvers failed", query=query, errors=errors)
            raise ResolverUnavailable(query, errors)
        return results

    async def _search_places(
        self, query: str, bias: Coordinate | None
    ) -> SourceResult:
        place = await self._places_search(query, bias=bias)
        return SourceResult(
            source=PLACES,
            latitude=place.latitude,
            longitude=place.longitude,
            formatted_address=place.formatted_address,
            place_id=place.place_id,
            display_name=place.name,
        )

    async def _validate(self, query: str) -> SourceResult | None:
        validated = await self._address_validator(query)
        if validated is None:
            return None
        return SourceResult(
            source=VALIDATION,
            latitude=validated.latitude,
            longitude=validated.longitude,
            formatted_address=validated.formatted_address,
            place_id=validated.place_id,
            verdict=validated.verdict,
        )

    async def _geocode(
        self,
        query: str,
        bias: Coordinate | None,
        components: Mapping[str, str] | None,
    ) -> SourceResult:
        match = await self._geocoder(query, bias=bias, components=components)
        top = match.top
        return SourceResult(
            source=GEOCODING,
            latitude=top.latitude,
            longitude=top.longitude,
            formatted_address=top.formatted_address,
            place_id=top.place_id,
            candidates=match.candidates,
        )

    def _guard(self, result: SourceResult, bias: Coordinate) -> SourceResult:
        distance = haversine_km(
            result.latitude, result.longitude, bias.latitude, bias.longitude
        )
        if distance <= self._guard_km:
            return result
        _logger.warning(
            "Result far from expected location",
            source=result.source,
            distance_km=round(distance, 2),
        )
        return replace(result, distance_warning_km=distance)

    def _decide_places_primary(self, results: Mapping[str, SourceResult]) -> Decision:
        places = results.get(PLACES)
        geocoded = results.get(GEOCODING)

        if places is not None:
            decision = Decision(places)
            if geocoded is not None:
                distance = places.distance_to(geocoded)
                if distance > self._threshold_km:
                    decision.reasons.append(
                        f"Places and Geocoding differ by {distance:.2f}km"
                    )
            if places.distance_warning_km is not None:
                decision.reasons.append(_far_away_reason(places))
            return decision

        decision = Decision(results[GEOCODING])
        geocoded = decision.accepted
        spread = self._spread(geocoded)
        if spread is not None:
            decision.reasons.append(_spread_reason(geocoded, spread))
        if geocoded.distance_warning_km is not None:
            decision.reasons.append(_far_away_reason(geocoded))
        return decision

    def _decide_geocoding_only(
        self, descriptor: LocationDescriptor, geocoded: SourceResult
    ) -> Decision:
        decision = Decision(geocoded)
        missing = missing_tokens(descriptor.original, geocoded.formatted_address)
        if missing:
            quoted = ", ".join(f'"{token}"' for token in missing)
            decision.reasons.append(
                f'Geocoded address "{geocoded.formatted_address}" is missing '
                f"{quoted} from what you said"
            )
        if geocoded.distance_warning_km is not None:
            decision.reasons.append(_far_away_reason(geocoded))
        return decision

    def _cross_check(
        self, primary: SourceResult | None, secondary: SourceResult | None
    ) -> Decision:
        """Compare a preferred source with a second opinion.

        Used for full addresses (validation vs. geocoding) and for vague or legacy
        stops (geocoding vs. places).
        """

        decision = Decision(cast(SourceResult, primary or secondary))
        present = [result for result in (primary, secondary) if result is not None]

        verdict = primary.verdict if primary is not None else None
        if verdict is not None:
            if not verdict.address_complete:
                decision.reasons.append("Address Validation reports the address is incomplete")
            if verdict.has_unconfirmed_components:
                parts = ", ".join(verdict.unconfirmed_components) or "unknown parts"
                decision.reasons.append(f"Address has unconfirmed components: {parts}")

        sources_agree = False
        distance = None
        if primary is not None and secondary is not None:
            distance = primary.distance_to(secondary)
            sources_agree = distance <= self._threshold_km

        if not sources_agree:
            for result in present:
                spread = self._spread(result)
                if spread is not None:
                    decision.reasons.append(_spread_reason(result, spread))

        for result in present:
            if result.distance_warning_km is not None:
                decision.reasons.append(_far_away_reason(result))

        if primary is not None and secondary is not None and not sources_agree:
            decision.reasons.append(
                f"{_SHORT_NAMES[primary.source]} and {_SHORT_NAMES[secondary.source]} "
                f"differ by {distance:.2f}km"
            )
        return decision

    def _spread(self, result: SourceResult) -> float | None:
        """Largest distance from the top candidate to a runner-up, if over threshold."""

        if len(result.candidates) < 2:
            return None
        top = result.candidates[0]
        spread = max(
            haversine_km(top.latitude, top.longitude, other.latitude, other.longitude)
            for other in result.candidates[1:]
        )
        return spread if spread > self._threshold_km else None

    def _to_resolved(
        self, descriptor: LocationDescriptor, accepted: SourceResult
    ) -> ResolvedLocation:
        compared = accepted.formatted_address
        # Places addresses omit the business name the user actually said.
        if accepted.display_name:
            compared = f"{accepted.display_name} {compared}"
        mismatch = check_text_mismatch(descriptor.original, compared)

        notes: list[str] = []
        if mismatch.has_mismatch and mismatch.reason:
            _logger.warning(
                "Resolved address text differs from request",
                original=descriptor.original,
                formatted_address=accepted.formatted_address,
                reason=mismatch.reason,
            )
            notes.append(mismatch.reason)

        unconfirmed = (
            list(accepted.verdict.unconfirmed_components) if accepted.verdict else []
        )
        return ResolvedLocation(
            latitude=accepted.latitude,
            longitude=accepted.longitude,
            formatted_address=accepted.formatted_address,
            provider_place_id=accepted.place_id,
            display_name=accepted.display_name,
            source_label=accepted.source,
            confidence=descriptor.confidence,
            distance_warning_km=accepted.distance_warning_km,
            unconfirmed_address_parts=unconfirmed,
            notes=notes,
        )


def _far_away_reason(result: SourceResult) -> str:
    return (
        f"{_SHORT_NAMES[result.source]} result is "
        f"{result.distance_warning_km:.2f}km from the expected area"
    )


def _spread_reason(result: SourceResult, spread: float) -> str:
    return (
        f"{_SHORT_NAMES[result.source]} returned {len(result.candidates)} candidates "
        f"up to {spread:.2f}km apart"
    )


def _build_alternatives(
    results: Iterable[SourceResult], accepted: SourceResult
) -> list[AlternativeCandidate]:
    ordered = [accepted] + [result for result in results if result is not accepted]

    alternatives: list[AlternativeCandidate] = []
    seen: set[tuple[float, float, str]] = set()

    def add(candidate: AlternativeCandidate) -> None:
        if candidate.identity in seen:
            return
        seen.add(candidate.identity)
        alternatives.append(candidate)

    for result in ordered:
        add(
            AlternativeCandidate(
                source_label=result.source,
                latitude=result.latitude,
                longitude=result.longitude,
                formatted_address=result.formatted_address,
                provider_place_id=result.place_id,
                display_name=result.display_name,
                distance_warning_km=result.distance_warning_km,
            )
        )
        for index, runner_up in enumerate(result.candidates[1:], start=1):
            add(
                AlternativeCandidate(
                    source_label=f"{result.source} (Alternative {index})",
                    latitude=runner_up.latitude,
                    longitude=runner_up.longitude,
                    formatted_address=runner_up.formatted_address,
                    provider_place_id=runner_up.place_id,
                )
            )
    return alternatives
