from __future__ import annotations

from typing import Any, Sequence

from voicenav.schemas.locations import AlternativeCandidate
from voicenav.schemas.routes import DisplayStop


class NavigationError(RuntimeError):
    """Base class for failures surfaced to route-building callers."""


class InvalidBatch(NavigationError):
    """Raised before any lookup when a batch cannot form a route."""


class PlaceNotFound(NavigationError):
    """Raised by a resolver whose provider returned zero candidates."""


class ResolverUnavailable(NavigationError):
    """Raised when every resolver consulted for a stop failed."""

    def __init__(self, query: str, errors: dict[str, str]) -> None:
        details = "; ".join(f"{source}: {error}" for source, error in errors.items())
        super().__init__(f"All location providers failed for '{query}': {details}")
        self.query = query
        self.errors = errors


class RouteUnavailable(NavigationError):
    """Raised when the routing backend cannot produce a route."""


class ResolutionAmbiguous(NavigationError):
    """
    A stop could not be resolved with enough confidence to route automatically.

    The resolution engine raises it with the reason and the competing candidates;
    the route assembler re-raises it with the failing stop's index and the batch
    normalized for display so a client can ask the user about that one stop.
    """

    def __init__(
        self,
        reason: str,
        alternatives: Sequence[AlternativeCandidate] = (),
        *,
        failing_stop_index: int | None = None,
        batch_stops: Sequence[DisplayStop] = (),
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.alternatives = list(alternatives)
        self.failing_stop_index = failing_stop_index
        self.batch_stops = list(batch_stops)

    def for_batch(
        self, failing_stop_index: int, batch_stops: Sequence[DisplayStop]
    ) -> "ResolutionAmbiguous":
        return ResolutionAmbiguous(
            self.reason,
            self.alternatives,
            failing_stop_index=failing_stop_index,
            batch_stops=batch_stops,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "failingStopIndex": self.failing_stop_index,
            "reason": self.reason,
            "batchStopsForDisplay": [
                stop.model_dump(by_alias=True) for stop in self.batch_stops
            ],
            "alternativeCandidates": [
                candidate.model_dump(by_alias=True) for candidate in self.alternatives
            ],
        }


class ProviderError(NavigationError):
    """Raised when a provider answers with an error status or is misconfigured."""
