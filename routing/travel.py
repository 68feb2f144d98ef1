#Purpose: Shared contract for travel-time/distance oracles.
#Every oracle (OSRM, Google Distance Matrix, straight line) answers the same two questions:
#single pair -> TravelEstimate
#batch origins x destinations -> matrix of TravelEstimate
#Units are normalized here once: minutes and kilometers.
#No routing policy lives here.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, NamedTuple, Optional, Protocol, Sequence


class Point(NamedTuple):
    """Immutable (lat, lon) pair; hashable so it can key caches and matrices."""
    lat: float
    lon: float


class OracleError(Exception):
    """The travel oracle returned a non-success status or could not route a pair."""
    pass


@dataclass(frozen=True)
class TravelEstimate:
    """
    Normalized oracle answer for one directed leg.
    """
    duration_minutes: float
    distance_km: float

    def __post_init__(self):
        if self.duration_minutes < 0 or self.distance_km < 0:
            raise OracleError(
                f"Negative travel estimate: {self.duration_minutes} min, {self.distance_km} km"
            )


class TravelOracle(Protocol):
    """
    Anything that can estimate travel between two points at a target instant.
    """

    def estimate(self, origin: Point, destination: Point, at: Optional[datetime] = None) -> TravelEstimate:
        ...

    def estimate_many(
        self,
        origins: Sequence[Point],
        destinations: Sequence[Point],
        at: Optional[datetime] = None,
    ) -> List[List[TravelEstimate]]:
        ...
