"""Offline travel oracle: great-circle distance at an average speed."""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from haversine import Unit, haversine

from .travel import Point, TravelEstimate

logger = logging.getLogger(__name__)


class StraightLineOracle:
    """
    Estimates travel from the haversine distance between two points.

    Roads are longer than the straight line, so the distance is stretched by
    `detour_factor` before converting it to a duration at `avg_speed_kmh`.
    Time of day is ignored. Useful for dry runs without an API key.
    """

    def __init__(self, avg_speed_kmh: float = 30.0, detour_factor: float = 1.3):
        if avg_speed_kmh <= 0:
            raise ValueError("avg_speed_kmh must be > 0")
        if detour_factor < 1.0:
            raise ValueError("detour_factor must be >= 1.0")
        self.avg_speed_kmh = avg_speed_kmh
        self.detour_factor = detour_factor

    def estimate(self, origin: Point, destination: Point, at: Optional[datetime] = None) -> TravelEstimate:
        distance_km = haversine(tuple(origin), tuple(destination), unit=Unit.KILOMETERS) * self.detour_factor
        return TravelEstimate(
            duration_minutes=distance_km / self.avg_speed_kmh * 60,
            distance_km=distance_km,
        )

    def estimate_many(
        self,
        origins: Sequence[Point],
        destinations: Sequence[Point],
        at: Optional[datetime] = None,
    ) -> List[List[TravelEstimate]]:
        return [[self.estimate(origin, destination, at) for destination in destinations] for origin in origins]
