"""
Purpose: Domain models for the school bus routing engine.
What it does:
- Defines core data structures:
- Stop (address, seats_needed, location)
- School (name, location, arrival/departure clock times)
- CustomStart (alternate morning origin)
- RouteSegment (one directed leg of a sequenced route)
- BusRoute (per-vehicle stop order, clock times and ride metrics)
- OptimizationResult (all routes + fleet-wide aggregates)

Defines enums:
- MorningStrategy = DISTANCE_FROM_SCHOOL | MINIMIZE_RIDE_TIME | MINIMIZE_TOTAL_DISTANCE | DISTANCE_MATRIX | NEAREST_NEIGHBOR
- ReturnOrder = REVERSE_MORNING | NORTH_TO_SOUTH | NEAREST_TO_SCHOOL
- OverflowPolicy = REPORT | FAIL

Rule: No oracle calls, no optimization logic. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from routing.travel import Point

from .clock import format_clock

__all__ = [
    "Point",
    "Stop",
    "School",
    "CustomStart",
    "MorningStrategy",
    "ReturnOrder",
    "OverflowPolicy",
    "RouteSegment",
    "BusRoute",
    "OptimizationResult",
]


class MorningStrategy(str, Enum):
    DISTANCE_FROM_SCHOOL = "DISTANCE_FROM_SCHOOL"
    MINIMIZE_RIDE_TIME = "MINIMIZE_RIDE_TIME"
    MINIMIZE_TOTAL_DISTANCE = "MINIMIZE_TOTAL_DISTANCE"
    DISTANCE_MATRIX = "DISTANCE_MATRIX"
    NEAREST_NEIGHBOR = "NEAREST_NEIGHBOR"


class ReturnOrder(str, Enum):
    REVERSE_MORNING = "REVERSE_MORNING"
    NORTH_TO_SOUTH = "NORTH_TO_SOUTH"  # latitude descending
    NEAREST_TO_SCHOOL = "NEAREST_TO_SCHOOL"  # euclidean degrees, closest first


class OverflowPolicy(str, Enum):
    REPORT = "REPORT"  # keep going, list the stops nobody could take
    FAIL = "FAIL"  # abort the run


@dataclass(frozen=True)
class Stop:
    """
    A place where `seats_needed` students board in the morning (and alight on the return trip).
    The address is the stop's identity within a run.
    """
    address: str
    seats_needed: int
    location: Point


@dataclass(frozen=True)
class School:
    name: str
    location: Point
    arrival_time: str  # "HH:MM"
    departure_time: Optional[str] = None  # required iff a return trip is requested


@dataclass(frozen=True)
class CustomStart:
    """Alternate origin for morning sequencing, used in place of the school."""
    address: str
    location: Point


@dataclass(frozen=True)
class RouteSegment:
    from_label: str
    to_label: str
    duration_minutes: float
    distance_km: float


@dataclass(frozen=True)
class BusRoute:
    """
    One vehicle's finished route. Clock times are minutes after midnight.
    """
    id: str
    capacity: int
    seats_used: int
    stops: Tuple[Stop, ...]

    morning_segments: Tuple[RouteSegment, ...]
    morning_times: Dict[str, float]  # stop address -> pickup time

    min_ride_time: float
    max_ride_time: float
    total_student_minutes: float
    total_ride_time: float

    # Leg totals (travel + dwell), used for the fleet sums
    distance_km: float = 0.0
    time_minutes: float = 0.0

    # Only present when a return trip was requested
    return_stops: Optional[Tuple[Stop, ...]] = None
    return_segments: Optional[Tuple[RouteSegment, ...]] = None
    return_times: Optional[Dict[str, float]] = None  # stop address -> drop-off time

    @property
    def ride_time_equity(self) -> float:
        return self.max_ride_time - self.min_ride_time

    @property
    def first_pickup_time(self) -> float:
        return min(self.morning_times.values())


@dataclass(frozen=True)
class OptimizationResult:
    """
    Output of one optimization run.
    Ride-time aggregates are None when no bus received a stop.
    """
    routes: List[BusRoute]
    total_distance_km: float
    total_time_minutes: float
    min_ride_time: Optional[float] = None
    max_ride_time: Optional[float] = None
    average_ride_time: Optional[float] = None

    # Stops no bus could take (REPORT overflow policy)
    unassigned_stops: List[Stop] = field(default_factory=list)

    @property
    def ride_time_equity(self) -> Optional[float]:
        if self.min_ride_time is None or self.max_ride_time is None:
            return None
        return self.max_ride_time - self.min_ride_time

    @property
    def seats_used(self) -> int:
        return sum(route.seats_used for route in self.routes)

    def schedule_rows(self) -> List[Dict[str, object]]:
        """
        Flat per-stop rows in pickup order, ready for a table or CSV.
        """
        rows: List[Dict[str, object]] = []
        for route in self.routes:
            for position, stop in enumerate(route.stops, start=1):
                dropoff = route.return_times.get(stop.address) if route.return_times else None
                rows.append(
                    {
                        "bus": route.id,
                        "order": position,
                        "address": stop.address,
                        "seats": stop.seats_needed,
                        "pickup": format_clock(route.morning_times[stop.address]),
                        "dropoff": format_clock(dropoff) if dropoff is not None else "",
                    }
                )
        return rows
