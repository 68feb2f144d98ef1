"""
Purpose: Clock-time propagation and ride metrics for sequenced bus routes.
What it does:

Morning leg (backward from school arrival):
- walk the route from the last stop to the first
- query stop_i -> next stop (or school) at the running clock
- pickup(i) = running clock - (leg minutes + dwell), no dwell on the final leg into school

Return leg (forward from school departure):
- order the drop-offs by the selected ReturnOrder
- query previous point (school first) -> stop at the running clock
- dropoff(i) = running clock + leg minutes + dwell

Metrics:
- per-route min/max ride time, student-minutes, total ride time
- fleet totals and ride-time equity

Rule: no sequencing decisions here, the stop order is taken as given
(except the return order policy, which only rearranges an existing route).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

from routing.travel import Point, TravelOracle

from .clock import clock_to_datetime
from .models import BusRoute, OptimizationResult, ReturnOrder, RouteSegment, School, Stop

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegSchedule:
    """
    Output of one propagation pass (morning or return) for one bus.
    """
    stops: List[Stop]  # visiting order of this leg
    segments: List[RouteSegment]  # forward order
    times: Dict[str, float]  # stop address -> clock minutes
    distance_km: float
    time_minutes: float  # travel + dwell, school endpoint included
    min_ride_time: float
    max_ride_time: float


def propagate_morning(
    stops: Sequence[Stop],
    school: School,
    arrival_minutes: float,
    oracle: TravelOracle,
    *,
    dwell_minutes: float = 0,
    day: Optional[date] = None,
) -> LegSchedule:
    """
    Pickup times computed backward from the school arrival instant.
    Pickup times are non-increasing from the last stop back to the first.
    """
    segments: List[Optional[RouteSegment]] = [None] * len(stops)
    times: Dict[str, float] = {}
    distance_km = 0.0
    clock = arrival_minutes

    for i in range(len(stops) - 1, -1, -1):
        stop = stops[i]
        is_last = i == len(stops) - 1
        destination = school.location if is_last else stops[i + 1].location
        destination_label = school.name if is_last else stops[i + 1].address

        estimate = oracle.estimate(stop.location, destination, clock_to_datetime(clock, day))
        segments[i] = RouteSegment(
            from_label=stop.address,
            to_label=destination_label,
            duration_minutes=estimate.duration_minutes,
            distance_km=estimate.distance_km,
        )
        distance_km += estimate.distance_km

        # no dwell on the final leg into school
        clock -= estimate.duration_minutes + (0 if is_last else dwell_minutes)
        times[stop.address] = clock

    ride_times = [arrival_minutes - times[stop.address] for stop in stops]
    return LegSchedule(
        stops=list(stops),
        segments=list(segments),
        times=times,
        distance_km=distance_km,
        time_minutes=arrival_minutes - clock,
        min_ride_time=min(ride_times, default=0.0),
        max_ride_time=max(ride_times, default=0.0),
    )


def propagate_return(
    stops: Sequence[Stop],
    school: School,
    departure_minutes: float,
    oracle: TravelOracle,
    *,
    dwell_minutes: float = 0,
    day: Optional[date] = None,
) -> LegSchedule:
    """
    Drop-off times computed forward from the school departure instant.
    Drop-off times are non-decreasing in visiting order.
    """
    segments: List[RouteSegment] = []
    times: Dict[str, float] = {}
    distance_km = 0.0
    clock = departure_minutes
    origin: Point = school.location
    origin_label = school.name

    for stop in stops:
        estimate = oracle.estimate(origin, stop.location, clock_to_datetime(clock, day))
        segments.append(
            RouteSegment(
                from_label=origin_label,
                to_label=stop.address,
                duration_minutes=estimate.duration_minutes,
                distance_km=estimate.distance_km,
            )
        )
        distance_km += estimate.distance_km

        clock += estimate.duration_minutes + dwell_minutes
        times[stop.address] = clock
        origin, origin_label = stop.location, stop.address

    ride_times = [times[stop.address] - departure_minutes for stop in stops]
    return LegSchedule(
        stops=list(stops),
        segments=segments,
        times=times,
        distance_km=distance_km,
        time_minutes=clock - departure_minutes,
        min_ride_time=min(ride_times, default=0.0),
        max_ride_time=max(ride_times, default=0.0),
    )


def order_return_stops(stops: Sequence[Stop], school: School, policy: ReturnOrder) -> List[Stop]:
    """
    Drop-off order for the afternoon run.
    """
    if policy == ReturnOrder.REVERSE_MORNING:
        return list(reversed(stops))

    if policy == ReturnOrder.NORTH_TO_SOUTH:
        return sorted(stops, key=lambda stop: -stop.location.lat)

    if policy == ReturnOrder.NEAREST_TO_SCHOOL:
        school_lat, school_lon = school.location
        return sorted(
            stops,
            key=lambda stop: math.hypot(stop.location.lat - school_lat, stop.location.lon - school_lon),
        )

    raise ValueError(f"Unknown return order: {policy!r}")


def student_minutes(stops: Sequence[Stop], pickup_times: Dict[str, float], arrival_minutes: float) -> float:
    """Sum over stops of (arrival - pickup) x seats."""
    return sum((arrival_minutes - pickup_times[stop.address]) * stop.seats_needed for stop in stops)


def build_bus_route(
    route_id: str,
    capacity: int,
    morning: LegSchedule,
    arrival_minutes: float,
    *,
    afternoon: Optional[LegSchedule] = None,
    departure_minutes: Optional[float] = None,
) -> BusRoute:
    """
    Assemble the immutable BusRoute from one or two leg schedules.
    Ride-time min/max describe the morning leg.
    """
    total_ride_time = arrival_minutes - min(morning.times.values())
    if afternoon is not None:
        total_ride_time += max(afternoon.times.values()) - departure_minutes

    return BusRoute(
        id=route_id,
        capacity=capacity,
        seats_used=sum(stop.seats_needed for stop in morning.stops),
        stops=tuple(morning.stops),
        morning_segments=tuple(morning.segments),
        morning_times=dict(morning.times),
        min_ride_time=morning.min_ride_time,
        max_ride_time=morning.max_ride_time,
        total_student_minutes=student_minutes(morning.stops, morning.times, arrival_minutes),
        total_ride_time=total_ride_time,
        distance_km=morning.distance_km + (afternoon.distance_km if afternoon else 0.0),
        time_minutes=morning.time_minutes + (afternoon.time_minutes if afternoon else 0.0),
        return_stops=tuple(afternoon.stops) if afternoon else None,
        return_segments=tuple(afternoon.segments) if afternoon else None,
        return_times=dict(afternoon.times) if afternoon else None,
    )


def aggregate_fleet(routes: Sequence[BusRoute], unassigned: Sequence[Stop] = ()) -> OptimizationResult:
    """
    Fleet-wide sums and ride-time spread. Never fails; an empty fleet gives
    zero totals and no ride-time figures.
    """
    routes = [route for route in routes if route.stops]
    if not routes:
        return OptimizationResult(
            routes=[],
            total_distance_km=0.0,
            total_time_minutes=0.0,
            unassigned_stops=list(unassigned),
        )

    return OptimizationResult(
        routes=list(routes),
        total_distance_km=sum(route.distance_km for route in routes),
        total_time_minutes=sum(route.time_minutes for route in routes),
        min_ride_time=min(route.min_ride_time for route in routes),
        max_ride_time=max(route.max_ride_time for route in routes),
        average_ride_time=sum((route.max_ride_time + route.min_ride_time) / 2 for route in routes) / len(routes),
        unassigned_stops=list(unassigned),
    )
