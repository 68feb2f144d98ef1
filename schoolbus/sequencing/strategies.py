"""
Purpose: Morning visiting-order strategies.
What it does:

Each strategy takes the full stop list (before any bus split) and returns a
permutation of it. Strategies are pure functions of
(stops, school, custom start, oracle): no shared state between runs.

- DISTANCE_FROM_SCHOOL: farthest (by drive time) first
- MINIMIZE_RIDE_TIME: seats-weighted seed + 2-opt on student ride minutes
- MINIMIZE_TOTAL_DISTANCE: farthest (by km) seed + 2-opt on closed-loop km
- DISTANCE_MATRIX: greedy pick over a precomputed km matrix (row = number already placed)
- NEAREST_NEIGHBOR: greedy walk with live km queries from the current point

Rule: strategies only order stops; capacity and clock times happen later.
"""

# schoolbus/sequencing/strategies.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from routing.matrix_adapter import estimate_pairs
from routing.travel import Point, TravelEstimate, TravelOracle

from ..models import CustomStart, MorningStrategy, School, Stop
from .two_opt import MAX_PASSES, two_opt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SequencingContext:
    """
    Everything a strategy may consult besides the stops themselves.
    """
    school: School
    oracle: TravelOracle
    custom_start: Optional[CustomStart] = None
    at: Optional[datetime] = None  # target instant passed to every oracle query
    max_workers: int = 1
    max_two_opt_passes: int = MAX_PASSES

    @property
    def origin(self) -> Point:
        return self.custom_start.location if self.custom_start else self.school.location


Strategy = Callable[[Sequence[Stop], SequencingContext], List[Stop]]


# -------------------------
# Public strategies
# -------------------------

def by_distance_from_school(stops: Sequence[Stop], context: SequencingContext) -> List[Stop]:
    """
    Sort stops by drive time to the school, longest first.
    Ties keep their input order.
    """
    to_school = _estimates_to_school(stops, context)
    order = sorted(range(len(stops)), key=lambda i: -to_school[i].duration_minutes)
    return [stops[i] for i in order]


def minimize_ride_time(stops: Sequence[Stop], context: SequencingContext) -> List[Stop]:
    """
    2-opt on student-minutes.

    Seed: stops sorted by (minutes to school x seats) descending.
    Cost of an order: for every position, minutes from that stop straight to
    school plus the travel time of the rest of the sequence after it, times
    the stop's seats. It is a proxy, not an exact ride time.
    """
    if len(stops) < 2:
        return list(stops)

    to_school = [estimate.duration_minutes for estimate in _estimates_to_school(stops, context)]
    travel = _pairwise(stops, context, metric="duration")
    seats = [stop.seats_needed for stop in stops]

    def weighted_ride_time(sequence: Sequence[int]) -> float:
        total = 0.0
        remaining = 0.0  # travel time from position p to the end of the sequence
        for p in range(len(sequence) - 1, -1, -1):
            if p < len(sequence) - 1:
                remaining += travel[(sequence[p], sequence[p + 1])]
            total += (to_school[sequence[p]] + remaining) * seats[sequence[p]]
        return total

    seed = sorted(range(len(stops)), key=lambda i: -(to_school[i] * seats[i]))
    result = two_opt(seed, weighted_ride_time, max_passes=context.max_two_opt_passes)
    logger.debug(
        "Ride-time 2-opt: %.1f -> %.1f student-minutes in %d passes",
        result.initial_cost, result.cost, result.passes,
    )
    return [stops[i] for i in result.sequence]


def minimize_total_distance(stops: Sequence[Stop], context: SequencingContext) -> List[Stop]:
    """
    2-opt on kilometers of the loop school -> stops -> school.

    Seed: stops sorted by km to school, farthest first. Both loop ends use the
    stop->school leg (no separate school->stop query).
    """
    if len(stops) < 2:
        return list(stops)

    to_school = [estimate.distance_km for estimate in _estimates_to_school(stops, context)]
    distance = _pairwise(stops, context, metric="distance")

    def loop_distance(sequence: Sequence[int]) -> float:
        if not sequence:
            return 0.0
        total = to_school[sequence[0]]
        for a, b in zip(sequence[:-1], sequence[1:]):
            total += distance[(a, b)]
        return total + to_school[sequence[-1]]

    seed = sorted(range(len(stops)), key=lambda i: -to_school[i])
    result = two_opt(seed, loop_distance, max_passes=context.max_two_opt_passes)
    logger.debug(
        "Distance 2-opt: %.2f -> %.2f km in %d passes",
        result.initial_cost, result.cost, result.passes,
    )
    return [stops[i] for i in result.sequence]


def by_distance_matrix(stops: Sequence[Stop], context: SequencingContext) -> List[Stop]:
    """
    Greedy selection over a full km matrix of [origin] + stops.

    At step k the reference row is k, i.e. the count of stops already placed,
    not the row of the stop placed last, so this is not a nearest-neighbour
    walk (NEAREST_NEIGHBOR is). Ties go to the lowest stop index.
    """
    points = [context.origin] + [stop.location for stop in stops]
    matrix = _full_matrix(points, context)

    sequence: List[int] = []
    visited = [False] * len(stops)
    for step in range(len(stops)):
        row = matrix[step]
        best_index = None
        best_distance = float("inf")
        for j in range(len(stops)):
            if visited[j]:
                continue
            if row[j + 1] < best_distance:
                best_distance = row[j + 1]
                best_index = j
        visited[best_index] = True
        sequence.append(best_index)

    return [stops[i] for i in sequence]


def nearest_neighbor(stops: Sequence[Stop], context: SequencingContext) -> List[Stop]:
    """
    Walk from the custom start (or the school), always driving to the closest
    unvisited stop by live km query. Ties go to the earliest remaining stop.
    """
    remaining = list(range(len(stops)))
    current = context.origin
    sequence: List[int] = []

    while remaining:
        estimates = estimate_pairs(
            context.oracle,
            [(current, stops[i].location) for i in remaining],
            context.at,
            max_workers=context.max_workers,
        )
        position = min(range(len(remaining)), key=lambda k: (estimates[k].distance_km, k))
        chosen = remaining.pop(position)
        sequence.append(chosen)
        current = stops[chosen].location

    return [stops[i] for i in sequence]


STRATEGIES: Dict[MorningStrategy, Strategy] = {
    MorningStrategy.DISTANCE_FROM_SCHOOL: by_distance_from_school,
    MorningStrategy.MINIMIZE_RIDE_TIME: minimize_ride_time,
    MorningStrategy.MINIMIZE_TOTAL_DISTANCE: minimize_total_distance,
    MorningStrategy.DISTANCE_MATRIX: by_distance_matrix,
    MorningStrategy.NEAREST_NEIGHBOR: nearest_neighbor,
}


def sequence_stops(
    stops: Sequence[Stop],
    strategy: MorningStrategy,
    context: SequencingContext,
) -> List[Stop]:
    """
    Dispatch to the strategy registered for `strategy`.
    """
    try:
        run = STRATEGIES[MorningStrategy(strategy)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown morning strategy: {strategy!r}") from None

    if not stops:
        return []
    ordered = run(stops, context)
    logger.debug("Sequenced %d stops with %s", len(ordered), MorningStrategy(strategy).value)
    return ordered


# -------------------------
# Internal helpers
# -------------------------

def _estimates_to_school(stops: Sequence[Stop], context: SequencingContext) -> List[TravelEstimate]:
    return estimate_pairs(
        context.oracle,
        [(stop.location, context.school.location) for stop in stops],
        context.at,
        max_workers=context.max_workers,
    )


def _pairwise(stops: Sequence[Stop], context: SequencingContext, *, metric: str) -> Dict[Tuple[int, int], float]:
    """
    One query per unordered stop pair (i < j); the answer is used for both directions.
    """
    index_pairs = [(i, j) for i in range(len(stops)) for j in range(i + 1, len(stops))]
    estimates = estimate_pairs(
        context.oracle,
        [(stops[i].location, stops[j].location) for i, j in index_pairs],
        context.at,
        max_workers=context.max_workers,
    )

    values: Dict[Tuple[int, int], float] = {}
    for (i, j), estimate in zip(index_pairs, estimates):
        value = estimate.duration_minutes if metric == "duration" else estimate.distance_km
        values[(i, j)] = value
        values[(j, i)] = value
    return values


def _full_matrix(points: Sequence[Point], context: SequencingContext) -> List[List[float]]:
    """
    Directed km matrix over `points`; the diagonal is zero and never queried.
    """
    index_pairs = [(i, j) for i in range(len(points)) for j in range(len(points)) if i != j]
    estimates = estimate_pairs(
        context.oracle,
        [(points[i], points[j]) for i, j in index_pairs],
        context.at,
        max_workers=context.max_workers,
    )

    matrix = [[0.0] * len(points) for _ in points]
    for (i, j), estimate in zip(index_pairs, estimates):
        matrix[i][j] = estimate.distance_km
    return matrix
