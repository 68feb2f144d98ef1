"""
Purpose: The routing "orchestrator" (single entry point).
What it does:

Coordinates the pipeline end-to-end for one run:

- validates stops, school, capacities and options (no oracle call before this passes)

- orders every stop with the selected morning strategy (sequencing/)

- splits the order across buses under seat capacity (assignment.py)

- computes pickup times backward from school arrival, per bus (timing.py)

- optionally computes drop-off times forward from school departure

- aggregates fleet metrics and returns an OptimizationResult

Typical public function signature:

- optimize_routes(stops, school, bus_capacities, oracle=..., options=...) -> OptimizationResult

Rule: Engine is the only module other code should call directly for optimization.
Any collaborator failure aborts the run unmodified; no partial result is returned.
"""

# schoolbus/engine.py

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import List, Optional, Sequence

from routing.matrix_adapter import CachingOracle
from routing.travel import TravelOracle

from .assignment import AssignmentResult, assign_to_buses
from .clock import clock_to_datetime, format_clock, format_duration, parse_clock
from .errors import InputError
from .models import BusRoute, OptimizationResult, School, Stop
from .policy import RunOptions, default_options
from .sequencing import SequencingContext, sequence_stops
from .state import RunState, RunStateMachine
from .timing import (
    LegSchedule,
    aggregate_fleet,
    build_bus_route,
    order_return_stops,
    propagate_morning,
    propagate_return,
)

logger = logging.getLogger(__name__)


class RouteOptimizer:
    """
    Runs the optimization state machine:

    VALIDATING_INPUT -> SEQUENCING -> ASSIGNING -> PROPAGATING_MORNING
      -> [PROPAGATING_RETURN] -> AGGREGATING -> DONE

    FAILED is entered from any state when a step raises; the underlying
    exception is re-raised to the caller.
    """

    def __init__(self, oracle: TravelOracle, options: Optional[RunOptions] = None, *, day: Optional[date] = None):
        self.oracle = oracle
        self.options = options or default_options()
        self.day = day
        self.machine: Optional[RunStateMachine] = None

    @property
    def state(self) -> Optional[RunState]:
        return self.machine.state if self.machine else None

    def run(self, stops: Sequence[Stop], school: School, bus_capacities: Sequence[int]) -> OptimizationResult:
        self.machine = RunStateMachine(run_id=uuid.uuid4().hex[:8])
        try:
            result = self._run(stops, school, bus_capacities)
        except Exception:
            logger.debug("Run %s failed in state %s", self.machine.run_id, self.machine.state.value)
            self.machine.fail()
            raise
        return result

    # -------------------------
    # Pipeline
    # -------------------------

    def _run(self, stops: Sequence[Stop], school: School, bus_capacities: Sequence[int]) -> OptimizationResult:
        options = self.options
        machine = self.machine

        # 1) Validate everything before the first oracle request
        arrival, departure = _validate(stops, school, bus_capacities, options)
        oracle = CachingOracle(self.oracle)

        # 2) One fleet-wide visiting order
        machine.advance(RunState.SEQUENCING)
        context = SequencingContext(
            school=school,
            oracle=oracle,
            custom_start=options.custom_start,
            at=clock_to_datetime(arrival, self.day),
            max_workers=options.oracle_workers,
            max_two_opt_passes=options.max_two_opt_passes,
        )
        ordered = sequence_stops(stops, options.strategy, context)

        # 3) Split across buses
        machine.advance(RunState.ASSIGNING)
        assignment: AssignmentResult = assign_to_buses(
            ordered,
            bus_capacities,
            overflow_policy=options.overflow_policy,
        )
        loaded = [bus for bus in assignment.buses if bus.stops]

        # 4) Morning clock times per non-empty bus
        machine.advance(RunState.PROPAGATING_MORNING)
        mornings: List[LegSchedule] = [
            propagate_morning(
                bus.stops,
                school,
                arrival,
                oracle,
                dwell_minutes=options.dwell_minutes,
                day=self.day,
            )
            for bus in loaded
        ]

        # 5) Optional afternoon run
        afternoons: List[Optional[LegSchedule]] = [None] * len(loaded)
        if options.include_return:
            machine.advance(RunState.PROPAGATING_RETURN)
            return_order = options.return_order()
            afternoons = [
                propagate_return(
                    order_return_stops(bus.stops, school, return_order),
                    school,
                    departure,
                    oracle,
                    dwell_minutes=options.dwell_minutes,
                    day=self.day,
                )
                for bus in loaded
            ]

        # 6) Summaries
        machine.advance(RunState.AGGREGATING)
        routes: List[BusRoute] = [
            build_bus_route(
                f"bus-{bus.index + 1}",
                bus.capacity,
                morning,
                arrival,
                afternoon=afternoon,
                departure_minutes=departure,
            )
            for bus, morning, afternoon in zip(loaded, mornings, afternoons)
        ]
        result = aggregate_fleet(routes, assignment.unassigned)
        machine.advance(RunState.DONE)

        logger.info(
            "Optimized %d stops onto %d/%d buses (%s): %.1f km, %s driving, earliest pickup %s, %d oracle requests",
            len(stops) - len(result.unassigned_stops),
            len(result.routes),
            len(bus_capacities),
            options.strategy.value,
            result.total_distance_km,
            format_duration(result.total_time_minutes),
            format_clock(min((route.first_pickup_time for route in result.routes), default=arrival)),
            oracle.misses,
        )
        return result


def optimize_routes(
    stops: Sequence[Stop],
    school: School,
    bus_capacities: Sequence[int],
    *,
    oracle: TravelOracle,
    options: Optional[RunOptions] = None,
    day: Optional[date] = None,
) -> OptimizationResult:
    """
    Main optimization entry point.

    Parameters
    ----------
    stops:
        Geocoded stops; addresses must be unique within the run.
    school:
        School location and "HH:MM" arrival (and departure, for return trips).
    bus_capacities:
        One positive seat count per bus; defines the fleet size.
    oracle:
        Travel oracle (OSRMClient, GoogleDistanceMatrixClient, StraightLineOracle...).
    options:
        RunOptions; defaults to default_options().
    day:
        Calendar day used to build oracle instants; today by default.

    Returns
    -------
    OptimizationResult with one BusRoute per bus that received stops.
    """
    return RouteOptimizer(oracle, options, day=day).run(stops, school, bus_capacities)


# -------------------------
# Validation
# -------------------------

def _validate(stops: Sequence[Stop], school: School, bus_capacities: Sequence[int], options: RunOptions):
    """
    Returns (arrival_minutes, departure_minutes or None).
    """
    options.validate()

    if options.include_return and not school.departure_time:
        raise InputError("Departure time is required for return trips")

    arrival = parse_clock(school.arrival_time)
    departure = parse_clock(school.departure_time) if school.departure_time else None

    if not bus_capacities:
        raise InputError("At least one bus capacity is required")
    for capacity in bus_capacities:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise InputError(f"Bus capacities must be positive integers, got {capacity!r}")

    seen = set()
    for stop in stops:
        if isinstance(stop.seats_needed, bool) or not isinstance(stop.seats_needed, int) or stop.seats_needed < 0:
            raise InputError(f"Stop {stop.address!r} needs a non-negative integer seat count")
        if stop.address in seen:
            raise InputError(f"Duplicate stop address: {stop.address!r}")
        seen.add(stop.address)

    return arrival, departure
