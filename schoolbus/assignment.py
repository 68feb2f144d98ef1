"""
Purpose: Split the fleet-wide visiting order across buses without exceeding seats.
What it does:
- walks the globally sequenced stops
- round-robin: stop k goes to bus k mod num_buses if it fits
- otherwise the first other bus (by index) with enough room takes it
- a stop no bus can take is handled by the OverflowPolicy:
    REPORT -> listed in AssignmentResult.unassigned (and logged)
    FAIL   -> CapacityOverflowError

Rule: assignment does not reorder stops; each bus keeps the global order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from .errors import CapacityOverflowError, InputError
from .models import OverflowPolicy, Stop

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusLoad:
    """
    Stops given to one bus, in visiting order.
    """
    index: int
    capacity: int
    stops: List[Stop]

    @property
    def seats_used(self) -> int:
        return sum(stop.seats_needed for stop in self.stops)

    @property
    def seats_free(self) -> int:
        return self.capacity - self.seats_used


@dataclass(frozen=True)
class AssignmentResult:
    buses: List[BusLoad]
    unassigned: List[Stop]


def assign_to_buses(
    ordered_stops: Sequence[Stop],
    bus_capacities: Sequence[int],
    *,
    overflow_policy: OverflowPolicy = OverflowPolicy.REPORT,
) -> AssignmentResult:
    """
    Partition `ordered_stops` across buses, one BusLoad per capacity entry.

    Invariant: every bus's seats_used <= capacity at every step.
    """
    if not bus_capacities:
        raise InputError("At least one bus capacity is required")
    if any(capacity <= 0 for capacity in bus_capacities):
        raise InputError("Bus capacities must be positive")

    num_buses = len(bus_capacities)
    stops_per_bus: List[List[Stop]] = [[] for _ in range(num_buses)]
    seats_used = [0] * num_buses
    unassigned: List[Stop] = []

    for position, stop in enumerate(ordered_stops):
        preferred = position % num_buses

        # preferred bus first, then every other bus in index order
        candidates = [preferred] + [i for i in range(num_buses) if i != preferred]
        chosen = next(
            (i for i in candidates if seats_used[i] + stop.seats_needed <= bus_capacities[i]),
            None,
        )

        if chosen is None:
            unassigned.append(stop)
            continue

        stops_per_bus[chosen].append(stop)
        seats_used[chosen] += stop.seats_needed

    if unassigned:
        if overflow_policy == OverflowPolicy.FAIL:
            raise CapacityOverflowError(unassigned)
        logger.warning(
            "%d stop(s) (%d seats) did not fit on any bus: %s",
            len(unassigned),
            sum(stop.seats_needed for stop in unassigned),
            ", ".join(stop.address for stop in unassigned),
        )

    buses = [
        BusLoad(index=i, capacity=bus_capacities[i], stops=stops_per_bus[i])
        for i in range(num_buses)
    ]
    return AssignmentResult(buses=buses, unassigned=unassigned)
