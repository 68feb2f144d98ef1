"""
Purpose: Central configuration for one optimization run (single source of truth).
What it does:

Stores all caller-tunable switches:

STRATEGY = DISTANCE_FROM_SCHOOL

DWELL_MINUTES = 1

INCLUDE_RETURN = False, REVERSE_RETURN_ORDER = True, PRIORITIZE_DIRECTION = False

OVERFLOW_POLICY = REPORT

ORACLE_WORKERS = 4, MAX_TWO_OPT_PASSES = 100

Rule: No logic here beyond validation and resolving flags into enums.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import InputError
from .models import CustomStart, MorningStrategy, OverflowPolicy, ReturnOrder


@dataclass(frozen=True)
class RunOptions:
    """
    Options for a single run of the optimizer.

    Notes:
    - dwell_minutes is applied uniformly to every stop in every route and leg.
    - the return order is picked by reverse_return_order first; only when it is
      off does prioritize_direction choose between the two geometric orders.
    - custom_start only influences the strategies that walk from an origin
      (DISTANCE_MATRIX, NEAREST_NEIGHBOR).
    """

    # --- Morning sequencing ---
    strategy: MorningStrategy = MorningStrategy.DISTANCE_FROM_SCHOOL
    custom_start: Optional[CustomStart] = None

    # --- Return trip ---
    include_return: bool = False
    reverse_return_order: bool = True
    prioritize_direction: bool = False

    # --- Timing ---
    dwell_minutes: int = 1

    # --- Capacity overflow (stop that fits on no bus) ---
    overflow_policy: OverflowPolicy = OverflowPolicy.REPORT

    # --- Performance ---
    # Parallel oracle requests. Results are consumed in a fixed order either way.
    oracle_workers: int = 4
    max_two_opt_passes: int = 100

    def validate(self) -> None:
        """
        Basic sanity checks. The orchestrator calls this before any oracle request.
        """
        if not isinstance(self.strategy, MorningStrategy):
            raise InputError(f"Unknown strategy: {self.strategy!r}")

        if self.dwell_minutes < 0:
            raise InputError("dwell_minutes must be >= 0")

        if self.oracle_workers < 1:
            raise InputError("oracle_workers must be >= 1")

        if self.max_two_opt_passes < 1:
            raise InputError("max_two_opt_passes must be >= 1")

    def return_order(self) -> ReturnOrder:
        if self.reverse_return_order:
            return ReturnOrder.REVERSE_MORNING
        if self.prioritize_direction:
            return ReturnOrder.NORTH_TO_SOUTH
        return ReturnOrder.NEAREST_TO_SCHOOL


def default_options() -> RunOptions:
    """
    Morning only, farthest stop first, one minute per stop.
    """
    options = RunOptions()
    options.validate()
    return options


def return_trip_options(strategy: MorningStrategy = MorningStrategy.MINIMIZE_RIDE_TIME) -> RunOptions:
    """
    Example: morning and afternoon runs, drop-offs in reverse pickup order.
    """
    options = RunOptions(
        strategy=strategy,
        include_return=True,
        reverse_return_order=True,
    )
    options.validate()
    return options
