"""
School bus route optimization engine.

Public API:
- optimize_routes / RouteOptimizer
- RunOptions, default_options, return_trip_options
- models (Stop, School, CustomStart, BusRoute, OptimizationResult, enums)
- errors (InputError, CapacityOverflowError)
"""

from .engine import RouteOptimizer, optimize_routes
from .errors import CapacityOverflowError, InputError
from .models import (
    BusRoute,
    CustomStart,
    MorningStrategy,
    OptimizationResult,
    OverflowPolicy,
    Point,
    ReturnOrder,
    RouteSegment,
    School,
    Stop,
)
from .policy import RunOptions, default_options, return_trip_options
from .state import RunState, RunStateError

__all__ = [
    "optimize_routes",
    "RouteOptimizer",
    "RunOptions",
    "default_options",
    "return_trip_options",
    "BusRoute",
    "CustomStart",
    "MorningStrategy",
    "OptimizationResult",
    "OverflowPolicy",
    "Point",
    "ReturnOrder",
    "RouteSegment",
    "School",
    "Stop",
    "InputError",
    "CapacityOverflowError",
    "RunState",
    "RunStateError",
]
