"""
Load a JSON run input, geocode it, optimize the bus routes and print the schedule.

Example:
    python scripts/run_optimization.py sampledata/run_input.json --strategy MINIMIZE_RIDE_TIME --return
"""
import argparse
import logging
import sys
from datetime import date

import pandas as pd

from routing import GoogleDistanceMatrixClient, GoogleGeocoder, OSRMClient, StraightLineOracle
from schoolbus import MorningStrategy, OverflowPolicy, RunOptions, optimize_routes
from schoolbus.clock import format_clock, format_duration
from schoolbus.log import setup_logging
from schoolbus.run_input import geocode_custom_start, geocode_run_input, load_run_input

logger = logging.getLogger(__name__)

ORACLES = {
    "google": GoogleDistanceMatrixClient,
    "osrm": OSRMClient,
    "straight-line": StraightLineOracle,
}


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Optimize school bus routes")
    parser.add_argument("input", help="Path to the JSON run input")
    parser.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in MorningStrategy],
        default=MorningStrategy.DISTANCE_FROM_SCHOOL.value,
        help="Morning sequencing strategy",
    )
    parser.add_argument("--return", dest="include_return", action="store_true", help="Also plan the afternoon run")
    parser.add_argument(
        "--no-reverse",
        dest="reverse_return_order",
        action="store_false",
        help="Do not simply reverse the morning order for drop-offs",
    )
    parser.add_argument(
        "--prioritize-direction",
        action="store_true",
        help="With --no-reverse: drop off north to south instead of nearest to school first",
    )
    parser.add_argument("--dwell", type=int, default=1, help="Minutes spent at each stop")
    parser.add_argument("--start-address", help="Custom origin for DISTANCE_MATRIX / NEAREST_NEIGHBOR")
    parser.add_argument("--oracle", choices=sorted(ORACLES), default="google")
    parser.add_argument(
        "--overflow",
        choices=[policy.value for policy in OverflowPolicy],
        default=OverflowPolicy.REPORT.value,
        help="What to do with stops that fit on no bus",
    )
    parser.add_argument("--workers", type=int, default=4, help="Parallel oracle requests")
    parser.add_argument("--day", type=date.fromisoformat, help="Service day (YYYY-MM-DD), today by default")
    parser.add_argument("--csv", help="Write the per-stop schedule to this CSV file")
    parser.add_argument("--log-level", default=None)
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    geocoder = GoogleGeocoder()
    run = geocode_run_input(load_run_input(args.input), geocoder)
    custom_start = geocode_custom_start(args.start_address, geocoder) if args.start_address else None

    options = RunOptions(
        strategy=MorningStrategy(args.strategy),
        custom_start=custom_start,
        include_return=args.include_return,
        reverse_return_order=args.reverse_return_order,
        prioritize_direction=args.prioritize_direction,
        dwell_minutes=args.dwell,
        overflow_policy=OverflowPolicy(args.overflow),
        oracle_workers=args.workers,
    )

    result = optimize_routes(
        run.stops,
        run.school,
        run.bus_capacities,
        oracle=ORACLES[args.oracle](),
        options=options,
        day=args.day,
    )

    print(f"\n--- {run.school.name}: arrive {run.school.arrival_time} ---")
    for route in result.routes:
        print(
            f"{route.id}: {route.seats_used}/{route.capacity} seats | "
            f"ride {format_duration(route.min_ride_time)}-{format_duration(route.max_ride_time)} | "
            f"{route.total_student_minutes:.0f} student-minutes"
        )
        for stop in route.stops:
            print(f"  {format_clock(route.morning_times[stop.address])}  {stop.address} ({stop.seats_needed})")

    print(
        f"\nTotal: {result.total_distance_km:.1f} km, {format_duration(result.total_time_minutes)}"
    )
    if result.ride_time_equity is not None:
        print(
            f"Ride time: {format_duration(result.min_ride_time)}-{format_duration(result.max_ride_time)}, "
            f"average {format_duration(result.average_ride_time)}, equity {format_duration(result.ride_time_equity)}"
        )
    if result.unassigned_stops:
        print("\nUnassigned stops (no bus has room):")
        for stop in result.unassigned_stops:
            print(f"  - {stop.address} ({stop.seats_needed})")

    if args.csv:
        pd.DataFrame(result.schedule_rows()).to_csv(args.csv, index=False)
        logger.info("Schedule written to %s", args.csv)

    return 0


if __name__ == "__main__":
    sys.exit(main())
