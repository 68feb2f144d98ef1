"""
Purpose: Turn a raw run input (JSON document) into engine models.
What it does:
- validates the document shape (InputError on anything malformed)
- geocodes the school and every stop address (GeocodingError propagates)
- builds School, Stop list and bus capacities ready for optimize_routes

Expected document:

{
  "school": {"name": "...", "address": "...", "arrivalTime": "08:00", "departureTime": "15:00"},
  "stops": [{"address": "...", "seatsNeeded": 4}, ...],
  "busCapacities": [20, 14]
}

"numKids" is accepted as an alias of "seatsNeeded".
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from routing.geocoding import Geocoder, batch_geocode

from .clock import parse_clock
from .errors import InputError
from .models import CustomStart, School, Stop

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StopRequest:
    address: str
    seats_needed: int


@dataclass(frozen=True)
class RunInput:
    """
    Validated but not yet geocoded run input.
    """
    school_name: str
    school_address: str
    arrival_time: str
    departure_time: Optional[str]
    stops: List[StopRequest]
    bus_capacities: List[int]


@dataclass(frozen=True)
class GeocodedRun:
    school: School
    stops: List[Stop]
    bus_capacities: List[int]


def parse_run_input(document: Mapping[str, Any]) -> RunInput:
    if not isinstance(document, Mapping):
        raise InputError("Run input must be a JSON object")

    school = document.get("school")
    if not isinstance(school, Mapping):
        raise InputError("Run input needs a 'school' object")

    name = _required_text(school, "name", "school")
    address = _required_text(school, "address", "school")
    arrival_time = _required_text(school, "arrivalTime", "school")
    parse_clock(arrival_time)

    departure_time = school.get("departureTime") or None
    if departure_time is not None:
        if not isinstance(departure_time, str):
            raise InputError("school.departureTime must be an HH:MM string")
        parse_clock(departure_time)

    raw_stops = document.get("stops")
    if not isinstance(raw_stops, list):
        raise InputError("Run input needs a 'stops' list")

    stops: List[StopRequest] = []
    for index, raw in enumerate(raw_stops):
        if not isinstance(raw, Mapping):
            raise InputError(f"stops[{index}] must be an object")
        stop_address = _required_text(raw, "address", f"stops[{index}]")
        seats = raw.get("seatsNeeded", raw.get("numKids"))
        if isinstance(seats, bool) or not isinstance(seats, int) or seats < 0:
            raise InputError(f"stops[{index}].seatsNeeded must be a non-negative integer")
        stops.append(StopRequest(address=stop_address, seats_needed=seats))

    capacities = document.get("busCapacities")
    if not isinstance(capacities, list) or not capacities:
        raise InputError("Run input needs a non-empty 'busCapacities' list")
    for capacity in capacities:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise InputError(f"Bus capacities must be positive integers, got {capacity!r}")

    return RunInput(
        school_name=name,
        school_address=address,
        arrival_time=arrival_time,
        departure_time=departure_time,
        stops=stops,
        bus_capacities=list(capacities),
    )


def load_run_input(path: Union[str, Path]) -> RunInput:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            document = json.load(handle)
    except json.JSONDecodeError as exc:
        raise InputError(f"{path} is not valid JSON: {exc}") from exc
    return parse_run_input(document)


def geocode_run_input(run_input: RunInput, geocoder: Geocoder, *, delay_seconds: float = 0.2) -> GeocodedRun:
    """
    Resolve every address. Stops take the geocoder's formatted address as
    their identity, so two inputs resolving to the same place are rejected.
    """
    school_result = geocoder.geocode(run_input.school_address)
    school = School(
        name=run_input.school_name,
        location=school_result.location,
        arrival_time=run_input.arrival_time,
        departure_time=run_input.departure_time,
    )

    results = batch_geocode(geocoder, [stop.address for stop in run_input.stops], delay_seconds=delay_seconds)

    stops: List[Stop] = []
    seen: Dict[str, str] = {}
    for request, result in zip(run_input.stops, results):
        if result.formatted_address in seen:
            raise InputError(
                f"Stops {seen[result.formatted_address]!r} and {request.address!r} "
                f"resolve to the same address {result.formatted_address!r}"
            )
        seen[result.formatted_address] = request.address
        stops.append(Stop(address=result.formatted_address, seats_needed=request.seats_needed, location=result.location))

    logger.info("Geocoded school and %d stops", len(stops))
    return GeocodedRun(school=school, stops=stops, bus_capacities=list(run_input.bus_capacities))


def geocode_custom_start(address: str, geocoder: Geocoder) -> CustomStart:
    result = geocoder.geocode(address)
    return CustomStart(address=result.formatted_address, location=result.location)


def _required_text(section: Mapping[str, Any], key: str, where: str) -> str:
    value = section.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InputError(f"{where}.{key} is required")
    return value.strip()
