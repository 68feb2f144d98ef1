import threading
from datetime import date
from typing import Dict, Optional, Tuple

import pytest

from routing.geocoding import GeocodeResult, GeocodingError
from routing.travel import OracleError, Point, TravelEstimate
from schoolbus.models import School, Stop


class MockOracle:
    """
    Deterministic stand-in for a travel oracle.

    Pretend 0.001 deg (manhattan) = 1 minute = 1 km unless a leg is
    overridden in `legs` as (minutes, km). Records every request.
    """
    def __init__(self, legs: Optional[Dict[Tuple[Point, Point], Tuple[float, float]]] = None, fail_on=None):
        self.legs = dict(legs or {})
        self.fail_on = set(fail_on or [])
        self.calls = []
        self._lock = threading.Lock()

    def estimate(self, origin, destination, at=None):
        with self._lock:
            self.calls.append((origin, destination, at))
        if (origin, destination) in self.fail_on:
            raise OracleError(f"No route found from {origin} to {destination}")
        if (origin, destination) in self.legs:
            minutes, km = self.legs[(origin, destination)]
        else:
            minutes = km = (abs(origin[0] - destination[0]) + abs(origin[1] - destination[1])) * 1000
        return TravelEstimate(duration_minutes=minutes, distance_km=km)

    def estimate_many(self, origins, destinations, at=None):
        return [[self.estimate(o, d, at) for d in destinations] for o in origins]


class MockGeocoder:
    def __init__(self, places: Dict[str, Tuple[str, Point]]):
        self.places = places
        self.calls = []

    def geocode(self, address):
        self.calls.append(address)
        if address not in self.places:
            raise GeocodingError(address)
        formatted, location = self.places[address]
        return GeocodeResult(location=location, formatted_address=formatted)


@pytest.fixture
def service_day():
    return date(2026, 9, 1)


@pytest.fixture
def school():
    return School(
        name="Hillside School",
        location=Point(0.0, 0.0),
        arrival_time="08:00",
        departure_time="15:00",
    )


@pytest.fixture
def stops():
    """
    Five stops north/east of the school. Seats vary so weighted strategies
    have something to weigh.
    """
    return [
        Stop("1 Oak St", 4, Point(0.010, 0.000)),
        Stop("2 Elm St", 6, Point(0.020, 0.005)),
        Stop("3 Pine St", 2, Point(0.030, 0.000)),
        Stop("4 Ash St", 8, Point(0.005, 0.015)),
        Stop("5 Fir St", 3, Point(0.025, 0.020)),
    ]


@pytest.fixture
def mock_oracle():
    return MockOracle()


@pytest.fixture
def make_oracle():
    return MockOracle


@pytest.fixture
def make_geocoder():
    return MockGeocoder
