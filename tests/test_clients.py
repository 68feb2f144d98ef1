import threading
import time
from datetime import datetime

import pytest
import requests

from routing import (
    CachingOracle,
    GoogleDistanceMatrixClient,
    GoogleGeocoder,
    OracleError,
    OSRMClient,
    Point,
    StraightLineOracle,
    batch_geocode,
    estimate_pairs,
)
from routing.geocoding import GeocodingError
from routing.google_client import next_valid_departure
from routing.travel import TravelEstimate


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Stands in for requests.Session; returns canned payloads in order."""
    def __init__(self, *payloads):
        self.payloads = list(payloads)
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        payload = self.payloads.pop(0)
        if isinstance(payload, requests.RequestException):
            raise payload
        return FakeResponse(payload)


SCHOOL = Point(-17.8292, 31.0522)
STOP = Point(-17.8000, 31.0400)


# -------------------------
# OSRM
# -------------------------

@pytest.fixture
def osrm_get(monkeypatch):
    calls = []

    def install(payload):
        def fake_get(url, params=None, timeout=None):
            calls.append((url, params))
            if isinstance(payload, requests.RequestException):
                raise payload
            return FakeResponse(payload)

        monkeypatch.setattr("routing.osrm_client.requests.get", fake_get)
        return calls

    return install


def test_osrm_route_normalizes_units(osrm_get):
    calls = osrm_get({"code": "Ok", "routes": [{"duration": 900, "distance": 5000}]})
    client = OSRMClient(base_url="http://osrm.local")

    estimate = client.estimate(STOP, SCHOOL)

    assert estimate.duration_minutes == pytest.approx(15)
    assert estimate.distance_km == pytest.approx(5)
    url, _ = calls[0]
    # OSRM wants lon,lat
    assert url == "http://osrm.local/route/v1/driving/31.04,-17.8;31.0522,-17.8292"


def test_osrm_table(osrm_get):
    calls = osrm_get(
        {
            "code": "Ok",
            "durations": [[600, 1200]],
            "distances": [[3000, 7000]],
        }
    )
    client = OSRMClient(base_url="http://osrm.local")

    (row,) = client.estimate_many([STOP], [SCHOOL, Point(-17.85, 31.06)])

    assert [cell.duration_minutes for cell in row] == pytest.approx([10, 20])
    assert [cell.distance_km for cell in row] == pytest.approx([3, 7])
    _, params = calls[0]
    assert params["sources"] == "0"
    assert params["destinations"] == "1;2"


def test_osrm_unroutable_cell_raises(osrm_get):
    osrm_get({"code": "Ok", "durations": [[None]], "distances": [[None]]})
    client = OSRMClient(base_url="http://osrm.local")

    with pytest.raises(OracleError):
        client.estimate_many([STOP], [SCHOOL])


@pytest.mark.parametrize(
    "payload",
    [
        {"code": "NoRoute", "message": "Impossible route between points"},
        {"code": "Ok", "routes": []},
        requests.ConnectionError("refused"),
    ],
)
def test_osrm_failures_become_oracle_errors(osrm_get, payload):
    osrm_get(payload)
    client = OSRMClient(base_url="http://osrm.local")

    with pytest.raises(OracleError):
        client.estimate(STOP, SCHOOL)


# -------------------------
# Google Distance Matrix
# -------------------------

def element(seconds, meters, traffic_seconds=None):
    cell = {"status": "OK", "duration": {"value": seconds}, "distance": {"value": meters}}
    if traffic_seconds is not None:
        cell["duration_in_traffic"] = {"value": traffic_seconds}
    return cell


def test_google_prefers_duration_in_traffic():
    session = FakeSession({"status": "OK", "rows": [{"elements": [element(600, 4000, traffic_seconds=900)]}]})
    client = GoogleDistanceMatrixClient(api_key="test-key", session=session)

    estimate = client.estimate(STOP, SCHOOL, datetime(2026, 9, 1, 7, 45))

    assert estimate.duration_minutes == pytest.approx(15)
    assert estimate.distance_km == pytest.approx(4)
    _, params = session.requests[0]
    assert params["origins"] == "-17.8,31.04"
    assert params["traffic_model"] == "best_guess"
    assert params["key"] == "test-key"


def test_google_matrix_shape():
    session = FakeSession(
        {
            "status": "OK",
            "rows": [
                {"elements": [element(60, 1000), element(120, 2000)]},
                {"elements": [element(180, 3000), element(240, 4000)]},
            ],
        }
    )
    client = GoogleDistanceMatrixClient(api_key="test-key", session=session)

    matrix = client.estimate_many([STOP, SCHOOL], [SCHOOL, STOP])

    assert [[cell.duration_minutes for cell in row] for row in matrix] == [[1, 2], [3, 4]]


@pytest.mark.parametrize(
    "payload",
    [
        {"status": "REQUEST_DENIED", "error_message": "The provided API key is invalid."},
        {"status": "OK", "rows": [{"elements": [{"status": "ZERO_RESULTS"}]}]},
        {"status": "OK", "rows": []},
        requests.Timeout("slow"),
    ],
)
def test_google_failures_become_oracle_errors(payload):
    client = GoogleDistanceMatrixClient(api_key="test-key", session=FakeSession(payload))

    with pytest.raises(OracleError):
        client.estimate(STOP, SCHOOL)


def test_google_gives_each_worker_thread_its_own_session(monkeypatch):
    created = []

    def fake_make_session():
        session = FakeSession(*[{"status": "OK", "rows": [{"elements": [element(60, 1000)]}]}] * 2)
        created.append(session)
        return session

    monkeypatch.setattr("routing.google_client.make_session", fake_make_session)
    client = GoogleDistanceMatrixClient(api_key="test-key")

    client.estimate(STOP, SCHOOL)
    client.estimate(STOP, SCHOOL)
    assert len(created) == 1

    worker = threading.Thread(target=client.estimate, args=(STOP, SCHOOL))
    worker.start()
    worker.join()

    assert len(created) == 2
    assert [len(session.requests) for session in created] == [2, 1]


def test_google_requires_api_key(monkeypatch):
    monkeypatch.setattr("routing.google_client.API_KEY", None)
    with pytest.raises(ValueError):
        GoogleDistanceMatrixClient(session=FakeSession())


def test_next_valid_departure():
    now = datetime(2026, 9, 1, 9, 0)

    assert next_valid_departure(datetime(2026, 1, 1, 15, 0), now) == datetime(2026, 9, 1, 15, 0)
    assert next_valid_departure(datetime(2026, 1, 1, 7, 45), now) == datetime(2026, 9, 2, 7, 45)


def test_future_departure_keeps_its_service_day():
    now = datetime(2026, 10, 18, 12, 0)

    assert next_valid_departure(datetime(2027, 1, 4, 8, 0), now) == datetime(2027, 1, 4, 8, 0)
    # later today stays today
    assert next_valid_departure(datetime(2026, 10, 18, 15, 0), now) == datetime(2026, 10, 18, 15, 0)


def test_google_sends_the_requested_service_day():
    session = FakeSession({"status": "OK", "rows": [{"elements": [element(600, 4000)]}]})
    client = GoogleDistanceMatrixClient(api_key="test-key", session=session)
    monday = datetime(2099, 1, 5, 7, 45)

    client.estimate(STOP, SCHOOL, monday)

    _, params = session.requests[0]
    assert params["departure_time"] == str(int(monday.timestamp()))


def test_google_without_instant_asks_for_now():
    session = FakeSession({"status": "OK", "rows": [{"elements": [element(600, 4000)]}]})
    client = GoogleDistanceMatrixClient(api_key="test-key", session=session)

    client.estimate(STOP, SCHOOL)

    _, params = session.requests[0]
    assert params["departure_time"] == "now"


# -------------------------
# Geocoding
# -------------------------

def test_google_geocoder_takes_first_result():
    session = FakeSession(
        {
            "status": "OK",
            "results": [
                {"formatted_address": "1 Oak St, Springfield", "geometry": {"location": {"lat": 1.5, "lng": 2.5}}},
                {"formatted_address": "1 Oak Ave, Springfield", "geometry": {"location": {"lat": 9.0, "lng": 9.0}}},
            ],
        }
    )
    geocoder = GoogleGeocoder(api_key="test-key", session=session)

    result = geocoder.geocode("1 oak st")

    assert result.location == Point(1.5, 2.5)
    assert result.formatted_address == "1 Oak St, Springfield"


@pytest.mark.parametrize(
    "payload",
    [
        {"status": "ZERO_RESULTS", "results": []},
        {"status": "OVER_QUERY_LIMIT"},
        requests.ConnectionError("offline"),
    ],
)
def test_google_geocoder_failures(payload):
    geocoder = GoogleGeocoder(api_key="test-key", session=FakeSession(payload))

    with pytest.raises(GeocodingError) as excinfo:
        geocoder.geocode("nowhere")
    assert excinfo.value.address == "nowhere"


def test_batch_geocode_pauses_between_requests(monkeypatch, make_geocoder):
    sleeps = []
    monkeypatch.setattr("routing.geocoding.time.sleep", sleeps.append)
    geocoder = make_geocoder({name: (name.upper(), Point(0.0, 0.0)) for name in ("a", "b", "c")})

    results = batch_geocode(geocoder, ["a", "b", "c"], delay_seconds=0.5)

    assert [result.formatted_address for result in results] == ["A", "B", "C"]
    assert sleeps == [0.5, 0.5]


# -------------------------
# Straight line
# -------------------------

def test_straight_line_oracle():
    oracle = StraightLineOracle(avg_speed_kmh=30, detour_factor=1.0)

    # one degree of latitude is ~111 km
    estimate = oracle.estimate(Point(0.0, 0.0), Point(1.0, 0.0))

    assert estimate.distance_km == pytest.approx(111.2, rel=1e-2)
    assert estimate.duration_minutes == pytest.approx(estimate.distance_km * 2)
    assert oracle.estimate(STOP, STOP).distance_km == 0


def test_straight_line_rejects_bad_settings():
    with pytest.raises(ValueError):
        StraightLineOracle(avg_speed_kmh=0)
    with pytest.raises(ValueError):
        StraightLineOracle(detour_factor=0.5)


# -------------------------
# Caching and fan-out
# -------------------------

def test_caching_oracle_reuses_answers(mock_oracle):
    at = datetime(2026, 9, 1, 8, 0)
    oracle = CachingOracle(mock_oracle)

    first = oracle.estimate(STOP, SCHOOL, at)
    second = oracle.estimate(STOP, SCHOOL, at)
    oracle.estimate(STOP, SCHOOL, datetime(2026, 9, 1, 7, 30))

    assert first == second
    assert oracle.misses == 2
    assert len(mock_oracle.calls) == 2


def test_caching_oracle_fills_matrix_once(mock_oracle):
    oracle = CachingOracle(mock_oracle)
    oracle.estimate(STOP, SCHOOL)

    oracle.estimate_many([STOP, SCHOOL], [SCHOOL, STOP])
    oracle.estimate_many([STOP, SCHOOL], [SCHOOL, STOP])

    assert len(mock_oracle.calls) == 1 + 4


class SlowOracle:
    """Every request takes a while, so parallel callers overlap."""
    def __init__(self, fail=False):
        self.lock = threading.Lock()
        self.requests = 0
        self.fail = fail

    def estimate(self, origin, destination, at=None):
        with self.lock:
            self.requests += 1
        time.sleep(0.05)
        if self.fail:
            raise OracleError("No route found")
        return TravelEstimate(duration_minutes=10, distance_km=4)

    def estimate_many(self, origins, destinations, at=None):
        return [[self.estimate(o, d, at) for d in destinations] for o in origins]


def test_caching_oracle_requests_each_leg_once_across_workers():
    slow = SlowOracle()
    oracle = CachingOracle(slow)
    pairs = [(STOP, SCHOOL)] * 8 + [(SCHOOL, STOP)] * 8

    estimates = estimate_pairs(oracle, pairs, max_workers=8)

    assert len(estimates) == 16
    assert all(estimate.duration_minutes == 10 for estimate in estimates)
    assert slow.requests == 2
    assert oracle.misses == 2


def test_caching_oracle_counts_every_distinct_leg(make_oracle):
    inner = make_oracle()
    oracle = CachingOracle(inner)
    pairs = [(Point(0.001 * i, 0.0), SCHOOL) for i in range(40)]

    estimate_pairs(oracle, pairs, max_workers=8)

    assert oracle.misses == 40
    assert len(inner.calls) == 40


def test_caching_oracle_does_not_cache_failures():
    slow = SlowOracle(fail=True)
    oracle = CachingOracle(slow)

    with pytest.raises(OracleError):
        estimate_pairs(oracle, [(STOP, SCHOOL)] * 4, max_workers=4)

    slow.fail = False
    assert oracle.estimate(STOP, SCHOOL).duration_minutes == 10


class SlowFirstOracle:
    """Earlier requests finish later, so completion order is reversed."""
    def __init__(self):
        self.lock = threading.Lock()
        self.started = 0

    def estimate(self, origin, destination, at=None):
        with self.lock:
            self.started += 1
        time.sleep(0.05 * (5 - origin.lat))
        return TravelEstimate(duration_minutes=origin.lat, distance_km=origin.lat)

    def estimate_many(self, origins, destinations, at=None):
        return [[self.estimate(o, d, at) for d in destinations] for o in origins]


def test_estimate_pairs_keeps_request_order():
    oracle = SlowFirstOracle()
    pairs = [(Point(float(i), 0.0), SCHOOL) for i in range(5)]

    estimates = estimate_pairs(oracle, pairs, max_workers=5)

    assert [estimate.duration_minutes for estimate in estimates] == [0, 1, 2, 3, 4]
    assert oracle.started == 5


def test_estimate_pairs_propagates_failure(make_oracle):
    pairs = [(STOP, SCHOOL), (SCHOOL, STOP)]
    oracle = make_oracle(fail_on=[(SCHOOL, STOP)])

    with pytest.raises(OracleError):
        estimate_pairs(oracle, pairs, max_workers=2)

    assert estimate_pairs(oracle, [], max_workers=2) == []
