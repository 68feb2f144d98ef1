#Purpose: Traffic-aware travel oracle backed by the Google Distance Matrix API.
#Typical responsibilities:
#build origins/destinations strings ("lat,lng|lat,lng")
#pass departure_time + traffic_model=best_guess so estimates follow time-of-day traffic
#prefer duration_in_traffic over the free-flow duration
#normalize seconds -> minutes, meters -> km
#Retry/backoff for transient HTTP failures is handled by the session adapter, never by the engine.

import logging
import os
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

import requests
from dotenv import load_dotenv
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .travel import OracleError, Point, TravelEstimate

load_dotenv()
API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

logger = logging.getLogger(__name__)


def make_session(total_retries: int = 3, backoff_factor: float = 0.5) -> requests.Session:
    """
    requests.Session that retries idempotent GETs on 429/5xx.
    """
    session = requests.Session()
    retry = Retry(
        total=total_retries,
        backoff_factor=backoff_factor,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset(["GET"]),
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=20)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def next_valid_departure(at: datetime, now: Optional[datetime] = None) -> datetime:
    """
    Google rejects departure times in the past. A future instant is sent
    as is, so a later service day keeps its own traffic. A past instant keeps
    its clock time and moves to the next occurrence after `now`.
    """
    now = now or datetime.now()
    if at >= now:
        return at

    target = now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    if target < now:
        target += timedelta(days=1)
    return target


class GoogleDistanceMatrixClient:
    """
    Google Distance Matrix adapter.

    requests.Session is not documented as thread-safe and the engine fans
    requests out over worker threads, so each thread gets its own retrying
    session. A session passed in explicitly is used as is by every thread.
    """

    def __init__(self, api_key: Optional[str] = None, timeout: int = 10, session: Optional[requests.Session] = None):
        self.api_key = api_key or API_KEY
        self.timeout = timeout
        self._shared_session = session
        self._local = threading.local()

        if not self.api_key:
            raise ValueError("Google Maps API key not set. Please set GOOGLE_MAPS_API_KEY in the .env file.")

    @property
    def session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = make_session()
        return session

    @staticmethod
    def format_points(points: Sequence[Point]) -> str:
        return "|".join(f"{lat},{lon}" for lat, lon in points)

    def estimate(self, origin: Point, destination: Point, at: Optional[datetime] = None) -> TravelEstimate:
        return self.estimate_many([origin], [destination], at)[0][0]

    def estimate_many(
        self,
        origins: Sequence[Point],
        destinations: Sequence[Point],
        at: Optional[datetime] = None,
    ) -> List[List[TravelEstimate]]:
        """
        One Distance Matrix request for origins x destinations.

        Any element without status OK aborts with OracleError: a partial matrix
        would silently corrupt the schedule.
        """
        if not origins or not destinations:
            return [[] for _ in origins]

        departure = str(int(next_valid_departure(at).timestamp())) if at else "now"
        params = {
            "origins": self.format_points(origins),
            "destinations": self.format_points(destinations),
            "mode": "driving",
            "departure_time": departure,
            "traffic_model": "best_guess",
            "key": self.api_key,
        }
        data = self._get(params)

        rows = data.get("rows") or []
        if len(rows) != len(origins):
            raise OracleError("No route found: Distance Matrix returned an incomplete table")

        matrix: List[List[TravelEstimate]] = []
        for row_index, row in enumerate(rows):
            elements = row.get("elements") or []
            if len(elements) != len(destinations):
                raise OracleError("No route found: Distance Matrix returned an incomplete row")
            estimates = []
            for col_index, element in enumerate(elements):
                if element.get("status") != "OK":
                    raise OracleError(
                        f"Route calculation failed: {element.get('status')} "
                        f"({origins[row_index]} -> {destinations[col_index]})"
                    )
                duration = element.get("duration_in_traffic") or element["duration"]
                estimates.append(
                    TravelEstimate(
                        duration_minutes=duration["value"] / 60,
                        distance_km=element["distance"]["value"] / 1000,
                    )
                )
            matrix.append(estimates)
        return matrix

    def _get(self, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = self.session.get(DISTANCE_MATRIX_URL, params=params, timeout=self.timeout)
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("Distance Matrix request failed: %s", exc)
            raise OracleError(f"Distance Matrix request failed: {exc}") from exc

        if data.get("status") != "OK":
            raise OracleError(
                f"Distance Matrix error: {data.get('status')} {data.get('error_message', '')}".strip()
            )
        return data
