#Purpose: Geocoding collaborator.
#Maps a free-text address to a (lat, lon) and a canonical formatted address.
#Called once per input address before the optimizer runs; never from inside the engine.

import logging
import os
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

import requests
from dotenv import load_dotenv

from .google_client import make_session
from .travel import Point

load_dotenv()
API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

logger = logging.getLogger(__name__)


class GeocodingError(Exception):
    """The address could not be resolved to a location."""

    def __init__(self, address: str, reason: str = "No results found"):
        self.address = address
        super().__init__(f"{reason} for address: {address}")


@dataclass(frozen=True)
class GeocodeResult:
    location: Point
    formatted_address: str


class Geocoder(Protocol):
    def geocode(self, address: str) -> GeocodeResult:
        ...


class GoogleGeocoder:
    """
    Google Geocoding API adapter. Takes the first result, like the Maps UI does.
    """

    def __init__(self, api_key: Optional[str] = None, timeout: int = 10, session: Optional[requests.Session] = None):
        self.api_key = api_key or API_KEY
        self.timeout = timeout
        self.session = session or make_session()

        if not self.api_key:
            raise ValueError("Google Maps API key not set. Please set GOOGLE_MAPS_API_KEY in the .env file.")

    def geocode(self, address: str) -> GeocodeResult:
        try:
            data = self.session.get(
                GEOCODE_URL,
                params={"address": address, "key": self.api_key},
                timeout=self.timeout,
            ).json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("Geocoding request for %r failed: %s", address, exc)
            raise GeocodingError(address, reason=f"Geocoding request failed ({exc})") from exc

        status = data.get("status")
        results = data.get("results") or []
        if status == "ZERO_RESULTS" or (status == "OK" and not results):
            raise GeocodingError(address)
        if status != "OK":
            raise GeocodingError(address, reason=f"Geocoding failed with status {status}")

        best = results[0]
        location = best["geometry"]["location"]
        return GeocodeResult(
            location=Point(float(location["lat"]), float(location["lng"])),
            formatted_address=best.get("formatted_address", address),
        )


def batch_geocode(geocoder: Geocoder, addresses: Sequence[str], delay_seconds: float = 0.2) -> List[GeocodeResult]:
    """
    Geocode addresses one by one, pausing between requests to stay under rate limits.
    The first failure aborts the batch.
    """
    results: List[GeocodeResult] = []
    for index, address in enumerate(addresses):
        if index and delay_seconds > 0:
            time.sleep(delay_seconds)
        results.append(geocoder.geocode(address))
    logger.debug("Geocoded %d addresses", len(results))
    return results
