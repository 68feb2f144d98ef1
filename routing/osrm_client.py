#Purpose: The OSRM "adapter/client".
#Sole responsibility: talk to OSRM via HTTP and return normalized TravelEstimates.
#Encapsulates OSRM-specific details:
#coordinate formatting (lon,lat)
#URL construction (/route, /table)
#error handling (non-Ok codes, unroutable pairs)
#unit conversion (seconds -> minutes, meters -> km)
#It should not contain sequencing or scheduling rules.
#Note: OSRM has no traffic model, the target instant is accepted and ignored.

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import requests
from dotenv import load_dotenv

from .travel import OracleError, Point, TravelEstimate

# Read OSRM settings from environment
# Example in .env:
# OSRM_BASE_URL=http://router.project-osrm.org
load_dotenv()
BASE_URL = os.getenv("OSRM_BASE_URL")
PROFILE = os.getenv("OSRM_PROFILE", "driving")

logger = logging.getLogger(__name__)


class OSRMClient:
    """
    OSRM Adapter / Client

    Sole responsibility:
    - Talk to OSRM via HTTP
    - Convert internal (lat, lon) -> OSRM (lon,lat)
    - Return normalized outputs (minutes / kilometers)

    """
    def __init__(self, base_url: Optional[str] = None, profile: str = PROFILE, timeout: int = 5):
        self.base_url = base_url or BASE_URL
        self.timeout = timeout #seconds to wait for OSRM before giving up
        self.profile = profile #the mode of transportation (driving, walking, cycling)

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Please set OSRM_BASE_URL in the .env file.")

    #----------------
    # Internal helpers
    #----------------
    def format_coordinates(self, coords: Sequence[Point]) -> str:
        """Convert list of (lat, lon) to OSRM format 'lon,lat;lon,lat;...'"""
        return ';'.join([f"{lon},{lat}" for lat, lon in coords])

    def _get(self, url: str, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("OSRM request to %s failed: %s", url, exc)
            raise OracleError(f"OSRM request failed: {exc}") from exc

        #validating OSRM response
        if data.get("code") != "Ok":
            raise OracleError(f"OSRM error: {data.get('message', data.get('code', 'Unknown error'))}")
        return data

    #----------------
    # route service (single pair)
    #----------------
    def estimate(self, origin: Point, destination: Point, at: Optional[datetime] = None) -> TravelEstimate:
        """
        Calls the OSRM /route endpoint for one directed leg.
        """
        coordinates = self.format_coordinates([origin, destination])
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinates}"

        data = self._get(url, {"overview": "false"}) # we don't need the geometry of the route

        routes = data.get("routes") or []
        if not routes:
            raise OracleError(f"No route found from {origin} to {destination}")
        route = routes[0] #take the first route (OSRM may return alternatives)

        return TravelEstimate(
            duration_minutes=route["duration"] / 60,
            distance_km=route["distance"] / 1000,
        )

    #----------------
    # table service (batch routing)
    #----------------
    def estimate_many(
        self,
        origins: Sequence[Point],
        destinations: Sequence[Point],
        at: Optional[datetime] = None,
    ) -> List[List[TravelEstimate]]:
        """
        Calls the OSRM /table endpoint.

        Returns a len(origins) x len(destinations) matrix of estimates.
        An unroutable cell (null in the OSRM answer) raises OracleError.
        """
        if not origins or not destinations:
            return [[] for _ in origins]

        origins = list(origins)
        destinations = list(destinations)

        # OSRM limits points. If origins == destinations (NxN matrix),
        # we should not duplicate them in the URL.
        if origins == destinations:
            coordinates = self.format_coordinates(origins)
            params = {"annotations": "duration,distance"}
        else:
            coordinates = self.format_coordinates(origins + destinations)
            params = {
                "sources": ";".join(str(i) for i in range(len(origins))),
                "destinations": ";".join(
                    str(i) for i in range(len(origins), len(origins) + len(destinations))
                ),
                "annotations": "duration,distance",
            }

        url = f"{self.base_url}/table/v1/{self.profile}/{coordinates}"
        data = self._get(url, params)

        durations = data["durations"]
        distances = data["distances"]

        matrix: List[List[TravelEstimate]] = []
        for row_index, origin in enumerate(origins):
            row: List[TravelEstimate] = []
            for col_index, destination in enumerate(destinations):
                duration = durations[row_index][col_index]
                distance = distances[row_index][col_index]
                if duration is None or distance is None:
                    raise OracleError(f"No route found from {origin} to {destination}")
                row.append(TravelEstimate(duration_minutes=duration / 60, distance_km=distance / 1000))
            matrix.append(row)
        return matrix
