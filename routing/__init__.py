#Marks routing as a package.
#Re-exports the public collaborator APIs (oracles, geocoder, fan-out helper)
#so the engine imports from routing without knowing internal file names.
#No business logic.

from .travel import OracleError, Point, TravelEstimate, TravelOracle
from .osrm_client import OSRMClient
from .google_client import GoogleDistanceMatrixClient
from .straight_line import StraightLineOracle
from .geocoding import GeocodeResult, Geocoder, GeocodingError, GoogleGeocoder, batch_geocode
from .matrix_adapter import CachingOracle, estimate_pairs

__all__ = [
    "OracleError",
    "Point",
    "TravelEstimate",
    "TravelOracle",
    "OSRMClient",
    "GoogleDistanceMatrixClient",
    "StraightLineOracle",
    "GeocodeResult",
    "Geocoder",
    "GeocodingError",
    "GoogleGeocoder",
    "batch_geocode",
    "CachingOracle",
    "estimate_pairs",
]
