"""
Purpose: Error taxonomy for an optimization run.

Collaborator failures (OracleError, GeocodingError) are defined next to the
clients in routing/ and propagate through the engine unmodified.
"""


class InputError(ValueError):
    """Malformed run input or options (e.g. return trip without a departure time)."""
    pass


class CapacityOverflowError(Exception):
    """Raised under the FAIL overflow policy when no bus has room for a stop."""

    def __init__(self, unassigned):
        self.unassigned = list(unassigned)
        addresses = ", ".join(stop.address for stop in self.unassigned)
        super().__init__(f"No bus has remaining capacity for: {addresses}")
