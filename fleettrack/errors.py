"""
Domain errors raised by the service layer.

Services never decide the transport representation; the API layer maps each
kind to a status code in ``main.register_error_handlers``.
"""


class FleetTrackError(Exception):
    """Base class for expected, caller-facing failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FleetTrackError):
    """A referenced entity does not exist."""


class ConflictError(FleetTrackError):
    """A precondition on current state was violated (unavailable item, duplicate key, delete while assigned)."""


class ValidationError(FleetTrackError):
    """A required field is missing or a value is unusable."""
