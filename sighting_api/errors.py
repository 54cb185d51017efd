class SightingError(Exception):
    """Base class for errors raised by the sighting service."""


class ValidationError(SightingError):
    """Payload is missing coordinates or carries malformed/out-of-range values."""

    def __init__(self, message: str = "Invalid location"):
        super().__init__(message)
        self.message = message


class PersistenceError(SightingError):
    """The database could not be reached, written to or queried."""


class ConfigurationError(SightingError):
    """Required settings (the database connection string) are missing."""
