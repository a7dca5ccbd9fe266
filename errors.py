"""errors.py - Exception types shared by the pricing client, the ticket store and the routes."""

from typing import List, Optional


class TrackerError(Exception):
    """Base class for every failure the tracker raises on purpose."""


class ConfigurationError(TrackerError):
    """A required credential or environment value is absent."""


class ValidationError(TrackerError):
    """The caller omitted required search parameters. Never reaches the network."""

    def __init__(self, missing: List[str], message: str = "Missing required search parameters"):
        super().__init__(message)
        self.missing = list(missing)


class ProtocolError(TrackerError):
    """
    The pricing API answered but the envelope did not have the expected shape.
    `level` names the first missing level: response, data or data.prices_round_trip.
    """

    def __init__(self, level: str, message: Optional[str] = None):
        super().__init__(message or f"Invalid API response format: missing {level}")
        self.level = level


class UpstreamError(TrackerError):
    """Transport failure or non-2xx answer from the pricing API."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RecordError(TrackerError):
    """Failure deriving or persisting one ticket. Caught per record."""

    def __init__(self, index: int, message: str):
        super().__init__(message)
        self.index = index


class StorageUnavailable(TrackerError):
    """The ticket store cannot be reached at all."""
