"""schemas/search.py - Pydantic models for search parameters, upstream tickets and API responses."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from config import DEFAULT_CURRENCY, DEFAULT_LIMIT, parse_limit


REQUIRED_SEARCH_FIELDS = (
    "origin",
    "destination",
    "departDateMin",
    "departDateMax",
    "returnDateMin",
    "returnDateMax",
)


class SearchParams(BaseModel):
    """
    Body of POST /api/search-flights.

    Every field is optional at the schema level so a missing one is reported
    as a 400 with the list of missing names instead of a framework 422.
    """
    origin: Optional[str] = None
    destination: Optional[str] = None
    departDateMin: Optional[str] = None
    departDateMax: Optional[str] = None
    returnDateMin: Optional[str] = None
    returnDateMax: Optional[str] = None
    currency: Optional[str] = DEFAULT_CURRENCY
    limit: Optional[Union[int, str]] = DEFAULT_LIMIT

    def missing_fields(self) -> List[str]:
        missing = []
        for name in REQUIRED_SEARCH_FIELDS:
            value = getattr(self, name, None)
            if value is None or not str(value).strip():
                missing.append(name)
        return missing

    def effective_currency(self) -> str:
        return (self.currency or DEFAULT_CURRENCY).strip().lower() or DEFAULT_CURRENCY

    def effective_limit(self) -> int:
        return parse_limit(self.limit)


# =====================================================================
# SECTION: UPSTREAM TICKET SHAPE (prices_round_trip items)
# Lenient: nulls and unknown fields are accepted, the writer degrades them.
# =====================================================================

class FlightLeg(BaseModel):
    model_config = ConfigDict(extra="allow")

    aircraft_code: Optional[str] = None
    flight_number: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_at: Optional[str] = None
    arrival_at: Optional[str] = None


class Segment(BaseModel):
    model_config = ConfigDict(extra="allow")

    flight_legs: Optional[List[FlightLeg]] = None


class RoundTripPrice(BaseModel):
    model_config = ConfigDict(extra="allow")

    departure_at: Optional[str] = None
    return_at: Optional[str] = None
    # Travelpayouts sends fractional prices for some currencies
    value: Optional[float] = None
    trip_duration: Optional[float] = None
    ticket_link: Optional[str] = None
    segments: Optional[List[Segment]] = None


# =====================================================================
# SECTION: API RESPONSES
# =====================================================================

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    message: str


class ApiCheckResponse(BaseModel):
    success: bool
    message: str
    timestamp: str
    environment: str


class PriceCheckResponse(BaseModel):
    success: bool
    message: str
    timestamp: str
    dbStats: Optional[Dict[str, int]] = None


class DbStats(BaseModel):
    newTickets: int
    duplicates: int


class SearchFlightsResponse(BaseModel):
    success: bool
    message: str
    tickets: List[Any]
    dbStats: DbStats
