"""
services/ticket_store.py

Ticket store writer:
- Derive the flat ticket record (airline codes, flight numbers, endpoints)
- Duplicate check on the identity key
- Best-effort insert, one transaction per ticket

Identity key = departure_at, return_at, outbound_flight, return_flight,
origin, destination. Price and link are not part of it, so a second
observation of the same flight pair at a different price is dropped.

No unique constraint backs the key. Two concurrent runs with overlapping
tickets can both pass the lookup and insert the same row twice.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import RecordError, StorageUnavailable
from models import UNKNOWN, Ticket
from schemas.search import FlightLeg, RoundTripPrice

logger = logging.getLogger(__name__)

DUPLICATE_KEY_FIELDS = (
    "departure_at",
    "return_at",
    "outbound_flight",
    "return_flight",
    "origin",
    "destination",
)


class Outcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass
class TicketOutcome:
    index: int
    outcome: Outcome
    ticket_id: Optional[int] = None
    reason: Optional[str] = None


@dataclass
class SaveReport:
    outcomes: List[TicketOutcome] = field(default_factory=list)

    def _count(self, outcome: Outcome) -> int:
        return sum(1 for o in self.outcomes if o.outcome == outcome)

    @property
    def new_count(self) -> int:
        return self._count(Outcome.INSERTED)

    @property
    def duplicate_count(self) -> int:
        return self._count(Outcome.DUPLICATE)

    @property
    def failed_count(self) -> int:
        return self._count(Outcome.FAILED)

    def db_stats(self) -> Dict[str, int]:
        return {"newTickets": self.new_count, "duplicates": self.duplicate_count}


# =====================================================================
# SECTION: RECORD DERIVATION
# =====================================================================

def _first_leg(ticket: RoundTripPrice, segment_index: int) -> Optional[FlightLeg]:
    segments = ticket.segments or []
    if len(segments) <= segment_index:
        return None
    legs = segments[segment_index].flight_legs or []
    return legs[0] if legs else None


def airline_code(flight_number: str) -> str:
    return flight_number[:2]


def _whole_number(value: Optional[float]) -> Optional[int]:
    return None if value is None else int(round(value))


def as_round_trip_price(raw: Any) -> RoundTripPrice:
    """Parse one raw upstream ticket. Raises pydantic ValidationError on junk."""
    if isinstance(raw, RoundTripPrice):
        return raw
    return RoundTripPrice.model_validate(raw)


def derive_ticket_fields(ticket: RoundTripPrice) -> Dict[str, Any]:
    """
    Flatten one upstream ticket into Ticket column values.
    Absent legs degrade to "Unknown" instead of failing.
    """
    outbound_leg = _first_leg(ticket, 0)
    return_leg = _first_leg(ticket, 1)

    outbound_flight = (outbound_leg.flight_number if outbound_leg else None) or UNKNOWN
    return_flight = (return_leg.flight_number if return_leg else None) or UNKNOWN

    return {
        "departure_at": ticket.departure_at,
        "return_at": ticket.return_at,
        "price": _whole_number(ticket.value),
        "trip_duration": _whole_number(ticket.trip_duration),
        "ticket_link": ticket.ticket_link,
        "origin": (outbound_leg.origin if outbound_leg else None) or UNKNOWN,
        "destination": (outbound_leg.destination if outbound_leg else None) or UNKNOWN,
        "outbound_airline": airline_code(outbound_flight),
        "outbound_flight": outbound_flight,
        "return_airline": airline_code(return_flight),
        "return_flight": return_flight,
    }


def duplicate_key(fields: Dict[str, Any]) -> Tuple[Any, ...]:
    return tuple(fields[name] for name in DUPLICATE_KEY_FIELDS)


# =====================================================================
# SECTION: STORE ACCESS
# =====================================================================

def check_store_available(db: Session) -> None:
    """Upfront probe. A failure here is fatal to the whole batch."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("[ticket_store] store probe failed: %s", e)
        try:
            db.rollback()
        except SQLAlchemyError:
            pass
        raise StorageUnavailable(f"Ticket store unreachable: {e}") from e


def find_existing(db: Session, fields: Dict[str, Any]) -> Optional[Ticket]:
    query = db.query(Ticket)
    for name in DUPLICATE_KEY_FIELDS:
        query = query.filter(getattr(Ticket, name) == fields[name])
    return query.first()


def _save_one(db: Session, index: int, raw: Any) -> TicketOutcome:
    try:
        fields = derive_ticket_fields(as_round_trip_price(raw))
    except Exception as e:
        raise RecordError(index, f"could not derive ticket record: {type(e).__name__}: {e}") from e

    for required in ("departure_at", "return_at", "price"):
        if fields[required] is None:
            raise RecordError(index, f"ticket has no {required}")

    logger.info(
        "[ticket_store] processing index=%d %s to %s, %s - %s",
        index,
        fields["outbound_flight"],
        fields["return_flight"],
        fields["departure_at"],
        fields["return_at"],
    )

    try:
        existing = find_existing(db, fields)
        if existing is not None:
            logger.info("[ticket_store] duplicate index=%d existing_id=%s", index, existing.id)
            return TicketOutcome(index=index, outcome=Outcome.DUPLICATE, ticket_id=existing.id)

        row = Ticket(created_at=datetime.utcnow(), **fields)
        db.add(row)
        db.commit()
        db.refresh(row)
    except Exception as e:
        raise RecordError(index, f"store write failed: {type(e).__name__}: {e}") from e

    logger.info("[ticket_store] inserted index=%d id=%s price=%s", index, row.id, row.price)
    return TicketOutcome(index=index, outcome=Outcome.INSERTED, ticket_id=row.id)


def save_tickets(db: Session, tickets: Sequence[Any]) -> SaveReport:
    """
    Persist every ticket not already stored. Items may be raw upstream
    dicts or parsed RoundTripPrice models.

    Best effort: a failing ticket is logged, rolled back and recorded as
    FAILED, and the run continues with the next one.
    """
    report = SaveReport()

    for index, ticket in enumerate(tickets):
        try:
            outcome = _save_one(db, index, ticket)
        except RecordError as e:
            logger.error("[ticket_store] record_failed index=%d: %s", e.index, e)
            try:
                db.rollback()
            except SQLAlchemyError as rb:
                logger.error("[ticket_store] rollback failed index=%d: %s", index, rb)
            outcome = TicketOutcome(index=index, outcome=Outcome.FAILED, reason=str(e))
        report.outcomes.append(outcome)

    logger.info(
        "[ticket_store] saved new=%d duplicates=%d failed=%d",
        report.new_count,
        report.duplicate_count,
        report.failed_count,
    )
    return report
