# =======================================
# SECTION: IMPORTS AND BASE
# =======================================

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String

from db import Base


UNKNOWN = "Unknown"


# =======================================
# SECTION: TICKET MODEL
# =======================================

class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)

    # ISO 8601 strings exactly as the pricing API returned them
    departure_at = Column(String(40), nullable=False)
    return_at = Column(String(40), nullable=False)

    price = Column(Integer, nullable=False)
    trip_duration = Column(Integer, nullable=True)
    ticket_link = Column(String(2048), nullable=True)

    origin = Column(String(10), nullable=False, default=UNKNOWN)
    destination = Column(String(10), nullable=False, default=UNKNOWN)

    # Airline = first two characters of the flight number ("Un" for "Unknown")
    outbound_airline = Column(String(10), nullable=False)
    outbound_flight = Column(String(20), nullable=False, default=UNKNOWN)
    return_airline = Column(String(10), nullable=False)
    return_flight = Column(String(20), nullable=False, default=UNKNOWN)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Non-unique lookup index for the duplicate check
    __table_args__ = (
        Index(
            "ix_tickets_duplicate_key",
            "departure_at",
            "return_at",
            "outbound_flight",
            "return_flight",
            "origin",
            "destination",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Ticket id={self.id} {self.origin}->{self.destination} "
            f"{self.outbound_flight}/{self.return_flight} price={self.price}>"
        )
