"""
services/price_check.py

The fetch-then-store pipeline used by the HTTP routes and the CLI:

  search params -> pricing client -> store probe -> ticket store writer -> summary

No retries, no scheduling. One call runs one search to completion.
"""

import logging
from dataclasses import dataclass
from typing import Any, List

from sqlalchemy.orm import Session

from config import (
    PRICE_CHECK_CURRENCY,
    PRICE_CHECK_DEPART_DATE_MAX,
    PRICE_CHECK_DEPART_DATE_MIN,
    PRICE_CHECK_DESTINATION,
    PRICE_CHECK_LIMIT,
    PRICE_CHECK_ORIGIN,
    PRICE_CHECK_RETURN_DATE_MAX,
    PRICE_CHECK_RETURN_DATE_MIN,
)
from providers.travelpayouts import fetch_round_trip_prices, full_ticket_url
from schemas.search import SearchParams
from services.ticket_store import SaveReport, check_store_available, save_tickets

logger = logging.getLogger(__name__)


@dataclass
class SearchOutcome:
    tickets: List[Any]
    report: SaveReport

    def tickets_for_client(self) -> List[Any]:
        """
        Every upstream ticket as received, whether or not it was stored.
        String links are made absolute.
        """
        out = []
        for raw in self.tickets:
            if isinstance(raw, dict) and isinstance(raw.get("ticket_link"), str):
                raw = {**raw, "ticket_link": full_ticket_url(raw["ticket_link"])}
            out.append(raw)
        return out

    def summary_message(self) -> str:
        return f"Found {len(self.tickets)} flights (Saved {self.report.new_count} new tickets to database)"


def default_price_check_params() -> SearchParams:
    return SearchParams(
        origin=PRICE_CHECK_ORIGIN,
        destination=PRICE_CHECK_DESTINATION,
        departDateMin=PRICE_CHECK_DEPART_DATE_MIN,
        departDateMax=PRICE_CHECK_DEPART_DATE_MAX,
        returnDateMin=PRICE_CHECK_RETURN_DATE_MIN,
        returnDateMax=PRICE_CHECK_RETURN_DATE_MAX,
        currency=PRICE_CHECK_CURRENCY,
        limit=PRICE_CHECK_LIMIT,
    )


def search_and_store(db: Session, params: SearchParams) -> SearchOutcome:
    """
    Run one search and persist the new tickets.
    Raises ValidationError, ConfigurationError, UpstreamError, ProtocolError
    or StorageUnavailable; per-ticket failures only show up in the report.
    """
    tickets = fetch_round_trip_prices(params)
    logger.info("[price_check] found %d tickets in API response", len(tickets))

    check_store_available(db)
    report = save_tickets(db, tickets)

    logger.info(
        "[price_check] saved %d new tickets, skipped %d duplicates, failed %d",
        report.new_count,
        report.duplicate_count,
        report.failed_count,
    )
    return SearchOutcome(tickets=tickets, report=report)


def run_price_check(db: Session) -> SearchOutcome:
    params = default_price_check_params()
    logger.info(
        "[price_check] manual run origin=%s dest=%s",
        params.origin,
        params.destination,
    )
    return search_and_store(db, params)
