"""
providers/travelpayouts.py

Travelpayouts GraphQL integration (prices_round_trip).
- One POST per search, API key in the X-Access-token header
- Low-cost carriers are always excluded, results sorted by ascending price
- Ticket links come back as Aviasales path fragments, see full_ticket_url()
- This module never touches the ticket store
"""

import json
import logging
from typing import Any, List, Optional, Tuple

import requests

from config import (
    AVIASALES_BASE_URL,
    TRAVELPAYOUTS_GRAPHQL_URL,
    TRAVELPAYOUTS_TIMEOUT_SECONDS,
    get_api_token,
)
from errors import ProtocolError, UpstreamError, ValidationError
from schemas.search import SearchParams

logger = logging.getLogger(__name__)

LEVEL_BODY = "response"
LEVEL_DATA = "data"
LEVEL_PRICES = "data.prices_round_trip"

_TICKET_FIELDS = """
    departure_at
    return_at
    value
    trip_duration
    ticket_link
    segments {
      flight_legs {
        aircraft_code
        flight_number
        origin
        destination
        departure_at
        arrival_at
      }
    }"""


# =====================================================================
# SECTION: QUERY BUILDER
# =====================================================================

def _gql_string(value: Any) -> str:
    # GraphQL string literals share JSON's escaping rules
    return json.dumps(str(value).strip())


def build_round_trip_query(params: SearchParams) -> str:
    """
    Build the fixed-shape prices_round_trip document.
    Caller values are always emitted as escaped string literals; the limit is an int.
    """
    return (
        "{\n"
        "  prices_round_trip(\n"
        "    params: {\n"
        f"      origin: {_gql_string(params.origin)}\n"
        f"      destination: {_gql_string(params.destination)}\n"
        f"      depart_date_min: {_gql_string(params.departDateMin)}\n"
        f"      depart_date_max: {_gql_string(params.departDateMax)}\n"
        f"      return_date_min: {_gql_string(params.returnDateMin)}\n"
        f"      return_date_max: {_gql_string(params.returnDateMax)}\n"
        "      no_lowcost: true\n"
        "    }\n"
        "    paging: {\n"
        f"      limit: {int(params.effective_limit())}\n"
        "      offset: 0\n"
        "    }\n"
        "    sorting: VALUE_ASC\n"
        f"    currency: {_gql_string(params.effective_currency())}\n"
        f"  ) {{{_TICKET_FIELDS}\n"
        "  }\n"
        "}"
    )


# =====================================================================
# SECTION: RESPONSE ENVELOPE
# =====================================================================

def extract_prices(body: Any) -> List[Any]:
    """
    Walk {data: {prices_round_trip: [...]}} one level at a time.
    Raises ProtocolError naming the first missing level.
    """
    if body is None or not isinstance(body, dict):
        logger.error("[travelpayouts] no body in response: %r", body)
        raise ProtocolError(LEVEL_BODY, "No data in API response")

    data = body.get("data")
    if data is None or not isinstance(data, dict):
        logger.error("[travelpayouts] no data in response: errors=%s", body.get("errors"))
        raise ProtocolError(LEVEL_DATA, "Invalid API response format: missing data.data")

    prices = data.get("prices_round_trip")
    if prices is None or not isinstance(prices, list):
        logger.error("[travelpayouts] no prices_round_trip in response: keys=%s", sorted(data.keys()))
        raise ProtocolError(LEVEL_PRICES, "Invalid API response format: missing prices_round_trip")

    return prices


# =====================================================================
# SECTION: FETCH
# =====================================================================

def fetch_round_trip_prices(
    params: SearchParams,
    api_token: Optional[str] = None,
    timeout: Optional[float] = None,
) -> List[Any]:
    """
    Fetch round trip fares for one search, cheapest first.
    Tickets are returned unparsed so they can be echoed back as-is;
    the ticket store writer maps them one by one.
    An empty list is a valid answer.
    """
    missing = params.missing_fields()
    if missing:
        raise ValidationError(missing)

    token = api_token or get_api_token()
    query = build_round_trip_query(params)

    logger.info(
        "[travelpayouts] POST prices_round_trip origin=%s dest=%s depart=%s..%s return=%s..%s limit=%s currency=%s",
        params.origin,
        params.destination,
        params.departDateMin,
        params.departDateMax,
        params.returnDateMin,
        params.returnDateMax,
        params.effective_limit(),
        params.effective_currency(),
    )

    headers = {
        "Content-Type": "application/json",
        "X-Access-token": token,
    }

    try:
        resp = requests.post(
            TRAVELPAYOUTS_GRAPHQL_URL,
            json={"query": query},
            headers=headers,
            timeout=timeout or TRAVELPAYOUTS_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error("[travelpayouts] request failed: %s: %s", type(e).__name__, e)
        raise UpstreamError(f"Pricing API request failed: {e}") from e

    if resp.status_code >= 400:
        safe_body = (resp.text or "").replace("\n", "\\n").replace("\r", "\\r")
        logger.error(
            "[travelpayouts] error status=%s headers=%s body=%s",
            resp.status_code,
            dict(resp.headers),
            safe_body[:2000],
        )
        raise UpstreamError(
            f"Pricing API returned HTTP {resp.status_code}",
            status_code=resp.status_code,
            body=safe_body[:2000],
        )

    logger.info("[travelpayouts] response status=%s", resp.status_code)

    try:
        body = resp.json() if resp.content else None
    except ValueError:
        logger.error("[travelpayouts] JSON parse failed body=%s", (resp.text or "")[:500])
        body = None

    raw_tickets = extract_prices(body)

    # Upstream already sorts VALUE_ASC; keep that order stable for equal prices
    tickets = sorted(raw_tickets, key=_price_sort_key)

    if tickets:
        logger.info(
            "[travelpayouts] tickets=%d cheapest=%s %s",
            len(tickets),
            _ticket_value(tickets[0]),
            params.effective_currency(),
        )
    else:
        logger.info("[travelpayouts] tickets=0")

    return tickets


def _ticket_value(raw: Any) -> Any:
    return raw.get("value") if isinstance(raw, dict) else None


def _price_sort_key(raw: Any) -> Tuple[int, float]:
    value = _ticket_value(raw)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    return (1, 0)


def full_ticket_url(link: Optional[str]) -> str:
    """Absolute Aviasales URL for a stored ticket link."""
    if not link:
        return ""
    if link.startswith("http://") or link.startswith("https://"):
        return link
    base = AVIASALES_BASE_URL.rstrip("/")
    if not link.startswith("/"):
        link = "/" + link
    return base + link
