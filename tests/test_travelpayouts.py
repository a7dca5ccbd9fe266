import pytest
import requests

from errors import ConfigurationError, ProtocolError, UpstreamError, ValidationError
from providers.travelpayouts import (
    LEVEL_BODY,
    LEVEL_DATA,
    LEVEL_PRICES,
    build_round_trip_query,
    fetch_round_trip_prices,
    full_ticket_url,
)
from schemas.search import SearchParams

from conftest import TOKEN, FakeResponse


def yul_yvr_params(**overrides) -> SearchParams:
    data = dict(
        origin="YUL",
        destination="YVR",
        departDateMin="2025-07-25",
        departDateMax="2025-07-29",
        returnDateMin="2025-08-07",
        returnDateMax="2025-08-11",
        currency="CAD",
        limit=5,
    )
    data.update(overrides)
    return SearchParams(**data)


# =====================================================================
# SECTION: QUERY BUILDER
# =====================================================================

def test_query_embeds_search_literals():
    query = build_round_trip_query(yul_yvr_params())

    assert 'origin: "YUL"' in query
    assert 'destination: "YVR"' in query
    assert 'depart_date_min: "2025-07-25"' in query
    assert 'depart_date_max: "2025-07-29"' in query
    assert 'return_date_min: "2025-08-07"' in query
    assert 'return_date_max: "2025-08-11"' in query
    assert "no_lowcost: true" in query
    assert "limit: 5" in query
    assert "offset: 0" in query
    assert "sorting: VALUE_ASC" in query
    assert 'currency: "cad"' in query
    for field in ("ticket_link", "trip_duration", "flight_number", "aircraft_code", "arrival_at"):
        assert field in query


def test_query_escapes_user_strings():
    query = build_round_trip_query(yul_yvr_params(origin='YUL" } no_lowcost: false { "'))

    assert 'origin: "YUL\\" } no_lowcost: false { \\""' in query
    assert query.count("no_lowcost: true") == 1
    assert "\nno_lowcost: false" not in query


@pytest.mark.parametrize("raw_limit", ["abc", 0, -3, None, ""])
def test_invalid_limit_falls_back_to_default(raw_limit):
    query = build_round_trip_query(yul_yvr_params(limit=raw_limit))
    assert "limit: 5" in query


def test_numeric_string_limit_is_accepted():
    assert "limit: 12" in build_round_trip_query(yul_yvr_params(limit="12"))


# =====================================================================
# SECTION: FETCH
# =====================================================================

def test_fetch_posts_query_with_access_token_header(api_token, upstream, ticket_factory):
    upstream.respond_with_tickets([ticket_factory()])

    tickets = fetch_round_trip_prices(yul_yvr_params())

    assert len(tickets) == 1
    assert len(upstream.calls) == 1
    call = upstream.calls[0]
    assert call["url"].endswith("/graphql/v1/query")
    assert call["headers"]["X-Access-token"] == TOKEN
    assert call["headers"]["Content-Type"] == "application/json"
    assert "prices_round_trip" in call["json"]["query"]
    assert call["timeout"] > 0


def test_missing_token_fails_before_network(upstream):
    with pytest.raises(ConfigurationError):
        fetch_round_trip_prices(yul_yvr_params())
    assert upstream.calls == []


def test_missing_parameters_fail_before_network(api_token, upstream):
    with pytest.raises(ValidationError) as exc:
        fetch_round_trip_prices(yul_yvr_params(origin=None, returnDateMax="  "))
    assert exc.value.missing == ["origin", "returnDateMax"]
    assert upstream.calls == []


@pytest.mark.parametrize(
    "response, level",
    [
        (FakeResponse(payload=None), LEVEL_BODY),
        (FakeResponse(raw="not json"), LEVEL_BODY),
        (FakeResponse(payload={}), LEVEL_DATA),
        (FakeResponse(payload={"data": None, "errors": [{"message": "bad"}]}), LEVEL_DATA),
        (FakeResponse(payload={"data": {}}), LEVEL_PRICES),
        (FakeResponse(payload={"data": {"prices_round_trip": None}}), LEVEL_PRICES),
    ],
)
def test_envelope_errors_name_the_missing_level(api_token, upstream, response, level):
    upstream.response = response

    with pytest.raises(ProtocolError) as exc:
        fetch_round_trip_prices(yul_yvr_params())

    assert exc.value.level == level
    assert "missing" in str(exc.value) or "No data" in str(exc.value)


def test_empty_result_is_not_an_error(api_token, upstream):
    upstream.respond_with_tickets([])
    assert fetch_round_trip_prices(yul_yvr_params()) == []


def test_http_error_raises_upstream_error(api_token, upstream):
    upstream.response = FakeResponse(status_code=401, payload={"message": "invalid token"})

    with pytest.raises(UpstreamError) as exc:
        fetch_round_trip_prices(yul_yvr_params())

    assert exc.value.status_code == 401
    assert "invalid token" in exc.value.body


def test_transport_failure_raises_upstream_error(api_token, upstream):
    upstream.error = requests.ConnectionError("connection refused")

    with pytest.raises(UpstreamError) as exc:
        fetch_round_trip_prices(yul_yvr_params())

    assert exc.value.status_code is None


def test_results_are_sorted_by_ascending_price(api_token, upstream, ticket_factory):
    upstream.respond_with_tickets(
        [
            ticket_factory(value=700, outbound_flight="AC1"),
            ticket_factory(value=450, outbound_flight="AC2"),
            ticket_factory(value=520, outbound_flight="AC3"),
        ]
    )

    tickets = fetch_round_trip_prices(yul_yvr_params())

    assert [t["value"] for t in tickets] == [450, 520, 700]


def test_imperfect_tickets_are_returned_unparsed(api_token, upstream, ticket_factory):
    no_segments = dict(ticket_factory(value=600), segments=None)
    fractional = ticket_factory(value=455.5)
    upstream.respond_with_tickets([no_segments, "garbage", fractional, {"value": None}])

    tickets = fetch_round_trip_prices(yul_yvr_params())

    assert tickets == [fractional, no_segments, "garbage", {"value": None}]


def test_full_ticket_url():
    assert full_ticket_url("/YUL2507YVR07081") == "https://www.aviasales.com/search/YUL2507YVR07081"
    assert full_ticket_url("YUL2507YVR07081") == "https://www.aviasales.com/search/YUL2507YVR07081"
    assert full_ticket_url("https://example.com/x") == "https://example.com/x"
    assert full_ticket_url(None) == ""
