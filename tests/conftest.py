"""
Pytest configuration for the flight ticket tracker.

Provides fixtures for:
- An in-memory SQLite ticket store standing in for Postgres
- A recording fake for the Travelpayouts HTTP call
- A FastAPI TestClient wired to the in-memory store
"""

import json
from typing import Any, Dict, List, Optional

import pytest
import requests
from fastapi.testclient import TestClient

from db import TicketStore, get_db

TOKEN = "test-token"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from a known environment."""
    for name in ("APP_ENV", "NODE_ENV", "TRAVELPAYOUTS_API_TOKEN", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def api_token(monkeypatch) -> str:
    monkeypatch.setenv("TRAVELPAYOUTS_API_TOKEN", TOKEN)
    return TOKEN


@pytest.fixture
def store():
    s = TicketStore("sqlite://")
    s.create_schema()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def db(store):
    with store.session() as session:
        yield session


# =====================================================================
# SECTION: FAKE UPSTREAM
# =====================================================================

class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, raw: Optional[str] = None):
        self.status_code = status_code
        if raw is not None:
            self.text = raw
        elif payload is None:
            self.text = ""
        else:
            self.text = json.dumps(payload)
        self.content = self.text.encode()
        self.headers = {"Content-Type": "application/json"}

    def json(self):
        return json.loads(self.text)


class FakeUpstream:
    """Replaces requests.post; records every call."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.response = FakeResponse(payload={"data": {"prices_round_trip": []}})
        self.error: Optional[Exception] = None

    def respond_with_tickets(self, tickets: List[Dict[str, Any]]) -> None:
        self.response = FakeResponse(payload={"data": {"prices_round_trip": tickets}})

    def __call__(self, url, json=None, headers=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    @property
    def last_query(self) -> str:
        return self.calls[-1]["json"]["query"]


@pytest.fixture
def upstream(monkeypatch) -> FakeUpstream:
    fake = FakeUpstream()
    monkeypatch.setattr(requests, "post", fake)
    return fake


def make_ticket(
    departure_at: str = "2025-07-25T08:00:00-04:00",
    return_at: str = "2025-08-07T18:30:00-07:00",
    value: Optional[float] = 512,
    outbound_flight: Optional[str] = "AC301",
    return_flight: Optional[str] = "AC312",
    origin: str = "YUL",
    destination: str = "YVR",
    with_return: bool = True,
) -> Dict[str, Any]:
    segments = [
        {
            "flight_legs": [
                {
                    "aircraft_code": "321",
                    "flight_number": outbound_flight,
                    "origin": origin,
                    "destination": destination,
                    "departure_at": departure_at,
                    "arrival_at": departure_at,
                }
            ]
        }
    ]
    if with_return:
        segments.append(
            {
                "flight_legs": [
                    {
                        "aircraft_code": "321",
                        "flight_number": return_flight,
                        "origin": destination,
                        "destination": origin,
                        "departure_at": return_at,
                        "arrival_at": return_at,
                    }
                ]
            }
        )
    return {
        "departure_at": departure_at,
        "return_at": return_at,
        "value": value,
        "trip_duration": 330,
        "ticket_link": "/YUL2507YVR07081",
        "segments": segments,
    }


@pytest.fixture
def ticket_factory():
    return make_ticket


# =====================================================================
# SECTION: HTTP CLIENT
# =====================================================================

@pytest.fixture
def client(store):
    from main import app

    def _override_get_db():
        with store.session() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
