"""routers/api.py - JSON API: health, test, manual price check, flight search."""

import logging
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config import get_environment, is_production
from db import get_db
from errors import ConfigurationError, UpstreamError, ValidationError
from schemas.search import (
    ApiCheckResponse,
    HealthResponse,
    PriceCheckResponse,
    SearchFlightsResponse,
    SearchParams,
)
from services.price_check import run_price_check, search_and_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_request_id() -> str:
    return uuid4().hex


def failure_response(error: str, exc: Exception, status_code: int = 500) -> JSONResponse:
    """
    Log the full failure server-side and answer with a correlation id.
    Production clients only get a generic message.
    """
    request_id = new_request_id()
    logger.error(
        "[api] %s request_id=%s %s: %s",
        error,
        request_id,
        type(exc).__name__,
        exc,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    if isinstance(exc, UpstreamError) and exc.status_code is not None:
        logger.error("[api] upstream status=%s body=%s request_id=%s", exc.status_code, exc.body, request_id)

    message = "An unexpected error occurred" if is_production() else (str(exc) or "Unknown error")
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "message": message,
            "requestId": request_id,
        },
    )


# =====================================================================
# SECTION: HEALTH AND TEST ROUTES
# =====================================================================

@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok", timestamp=utc_timestamp(), message="Server is running")


@router.get("/test", response_model=ApiCheckResponse)
def api_test():
    return ApiCheckResponse(
        success=True,
        message="API is working",
        timestamp=utc_timestamp(),
        environment=get_environment(),
    )


# =====================================================================
# SECTION: PRICE CHECK AND SEARCH ROUTES
# =====================================================================

@router.get("/run-price-check")
def run_price_check_endpoint(db: Session = Depends(get_db)):
    logger.info("[api] manually triggered price check at %s", utc_timestamp())
    try:
        outcome = run_price_check(db)
    except Exception as e:
        return failure_response("Price check failed", e)

    return PriceCheckResponse(
        success=True,
        message="Price check completed successfully",
        timestamp=utc_timestamp(),
        dbStats=outcome.report.db_stats(),
    )


@router.post("/search-flights")
def search_flights(params: SearchParams, db: Session = Depends(get_db)):
    logger.info("[api] flight search request received params=%s", params.model_dump())

    missing = params.missing_fields()
    if missing:
        logger.info("[api] search rejected missing=%s", missing)
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "Missing required search parameters",
                "missing": missing,
            },
        )

    try:
        outcome = search_and_store(db, params)
    except ValidationError as e:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": str(e), "missing": e.missing},
        )
    except ConfigurationError as e:
        logger.error("[api] %s", e)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "API key not configured on server",
                "requestId": new_request_id(),
            },
        )
    except Exception as e:
        return failure_response("Flight search failed", e)

    return SearchFlightsResponse(
        success=True,
        message=outcome.summary_message(),
        tickets=outcome.tickets_for_client(),
        dbStats=outcome.report.db_stats(),
    )
