# =====================================================================
# SECTION START: IMPORTS
# =====================================================================

import logging
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import configure_logging, get_cors_origins, is_production, missing_required_env
from db import close_store, get_store
from errors import ConfigurationError
from routers.api import router as api_router
from routers.pages import STATIC_DIR, router as pages_router

configure_logging()
logger = logging.getLogger(__name__)

# =====================================================================
# SECTION END: IMPORTS
# =====================================================================


# =====================================================================
# SECTION START: FastAPI APP AND CORS
# =====================================================================

app = FastAPI(title="Flight Ticket Tracker")


@app.on_event("startup")
def on_startup():
    missing = missing_required_env()
    if missing:
        logger.error("[startup] missing required environment variables: %s", ", ".join(missing))
        if is_production():
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    if "DATABASE_URL" not in missing:
        get_store().create_schema()


@app.on_event("shutdown")
def on_shutdown():
    close_store()


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/static", StaticFiles(directory=str(STATIC_DIR), check_dir=False), name="static")

app.include_router(api_router)
app.include_router(pages_router)

# =====================================================================
# SECTION END: FastAPI APP AND CORS
# =====================================================================


# =====================================================================
# SECTION START: ERROR HANDLERS
# =====================================================================

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("[api] invalid request body path=%s errors=%s", request.url.path, exc.errors()[:3])
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid request body"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    request_id = uuid4().hex
    logger.error(
        "[api] unhandled error path=%s request_id=%s",
        request.url.path,
        request_id,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Server error",
            "message": "An unexpected error occurred" if is_production() else str(exc),
            "requestId": request_id,
        },
    )

# =====================================================================
# SECTION END: ERROR HANDLERS
# =====================================================================
