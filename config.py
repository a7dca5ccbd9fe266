"""
config.py

Single source of truth for:
- Environment variable reads
- Runtime mode (production vs development)
- Default price check route
- Process logging setup

Nothing here should contain route handlers or business logic beyond config resolution.
"""

import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from errors import ConfigurationError

# Local .env for development; real environment variables always win
load_dotenv()


# =====================================================================
# SECTION: ENV VARS
# =====================================================================

# Travelpayouts GraphQL pricing API
TRAVELPAYOUTS_GRAPHQL_URL = os.getenv(
    "TRAVELPAYOUTS_GRAPHQL_URL",
    "https://api.travelpayouts.com/graphql/v1/query",
)
TRAVELPAYOUTS_TIMEOUT_SECONDS = float(os.getenv("TRAVELPAYOUTS_TIMEOUT_SECONDS", "45"))

# Ticket links come back as path fragments relative to this search page
AVIASALES_BASE_URL = os.getenv("AVIASALES_BASE_URL", "https://www.aviasales.com/search")

PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Comma separated list, only applied in production
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "https://aviasales-scraper.vercel.app,https://www.aviasales-scraper.vercel.app",
)

REQUIRED_ENV_VARS = ("DATABASE_URL", "TRAVELPAYOUTS_API_TOKEN")

DEFAULT_CURRENCY = "cad"
DEFAULT_LIMIT = 5


def parse_limit(raw: Optional[object], default: int = DEFAULT_LIMIT) -> int:
    """
    Coerce a caller supplied result limit.
    Anything that is not a positive integer falls back to the default.
    """
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


# =====================================================================
# SECTION: PRICE CHECK ROUTE
# Used by GET /api/run-price-check and the `check` CLI command.
# =====================================================================

PRICE_CHECK_ORIGIN = os.getenv("PRICE_CHECK_ORIGIN", "YMQ")
PRICE_CHECK_DESTINATION = os.getenv("PRICE_CHECK_DESTINATION", "YVR")
PRICE_CHECK_DEPART_DATE_MIN = os.getenv("PRICE_CHECK_DEPART_DATE_MIN", "2025-07-25")
PRICE_CHECK_DEPART_DATE_MAX = os.getenv("PRICE_CHECK_DEPART_DATE_MAX", "2025-07-29")
PRICE_CHECK_RETURN_DATE_MIN = os.getenv("PRICE_CHECK_RETURN_DATE_MIN", "2025-08-07")
PRICE_CHECK_RETURN_DATE_MAX = os.getenv("PRICE_CHECK_RETURN_DATE_MAX", "2025-08-11")
PRICE_CHECK_CURRENCY = os.getenv("PRICE_CHECK_CURRENCY", DEFAULT_CURRENCY)
PRICE_CHECK_LIMIT = parse_limit(os.getenv("PRICE_CHECK_LIMIT"))


# =====================================================================
# SECTION: SECRETS AND MODE HELPERS
# Read at call time so a restarted config (or a test) is always honored.
# =====================================================================

def get_api_token() -> str:
    """Travelpayouts token, raises ConfigurationError when absent."""
    token = (os.getenv("TRAVELPAYOUTS_API_TOKEN") or "").strip()
    if not token:
        raise ConfigurationError(
            "TRAVELPAYOUTS_API_TOKEN is not set. Add it to the .env file or the hosting environment."
        )
    return token


def get_database_url() -> str:
    url = (os.getenv("DATABASE_URL") or "").strip()
    if not url:
        raise ConfigurationError("DATABASE_URL environment variable is not set")
    return url


def get_environment() -> str:
    value = os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "development"
    return value.strip().lower()


def is_production() -> bool:
    return get_environment() == "production"


def get_cors_origins() -> List[str]:
    if not is_production():
        return ["*"]
    return [o.strip().rstrip("/") for o in CORS_ORIGINS.split(",") if o.strip()]


def missing_required_env() -> List[str]:
    return [name for name in REQUIRED_ENV_VARS if not (os.getenv(name) or "").strip()]


# =====================================================================
# SECTION: LOGGING
# =====================================================================

_LOGGING_CONFIGURED = False


def configure_logging(level: Optional[str] = None) -> None:
    """
    Send [tag] key=value log lines to stdout at LOG_LEVEL.
    Only the first call per process installs the handler.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    name = (level or os.getenv("LOG_LEVEL") or LOG_LEVEL).strip().upper()
    numeric = getattr(logging, name, None)
    logging.basicConfig(
        level=numeric if isinstance(numeric, int) else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stdout,
    )
    _LOGGING_CONFIGURED = True
