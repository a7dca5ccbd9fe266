"""routers/pages.py - Landing page: static index.html or an inline fallback."""

import logging
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse, HTMLResponse

logger = logging.getLogger(__name__)

router = APIRouter()

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"

FALLBACK_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Flight Ticket Tracker</title>
    <style>
        body { font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; }
        h1 { color: #333; }
    </style>
</head>
<body>
    <h1>Flight Ticket Tracker</h1>
    <p>This application automatically fetches flight ticket prices.</p>
    <p><a href="/api/health">Check API Status</a></p>
</body>
</html>
"""


@router.get("/", include_in_schema=False)
def home():
    index_path = STATIC_DIR / "index.html"
    if index_path.is_file():
        return FileResponse(index_path, media_type="text/html")

    logger.info("[pages] index.html not found in %s, serving fallback HTML", STATIC_DIR)
    return HTMLResponse(FALLBACK_HTML)
