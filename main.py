"""
Threshold -- Application Entry Point.

Serves the intervention engine's HTTP adapter with uvicorn.

Usage:
    python main.py                                   # THRESHOLD_DEV_MODE=1 enables reload
    uvicorn main:app --host 0.0.0.0 --port 8000      # Production

Environment:
    THRESHOLD_HOST / THRESHOLD_PORT    bind address
    THRESHOLD_DATABASE_URL             SQL outcome store (in-memory when unset)
    THRESHOLD_CATALOG_PATH             JSON content catalog (built-in when unset)
    LOG_LEVEL                          root log level
"""

from __future__ import annotations

import os

import uvicorn

from src.api import create_app
from src.lib.logging import setup_logging

setup_logging()
app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=os.getenv("THRESHOLD_HOST", "0.0.0.0"),
        port=int(os.getenv("THRESHOLD_PORT", "8000")),
        reload=os.getenv("THRESHOLD_DEV_MODE", "0") == "1",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        # Keep the structlog handler installed by setup_logging
        log_config=None,
    )
