from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rakit.exceptions import RakitError
from rakit.utils.logger import get_logger

logger = get_logger(__name__)


def error_payload(request: Request, exc: RakitError) -> dict[str, Any]:
    return {
        "error": exc.error_code,
        "message": exc.message,
        "details": exc.details,
        "timestamp": datetime.now(UTC).isoformat(),
        "path": str(request.url.path),
    }


def install_exception_handlers(app: FastAPI) -> None:
    """Install handlers that translate RakitError to JSON responses."""

    @app.exception_handler(RakitError)
    async def _handle_rakit_error(request: Request, exc: RakitError):
        status_code = getattr(exc, "status_code", 500)
        if status_code >= 500:
            logger.warning(
                "Request failed",
                event="rakit.web.request_failed",
                path=str(request.url.path),
                error=exc.message,
                error_code=exc.error_code,
            )
        payload = error_payload(request, exc)
        return JSONResponse(status_code=status_code, content=payload)
