"""
FastAPI application factory.

``create_app`` wires the services into the router registry, installs the
middleware and exception handlers, and mounts the API routers together with
``/health`` and ``/metrics``.
"""

from __future__ import annotations

import time
import uuid
from datetime import UTC, datetime

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from rakit import __version__
from rakit.cabinets.service import CabinetService
from rakit.cabinets.store import CabinetStore
from rakit.config import RakitConfig
from rakit.network.service import IpDashService
from rakit.network.store import IpDashStore
from rakit.utils.crypto import SecretBox
from rakit.utils.logger import get_logger, logging_context

from .api import cabinets, ipdash, ports
from .api_models import HealthCheck
from .errors import install_exception_handlers
from .web import set_cabinet_service, set_ipdash_service

logger = get_logger(__name__)


def build_services(config: RakitConfig) -> tuple[CabinetService, IpDashService]:
    """Open the stores named by ``config`` and wrap them in services."""
    db = config.get_database_config()
    cabinet_service = CabinetService(
        CabinetStore(db["path"], echo=db["echo"]), config.get_cabinet_config()
    )
    secret = config.get_ip_dash_secret()
    if not secret:
        logger.warning(
            "IP_DASH_SECRET not set; controller profiles cannot store API keys",
            event="rakit.startup.secret_missing",
        )
    ipdash_service = IpDashService(
        IpDashStore(db["path"], echo=db["echo"]),
        SecretBox(secret),
        ipdash_config=config.get_ipdash_config(),
    )
    return cabinet_service, ipdash_service


def create_app(
    config: RakitConfig | None = None,
    *,
    cabinet_service: CabinetService | None = None,
    ipdash_service: IpDashService | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Loaded configuration; read from the default location if omitted
            and a service still has to be built.
        cabinet_service: Pre-built cabinet service (tests inject their own).
        ipdash_service: Pre-built IP Dash service.
    """
    if cabinet_service is None or ipdash_service is None:
        config = config or RakitConfig()
        built_cabinets, built_ipdash = build_services(config)
        cabinet_service = cabinet_service or built_cabinets
        ipdash_service = ipdash_service or built_ipdash
    set_cabinet_service(cabinet_service)
    set_ipdash_service(ipdash_service)

    origins = config.get_server_config()["cors_origins"] if config else ["*"]

    app = FastAPI(
        title="rakit",
        description="Rack inventory, Port Hub and IP Dash REST API",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_tags=[
            {"name": "Status & Health", "description": "Health and metrics"},
            {"name": "Cabinets", "description": "Cabinets and mounted devices"},
            {"name": "Port Hub", "description": "Per-port patch tracking"},
            {"name": "IP Dash", "description": "Controller-backed address views"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        start_time = time.time()
        with logging_context(
            request_id=request_id,
            method=request.method,
            path=str(request.url.path),
        ):
            response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        response.headers["X-Request-ID"] = request_id
        return response

    # ========================================================================
    # EXCEPTION HANDLERS
    # ========================================================================

    install_exception_handlers(app)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """Handle validation errors with detailed responses"""
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "Validation failed",
                "validation_errors": errors,
                "timestamp": datetime.now(UTC).isoformat(),
                "path": str(request.url.path),
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception",
            event="rakit.web.unhandled",
            path=str(request.url.path),
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "details": "An unexpected error occurred",
                "timestamp": datetime.now(UTC).isoformat(),
            },
        )

    # ========================================================================
    # ROUTES
    # ========================================================================

    @app.get("/health", response_model=HealthCheck, tags=["Status & Health"])
    async def health():
        return HealthCheck()

    @app.get("/metrics", response_class=PlainTextResponse, include_in_schema=False)
    async def prometheus_metrics():
        """Prometheus metrics endpoint."""
        data = generate_latest()
        return PlainTextResponse(content=data, media_type=CONTENT_TYPE_LATEST)

    app.include_router(cabinets.router)
    app.include_router(ports.router)
    app.include_router(ipdash.router)

    logger.info(
        "API application created",
        event="rakit.web.app_created",
        routes=len(app.routes),
    )
    return app
