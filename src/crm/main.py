"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
store error handlers, lifespan events that build the store client and the
per-screen state objects, and the v1 API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.crm.api.errors import register_exception_handlers
from src.crm.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.crm.api.v1.router import router as v1_router
from src.crm.config import get_settings
from src.crm.contracts.service import ContractList
from src.crm.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.crm.customers.service import CustomerDirectory
from src.crm.deals.board import PipelineBoard
from src.crm.store.adapter import DataStore
from src.crm.store.errors import FetchError
from src.crm.store.postgrest import PostgrestStore

log = structlog.get_logger(__name__)


def attach_screens(app: FastAPI, store: DataStore) -> None:
    """Create one state object per screen and attach them, with the store, to app.state."""
    app.state.store = store
    app.state.board = PipelineBoard(store)
    app.state.customer_directory = CustomerDirectory(store)
    app.state.contract_list = ContractList(store)


async def load_screens(app: FastAPI) -> None:
    """Initial load of every list screen.

    Each screen is loaded on its own; a failed read is logged and leaves
    that screen empty until its next refresh.
    """
    screens = {
        "board": app.state.board,
        "customer_directory": app.state.customer_directory,
        "contract_list": app.state.contract_list,
    }
    for name, screen in screens.items():
        try:
            await screen.load_all()
        except FetchError as exc:
            log.warning("startup.screen_load_failed", screen=name, error=exc.message)

    try:
        await app.state.board.load_customer_options()
    except FetchError as exc:
        log.warning("startup.screen_load_failed", screen="customer_options", error=exc.message)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: logging, Sentry, store client and screen state."""
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    if getattr(app.state, "store", None) is None:
        attach_screens(app, PostgrestStore.from_settings(settings))
    await load_screens(app)

    log.info(
        "startup.complete",
        environment=settings.ENVIRONMENT.value,
        store_url=settings.rest_url,
        deal_count=app.state.board.deal_count,
    )

    yield

    log.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Pipeline CRM API",
        version="0.1.0",
        description="Customers, deals pipeline, contracts and dashboard over a hosted database",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    register_exception_handlers(app)

    app.include_router(v1_router, prefix="/v1")

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
