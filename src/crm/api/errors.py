"""Exception handlers translating store and lookup failures into HTTP responses.

Store failures become 502 responses carrying the message the front end shows
in its alert; the application stays up and the screen state is unchanged.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.crm.customers.service import CustomerNotFoundError
from src.crm.deals.board import UnknownDealError
from src.crm.store.errors import FetchError, StoreError, WriteError

logger = structlog.get_logger(__name__)


async def _store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    kind = "write" if isinstance(exc, WriteError) else "fetch"
    logger.warning(
        "api.store_error",
        kind=kind,
        table=exc.table,
        operation=exc.operation,
        path=request.url.path,
        error=exc.message,
    )
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc), "alert": exc.message, "kind": kind},
    )


async def _not_found_handler(request: Request, exc: LookupError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the CRM exception handlers to ``app``."""
    app.add_exception_handler(FetchError, _store_error_handler)
    app.add_exception_handler(WriteError, _store_error_handler)
    app.add_exception_handler(UnknownDealError, _not_found_handler)
    app.add_exception_handler(CustomerNotFoundError, _not_found_handler)
