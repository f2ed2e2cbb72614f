"""Async HTTP client for a PostgREST (Supabase) database endpoint.

Implements DataStore over ``{SUPABASE_URL}/rest/v1/{table}``:
- joins are rendered as embedded resources, ``*,customers(name,contact_person)``
- filters are rendered as ``column=op.value`` query parameters
- counts use ``Prefer: count=exact`` and the ``Content-Range`` response header

Every call is a single round trip bounded by the configured timeout. Failures
are never retried; transport and HTTP errors are converted to FetchError or
WriteError carrying the server's message.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from enum import Enum
from typing import Any

import httpx
import structlog

from src.crm.config import Settings
from src.crm.core.monitoring import track_store_call
from src.crm.store.adapter import DataStore, Filter, FilterOp, Join, Order
from src.crm.store.errors import FetchError, StoreError, WriteError

logger = structlog.get_logger(__name__)


# ── Query Rendering ─────────────────────────────────────────────────────────


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def render_filter(flt: Filter) -> tuple[str, str]:
    """Render a Filter as a PostgREST query parameter pair."""
    if flt.op is FilterOp.IN:
        values = ",".join(_format_value(v) for v in flt.value)
        return flt.column, f"in.({values})"
    return flt.column, f"{flt.op.value}.{_format_value(flt.value)}"


def render_join(join: Join) -> str:
    """Render a Join as an embedded resource, e.g. ``deals(title,customers(name))``."""
    parts = list(join.columns) + [render_join(child) for child in join.joins]
    return f"{join.table}({','.join(parts)})"


def render_select(columns: Sequence[str], joins: Sequence[Join]) -> str:
    return ",".join([*columns, *(render_join(j) for j in joins)])


def render_order(order: Order) -> str:
    direction = "asc" if order.ascending else "desc"
    return f"{order.column}.{direction}"


def parse_content_range(header: str | None) -> int:
    """Extract the total from a ``Content-Range`` header (``0-24/3573`` or ``*/0``)."""
    if not header or "/" not in header:
        raise ValueError(f"Missing total in Content-Range: {header!r}")
    total = header.rsplit("/", 1)[1]
    if total == "*":
        raise ValueError("Content-Range total is unknown")
    return int(total)


def _error_message(response: httpx.Response) -> str:
    """Best-effort human-readable message from a PostgREST error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text or response.reason_phrase


# ── Store ───────────────────────────────────────────────────────────────────


class PostgrestStore(DataStore):
    """DataStore backed by a PostgREST endpoint.

    Uses a short-lived httpx.AsyncClient per request with the project's
    API key in both the ``apikey`` and bearer headers.

    Args:
        base_url: REST root, e.g. ``https://xyz.supabase.co/rest/v1``.
        api_key: Project API key (anon or service role).
        timeout: Seconds before a request is abandoned.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> PostgrestStore:
        return cls(
            base_url=settings.rest_url,
            api_key=settings.SUPABASE_KEY,
            timeout=settings.REQUEST_TIMEOUT,
        )

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client with the store headers and timeout."""
        return httpx.AsyncClient(headers=self._headers, timeout=self._timeout)

    async def _send(
        self,
        method: str,
        table: str,
        operation: str,
        error_cls: type[StoreError],
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request and translate any failure into ``error_cls``."""
        url = f"{self._base_url}/{table}"
        try:
            with track_store_call(table, operation):
                async with self._client() as client:
                    response = await getattr(client, method)(url, **kwargs)
                    response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            message = _error_message(exc.response)
            logger.warning(
                "store.request_failed",
                table=table,
                operation=operation,
                status_code=exc.response.status_code,
                error=message,
            )
            raise error_cls(message, table=table, operation=operation) from exc
        except httpx.HTTPError as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning(
                "store.request_failed",
                table=table,
                operation=operation,
                error=message,
            )
            raise error_cls(message, table=table, operation=operation) from exc
        return response

    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] = ("*",),
        filters: Sequence[Filter] = (),
        joins: Sequence[Join] = (),
        order: Order | None = None,
    ) -> list[dict[str, Any]]:
        """GET rows with embedded joins, filters and ordering."""
        params: list[tuple[str, str]] = [("select", render_select(columns, joins))]
        params.extend(render_filter(f) for f in filters)
        if order is not None:
            params.append(("order", render_order(order)))

        response = await self._send("get", table, "select", FetchError, params=params)
        try:
            rows = response.json()
        except ValueError as exc:
            logger.warning("store.invalid_body", table=table, operation="select")
            raise FetchError(
                f"Response is not JSON: {exc}", table=table, operation="select"
            ) from exc
        logger.debug("store.selected", table=table, row_count=len(rows))
        return rows

    async def insert(self, table: str, record: dict[str, Any]) -> None:
        """POST a single record."""
        await self._send(
            "post",
            table,
            "insert",
            WriteError,
            json=[record],
            headers={"Prefer": "return=minimal"},
        )
        logger.info("store.inserted", table=table)

    async def update(self, table: str, patch: dict[str, Any], match_id: int) -> None:
        """PATCH the record whose id equals ``match_id``."""
        await self._send(
            "patch",
            table,
            "update",
            WriteError,
            params=[render_filter(Filter("id", FilterOp.EQ, match_id))],
            json=patch,
            headers={"Prefer": "return=minimal"},
        )
        logger.info("store.updated", table=table, record_id=match_id, fields=list(patch))

    async def delete(self, table: str, match_id: int) -> None:
        """DELETE the record whose id equals ``match_id``."""
        await self._send(
            "delete",
            table,
            "delete",
            WriteError,
            params=[render_filter(Filter("id", FilterOp.EQ, match_id))],
        )
        logger.info("store.deleted", table=table, record_id=match_id)

    async def count(self, table: str, *, filters: Sequence[Filter] = ()) -> int:
        """HEAD with an exact count preference and read the Content-Range total."""
        params: list[tuple[str, str]] = [("select", "id")]
        params.extend(render_filter(f) for f in filters)

        response = await self._send(
            "head",
            table,
            "count",
            FetchError,
            params=params,
            headers={"Prefer": "count=exact"},
        )
        try:
            return parse_content_range(response.headers.get("content-range"))
        except ValueError as exc:
            raise FetchError(str(exc), table=table, operation="count") from exc
