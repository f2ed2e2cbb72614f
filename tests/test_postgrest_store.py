"""Tests for the PostgREST store client.

All HTTP calls are mocked by patching httpx.AsyncClient methods, so no
network access is needed. Covers query rendering, request shapes, the
Content-Range count, and mapping of HTTP and transport failures onto
FetchError / WriteError.
"""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.crm.config import Settings
from src.crm.deals.schemas import Phase
from src.crm.store.adapter import Filter, FilterOp, Join, Order, eq, in_
from src.crm.store.errors import FetchError, StoreError, WriteError
from src.crm.store.postgrest import (
    PostgrestStore,
    parse_content_range,
    render_filter,
    render_join,
    render_order,
    render_select,
)

BASE_URL = "https://project.supabase.co/rest/v1"


def _response(status_code: int, method: str, table: str, **kwargs) -> httpx.Response:
    return httpx.Response(
        status_code,
        request=httpx.Request(method, f"{BASE_URL}/{table}"),
        **kwargs,
    )


@pytest.fixture
def pg_store() -> PostgrestStore:
    return PostgrestStore(base_url=BASE_URL + "/", api_key="anon-key", timeout=2.5)


# ── Query Rendering ──────────────────────────────────────────────────────────


class TestRendering:
    def test_eq_filter_with_enum(self):
        assert render_filter(eq("phase", Phase.CONTRACT)) == ("phase", "eq.契約")

    def test_eq_filter_with_date(self):
        assert render_filter(eq("registration_date", date(2026, 3, 1))) == (
            "registration_date",
            "eq.2026-03-01",
        )

    def test_in_filter(self):
        assert render_filter(in_("deal_id", [3, 5, 8])) == ("deal_id", "in.(3,5,8)")

    def test_comparison_and_null(self):
        assert render_filter(Filter("amount", FilterOp.GTE, 1000)) == ("amount", "gte.1000")
        assert render_filter(Filter("region", FilterOp.NEQ, None)) == ("region", "neq.null")
        assert render_filter(Filter("active", FilterOp.EQ, True)) == ("active", "eq.true")

    def test_nested_join(self):
        join = Join("deals", ("title",), joins=(Join("customers", ("name",)),))
        assert render_join(join) == "deals(title,customers(name))"

    def test_select_with_join(self):
        select = render_select(("*",), (Join("customers", ("name", "contact_person")),))
        assert select == "*,customers(name,contact_person)"

    def test_join_key_defaults_to_singular_table(self):
        assert Join("deals").key == "deal_id"
        assert Join("customers").key == "customer_id"
        assert Join("customers", foreign_key="owner_id").key == "owner_id"

    def test_order(self):
        assert render_order(Order("created_at", ascending=False)) == "created_at.desc"
        assert render_order(Order("id")) == "id.asc"


class TestParseContentRange:
    def test_total(self):
        assert parse_content_range("0-24/3573") == 3573

    def test_empty_table(self):
        assert parse_content_range("*/0") == 0

    def test_missing_header(self):
        with pytest.raises(ValueError):
            parse_content_range(None)

    def test_unknown_total(self):
        with pytest.raises(ValueError):
            parse_content_range("0-24/*")


# ── Requests ─────────────────────────────────────────────────────────────────


class TestPostgrestStore:
    def test_from_settings(self):
        settings = Settings(
            SUPABASE_URL="https://project.supabase.co/",
            SUPABASE_KEY="service-key",
            REQUEST_TIMEOUT=3.0,
        )
        store = PostgrestStore.from_settings(settings)
        assert store._base_url == BASE_URL
        assert store._timeout == 3.0
        assert store._headers["apikey"] == "service-key"
        assert store._headers["Authorization"] == "Bearer service-key"

    @pytest.mark.asyncio
    async def test_select_params(self, pg_store):
        rows = [{"id": 7, "title": "Core", "customers": {"name": "Acme"}}]
        with patch(
            "httpx.AsyncClient.get",
            new_callable=AsyncMock,
            return_value=_response(200, "GET", "deals", json=rows),
        ) as mock_get:
            result = await pg_store.select(
                "deals",
                filters=[eq("phase", Phase.LEAD)],
                joins=[Join("customers", ("name",))],
                order=Order("created_at", ascending=False),
            )

        assert result == rows
        assert mock_get.call_args.args[0] == f"{BASE_URL}/deals"
        assert mock_get.call_args.kwargs["params"] == [
            ("select", "*,customers(name)"),
            ("phase", "eq.リード"),
            ("order", "created_at.desc"),
        ]

    @pytest.mark.asyncio
    async def test_select_http_error_is_fetch_error(self, pg_store):
        with patch(
            "httpx.AsyncClient.get",
            new_callable=AsyncMock,
            return_value=_response(
                400,
                "GET",
                "deals",
                json={"code": "42703", "message": "column deals.phaze does not exist"},
            ),
        ):
            with pytest.raises(FetchError) as exc_info:
                await pg_store.select("deals")

        assert exc_info.value.message == "column deals.phaze does not exist"
        assert exc_info.value.table == "deals"
        assert exc_info.value.operation == "select"

    @pytest.mark.asyncio
    async def test_select_non_json_error_body(self, pg_store):
        with patch(
            "httpx.AsyncClient.get",
            new_callable=AsyncMock,
            return_value=_response(502, "GET", "deals", text="Bad gateway"),
        ):
            with pytest.raises(FetchError) as exc_info:
                await pg_store.select("deals")
        assert exc_info.value.message == "Bad gateway"

    @pytest.mark.asyncio
    async def test_select_html_body_is_fetch_error(self, pg_store):
        with patch(
            "httpx.AsyncClient.get",
            new_callable=AsyncMock,
            return_value=_response(200, "GET", "deals", text="<html>maintenance</html>"),
        ):
            with pytest.raises(FetchError) as exc_info:
                await pg_store.select("deals")

        assert exc_info.value.table == "deals"
        assert exc_info.value.operation == "select"
        assert exc_info.value.message.startswith("Response is not JSON")

    @pytest.mark.asyncio
    async def test_insert_posts_single_record(self, pg_store):
        with patch(
            "httpx.AsyncClient.post",
            new_callable=AsyncMock,
            return_value=_response(201, "POST", "deals"),
        ) as mock_post:
            await pg_store.insert("deals", {"title": "New", "amount": 150000})

        assert mock_post.call_args.kwargs["json"] == [{"title": "New", "amount": 150000}]
        assert mock_post.call_args.kwargs["headers"] == {"Prefer": "return=minimal"}

    @pytest.mark.asyncio
    async def test_update_matches_id(self, pg_store):
        with patch(
            "httpx.AsyncClient.patch",
            new_callable=AsyncMock,
            return_value=_response(204, "PATCH", "deals"),
        ) as mock_patch:
            await pg_store.update("deals", {"phase": "提案済"}, 7)

        assert mock_patch.call_args.kwargs["params"] == [("id", "eq.7")]
        assert mock_patch.call_args.kwargs["json"] == {"phase": "提案済"}

    @pytest.mark.asyncio
    async def test_update_rejected_is_write_error(self, pg_store):
        with patch(
            "httpx.AsyncClient.patch",
            new_callable=AsyncMock,
            return_value=_response(
                403, "PATCH", "deals", json={"message": "permission denied for table deals"}
            ),
        ):
            with pytest.raises(WriteError) as exc_info:
                await pg_store.update("deals", {"phase": "提案済"}, 7)

        assert exc_info.value.message == "permission denied for table deals"
        assert str(exc_info.value) == "update on deals failed: permission denied for table deals"

    @pytest.mark.asyncio
    async def test_update_timeout_is_write_error(self, pg_store):
        with patch(
            "httpx.AsyncClient.patch",
            new_callable=AsyncMock,
            side_effect=httpx.ReadTimeout("timed out"),
        ):
            with pytest.raises(WriteError) as exc_info:
                await pg_store.update("deals", {"phase": "提案済"}, 7)

        assert exc_info.value.message == "timed out"
        assert isinstance(exc_info.value, StoreError)

    @pytest.mark.asyncio
    async def test_connect_error_is_fetch_error(self, pg_store):
        with patch(
            "httpx.AsyncClient.get",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("connection refused"),
        ):
            with pytest.raises(FetchError):
                await pg_store.select("customers")

    @pytest.mark.asyncio
    async def test_delete(self, pg_store):
        with patch(
            "httpx.AsyncClient.delete",
            new_callable=AsyncMock,
            return_value=_response(204, "DELETE", "contracts"),
        ) as mock_delete:
            await pg_store.delete("contracts", 3)

        assert mock_delete.call_args.args[0] == f"{BASE_URL}/contracts"
        assert mock_delete.call_args.kwargs["params"] == [("id", "eq.3")]

    @pytest.mark.asyncio
    async def test_count_reads_content_range(self, pg_store):
        with patch(
            "httpx.AsyncClient.head",
            new_callable=AsyncMock,
            return_value=_response(200, "HEAD", "customers", headers={"content-range": "0-1/2"}),
        ) as mock_head:
            total = await pg_store.count(
                "customers", filters=[eq("registration_date", date(2026, 10, 19))]
            )

        assert total == 2
        assert mock_head.call_args.kwargs["params"] == [
            ("select", "id"),
            ("registration_date", "eq.2026-10-19"),
        ]
        assert mock_head.call_args.kwargs["headers"] == {"Prefer": "count=exact"}

    @pytest.mark.asyncio
    async def test_count_without_content_range(self, pg_store):
        with patch(
            "httpx.AsyncClient.head",
            new_callable=AsyncMock,
            return_value=_response(200, "HEAD", "customers"),
        ):
            with pytest.raises(FetchError) as exc_info:
                await pg_store.count("customers")
        assert exc_info.value.operation == "count"
