"""Shared test fixtures.

Provides:
- InMemoryStore: DataStore test double with table seeding, join resolution,
  write-call recording and failure injection
- store: an InMemoryStore seeded with two customers, three deals, contracts
  and contact logs
- board: a PipelineBoard over ``store`` with the snapshot loaded
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any

import pytest
import pytest_asyncio

from src.crm.deals.board import PipelineBoard
from src.crm.store.adapter import DataStore, Filter, FilterOp, Join, Order
from src.crm.store.errors import FetchError, WriteError

BASE_TIME = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


def _norm(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _matches(row: dict[str, Any], flt: Filter) -> bool:
    actual = _norm(row.get(flt.column))
    if flt.op is FilterOp.IN:
        return actual in {_norm(v) for v in flt.value}
    expected = _norm(flt.value)
    if flt.op is FilterOp.EQ:
        return actual == expected
    if flt.op is FilterOp.NEQ:
        return actual != expected
    if actual is None:
        return False
    return {
        FilterOp.GT: actual > expected,
        FilterOp.GTE: actual >= expected,
        FilterOp.LT: actual < expected,
        FilterOp.LTE: actual <= expected,
    }[flt.op]


# ── In-Memory Test Double ────────────────────────────────────────────────────


class InMemoryStore(DataStore):
    """In-memory DataStore for testing without a remote database.

    Attributes:
        writes: (operation, table, payload, match_id) for every write attempted.
        fail_reads: When True every select/count raises FetchError.
        fail_writes: Operations ("insert", "update", "delete") that raise WriteError.
        update_started: Set when an update call begins.
        update_gate: When set, updates wait for this event before resolving.
        on_update: Called at the start of every update, before any failure.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.writes: list[tuple[str, str, dict[str, Any] | None, int | None]] = []
        self.selects: list[str] = []
        self.fail_reads = False
        self.fail_writes: set[str] = set()
        self.update_started = asyncio.Event()
        self.update_gate: asyncio.Event | None = None
        self.on_update: Callable[[], None] | None = None
        self._clock = 0

    def seed(self, table: str, *rows: dict[str, Any]) -> None:
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)

    def row(self, table: str, record_id: int) -> dict[str, Any] | None:
        return next((r for r in self.tables.get(table, []) if r["id"] == record_id), None)

    def writes_of(self, operation: str) -> list[tuple[str, str, dict[str, Any] | None, int | None]]:
        return [w for w in self.writes if w[0] == operation]

    def _project(
        self, row: dict[str, Any], columns: Sequence[str], joins: Sequence[Join]
    ) -> dict[str, Any]:
        if "*" in columns:
            out = dict(row)
        else:
            out = {c: row.get(c) for c in columns}
        for join in joins:
            related = self.row(join.table, row.get(join.key))
            out[join.table] = (
                None if related is None else self._project(related, join.columns, join.joins)
            )
        return out

    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] = ("*",),
        filters: Sequence[Filter] = (),
        joins: Sequence[Join] = (),
        order: Order | None = None,
    ) -> list[dict[str, Any]]:
        self.selects.append(table)
        if self.fail_reads:
            raise FetchError("store offline", table=table, operation="select")
        rows = [r for r in self.tables.get(table, []) if all(_matches(r, f) for f in filters)]
        if order is not None:
            rows.sort(key=lambda r: _norm(r.get(order.column)), reverse=not order.ascending)
        return [self._project(r, columns, joins) for r in rows]

    async def insert(self, table: str, record: dict[str, Any]) -> None:
        self.writes.append(("insert", table, dict(record), None))
        if "insert" in self.fail_writes:
            raise WriteError("insert rejected", table=table, operation="insert")
        rows = self.tables.setdefault(table, [])
        self._clock += 1
        new_row = {
            "id": max((r["id"] for r in rows), default=0) + 1,
            "created_at": (BASE_TIME + timedelta(days=30, minutes=self._clock)).isoformat(),
            **record,
        }
        rows.append(new_row)

    async def update(self, table: str, patch: dict[str, Any], match_id: int) -> None:
        self.writes.append(("update", table, dict(patch), match_id))
        self.update_started.set()
        if self.on_update is not None:
            self.on_update()
        if self.update_gate is not None:
            await self.update_gate.wait()
        if "update" in self.fail_writes:
            raise WriteError("update rejected", table=table, operation="update")
        row = self.row(table, match_id)
        if row is not None:
            row.update(patch)

    async def delete(self, table: str, match_id: int) -> None:
        self.writes.append(("delete", table, None, match_id))
        if "delete" in self.fail_writes:
            raise WriteError("delete rejected", table=table, operation="delete")
        self.tables[table] = [r for r in self.tables.get(table, []) if r["id"] != match_id]

    async def count(self, table: str, *, filters: Sequence[Filter] = ()) -> int:
        if self.fail_reads:
            raise FetchError("store offline", table=table, operation="count")
        return sum(1 for r in self.tables.get(table, []) if all(_matches(r, f) for f in filters))


# ── Row Helpers ──────────────────────────────────────────────────────────────


def make_deal_row(**overrides: Any) -> dict[str, Any]:
    """Create a deals row with sensible defaults."""
    defaults = {
        "id": 1,
        "title": "Test Deal",
        "amount": 100000,
        "phase": "リード",
        "probability": 10,
        "expected_close_date": "2026-06-30",
        "customer_id": 1,
        "created_at": BASE_TIME.isoformat(),
    }
    defaults.update(overrides)
    return defaults


def make_customer_row(**overrides: Any) -> dict[str, Any]:
    """Create a customers row with sensible defaults."""
    defaults = {
        "id": 1,
        "customer_code": "C-20260101-001",
        "name": "Acme Corp",
        "type": "企業",
        "contact_person": "Tanaka",
        "department": "IT",
        "email": "tanaka@acme.example",
        "phone": "03-0000-0000",
        "address": "Tokyo",
        "region": "関東",
        "last_contact_date": None,
        "registration_date": "2026-01-01",
        "owner": "自分",
        "referral_source": "",
        "referral_details": "",
        "rank": "A",
        "image_url": "",
        "status": "Active",
    }
    defaults.update(overrides)
    return defaults


@pytest.fixture
def empty_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def store() -> InMemoryStore:
    """Store seeded with customers, deals (7 newest, 9 oldest), contracts, logs."""
    s = InMemoryStore()
    s.seed(
        "customers",
        make_customer_row(id=1, name="Acme Corp", contact_person="Tanaka", rank="A"),
        make_customer_row(
            id=2,
            customer_code="C-20260102-001",
            name="Minato School",
            type="学校",
            contact_person="Sato",
            rank="B",
            registration_date="2026-01-02",
        ),
    )
    s.seed(
        "deals",
        make_deal_row(
            id=9,
            title="Support renewal",
            amount=300000,
            phase="契約",
            probability=100,
            customer_id=2,
            created_at=(BASE_TIME + timedelta(days=0)).isoformat(),
        ),
        make_deal_row(
            id=7,
            title="Core system replacement",
            amount=500000,
            phase="リード",
            probability=10,
            customer_id=1,
            created_at=(BASE_TIME + timedelta(days=2)).isoformat(),
        ),
        make_deal_row(
            id=8,
            title="Tablet rollout",
            amount=200000,
            phase="提案済",
            probability=50,
            customer_id=1,
            created_at=(BASE_TIME + timedelta(days=1)).isoformat(),
        ),
    )
    s.seed(
        "contracts",
        {
            "id": 1,
            "deal_id": 9,
            "start_date": "2025-04-01",
            "end_date": "2026-03-31",
            "status": "有効",
            "pdf_url": "https://files.example/contract-1.pdf",
        },
        {
            "id": 2,
            "deal_id": 7,
            "start_date": "2026-01-01",
            "end_date": "2099-12-31",
            "status": "契約準備中",
            "pdf_url": "",
        },
    )
    s.seed(
        "contact_logs",
        {
            "id": 1,
            "customer_id": 1,
            "contact_date": "2026-01-05",
            "method": "電話",
            "note": "Intro call",
            "created_by": "自分",
        },
        {
            "id": 2,
            "customer_id": 1,
            "contact_date": "2026-01-20",
            "method": "訪問",
            "note": "On-site demo",
            "created_by": "自分",
        },
    )
    return s


@pytest_asyncio.fixture
async def board(store: InMemoryStore) -> PipelineBoard:
    """PipelineBoard with alerts collected on ``board.alerts`` and the snapshot loaded."""
    alerts: list[str] = []
    b = PipelineBoard(store, alert=alerts.append)
    b.alerts = alerts  # type: ignore[attr-defined]
    await b.load_all()
    return b
