"""Data store abstract base class -- the capability contract every screen queries.

All CRM screens talk to the remote database through this interface only.
PostgrestStore is the production implementation; tests supply an in-memory
double implementing the same methods.

Query shape helpers (Filter, Join, Order) are plain frozen dataclasses so a
query can be built once and rendered by any backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from src.crm.store.errors import FetchError

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class FilterOp(str, Enum):
    """Comparison operators supported in store filters."""

    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"


@dataclass(frozen=True)
class Filter:
    """A single column predicate, e.g. ``Filter("phase", FilterOp.EQ, "契約")``."""

    column: str
    op: FilterOp
    value: Any


@dataclass(frozen=True)
class Join:
    """An embedded related table resolved through a foreign key on the parent row.

    ``Join("customers", ("name",))`` embeds ``row["customers"] = {"name": ...}``
    looked up by ``row["customer_id"]``. Joins nest for multi-hop projections.
    """

    table: str
    columns: tuple[str, ...] = ("*",)
    joins: tuple[Join, ...] = ()
    foreign_key: str | None = None

    @property
    def key(self) -> str:
        """Foreign key column on the parent row (``deals`` -> ``deal_id``)."""
        if self.foreign_key:
            return self.foreign_key
        singular = self.table[:-1] if self.table.endswith("s") else self.table
        return f"{singular}_id"


@dataclass(frozen=True)
class Order:
    """Sort specification for a select."""

    column: str
    ascending: bool = True


def eq(column: str, value: Any) -> Filter:
    return Filter(column, FilterOp.EQ, value)


def in_(column: str, values: Sequence[Any]) -> Filter:
    return Filter(column, FilterOp.IN, tuple(values))


@dataclass(frozen=True)
class Query:
    """Bundle of select arguments, handy when a screen reuses the same read."""

    table: str
    columns: tuple[str, ...] = ("*",)
    filters: tuple[Filter, ...] = ()
    joins: tuple[Join, ...] = ()
    order: Order | None = None


class DataStore(ABC):
    """Abstract interface for the remote hosted database.

    Methods:
        select: Read rows with optional filters, embedded joins and ordering.
        insert: Insert one record.
        update: Patch the record whose ``id`` equals ``match_id``.
        delete: Delete the record whose ``id`` equals ``match_id``.
        count: Count rows matching filters.

    Reads raise FetchError, writes raise WriteError.
    """

    @abstractmethod
    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] = ("*",),
        filters: Sequence[Filter] = (),
        joins: Sequence[Join] = (),
        order: Order | None = None,
    ) -> list[dict[str, Any]]:
        """Return matching rows as dicts, embedded joins keyed by table name."""
        ...

    @abstractmethod
    async def insert(self, table: str, record: dict[str, Any]) -> None:
        """Insert one record."""
        ...

    @abstractmethod
    async def update(self, table: str, patch: dict[str, Any], match_id: int) -> None:
        """Apply ``patch`` to the record with the given id."""
        ...

    @abstractmethod
    async def delete(self, table: str, match_id: int) -> None:
        """Delete the record with the given id."""
        ...

    @abstractmethod
    async def count(self, table: str, *, filters: Sequence[Filter] = ()) -> int:
        """Return the number of rows matching ``filters``."""
        ...

    async def run(self, query: Query) -> list[dict[str, Any]]:
        """Execute a prepared Query through ``select``."""
        return await self.select(
            query.table,
            columns=query.columns,
            filters=query.filters,
            joins=query.joins,
            order=query.order,
        )


def parse_rows(model: type[M], rows: Sequence[dict[str, Any]], *, table: str) -> list[M]:
    """Validate raw rows into ``model`` instances.

    Raises:
        FetchError: A row does not fit the model; nothing is returned.
    """
    try:
        return [model.model_validate(row) for row in rows]
    except ValidationError as exc:
        logger.error("store.invalid_row", table=table, error=str(exc))
        raise FetchError(str(exc), table=table, operation="select") from exc
