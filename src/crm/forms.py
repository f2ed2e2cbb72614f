"""Modal create/edit form shared by the list screens.

A RecordForm holds the modal's open flag and the id of the record being
edited. ``save`` inserts when no id is held and updates otherwise, then
closes the modal and reloads the owning list. A failed write leaves the
modal open so the user can correct the input and submit again.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from pydantic import BaseModel

from src.crm.store.adapter import DataStore

logger = structlog.get_logger(__name__)


class RecordForm:
    """Create/edit modal state bound to one store table.

    Args:
        store: DataStore receiving the writes.
        table: Table the form writes to.
        reload: Coroutine function that refreshes the owning list after a save.
    """

    def __init__(
        self,
        store: DataStore,
        table: str,
        reload: Callable[[], Awaitable[Any]],
    ) -> None:
        self._store = store
        self._table = table
        self._reload = reload
        self.is_open = False
        self.editing_id: int | None = None

    def open_create(self) -> None:
        self.is_open = True
        self.editing_id = None

    def open_edit(self, record_id: int) -> None:
        self.is_open = True
        self.editing_id = record_id

    def close(self) -> None:
        self.is_open = False
        self.editing_id = None

    async def save(self, record: BaseModel | dict[str, Any]) -> None:
        """Insert or update ``record``, close the modal, reload the list.

        Raises:
            WriteError: The store rejected the write; the modal stays open.
        """
        if isinstance(record, BaseModel):
            payload = record.model_dump(mode="json", exclude_unset=self.editing_id is not None)
        else:
            payload = dict(record)

        if self.editing_id is None:
            await self._store.insert(self._table, payload)
            logger.info("form.record_created", table=self._table)
        else:
            await self._store.update(self._table, payload, self.editing_id)
            logger.info("form.record_updated", table=self._table, record_id=self.editing_id)

        self.close()
        await self._reload()

    async def delete(self, record_id: int) -> None:
        """Delete a record explicitly and reload the list.

        Raises:
            WriteError: The store rejected the delete.
        """
        await self._store.delete(self._table, record_id)
        logger.info("form.record_deleted", table=self._table, record_id=record_id)
        await self._reload()
