"""FastAPI dependency injection for the data store and per-screen state.

The lifespan handler attaches one state object per screen to ``app.state``;
these dependencies hand them to endpoints and answer 503 until they exist.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from src.crm.contracts.service import ContractList
from src.crm.customers.service import CustomerDirectory
from src.crm.deals.board import PipelineBoard
from src.crm.store.adapter import DataStore


def _from_state(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return value


async def get_store(request: Request) -> DataStore:
    """The remote data store client."""
    return _from_state(request, "store")


async def get_board(request: Request) -> PipelineBoard:
    """Kanban board screen state."""
    return _from_state(request, "board")


async def get_customer_directory(request: Request) -> CustomerDirectory:
    """Customer list screen state."""
    return _from_state(request, "customer_directory")


async def get_contract_list(request: Request) -> ContractList:
    """Contract list screen state."""
    return _from_state(request, "contract_list")
