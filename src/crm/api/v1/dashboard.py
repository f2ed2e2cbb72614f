"""REST API endpoint for the dashboard screen."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.crm.api.deps import get_store
from src.crm.dashboard.service import DashboardSummary, load_dashboard
from src.crm.store.adapter import DataStore

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardSummary)
async def get_dashboard(store: DataStore = Depends(get_store)) -> DashboardSummary:
    """Pipeline totals, won deals, average probability, phase and rank distributions."""
    return await load_dashboard(store)
