"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.crm.api.v1 import contracts, customers, dashboard, deals, health

router = APIRouter()

router.include_router(health.router)
router.include_router(deals.router)
router.include_router(customers.router)
router.include_router(contracts.router)
router.include_router(dashboard.router)
