"""Dashboard aggregates -- pipeline totals, phase distribution, customer ranks."""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable
from typing import Any

import structlog
from pydantic import BaseModel, Field

from src.crm.deals.schemas import WON_PHASE, Phase
from src.crm.store.adapter import DataStore

logger = structlog.get_logger(__name__)

PHASE_VALUES = frozenset(phase.value for phase in Phase)


class DashboardSummary(BaseModel):
    """Headline figures and chart series for the dashboard screen."""

    total_amount: int = 0
    total_deals: int = 0
    won_deals: int = 0
    avg_probability: int = 0
    phase_counts: dict[str, int] = Field(default_factory=dict)
    rank_counts: dict[str, int] = Field(default_factory=dict)


def summarize(deals: Iterable[dict[str, Any]], customers: Iterable[dict[str, Any]]) -> DashboardSummary:
    """Aggregate raw deal and customer rows.

    Missing amounts and probabilities count as zero; the average probability
    rounds halves up. Phase counts follow the board order and only include
    phases that have deals; unknown phase values are logged and left out.
    Rank counts are keyed by rank letter in first-seen order.
    """
    deals = list(deals)
    total_amount = sum(d.get("amount") or 0 for d in deals)
    won = sum(1 for d in deals if d.get("phase") == WON_PHASE.value)
    avg_probability = (
        math.floor(sum(d.get("probability") or 0 for d in deals) / len(deals) + 0.5)
        if deals
        else 0
    )

    by_phase = Counter(d.get("phase") for d in deals)
    phase_counts = {
        phase.value: by_phase[phase.value] for phase in Phase if by_phase[phase.value]
    }
    unknown = {value: n for value, n in by_phase.items() if value not in PHASE_VALUES}
    if unknown:
        logger.warning("dashboard.unknown_phases", phases=unknown)

    rank_counts: dict[str, int] = {}
    for customer in customers:
        rank = customer.get("rank") or "-"
        rank_counts[rank] = rank_counts.get(rank, 0) + 1

    return DashboardSummary(
        total_amount=total_amount,
        total_deals=len(deals),
        won_deals=won,
        avg_probability=avg_probability,
        phase_counts=phase_counts,
        rank_counts=rank_counts,
    )


async def load_dashboard(store: DataStore) -> DashboardSummary:
    """Read every deal and every customer rank, then aggregate.

    Raises:
        FetchError: Either read failed.
    """
    deals = await store.select("deals")
    customers = await store.select("customers", columns=("rank",))
    summary = summarize(deals, customers)
    logger.info(
        "dashboard.loaded",
        total_deals=summary.total_deals,
        won_deals=summary.won_deals,
    )
    return summary
