"""Pipeline board controller -- kanban snapshot, drag state, optimistic phase moves.

The board owns the in-memory snapshot of every deal. Columns are derived from
it on demand, so a deal always renders in the column of its most recent local
phase. A drop applies the new phase to the snapshot synchronously, then sends
a single update to the store. When the store rejects the update the user is
alerted and the whole snapshot is reloaded, discarding the optimistic change.

Only one drag candidate is tracked; beginning a new drag replaces it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog
from src.crm.core.monitoring import pipeline_phase_moves_total
from src.crm.deals.schemas import CustomerOption, Deal, Phase
from src.crm.forms import RecordForm
from src.crm.search import filter_records
from src.crm.store.adapter import DataStore, Join, Order, Query, parse_rows
from src.crm.store.errors import FetchError, WriteError

logger = structlog.get_logger(__name__)

DEALS_QUERY = Query(
    table="deals",
    joins=(Join("customers", ("name", "contact_person")),),
    order=Order("created_at", ascending=False),
)

CUSTOMER_OPTIONS_QUERY = Query(
    table="customers",
    columns=("id", "name", "contact_person"),
    order=Order("id"),
)

MOVE_FAILED_ALERT = "Failed to update the deal phase"


class MoveResult(str, Enum):
    """Outcome of a drop gesture."""

    MOVED = "moved"
    NO_CANDIDATE = "no_candidate"
    ROLLED_BACK = "rolled_back"


@dataclass
class PhaseMove:
    result: MoveResult
    deal_id: int | None = None
    phase: Phase | None = None
    alert: str | None = None


class UnknownDealError(LookupError):
    """Raised when a drag starts on a deal that is not in the snapshot."""

    def __init__(self, deal_id: int) -> None:
        self.deal_id = deal_id
        super().__init__(f"Deal not found: {deal_id}")


class PipelineBoard:
    """Kanban screen state: deal snapshot, drag candidate, deal form.

    Args:
        store: DataStore the deals are read from and written to.
        alert: Called with a human-readable message when a write fails.
    """

    def __init__(self, store: DataStore, alert: Callable[[str], None] | None = None) -> None:
        self._store = store
        self._alert = alert
        self.deals: list[Deal] = []
        self.customers: list[CustomerOption] = []
        self.drag_candidate: int | None = None
        self.stale = False
        self.form = RecordForm(store, "deals", reload=self.load_all)

    # ── Loading ─────────────────────────────────────────────────────────────

    async def load_all(self) -> list[Deal]:
        """Replace the snapshot with every deal, newest first.

        Raises:
            FetchError: The read failed; the previous snapshot is kept.
        """
        rows = await self._store.run(DEALS_QUERY)
        deals = parse_rows(Deal, rows, table="deals")

        self.deals = deals
        self.stale = False
        logger.info("pipeline.loaded", deal_count=len(deals))
        return deals

    async def load_customer_options(self) -> list[CustomerOption]:
        """Load the customer selector for the deal form."""
        rows = await self._store.run(CUSTOMER_OPTIONS_QUERY)
        self.customers = parse_rows(CustomerOption, rows, table="customers")
        return self.customers

    async def reconcile(self) -> None:
        """Reload the authoritative snapshot, flagging the board stale on failure."""
        try:
            await self.load_all()
        except FetchError:
            self.stale = True
            logger.error("pipeline.reconcile_failed", deal_count=len(self.deals))

    # ── Views ───────────────────────────────────────────────────────────────

    def columns(self) -> dict[Phase, list[Deal]]:
        """Deals per phase in board order; sibling order follows the snapshot."""
        columns: dict[Phase, list[Deal]] = {phase: [] for phase in Phase}
        for deal in self.deals:
            columns[deal.phase].append(deal)
        return columns

    @property
    def deal_count(self) -> int:
        return len(self.deals)

    @property
    def total_amount(self) -> int:
        return sum(deal.amount for deal in self.deals)

    def search(self, term: str | None) -> list[Deal]:
        """List view filter over title, customer name and id."""
        return filter_records(
            self.deals,
            term,
            lambda deal: (deal.title, deal.customer_name, deal.id),
        )

    def get(self, deal_id: int) -> Deal | None:
        index = self._index_of(deal_id)
        return None if index is None else self.deals[index]

    # ── Drag and Drop ───────────────────────────────────────────────────────

    def begin_drag(self, deal_id: int) -> None:
        """Mark ``deal_id`` as the candidate for the next drop.

        Raises:
            UnknownDealError: The deal is not in the current snapshot.
        """
        if self._index_of(deal_id) is None:
            raise UnknownDealError(deal_id)
        if self.drag_candidate is not None and self.drag_candidate != deal_id:
            logger.debug("pipeline.drag_replaced", previous=self.drag_candidate, deal_id=deal_id)
        self.drag_candidate = deal_id

    def end_drag(self) -> None:
        """Cancel the drag without moving anything."""
        self.drag_candidate = None

    async def drop_on_phase(self, target: Phase) -> PhaseMove:
        """Move the drag candidate to ``target``, optimistically.

        The snapshot is updated before the store call is issued. On a write
        failure the user is alerted and the snapshot is reloaded in full.
        The drag candidate is cleared whatever the outcome.
        """
        deal_id = self.drag_candidate
        self.drag_candidate = None
        if deal_id is None:
            return PhaseMove(MoveResult.NO_CANDIDATE)

        index = self._index_of(deal_id)
        if index is None:
            logger.warning("pipeline.drop_candidate_missing", deal_id=deal_id)
            return PhaseMove(MoveResult.NO_CANDIDATE, deal_id=deal_id)

        previous = self.deals[index].phase
        self.deals[index] = self.deals[index].model_copy(update={"phase": target})

        try:
            await self._store.update("deals", {"phase": target.value}, deal_id)
        except WriteError as exc:
            pipeline_phase_moves_total.labels(outcome="rolled_back").inc()
            logger.warning(
                "pipeline.phase_move_failed",
                deal_id=deal_id,
                from_phase=previous.value,
                to_phase=target.value,
                error=exc.message,
            )
            message = f"{MOVE_FAILED_ALERT}: {exc.message}"
            self._notify(message)
            await self.reconcile()
            return PhaseMove(MoveResult.ROLLED_BACK, deal_id=deal_id, phase=target, alert=message)

        pipeline_phase_moves_total.labels(outcome="confirmed").inc()
        logger.info(
            "pipeline.phase_moved",
            deal_id=deal_id,
            from_phase=previous.value,
            to_phase=target.value,
        )
        return PhaseMove(MoveResult.MOVED, deal_id=deal_id, phase=target)

    # ── Helpers ─────────────────────────────────────────────────────────────

    def _index_of(self, deal_id: int) -> int | None:
        for index, deal in enumerate(self.deals):
            if deal.id == deal_id:
                return index
        return None

    def _notify(self, message: str) -> None:
        if self._alert is not None:
            self._alert(message)
