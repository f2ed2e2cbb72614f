"""REST API endpoints for the sales pipeline screen.

Provides the kanban view (columns per phase with counts), drag-and-drop
endpoints driving PipelineBoard, the searchable list view, and the deal
create/edit/delete form actions.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from src.crm.api.deps import get_board
from src.crm.deals.board import PipelineBoard
from src.crm.deals.schemas import Deal, DealCreate, DealUpdate, Phase

router = APIRouter(prefix="/deals", tags=["deals"])


# ── Request / Response Schemas ───────────────────────────────────────────────


class DealResponse(BaseModel):
    """Deal card / list row, serializes dates to ISO strings."""

    id: int
    title: str
    amount: int
    phase: str
    probability: int
    expected_close_date: str | None = None
    customer_id: int | None = None
    customer_name: str = ""
    created_at: str | None = None


class ColumnResponse(BaseModel):
    phase: str
    color: str
    count: int
    deals: list[DealResponse] = Field(default_factory=list)


class PipelineResponse(BaseModel):
    """Kanban view: every phase column plus header totals."""

    columns: list[ColumnResponse]
    deal_count: int
    total_amount: int
    drag_candidate: int | None = None
    stale: bool = False


class DealListResponse(BaseModel):
    deals: list[DealResponse]
    deal_count: int
    total_amount: int


class DragRequest(BaseModel):
    deal_id: int


class DropRequest(BaseModel):
    phase: Phase


class DropResponse(BaseModel):
    result: str
    deal_id: int | None = None
    phase: str | None = None
    alert: str | None = None
    pipeline: PipelineResponse


class CustomerOptionResponse(BaseModel):
    id: int
    label: str


# ── Conversion Helpers ───────────────────────────────────────────────────────


def _deal_to_response(deal: Deal) -> DealResponse:
    return DealResponse(
        id=deal.id,
        title=deal.title,
        amount=deal.amount,
        phase=deal.phase.value,
        probability=deal.probability,
        expected_close_date=(
            deal.expected_close_date.isoformat() if deal.expected_close_date else None
        ),
        customer_id=deal.customer_id,
        customer_name=deal.customer_name,
        created_at=deal.created_at.isoformat() if deal.created_at else None,
    )


def _pipeline_response(board: PipelineBoard) -> PipelineResponse:
    columns = [
        ColumnResponse(
            phase=phase.value,
            color=phase.color,
            count=len(deals),
            deals=[_deal_to_response(d) for d in deals],
        )
        for phase, deals in board.columns().items()
    ]
    return PipelineResponse(
        columns=columns,
        deal_count=board.deal_count,
        total_amount=board.total_amount,
        drag_candidate=board.drag_candidate,
        stale=board.stale,
    )


# ── Kanban Endpoints ─────────────────────────────────────────────────────────


@router.get("/pipeline", response_model=PipelineResponse)
async def get_pipeline(
    refresh: bool = Query(default=False),
    board: PipelineBoard = Depends(get_board),
) -> PipelineResponse:
    """Kanban view. Reloads from the store when asked to or when the board is stale."""
    if refresh or board.stale:
        await board.load_all()
    return _pipeline_response(board)


@router.post("/pipeline/drag", status_code=status.HTTP_204_NO_CONTENT)
async def begin_drag(
    body: DragRequest,
    board: PipelineBoard = Depends(get_board),
) -> None:
    """Start dragging a deal card."""
    board.begin_drag(body.deal_id)


@router.delete("/pipeline/drag", status_code=status.HTTP_204_NO_CONTENT)
async def end_drag(board: PipelineBoard = Depends(get_board)) -> None:
    """Cancel the current drag."""
    board.end_drag()


@router.post("/pipeline/drop", response_model=DropResponse)
async def drop_on_phase(
    body: DropRequest,
    board: PipelineBoard = Depends(get_board),
) -> DropResponse:
    """Drop the dragged deal on a phase column.

    A rejected update is reported through ``alert`` with ``result`` set to
    ``rolled_back``; the returned pipeline is the reloaded snapshot.
    """
    move = await board.drop_on_phase(body.phase)
    return DropResponse(
        result=move.result.value,
        deal_id=move.deal_id,
        phase=move.phase.value if move.phase else None,
        alert=move.alert,
        pipeline=_pipeline_response(board),
    )


# ── List / Form Endpoints ────────────────────────────────────────────────────


@router.get("", response_model=DealListResponse)
async def list_deals(
    q: str | None = Query(default=None),
    board: PipelineBoard = Depends(get_board),
) -> DealListResponse:
    """List view, filtered by a keyword over title, customer name and id."""
    deals = board.search(q)
    return DealListResponse(
        deals=[_deal_to_response(d) for d in deals],
        deal_count=board.deal_count,
        total_amount=board.total_amount,
    )


@router.get("/customer-options", response_model=list[CustomerOptionResponse])
async def list_customer_options(
    board: PipelineBoard = Depends(get_board),
) -> list[CustomerOptionResponse]:
    """Customers offered by the deal form's selector."""
    options = await board.load_customer_options()
    return [CustomerOptionResponse(id=o.id, label=o.label) for o in options]


@router.post("", response_model=DealListResponse, status_code=status.HTTP_201_CREATED)
async def create_deal(
    body: DealCreate,
    board: PipelineBoard = Depends(get_board),
) -> DealListResponse:
    """Register a new deal and return the reloaded list."""
    board.form.open_create()
    await board.form.save(body)
    return await list_deals(q=None, board=board)


@router.patch("/{deal_id}", response_model=DealListResponse)
async def update_deal(
    deal_id: int,
    body: DealUpdate,
    board: PipelineBoard = Depends(get_board),
) -> DealListResponse:
    """Edit an existing deal and return the reloaded list."""
    board.form.open_edit(deal_id)
    await board.form.save(body)
    return await list_deals(q=None, board=board)


@router.delete("/{deal_id}", response_model=DealListResponse)
async def delete_deal(
    deal_id: int,
    board: PipelineBoard = Depends(get_board),
) -> DealListResponse:
    """Delete a deal and return the reloaded list."""
    await board.form.delete(deal_id)
    return await list_deals(q=None, board=board)
