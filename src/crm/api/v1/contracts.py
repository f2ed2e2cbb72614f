"""REST API endpoints for the contract list screen."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from src.crm.api.deps import get_contract_list
from src.crm.contracts.schemas import Contract, ContractCreate
from src.crm.contracts.service import ContractList

router = APIRouter(prefix="/contracts", tags=["contracts"])


class ContractRow(BaseModel):
    id: int
    deal_id: int
    status: str | None = None
    deal_title: str
    customer_name: str
    start_date: str | None = None
    end_date: str | None = None
    pdf_url: str | None = None
    expired: bool = False


class ContractListResponse(BaseModel):
    contracts: list[ContractRow]
    active_count: int


class DealOptionResponse(BaseModel):
    id: int
    label: str


def _contract_to_row(contract: Contract) -> ContractRow:
    return ContractRow(
        id=contract.id,
        deal_id=contract.deal_id,
        status=contract.status.value if contract.status else None,
        deal_title=contract.deal_title,
        customer_name=contract.customer_name,
        start_date=contract.start_date.isoformat() if contract.start_date else None,
        end_date=contract.end_date.isoformat() if contract.end_date else None,
        pdf_url=contract.pdf_url or None,
        expired=contract.is_expired(),
    )


@router.get("", response_model=ContractListResponse)
async def list_contracts(
    q: str | None = Query(default=None),
    refresh: bool = Query(default=False),
    contracts: ContractList = Depends(get_contract_list),
) -> ContractListResponse:
    """Contract list, filtered by customer name, deal title or contract id."""
    if refresh:
        await contracts.load_all()
    return ContractListResponse(
        contracts=[_contract_to_row(c) for c in contracts.search(q)],
        active_count=contracts.active_count,
    )


@router.get("/deal-options", response_model=list[DealOptionResponse])
async def list_deal_options(
    contracts: ContractList = Depends(get_contract_list),
) -> list[DealOptionResponse]:
    """Won deals a new contract can be attached to."""
    return [DealOptionResponse(id=o.id, label=o.label) for o in contracts.deal_options]


@router.post("", response_model=ContractListResponse, status_code=status.HTTP_201_CREATED)
async def create_contract(
    body: ContractCreate,
    contracts: ContractList = Depends(get_contract_list),
) -> ContractListResponse:
    """Register a contract and return the reloaded list."""
    await contracts.create(body)
    return await list_contracts(q=None, refresh=False, contracts=contracts)
