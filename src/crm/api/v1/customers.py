"""REST API endpoints for the customer list and customer detail screens."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from src.crm.api.deps import get_customer_directory, get_store
from src.crm.customers.schemas import (
    ContactLog,
    ContactLogCreate,
    Customer,
    CustomerCreate,
    RelatedContract,
    RelatedDeal,
)
from src.crm.customers.service import CustomerDetail, CustomerDirectory
from src.crm.store.adapter import DataStore

router = APIRouter(prefix="/customers", tags=["customers"])


class CustomerListResponse(BaseModel):
    customers: list[Customer]
    customer_count: int


class CustomerDetailResponse(BaseModel):
    """Customer overview tab plus the contact history tab."""

    customer: Customer
    deals: list[RelatedDeal] = Field(default_factory=list)
    contracts: list[RelatedContract] = Field(default_factory=list)
    logs: list[ContactLog] = Field(default_factory=list)
    pipeline_amount: int = 0
    active_contract_count: int = 0


def _detail_response(detail: CustomerDetail) -> CustomerDetailResponse:
    return CustomerDetailResponse(
        customer=detail.customer,
        deals=detail.deals,
        contracts=detail.contracts,
        logs=detail.logs,
        pipeline_amount=detail.pipeline_amount,
        active_contract_count=detail.active_contract_count,
    )


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    q: str | None = Query(default=None),
    refresh: bool = Query(default=False),
    directory: CustomerDirectory = Depends(get_customer_directory),
) -> CustomerListResponse:
    """Customer list, filtered by name, contact person or customer code."""
    if refresh:
        await directory.load_all()
    return CustomerListResponse(
        customers=directory.search(q),
        customer_count=len(directory.customers),
    )


@router.post("", response_model=CustomerListResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    body: CustomerCreate,
    directory: CustomerDirectory = Depends(get_customer_directory),
) -> CustomerListResponse:
    """Register a customer; a blank code is numbered automatically."""
    await directory.create(body)
    return CustomerListResponse(
        customers=directory.customers,
        customer_count=len(directory.customers),
    )


@router.get("/{customer_id}", response_model=CustomerDetailResponse)
async def get_customer_detail(
    customer_id: int,
    store: DataStore = Depends(get_store),
) -> CustomerDetailResponse:
    """Customer detail with related deals, contracts and contact history."""
    detail = CustomerDetail(store, customer_id)
    await detail.load()
    return _detail_response(detail)


@router.post(
    "/{customer_id}/contact-logs",
    response_model=CustomerDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_contact_log(
    customer_id: int,
    body: ContactLogCreate,
    store: DataStore = Depends(get_store),
) -> CustomerDetailResponse:
    """Record a contact; the customer's last-contact date follows it."""
    detail = CustomerDetail(store, customer_id)
    await detail.load()
    await detail.add_contact_log(body)
    return _detail_response(detail)
