"""Pydantic schemas for contracts signed on won deals."""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContractStatus(str, Enum):
    ACTIVE = "有効"
    ENDED = "終了"
    CANCELLED = "解約"
    PREPARING = "契約準備中"


class CustomerName(BaseModel):
    name: str


class ContractDeal(BaseModel):
    """Deal projection joined onto a contract row."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    customer: CustomerName | None = Field(default=None, alias="customers")


class Contract(BaseModel):
    """A contract with its deal title and customer name."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    deal_id: int
    start_date: date | None = None
    end_date: date | None = None
    status: ContractStatus | None = ContractStatus.ACTIVE
    pdf_url: str | None = None
    deal: ContractDeal | None = Field(default=None, alias="deals")

    @field_validator("status", "start_date", "end_date", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        return None if value == "" else value

    @property
    def deal_title(self) -> str:
        return self.deal.title if self.deal else ""

    @property
    def customer_name(self) -> str:
        if self.deal and self.deal.customer:
            return self.deal.customer.name
        return ""

    def is_expired(self, today: date | None = None) -> bool:
        """An active contract whose end date has already passed."""
        if self.status is not ContractStatus.ACTIVE or self.end_date is None:
            return False
        return self.end_date < (today or date.today())


class ContractCreate(BaseModel):
    """Payload of the new-contract form. The deal is required."""

    deal_id: int
    start_date: date | None = None
    end_date: date | None = None
    status: ContractStatus = ContractStatus.ACTIVE
    pdf_url: str = ""


class DealOption(BaseModel):
    """Won deal offered by the contract form's deal selector."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    customer: CustomerName | None = Field(default=None, alias="customers")

    @property
    def label(self) -> str:
        if self.customer:
            return f"{self.title} ({self.customer.name})"
        return self.title
