"""Pydantic schemas for customers and their contact history."""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.crm.contracts.schemas import ContractStatus
from src.crm.deals.schemas import Phase


class CustomerType(str, Enum):
    COMPANY = "企業"
    SCHOOL = "学校"
    MUNICIPALITY = "自治体"
    INDIVIDUAL = "個人"


class Region(str, Enum):
    KANTO = "関東"
    KANSAI = "関西"
    CHUBU = "中部"
    KYUSHU = "九州"
    OTHER = "その他"


class Rank(str, Enum):
    S = "S"
    A = "A"
    B = "B"
    C = "C"

    @property
    def is_priority(self) -> bool:
        """S and A customers are highlighted in lists."""
        return self in (Rank.S, Rank.A)


class CustomerStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class ContactMethod(str, Enum):
    PHONE = "電話"
    EMAIL = "メール"
    ONLINE_MEETING = "オンライン会議"
    VISIT = "訪問"


class Customer(BaseModel):
    """Full customer record."""

    id: int
    customer_code: str | None = None
    name: str
    type: CustomerType | None = CustomerType.COMPANY
    contact_person: str | None = None
    department: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    region: Region | None = None
    last_contact_date: date | None = None
    registration_date: date | None = None
    owner: str | None = None
    referral_source: str | None = None
    referral_details: str | None = None
    rank: Rank | None = Rank.C
    image_url: str | None = None
    status: CustomerStatus | None = CustomerStatus.ACTIVE

    @field_validator(
        "type", "region", "rank", "status", "last_contact_date", "registration_date", mode="before"
    )
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        return None if value == "" else value


class CustomerCreate(BaseModel):
    """Payload of the new-customer form. Only the name is required.

    A blank ``customer_code`` or ``registration_date`` is filled in on save.
    """

    customer_code: str = ""
    name: str = Field(min_length=1)
    type: CustomerType = CustomerType.COMPANY
    contact_person: str = ""
    department: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    region: Region = Region.KANTO
    owner: str = "自分"
    referral_source: str = ""
    referral_details: str = ""
    rank: Rank = Rank.C
    status: CustomerStatus = CustomerStatus.ACTIVE
    image_url: str = ""
    last_contact_date: date | None = None
    registration_date: date | None = None


class ContactLog(BaseModel):
    id: int
    customer_id: int
    contact_date: date
    method: ContactMethod
    note: str = ""
    created_by: str | None = None


class ContactLogCreate(BaseModel):
    """Payload of the contact-log modal on the customer detail screen."""

    contact_date: date = Field(default_factory=date.today)
    method: ContactMethod = ContactMethod.PHONE
    note: str = ""
    created_by: str = "自分"


class RelatedDeal(BaseModel):
    id: int
    title: str
    phase: Phase
    amount: int = 0
    expected_close_date: date | None = None


class DealTitle(BaseModel):
    title: str


class RelatedContract(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    deal_id: int
    start_date: date | None = None
    end_date: date | None = None
    status: ContractStatus | None = None
    deal: DealTitle | None = Field(default=None, alias="deals")
