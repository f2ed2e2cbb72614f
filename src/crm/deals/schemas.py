"""Pydantic schemas for the sales pipeline -- phases, deals, customer projections.

Defines:
- Phase: the closed, ordered set of pipeline stages with display colors
- CustomerRef / CustomerOption: read-only customer projections joined onto deals
- Deal: a pipeline record as read from the store
- DealCreate / DealUpdate: form payloads written back to the store

Phase values are the labels stored in the ``deals.phase`` column, so any row
carrying an unknown phase fails validation when parsed into a Deal.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ───────────────────────────────────────────────────────────────────


class Phase(str, Enum):
    """Sales pipeline phase, in board column order."""

    LEAD = "リード"
    CONTACTED = "接触済"
    INFO_PROVIDED = "情報提供"
    HEARING = "ヒアリング"
    PROPOSAL_PREP = "提案準備"
    PROPOSED = "提案済"
    CONSIDERING = "検討中"
    ON_HOLD = "保留"
    CONTRACT = "契約"
    LOST = "見送り"

    @property
    def color(self) -> str:
        """Accent color of the phase column."""
        return PHASE_COLORS[self]


PHASE_COLORS: dict[Phase, str] = {
    Phase.LEAD: "slate-400",
    Phase.CONTACTED: "blue-300",
    Phase.INFO_PROVIDED: "blue-400",
    Phase.HEARING: "blue-500",
    Phase.PROPOSAL_PREP: "indigo-400",
    Phase.PROPOSED: "purple-500",
    Phase.CONSIDERING: "yellow-400",
    Phase.ON_HOLD: "orange-300",
    Phase.CONTRACT: "green-500",
    Phase.LOST: "gray-500",
}

# Phase counted as "won" on the dashboard and offered for new contracts
WON_PHASE = Phase.CONTRACT


# ── Customer Projections ────────────────────────────────────────────────────


class CustomerRef(BaseModel):
    """Customer display fields embedded on a deal row."""

    name: str
    contact_person: str | None = None


class CustomerOption(BaseModel):
    """Customer entry offered by the deal form's customer selector."""

    id: int
    name: str
    contact_person: str | None = None

    @property
    def label(self) -> str:
        if self.contact_person:
            return f"{self.name} ({self.contact_person})"
        return self.name


# ── Deal Schemas ────────────────────────────────────────────────────────────


class Deal(BaseModel):
    """A deal as read from the store, with the joined customer projection."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    amount: int = Field(default=0, ge=0)
    phase: Phase
    probability: int = Field(default=0, ge=0, le=100)
    expected_close_date: date | None = None
    customer_id: int | None = None
    customer: CustomerRef | None = Field(default=None, alias="customers")
    created_at: datetime | None = None

    @property
    def customer_name(self) -> str:
        return self.customer.name if self.customer else ""


class DealCreate(BaseModel):
    """Payload of the new-deal form. Customer, title and amount are required."""

    title: str = Field(min_length=1)
    customer_id: int
    amount: int = Field(ge=0)
    expected_close_date: date | None = None
    phase: Phase = Phase.LEAD
    probability: int = Field(default=10, ge=0, le=100)


class DealUpdate(BaseModel):
    """Partial payload of the edit-deal form."""

    title: str | None = Field(default=None, min_length=1)
    customer_id: int | None = None
    amount: int | None = Field(default=None, ge=0)
    expected_close_date: date | None = None
    phase: Phase | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
