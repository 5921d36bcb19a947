"""Bill models.

A bill groups INCOME ledger entries created together. Its total and item
count are a snapshot taken at creation and never recomputed.
"""

from datetime import datetime

from pydantic import AwareDatetime, BaseModel, Field, field_validator

from core.models.ledger import IncomeEntry


class BillLine(BaseModel):
    """One service line as entered. Invalid lines are dropped, not rejected."""

    service_id: str = ""
    service_name: str = ""
    unit_amount: float | None = None
    quantity: float | None = None

    @field_validator("unit_amount", "quantity", mode="before")
    @classmethod
    def _unparseable_to_none(cls, value):
        # Blank or non-numeric input leaves the line unusable instead of failing the bill
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                return None
        return None


class BillCreate(BaseModel):
    """Data required to create a bill with its income entries."""

    date: AwareDatetime
    lines: list[BillLine] = Field(default_factory=list)


class Bill(BaseModel):
    """Bill header as stored."""

    id: str
    date: datetime
    total_amount: float
    item_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class BillWithEntries(BaseModel):
    """A created bill together with the income entries it produced."""

    bill: Bill
    entries: list[IncomeEntry]
