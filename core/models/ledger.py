"""Ledger domain models.

A ledger entry is an immutable financial fact, either INCOME or EXPENSE.
The two kinds carry different fields, so they are separate models joined
in a union discriminated by "type".
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import AwareDatetime, BaseModel, Field, TypeAdapter


class LedgerEntryType(str, Enum):
    """Kind of financial fact."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class IncomeEntry(BaseModel):
    """Income for a service, optionally traced to a ticket or a bill."""

    id: str
    type: Literal["INCOME"] = "INCOME"
    date: datetime
    amount: float
    service_id: str
    service_name: str
    ticket_id: str | None = None
    bill_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ExpenseEntry(BaseModel):
    """Money spent, with the reason it was spent."""

    id: str
    type: Literal["EXPENSE"] = "EXPENSE"
    date: datetime
    amount: float
    reason: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


LedgerEntry = Annotated[Union[IncomeEntry, ExpenseEntry], Field(discriminator="type")]

ledger_entry_adapter: TypeAdapter[LedgerEntry] = TypeAdapter(LedgerEntry)


class IncomeCreate(BaseModel):
    """Manually recorded income."""

    service_id: str
    service_name: str
    date: AwareDatetime
    amount: float


class ExpenseCreate(BaseModel):
    """Manually recorded expense."""

    reason: str
    date: AwareDatetime
    amount: float


class LedgerEntryUpdate(BaseModel):
    """
    Full replacement of a ledger entry.

    The type may change; the fields of the new type are required and the
    fields of the other type are dropped.
    """

    type: LedgerEntryType
    date: AwareDatetime
    amount: float
    service_id: str | None = None
    service_name: str | None = None
    reason: str | None = None
