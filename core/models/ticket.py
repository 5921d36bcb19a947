"""Ticket aggregate models: ticket header, service items, follow-up actions."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from utils.timezone import ensure_utc, parse_date_input


class TicketStatus(str, Enum):
    """Ticket lifecycle status."""

    NEW_CALL = "NEW_CALL"
    PRICE_DISCUSSION_PENDING = "PRICE_DISCUSSION_PENDING"
    APPOINTMENT_TENTATIVE = "APPOINTMENT_TENTATIVE"
    APPOINTMENT_CONFIRMED = "APPOINTMENT_CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ConfirmationLevel(str, Enum):
    """Customer's commitment to a scheduled service."""

    NONE = "NONE"
    PARTIALLY_CONFIRMED = "PARTIALLY_CONFIRMED"
    FULLY_CONFIRMED = "FULLY_CONFIRMED"


def _strip_or_none(value: str | None) -> str | None:
    trimmed = (value or "").strip()
    return trimmed or None


class ServiceItemDraft(BaseModel):
    """
    Desired state of one service on a ticket.

    appointment_at accepts a datetime or the "yyyy-MM-ddTHH:mm" input form;
    blank or unparseable text means "not scheduled".
    """

    service_id: str = Field(..., min_length=1)
    service_name: str = Field(..., min_length=1)
    price_text: str | None = None
    service_note: str | None = None
    appointment_at: datetime | None = None
    confirmation_level: ConfirmationLevel = ConfirmationLevel.NONE
    is_completed: bool = False
    completed_at: datetime | None = None

    @field_validator("appointment_at", mode="before")
    @classmethod
    def _parse_appointment_input(cls, value):
        if isinstance(value, str):
            return parse_date_input(value)
        return value

    @field_validator("appointment_at", "completed_at")
    @classmethod
    def _normalize_to_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @field_validator("price_text", "service_note")
    @classmethod
    def _normalize_text(cls, value: str | None) -> str | None:
        return _strip_or_none(value)


class ActionDraft(BaseModel):
    """Desired state of one follow-up action. id is None for new actions."""

    id: str | None = None
    description: str = ""
    due_at: str | datetime | None = None
    is_completed: bool = False

    def parsed_due_at(self) -> datetime | None:
        """Due timestamp in UTC, or None when missing or unparseable."""
        if isinstance(self.due_at, datetime):
            return ensure_utc(self.due_at)
        return parse_date_input(self.due_at)


class TicketCreate(BaseModel):
    """Full desired state of a new ticket aggregate."""

    customer_phone: str
    customer_name: str | None = None
    status: TicketStatus = TicketStatus.NEW_CALL
    assigned_employee_id: str = Field(..., min_length=1)
    overall_note: str | None = None
    service_items: list[ServiceItemDraft] = Field(default_factory=list)
    actions: list[ActionDraft] = Field(default_factory=list)

    @field_validator("customer_phone")
    @classmethod
    def _require_phone(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Customer phone is required")
        return trimmed

    @field_validator("customer_name", "overall_note")
    @classmethod
    def _normalize_text(cls, value: str | None) -> str | None:
        return _strip_or_none(value)

    @model_validator(mode="after")
    def _unique_service_ids(self):
        seen = set()
        for item in self.service_items:
            if item.service_id in seen:
                raise ValueError(f"Service {item.service_id} appears more than once on the ticket")
            seen.add(item.service_id)
        return self


class TicketUpdate(TicketCreate):
    """
    Full desired state of an existing ticket aggregate.

    The previous child id sets are optional. When omitted, the service reads
    the current ids from the store before diffing.
    """

    previous_service_item_ids: list[str] | None = None
    previous_action_ids: list[str] | None = None


class Ticket(BaseModel):
    """Ticket header as stored, including the next-appointment summary."""

    id: str
    customer_phone: str
    customer_name: str | None = None
    status: TicketStatus
    assigned_employee_id: str
    overall_note: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    next_appointment_at: datetime | None = None
    next_appointment_service_name: str | None = None
    next_appointment_confirmation_level: ConfirmationLevel | None = None

    model_config = {"from_attributes": True}


class TicketServiceItem(BaseModel):
    """One service on a ticket, keyed by (ticket_id, service_id)."""

    id: str
    ticket_id: str
    service_id: str
    service_name: str
    price_text: str | None = None
    service_note: str | None = None
    appointment_at: datetime | None = None
    confirmation_level: ConfirmationLevel = ConfirmationLevel.NONE
    is_completed: bool = False
    completed_at: datetime | None = None
    # Copied from the ticket for index queries
    assigned_employee_id: str | None = None
    customer_phone: str | None = None
    customer_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class TicketAction(BaseModel):
    """Follow-up action on a ticket. Never stored without a due time."""

    id: str
    description: str
    due_at: datetime
    is_completed: bool = False
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
