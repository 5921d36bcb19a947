"""Appointment index record: a queryable projection of one scheduled service item."""

from datetime import datetime

from pydantic import BaseModel

from core.models.ticket import ConfirmationLevel


class Appointment(BaseModel):
    """
    Exists iff the service item (ticket_id, service_id) has an appointment.

    Never the source of truth for ticket data.
    """

    id: str
    ticket_id: str
    service_id: str
    service_name: str
    appointment_at: datetime
    confirmation_level: ConfirmationLevel = ConfirmationLevel.NONE
    is_completed: bool = False
    assigned_employee_id: str
    customer_phone: str
    customer_name: str | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
