"""
Appointment index synchronization.

The appointments collection holds one record per scheduled service item,
keyed "<ticket_id>__<service_id>". A record exists iff the service item has
an appointment time. This module computes the writes that restore that rule
for a set of service items and folds them into a caller's write batch.

No reads are needed: upserts always carry the full mirrored field set, and
deleting an absent record is a no-op, so applying a delta twice is the same
as applying it once.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Protocol

from clients.document_store import SERVER_TIMESTAMP, WriteBatch
from core.models import ConfirmationLevel
from core.paths import APPOINTMENTS
from utils.ids import appointment_id

logger = logging.getLogger(__name__)


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _stored_confirmation(value: Any, path: str) -> ConfirmationLevel:
    """Stored confirmation level; legacy or hand-edited values read as NONE."""
    if value is None:
        return ConfirmationLevel.NONE
    try:
        return ConfirmationLevel(value)
    except ValueError:
        logger.warning(f"Unknown confirmation level {value!r} on {path}, treating as NONE")
        return ConfirmationLevel.NONE


class _Schedulable(Protocol):
    appointment_at: datetime | None
    service_name: str
    confirmation_level: ConfirmationLevel


@dataclass(frozen=True)
class AppointmentSource:
    """Everything the index mirrors from one service item and its ticket."""

    ticket_id: str
    service_id: str
    service_name: str
    appointment_at: datetime | None
    confirmation_level: ConfirmationLevel
    is_completed: bool
    assigned_employee_id: str
    customer_phone: str
    customer_name: str | None

    @property
    def appointment_id(self) -> str:
        return appointment_id(self.ticket_id, self.service_id)

    @classmethod
    def from_stored(
        cls,
        ticket_id: str,
        item: dict[str, Any],
        ticket: dict[str, Any] | None = None,
    ) -> "AppointmentSource":
        """
        Build from stored documents.

        The item's own fields win; ticket fields fill in whatever the item
        does not carry (items written before denormalization existed).
        """
        ticket = ticket or {}

        def pick(name: str, default: Any = None) -> Any:
            return _first_present(item.get(name), ticket.get(name), default)

        return cls(
            ticket_id=ticket_id,
            service_id=_first_present(item.get("service_id"), item["id"]),
            service_name=_first_present(item.get("service_name"), ""),
            appointment_at=item.get("appointment_at"),
            confirmation_level=_stored_confirmation(
                item.get("confirmation_level"), f"{ticket_id}/{item['id']}"
            ),
            is_completed=bool(item.get("is_completed")),
            assigned_employee_id=pick("assigned_employee_id", ""),
            customer_phone=pick("customer_phone", ""),
            customer_name=pick("customer_name"),
        )


@dataclass
class AppointmentDelta:
    """Index writes for a set of service items."""

    upserts: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    deletes: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.upserts) + len(self.deletes)


def appointment_document(source: AppointmentSource) -> dict[str, Any]:
    """Full field set of the index record for a scheduled item."""
    if source.appointment_at is None:
        raise ValueError(f"Service {source.service_id} on ticket {source.ticket_id} is not scheduled")

    return {
        "ticket_id": source.ticket_id,
        "service_id": source.service_id,
        "service_name": source.service_name,
        "appointment_at": source.appointment_at,
        "confirmation_level": source.confirmation_level.value,
        "is_completed": source.is_completed,
        "assigned_employee_id": source.assigned_employee_id,
        "customer_phone": source.customer_phone,
        "customer_name": source.customer_name,
        "updated_at": SERVER_TIMESTAMP,
    }


def compute_appointment_delta(sources: Iterable[AppointmentSource]) -> AppointmentDelta:
    """Upsert every scheduled item's record, delete every unscheduled item's record."""
    delta = AppointmentDelta()
    for source in sources:
        if source.appointment_at is not None:
            delta.upserts.append((source.appointment_id, appointment_document(source)))
        else:
            delta.deletes.append(source.appointment_id)
    return delta


def apply_appointment_delta(batch: WriteBatch, delta: AppointmentDelta) -> None:
    """Fold index writes into a write batch."""
    for doc_id, data in delta.upserts:
        batch.set(APPOINTMENTS, doc_id, data, merge=True)
    for doc_id in delta.deletes:
        batch.delete(APPOINTMENTS, doc_id)


@dataclass(frozen=True)
class NextAppointment:
    """The ticket-level summary of its earliest scheduled service."""

    appointment_at: datetime
    service_name: str
    confirmation_level: ConfirmationLevel


def select_next_appointment(items: Iterable[_Schedulable]) -> NextAppointment | None:
    """
    Earliest scheduled item, ties broken by input order.

    Unscheduled items are never candidates. None if nothing is scheduled.
    """
    candidates = [
        (item.appointment_at, position, item)
        for position, item in enumerate(items)
        if item.appointment_at is not None
    ]
    if not candidates:
        return None

    appointment_at, _, item = min(candidates, key=lambda c: (c[0], c[1]))
    return NextAppointment(
        appointment_at=appointment_at,
        service_name=item.service_name,
        confirmation_level=item.confirmation_level,
    )


def next_appointment_fields(next_appointment: NextAppointment | None) -> dict[str, Any]:
    """Ticket header fields for the summary; all None when nothing is scheduled."""
    if next_appointment is None:
        return {
            "next_appointment_at": None,
            "next_appointment_service_name": None,
            "next_appointment_confirmation_level": None,
        }
    return {
        "next_appointment_at": next_appointment.appointment_at,
        "next_appointment_service_name": next_appointment.service_name,
        "next_appointment_confirmation_level": next_appointment.confirmation_level.value,
    }
