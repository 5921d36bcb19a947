"""
Appointment service for calendar reads.

Read-only: the index is written by the ticket and ledger services and by
the rebuild job, never from here.
"""

from datetime import datetime

from clients.document_store import DocumentStore
from core.models import Appointment
from core.paths import APPOINTMENTS
from utils.ids import appointment_id
from utils.timezone import ensure_utc


class AppointmentService:
    """Service for appointment index queries."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self, ticket_id: str, service_id: str) -> Appointment | None:
        """
        Get the appointment record of a service item.

        Returns:
            Appointment if the item is scheduled, None otherwise.
        """
        row = self.store.get(APPOINTMENTS, appointment_id(ticket_id, service_id))
        if row is None:
            return None
        return Appointment.model_validate(row)

    def list_for_range(self, start: datetime, end_exclusive: datetime) -> list[Appointment]:
        """
        List appointments with start <= appointment_at < end_exclusive.

        Args:
            start: Range start (naive values are business local time)
            end_exclusive: Range end, not included

        Returns:
            Appointments ordered by appointment time ASC

        Raises:
            ValueError: If the range is empty or inverted
        """
        start = ensure_utc(start)
        end_exclusive = ensure_utc(end_exclusive)
        if end_exclusive <= start:
            raise ValueError("Range end must be after range start")

        rows = self.store.query(
            APPOINTMENTS,
            [("appointment_at", ">=", start), ("appointment_at", "<", end_exclusive)],
            order_by="appointment_at",
        )
        return [Appointment.model_validate(row) for row in rows]
