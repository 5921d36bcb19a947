"""
Appointment index rebuild.

Re-derives appointment records from ticket data instead of patching them.
This is the repair path for index drift (a failed write, a hand edit, or
legacy data that predates the index). Writes go out in several batches, so
a failure part way leaves earlier tickets repaired and later ones not;
running the job again finishes the work.
"""

import logging
from dataclasses import dataclass

from clients.document_store import MAX_BATCH_OPERATIONS, DocumentStore, WriteBatch
from core.event_bus import EventBus
from core.events import AppointmentsRebuilt
from core.paths import APPOINTMENTS, TICKETS, service_items
from core.services.appointment_index import (
    AppointmentSource,
    apply_appointment_delta,
    compute_appointment_delta,
)

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_THRESHOLD = 450
DEFAULT_MAX_SERVICE_ITEMS = 200


@dataclass(frozen=True)
class RebuildResult:
    """Counts of the writes issued by one rebuild run."""

    tickets_scanned: int
    appointments_upserted: int
    appointments_deleted: int
    batches_committed: int


class _FlushingBatch:
    """A write batch that commits itself once it holds `threshold` operations."""

    def __init__(self, store: DocumentStore, threshold: int):
        self.store = store
        self.threshold = threshold
        self.batch: WriteBatch = store.batch()
        self.commits = 0

    def flush(self, force: bool = False) -> None:
        if len(self.batch) == 0:
            return
        if not force and len(self.batch) < self.threshold:
            return

        self.batch.commit()
        self.commits += 1
        logger.debug(f"Committed rebuild batch {self.commits}")
        self.batch = self.store.batch()


class AppointmentRebuildJob:
    """Rebuilds the appointment index from tickets and their service items."""

    def __init__(
        self,
        store: DocumentStore,
        event_bus: EventBus,
        flush_threshold: int = DEFAULT_FLUSH_THRESHOLD,
        max_service_items: int = DEFAULT_MAX_SERVICE_ITEMS
    ):
        if not 1 <= flush_threshold <= MAX_BATCH_OPERATIONS:
            raise ValueError(
                f"flush_threshold must be between 1 and {MAX_BATCH_OPERATIONS}, got {flush_threshold}"
            )
        if max_service_items < 1:
            raise ValueError(f"max_service_items must be at least 1, got {max_service_items}")

        self.store = store
        self.event_bus = event_bus
        self.flush_threshold = flush_threshold
        self.max_service_items = max_service_items

    def run(self, max_tickets: int = 200) -> RebuildResult:
        """
        Re-derive appointment records for up to max_tickets tickets.

        Every scanned service item gets an upsert (scheduled) or a delete
        (unscheduled). Appointment records of a scanned ticket whose service
        item no longer exists are deleted too.

        Args:
            max_tickets: Maximum tickets to scan

        Returns:
            RebuildResult with the number of writes issued

        Raises:
            ValueError: If max_tickets is below 1
            DocumentStoreError: If a batch fails to commit
        """
        if max_tickets < 1:
            raise ValueError(f"max_tickets must be at least 1, got {max_tickets}")

        writer = _FlushingBatch(self.store, self.flush_threshold)
        upserted = 0
        deleted = 0

        tickets = self.store.query(TICKETS, limit=max_tickets)

        for ticket in tickets:
            ticket_id = ticket["id"]
            items = self.store.query(service_items(ticket_id), limit=self.max_service_items)

            expected = set()
            for item in items:
                source = AppointmentSource.from_stored(ticket_id, item, ticket)
                expected.add(source.appointment_id)

                delta = compute_appointment_delta([source])
                apply_appointment_delta(writer.batch, delta)
                upserted += len(delta.upserts)
                deleted += len(delta.deletes)
                writer.flush()

            # A capped item listing cannot tell an orphan from an unread item
            if len(items) >= self.max_service_items:
                logger.warning(
                    f"Ticket {ticket_id} has {self.max_service_items}+ service items; "
                    f"skipping orphan cleanup"
                )
                continue

            for record in self.store.query(APPOINTMENTS, [("ticket_id", "==", ticket_id)]):
                if record["id"] in expected:
                    continue
                writer.batch.delete(APPOINTMENTS, record["id"])
                deleted += 1
                writer.flush()

        writer.flush(force=True)

        result = RebuildResult(
            tickets_scanned=len(tickets),
            appointments_upserted=upserted,
            appointments_deleted=deleted,
            batches_committed=writer.commits,
        )
        logger.info(
            f"Rebuilt appointments: {result.tickets_scanned} tickets, "
            f"{result.appointments_upserted} upserted, {result.appointments_deleted} deleted, "
            f"{result.batches_committed} batches"
        )

        self.event_bus.publish(AppointmentsRebuilt.create(result=result))
        return result
