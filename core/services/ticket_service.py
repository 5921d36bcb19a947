"""
Ticket service for the ticket aggregate.

A ticket owns its service items and follow-up actions, and every service
item is mirrored into the appointment index. Create, update and delete each
write the header, the children and the index changes in ONE batch: either
all of it commits or none of it does.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from clients.document_store import SERVER_TIMESTAMP, DocumentStore, WriteBatch
from core.event_bus import EventBus
from core.events import TicketCreated, TicketDeleted, TicketUpdated
from core.models import (
    ActionDraft,
    ServiceItemDraft,
    Ticket,
    TicketAction,
    TicketCreate,
    TicketServiceItem,
    TicketUpdate,
)
from core.paths import APPOINTMENTS, TICKETS, actions, service_items
from core.services.appointment_index import (
    AppointmentSource,
    apply_appointment_delta,
    compute_appointment_delta,
    next_appointment_fields,
    select_next_appointment,
)
from utils.ids import appointment_id, new_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChildIdDiff:
    """How a ticket's child id set changes between two states."""

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


def diff_child_ids(previous: Iterable[str], desired: Iterable[str]) -> ChildIdDiff:
    """
    Diff two child id sets, keeping input order.

    Args:
        previous: Ids that currently exist
        desired: Ids that should exist afterwards

    Returns:
        created (desired only), updated (both), deleted (previous only)
    """
    previous = _unique(previous)
    desired = _unique(desired)
    previous_set = set(previous)
    desired_set = set(desired)

    return ChildIdDiff(
        created=[i for i in desired if i not in previous_set],
        updated=[i for i in desired if i in previous_set],
        deleted=[i for i in previous if i not in desired_set],
    )


def _header_fields(data: TicketCreate) -> dict:
    fields = {
        "customer_phone": data.customer_phone,
        "customer_name": data.customer_name,
        "status": data.status.value,
        "assigned_employee_id": data.assigned_employee_id,
        "overall_note": data.overall_note,
        "updated_at": SERVER_TIMESTAMP,
    }
    fields.update(next_appointment_fields(select_next_appointment(data.service_items)))
    return fields


def _service_item_fields(ticket_id: str, item: ServiceItemDraft, data: TicketCreate) -> dict:
    return {
        "ticket_id": ticket_id,
        "service_id": item.service_id,
        "service_name": item.service_name,
        "price_text": item.price_text,
        "service_note": item.service_note,
        "appointment_at": item.appointment_at,
        "confirmation_level": item.confirmation_level.value,
        "is_completed": item.is_completed,
        "assigned_employee_id": data.assigned_employee_id,
        "customer_phone": data.customer_phone,
        "customer_name": data.customer_name,
        "updated_at": SERVER_TIMESTAMP,
    }


def _appointment_sources(ticket_id: str, data: TicketCreate) -> list[AppointmentSource]:
    return [
        AppointmentSource(
            ticket_id=ticket_id,
            service_id=item.service_id,
            service_name=item.service_name,
            appointment_at=item.appointment_at,
            confirmation_level=item.confirmation_level,
            is_completed=item.is_completed,
            assigned_employee_id=data.assigned_employee_id,
            customer_phone=data.customer_phone,
            customer_name=data.customer_name,
        )
        for item in data.service_items
    ]


def _action_fields(action: ActionDraft, due_at: datetime) -> dict:
    return {
        "description": action.description.strip(),
        "due_at": due_at,
        "is_completed": action.is_completed,
    }


class TicketService:
    """Service for ticket aggregate operations."""

    def __init__(self, store: DocumentStore, event_bus: EventBus):
        self.store = store
        self.event_bus = event_bus

    def create(self, data: TicketCreate) -> Ticket:
        """
        Create a ticket with its service items and actions.

        Actions whose due time is missing or unparseable are left out.

        Args:
            data: Full desired ticket state

        Returns:
            Created ticket
        """
        ticket_id = new_id()
        batch = self.store.batch()

        batch.set(TICKETS, ticket_id, {**_header_fields(data), "created_at": SERVER_TIMESTAMP})

        for item in data.service_items:
            fields = _service_item_fields(ticket_id, item, data)
            fields["completed_at"] = item.completed_at if item.is_completed else None
            fields["created_at"] = SERVER_TIMESTAMP
            batch.set(service_items(ticket_id), item.service_id, fields)

        apply_appointment_delta(batch, compute_appointment_delta(_appointment_sources(ticket_id, data)))

        for action_id, action, due_at in self._desired_actions(ticket_id, data.actions):
            batch.set(
                actions(ticket_id), action_id,
                {**_action_fields(action, due_at), "created_at": SERVER_TIMESTAMP}
            )

        batch.commit()
        logger.info(
            f"Created ticket {ticket_id} with {len(data.service_items)} services"
        )

        ticket = self._require(ticket_id)
        self.event_bus.publish(TicketCreated.create(ticket=ticket))
        return ticket

    def update(self, ticket_id: str, data: TicketUpdate) -> Ticket:
        """
        Replace a ticket aggregate with a new desired state.

        Service items and actions are diffed against the previous id sets:
        new ids are created, kept ids updated in place, missing ids deleted
        (for service items, together with their appointment record). The
        previous sets come from the caller when given, otherwise from the store.

        Args:
            ticket_id: Ticket id
            data: Full desired ticket state

        Returns:
            Updated ticket

        Raises:
            ValueError: If ticket not found
        """
        if self.get_by_id(ticket_id) is None:
            raise ValueError(f"Ticket {ticket_id} not found")

        previous_service_ids = data.previous_service_item_ids
        if previous_service_ids is None:
            previous_service_ids = self._child_ids(service_items(ticket_id))

        previous_action_ids = data.previous_action_ids
        if previous_action_ids is None:
            previous_action_ids = self._child_ids(actions(ticket_id))

        batch = self.store.batch()
        batch.update(TICKETS, ticket_id, _header_fields(data))

        service_diff = diff_child_ids(
            previous_service_ids, [item.service_id for item in data.service_items]
        )
        existing = set(service_diff.updated)

        for item in data.service_items:
            fields = _service_item_fields(ticket_id, item, data)
            # Completion time is only ever set by complete_service; never resurrect it here
            if item.is_completed:
                if item.completed_at is not None:
                    fields["completed_at"] = item.completed_at
            else:
                fields["completed_at"] = None

            if item.service_id in existing:
                batch.update(service_items(ticket_id), item.service_id, fields)
            else:
                batch.set(service_items(ticket_id), item.service_id, {**fields, "created_at": SERVER_TIMESTAMP})

        self._delete_service_items(batch, ticket_id, service_diff.deleted)
        apply_appointment_delta(batch, compute_appointment_delta(_appointment_sources(ticket_id, data)))

        desired_actions = self._desired_actions(ticket_id, data.actions)
        action_diff = diff_child_ids(previous_action_ids, [a[0] for a in desired_actions])
        kept_actions = set(action_diff.updated)

        for action_id, action, due_at in desired_actions:
            fields = _action_fields(action, due_at)
            if action_id in kept_actions:
                batch.update(actions(ticket_id), action_id, fields)
            else:
                batch.set(actions(ticket_id), action_id, {**fields, "created_at": SERVER_TIMESTAMP})

        for action_id in action_diff.deleted:
            batch.delete(actions(ticket_id), action_id)

        batch.commit()
        logger.info(
            f"Updated ticket {ticket_id}: services +{len(service_diff.created)} "
            f"~{len(service_diff.updated)} -{len(service_diff.deleted)}, "
            f"actions +{len(action_diff.created)} ~{len(action_diff.updated)} -{len(action_diff.deleted)}"
        )

        ticket = self._require(ticket_id)
        self.event_bus.publish(TicketUpdated.create(ticket=ticket))
        return ticket

    def delete(self, ticket_id: str) -> bool:
        """
        Delete a ticket with all its children and appointment records.

        Same removal path as an update whose desired state has no children.

        Args:
            ticket_id: Ticket id

        Returns:
            True if deleted, False if not found
        """
        current = self.get_by_id(ticket_id)
        if current is None:
            return False

        service_diff = diff_child_ids(self._child_ids(service_items(ticket_id)), [])
        action_diff = diff_child_ids(self._child_ids(actions(ticket_id)), [])

        batch = self.store.batch()
        self._delete_service_items(batch, ticket_id, service_diff.deleted)

        # Index records whose service item is already gone
        removed = {appointment_id(ticket_id, sid) for sid in service_diff.deleted}
        for record in self.store.query(APPOINTMENTS, [("ticket_id", "==", ticket_id)]):
            if record["id"] not in removed:
                batch.delete(APPOINTMENTS, record["id"])

        for action_id in action_diff.deleted:
            batch.delete(actions(ticket_id), action_id)

        batch.delete(TICKETS, ticket_id)
        batch.commit()
        logger.info(
            f"Deleted ticket {ticket_id} with {len(service_diff.deleted)} services "
            f"and {len(action_diff.deleted)} actions"
        )

        self.event_bus.publish(TicketDeleted.create(ticket=current))
        return True

    def get_by_id(self, ticket_id: str) -> Ticket | None:
        """
        Get ticket by ID.

        Returns:
            Ticket if found, None otherwise.
        """
        row = self.store.get(TICKETS, ticket_id)
        if row is None:
            return None
        return Ticket.model_validate(row)

    def list_recent(self, limit: int = 200) -> list[Ticket]:
        """Most recently updated tickets first."""
        rows = self.store.query(TICKETS, order_by="updated_at", descending=True, limit=limit)
        return [Ticket.model_validate(row) for row in rows]

    def list_service_items(self, ticket_id: str) -> list[TicketServiceItem]:
        """Service items of a ticket ordered by service name."""
        rows = self.store.query(service_items(ticket_id), order_by="service_name")
        return [TicketServiceItem.model_validate(row) for row in rows]

    def list_actions(self, ticket_id: str) -> list[TicketAction]:
        """Actions of a ticket ordered by due time."""
        rows = self.store.query(actions(ticket_id), order_by="due_at")
        return [TicketAction.model_validate(row) for row in rows]

    def _require(self, ticket_id: str) -> Ticket:
        ticket = self.get_by_id(ticket_id)
        if ticket is None:
            raise ValueError(f"Ticket {ticket_id} not found")
        return ticket

    def _child_ids(self, collection: str) -> list[str]:
        return [row["id"] for row in self.store.query(collection)]

    def _delete_service_items(self, batch: WriteBatch, ticket_id: str, service_ids: list[str]) -> None:
        # The item is gone, not merely unscheduled, so the index delta never sees it
        for service_id in service_ids:
            batch.delete(service_items(ticket_id), service_id)
            batch.delete(APPOINTMENTS, appointment_id(ticket_id, service_id))

    def _desired_actions(
        self, ticket_id: str, drafts: list[ActionDraft]
    ) -> list[tuple[str, ActionDraft, datetime]]:
        """Actions that can be stored, with their ids and parsed due times."""
        desired = []
        for action in drafts:
            due_at = action.parsed_due_at()
            if due_at is None:
                logger.warning(
                    f"Dropping action {action.id or '(new)'} on ticket {ticket_id}: "
                    f"due time {action.due_at!r} is missing or unparseable"
                )
                continue
            desired.append((action.id or new_id(), action, due_at))
        return desired
