"""
Domain events for the salon tracker.

Immutable event objects that represent committed state changes. Services
publish them after their write batch commits; read-side listeners (list
views, calendars, finance screens) react without the publisher knowing who
is listening.

Event Categories:
- TicketEvent: Ticket aggregate (create, update, delete, service completion)
- LedgerEvent: Ledger entries and bills
- AppointmentEvent: Appointment index maintenance

Events carry the committed domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base class for all domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# TICKET EVENTS
# =============================================================================


@dataclass(frozen=True)
class TicketEvent(DomainEvent):
    """Events related to the ticket aggregate."""
    pass


@dataclass(frozen=True)
class TicketCreated(TicketEvent):
    """A ticket and its children were created."""
    ticket: Any = None  # Ticket; Any avoids a circular import

    @classmethod
    def create(cls, ticket: Any) -> "TicketCreated":
        return cls(ticket=ticket)


@dataclass(frozen=True)
class TicketUpdated(TicketEvent):
    """A ticket aggregate was replaced with a new desired state."""
    ticket: Any = None

    @classmethod
    def create(cls, ticket: Any) -> "TicketUpdated":
        return cls(ticket=ticket)


@dataclass(frozen=True)
class TicketDeleted(TicketEvent):
    """A ticket and everything derived from it was deleted."""
    ticket: Any = None

    @classmethod
    def create(cls, ticket: Any) -> "TicketDeleted":
        return cls(ticket=ticket)


@dataclass(frozen=True)
class ServiceCompleted(TicketEvent):
    """A service item was marked complete and its income recorded."""
    ticket_id: str = ""
    service_id: str = ""
    entry: Any = None  # IncomeEntry

    @classmethod
    def create(cls, ticket_id: str, service_id: str, entry: Any) -> "ServiceCompleted":
        return cls(ticket_id=ticket_id, service_id=service_id, entry=entry)


# =============================================================================
# LEDGER EVENTS
# =============================================================================


@dataclass(frozen=True)
class LedgerEvent(DomainEvent):
    """Events related to ledger entries and bills."""
    pass


@dataclass(frozen=True)
class LedgerEntryAdded(LedgerEvent):
    """A manual income or expense entry was recorded."""
    entry: Any = None

    @classmethod
    def create(cls, entry: Any) -> "LedgerEntryAdded":
        return cls(entry=entry)


@dataclass(frozen=True)
class LedgerEntryUpdated(LedgerEvent):
    """A ledger entry was fully replaced."""
    entry: Any = None

    @classmethod
    def create(cls, entry: Any) -> "LedgerEntryUpdated":
        return cls(entry=entry)


@dataclass(frozen=True)
class LedgerEntryDeleted(LedgerEvent):
    """A ledger entry was hard-deleted."""
    entry: Any = None

    @classmethod
    def create(cls, entry: Any) -> "LedgerEntryDeleted":
        return cls(entry=entry)


@dataclass(frozen=True)
class BillCreated(LedgerEvent):
    """A bill header and its income entries were created."""
    bill: Any = None
    entries: tuple = ()

    @classmethod
    def create(cls, bill: Any, entries: list) -> "BillCreated":
        return cls(bill=bill, entries=tuple(entries))


# =============================================================================
# APPOINTMENT EVENTS
# =============================================================================


@dataclass(frozen=True)
class AppointmentEvent(DomainEvent):
    """Events related to the appointment index."""
    pass


@dataclass(frozen=True)
class AppointmentsRebuilt(AppointmentEvent):
    """The appointment index was re-derived from ticket data."""
    result: Any = None  # RebuildResult

    @classmethod
    def create(cls, result: Any) -> "AppointmentsRebuilt":
        return cls(result=result)
