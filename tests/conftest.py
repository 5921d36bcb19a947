"""Shared test fixtures for the salon tracker test suite."""

from datetime import datetime, timezone

import pytest

# Reset vault client singleton so no test reuses a cached secret
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from clients.memory_store import InMemoryDocumentStore
from core.event_bus import EventBus


# =============================================================================
# TIME CONSTANTS
# =============================================================================

# Fixed instant every store commit reports as its server time
COMMIT_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

# A Monday morning used for scheduling
MONDAY_10AM = datetime(2026, 3, 9, 10, 0, tzinfo=timezone.utc)


# =============================================================================
# STORE AND EVENT FIXTURES
# =============================================================================


@pytest.fixture
def store():
    """Empty in-memory document store with a fixed commit clock."""
    return InMemoryDocumentStore(clock=lambda: COMMIT_TIME)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def published(event_bus):
    """Every event published on the bus, in order."""
    events = []
    for name in (
        "TicketCreated", "TicketUpdated", "TicketDeleted", "ServiceCompleted",
        "LedgerEntryAdded", "LedgerEntryUpdated", "LedgerEntryDeleted",
        "BillCreated", "AppointmentsRebuilt",
    ):
        event_bus.subscribe(name, events.append)
    return events


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def ticket_service(store, event_bus):
    from core.services.ticket_service import TicketService
    return TicketService(store, event_bus)


@pytest.fixture
def ledger_service(store, event_bus):
    from core.services.ledger_service import LedgerService
    return LedgerService(store, event_bus)


@pytest.fixture
def appointment_service(store):
    from core.services.appointment_service import AppointmentService
    return AppointmentService(store)


# =============================================================================
# TICKET DATA HELPERS
# =============================================================================


def _service_item(service_id: str, name: str | None = None, at: datetime | None = None, **kwargs) -> dict:
    return {
        "service_id": service_id,
        "service_name": name or service_id.title(),
        "appointment_at": at,
        **kwargs,
    }


def _ticket_payload(service_items: list[dict] | None = None, actions: list[dict] | None = None, **kwargs) -> dict:
    return {
        "customer_phone": "555-0100",
        "customer_name": "Dana",
        "assigned_employee_id": "emp-1",
        "service_items": service_items or [],
        "actions": actions or [],
        **kwargs,
    }


@pytest.fixture
def monday():
    """A Monday 10:00 UTC used for scheduling."""
    return MONDAY_10AM


@pytest.fixture
def item():
    """Service item draft payload builder: item("cut", "Haircut", at)."""
    return _service_item


@pytest.fixture
def payload():
    """TicketCreate payload builder with sensible defaults."""
    return _ticket_payload


@pytest.fixture
def make_ticket(ticket_service):
    """Create a ticket from keyword overrides of the default payload."""
    from core.models import TicketCreate

    def _make(**kwargs):
        return ticket_service.create(TicketCreate(**_ticket_payload(**kwargs)))

    return _make


@pytest.fixture
def scheduled_ticket(make_ticket):
    """Ticket with a scheduled haircut and an unscheduled coloring."""
    return make_ticket(service_items=[
        _service_item("cut", "Haircut", MONDAY_10AM),
        _service_item("color", "Coloring"),
    ])
