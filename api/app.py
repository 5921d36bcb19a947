"""FastAPI application factory."""

from fastapi import FastAPI

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from clients.document_store import DocumentStore
from core.event_bus import EventBus
from core.services.appointment_rebuild import AppointmentRebuildJob
from core.services.appointment_service import AppointmentService
from core.services.ledger_service import LedgerService
from core.services.ticket_service import TicketService
from utils.config import settings


def build_services(store: DocumentStore, event_bus: EventBus) -> dict:
    """Construct every service over one store and one event bus."""
    return {
        "ticket": TicketService(store, event_bus),
        "ledger": LedgerService(store, event_bus),
        "appointment": AppointmentService(store),
        "rebuild": AppointmentRebuildJob(
            store,
            event_bus,
            flush_threshold=settings.store.rebuild_flush_threshold,
            max_service_items=settings.store.rebuild_max_service_items,
        ),
    }


def create_app(services: dict) -> FastAPI:
    """Build the HTTP app over pre-built services."""
    app = FastAPI(title=f"{settings.business.name} tracker")
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(create_actions_router(services), prefix="/api")
    app.include_router(create_data_router(services), prefix="/api")
    return app
