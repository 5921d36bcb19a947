"""POST /api/actions - unified mutation endpoint."""

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Request
from pydantic import AwareDatetime, BaseModel

from api.base import success_response
from api.middleware import get_request_id
from core.models import (
    TicketCreate, TicketUpdate,
    IncomeCreate, ExpenseCreate, LedgerEntryUpdate,
    BillCreate,
)
from utils.config import settings


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


class CompleteServiceRequest(BaseModel):
    ticket_id: str
    service_id: str
    service_name: str
    amount: Any
    date: AwareDatetime | None = None


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "ticket": TicketHandler(services["ticket"], services["ledger"]),
        "ledger": LedgerHandler(services["ledger"]),
        "bill": BillHandler(services["ledger"]),
        "appointments": AppointmentsHandler(services["rebuild"]),
    }

    @router.post("/actions")
    def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(body.data)
        return success_response(result, get_request_id(request)).model_dump(mode="json")

    return router


def _require_id(data: dict, key: str = "id") -> str:
    value = data.pop(key, None)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{key}' is required")
    return value.strip()


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class TicketHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete", "complete_service"}

    def __init__(self, service, ledger_service):
        self.service = service
        self.ledger_service = ledger_service

    def _handle_create(self, data: dict):
        ticket = self.service.create(TicketCreate(**data))
        return ticket.model_dump(mode="json")

    def _handle_update(self, data: dict):
        ticket_id = _require_id(data)
        ticket = self.service.update(ticket_id, TicketUpdate(**data))
        return ticket.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        ticket_id = _require_id(data)
        deleted = self.service.delete(ticket_id)
        if not deleted:
            raise ValueError(f"Ticket {ticket_id} not found")
        return {"deleted": True}

    def _handle_complete_service(self, data: dict):
        req = CompleteServiceRequest(**data)
        entry = self.ledger_service.complete_service(
            req.ticket_id, req.service_id, req.service_name, req.amount, req.date
        )
        return entry.model_dump(mode="json")


class LedgerHandler:
    ALLOWED_ACTIONS = {"add_income", "add_expense", "update", "delete"}

    def __init__(self, service):
        self.service = service

    def _handle_add_income(self, data: dict):
        entry = self.service.add_manual_income(IncomeCreate(**data))
        return entry.model_dump(mode="json")

    def _handle_add_expense(self, data: dict):
        entry = self.service.add_expense(ExpenseCreate(**data))
        return entry.model_dump(mode="json")

    def _handle_update(self, data: dict):
        entry_id = _require_id(data)
        entry = self.service.update_entry(entry_id, LedgerEntryUpdate(**data))
        return entry.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        entry_id = _require_id(data)
        deleted = self.service.delete_entry(entry_id)
        if not deleted:
            raise ValueError(f"Ledger entry {entry_id} not found")
        return {"deleted": True}


class BillHandler:
    ALLOWED_ACTIONS = {"create"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        result = self.service.create_bill_with_income_entries(BillCreate(**data))
        return result.model_dump(mode="json")


class AppointmentsHandler:
    ALLOWED_ACTIONS = {"rebuild"}

    def __init__(self, job):
        self.job = job

    def _handle_rebuild(self, data: dict):
        max_tickets = data.get("max_tickets", settings.store.rebuild_max_tickets)
        if isinstance(max_tickets, bool) or not isinstance(max_tickets, int):
            raise ValueError("'max_tickets' must be an integer")
        result = self.job.run(max_tickets=max_tickets)
        return asdict(result)
