"""GET /api/data - unified read endpoint."""

from datetime import datetime

from fastapi import APIRouter, Query, Request

from api.base import success_response
from api.middleware import get_request_id
from core.services.billing_document import render_bill_text, summarize_income_entries
from utils.config import settings
from utils.timezone import now_utc


VALID_TYPES = {"tickets", "appointments", "ledger", "bills"}


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    ticket_svc = services["ticket"]
    appointment_svc = services["appointment"]
    ledger_svc = services["ledger"]

    @router.get("/data")
    def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        include: str | None = Query(None),
        start: datetime | None = Query(None),
        end: datetime | None = Query(None),
        limit: int = Query(200, ge=1, le=500),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        includes = set(include.split(",")) if include else set()

        if type == "tickets":
            data = _handle_tickets(ticket_svc, id, includes, limit)
        elif type == "appointments":
            data = _handle_appointments(appointment_svc, start, end)
        elif type == "ledger":
            data = _handle_ledger(ledger_svc, start, end, limit)
        else:
            data = _handle_bills(ledger_svc, id, includes)

        return success_response(data, get_request_id(request)).model_dump(mode="json")

    return router


def _require_range(type: str, start, end) -> None:
    if start is None or end is None:
        raise ValueError(f"'{type}' type requires 'start' and 'end' parameters")


def _handle_tickets(ticket_svc, id, includes, limit):
    if id:
        ticket = ticket_svc.get_by_id(id)
        if ticket is None:
            raise ValueError(f"Ticket {id} not found")

        data = ticket.model_dump(mode="json")
        if "service_items" in includes:
            items = ticket_svc.list_service_items(ticket.id)
            data["service_items"] = [i.model_dump(mode="json") for i in items]
        if "actions" in includes:
            actions = ticket_svc.list_actions(ticket.id)
            data["actions"] = [a.model_dump(mode="json") for a in actions]
        return data

    return [t.model_dump(mode="json") for t in ticket_svc.list_recent(limit)]


def _handle_appointments(appointment_svc, start, end):
    _require_range("appointments", start, end)
    appointments = appointment_svc.list_for_range(start, end)
    return [a.model_dump(mode="json") for a in appointments]


def _handle_ledger(ledger_svc, start, end, limit):
    _require_range("ledger", start, end)
    entries = ledger_svc.list_for_range(start, end, limit)
    return [e.model_dump(mode="json") for e in entries]


def _handle_bills(ledger_svc, id, includes):
    if not id:
        raise ValueError("'bills' type requires 'id' parameter")

    bill = ledger_svc.get_bill(id)
    if bill is None:
        raise ValueError(f"Bill {id} not found")

    entries = ledger_svc.list_bill_entries(bill.id)
    data = {
        "bill": bill.model_dump(mode="json"),
        "entries": [e.model_dump(mode="json") for e in entries],
    }
    if "document" in includes:
        data["document"] = render_bill_text(
            summarize_income_entries(entries),
            settings.business,
            bill.created_at or now_utc(),
        )
    return data
