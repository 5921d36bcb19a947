"""Collection paths in the document store."""

TICKETS = "tickets"
APPOINTMENTS = "appointments"
LEDGER = "ledger"
BILLS = "bills"


def service_items(ticket_id: str) -> str:
    """Service items of one ticket, keyed by service id."""
    return f"{TICKETS}/{ticket_id}/service_items"


def actions(ticket_id: str) -> str:
    """Follow-up actions of one ticket."""
    return f"{TICKETS}/{ticket_id}/actions"
