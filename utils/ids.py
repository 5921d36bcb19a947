"""Document identifiers."""

from uuid import uuid4

APPOINTMENT_ID_SEPARATOR = "__"


def new_id() -> str:
    """Random document id for records that have no natural key."""
    return uuid4().hex


def appointment_id(ticket_id: str, service_id: str) -> str:
    """
    Key of the appointment index record for one ticket service item.

    An appointment is functionally dependent on (ticket_id, service_id), so
    its key is derived from both rather than generated.
    """
    return f"{ticket_id}{APPOINTMENT_ID_SEPARATOR}{service_id}"
