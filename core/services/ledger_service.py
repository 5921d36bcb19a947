"""
Ledger service for income, expenses and bills.

Ledger entries are financial facts. They are created by completing a
service, by creating a bill, or manually; after that they are only ever
replaced wholesale or hard-deleted. Creation is not idempotent: calling any
create path twice records the money twice.
"""

import logging
import math
from datetime import datetime
from typing import Any

from clients.document_store import MAX_BATCH_OPERATIONS, SERVER_TIMESTAMP, DocumentStore
from core.event_bus import EventBus
from core.events import (
    BillCreated,
    LedgerEntryAdded,
    LedgerEntryDeleted,
    LedgerEntryUpdated,
    ServiceCompleted,
)
from core.models import (
    Bill,
    BillCreate,
    BillLine,
    BillWithEntries,
    ExpenseCreate,
    ExpenseEntry,
    IncomeCreate,
    IncomeEntry,
    LedgerEntry,
    LedgerEntryType,
    LedgerEntryUpdate,
    ledger_entry_adapter,
)
from core.paths import BILLS, LEDGER, TICKETS, service_items
from core.services.appointment_index import (
    AppointmentSource,
    apply_appointment_delta,
    compute_appointment_delta,
)
from utils.ids import new_id
from utils.timezone import ensure_utc, now_utc

logger = logging.getLogger(__name__)

MAX_LINE_QUANTITY = 99

NON_NEGATIVE_AMOUNT = "Amount must be a number (0 or more)."
POSITIVE_AMOUNT = "Amount must be a positive number."


def _coerce_amount(value: Any, allow_zero: bool) -> float:
    """
    Convert an amount to a finite float.

    Raises:
        ValueError: If not a number, not finite, negative, or zero when
            zero is not allowed
    """
    message = NON_NEGATIVE_AMOUNT if allow_zero else POSITIVE_AMOUNT
    if isinstance(value, bool):
        raise ValueError(message)
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValueError(message) from None

    if not math.isfinite(amount) or amount < 0 or (amount == 0 and not allow_zero):
        raise ValueError(message)
    return amount


def _usable_lines(lines: list[BillLine]) -> list[tuple[BillLine, int]]:
    """Bill lines that can be billed, with quantity floored and capped."""
    usable = []
    for line in lines:
        unit_amount, quantity = line.unit_amount, line.quantity
        if not line.service_id or not line.service_name.strip():
            continue
        if unit_amount is None or not math.isfinite(unit_amount) or unit_amount <= 0:
            continue
        if quantity is None or not math.isfinite(quantity) or quantity < 1:
            continue
        usable.append((line, min(MAX_LINE_QUANTITY, math.floor(quantity))))
    return usable


class LedgerService:
    """Service for ledger entries and bills."""

    def __init__(self, store: DocumentStore, event_bus: EventBus):
        self.store = store
        self.event_bus = event_bus

    def complete_service(
        self,
        ticket_id: str,
        service_id: str,
        service_name: str,
        amount: Any,
        date: datetime | None = None
    ) -> IncomeEntry:
        """
        Mark a service item complete and record its income.

        One batch: the item gets its completion flag and timestamp, its
        appointment record is re-derived with the flag set, the ticket's
        update time is bumped, and an INCOME entry is added.

        Args:
            ticket_id: Ticket id
            service_id: Service item id
            service_name: Service name recorded on the income entry
            amount: Income amount, 0 allowed
            date: Income date, defaults to now

        Returns:
            Created income entry

        Raises:
            ValueError: If amount invalid, or ticket or service item not found
        """
        amount = _coerce_amount(amount, allow_zero=True)
        date = ensure_utc(date) if date is not None else now_utc()

        ticket = self.store.get(TICKETS, ticket_id)
        if ticket is None:
            raise ValueError(f"Ticket {ticket_id} not found")

        item = self.store.get(service_items(ticket_id), service_id)
        if item is None:
            raise ValueError(f"Service {service_id} not found on ticket {ticket_id}")

        batch = self.store.batch()
        batch.update(service_items(ticket_id), service_id, {
            "is_completed": True,
            "completed_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        })

        source = AppointmentSource.from_stored(ticket_id, {**item, "is_completed": True}, ticket)
        apply_appointment_delta(batch, compute_appointment_delta([source]))

        batch.update(TICKETS, ticket_id, {"updated_at": SERVER_TIMESTAMP})

        entry_id = new_id()
        batch.set(LEDGER, entry_id, {
            "type": LedgerEntryType.INCOME.value,
            "ticket_id": ticket_id,
            "bill_id": None,
            "service_id": service_id,
            "service_name": service_name,
            "date": date,
            "amount": amount,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        })

        batch.commit()
        logger.info(f"Completed service {service_id} on ticket {ticket_id}, income {amount}")

        entry = self._require_entry(entry_id)
        self.event_bus.publish(
            ServiceCompleted.create(ticket_id=ticket_id, service_id=service_id, entry=entry)
        )
        return entry

    def create_bill_with_income_entries(self, data: BillCreate) -> BillWithEntries:
        """
        Create a bill and one INCOME entry per billed unit.

        Lines without a service, with a non-positive amount or with a
        quantity below 1 are dropped. Quantities are floored and capped at 99.

        Args:
            data: Bill date and lines

        Returns:
            Bill header with its income entries

        Raises:
            ValueError: If no line survives, or the bill is too large for one batch
        """
        lines = _usable_lines(data.lines)
        if not lines:
            raise ValueError("Add at least 1 service with a valid quantity and amount.")

        item_count = sum(quantity for _, quantity in lines)
        if 1 + item_count > MAX_BATCH_OPERATIONS:
            raise ValueError(
                f"A bill can hold at most {MAX_BATCH_OPERATIONS - 1} items, got {item_count}."
            )

        total_amount = sum(line.unit_amount * quantity for line, quantity in lines)
        date = ensure_utc(data.date)
        bill_id = new_id()

        batch = self.store.batch()
        batch.set(BILLS, bill_id, {
            "date": date,
            "total_amount": total_amount,
            "item_count": item_count,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        })

        entry_ids = []
        for line, quantity in lines:
            for _ in range(quantity):
                entry_id = new_id()
                batch.set(LEDGER, entry_id, {
                    "type": LedgerEntryType.INCOME.value,
                    "bill_id": bill_id,
                    "ticket_id": None,
                    "service_id": line.service_id,
                    "service_name": line.service_name.strip(),
                    "date": date,
                    "amount": line.unit_amount,
                    "created_at": SERVER_TIMESTAMP,
                    "updated_at": SERVER_TIMESTAMP,
                })
                entry_ids.append(entry_id)

        batch.commit()
        logger.info(f"Created bill {bill_id} with {item_count} items, total {total_amount}")

        bill = self.get_bill(bill_id)
        if bill is None:
            raise ValueError(f"Bill {bill_id} not found")

        by_id = {entry.id: entry for entry in self.list_bill_entries(bill_id)}
        entries = [by_id[entry_id] for entry_id in entry_ids if entry_id in by_id]

        self.event_bus.publish(BillCreated.create(bill=bill, entries=entries))
        return BillWithEntries(bill=bill, entries=entries)

    def add_manual_income(self, data: IncomeCreate) -> IncomeEntry:
        """
        Record income that did not come from a ticket or a bill.

        Raises:
            ValueError: If amount is not positive or service is missing
        """
        amount = _coerce_amount(data.amount, allow_zero=False)
        if not data.service_id or not data.service_name.strip():
            raise ValueError("Service is required for income.")

        entry_id = new_id()
        batch = self.store.batch()
        batch.set(LEDGER, entry_id, {
            "type": LedgerEntryType.INCOME.value,
            "service_id": data.service_id,
            "service_name": data.service_name.strip(),
            "ticket_id": None,
            "bill_id": None,
            "date": ensure_utc(data.date),
            "amount": amount,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        })
        batch.commit()
        logger.info(f"Added income {entry_id}: {amount}")

        entry = self._require_entry(entry_id)
        self.event_bus.publish(LedgerEntryAdded.create(entry=entry))
        return entry

    def add_expense(self, data: ExpenseCreate) -> ExpenseEntry:
        """
        Record an expense.

        Raises:
            ValueError: If reason is blank or amount is not positive
        """
        reason = data.reason.strip()
        if not reason:
            raise ValueError("Reason is required.")
        amount = _coerce_amount(data.amount, allow_zero=False)

        entry_id = new_id()
        batch = self.store.batch()
        batch.set(LEDGER, entry_id, {
            "type": LedgerEntryType.EXPENSE.value,
            "reason": reason,
            "date": ensure_utc(data.date),
            "amount": amount,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        })
        batch.commit()
        logger.info(f"Added expense {entry_id}: {amount}")

        entry = self._require_entry(entry_id)
        self.event_bus.publish(LedgerEntryAdded.create(entry=entry))
        return entry

    def update_entry(self, entry_id: str, data: LedgerEntryUpdate) -> LedgerEntry:
        """
        Replace a ledger entry, possibly changing its type.

        The stored document is overwritten, so the fields of the other type
        disappear. Ticket and bill provenance survive only while the entry
        stays INCOME.

        Args:
            entry_id: Ledger entry id
            data: Replacement fields

        Returns:
            Replaced entry

        Raises:
            ValueError: If entry not found or fields invalid for the type
        """
        amount = _coerce_amount(data.amount, allow_zero=True)

        fields = {
            "type": data.type.value,
            "date": ensure_utc(data.date),
            "amount": amount,
            "updated_at": SERVER_TIMESTAMP,
        }

        if data.type == LedgerEntryType.INCOME:
            service_name = (data.service_name or "").strip()
            if not data.service_id or not service_name:
                raise ValueError("Service is required for income.")
            fields["service_id"] = data.service_id
            fields["service_name"] = service_name
        else:
            reason = (data.reason or "").strip()
            if not reason:
                raise ValueError("Reason is required for expense.")
            fields["reason"] = reason

        current = self.get_entry(entry_id)
        if current is None:
            raise ValueError(f"Ledger entry {entry_id} not found")

        fields["created_at"] = current.created_at or SERVER_TIMESTAMP
        if data.type == LedgerEntryType.INCOME:
            was_income = isinstance(current, IncomeEntry)
            fields["ticket_id"] = current.ticket_id if was_income else None
            fields["bill_id"] = current.bill_id if was_income else None

        batch = self.store.batch()
        batch.set(LEDGER, entry_id, fields)
        batch.commit()
        logger.info(f"Updated ledger entry {entry_id} ({current.type} -> {data.type.value})")

        entry = self._require_entry(entry_id)
        self.event_bus.publish(LedgerEntryUpdated.create(entry=entry))
        return entry

    def delete_entry(self, entry_id: str) -> bool:
        """
        Hard-delete a ledger entry.

        Returns:
            True if deleted, False if not found
        """
        current = self.get_entry(entry_id)
        if current is None:
            return False

        batch = self.store.batch()
        batch.delete(LEDGER, entry_id)
        batch.commit()
        logger.info(f"Deleted ledger entry {entry_id}")

        self.event_bus.publish(LedgerEntryDeleted.create(entry=current))
        return True

    def get_entry(self, entry_id: str) -> LedgerEntry | None:
        """
        Get ledger entry by ID.

        Returns:
            IncomeEntry or ExpenseEntry if found, None otherwise.
        """
        row = self.store.get(LEDGER, entry_id)
        if row is None:
            return None
        return ledger_entry_adapter.validate_python(row)

    def list_for_range(
        self,
        start: datetime,
        end_exclusive: datetime,
        limit: int = 500
    ) -> list[LedgerEntry]:
        """
        List ledger entries dated within [start, end_exclusive).

        Returns:
            Entries ordered by date DESC
        """
        rows = self.store.query(
            LEDGER,
            [("date", ">=", ensure_utc(start)), ("date", "<", ensure_utc(end_exclusive))],
            order_by="date",
            descending=True,
            limit=limit,
        )
        return [ledger_entry_adapter.validate_python(row) for row in rows]

    def get_bill(self, bill_id: str) -> Bill | None:
        """Get bill header by ID, None if not found."""
        row = self.store.get(BILLS, bill_id)
        if row is None:
            return None
        return Bill.model_validate(row)

    def list_bill_entries(self, bill_id: str) -> list[IncomeEntry]:
        """Income entries created with a bill."""
        rows = self.store.query(LEDGER, [("bill_id", "==", bill_id)])
        return [IncomeEntry.model_validate(row) for row in rows]

    def _require_entry(self, entry_id: str) -> Any:
        entry = self.get_entry(entry_id)
        if entry is None:
            raise ValueError(f"Ledger entry {entry_id} not found")
        return entry
