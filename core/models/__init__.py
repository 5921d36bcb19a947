"""Core domain models."""

from core.models.ticket import (
    Ticket, TicketCreate, TicketUpdate, TicketStatus, ConfirmationLevel,
    TicketServiceItem, ServiceItemDraft, TicketAction, ActionDraft,
)
from core.models.appointment import Appointment
from core.models.ledger import (
    LedgerEntry, LedgerEntryType, IncomeEntry, ExpenseEntry, ledger_entry_adapter,
    IncomeCreate, ExpenseCreate, LedgerEntryUpdate,
)
from core.models.bill import Bill, BillCreate, BillLine, BillWithEntries

__all__ = [
    # Ticket
    "Ticket", "TicketCreate", "TicketUpdate", "TicketStatus", "ConfirmationLevel",
    "TicketServiceItem", "ServiceItemDraft", "TicketAction", "ActionDraft",
    # Appointment
    "Appointment",
    # Ledger
    "LedgerEntry", "LedgerEntryType", "IncomeEntry", "ExpenseEntry", "ledger_entry_adapter",
    "IncomeCreate", "ExpenseCreate", "LedgerEntryUpdate",
    # Bill
    "Bill", "BillCreate", "BillLine", "BillWithEntries",
]
