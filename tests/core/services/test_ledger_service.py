"""Tests for LedgerService."""

from datetime import datetime, timedelta, timezone

import pytest

from clients.document_store import MAX_BATCH_OPERATIONS
from core.models import (
    BillCreate, ExpenseCreate, ExpenseEntry, IncomeCreate, IncomeEntry, LedgerEntryUpdate,
)
from core.services.ledger_service import _coerce_amount

JAN_5 = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def income(ledger_service):
    """A manually recorded income entry."""
    return ledger_service.add_manual_income(IncomeCreate(
        service_id="cut", service_name="Haircut", date=JAN_5, amount=40,
    ))


@pytest.fixture
def expense(ledger_service):
    """A recorded expense."""
    return ledger_service.add_expense(ExpenseCreate(reason="Shampoo", date=JAN_5, amount=12.5))


class TestCompleteService:
    """Tests for LedgerService.complete_service."""

    def test_marks_item_and_appointment_completed(self, store, ledger_service, scheduled_ticket, monday):
        """Item, index record and ticket are updated in one commit."""
        commits_before = store.commit_count

        ledger_service.complete_service(scheduled_ticket.id, "cut", "Haircut", 40)

        stored = store.get(f"tickets/{scheduled_ticket.id}/service_items", "cut")
        record = store.get("appointments", f"{scheduled_ticket.id}__cut")
        assert stored["is_completed"] is True
        assert stored["completed_at"] is not None
        assert record["is_completed"] is True
        assert record["appointment_at"] == monday
        assert store.commit_count == commits_before + 1

    def test_records_income_with_ticket_provenance(self, ledger_service, scheduled_ticket):
        """Income entry references the ticket and no bill."""
        entry = ledger_service.complete_service(scheduled_ticket.id, "cut", "Haircut", 40, JAN_5)

        assert isinstance(entry, IncomeEntry)
        assert entry.ticket_id == scheduled_ticket.id
        assert entry.bill_id is None
        assert entry.service_id == "cut"
        assert entry.amount == 40
        assert entry.date == JAN_5

    def test_date_defaults_to_now(self, ledger_service, scheduled_ticket):
        entry = ledger_service.complete_service(scheduled_ticket.id, "cut", "Haircut", 40)

        assert entry.date.tzinfo is not None

    def test_zero_amount_allowed(self, ledger_service, scheduled_ticket):
        """A free service still records a zero income entry."""
        entry = ledger_service.complete_service(scheduled_ticket.id, "cut", "Haircut", 0)

        assert entry.amount == 0

    @pytest.mark.parametrize("amount", [-1, "forty", None, float("nan"), float("inf"), True])
    def test_invalid_amount_rejected_without_writes(self, store, ledger_service, scheduled_ticket, amount):
        """Negative, non-numeric and non-finite amounts never reach the store."""
        commits_before = store.commit_count

        with pytest.raises(ValueError, match=r"Amount must be a number \(0 or more\)\."):
            ledger_service.complete_service(scheduled_ticket.id, "cut", "Haircut", amount)

        assert store.commit_count == commits_before
        assert store.document_count("ledger") == 0

    def test_unscheduled_item_gets_no_appointment(self, store, ledger_service, scheduled_ticket):
        """Completing an unscheduled service does not create an index record."""
        ledger_service.complete_service(scheduled_ticket.id, "color", "Coloring", 60)

        assert store.get("appointments", f"{scheduled_ticket.id}__color") is None

    def test_heals_missing_appointment(self, store, ledger_service, scheduled_ticket):
        """A scheduled item whose record went missing gets it back, completed."""
        store.batch().delete("appointments", f"{scheduled_ticket.id}__cut").commit()

        ledger_service.complete_service(scheduled_ticket.id, "cut", "Haircut", 40)

        record = store.get("appointments", f"{scheduled_ticket.id}__cut")
        assert record["is_completed"] is True
        assert record["service_name"] == "Haircut"

    def test_twice_records_income_twice(self, store, ledger_service, scheduled_ticket):
        """Completion is not deduplicated; each call is a new financial fact."""
        ledger_service.complete_service(scheduled_ticket.id, "cut", "Haircut", 40)
        ledger_service.complete_service(scheduled_ticket.id, "cut", "Haircut", 40)

        assert store.document_count("ledger") == 2

    def test_unknown_service_rejected(self, store, ledger_service, scheduled_ticket):
        with pytest.raises(ValueError, match="not found"):
            ledger_service.complete_service(scheduled_ticket.id, "nails", "Manicure", 30)

        assert store.document_count("ledger") == 0

    def test_unknown_ticket_rejected(self, ledger_service):
        with pytest.raises(ValueError, match="not found"):
            ledger_service.complete_service("missing", "cut", "Haircut", 30)

    def test_publishes_event(self, published, ledger_service, scheduled_ticket):
        entry = ledger_service.complete_service(scheduled_ticket.id, "cut", "Haircut", 40)

        event = published[-1]
        assert type(event).__name__ == "ServiceCompleted"
        assert event.service_id == "cut"
        assert event.entry.id == entry.id


class TestCreateBill:
    """Tests for LedgerService.create_bill_with_income_entries."""

    def test_one_entry_per_unit(self, store, ledger_service):
        """Quantity 3 at 100 fans out to three 100 entries sharing the bill."""
        result = ledger_service.create_bill_with_income_entries(BillCreate(
            date=JAN_5,
            lines=[{"service_id": "s1", "service_name": "Haircut", "unit_amount": 100, "quantity": 3}],
        ))

        assert result.bill.total_amount == 300
        assert result.bill.item_count == 3
        assert len(result.entries) == 3
        assert {e.amount for e in result.entries} == {100}
        assert {e.bill_id for e in result.entries} == {result.bill.id}
        assert all(e.ticket_id is None for e in result.entries)
        assert store.document_count("ledger") == 3
        assert store.document_count("bills") == 1
        assert store.commit_count == 1

    def test_invalid_lines_dropped(self, ledger_service):
        """Lines without service, amount or quantity are ignored."""
        result = ledger_service.create_bill_with_income_entries(BillCreate(
            date=JAN_5,
            lines=[
                {"service_id": "s1", "service_name": "Haircut", "unit_amount": 50, "quantity": 1},
                {"service_id": "", "service_name": "Nameless", "unit_amount": 50, "quantity": 1},
                {"service_id": "s2", "service_name": "   ", "unit_amount": 50, "quantity": 1},
                {"service_id": "s3", "service_name": "Free", "unit_amount": 0, "quantity": 1},
                {"service_id": "s4", "service_name": "None", "unit_amount": 10, "quantity": 0.5},
                {"service_id": "s5", "service_name": "Inf", "unit_amount": 10, "quantity": float("inf")},
            ],
        ))

        assert result.bill.item_count == 1
        assert [e.service_id for e in result.entries] == ["s1"]

    def test_blank_or_text_numbers_drop_the_line(self, ledger_service):
        """Form input that is not a number drops its line, not the bill."""
        result = ledger_service.create_bill_with_income_entries(BillCreate(
            date=JAN_5,
            lines=[
                {"service_id": "s1", "service_name": "Haircut", "unit_amount": "40", "quantity": " 2 "},
                {"service_id": "s2", "service_name": "Nails", "unit_amount": "", "quantity": ""},
                {"service_id": "s3", "service_name": "Wash", "unit_amount": "ten", "quantity": 1},
                {"service_id": "s4", "service_name": "Color", "unit_amount": 30, "quantity": None},
            ],
        ))

        assert result.bill.item_count == 2
        assert result.bill.total_amount == 80
        assert {e.service_id for e in result.entries} == {"s1"}

    def test_quantity_floored_and_capped(self, ledger_service):
        result = ledger_service.create_bill_with_income_entries(BillCreate(
            date=JAN_5,
            lines=[
                {"service_id": "s1", "service_name": "Haircut", "unit_amount": 10, "quantity": 2.9},
                {"service_id": "s2", "service_name": "Wash", "unit_amount": 1, "quantity": 250},
            ],
        ))

        assert result.bill.item_count == 2 + 99
        assert result.bill.total_amount == 2 * 10 + 99 * 1

    def test_no_usable_lines_rejected(self, store, ledger_service):
        with pytest.raises(ValueError, match="Add at least 1 service"):
            ledger_service.create_bill_with_income_entries(BillCreate(date=JAN_5, lines=[]))

        assert store.commit_count == 0

    def test_too_large_for_one_batch_rejected(self, store, ledger_service):
        """A bill that cannot commit atomically is refused before writing."""
        lines = [
            {"service_id": f"s{i}", "service_name": f"Service {i}", "unit_amount": 1, "quantity": 99}
            for i in range(MAX_BATCH_OPERATIONS // 99 + 1)
        ]

        with pytest.raises(ValueError, match="at most"):
            ledger_service.create_bill_with_income_entries(BillCreate(date=JAN_5, lines=lines))

        assert store.commit_count == 0

    def test_bill_readable_afterwards(self, ledger_service):
        result = ledger_service.create_bill_with_income_entries(BillCreate(
            date=JAN_5,
            lines=[{"service_id": "s1", "service_name": "Haircut", "unit_amount": 100, "quantity": 2}],
        ))

        assert ledger_service.get_bill(result.bill.id) == result.bill
        assert len(ledger_service.list_bill_entries(result.bill.id)) == 2

    def test_publishes_event(self, published, ledger_service):
        result = ledger_service.create_bill_with_income_entries(BillCreate(
            date=JAN_5,
            lines=[{"service_id": "s1", "service_name": "Haircut", "unit_amount": 100, "quantity": 2}],
        ))

        event = published[-1]
        assert type(event).__name__ == "BillCreated"
        assert event.bill.id == result.bill.id
        assert len(event.entries) == 2


class TestManualEntries:
    """Tests for add_manual_income and add_expense."""

    def test_manual_income(self, income):
        assert isinstance(income, IncomeEntry)
        assert income.ticket_id is None
        assert income.bill_id is None
        assert income.amount == 40

    def test_expense(self, expense):
        assert isinstance(expense, ExpenseEntry)
        assert expense.reason == "Shampoo"
        assert expense.amount == 12.5

    @pytest.mark.parametrize("amount", [0, -5])
    def test_income_amount_must_be_positive(self, store, ledger_service, amount):
        with pytest.raises(ValueError, match="Amount must be a positive number."):
            ledger_service.add_manual_income(IncomeCreate(
                service_id="cut", service_name="Haircut", date=JAN_5, amount=amount,
            ))

        assert store.commit_count == 0

    def test_expense_reason_required(self, ledger_service):
        with pytest.raises(ValueError, match="Reason is required."):
            ledger_service.add_expense(ExpenseCreate(reason="  ", date=JAN_5, amount=10))

    def test_expense_amount_must_be_positive(self, ledger_service):
        with pytest.raises(ValueError, match="Amount must be a positive number."):
            ledger_service.add_expense(ExpenseCreate(reason="Towels", date=JAN_5, amount=0))

    def test_naive_date_rejected(self):
        """Ledger dates must carry a timezone."""
        with pytest.raises(ValueError):
            ExpenseCreate(reason="Towels", date=datetime(2026, 1, 5), amount=10)


class TestUpdateEntry:
    """Tests for LedgerService.update_entry."""

    def test_expense_to_income(self, store, ledger_service, expense):
        """Changing type swaps the field group; the old group is gone."""
        updated = ledger_service.update_entry(expense.id, LedgerEntryUpdate(
            type="INCOME", date=JAN_5, amount=20, service_id="cut", service_name="Haircut",
        ))

        assert isinstance(updated, IncomeEntry)
        assert updated.service_name == "Haircut"
        assert "reason" not in store.get("ledger", expense.id)

    def test_income_to_expense(self, store, ledger_service, income):
        updated = ledger_service.update_entry(income.id, LedgerEntryUpdate(
            type="EXPENSE", date=JAN_5, amount=20, reason="Refund",
        ))

        stored = store.get("ledger", income.id)
        assert isinstance(updated, ExpenseEntry)
        assert "service_id" not in stored
        assert "ticket_id" not in stored

    def test_income_keeps_provenance(self, ledger_service, scheduled_ticket):
        """Editing a completion entry keeps its ticket link."""
        entry = ledger_service.complete_service(scheduled_ticket.id, "cut", "Haircut", 40)

        updated = ledger_service.update_entry(entry.id, LedgerEntryUpdate(
            type="INCOME", date=JAN_5, amount=45, service_id="cut", service_name="Haircut",
        ))

        assert updated.ticket_id == scheduled_ticket.id
        assert updated.amount == 45
        assert updated.created_at == entry.created_at

    def test_zero_amount_allowed(self, ledger_service, income):
        updated = ledger_service.update_entry(income.id, LedgerEntryUpdate(
            type="INCOME", date=JAN_5, amount=0, service_id="cut", service_name="Haircut",
        ))

        assert updated.amount == 0

    def test_negative_amount_rejected(self, ledger_service, income):
        with pytest.raises(ValueError, match=r"\(0 or more\)"):
            ledger_service.update_entry(income.id, LedgerEntryUpdate(
                type="INCOME", date=JAN_5, amount=-1, service_id="cut", service_name="Haircut",
            ))

    def test_income_requires_service(self, ledger_service, expense):
        with pytest.raises(ValueError, match="Service is required for income."):
            ledger_service.update_entry(expense.id, LedgerEntryUpdate(type="INCOME", date=JAN_5, amount=5))

    def test_expense_requires_reason(self, ledger_service, income):
        with pytest.raises(ValueError, match="Reason is required for expense."):
            ledger_service.update_entry(income.id, LedgerEntryUpdate(type="EXPENSE", date=JAN_5, amount=5))

    def test_unknown_entry_rejected(self, ledger_service):
        with pytest.raises(ValueError, match="not found"):
            ledger_service.update_entry("missing", LedgerEntryUpdate(
                type="EXPENSE", date=JAN_5, amount=5, reason="x",
            ))


class TestDeleteEntry:
    """Tests for LedgerService.delete_entry."""

    def test_hard_deletes(self, store, ledger_service, income):
        assert ledger_service.delete_entry(income.id) is True
        assert store.get("ledger", income.id) is None

    def test_missing_returns_false(self, ledger_service):
        assert ledger_service.delete_entry("missing") is False

    def test_publishes_event(self, published, ledger_service, income):
        ledger_service.delete_entry(income.id)

        assert type(published[-1]).__name__ == "LedgerEntryDeleted"
        assert published[-1].entry.id == income.id


class TestListForRange:
    """Tests for LedgerService.list_for_range."""

    def test_half_open_range_newest_first(self, ledger_service):
        for day in (4, 5, 6, 7):
            ledger_service.add_expense(ExpenseCreate(
                reason=f"Day {day}", date=JAN_5.replace(day=day), amount=1,
            ))

        entries = ledger_service.list_for_range(JAN_5, JAN_5 + timedelta(days=2))

        assert [e.reason for e in entries] == ["Day 6", "Day 5"]

    def test_mixed_types(self, ledger_service, income, expense):
        entries = ledger_service.list_for_range(JAN_5 - timedelta(days=1), JAN_5 + timedelta(days=1))

        assert {type(e) for e in entries} == {IncomeEntry, ExpenseEntry}


class TestCoerceAmount:
    """Tests for _coerce_amount."""

    def test_numeric_string_accepted(self):
        assert _coerce_amount("12.5", allow_zero=False) == 12.5

    def test_bool_rejected(self):
        with pytest.raises(ValueError):
            _coerce_amount(True, allow_zero=True)
