"""
Billing document export.

Turns a selection of INCOME ledger entries into a human-readable bill.
Entries for the same service collapse into one line with a quantity.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from core.models import IncomeEntry
from utils.config import BusinessConfig
from utils.timezone import to_local

LINE_WIDTH = 48
QTY_WIDTH = 5
AMOUNT_WIDTH = 10


@dataclass
class BillSummaryLine:
    """One service on a bill."""

    service_id: str
    name: str
    quantity: int = 0
    amount: float = 0.0


@dataclass
class BillSummary:
    """Grouped bill lines, sorted by name."""

    lines: list[BillSummaryLine] = field(default_factory=list)
    item_count: int = 0

    @property
    def total(self) -> float:
        return sum(line.amount for line in self.lines)


def summarize_income_entries(entries: Iterable) -> BillSummary:
    """
    Group INCOME entries by service.

    Non-income entries are ignored. Entries without a service name are
    billed as "Income".

    Raises:
        ValueError: If there are no income entries
    """
    grouped: dict[tuple[str, str], BillSummaryLine] = {}
    item_count = 0

    for entry in entries:
        if not isinstance(entry, IncomeEntry):
            continue
        name = (entry.service_name or "").strip() or "Income"
        key = (entry.service_id or "", name)
        line = grouped.setdefault(key, BillSummaryLine(service_id=key[0], name=name))
        line.quantity += 1
        line.amount += entry.amount
        item_count += 1

    if not item_count:
        raise ValueError("No income entries selected.")

    lines = sorted(grouped.values(), key=lambda line: (line.name.casefold(), line.name))
    return BillSummary(lines=lines, item_count=item_count)


def _row(left: str, qty: str, amount: str) -> str:
    name_width = LINE_WIDTH - QTY_WIDTH - AMOUNT_WIDTH
    return f"{left[:name_width]:<{name_width}}{qty:>{QTY_WIDTH}}{amount:>{AMOUNT_WIDTH}}"


def render_bill_text(
    summary: BillSummary,
    business: BusinessConfig,
    issued_at: datetime,
    title: str = "Bill"
) -> str:
    """
    Render a plain-text bill.

    Args:
        summary: Grouped lines from summarize_income_entries
        business: Name and contact details printed in the header
        issued_at: Issue time, shown in the business timezone
        title: Document title

    Returns:
        Bill text, newline-terminated
    """
    issued = to_local(issued_at, business.timezone).strftime("%Y-%m-%d %H:%M")
    rule = "-" * LINE_WIDTH

    out = [f"{business.name.ljust(LINE_WIDTH - len(title) - 1)} {title}"]
    contact = " | ".join(part for part in (business.phone, business.email, business.website) if part)
    if contact:
        out.append(contact)
    if business.address:
        out.append(business.address)
    out.append(f"{issued:>{LINE_WIDTH}}")
    out.append(f"{'Items: ' + str(summary.item_count):>{LINE_WIDTH}}")

    out.append(rule)
    out.append(_row("Service", "Qty", "Amount"))
    for line in summary.lines:
        out.append(_row(line.name, str(line.quantity), f"{line.amount:.0f}"))
    out.append(rule)
    out.append(_row("", "Total", f"{summary.total:.0f}"))

    return "\n".join(out) + "\n"
