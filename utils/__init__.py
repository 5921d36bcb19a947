"""Utility modules for cross-cutting concerns."""

from utils.timezone import (
    now_utc,
    to_utc,
    to_local,
    parse_iso,
    ensure_utc,
    parse_date_input,
    to_date_input,
    format_date_time_short,
    format_date_short,
    format_time_short,
)
from utils.ids import new_id, appointment_id
