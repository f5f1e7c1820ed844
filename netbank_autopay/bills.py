"""Upcoming bill due dates as shown in the NetBank bills list."""

import re
from collections.abc import Iterable
from datetime import date, datetime

_DUE_DATE_RE = re.compile(r"^\s*(\d{1,2})\s*/\s*(\d{1,2})\s*$")


class BillParseError(ValueError):
    """Raised when a due date cell cannot be read."""

    pass


def parse_due_date(text: str, today: date) -> date:
    """Turn a ``dd/mm`` due date cell into a full date.

    The bills list omits the year. A month earlier than the current one
    belongs to next year.

    Raises:
        BillParseError: If the text is not a valid ``dd/mm`` date.
    """
    match = _DUE_DATE_RE.match(text)
    if not match:
        raise BillParseError(f"Unrecognised due date: {text!r}")

    day, month = int(match.group(1)), int(match.group(2))
    year = today.year + 1 if month < today.month else today.year

    try:
        return date(year, month, day)
    except ValueError as e:
        raise BillParseError(f"Invalid due date {text!r}: {e}") from e


def count_bills_due(due_texts: Iterable[str], cutoff: datetime | date, today: date) -> int:
    """Count bills due strictly before the cutoff day."""
    cutoff_day = cutoff.date() if isinstance(cutoff, datetime) else cutoff
    return sum(1 for text in due_texts if parse_due_date(text, today) < cutoff_day)
