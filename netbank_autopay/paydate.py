"""Next pay date calculation.

Pay days fall on fixed days of every month (the 1st and 15th by default).
The cutoff used for bill payments is the pay day *after* the next one, so
that every bill due before money arrives again is covered by this run.
"""

from collections.abc import Iterator, Sequence
from datetime import datetime

DEFAULT_PAY_DAYS = (1, 15)

# Current month plus twelve more, enough to cross a year boundary.
SCHEDULE_MONTHS = 13


class ScheduleExhausted(Exception):
    """Raised when the generated schedule holds no date after the reference time."""

    pass


def threshold_dates(now: datetime, pay_days: Sequence[int] = DEFAULT_PAY_DAYS) -> Iterator[datetime]:
    """Yield pay days from the month of ``now`` onwards, at 23:59:59.

    Dates are produced in chronological order as long as ``pay_days`` is sorted.
    """
    for offset in range(SCHEDULE_MONTHS):
        years, month_index = divmod(now.month - 1 + offset, 12)
        for day in pay_days:
            yield datetime(
                now.year + years,
                month_index + 1,
                day,
                23,
                59,
                59,
                tzinfo=now.tzinfo,
            )


def calculate_next_pay_date(
    now: datetime | None = None,
    pay_days: Sequence[int] = DEFAULT_PAY_DAYS,
) -> datetime:
    """Return the second pay day strictly after ``now``, at midnight.

    The nearest upcoming pay day is skipped. A pay day counts as upcoming for
    the whole of its own day, so on June 1st the skipped date is June 1st and
    the result is June 15th.

    Args:
        now: Reference time. Defaults to the local wall clock.
        pay_days: Days of the month income arrives on, ascending.

    Returns:
        The cutoff date as a datetime with the time of day cleared.

    Raises:
        ScheduleExhausted: If no qualifying date exists in the window.
    """
    if now is None:
        now = datetime.now()

    upcoming = (date for date in threshold_dates(now, pay_days) if date > now)
    next(upcoming, None)
    pay_date = next(upcoming, None)

    if pay_date is None:
        raise ScheduleExhausted(f"Unknown threshold date after {now.isoformat()}")

    return pay_date.replace(hour=0, minute=0, second=0, microsecond=0)
