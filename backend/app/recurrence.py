"""
Calendar arithmetic for recurring transactions.

Occurrences are always computed from the series anchor (the first transaction
date), so month and year steps never drift: a series anchored on Jan 31 yields
Feb 29, Mar 31, Apr 30, ... rather than sticking to the 29th after February.
"""
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

FREQUENCY_UNITS = {
    "daily": "days",
    "weekly": "weeks",
    "monthly": "months",
    "yearly": "years",
}


def add_interval(anchor: datetime, frequency: Optional[str], steps: int) -> Optional[datetime]:
    """Return ``anchor`` moved forward by ``steps`` units of ``frequency``."""
    unit = FREQUENCY_UNITS.get(frequency or "")
    if unit is None:
        return None
    # relativedelta clamps to the last valid day of the target month
    return anchor + relativedelta(**{unit: steps})


def _lower_bound_steps(anchor: datetime, frequency: str, interval: int, after: datetime) -> int:
    if after <= anchor:
        return 1

    if frequency in ("daily", "weekly"):
        span = timedelta(days=interval * (7 if frequency == "weekly" else 1))
        return max(1, (after - anchor) // span)

    if frequency == "monthly":
        months = (after.year - anchor.year) * 12 + (after.month - anchor.month)
        return max(1, months // interval)

    return max(1, (after.year - anchor.year) // interval)


def calculate_next_date(
    anchor: datetime,
    frequency: Optional[str],
    interval: Optional[int] = 1,
    after: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    First date of the series ``anchor + k * interval * unit`` (k >= 1) that is
    strictly later than ``after`` (defaults to the anchor itself).

    Returns None when the frequency is unset or not recognised.
    """
    if anchor is None or frequency not in FREQUENCY_UNITS:
        return None

    interval = max(int(interval or 1), 1)
    after = after or anchor

    k = _lower_bound_steps(anchor, frequency, interval, after)
    candidate = add_interval(anchor, frequency, k * interval)
    while candidate <= after:
        k += 1
        candidate = add_interval(anchor, frequency, k * interval)
    return candidate
