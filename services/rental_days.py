"""
Rental overlap math: how many days of an agreement fall inside a window.
"""

import math
from datetime import timedelta

from services.time_windows import to_utc_naive

DAY_SECONDS = 24 * 60 * 60
ONE_MS = timedelta(milliseconds=1)


def _clip(start, end, window_start, window_end):
    a, b = to_utc_naive(start), to_utc_naive(end)
    ws, we = to_utc_naive(window_start), to_utc_naive(window_end)
    if None in (a, b, ws, we):
        return None
    clipped_start = max(min(a, b), ws)
    clipped_end = min(max(a, b), we)
    if clipped_end < clipped_start:
        return None
    return clipped_start, clipped_end


def rental_days_in_window(start, end, window_start, window_end) -> int:
    """
    Whole rental days an agreement spends inside [window_start, window_end].

    The overlap is inclusive, so any touch counts as at least one day.
    Start/end may be given in either order; invalid values count as 0.
    """
    clipped = _clip(start, end, window_start, window_end)
    if clipped is None:
        return 0
    span = clipped[1] - clipped[0] + ONE_MS
    return max(1, math.ceil(span.total_seconds() / DAY_SECONDS))


def rental_days_float_in_window(start, end, window_start, window_end) -> float:
    """Fractional overlap in days, used for fleet utilisation."""
    clipped = _clip(start, end, window_start, window_end)
    if clipped is None:
        return 0.0
    return (clipped[1] - clipped[0]).total_seconds() / DAY_SECONDS
