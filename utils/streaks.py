from datetime import date, timedelta
from typing import Optional, Tuple

def parse_iso_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None

def advance_streak(
    current_streak: int,
    longest_streak: int,
    last_completed: Optional[date],
    completed_on: date,
) -> Tuple[int, int, date]:
    """Update day-streak counters for a lesson completed on completed_on."""
    if last_completed == completed_on:
        new_streak = max(current_streak, 1)
    elif last_completed is not None and last_completed == completed_on - timedelta(days=1):
        new_streak = current_streak + 1
    elif last_completed is not None and last_completed > completed_on:
        # Out-of-order completion date; keep the counters
        return current_streak, max(longest_streak, current_streak), last_completed
    else:
        new_streak = 1
    return new_streak, max(longest_streak, new_streak), completed_on
