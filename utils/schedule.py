from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
DEFAULT_SCHOOL_DAYS = [1, 2, 3, 4, 5]


@dataclass(frozen=True)
class ScheduleDay:
    day_number: int
    name: str
    is_school_day: bool
    date: Optional[date] = None
    is_today: bool = False
    lessons: Tuple[dict, ...] = field(default_factory=tuple)


def parse_school_days(value) -> List[int]:
    """Parse a stored school-day list ("1,3,5" or an iterable) into sorted weekday indices 1-5."""
    if value is None:
        return list(DEFAULT_SCHOOL_DAYS)
    if isinstance(value, str):
        items: Iterable = value.split(",")
    else:
        items = value
    days = set()
    for item in items:
        try:
            day = int(str(item).strip())
        except ValueError:
            continue
        if 1 <= day <= 5:
            days.add(day)
    return sorted(days)


def format_school_days(days: Iterable[int]) -> str:
    return ",".join(str(day) for day in sorted(set(days)))


def describe_school_days(days: Iterable[int]) -> str:
    days = sorted(set(days))
    if not days:
        return "No school days"
    if days == DEFAULT_SCHOOL_DAYS:
        return "Monday - Friday"
    return ", ".join(DAY_NAMES[day - 1][:3] for day in days)


def week_monday(anchor: date) -> date:
    return anchor - timedelta(days=anchor.weekday())


def resolve_lesson_day(today: date, start_date: Optional[date]) -> Optional[Tuple[int, int]]:
    """Map a calendar date to a curriculum (week_number, day_number).

    Without a curriculum start date every day shows week 1, day 1. With one,
    weeks count from the Monday of the start week; weekends have no lessons
    and dates before the start preview week 1, day 1.
    """
    if start_date is None or today < start_date:
        return 1, 1
    weekday = today.isoweekday()
    if weekday > 5:
        return None
    week_number = (week_monday(today) - week_monday(start_date)).days // 7 + 1
    return week_number, weekday


def lesson_sort_key(lesson: dict) -> Tuple[int, int]:
    return int(lesson.get("order_index") or 0), int(lesson["id"])


def week_dates(today: date, school_days: Iterable[int]) -> List[Dict]:
    monday = week_monday(today)
    school_days = set(school_days)
    dates = []
    for index, name in enumerate(DAY_NAMES):
        day_date = monday + timedelta(days=index)
        dates.append(
            {
                "name": name,
                "date": day_date,
                "day_number": index + 1,
                "is_today": day_date == today,
                "is_school_day": index + 1 in school_days,
            }
        )
    return dates


def group_weekly_schedule(
    lessons: Iterable[dict],
    school_days: Iterable[int],
    today: Optional[date] = None,
) -> List[ScheduleDay]:
    """Group lessons by day_number (Monday-Friday), ordered by order_index then id.

    Days outside the family's school days are returned empty whatever the data holds.
    """
    school_days = set(school_days)
    by_day: Dict[int, List[dict]] = {day: [] for day in range(1, 6)}
    for lesson in lessons:
        day_number = int(lesson.get("day_number") or 0)
        if day_number in by_day:
            by_day[day_number].append(lesson)
    dates = week_dates(today, school_days) if today else None
    days: List[ScheduleDay] = []
    for day_number in range(1, 6):
        is_school_day = day_number in school_days
        day_lessons = sorted(by_day[day_number], key=lesson_sort_key) if is_school_day else []
        day_info = dates[day_number - 1] if dates else {}
        days.append(
            ScheduleDay(
                day_number=day_number,
                name=DAY_NAMES[day_number - 1],
                is_school_day=is_school_day,
                date=day_info.get("date"),
                is_today=bool(day_info.get("is_today")),
                lessons=tuple(day_lessons),
            )
        )
    return days
