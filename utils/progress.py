from __future__ import annotations

import json
import logging
import math
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from models.activity import Activity
from utils.grading import GradeResult
from utils.schedule import (
    ScheduleDay,
    group_weekly_schedule,
    lesson_sort_key,
    parse_school_days,
    resolve_lesson_day,
    week_monday,
)
from utils.streaks import advance_streak, parse_iso_date

logger = logging.getLogger(__name__)

COMPLETED = "completed"
IN_PROGRESS = "in_progress"
NOT_STARTED = "not_started"


@dataclass(frozen=True)
class CourseProgress:
    course_id: int
    name: str
    subject_name: str
    subject_color: str
    completed_lessons: int
    total_lessons: int
    percent_complete: int


@dataclass(frozen=True)
class StudentStats:
    lessons_completed: int = 0
    points_total: int = 0
    correct_answers: int = 0
    total_answers: int = 0
    accuracy_percent: int = 0
    streak: int = 0
    longest_streak: int = 0
    course_progress: Tuple[CourseProgress, ...] = ()


@dataclass(frozen=True)
class StudentSnapshot:
    """Raw rows for one student, read once per aggregation call."""
    student_id: int
    profile: Optional[dict]
    grade: Optional[dict]
    family: Optional[dict]
    courses: Tuple[dict, ...] = ()
    lessons: Tuple[dict, ...] = ()
    progress: Tuple[dict, ...] = ()
    responses: Tuple[dict, ...] = ()


@dataclass(frozen=True)
class TodaysLessons:
    scheduled: Tuple[dict, ...]
    completed_count: int
    total_count: int
    week_number: Optional[int] = None
    day_number: Optional[int] = None

    @property
    def ratio(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return self.completed_count / self.total_count


@dataclass(frozen=True)
class WeeklySchedule:
    week_number: int
    school_days: Tuple[int, ...]
    days: Tuple[ScheduleDay, ...]


def round_percent(part: int, whole: int) -> int:
    """Whole-number percentage rounded half up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return int(math.floor(100 * part / whole + 0.5))


def completed_lesson_ids(progress_rows: Iterable[dict]) -> Set[int]:
    return {int(row["lesson_id"]) for row in progress_rows if row.get("status") == COMPLETED}


def latest_responses(responses: Iterable[dict]) -> List[dict]:
    """Keep only the most recent attempt per activity."""
    latest: Dict[int, dict] = {}
    for row in responses:
        activity_id = int(row["activity_id"])
        current = latest.get(activity_id)
        row_key = (row.get("updated_at") or "", int(row.get("id") or 0))
        if current is None or row_key >= (current.get("updated_at") or "", int(current.get("id") or 0)):
            latest[activity_id] = row
    return [latest[activity_id] for activity_id in sorted(latest)]


def total_points(profile: Optional[dict], progress_rows: Iterable[dict]) -> int:
    """Profile counter when present, otherwise the summed ledger."""
    if profile is not None and profile.get("points_total") is not None:
        return int(profile["points_total"])
    return sum(int(row.get("points_earned") or 0) for row in progress_rows)


def compute_accuracy(responses: Iterable[dict]) -> Tuple[int, int, int]:
    rows = latest_responses(responses)
    correct = sum(1 for row in rows if row.get("is_correct"))
    total = len(rows)
    return correct, total, round_percent(correct, total)


def compute_course_progress(
    courses: Sequence[dict],
    lessons: Iterable[dict],
    completed_ids: Set[int],
) -> List[CourseProgress]:
    active_totals: Dict[int, int] = {int(course["id"]): 0 for course in courses}
    completed_totals: Dict[int, int] = {int(course["id"]): 0 for course in courses}
    for lesson in lessons:
        course_id = int(lesson["course_id"])
        if course_id not in active_totals:
            continue
        if lesson.get("is_active"):
            active_totals[course_id] += 1
        if int(lesson["id"]) in completed_ids:
            completed_totals[course_id] += 1
    results = []
    for course in courses:
        course_id = int(course["id"])
        total = active_totals[course_id]
        completed = completed_totals[course_id]
        results.append(
            CourseProgress(
                course_id=course_id,
                name=course.get("name") or "",
                subject_name=course.get("subject_name") or "",
                subject_color=course.get("subject_color") or "#6366f1",
                completed_lessons=completed,
                total_lessons=total,
                percent_complete=min(round_percent(completed, total), 100),
            )
        )
    return results


def compute_student_stats(snapshot: StudentSnapshot) -> StudentStats:
    completed_ids = completed_lesson_ids(snapshot.progress)
    correct, total, accuracy = compute_accuracy(snapshot.responses)
    profile = snapshot.profile or {}
    return StudentStats(
        lessons_completed=len(completed_ids),
        points_total=total_points(snapshot.profile, snapshot.progress),
        correct_answers=correct,
        total_answers=total,
        accuracy_percent=accuracy,
        streak=int(profile.get("current_streak") or 0),
        longest_streak=int(profile.get("longest_streak") or 0),
        course_progress=tuple(
            compute_course_progress(snapshot.courses, snapshot.lessons, completed_ids)
        ),
    )


def decorate_lessons(
    lessons: Iterable[dict],
    courses: Sequence[dict],
    progress_rows: Iterable[dict],
) -> List[dict]:
    """Attach subject and progress status to lessons via id lookups."""
    course_by_id = {int(course["id"]): course for course in courses}
    status_by_lesson = {int(row["lesson_id"]): row.get("status") or NOT_STARTED for row in progress_rows}
    decorated = []
    for lesson in lessons:
        course = course_by_id.get(int(lesson["course_id"]), {})
        item = dict(lesson)
        item["course_name"] = course.get("name")
        item["subject_name"] = course.get("subject_name")
        item["subject_color"] = course.get("subject_color") or "#6366f1"
        item["status"] = status_by_lesson.get(int(lesson["id"]), NOT_STARTED)
        decorated.append(item)
    return decorated


def select_lessons_for_day(lessons: Iterable[dict], week_number: int, day_number: int) -> List[dict]:
    selected = [
        lesson
        for lesson in lessons
        if lesson.get("is_active")
        and int(lesson.get("week_number") or 0) == week_number
        and int(lesson.get("day_number") or 0) == day_number
    ]
    return sorted(selected, key=lesson_sort_key)


def compute_todays_lessons(snapshot: StudentSnapshot, today: date) -> TodaysLessons:
    family = snapshot.family or {}
    start_date = parse_iso_date(family.get("curriculum_start_date"))
    resolved = resolve_lesson_day(today, start_date)
    if resolved is None:
        return TodaysLessons(scheduled=(), completed_count=0, total_count=0)
    week_number, day_number = resolved
    if start_date is not None:
        school_days = parse_school_days(family.get("school_days"))
        if day_number not in school_days:
            return TodaysLessons(
                scheduled=(),
                completed_count=0,
                total_count=0,
                week_number=week_number,
                day_number=day_number,
            )
    lessons = select_lessons_for_day(snapshot.lessons, week_number, day_number)
    scheduled = decorate_lessons(lessons, snapshot.courses, snapshot.progress)
    completed_count = sum(1 for lesson in scheduled if lesson["status"] == COMPLETED)
    return TodaysLessons(
        scheduled=tuple(scheduled),
        completed_count=completed_count,
        total_count=len(scheduled),
        week_number=week_number,
        day_number=day_number,
    )


def compute_weekly_schedule(snapshot: StudentSnapshot, today: date) -> WeeklySchedule:
    family = snapshot.family or {}
    school_days = parse_school_days(family.get("school_days"))
    start_date = parse_iso_date(family.get("curriculum_start_date"))
    resolved = resolve_lesson_day(today, start_date)
    if resolved is not None:
        week_number = resolved[0]
    else:
        # Weekends show the week that just ended
        week_number = resolve_lesson_day(week_monday(today), start_date)[0]
    week_lessons = [
        lesson
        for lesson in snapshot.lessons
        if lesson.get("is_active") and int(lesson.get("week_number") or 0) == week_number
    ]
    decorated = decorate_lessons(week_lessons, snapshot.courses, snapshot.progress)
    return WeeklySchedule(
        week_number=week_number,
        school_days=tuple(school_days),
        days=tuple(group_weekly_schedule(decorated, school_days, today)),
    )


# Loaders


def fetch_student_profile(conn, student_id: int) -> Optional[dict]:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT user_id, family_id, birth_date, current_grade_id, points_total,
               current_streak, longest_streak, last_completed_date, notes
        FROM student_profiles
        WHERE user_id = ?
        """,
        (student_id,),
    )
    row = cursor.fetchone()
    return dict(row) if row else None


def fetch_family(conn, family_id: Optional[int]) -> Optional[dict]:
    if family_id is None:
        return None
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT id, name, email, trial_ends_at, school_days, curriculum_start_date
        FROM families
        WHERE id = ?
        """,
        (family_id,),
    )
    row = cursor.fetchone()
    return dict(row) if row else None


def fetch_grade(conn, grade_id: Optional[int]) -> Optional[dict]:
    if grade_id is None:
        return None
    cursor = conn.cursor()
    cursor.execute("SELECT id, name, order_index, is_active FROM grades WHERE id = ?", (grade_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def fetch_grade_courses(conn, grade_id: Optional[int]) -> List[dict]:
    if grade_id is None:
        return []
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT c.id, c.grade_id, c.subject_id, c.name, c.total_weeks, c.is_active,
               s.name AS subject_name, s.color AS subject_color, s.order_index AS subject_order
        FROM courses c
        JOIN subjects s ON s.id = c.subject_id
        WHERE c.grade_id = ? AND c.is_active = 1
        ORDER BY s.order_index ASC, c.id ASC
        """,
        (grade_id,),
    )
    return [dict(row) for row in cursor.fetchall()]


def fetch_course_lessons(conn, course_ids: Sequence[int]) -> List[dict]:
    if not course_ids:
        return []
    placeholders = ",".join("?" for _ in course_ids)
    cursor = conn.cursor()
    cursor.execute(
        f"""
        SELECT id, course_id, unit_id, name, description, week_number, day_number,
               order_index, estimated_minutes, is_active
        FROM lessons
        WHERE course_id IN ({placeholders})
        ORDER BY order_index ASC, id ASC
        """,
        list(course_ids),
    )
    return [dict(row) for row in cursor.fetchall()]


def fetch_lesson_progress(conn, student_id: int) -> List[dict]:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT student_id, lesson_id, status, points_earned, started_at, completed_at
        FROM lesson_progress
        WHERE student_id = ?
        """,
        (student_id,),
    )
    return [dict(row) for row in cursor.fetchall()]


def fetch_activity_responses(conn, student_id: int) -> List[dict]:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT id, student_id, activity_id, is_correct, points_earned, attempts, updated_at
        FROM activity_responses
        WHERE student_id = ?
        """,
        (student_id,),
    )
    return [dict(row) for row in cursor.fetchall()]


def load_student_snapshot(conn, student_id: int) -> StudentSnapshot:
    """Read every row the aggregations need: profile, then grade, then courses, then lessons."""
    profile = fetch_student_profile(conn, student_id)
    grade_id = profile.get("current_grade_id") if profile else None
    grade = fetch_grade(conn, grade_id)
    family = fetch_family(conn, profile.get("family_id") if profile else None)
    courses = fetch_grade_courses(conn, grade["id"]) if grade else []
    lessons = fetch_course_lessons(conn, [course["id"] for course in courses])
    return StudentSnapshot(
        student_id=student_id,
        profile=profile,
        grade=grade,
        family=family,
        courses=tuple(courses),
        lessons=tuple(lessons),
        progress=tuple(fetch_lesson_progress(conn, student_id)),
        responses=tuple(fetch_activity_responses(conn, student_id)),
    )


def aggregate_student_stats(conn, student_id: int) -> StudentStats:
    return compute_student_stats(load_student_snapshot(conn, student_id))


def aggregate_todays_lessons(conn, student_id: int, today: Optional[date] = None) -> TodaysLessons:
    return compute_todays_lessons(load_student_snapshot(conn, student_id), today or date.today())


def weekly_schedule(conn, student_id: int, today: Optional[date] = None) -> WeeklySchedule:
    return compute_weekly_schedule(load_student_snapshot(conn, student_id), today or date.today())


def aggregate_family_progress(conn, children: Iterable[dict]) -> List[Dict[str, Any]]:
    """Per-child grade and stats; a failed read shows zero stats for that child only."""
    reports = []
    for child in children:
        try:
            snapshot = load_student_snapshot(conn, child["id"])
            grade = snapshot.grade
            stats = compute_student_stats(snapshot)
        except sqlite3.Error:
            logger.exception("Progress aggregation failed for student %s", child["id"])
            grade = None
            stats = StudentStats()
        reports.append({"child": child, "grade": grade, "stats": stats})
    return reports


def family_weekly_schedules(
    conn,
    children: Iterable[dict],
    family: Optional[dict],
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Per-child week view; a failed read shows an empty week for that child only."""
    today = today or date.today()
    schedules = []
    for child in children:
        try:
            schedule = weekly_schedule(conn, child["id"], today)
        except sqlite3.Error:
            logger.exception("Schedule aggregation failed for student %s", child["id"])
            empty = StudentSnapshot(student_id=child["id"], profile=None, grade=None, family=family)
            schedule = compute_weekly_schedule(empty, today)
        schedules.append({"child": child, "schedule": schedule})
    return schedules


# Writers


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def record_activity_response(
    conn,
    *,
    student_id: int,
    activity: Activity,
    answer: Any,
    result: GradeResult,
) -> None:
    """Upsert the latest response for (student, activity) and mark the lesson in progress."""
    points_earned = min(result.points_earned, activity.points) if result.is_correct else 0
    now = _now_iso()
    cursor = conn.cursor()
    cursor.execute(
        """
        INSERT INTO activity_responses (
            student_id,
            activity_id,
            response_data,
            is_correct,
            points_earned,
            attempts,
            created_at,
            updated_at
        )
        VALUES (?, ?, ?, ?, ?, 1, ?, ?)
        ON CONFLICT(student_id, activity_id) DO UPDATE SET
            response_data = excluded.response_data,
            is_correct = excluded.is_correct,
            points_earned = excluded.points_earned,
            attempts = activity_responses.attempts + 1,
            updated_at = excluded.updated_at
        """,
        (
            student_id,
            activity.id,
            json.dumps({"answer": answer}),
            1 if result.is_correct else 0,
            points_earned,
            now,
            now,
        ),
    )
    cursor.execute(
        """
        INSERT INTO lesson_progress (student_id, lesson_id, status, started_at)
        VALUES (?, ?, 'in_progress', ?)
        ON CONFLICT(student_id, lesson_id) DO UPDATE SET
            status = CASE
                WHEN lesson_progress.status = 'completed' THEN 'completed'
                ELSE 'in_progress'
            END,
            started_at = COALESCE(lesson_progress.started_at, excluded.started_at)
        """,
        (student_id, activity.lesson_id, now),
    )


def refresh_points_total(conn, student_id: int) -> int:
    """Rewrite the profile's points counter from the lesson ledger."""
    cursor = conn.cursor()
    cursor.execute(
        "SELECT COALESCE(SUM(points_earned), 0) FROM lesson_progress WHERE student_id = ?",
        (student_id,),
    )
    points = int(cursor.fetchone()[0] or 0)
    cursor.execute(
        "UPDATE student_profiles SET points_total = ? WHERE user_id = ?",
        (points, student_id),
    )
    return points


def complete_lesson(conn, student_id: int, lesson_id: int, completed_on: Optional[date] = None) -> int:
    """Mark a lesson completed, re-total points and advance the day streak.

    Returns the points earned for the lesson.
    """
    completed_on = completed_on or date.today()
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT COALESCE(SUM(r.points_earned), 0)
        FROM activity_responses r
        JOIN activities a ON a.id = r.activity_id
        WHERE r.student_id = ? AND a.lesson_id = ?
        """,
        (student_id, lesson_id),
    )
    lesson_points = int(cursor.fetchone()[0] or 0)
    cursor.execute(
        "SELECT status FROM lesson_progress WHERE student_id = ? AND lesson_id = ?",
        (student_id, lesson_id),
    )
    row = cursor.fetchone()
    already_completed = bool(row and row["status"] == COMPLETED)
    now = _now_iso()
    cursor.execute(
        """
        INSERT INTO lesson_progress (student_id, lesson_id, status, points_earned, started_at, completed_at)
        VALUES (?, ?, 'completed', ?, ?, ?)
        ON CONFLICT(student_id, lesson_id) DO UPDATE SET
            status = 'completed',
            points_earned = excluded.points_earned,
            started_at = COALESCE(lesson_progress.started_at, excluded.started_at),
            completed_at = COALESCE(lesson_progress.completed_at, excluded.completed_at)
        """,
        (student_id, lesson_id, lesson_points, now, now),
    )
    refresh_points_total(conn, student_id)
    if already_completed:
        return lesson_points
    cursor.execute(
        """
        SELECT current_streak, longest_streak, last_completed_date
        FROM student_profiles
        WHERE user_id = ?
        """,
        (student_id,),
    )
    profile = cursor.fetchone()
    if profile is None:
        return lesson_points
    current, longest, last_date = advance_streak(
        int(profile["current_streak"] or 0),
        int(profile["longest_streak"] or 0),
        parse_iso_date(profile["last_completed_date"]),
        completed_on,
    )
    cursor.execute(
        """
        UPDATE student_profiles
        SET current_streak = ?, longest_streak = ?, last_completed_date = ?
        WHERE user_id = ?
        """,
        (current, longest, last_date.isoformat(), student_id),
    )
    return lesson_points
