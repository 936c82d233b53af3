import sqlite3
from datetime import date

from db import database
from models.activity import Activity
from utils import progress
from utils.grading import grade
from utils.progress import (
    StudentSnapshot,
    StudentStats,
    aggregate_family_progress,
    aggregate_student_stats,
    aggregate_todays_lessons,
    complete_lesson,
    compute_student_stats,
    compute_todays_lessons,
    compute_weekly_schedule,
    family_weekly_schedules,
    latest_responses,
    record_activity_response,
    round_percent,
    total_points,
    weekly_schedule,
)


def _course(course_id=1, name="Math 1"):
    return {"id": course_id, "name": name, "subject_name": "Math", "subject_color": "#10b981"}


def _lesson(lesson_id, week=1, day=1, order=0, active=1, course_id=1):
    return {
        "id": lesson_id,
        "course_id": course_id,
        "name": f"Lesson {lesson_id}",
        "week_number": week,
        "day_number": day,
        "order_index": order,
        "is_active": active,
    }


def _snapshot(**kwargs):
    defaults = {
        "student_id": 7,
        "profile": {"points_total": 0, "current_streak": 0, "longest_streak": 0},
        "grade": {"id": 2, "name": "1st Grade"},
        "family": {"school_days": "1,2,3,4,5", "curriculum_start_date": None},
        "courses": (_course(),),
    }
    defaults.update(kwargs)
    return StudentSnapshot(**defaults)


def test_round_percent_half_up():
    assert round_percent(1, 2) == 50
    assert round_percent(1, 8) == 13
    assert round_percent(2, 3) == 67
    assert round_percent(5, 0) == 0


def test_course_percent_counts_completed_over_active_lessons():
    snapshot = _snapshot(
        lessons=tuple(_lesson(i) for i in range(1, 5)),
        progress=(
            {"lesson_id": 1, "status": "completed", "points_earned": 10},
            {"lesson_id": 2, "status": "completed", "points_earned": 5},
            {"lesson_id": 3, "status": "in_progress", "points_earned": 0},
        ),
    )

    stats = compute_student_stats(snapshot)

    assert stats.lessons_completed == 2
    assert len(stats.course_progress) == 1
    course = stats.course_progress[0]
    assert (course.completed_lessons, course.total_lessons, course.percent_complete) == (2, 4, 50)


def test_lessons_completed_matches_course_completed_counts():
    snapshot = _snapshot(
        lessons=tuple(_lesson(i) for i in range(1, 4)),
        progress=(
            {"lesson_id": 1, "status": "completed", "points_earned": 10},
            {"lesson_id": 1, "status": "completed", "points_earned": 10},
            {"lesson_id": 2, "status": "not_started", "points_earned": 0},
        ),
    )

    stats = compute_student_stats(snapshot)

    assert stats.lessons_completed == 1
    assert stats.lessons_completed == sum(course.completed_lessons for course in stats.course_progress)


def test_course_without_active_lessons_is_zero_percent():
    snapshot = _snapshot(lessons=(_lesson(1, active=0),))

    stats = compute_student_stats(snapshot)

    assert stats.course_progress[0].total_lessons == 0
    assert stats.course_progress[0].percent_complete == 0


def test_course_percent_never_exceeds_100():
    snapshot = _snapshot(
        lessons=(_lesson(1), _lesson(2, active=0)),
        progress=(
            {"lesson_id": 1, "status": "completed"},
            {"lesson_id": 2, "status": "completed"},
        ),
    )

    stats = compute_student_stats(snapshot)

    assert stats.course_progress[0].percent_complete == 100


def test_no_responses_means_zero_accuracy():
    stats = compute_student_stats(_snapshot())

    assert stats.total_answers == 0
    assert stats.accuracy_percent == 0


def test_missing_grade_gives_empty_course_progress():
    stats = compute_student_stats(_snapshot(grade=None, courses=()))

    assert stats.course_progress == ()
    assert stats == StudentStats()


def test_accuracy_uses_latest_response_per_activity():
    responses = (
        {"id": 1, "activity_id": 10, "is_correct": 0, "updated_at": "2026-01-05T10:00:00+00:00"},
        {"id": 2, "activity_id": 10, "is_correct": 1, "updated_at": "2026-01-05T11:00:00+00:00"},
        {"id": 3, "activity_id": 11, "is_correct": 0, "updated_at": "2026-01-05T09:00:00+00:00"},
    )

    assert [row["id"] for row in latest_responses(responses)] == [2, 3]
    stats = compute_student_stats(_snapshot(responses=responses))
    assert (stats.correct_answers, stats.total_answers, stats.accuracy_percent) == (1, 2, 50)


def test_points_prefer_profile_counter():
    ledger = ({"lesson_id": 1, "points_earned": 10}, {"lesson_id": 2, "points_earned": 5})

    assert total_points({"points_total": 40}, ledger) == 40
    assert total_points(None, ledger) == 15
    assert total_points({"points_total": None}, ledger) == 15


def test_todays_lessons_without_start_date_shows_week_one_day_one():
    snapshot = _snapshot(
        lessons=(_lesson(1, order=2), _lesson(2, order=1), _lesson(3, day=2), _lesson(4, active=0)),
        progress=({"lesson_id": 1, "status": "completed"},),
    )

    todays = compute_todays_lessons(snapshot, date(2026, 3, 4))

    assert [lesson["id"] for lesson in todays.scheduled] == [2, 1]
    assert (todays.completed_count, todays.total_count) == (1, 2)
    assert todays.ratio == 0.5
    assert todays.scheduled[1]["status"] == "completed"
    assert todays.scheduled[0]["subject_name"] == "Math"


def test_todays_lessons_follow_curriculum_start_date():
    # Monday 2026-03-02 starts week 1; Wednesday of the following week is week 2 day 3
    snapshot = _snapshot(
        family={"school_days": "1,2,3,4,5", "curriculum_start_date": "2026-03-02"},
        lessons=(_lesson(1, week=2, day=3), _lesson(2, week=1, day=3)),
    )

    todays = compute_todays_lessons(snapshot, date(2026, 3, 11))

    assert (todays.week_number, todays.day_number) == (2, 3)
    assert [lesson["id"] for lesson in todays.scheduled] == [1]


def test_todays_lessons_empty_on_weekends_and_days_off():
    family = {"school_days": "1,3,5", "curriculum_start_date": "2026-03-02"}
    snapshot = _snapshot(family=family, lessons=(_lesson(1, day=2), _lesson(2, day=5)))

    saturday = compute_todays_lessons(snapshot, date(2026, 3, 7))
    tuesday = compute_todays_lessons(snapshot, date(2026, 3, 3))

    assert saturday.total_count == 0
    assert saturday.ratio == 0.0
    assert tuesday.total_count == 0
    assert tuesday.day_number == 2


def test_weekly_schedule_groups_school_days():
    snapshot = _snapshot(
        family={"school_days": "1,3,5", "curriculum_start_date": None},
        lessons=(_lesson(1, day=1), _lesson(2, day=2), _lesson(3, day=3, order=1), _lesson(4, day=3)),
    )

    schedule = compute_weekly_schedule(snapshot, date(2026, 3, 4))

    assert schedule.week_number == 1
    assert schedule.school_days == (1, 3, 5)
    assert [day.name for day in schedule.days] == ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
    assert [lesson["id"] for lesson in schedule.days[0].lessons] == [1]
    assert schedule.days[1].lessons == ()
    assert schedule.days[1].is_school_day is False
    assert [lesson["id"] for lesson in schedule.days[2].lessons] == [4, 3]
    assert schedule.days[2].is_today is True
    assert schedule.days[2].date == date(2026, 3, 4)


def test_weekly_schedule_on_weekend_shows_finished_week():
    snapshot = _snapshot(
        family={"school_days": "1,2,3,4,5", "curriculum_start_date": "2026-03-02"},
        lessons=(_lesson(1, week=1, day=5), _lesson(2, week=2, day=1)),
    )

    schedule = compute_weekly_schedule(snapshot, date(2026, 3, 8))

    assert schedule.week_number == 1
    assert [lesson["id"] for lesson in schedule.days[4].lessons] == [1]


def _init_db(tmp_path, monkeypatch):
    data_dir = tmp_path / ".lessonbook"
    data_dir.mkdir()
    monkeypatch.setattr(database, "CONFIG_DIR", data_dir)
    monkeypatch.setattr(database, "DB_PATH", data_dir / "lessonbook.db")
    database.init_db()


def _seed(conn):
    cursor = conn.cursor()
    cursor.execute("INSERT INTO families (name, email) VALUES (?, ?)", ("Smith", "smith@example.com"))
    family_id = cursor.lastrowid
    grade_id = cursor.execute("SELECT id FROM grades WHERE name = ?", ("1st Grade",)).fetchone()[0]
    subject_id = cursor.execute("SELECT id FROM subjects WHERE name = ?", ("Math",)).fetchone()[0]
    cursor.execute(
        "INSERT INTO courses (grade_id, subject_id, name) VALUES (?, ?, ?)",
        (grade_id, subject_id, "Math 1"),
    )
    course_id = cursor.lastrowid
    lesson_ids = []
    for day in (1, 2):
        cursor.execute(
            "INSERT INTO lessons (course_id, name, week_number, day_number) VALUES (?, ?, 1, ?)",
            (course_id, f"Counting {day}", day),
        )
        lesson_ids.append(cursor.lastrowid)
    cursor.execute(
        """
        INSERT INTO activities (lesson_id, activity_type, title, activity_data, points)
        VALUES (?, 'multiple_choice', 'Pick two', ?, 10)
        """,
        (lesson_ids[0], '{"options": ["1", "2", "3"], "correct": 1}'),
    )
    activity_id = cursor.lastrowid
    cursor.execute(
        "INSERT INTO users (family_id, role, first_name) VALUES (?, 'student', ?)",
        (family_id, "Ada"),
    )
    student_id = cursor.lastrowid
    cursor.execute(
        "INSERT INTO student_profiles (user_id, family_id, current_grade_id) VALUES (?, ?, ?)",
        (student_id, family_id, grade_id),
    )
    conn.commit()
    return student_id, lesson_ids, activity_id


def _load_activity(conn, activity_id):
    row = conn.execute("SELECT * FROM activities WHERE id = ?", (activity_id,)).fetchone()
    return Activity.model_validate(dict(row))


def test_record_response_keeps_latest_attempt(tmp_path, monkeypatch):
    _init_db(tmp_path, monkeypatch)
    with database.get_conn() as conn:
        student_id, lesson_ids, activity_id = _seed(conn)
        activity = _load_activity(conn, activity_id)
        for answer in (0, 1):
            record_activity_response(
                conn,
                student_id=student_id,
                activity=activity,
                answer=answer,
                result=grade(activity, answer),
            )
        conn.commit()

        rows = conn.execute(
            "SELECT is_correct, points_earned, attempts, response_data FROM activity_responses WHERE student_id = ?",
            (student_id,),
        ).fetchall()
        assert len(rows) == 1
        assert rows[0]["is_correct"] == 1
        assert rows[0]["points_earned"] == 10
        assert rows[0]["attempts"] == 2
        assert rows[0]["response_data"] == '{"answer": 1}'
        status = conn.execute(
            "SELECT status FROM lesson_progress WHERE student_id = ? AND lesson_id = ?",
            (student_id, lesson_ids[0]),
        ).fetchone()[0]
        assert status == "in_progress"


def test_complete_lesson_totals_points_and_advances_streak(tmp_path, monkeypatch):
    _init_db(tmp_path, monkeypatch)
    with database.get_conn() as conn:
        student_id, lesson_ids, activity_id = _seed(conn)
        activity = _load_activity(conn, activity_id)
        record_activity_response(
            conn, student_id=student_id, activity=activity, answer=1, result=grade(activity, 1)
        )

        assert complete_lesson(conn, student_id, lesson_ids[0], date(2026, 3, 2)) == 10
        assert complete_lesson(conn, student_id, lesson_ids[0], date(2026, 3, 2)) == 10
        assert complete_lesson(conn, student_id, lesson_ids[1], date(2026, 3, 3)) == 0
        conn.commit()

        profile = conn.execute(
            """
            SELECT points_total, current_streak, longest_streak, last_completed_date
            FROM student_profiles WHERE user_id = ?
            """,
            (student_id,),
        ).fetchone()
        assert profile["points_total"] == 10
        assert profile["current_streak"] == 2
        assert profile["longest_streak"] == 2
        assert profile["last_completed_date"] == "2026-03-03"

        stats = aggregate_student_stats(conn, student_id)
        assert stats.lessons_completed == 2
        assert stats.points_total == 10
        assert (stats.correct_answers, stats.total_answers, stats.accuracy_percent) == (1, 1, 100)
        assert stats.course_progress[0].percent_complete == 100


def test_response_after_completion_keeps_lesson_completed(tmp_path, monkeypatch):
    _init_db(tmp_path, monkeypatch)
    with database.get_conn() as conn:
        student_id, lesson_ids, activity_id = _seed(conn)
        activity = _load_activity(conn, activity_id)
        complete_lesson(conn, student_id, lesson_ids[0], date(2026, 3, 2))
        record_activity_response(
            conn, student_id=student_id, activity=activity, answer=0, result=grade(activity, 0)
        )
        conn.commit()

        status = conn.execute(
            "SELECT status FROM lesson_progress WHERE student_id = ? AND lesson_id = ?",
            (student_id, lesson_ids[0]),
        ).fetchone()[0]
        assert status == "completed"


def test_aggregation_is_repeatable(tmp_path, monkeypatch):
    _init_db(tmp_path, monkeypatch)
    with database.get_conn() as conn:
        student_id, lesson_ids, _ = _seed(conn)
        complete_lesson(conn, student_id, lesson_ids[0], date(2026, 3, 2))
        conn.commit()

        assert aggregate_student_stats(conn, student_id) == aggregate_student_stats(conn, student_id)
        today = date(2026, 3, 3)
        assert aggregate_todays_lessons(conn, student_id, today) == aggregate_todays_lessons(conn, student_id, today)
        assert weekly_schedule(conn, student_id, today) == weekly_schedule(conn, student_id, today)


def test_unknown_student_aggregates_to_empty_state(tmp_path, monkeypatch):
    _init_db(tmp_path, monkeypatch)
    with database.get_conn() as conn:
        assert aggregate_student_stats(conn, 999) == StudentStats()
        todays = aggregate_todays_lessons(conn, 999, date(2026, 3, 3))
        assert todays.total_count == 0


def test_family_progress_isolates_failing_child(tmp_path, monkeypatch):
    _init_db(tmp_path, monkeypatch)
    with database.get_conn() as conn:
        student_id, lesson_ids, _ = _seed(conn)
        complete_lesson(conn, student_id, lesson_ids[0], date(2026, 3, 2))
        conn.commit()

        real_loader = progress.load_student_snapshot

        def flaky_loader(conn, child_id):
            if child_id == 404:
                raise sqlite3.OperationalError("disk I/O error")
            return real_loader(conn, child_id)

        monkeypatch.setattr(progress, "load_student_snapshot", flaky_loader)
        reports = aggregate_family_progress(conn, [{"id": 404}, {"id": student_id}])

        assert reports[0]["stats"] == StudentStats()
        assert reports[0]["grade"] is None
        assert reports[1]["stats"].lessons_completed == 1
        assert reports[1]["grade"]["name"] == "1st Grade"


def test_family_schedules_show_empty_week_for_failing_child(tmp_path, monkeypatch):
    _init_db(tmp_path, monkeypatch)
    with database.get_conn() as conn:
        student_id, _, _ = _seed(conn)
        family_id = conn.execute("SELECT family_id FROM users WHERE id = ?", (student_id,)).fetchone()[0]
        family = progress.fetch_family(conn, family_id)

        real_loader = progress.load_student_snapshot

        def flaky_loader(conn, child_id):
            if child_id == 404:
                raise sqlite3.OperationalError("disk I/O error")
            return real_loader(conn, child_id)

        monkeypatch.setattr(progress, "load_student_snapshot", flaky_loader)
        schedules = family_weekly_schedules(conn, [{"id": 404}, {"id": student_id}], family, date(2026, 3, 4))

    broken, healthy = schedules[0]["schedule"], schedules[1]["schedule"]
    assert [day.day_number for day in broken.days] == [1, 2, 3, 4, 5]
    assert all(not day.lessons for day in broken.days)
    assert broken.school_days == healthy.school_days
    assert broken.week_number == healthy.week_number
    assert any(day.lessons for day in healthy.days)
