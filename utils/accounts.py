from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from models.family import FamilyCreate
from models.student import ChildCreate
from utils.auth import hash_password
from utils.schedule import format_school_days


class AccountError(ValueError):
    """Registration or enrollment request that cannot be satisfied."""


def get_user_by_email(conn, email: str) -> Optional[Dict]:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT id, family_id, role, first_name, last_name, email, password_hash, is_primary_parent
        FROM users
        WHERE email = ?
        """,
        (email.strip().lower(),),
    )
    row = cursor.fetchone()
    return dict(row) if row else None


def create_family_account(
    conn,
    family: FamilyCreate,
    trial_days: int,
    school_days: List[int],
) -> Tuple[int, int]:
    """Create the family and its primary parent together. Returns (family_id, user_id)."""
    if get_user_by_email(conn, family.email):
        raise AccountError("An account with this email already exists")
    trial_ends_at = (datetime.now(timezone.utc) + timedelta(days=trial_days)).isoformat(timespec="seconds")
    cursor = conn.cursor()
    try:
        cursor.execute(
            "INSERT INTO families (name, email, trial_ends_at, school_days) VALUES (?, ?, ?, ?)",
            (family.name, family.email, trial_ends_at, format_school_days(school_days)),
        )
        family_id = cursor.lastrowid
        cursor.execute(
            """
            INSERT INTO users (family_id, role, first_name, last_name, email, password_hash, is_primary_parent)
            VALUES (?, 'parent', ?, ?, ?, ?, 1)
            """,
            (family_id, family.first_name, family.last_name, family.email, hash_password(family.password)),
        )
        user_id = cursor.lastrowid
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    return family_id, user_id


def add_child(conn, family_id: int, child: ChildCreate) -> int:
    """Create a student user and its profile in one transaction."""
    cursor = conn.cursor()
    if child.grade_id is not None:
        cursor.execute("SELECT id FROM grades WHERE id = ? AND is_active = 1", (child.grade_id,))
        if not cursor.fetchone():
            raise AccountError("Grade not found")
    try:
        cursor.execute(
            "INSERT INTO users (family_id, role, first_name, last_name) VALUES (?, 'student', ?, ?)",
            (family_id, child.first_name, child.last_name),
        )
        student_id = cursor.lastrowid
        cursor.execute(
            """
            INSERT INTO student_profiles (user_id, family_id, birth_date, current_grade_id)
            VALUES (?, ?, ?, ?)
            """,
            (
                student_id,
                family_id,
                child.birth_date.isoformat() if child.birth_date else None,
                child.grade_id,
            ),
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    return student_id


def list_children(conn, family_id: int) -> List[Dict]:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT u.id, u.first_name, u.last_name,
               p.current_grade_id, p.points_total, p.current_streak, p.longest_streak,
               g.name AS grade_name
        FROM users u
        JOIN student_profiles p ON p.user_id = u.id
        LEFT JOIN grades g ON g.id = p.current_grade_id
        WHERE u.family_id = ? AND u.role = 'student'
        ORDER BY u.created_at ASC, u.id ASC
        """,
        (family_id,),
    )
    return [dict(row) for row in cursor.fetchall()]


def get_family_student(conn, family_id: int, student_id: int) -> Optional[Dict]:
    """Student row with profile, only if the student belongs to the family."""
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT u.id, u.first_name, u.last_name, u.family_id,
               p.birth_date, p.current_grade_id, p.points_total,
               p.current_streak, p.longest_streak, p.notes
        FROM users u
        JOIN student_profiles p ON p.user_id = u.id
        WHERE u.id = ? AND u.family_id = ? AND u.role = 'student'
        """,
        (student_id, family_id),
    )
    row = cursor.fetchone()
    return dict(row) if row else None


def set_student_grade(conn, student_id: int, grade_id: Optional[int]) -> None:
    cursor = conn.cursor()
    if grade_id is not None:
        cursor.execute("SELECT id FROM grades WHERE id = ? AND is_active = 1", (grade_id,))
        if not cursor.fetchone():
            raise AccountError("Grade not found")
    cursor.execute(
        "UPDATE student_profiles SET current_grade_id = ? WHERE user_id = ?",
        (grade_id, student_id),
    )
    conn.commit()


def list_grades(conn) -> List[Dict]:
    cursor = conn.cursor()
    cursor.execute(
        "SELECT id, name, order_index FROM grades WHERE is_active = 1 ORDER BY order_index ASC, id ASC"
    )
    return [dict(row) for row in cursor.fetchall()]


def recent_achievements(conn, student_id: int, limit: int = 5) -> List[Dict]:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT a.id, a.name, a.description, a.icon, sa.earned_at
        FROM student_achievements sa
        JOIN achievements a ON a.id = sa.achievement_id
        WHERE sa.student_id = ?
        ORDER BY sa.earned_at DESC, a.id DESC
        LIMIT ?
        """,
        (student_id, limit),
    )
    return [dict(row) for row in cursor.fetchall()]


def update_family_schedule(
    conn,
    family_id: int,
    school_days: List[int],
    curriculum_start_date: Optional[str],
) -> None:
    cursor = conn.cursor()
    cursor.execute(
        "UPDATE families SET school_days = ?, curriculum_start_date = ? WHERE id = ?",
        (format_school_days(school_days), curriculum_start_date, family_id),
    )
    conn.commit()
