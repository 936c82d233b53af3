import json
import logging
import sqlite3
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from db.database import get_db
from models.activity import Activity
from models.lesson import ContentBlock, Lesson, LessonStatus
from routes.parent import get_student_or_404
from utils.auth import require_parent
from utils.grading import (
    UnsupportedKey,
    answer_key_for,
    coerce_answer,
    correct_answer_text,
    grade,
)
from utils.progress import aggregate_todays_lessons, complete_lesson, record_activity_response

logger = logging.getLogger(__name__)

router = APIRouter()
base_dir = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(base_dir / "templates"))


def fetch_lesson(conn, lesson_id: int) -> Optional[Dict]:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT l.*,
               c.name AS course_name,
               s.name AS subject_name,
               s.color AS subject_color,
               u.name AS unit_name,
               u.memory_verse,
               u.memory_verse_reference
        FROM lessons l
        JOIN courses c ON c.id = l.course_id
        JOIN subjects s ON s.id = c.subject_id
        LEFT JOIN units u ON u.id = l.unit_id
        WHERE l.id = ?
        """,
        (lesson_id,),
    )
    row = cursor.fetchone()
    return dict(row) if row else None


def fetch_student_content(conn, lesson_id: int) -> List[ContentBlock]:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT * FROM lesson_content
        WHERE lesson_id = ? AND for_student = 1
        ORDER BY order_index ASC, id ASC
        """,
        (lesson_id,),
    )
    return [ContentBlock.model_validate(dict(row)) for row in cursor.fetchall()]


def fetch_activities(conn, lesson_id: int) -> List[Activity]:
    cursor = conn.cursor()
    cursor.execute(
        "SELECT * FROM activities WHERE lesson_id = ? ORDER BY order_index ASC, id ASC",
        (lesson_id,),
    )
    return [Activity.model_validate(dict(row)) for row in cursor.fetchall()]


def fetch_activity(conn, activity_id: int) -> Optional[Activity]:
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM activities WHERE id = ?", (activity_id,))
    row = cursor.fetchone()
    return Activity.model_validate(dict(row)) if row else None


def fetch_responses(conn, student_id: int, activity_ids: List[int]) -> Dict[int, Dict]:
    if not activity_ids:
        return {}
    placeholders = ",".join("?" for _ in activity_ids)
    cursor = conn.cursor()
    cursor.execute(
        f"""
        SELECT activity_id, response_data, is_correct, points_earned, attempts
        FROM activity_responses
        WHERE student_id = ? AND activity_id IN ({placeholders})
        """,
        [student_id, *activity_ids],
    )
    responses = {}
    for row in cursor.fetchall():
        response = dict(row)
        try:
            payload = json.loads(response["response_data"] or "{}")
        except ValueError:
            payload = {}
        response["answer"] = payload.get("answer") if isinstance(payload, dict) else None
        response["is_correct"] = bool(response["is_correct"])
        responses[response["activity_id"]] = response
    return responses


def fetch_lesson_status(conn, student_id: int, lesson_id: int) -> str:
    cursor = conn.cursor()
    cursor.execute(
        "SELECT status FROM lesson_progress WHERE student_id = ? AND lesson_id = ?",
        (student_id, lesson_id),
    )
    row = cursor.fetchone()
    return row["status"] if row else LessonStatus.NOT_STARTED.value


def build_activity_view(activity: Activity, response: Optional[Dict]) -> Dict:
    key = answer_key_for(activity)
    supported = not isinstance(key, UnsupportedKey)
    return {
        "activity": activity,
        "key": key,
        "kind": activity.activity_type if supported else "unsupported",
        "supported": supported,
        "response": response,
        "correct_answer": correct_answer_text(key),
    }


@router.get("/{student_id}/lessons", response_class=HTMLResponse)
async def todays_lessons(student_id: int, request: Request, user=Depends(require_parent), conn=Depends(get_db)):
    """Today's lessons for one student with the completed/scheduled ratio."""
    student = get_student_or_404(conn, user, student_id)
    today = date.today()
    todays = aggregate_todays_lessons(conn, student_id, today)
    return templates.TemplateResponse(
        request,
        "lessons/today.html",
        {
            "user": user,
            "student": student,
            "today": today,
            "todays": todays,
        },
    )


@router.get("/{student_id}/lessons/{lesson_id}", response_class=HTMLResponse)
async def lesson_detail(
    student_id: int,
    lesson_id: int,
    request: Request,
    user=Depends(require_parent),
    conn=Depends(get_db),
):
    student = get_student_or_404(conn, user, student_id)
    lesson_row = fetch_lesson(conn, lesson_id)
    if not lesson_row:
        raise HTTPException(status_code=404, detail="Lesson not found")
    activities = fetch_activities(conn, lesson_id)
    responses = fetch_responses(conn, student_id, [activity.id for activity in activities])
    return templates.TemplateResponse(
        request,
        "lessons/detail.html",
        {
            "user": user,
            "student": student,
            "lesson": Lesson.model_validate(lesson_row),
            "lesson_row": lesson_row,
            "content": fetch_student_content(conn, lesson_id),
            "activities": [build_activity_view(activity, responses.get(activity.id)) for activity in activities],
            "status": fetch_lesson_status(conn, student_id, lesson_id),
        },
    )


@router.post("/{student_id}/activities/{activity_id}/submit", response_class=HTMLResponse)
async def submit_activity(
    student_id: int,
    activity_id: int,
    request: Request,
    answer: Optional[str] = Form(None),
    user=Depends(require_parent),
    conn=Depends(get_db),
):
    """HTMX endpoint: grade one answer, store it, return the result partial."""
    get_student_or_404(conn, user, student_id)
    activity = fetch_activity(conn, activity_id)
    if not activity:
        raise HTTPException(status_code=404, detail="Activity not found")
    key = answer_key_for(activity)
    if isinstance(key, UnsupportedKey):
        return templates.TemplateResponse(
            request,
            "partials/activity_result.html",
            {
                "student_id": student_id,
                "item": build_activity_view(activity, None),
                "result": None,
            },
        )
    typed_answer = coerce_answer(key, answer)
    if typed_answer is None:
        raise HTTPException(status_code=400, detail="An answer is required")
    result = grade(activity, typed_answer)
    try:
        record_activity_response(
            conn,
            student_id=student_id,
            activity=activity,
            answer=typed_answer,
            result=result,
        )
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        logger.exception("Failed to save response for student %s activity %s", student_id, activity_id)
        raise HTTPException(status_code=500, detail="Failed to save response")
    view = build_activity_view(
        activity,
        {"answer": typed_answer, "is_correct": result.is_correct, "points_earned": result.points_earned},
    )
    return templates.TemplateResponse(
        request,
        "partials/activity_result.html",
        {
            "student_id": student_id,
            "item": view,
            "result": result,
        },
    )


@router.post("/{student_id}/lessons/{lesson_id}/complete")
async def complete_lesson_view(
    student_id: int,
    lesson_id: int,
    user=Depends(require_parent),
    conn=Depends(get_db),
):
    get_student_or_404(conn, user, student_id)
    if not fetch_lesson(conn, lesson_id):
        raise HTTPException(status_code=404, detail="Lesson not found")
    try:
        complete_lesson(conn, student_id, lesson_id, date.today())
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        logger.exception("Failed to complete lesson %s for student %s", lesson_id, student_id)
        raise HTTPException(status_code=500, detail="Failed to complete lesson")
    return RedirectResponse(
        url=f"/parent/children/{student_id}/lessons/{lesson_id}",
        status_code=status.HTTP_303_SEE_OTHER,
    )
