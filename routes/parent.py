import logging
import sqlite3
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from db.database import get_db
from models.student import ChildCreate
from routes.auth import validation_message
from utils.accounts import (
    AccountError,
    add_child,
    get_family_student,
    list_children,
    list_grades,
    recent_achievements,
    set_student_grade,
)
from utils.auth import require_parent
from utils.progress import aggregate_student_stats, fetch_grade

logger = logging.getLogger(__name__)

router = APIRouter()
base_dir = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(base_dir / "templates"))


def get_student_or_404(conn, user: dict, student_id: int) -> dict:
    student = get_family_student(conn, user["family_id"], student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@router.get("/", response_class=HTMLResponse)
async def parent_dashboard(request: Request, user=Depends(require_parent), conn=Depends(get_db)):
    """Family dashboard: children and the add-child form."""
    children = list_children(conn, user["family_id"])
    return templates.TemplateResponse(
        request,
        "parent/dashboard.html",
        {
            "user": user,
            "children": children,
            "grades": list_grades(conn),
            "error": None,
        },
    )


@router.post("/children")
async def create_child(
    request: Request,
    first_name: str = Form(...),
    last_name: str = Form(""),
    birth_date: Optional[str] = Form(None),
    grade_id: Optional[str] = Form(None),
    user=Depends(require_parent),
    conn=Depends(get_db),
):
    """Enroll a child: student user and profile are created together."""
    try:
        child = ChildCreate(
            first_name=first_name,
            last_name=last_name,
            birth_date=birth_date,
            grade_id=grade_id,
        )
        add_child(conn, user["family_id"], child)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=validation_message(exc))
    except AccountError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except sqlite3.Error:
        logger.exception("Failed to add child to family %s", user["family_id"])
        raise HTTPException(status_code=500, detail="Failed to add child")
    return RedirectResponse(url="/parent/", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/children/{student_id}", response_class=HTMLResponse)
async def child_detail(student_id: int, request: Request, user=Depends(require_parent), conn=Depends(get_db)):
    student = get_student_or_404(conn, user, student_id)
    stats = aggregate_student_stats(conn, student_id)
    return templates.TemplateResponse(
        request,
        "children/detail.html",
        {
            "user": user,
            "student": student,
            "grade": fetch_grade(conn, student["current_grade_id"]),
            "grades": list_grades(conn),
            "stats": stats,
            "achievements": recent_achievements(conn, student_id),
        },
    )


@router.post("/children/{student_id}/grade")
async def change_grade(
    student_id: int,
    grade_id: Optional[str] = Form(None),
    user=Depends(require_parent),
    conn=Depends(get_db),
):
    get_student_or_404(conn, user, student_id)
    try:
        cleaned = int(grade_id) if grade_id not in (None, "") else None
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid grade")
    try:
        set_student_grade(conn, student_id, cleaned)
    except AccountError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return RedirectResponse(url=f"/parent/children/{student_id}", status_code=status.HTTP_303_SEE_OTHER)
