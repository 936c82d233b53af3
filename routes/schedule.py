from datetime import date
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from db.database import get_db
from models.family import Family
from utils.accounts import list_children, update_family_schedule
from utils.auth import require_parent
from utils.progress import family_weekly_schedules, fetch_family
from utils.schedule import DAY_NAMES, describe_school_days, parse_school_days

router = APIRouter()
base_dir = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(base_dir / "templates"))


@router.get("/", response_class=HTMLResponse)
async def schedule_view(request: Request, user=Depends(require_parent), conn=Depends(get_db)):
    """This week's lessons for every child, one column per weekday."""
    family_row = fetch_family(conn, user["family_id"])
    family = Family.model_validate(family_row)
    school_days = family.school_days
    today = date.today()
    schedules = family_weekly_schedules(conn, list_children(conn, user["family_id"]), family_row, today)
    return templates.TemplateResponse(
        request,
        "schedule.html",
        {
            "user": user,
            "family": family,
            "schedules": schedules,
            "school_days": school_days,
            "school_days_label": describe_school_days(school_days),
            "day_names": DAY_NAMES,
            "today": today,
        },
    )


@router.post("/settings")
async def update_schedule_settings(
    school_days: List[str] = Form([]),
    curriculum_start_date: Optional[str] = Form(None),
    user=Depends(require_parent),
    conn=Depends(get_db),
):
    days = parse_school_days(school_days)
    start = (curriculum_start_date or "").strip() or None
    if start is not None:
        try:
            start = date.fromisoformat(start).isoformat()
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid curriculum start date")
    update_family_schedule(conn, user["family_id"], days, start)
    return RedirectResponse(url="/parent/schedule/", status_code=status.HTTP_303_SEE_OTHER)
