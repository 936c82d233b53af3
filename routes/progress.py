import csv
import io
from dataclasses import asdict
from datetime import date
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from fastapi.templating import Jinja2Templates

from db.database import get_db
from routes.parent import get_student_or_404
from utils.accounts import list_children
from utils.auth import require_parent
from utils.progress import aggregate_family_progress, aggregate_student_stats

router = APIRouter()
base_dir = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(base_dir / "templates"))


@router.get("/", response_class=HTMLResponse)
async def progress_report(request: Request, user=Depends(require_parent), conn=Depends(get_db)):
    reports = aggregate_family_progress(conn, list_children(conn, user["family_id"]))
    return templates.TemplateResponse(
        request,
        "progress.html",
        {
            "user": user,
            "reports": reports,
        },
    )


@router.get("/export")
async def progress_export(user=Depends(require_parent), conn=Depends(get_db)):
    reports = aggregate_family_progress(conn, list_children(conn, user["family_id"]))
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(
        [
            "Student",
            "Grade",
            "Lessons Completed",
            "Points",
            "Accuracy %",
            "Current Streak",
            "Longest Streak",
        ]
    )
    for report in reports:
        child = report["child"]
        stats = report["stats"]
        writer.writerow(
            [
                f"{child['first_name']} {child['last_name'] or ''}".strip(),
                report["grade"]["name"] if report["grade"] else "",
                stats.lessons_completed,
                stats.points_total,
                stats.accuracy_percent,
                stats.streak,
                stats.longest_streak,
            ]
        )
    writer.writerow([])
    writer.writerow(["Student", "Course", "Subject", "Completed", "Total", "Percent"])
    for report in reports:
        child = report["child"]
        for course in report["stats"].course_progress:
            writer.writerow(
                [
                    child["first_name"],
                    course.name,
                    course.subject_name,
                    course.completed_lessons,
                    course.total_lessons,
                    course.percent_complete,
                ]
            )
    data = output.getvalue().encode("utf-8")
    filename = f"lessonbook-progress-{date.today().isoformat()}.csv"
    return StreamingResponse(
        io.BytesIO(data),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/api/students/{student_id}/stats")
async def student_stats_api(student_id: int, user=Depends(require_parent), conn=Depends(get_db)):
    get_student_or_404(conn, user, student_id)
    stats = aggregate_student_stats(conn, student_id)
    return JSONResponse(asdict(stats))
