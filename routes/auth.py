import logging
import sqlite3
from pathlib import Path

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from config import load_config
from db.database import get_db
from models.family import FamilyCreate
from utils.accounts import AccountError, create_family_account, get_user_by_email
from utils.auth import SESSION_COOKIE_NAME, LOGIN_PATH, set_session, verify_password

logger = logging.getLogger(__name__)

router = APIRouter()
base_dir = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(base_dir / "templates"))


def validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid input"
    message = errors[0].get("msg", "Invalid input")
    return message.removeprefix("Value error, ")


@router.get("/login", response_class=HTMLResponse)
async def login_form(request: Request):
    return templates.TemplateResponse(request, "auth/login.html", {"error": None})


@router.post("/login")
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    conn=Depends(get_db),
):
    user = get_user_by_email(conn, email)
    if not user or user["role"] != "parent" or not verify_password(password, user["password_hash"]):
        return templates.TemplateResponse(
            request,
            "auth/login.html",
            {"error": "Invalid email or password."},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    response = RedirectResponse(url="/parent/", status_code=status.HTTP_303_SEE_OTHER)
    set_session(response, user["id"])
    return response


@router.get("/register", response_class=HTMLResponse)
async def register_form(request: Request):
    return templates.TemplateResponse(request, "auth/register.html", {"error": None, "form": {}})


@router.post("/register")
async def register(
    request: Request,
    family_name: str = Form(...),
    first_name: str = Form(...),
    last_name: str = Form(""),
    email: str = Form(...),
    password: str = Form(...),
    conn=Depends(get_db),
):
    status_code = status.HTTP_400_BAD_REQUEST
    form = {"family_name": family_name, "first_name": first_name, "last_name": last_name, "email": email}
    try:
        family = FamilyCreate(
            name=family_name,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
        )
        config = load_config()
        _, user_id = create_family_account(
            conn,
            family,
            trial_days=config["family"]["trial_days"],
            school_days=config["family"]["default_school_days"],
        )
    except ValidationError as exc:
        error = validation_message(exc)
    except AccountError as exc:
        error = str(exc)
    except sqlite3.Error:
        logger.exception("Family registration failed for %s", email)
        error = "Failed to create family account"
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        response = RedirectResponse(url="/parent/", status_code=status.HTTP_303_SEE_OTHER)
        set_session(response, user_id)
        return response
    return templates.TemplateResponse(
        request,
        "auth/register.html",
        {"error": error, "form": form},
        status_code=status_code,
    )


@router.post("/logout")
async def logout():
    response = RedirectResponse(url=LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response
