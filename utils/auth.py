from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import time
from typing import Dict, Optional

from fastapi import Depends, HTTPException, Request, status

from config import DEFAULT_SESSION_MINUTES, ensure_auth_secret, get_config_value
from db.database import get_db

SESSION_COOKIE_NAME = "lessonbook_session"
PASSWORD_HASH_ALGO = "pbkdf2_sha256"
PASSWORD_HASH_ITERATIONS = 200_000
LOGIN_PATH = "/auth/login"


def get_session_minutes() -> int:
    minutes = get_config_value("auth", "session_minutes", DEFAULT_SESSION_MINUTES)
    try:
        return int(minutes)
    except (TypeError, ValueError):
        return DEFAULT_SESSION_MINUTES


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("Password cannot be empty")
    salt = secrets.token_hex(16)
    dk = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PASSWORD_HASH_ITERATIONS,
    )
    digest = base64.urlsafe_b64encode(dk).decode("utf-8")
    return f"{PASSWORD_HASH_ALGO}${PASSWORD_HASH_ITERATIONS}${salt}${digest}"


def verify_password(password: str, stored_hash: Optional[str]) -> bool:
    if not stored_hash or not password:
        return False
    try:
        algo, iterations_str, salt, digest = stored_hash.split("$", 3)
    except ValueError:
        return False
    if algo != PASSWORD_HASH_ALGO:
        return False
    try:
        iterations = int(iterations_str)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        iterations,
    )
    computed = base64.urlsafe_b64encode(dk).decode("utf-8")
    return hmac.compare_digest(computed, digest)


def _sign(payload: str, secret_key: str) -> str:
    return hmac.new(secret_key.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def create_session_cookie(user_id: int, duration_minutes: int, secret_key: Optional[str] = None) -> str:
    secret_key = secret_key or ensure_auth_secret()
    expires_at = int(time.time()) + int(duration_minutes) * 60
    payload = f"{int(user_id)}:{expires_at}"
    return f"{payload}:{_sign(payload, secret_key)}"


def read_session_cookie(cookie_value: Optional[str], secret_key: Optional[str] = None) -> Optional[int]:
    """Return the user id carried by a valid, unexpired session cookie."""
    if not cookie_value:
        return None
    try:
        user_id_str, expires_str, signature = cookie_value.split(":", 2)
    except ValueError:
        return None
    secret_key = secret_key or ensure_auth_secret()
    expected = _sign(f"{user_id_str}:{expires_str}", secret_key)
    if not hmac.compare_digest(signature, expected):
        return None
    try:
        user_id = int(user_id_str)
        expires_at = int(expires_str)
    except ValueError:
        return None
    if expires_at < int(time.time()):
        return None
    return user_id


def get_current_user(request: Request, conn) -> Optional[Dict]:
    user_id = read_session_cookie(request.cookies.get(SESSION_COOKIE_NAME))
    if user_id is None:
        return None
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT u.id, u.family_id, u.role, u.first_name, u.last_name, u.email,
               u.is_primary_parent, f.name AS family_name
        FROM users u
        JOIN families f ON f.id = u.family_id
        WHERE u.id = ?
        """,
        (user_id,),
    )
    row = cursor.fetchone()
    return dict(row) if row else None


def require_parent(request: Request, conn=Depends(get_db)) -> Dict:
    user = get_current_user(request, conn)
    if user and user["role"] == "parent":
        return user
    raise HTTPException(
        status_code=status.HTTP_303_SEE_OTHER,
        detail="Parent session required",
        headers={"Location": LOGIN_PATH},
    )


def set_session(response, user_id: int) -> None:
    duration = get_session_minutes()
    response.set_cookie(
        SESSION_COOKIE_NAME,
        create_session_cookie(user_id, duration),
        max_age=duration * 60,
        httponly=True,
        samesite="lax",
    )
