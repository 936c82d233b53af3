import sqlite3
from contextlib import contextmanager
from pathlib import Path

from .schema import SCHEMA_SQL, INDEXES_SQL, SCHEMA_VERSION, DEFAULT_GRADES, DEFAULT_SUBJECTS

CONFIG_DIR = Path.home() / ".lessonbook"
DB_PATH = CONFIG_DIR / "lessonbook.db"

def init_db():
    """Initialize the database by creating tables and indexes if they don't exist."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    with get_conn() as conn:
        conn.executescript(SCHEMA_SQL)
        conn.executescript(INDEXES_SQL)
        ensure_default_grades(conn)
        ensure_default_subjects(conn)
        ensure_schema_version(conn)
        conn.commit()

def ensure_default_grades(conn: sqlite3.Connection) -> None:
    """Seed the grade reference list."""
    cursor = conn.cursor()
    cursor.executemany(
        "INSERT OR IGNORE INTO grades (name, order_index) VALUES (?, ?)",
        [(name, index) for index, name in enumerate(DEFAULT_GRADES)],
    )

def ensure_default_subjects(conn: sqlite3.Connection) -> None:
    """Seed the default subjects with their display colors."""
    cursor = conn.cursor()
    cursor.executemany(
        "INSERT OR IGNORE INTO subjects (name, color, order_index) VALUES (?, ?, ?)",
        [(name, color, index) for index, (name, color) in enumerate(DEFAULT_SUBJECTS)],
    )

def get_schema_version(conn: sqlite3.Connection) -> int:
    """Read the SQLite schema version from PRAGMA user_version."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA user_version")
    row = cursor.fetchone()
    return int(row[0]) if row else 0

def set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    """Set the SQLite schema version via PRAGMA user_version."""
    conn.execute(f"PRAGMA user_version = {int(version)}")

def ensure_schema_version(conn: sqlite3.Connection) -> None:
    """Ensure the current schema version is written to the database."""
    current = get_schema_version(conn)
    if current != SCHEMA_VERSION:
        set_schema_version(conn, SCHEMA_VERSION)

@contextmanager
def get_conn():
    """Context manager for SQLite connection, using row_factory for dict-like rows."""
    conn = sqlite3.connect(DB_PATH, detect_types=sqlite3.PARSE_DECLTYPES, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

def get_db():
    """FastAPI dependency that yields a DB connection and closes it afterwards."""
    with get_conn() as conn:
        yield conn
