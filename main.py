import argparse
import logging
import uvicorn
from fastapi import FastAPI, Request, Depends, status
from fastapi.staticfiles import StaticFiles
from fastapi.responses import RedirectResponse
from contextlib import asynccontextmanager

import sys
from pathlib import Path

# Add project root to path for package imports
base_dir = Path(__file__).parent
sys.path.insert(0, str(base_dir))

from db.database import init_db, get_db
from config import load_config, ensure_auth_secret, CONFIG_DIR
from routes import auth, parent, lessons, progress, schedule  # Import routers
from utils.auth import LOGIN_PATH, get_current_user

logger = logging.getLogger(__name__)


# First-run init
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: config, DB, session secret
    load_config()  # Ensures config exists
    init_db()
    ensure_auth_secret()
    logger.info("Lessonbook data directory: %s", CONFIG_DIR)
    yield


app = FastAPI(
    title="Lessonbook",
    description="Local-first homeschool curriculum planner",
    lifespan=lifespan,
)

app.mount("/static", StaticFiles(directory=str(base_dir / "static")), name="static")

# Include routers
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(parent.router, prefix="/parent", tags=["parent"])
app.include_router(lessons.router, prefix="/parent/children", tags=["lessons"])  # /parent/children/{id}/lessons
app.include_router(progress.router, prefix="/parent/progress", tags=["progress"])
app.include_router(schedule.router, prefix="/parent/schedule", tags=["schedule"])


# Home page - parent dashboard or login
@app.get("/")
async def home(request: Request, conn=Depends(get_db)):
    user = get_current_user(request, conn)
    target = "/parent/" if user and user["role"] == "parent" else LOGIN_PATH
    return RedirectResponse(url=target, status_code=status.HTTP_303_SEE_OTHER)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Lessonbook App")
    parser.add_argument("--init", action="store_true", help="Initialize DB and config")
    parser.add_argument("--dev", action="store_true", help="Run in dev mode with reload")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if args.init:
        load_config()  # Ensures config is copied if missing
        init_db()
        ensure_auth_secret()
        print(f"DB initialized and config copied to {CONFIG_DIR}/")
        sys.exit(0)
    # Run server
    port = 8000
    reload = args.dev
    uvicorn.run("main:app", host="127.0.0.1", port=port, reload=reload, log_level="info")
