# Routes package __init__.py - re-exports routers for main.py convenience
from .auth import router as auth_router
from .parent import router as parent_router
from .lessons import router as lessons_router
from .progress import router as progress_router
from .schedule import router as schedule_router

__all__ = ['auth_router', 'parent_router', 'lessons_router', 'progress_router', 'schedule_router']
