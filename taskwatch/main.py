from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from taskwatch.db.base import get_db
from taskwatch.core.config import settings
from taskwatch.core.logging import configure_logging
from taskwatch.core.realtime import Broadcaster
from taskwatch.routers import events as events_router
from taskwatch.routers import occurrences as occurrences_router
from taskwatch.routers import stats as stats_router
from taskwatch.routers import rankings as rankings_router
from taskwatch.routers import friendships as friendships_router
from taskwatch.routers import timeline as timeline_router
from taskwatch.routers import users as users_router
from taskwatch.routers import realtime as realtime_router
from taskwatch.core.errors import (
    TaskwatchException,
    taskwatch_exception_handler,
    validation_exception_handler,
    persistence_exception_handler,
    unhandled_exception_handler,
)

configure_logging()

app = FastAPI(
    title="Taskwatch API",
    description=(
        "**Habit and task tracking**\n\n"
        "Recurring events expand into time-boxed occurrences that are marked "
        "DONE or MISSED, folded into XP, streaks and friend rankings, and "
        "reported on a social timeline.\n\n"
        "The caller is identified by the `X-User-Id` header set by the identity provider. "
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Realtime fanout (one per process) ---
app.state.broadcaster = Broadcaster()

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(TaskwatchException, taskwatch_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, persistence_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(events_router.router)
app.include_router(occurrences_router.router)
app.include_router(stats_router.router)
app.include_router(rankings_router.router)
app.include_router(friendships_router.router)
app.include_router(timeline_router.router)
app.include_router(users_router.router)
app.include_router(realtime_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
