import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from src import dashboard, status
from src.catalog.public import router as public_router
from src.catalog.router import router as catalog_router
from src.client.router import router as client_router
from src.facility.router import router as facility_router
from src.reminder.router import router as reminder_router
from src.scheduler import run_scheduled_reminders
from src.user.router import admin_router as profile_router
from src.user.router import auth_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

REMINDER_SCHEDULER_ENABLED = os.environ.get(
    "GATEWORKS_REMINDER_SCHEDULER_ENABLED", "0"
).lower() in ("1", "true", "yes")
REMINDER_HOUR = int(os.environ.get("GATEWORKS_REMINDER_HOUR", "8"))
TIMEZONE = os.environ.get("GATEWORKS_TIMEZONE", "UTC")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    if not REMINDER_SCHEDULER_ENABLED:
        yield
        return

    scheduler = AsyncIOScheduler(timezone=TIMEZONE)
    scheduler.add_job(
        run_scheduled_reminders,
        "cron",
        hour=REMINDER_HOUR,
        id="run_maintenance_reminders",
    )
    scheduler.start()
    logger.info(
        "Maintenance reminders scheduled daily at %02d:00 %s", REMINDER_HOUR, TIMEZONE
    )
    yield
    scheduler.shutdown()


app = FastAPI(title="Gateworks", lifespan=lifespan)
app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(client_router)
app.include_router(facility_router)
app.include_router(catalog_router)
app.include_router(dashboard.router)
app.include_router(status.router)
app.include_router(reminder_router)
# `/{lang}/...` matches any first segment, so it goes last.
app.include_router(public_router)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(
    request: Request, exc: IntegrityError
) -> JSONResponse:
    logger.warning(
        "Integrity error on %s %s: %s", request.method, request.url.path, exc.orig
    )
    return JSONResponse(status_code=409, content={"detail": "Conflicting data"})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
