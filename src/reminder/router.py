import logging
import os
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src import scheduler
from src.notify import get_email_dispatcher
from src.notify.email import EmailDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron")


class SentTo(BaseModel):
    facility: str
    client: str


class ReminderRunResponse(BaseModel):
    success: bool
    message: str
    sent_to: list[SentTo]


def verify_cron_secret(authorization: str | None = Header(default=None)) -> None:
    expected = os.environ.get("GATEWORKS_CRON_SECRET")
    if not expected:
        return
    if not authorization or not secrets.compare_digest(
        authorization, f"Bearer {expected}"
    ):
        raise HTTPException(status_code=401, detail="Invalid cron secret")


@router.get(
    "/maintenance-reminder",
    response_model=ReminderRunResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def maintenance_reminder(
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
) -> ReminderRunResponse | JSONResponse:
    try:
        summary = await scheduler.run_maintenance_reminders(dispatcher)
    except Exception as exc:
        logger.exception("Maintenance reminder run failed")
        return JSONResponse(
            status_code=500, content={"success": False, "error": str(exc)}
        )

    return ReminderRunResponse(
        success=True,
        message=summary.message,
        sent_to=[SentTo(facility=r.facility, client=r.client) for r in summary.sent_to],
    )
