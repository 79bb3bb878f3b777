import os
from collections.abc import AsyncGenerator

import httpx

from src.base.resilience import HTTP_TIMEOUT_SECONDS, RetryPolicy
from src.notify.email import EmailDispatcher, ResendEmailDispatcher

DEFAULT_SENDER = "Gateworks <onboarding@resend.dev>"


def create_dispatcher(client: httpx.AsyncClient) -> EmailDispatcher:
    """Create the email dispatcher; a missing API key is reported per send."""
    return ResendEmailDispatcher(
        client,
        api_key=os.environ.get("GATEWORKS_RESEND_API_KEY"),
        sender=os.environ.get("GATEWORKS_EMAIL_FROM", DEFAULT_SENDER),
        policy=RetryPolicy.from_env("GATEWORKS_EMAIL_MAX_ATTEMPTS"),
    )


async def get_email_dispatcher() -> AsyncGenerator[EmailDispatcher]:
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        yield create_dispatcher(client)
