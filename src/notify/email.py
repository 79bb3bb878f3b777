from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from src.base.resilience import (
    FailureKind,
    RetryPolicy,
    call_with_retry,
    failure_kind,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    message_id: str | None = None
    error: str | None = None
    kind: FailureKind | None = None


class EmailDispatcher(ABC):
    @abstractmethod
    async def send(self, to: str, subject: str, html: str) -> DispatchResult:
        """Send one email. Expected failures come back as a failed result."""


class ResendEmailDispatcher(EmailDispatcher):
    API_URL = "https://api.resend.com/emails"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        sender: str,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._sender = sender
        self._policy = policy or RetryPolicy()

    async def _post(self, to: str, subject: str, html: str) -> httpx.Response:
        response = await self._client.post(
            self.API_URL,
            json={"from": self._sender, "to": [to], "subject": subject, "html": html},
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        response.raise_for_status()
        return response

    async def send(self, to: str, subject: str, html: str) -> DispatchResult:
        if not self._api_key:
            logger.warning("Email API key is not set, skipping email to %s", to)
            return DispatchResult(
                success=False,
                error="Missing API key",
                kind=FailureKind.CONFIGURATION,
            )

        try:
            response = await call_with_retry(
                lambda: self._post(to, subject, html),
                self._policy,
                description=f"email to {to}",
            )
        except Exception as exc:
            logger.exception("Sending email to %s failed", to)
            return DispatchResult(success=False, error=str(exc), kind=failure_kind(exc))

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        return DispatchResult(success=True, message_id=message_id)
