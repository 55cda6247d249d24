"""Transactional email over the Resend REST API.

Delivery never raises into request handlers: ``Mailer.send`` retries a
message a bounded number of times and reports the outcome as an
``EmailResult``. When no API key is configured messages are logged and
reported as ``skipped``.
"""

import base64
import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, Literal, Optional

import httpx

from . import config

logger = logging.getLogger(__name__)

DeliveryStatus = Literal["sent", "retried", "failed", "skipped"]


class EmailDeliveryError(Exception):
    """The provider rejected a message or could not be reached."""


@dataclass
class Attachment:
    filename: str
    content: bytes

    def as_payload(self) -> dict:
        return {
            "filename": self.filename,
            "content": base64.b64encode(self.content).decode("ascii"),
        }


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    sender: Optional[str] = None
    attachments: list[Attachment] = field(default_factory=list)


@dataclass
class EmailResult:
    email: str
    status: DeliveryStatus
    attempts: int
    error: Optional[str] = None


@dataclass
class FanoutSummary:
    total: int = 0
    sent: int = 0
    retried: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[EmailResult] = field(default_factory=list)

    def record(self, result: EmailResult) -> None:
        self.total += 1
        setattr(self, result.status, getattr(self, result.status) + 1)
        self.results.append(result)

    def as_dict(self) -> dict:
        return {
            "total": self.total,
            "sent": self.sent,
            "retried": self.retried,
            "failed": self.failed,
            "skipped": self.skipped,
        }


class Mailer:
    def __init__(
        self,
        api_key: str = "",
        api_url: str = config.RESEND_API_URL,
        default_sender: str = config.EMAIL_FROM,
        max_retries: int = config.EMAIL_MAX_RETRIES,
        retry_delay: float = config.EMAIL_RETRY_DELAY_SECONDS,
        throttle: float = config.EMAIL_THROTTLE_SECONDS,
        timeout: float = config.EMAIL_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.default_sender = default_sender
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.throttle = throttle
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def sender_for(self, display_name: str) -> str:
        return f"{display_name} <noreply@{config.EMAIL_DOMAIN}>"

    def deliver(self, message: EmailMessage) -> None:
        """Post a single message to the provider, raising on any failure."""
        payload = {
            "from": message.sender or self.default_sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        if message.attachments:
            payload["attachments"] = [a.as_payload() for a in message.attachments]
        try:
            response = httpx.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(str(exc)) from exc
        if response.status_code not in (200, 201, 202):
            raise EmailDeliveryError(f"provider returned {response.status_code}: {response.text}")

    def send(self, message: EmailMessage) -> EmailResult:
        if not self.is_configured:
            logger.info("[EMAIL] skipped (no provider key) to=%s subj=%s", message.to, message.subject)
            return EmailResult(email=message.to, status="skipped", attempts=0)

        attempts = 0
        last_error: Optional[str] = None
        while attempts <= self.max_retries:
            attempts += 1
            try:
                self.deliver(message)
            except EmailDeliveryError as exc:
                last_error = str(exc)
                logger.warning("[EMAIL] attempt %d to %s failed: %s", attempts, message.to, exc)
                if attempts <= self.max_retries and self.retry_delay:
                    time.sleep(self.retry_delay)
                continue
            logger.info("[EMAIL] sent to=%s subj=%s attempts=%d", message.to, message.subject, attempts)
            return EmailResult(
                email=message.to,
                status="retried" if attempts > 1 else "sent",
                attempts=attempts,
            )

        logger.error("[EMAIL] giving up on %s after %d attempts: %s", message.to, attempts, last_error)
        return EmailResult(email=message.to, status="failed", attempts=attempts, error=last_error)

    def send_many(self, messages: Iterable[EmailMessage]) -> FanoutSummary:
        summary = FanoutSummary()
        pending = list(messages)
        for index, message in enumerate(pending):
            summary.record(self.send(message))
            if index < len(pending) - 1 and self.throttle and self.is_configured:
                time.sleep(self.throttle)
        logger.info("[EMAIL] fan-out complete: %s", summary.as_dict())
        return summary


_mailer: Mailer | None = None


def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        _mailer = Mailer(api_key=config.RESEND_API_KEY)
    return _mailer
