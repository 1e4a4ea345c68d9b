"""Pay stub delivery for the ``deliver`` stage."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import BaseModel, Field

from .config import NotificationConfig, SmtpConfig

logger = logging.getLogger(__name__)


class PayStub(BaseModel):
    """What a payee is told about a confirmed settlement."""

    name: Optional[str] = None
    email: str
    wallet_address: str
    net_pay: float
    tx_hash: str
    explorer_url: Optional[str] = None
    breakdown: Dict[str, Any] = Field(default_factory=dict)

    def subject(self) -> str:
        return f"Pay Stub - ${self.net_pay:,.2f} USDC"

    def render_html(self) -> str:
        rows = "".join(
            f"<li><strong>{key.replace('_', ' ').title()}:</strong> {value}</li>"
            for key, value in self.breakdown.items()
        )
        link = (
            f'<p><a href="{self.explorer_url}">View transaction</a></p>'
            if self.explorer_url
            else ""
        )
        return (
            f"<h2>Hello {self.name or self.email}!</h2>"
            "<p>Your payroll for this period has been processed.</p>"
            f"<ul>{rows}</ul>"
            f"<p><strong>Net Pay: ${self.net_pay:,.2f} USDC</strong></p>"
            f"<p>Transaction: <code>{self.tx_hash}</code></p>"
            f"<p>Wallet: <code>{self.wallet_address}</code></p>"
            f"{link}"
        )


class Notifier(Protocol):
    async def send_pay_stub(self, stub: PayStub) -> None:
        """Deliver ``stub``; raise on failure."""


class LoggingNotifier:
    """Writes pay stubs to the log instead of sending them."""

    async def send_pay_stub(self, stub: PayStub) -> None:
        logger.info(
            f"Pay stub for {stub.email}: {stub.net_pay:.2f} USDC in transaction {stub.tx_hash}"
        )


class SmtpNotifier:
    """Emails pay stubs through an SMTP relay."""

    def __init__(self, config: SmtpConfig) -> None:
        self.config = config

    def _send(self, stub: PayStub) -> None:
        message = MIMEMultipart("alternative")
        message["Subject"] = stub.subject()
        message["From"] = self.config.from_address
        message["To"] = stub.email
        message.attach(MIMEText(stub.render_html(), "html"))
        with smtplib.SMTP(self.config.host, self.config.port) as server:
            server.starttls()
            if self.config.username and self.config.password:
                server.login(self.config.username, self.config.password)
            server.send_message(message)

    async def send_pay_stub(self, stub: PayStub) -> None:
        if not self.config.host:
            raise ValueError("SMTP host is not configured")
        await asyncio.to_thread(self._send, stub)


class WebhookNotifier:
    """Posts pay stubs as JSON to a webhook endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def send_pay_stub(self, stub: PayStub) -> None:
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            response = await client.post(
                self.url,
                json={"event": "pay_stub", "subject": stub.subject(), **stub.model_dump()},
            )
            response.raise_for_status()


def get_notifier(config: Optional[NotificationConfig] = None) -> Notifier:
    """Factory returning the configured notifier."""

    config = config or NotificationConfig()
    if config.backend == "log":
        return LoggingNotifier()
    elif config.backend == "smtp":
        return SmtpNotifier(config.smtp)
    elif config.backend == "webhook":
        if not config.webhook_url:
            raise ValueError("webhook_url is required for the webhook notifier")
        return WebhookNotifier(config.webhook_url)
    else:
        raise ValueError(f"Unsupported notification backend: {config.backend}")
