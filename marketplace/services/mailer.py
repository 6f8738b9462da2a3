"""
Marketplace Backend — SMTP Mailer
==================================

What:  Renders a named template and delivers it over SMTP.
Why:   Welcome and verification emails are sent from background tasks; a
       slow or flaky SMTP server must not fail the request that queued them.
How:   smtplib is blocking, so each attempt runs in a worker thread.
       Tenacity retries transient SMTP/network failures with exponential
       backoff and jitter; exhausted retries raise MailDeliveryError, which
       the background task pool records and logs.

Resilience Strategy:
    attempt 1 ──fail──▶ wait ~min_wait ──▶ attempt 2 ──fail──▶ wait ~2×min_wait ...
    Only SMTPException and OSError (connection refused, timeout) are retried;
    a template error is a programming error and fails immediately.
"""

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formatdate, make_msgid, parseaddr
from typing import Any, Mapping, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from marketplace.config import Settings
from marketplace.exceptions import MailDeliveryError
from marketplace.services.email_templates import RenderedEmail, render

logger = logging.getLogger(__name__)


class Mailer:
    """Sends templated emails through one SMTP server."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        timeout: float = 5.0,
        max_attempts: int = 3,
        min_wait: float = 1.0,
        max_wait: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait

    @classmethod
    def from_settings(cls, settings: Settings) -> "Mailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            sender=settings.smtp_sender,
            timeout=settings.smtp_timeout,
            max_attempts=settings.mail_retry_attempts,
            min_wait=settings.mail_retry_min_wait,
            max_wait=settings.mail_retry_max_wait,
        )

    def build_message(self, recipient: str, email: RenderedEmail) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = email.subject
        message["From"] = self.sender
        message["To"] = recipient
        message["Date"] = formatdate(localtime=False)
        message["Message-ID"] = make_msgid()
        message.set_content(email.plain_body)
        message.add_alternative(email.html_body, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        """One blocking SMTP conversation. Runs in a worker thread."""
        context = ssl.create_default_context()
        if self.port == 465:
            server: smtplib.SMTP = smtplib.SMTP_SSL(
                self.host, self.port, timeout=self.timeout, context=context
            )
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        with server:
            server.ehlo()
            if self.port != 465 and server.has_extn("starttls"):
                server.starttls(context=context)
            if self.username:
                server.login(self.username, self.password)
            server.send_message(message)

    async def send(
        self,
        recipient: str,
        template: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Render `template` and deliver it to `recipient`.

        Returns:
            The Message-ID of the delivered message.

        Raises:
            MailDeliveryError once every attempt has failed.
        """
        message = self.build_message(recipient, render(template, data or {}))

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential_jitter(initial=self.min_wait, max=self.max_wait),
                retry=retry_if_exception_type((smtplib.SMTPException, OSError)),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            _, address = parseaddr(recipient)
            logger.error("Email %r to %s failed after %d attempts: %s",
                         template, address, self.max_attempts, e)
            raise MailDeliveryError(
                context={"template": template, "recipient": address, "error": str(e)}
            ) from e

        logger.info("Email %r sent to %s", template, recipient)
        return message["Message-ID"]
