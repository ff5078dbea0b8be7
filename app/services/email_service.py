from __future__ import annotations

import logging
import smtplib
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from email.message import EmailMessage
from email.utils import formataddr
from functools import lru_cache

from app.core.config import Settings

logger = logging.getLogger(__name__)

_cached_services: list[EmailService] = []


class EmailDeliveryError(Exception):
    pass


class EmailService:
    """Best-effort HTML mail dispatch over SMTP on a bounded worker pool.

    ``send_html`` never blocks the caller: it queues the message and returns
    a future that resolves to ``True`` once delivered, ``False`` when the
    transport is not configured, or raises ``EmailDeliveryError``. Messages
    are never retried.
    """

    def __init__(
        self,
        *,
        smtp_host: str,
        smtp_port: int,
        from_email: str,
        from_name: str = "StandUpStrip",
        smtp_username: str = "",
        smtp_password: str = "",
        use_tls: bool = True,
        send_timeout_seconds: float = 30.0,
        max_workers: int = 4,
    ) -> None:
        self.smtp_host = smtp_host.strip()
        self.smtp_port = smtp_port
        self.from_email = from_email.strip()
        self.from_name = from_name
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.use_tls = use_tls
        self.send_timeout_seconds = send_timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="email-dispatch")

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def send_html(self, to: str, subject: str, html_body: str) -> Future[bool]:
        try:
            future = self._executor.submit(self._deliver, to, subject, html_body)
        except RuntimeError as exc:
            # Pool already shut down.
            future = Future()
            future.set_exception(EmailDeliveryError(f"Email dispatch unavailable for {to}: {exc}"))
        future.add_done_callback(_log_dispatch_failure)
        return future

    def send_html_and_wait(self, to: str, subject: str, html_body: str) -> bool:
        future = self.send_html(to, subject, html_body)
        try:
            return future.result(timeout=self.send_timeout_seconds)
        except FutureTimeoutError as exc:
            raise EmailDeliveryError(f"Timed out sending email to {to}.") from exc
        except CancelledError as exc:
            raise EmailDeliveryError(f"Email to {to} was cancelled by shutdown.") from exc

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _deliver(self, to: str, subject: str, html_body: str) -> bool:
        if not self.is_configured:
            logger.warning("Email service not configured. Skipping email to=%s", to)
            return False

        try:
            message = self._build_message(to, subject, html_body)
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.send_timeout_seconds) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_username:
                    server.login(self.smtp_username, self.smtp_password)
                server.send_message(message)
        except Exception as exc:
            raise EmailDeliveryError(f"Failed to send email to {to!r}: {exc}") from exc

        logger.info("HTML email sent to=%s subject=%s", to, subject)
        return True

    def _build_message(self, to: str, subject: str, html_body: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = to
        message.set_content("This message requires an HTML-capable email client.")
        message.add_alternative(html_body, subtype="html")
        return message


def _log_dispatch_failure(future: Future[bool]) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Email dispatch failed: %s", exc)


def create_email_service(settings: Settings) -> EmailService:
    return _create_email_service_cached(
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        smtp_username=settings.smtp_username,
        smtp_password=settings.smtp_password,
        smtp_use_tls=settings.smtp_use_tls,
        mail_from_email=settings.mail_from_email,
        mail_from_name=settings.mail_from_name,
        email_send_timeout_seconds=settings.email_send_timeout_seconds,
        email_worker_pool_size=settings.email_worker_pool_size,
    )


@lru_cache
def _create_email_service_cached(
    *,
    smtp_host: str,
    smtp_port: int,
    smtp_username: str,
    smtp_password: str,
    smtp_use_tls: bool,
    mail_from_email: str,
    mail_from_name: str,
    email_send_timeout_seconds: float,
    email_worker_pool_size: int,
) -> EmailService:
    service = EmailService(
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        from_email=mail_from_email,
        from_name=mail_from_name,
        smtp_username=smtp_username,
        smtp_password=smtp_password,
        use_tls=smtp_use_tls,
        send_timeout_seconds=email_send_timeout_seconds,
        max_workers=email_worker_pool_size,
    )
    _cached_services.append(service)
    return service


def clear_email_service_cache() -> None:
    _create_email_service_cached.cache_clear()
    while _cached_services:
        _cached_services.pop().shutdown()
