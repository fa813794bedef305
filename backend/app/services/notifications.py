"""
app/services/notifications.py
Outbound email.

``NotificationSink.submit`` is best-effort, non-blocking and never retried:
the message is handed to an asyncio task and the caller carries on. Route
handlers run in the threadpool, so their emails are scheduled onto the loop
bound at startup. A
delivery failure is logged and never reaches the request that triggered it,
and never rolls that request back.
"""
import asyncio
import logging
import smtplib
import ssl
from concurrent.futures import Future
from email.message import EmailMessage
from functools import lru_cache
from html import escape
from typing import Callable, Iterable, Optional, Set, Union

from backend.app.config import Settings, settings

logger = logging.getLogger("planner.notifications")


def render_html(body_lines: Iterable[str]) -> str:
    paragraphs = "".join(f"<p>{escape(line)}</p>" for line in body_lines)
    return f'<div style="font-family:Arial,sans-serif">{paragraphs}</div>'


async def send_email(to: str, subject: str, html: str, reply_to: Optional[str] = None,
                     text: Optional[str] = None, config: Settings = settings):
    """
    Plain SMTP sender.
    - SSL on connect by default; STARTTLS when smtp_use_starttls=True (587).
    - The blocking part runs in the default executor.
    """
    from_addr = config.smtp_from or config.smtp_user
    if not config.smtp_configured:
        raise RuntimeError("SMTP config missing: check host/port/user/password/from")

    msg = EmailMessage()
    msg["To"] = to
    msg["From"] = f"{config.app_name} <{from_addr}>"
    msg["Subject"] = subject
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.set_content(text or "View this email as HTML.")
    msg.add_alternative(html, subtype="html")

    def _send_blocking():
        context = ssl.create_default_context()
        if config.smtp_use_starttls:
            with smtplib.SMTP(config.smtp_host, config.smtp_port) as server:
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
                server.login(config.smtp_user, config.smtp_password)
                server.send_message(msg)
        else:
            with smtplib.SMTP_SSL(config.smtp_host, config.smtp_port, context=context) as server:
                server.login(config.smtp_user, config.smtp_password)
                server.send_message(msg)

    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, _send_blocking)


class NotificationSink:
    def __init__(self, sender: Callable = send_email, config: Settings = settings):
        self._send = sender
        self._config = config
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        # strong references so pending deliveries are not garbage collected
        self._tasks: Set[Union[asyncio.Task, Future]] = set()

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Loop that receives emails submitted from worker threads (sync handlers, the sweep)."""
        self._loop = loop

    def submit(self, to: str, reply_to: Optional[str], subject: str,
               body_lines: Iterable[str]) -> Optional[Union[asyncio.Task, Future]]:
        """Queue one email. Returns the task or future, or None when nothing was queued."""
        lines = list(body_lines)
        if not self._config.smtp_configured and self._send is send_email:
            logger.info("SMTP not configured, dropping email to %s: %s", to, subject)
            return None
        try:
            pending = asyncio.get_running_loop().create_task(self._deliver(to, reply_to, subject, lines))
        except RuntimeError:
            if self._loop is None or self._loop.is_closed():
                logger.warning("No event loop bound, dropping email to %s: %s", to, subject)
                return None
            pending = asyncio.run_coroutine_threadsafe(self._deliver(to, reply_to, subject, lines), self._loop)
        self._tasks.add(pending)
        pending.add_done_callback(self._tasks.discard)
        return pending

    async def _deliver(self, to: str, reply_to: Optional[str], subject: str, lines: list) -> bool:
        try:
            await self._send(to, subject, render_html(lines), reply_to=reply_to, text="\n\n".join(lines))
        except Exception:
            logger.exception("Failed to send email to %s (%s)", to, subject)
            return False
        logger.info("Sent email to %s: %s", to, subject)
        return True

    @property
    def pending(self) -> int:
        return len(self._tasks)


@lru_cache(maxsize=1)
def get_sink() -> NotificationSink:
    return NotificationSink()
