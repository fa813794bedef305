# tests/test_notifications.py

"""
Tests for best-effort email delivery and the email templates.
"""

import asyncio
import logging
import threading

from backend.app.config import Settings
from backend.app.services import email_templates
from backend.app.services.notifications import NotificationSink, render_html


def _configured():
    return Settings(smtp_user="mailer", smtp_password="pw", smtp_from="planner@example.com")


def test_submit_delivers_in_background():
    delivered = []

    async def sender(to, subject, html, reply_to=None, text=None):
        delivered.append((to, subject, reply_to, html, text))

    async def scenario():
        sink = NotificationSink(sender=sender, config=_configured())
        task = sink.submit("a@b.com", "leader@example.com", "Hello", ["Line one", "<b>two</b>"])
        assert task is not None
        assert await task is True
        return sink

    sink = asyncio.run(scenario())
    assert sink.pending == 0
    to, subject, reply_to, html, text = delivered[0]
    assert (to, subject, reply_to) == ("a@b.com", "Hello", "leader@example.com")
    assert "&lt;b&gt;two&lt;/b&gt;" in html
    assert text == "Line one\n\n<b>two</b>"


def test_delivery_failure_is_logged_not_raised(caplog):
    async def sender(*args, **kwargs):
        raise ConnectionRefusedError("smtp down")

    async def scenario():
        sink = NotificationSink(sender=sender, config=_configured())
        return await sink.submit("a@b.com", None, "Hello", ["x"])

    with caplog.at_level(logging.ERROR, logger="planner.notifications"):
        assert asyncio.run(scenario()) is False
    assert "Failed to send email to a@b.com" in caplog.text


def test_unconfigured_smtp_drops_message():
    async def scenario():
        return NotificationSink(config=Settings(smtp_user=None, smtp_password=None)).submit("a@b.com", None, "Hi", [])

    assert asyncio.run(scenario()) is None


def test_submit_without_event_loop_drops_message():
    async def sender(*args, **kwargs):
        raise AssertionError("must not be called")

    assert NotificationSink(sender=sender, config=_configured()).submit("a@b.com", None, "Hi", []) is None


def test_render_html_escapes():
    assert render_html(["a & b"]) == '<div style="font-family:Arial,sans-serif"><p>a &amp; b</p></div>'


def test_templates():
    subject, lines = email_templates.invite("Hike", "act1", "Editor", "Una", has_account=False)
    assert subject == "You've been added to Hike"
    assert lines[0] == 'Una has added you to "Hike" as Editor.'
    assert any("Sign up" in line for line in lines)
    assert lines[1].endswith("/activities/act1")

    subject, lines = email_templates.role_changed("Hike", "act1", None, None)
    assert subject == "Removed from Hike"
    assert lines == ['Someone has removed your access to "Hike".']

    subject, lines = email_templates.reminder("Hike", "act1", 14, "2026-11-02", None)
    assert subject == "Reminder: Hike is in 14 days"
    assert not any(line.startswith("Location") for line in lines)


def test_submit_from_worker_thread_uses_bound_loop():
    delivered = []

    async def sender(to, subject, html, reply_to=None, text=None):
        delivered.append((to, threading.get_ident()))

    async def scenario():
        loop = asyncio.get_running_loop()
        sink = NotificationSink(sender=sender, config=_configured())
        sink.bind(loop)
        future = await loop.run_in_executor(None, sink.submit, "a@b.com", None, "Hi", ["x"])
        assert await asyncio.wrap_future(future) is True
        return threading.get_ident()

    loop_thread = asyncio.run(scenario())
    assert delivered == [("a@b.com", loop_thread)]
