"""
app/services/reminders.py
Daily reminder emails ahead of an activity's start date.

For every N in ``settings.reminder_days`` the sweep finds the activities whose
``startDate`` is exactly N days from today (in ``settings.timezone``) and
emails everyone on them: registered people at their account email, pending
invitees at the invited address.
"""
import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Set
from zoneinfo import ZoneInfo

from backend.app.config import get_identity, get_store, settings
from backend.app.core.guard import ACTIVITIES
from backend.app.core.paths import FieldPath
from backend.app.core.roles import RoleMap
from backend.app.repositories.documents import DocumentStore, Snapshot
from backend.app.repositories.identity import IdentityProvider
from backend.app.services import email_templates
from backend.app.services.notifications import NotificationSink, get_sink

logger = logging.getLogger("planner.reminders")

START_DATE = FieldPath.of("startDate")


def recipients(identity: IdentityProvider, role_map: RoleMap) -> List[str]:
    """Registered emails (looked up by uid) then pending emails, without duplicates."""
    emails: List[str] = []
    seen: Set[str] = set()

    def _add(email: Optional[str]):
        if email and email.lower() not in seen:
            seen.add(email.lower())
            emails.append(email)

    if role_map.by_uid:
        found = identity.get_users([{"uid": uid} for uid in sorted(role_map.by_uid)])
        for user in sorted(found.found, key=lambda u: u.uid):
            _add(user.email)
    for email in sorted(role_map.by_email):
        _add(email)
    return emails


def _remind(sink: NotificationSink, identity: IdentityProvider, snap: Snapshot, days: int) -> int:
    data = snap.data
    name = data.get("name") or "Untitled activity"
    subject, lines = email_templates.reminder(name, snap.id, days, data.get("startDate"), data.get("location"))
    sent = 0
    for email in recipients(identity, RoleMap.from_document(data)):
        sink.submit(email, None, subject, lines)
        sent += 1
    return sent


def sweep(store: DocumentStore, identity: IdentityProvider, sink: NotificationSink,
          today: date, days: Iterable[int] = None) -> int:
    """Submit every reminder due on ``today``. Returns how many emails were submitted."""
    total = 0
    for n in (settings.reminder_days if days is None else days):
        target = (today + timedelta(days=n)).isoformat()
        for snap in store.where(ACTIVITIES, START_DATE, "==", target):
            sent = _remind(sink, identity, snap, n)
            logger.info("Reminded %d people about activity %s (%d days out)", sent, snap.id, n)
            total += sent
    return total


async def run_reminder_sweep():
    """Scheduler entry point. The sweep itself runs in the default executor."""
    today = datetime.now(ZoneInfo(settings.timezone)).date()
    loop = asyncio.get_running_loop()
    sink = get_sink()
    sink.bind(loop)
    try:
        total = await loop.run_in_executor(None, sweep, get_store(), get_identity(), sink, today)
    except Exception:
        logger.exception("Reminder sweep for %s failed", today.isoformat())
        return 0
    logger.info("Reminder sweep for %s submitted %d emails", today.isoformat(), total)
    return total
