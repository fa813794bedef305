# app/services/email_templates.py
from typing import List, Optional, Tuple

from backend.app.config import settings

Message = Tuple[str, List[str]]


def _activity_link(activity_id: str) -> str:
    return f"{settings.app_base_url.rstrip('/')}/activities/{activity_id}"


def invite(activity_name: str, activity_id: str, role: str, inviter: Optional[str],
           has_account: bool) -> Message:
    who = inviter or "Someone"
    lines = [
        f"{who} has added you to \"{activity_name}\" as {role}.",
        f"Open the activity: {_activity_link(activity_id)}",
    ]
    if not has_account:
        lines.append("Sign up with this email address and verify it to get access.")
    return f"You've been added to {activity_name}", lines


def role_changed(activity_name: str, activity_id: str, role: Optional[str],
                 changed_by: Optional[str]) -> Message:
    who = changed_by or "Someone"
    if role is None:
        return (f"Removed from {activity_name}",
                [f"{who} has removed your access to \"{activity_name}\"."])
    return (f"Your role in {activity_name} changed",
            [f"{who} has changed your role in \"{activity_name}\" to {role}.",
             f"Open the activity: {_activity_link(activity_id)}"])


def reminder(activity_name: str, activity_id: str, days_before: int,
             start_date: str, location: Optional[str]) -> Message:
    lines = [f"\"{activity_name}\" starts in {days_before} days, on {start_date}."]
    if location:
        lines.append(f"Location: {location}")
    lines.append("Please check that the risk assessment, tables and signatures are complete.")
    lines.append(f"Open the activity: {_activity_link(activity_id)}")
    return f"Reminder: {activity_name} is in {days_before} days", lines
