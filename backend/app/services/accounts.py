# app/services/accounts.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from backend.app.core.guard import ACTIVITIES, activity_path
from backend.app.core.roles import PEOPLE_BY_EMAIL, ROLE_VALUES, RoleMap, normalize_email
from backend.app.repositories.documents import SERVER_TIMESTAMP, DocumentStore

logger = logging.getLogger("planner.accounts")

USERS = "users"

PROFILE_FIELDS = (
    "displayName",
    "email",
    "photoURL",
    "phone",
    "emergencyContact",
    "dietaryRequirements",
    "medicalNotes",
)


def profile_path(uid: str) -> str:
    return f"{USERS}/{uid}"


def ensure_profile(store: DocumentStore, uid: str, email: Optional[str],
                   display_name: Optional[str], photo_url: Optional[str]) -> Dict[str, Any]:
    """
    Return ``users/{uid}``, creating it from the account details when missing.
    """
    snap = store.get(profile_path(uid))
    if snap.exists:
        return snap.data
    doc = {
        "displayName": display_name or "",
        "email": email or "",
        "photoURL": photo_url,
        "phone": None,
        "emergencyContact": {"name": None, "phone": None},
        "dietaryRequirements": None,
        "medicalNotes": None,
        "createdAt": SERVER_TIMESTAMP,
    }
    store.set(profile_path(uid), doc)
    logger.info("Provisioned profile for %s", uid)
    return store.get(profile_path(uid)).data


def promote_pending_invites(store: DocumentStore, email: Optional[str], uid: str) -> int:
    """
    Move every ``peopleByEmail[email]`` entry to ``peopleByUID[uid]``.
    Safe to call repeatedly; returns how many activities changed.
    """
    if not email:
        return 0
    email = normalize_email(email)
    changed = 0
    for snap in store.where(ACTIVITIES, PEOPLE_BY_EMAIL.child(email), "in", ROLE_VALUES):
        updates = RoleMap.from_document(snap.data).promotion_updates(email, uid)
        if not updates:
            continue
        store.update(activity_path(snap.id), updates)
        changed += 1
    if changed:
        logger.info("Promoted %s to %s on %d activities", email, uid, changed)
    return changed
