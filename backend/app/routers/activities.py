"""
# `app/routers/activities.py` - Activities and their overview

## Endpoints

### `GET /activities`
Activities the caller has a role in: `[{id, name, role, startDate}]`.
Pending invites addressed to the caller's verified email are promoted first.

### `POST /activities`
Creates an activity. `name` is required; `people` is an optional list of
`{email, role}`. The caller is added as `Editor` unless they list themselves.
Returns `{id}`.

### `GET /activities/{activity_id}/overview`
Overview fields (missing ones as `null`) and the caller's `role`.

### `PATCH /activities/{activity_id}/overview`
Partial update: only keys present in the body are written. Nested objects
(`activityLeader`, `emergencyContact`) are merged key by key.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, status

from backend.app.core.auth import get_optional_principal
from backend.app.core.errors import InvalidArgument
from backend.app.core.guard import ACTIVITIES, ActivityContext, DocumentAccessGuard, get_guard
from backend.app.core.paths import FieldPath
from backend.app.core.roles import PEOPLE_BY_UID, ROLE_VALUES, Role, RoleMap, normalize_email
from backend.app.core.rules import (
    DATE, DEFINED, EMAIL, INTEGER, NON_BLANK, OBJECT, PEOPLE, STRING, TIME,
    ValidationField, check_rules, fields_from, one_of, present_values,
)
from backend.app.repositories.documents import SERVER_TIMESTAMP, to_jsonable
from backend.app.schemas.principal import Principal
from backend.app.services import email_templates
from backend.app.services.accounts import promote_pending_invites
from backend.app.services.notifications import NotificationSink, get_sink

logger = logging.getLogger("planner.activities")

router = APIRouter(prefix="/activities", tags=["Activities"])

CATEGORIES = ("Bushwalking", "Camping", "Climbing", "Cycling", "Paddling", "Social", "Other")

# dotted names live inside the nested objects listed in NESTED
OVERVIEW_RULES = {
    "name": [STRING, NON_BLANK],
    "location": [STRING],
    "description": [STRING],
    "category": [one_of(*CATEGORIES)],
    "startDate": [STRING, DATE],
    "startTime": [STRING, TIME],
    "endDate": [STRING, DATE],
    "endTime": [STRING, TIME],
    "participantCount": [INTEGER],
    "activityLeader": [OBJECT],
    "activityLeader.name": [STRING],
    "activityLeader.phone": [STRING],
    "activityLeader.email": [STRING, EMAIL],
    "emergencyContact": [OBJECT],
    "emergencyContact.name": [STRING],
    "emergencyContact.phone": [STRING],
}
NESTED = ("activityLeader", "emergencyContact")
LEAVES = [name for name in OVERVIEW_RULES if name not in NESTED]
CREATE_RULES = {**OVERVIEW_RULES, "name": [DEFINED, STRING, NON_BLANK], "people": [PEOPLE]}


def project_overview(ctx: ActivityContext) -> Dict[str, Any]:
    out: Dict[str, Any] = {"id": ctx.id}
    for parent in NESTED:
        out[parent] = {}
    for name in LEAVES:
        path = FieldPath.parse(name)
        target = out[path.segments[0]] if len(path.segments) > 1 else out
        target[path.leaf] = to_jsonable(path.resolve(ctx.data))
    out["role"] = ctx.role.value
    return out


# --------- list --------- #

@router.get("", summary="Activities the caller has access to")
def list_activities(
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
) -> List[Dict[str, Any]]:
    principal = guard.authenticate(principal)
    if principal.email_verified or not guard.config.require_verified_email:
        promote_pending_invites(guard.store, principal.normalized_email, principal.uid)

    snaps = guard.store.where(ACTIVITIES, PEOPLE_BY_UID.child(principal.uid), "in", ROLE_VALUES)
    rows = [
        {
            "id": s.id,
            "name": s.data.get("name"),
            "role": (s.data.get("peopleByUID") or {}).get(principal.uid),
            "startDate": s.data.get("startDate"),
        }
        for s in snaps
    ]
    rows.sort(key=lambda r: (r["startDate"] or "9999-99-99", r["name"] or ""))
    return rows


# --------- create --------- #

def _initial_roles(guard: DocumentAccessGuard, creator: Principal, people: List[dict]):
    """RoleMap for a new activity, plus the invitees to notify."""
    emails = [normalize_email(p["email"]) for p in people]
    if len(set(emails)) != len(emails):
        raise InvalidArgument("The argument people contains the same email more than once.")

    found = guard.identity.get_users([{"email": e} for e in emails]).by_email() if emails else {}
    role_map = RoleMap()
    invited = []
    for person, email in zip(people, emails):
        role = Role(person["role"])
        user = found.get(email)
        if user is not None:
            role_map.by_uid[user.uid] = role
            if user.uid != creator.uid:
                invited.append((email, role, True))
        else:
            role_map.by_email[email] = role
            invited.append((email, role, False))
    if creator.uid not in role_map.by_uid:
        role_map.by_uid[creator.uid] = Role.EDITOR
        # a listed email that belongs to the creator is the same person
        if creator.normalized_email:
            role_map.by_email.pop(creator.normalized_email, None)

    if role_map.leader_count() > 1:
        raise InvalidArgument("There can only be one Activity Leader.")
    if role_map.editor_count() == 0:
        raise InvalidArgument(
            "At least one person with either an Activity Leader, Editor or Assisting role "
            "must currently have an account."
        )
    return role_map, invited


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create an activity")
def create_activity(
    data: Any = Body(None),
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
    sink: NotificationSink = Depends(get_sink),
):
    principal = guard.authenticate(principal)
    guard.require_params(data)

    fields = fields_from(data, CREATE_RULES)
    check_rules(fields)

    # Write each field with a value into the new document
    doc: Dict[str, Any] = {}
    for field in fields:
        if field.name == "people" or field.name in NESTED:
            continue
        if field.value is None or field.value == "":
            continue
        parent = doc
        for segment in field.path.segments[:-1]:
            parent = parent.setdefault(segment, {})
        parent[field.path.leaf] = field.value

    role_map, invited = _initial_roles(guard, principal, data.get("people") or [])
    doc.update(role_map.to_document())
    doc["createdBy"] = principal.uid
    doc["createdAt"] = SERVER_TIMESTAMP

    activity_id = guard.store.add(ACTIVITIES, doc)
    logger.info("Activity %s created by %s", activity_id, principal.uid)

    for email, role, has_account in invited:
        subject, lines = email_templates.invite(
            doc["name"], activity_id, role.value, principal.display_name, has_account
        )
        sink.submit(email, principal.email, subject, lines)
    return {"id": activity_id}


# --------- overview --------- #

@router.get("/{activity_id}/overview", summary="Activity overview")
def get_overview(
    activity_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    ctx = guard.open_activity(principal, activity_id)
    return project_overview(ctx)


@router.patch("/{activity_id}/overview", summary="Update activity overview fields")
def set_overview(
    activity_id: str,
    data: Any = Body(None),
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    ctx = guard.open_for_edit(principal, activity_id, data)

    updates = present_values(data, OVERVIEW_RULES)
    # a nested object sent as {...} is merged leaf by leaf; only null replaces it outright
    for parent in NESTED:
        path = FieldPath.of(parent)
        if path in updates and updates[path] is not None:
            guard.validate([ValidationField(path, updates.pop(path), OVERVIEW_RULES[parent])])
    guard.validate(ValidationField(path, value, OVERVIEW_RULES[path.dotted]) for path, value in updates.items())

    # name can be left out, but never blanked
    name = FieldPath.of("name")
    if name in updates:
        guard.validate([ValidationField(name, updates[name], [DEFINED, NON_BLANK])])

    if updates:
        updates[FieldPath.of("updatedAt")] = SERVER_TIMESTAMP
        guard.commit(ctx, updates)
    ctx.snapshot = guard.store.get(ctx.path)
    return project_overview(ctx)
