"""
# `app/routers/people.py` - Who has which role on an activity

### `GET /activities/{activity_id}/people`
Registered people resolved through Firebase Auth (name, email, avatar) and
pending invitees by email, highest role first.

### `PUT /activities/{activity_id}/people`
Body `{email, role}`; `role: null` removes the person. Registered emails are
stored by uid, unknown ones as pending invites. There is at most one
Activity Leader, and at least one person with an account must keep an
edit-capable role.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends

from backend.app.core.auth import get_optional_principal
from backend.app.core.guard import ActivityContext, DocumentAccessGuard, get_guard
from backend.app.core.roles import ROLE_VALUES, RegisteredUser, Role, RoleMap, resolve_principal
from backend.app.core.rules import DEFINED, EMAIL, STRING, fields_from, one_of
from backend.app.repositories.identity import IdentityProvider
from backend.app.schemas.principal import Principal
from backend.app.services import email_templates
from backend.app.services.notifications import NotificationSink, get_sink

logger = logging.getLogger("planner.people")

router = APIRouter(prefix="/activities", tags=["People"])

SET_ROLE_RULES = {
    "email": [DEFINED, STRING, EMAIL],
    "role": [one_of(*ROLE_VALUES)],
}


def list_people(identity: IdentityProvider, role_map: RoleMap) -> List[Dict[str, Any]]:
    people: List[Dict[str, Any]] = []
    users = identity.get_users([{"uid": uid} for uid in role_map.by_uid]).by_uid() if role_map.by_uid else {}
    for uid, role in role_map.by_uid.items():
        user = users.get(uid)
        people.append({
            "userExists": True,
            "uid": uid,
            "email": user.email if user else None,
            "displayName": user.display_name if user else None,
            "photoURL": user.photo_url if user else None,
            "role": role.value,
        })
    for email, role in role_map.by_email.items():
        people.append({"userExists": False, "email": email, "role": role.value})
    people.sort(key=lambda p: (-Role(p["role"]).rank, (p.get("displayName") or p.get("email") or "").lower()))
    return people


@router.get("/{activity_id}/people", summary="People and roles on an activity")
def get_people(
    activity_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    ctx = guard.open_activity(principal, activity_id)
    return list_people(guard.identity, ctx.role_map)


def _notify(sink: NotificationSink, ctx: ActivityContext, email: str, old: Optional[Role],
            new: Optional[Role], has_account: bool) -> None:
    if old == new or not email:
        return
    name = ctx.data.get("name") or "an activity"
    if old is None:
        subject, lines = email_templates.invite(name, ctx.id, new.value, ctx.principal.display_name, has_account)
    else:
        subject, lines = email_templates.role_changed(
            name, ctx.id, new.value if new else None, ctx.principal.display_name
        )
    sink.submit(email, ctx.principal.email, subject, lines)


@router.put("/{activity_id}/people", summary="Give, change or remove a person's role")
def set_person_role(
    activity_id: str,
    data: Any = Body(None),
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
    sink: NotificationSink = Depends(get_sink),
):
    ctx = guard.open_for_edit(principal, activity_id, data, "email")
    guard.validate(fields_from(data, SET_ROLE_RULES))

    ref = resolve_principal(guard.identity, data["email"])
    role = Role.parse(data.get("role"))
    old = ctx.role_map.role_of(ref.key)

    after = guard.check_role_change(ctx.role_map, ref, role)
    guard.commit(ctx, ctx.role_map.field_updates_for(ref, role), guarded=True)
    logger.info(
        "%s set %s to %s on activity %s",
        ctx.principal.uid, ref.key, role.value if role else None, ctx.id,
    )

    has_account = isinstance(ref, RegisteredUser)
    if ref.key != ctx.principal.uid:
        _notify(sink, ctx, ref.email, old, role, has_account)
    return {
        "email": ref.email,
        "userExists": has_account,
        "role": role.value if role else None,
        "people": list_people(guard.identity, after),
    }
