"""
app/core/guard.py
The prologue every activity handler runs before touching a document.

    authenticate -> parameters present -> activity loaded -> access
    -> (mutations) edit role -> fields valid -> role invariants -> commit

Any failing step raises and nothing after it runs. The one exception is the
lazy promotion during the access check: when the caller's verified email is
still listed as a pending invitee, that entry is moved to their uid and
committed straight away, even if a later step of the same request fails.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from fastapi import Depends

from backend.app.config import Settings, get_identity, get_settings, get_store, settings
from backend.app.core.errors import (
    InvalidArgument,
    NotVerified,
    PermissionDenied,
    ResourceNotFound,
    Unauthenticated,
)
from backend.app.core.paths import PathLike, as_path
from backend.app.core.roles import PrincipalRef, Role, RoleMap
from backend.app.core.rules import ValidationField, check_rules
from backend.app.repositories.documents import DocumentStore, Snapshot, Updates
from backend.app.repositories.identity import IdentityProvider
from backend.app.schemas.principal import Principal

logger = logging.getLogger("planner.guard")

ACTIVITIES = "activities"


def activity_path(activity_id: str) -> str:
    return f"{ACTIVITIES}/{activity_id}"


@dataclass
class ActivityContext:
    id: str
    snapshot: Snapshot
    principal: Principal
    role_map: RoleMap
    role: Role

    @property
    def path(self) -> str:
        return activity_path(self.id)

    @property
    def data(self) -> dict:
        return self.snapshot.data


class DocumentAccessGuard:
    def __init__(self, store: DocumentStore, identity: IdentityProvider, config: Settings = settings):
        self.store = store
        self.identity = identity
        self.config = config

    # 1
    def authenticate(self, principal: Optional[Principal]) -> Principal:
        if principal is None:
            raise Unauthenticated()
        if self.config.require_verified_email and not principal.email_verified:
            raise NotVerified()
        return principal

    # 2
    def require_params(self, data: Any, *names: PathLike) -> Mapping[str, Any]:
        if data is None or not isinstance(data, Mapping):
            raise InvalidArgument("No parameters have been provided.")
        for name in names:
            path = as_path(name)
            if path.resolve(data) is None:
                raise InvalidArgument(f"The argument {path.dotted} is undefined.")
        return data

    # 3
    def load(self, activity_id: Optional[str]) -> Snapshot:
        if not activity_id or "/" in activity_id:
            raise ResourceNotFound(activity_id)
        snap = self.store.get(activity_path(activity_id))
        if not snap.exists:
            raise ResourceNotFound(activity_id)
        return snap

    # 4
    def authorize(self, principal: Principal, snap: Snapshot) -> ActivityContext:
        role_map = RoleMap.from_document(snap.data)
        email = principal.normalized_email
        may_promote = principal.email_verified or not self.config.require_verified_email
        if email and may_promote and email in role_map.by_email:
            snap, role_map = self._promote(snap, role_map, email, principal.uid)

        role = role_map.by_uid.get(principal.uid)
        if role is None:
            logger.info("Denied %s access to activity %s", principal.uid, snap.id)
            raise PermissionDenied("You do not have access to this activity.")
        return ActivityContext(id=snap.id, snapshot=snap, principal=principal, role_map=role_map, role=role)

    def _promote(self, snap: Snapshot, role_map: RoleMap, email: str, uid: str):
        updates = role_map.promotion_updates(email, uid)
        self.store.update(activity_path(snap.id), updates)
        logger.info("Promoted pending invite %s to %s on activity %s", email, uid, snap.id)
        fresh = self.store.get(activity_path(snap.id))
        return fresh, RoleMap.from_document(fresh.data)

    # 5
    def require_edit(self, ctx: ActivityContext) -> ActivityContext:
        if not ctx.role.can_edit:
            logger.info("Denied %s (%s) edit on activity %s", ctx.principal.uid, ctx.role.value, ctx.id)
            raise PermissionDenied("You do not have permission to edit this activity.")
        return ctx

    # 6
    def validate(self, fields: Iterable[ValidationField]) -> bool:
        return check_rules(fields)

    # 7
    def check_role_change(self, role_map: RoleMap, ref: PrincipalRef, role: Optional[Role]) -> RoleMap:
        """Return the map after the change, or raise if it breaks an invariant."""
        if role is Role.ACTIVITY_LEADER and role_map.set_role(ref, None).has_activity_leader():
            raise InvalidArgument("There can only be one Activity Leader.")
        if role_map.would_remove_last_editor(ref, role):
            raise PermissionDenied(
                "At least one person with an account must keep an Activity Leader, "
                "Editor or Assisting role."
            )
        return role_map.set_role(ref, role)

    # 8
    def commit(self, ctx: ActivityContext, updates: Updates, guarded: bool = False) -> None:
        """Single-document update. ``guarded`` fails if the activity changed since it was read."""
        since = ctx.snapshot.update_time if guarded else None
        self.store.update(ctx.path, updates, if_unchanged_since=since)

    # --------- composed prologues --------- #

    def open_activity(self, principal: Optional[Principal], activity_id: Optional[str]) -> ActivityContext:
        principal = self.authenticate(principal)
        if not activity_id:
            raise InvalidArgument("No parameters have been provided.")
        return self.authorize(principal, self.load(activity_id))

    def open_for_edit(self, principal: Optional[Principal], activity_id: Optional[str],
                      data: Any = None, *required: PathLike, body: bool = True) -> ActivityContext:
        principal = self.authenticate(principal)
        if not activity_id:
            raise InvalidArgument("No parameters have been provided.")
        if body:
            self.require_params(data, *required)
        ctx = self.authorize(principal, self.load(activity_id))
        return self.require_edit(ctx)


def get_guard(
    store: DocumentStore = Depends(get_store),
    identity: IdentityProvider = Depends(get_identity),
    config: Settings = Depends(get_settings),
) -> DocumentAccessGuard:
    return DocumentAccessGuard(store, identity, config)
