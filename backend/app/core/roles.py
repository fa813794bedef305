"""
app/core/roles.py
Per-activity access control list.

An activity stores two disjoint maps: ``peopleByUID`` (registered accounts)
and ``peopleByEmail`` (pending invitees without an account yet). ``RoleMap``
answers the questions every handler asks and computes the partial updates
for a role change. It never checks the structural invariants itself; the
guard does that before committing.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from backend.app.core.paths import FieldPath
from backend.app.repositories.documents import DELETE
from backend.app.repositories.identity import IdentityProvider, UserInfo

PEOPLE_BY_UID = FieldPath.of("peopleByUID")
PEOPLE_BY_EMAIL = FieldPath.of("peopleByEmail")


class Role(str, Enum):
    ACTIVITY_LEADER = "Activity Leader"
    EDITOR = "Editor"
    ASSISTING = "Assisting"
    VIEWER = "Viewer"

    @property
    def rank(self) -> int:
        return _RANK[self]

    @property
    def can_edit(self) -> bool:
        return self in EDIT_ROLES

    @classmethod
    def parse(cls, value: Any) -> Optional["Role"]:
        if value is None or isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


_RANK = {Role.ACTIVITY_LEADER: 2, Role.EDITOR: 1, Role.ASSISTING: 1, Role.VIEWER: 0}

ROLE_VALUES: Tuple[str, ...] = tuple(r.value for r in Role)
EDIT_ROLES = frozenset({Role.ACTIVITY_LEADER, Role.EDITOR, Role.ASSISTING})


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True)
class RegisteredUser:
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    @property
    def key(self) -> str:
        return self.uid


@dataclass(frozen=True)
class PendingInvitee:
    email: str

    @property
    def key(self) -> str:
        return self.email


PrincipalRef = Union[RegisteredUser, PendingInvitee]


def resolve_principal(identity: IdentityProvider, email: str) -> PrincipalRef:
    """Look the email up with the identity provider. Not cached."""
    email = normalize_email(email)
    found = identity.get_users([{"email": email}]).by_email().get(email)
    if found is None:
        return PendingInvitee(email=email)
    return registered(found)


def registered(user: UserInfo) -> RegisteredUser:
    return RegisteredUser(
        uid=user.uid,
        email=normalize_email(user.email) if user.email else None,
        display_name=user.display_name,
        photo_url=user.photo_url,
    )


@dataclass
class RoleMap:
    by_uid: Dict[str, Role] = field(default_factory=dict)
    by_email: Dict[str, Role] = field(default_factory=dict)

    @classmethod
    def from_document(cls, data: Optional[Mapping[str, Any]]) -> "RoleMap":
        data = data or {}
        by_uid = {k: Role(v) for k, v in (data.get("peopleByUID") or {}).items() if Role.parse(v)}
        by_email = {
            normalize_email(k): Role(v)
            for k, v in (data.get("peopleByEmail") or {}).items()
            if Role.parse(v)
        }
        return cls(by_uid=by_uid, by_email=by_email)

    def to_document(self) -> Dict[str, Dict[str, str]]:
        return {
            "peopleByUID": {k: r.value for k, r in self.by_uid.items()},
            "peopleByEmail": {k: r.value for k, r in self.by_email.items()},
        }

    def copy(self) -> "RoleMap":
        return RoleMap(by_uid=dict(self.by_uid), by_email=dict(self.by_email))

    # --------- queries --------- #

    def has_access(self, uid: str) -> bool:
        return uid in self.by_uid

    def role_of(self, key: str) -> Optional[Role]:
        if key in self.by_uid:
            return self.by_uid[key]
        return self.by_email.get(normalize_email(key)) if "@" in key else None

    def can_edit(self, key: str) -> bool:
        role = self.role_of(key)
        return role is not None and role.can_edit

    def editor_count(self) -> int:
        return sum(1 for r in self.by_uid.values() if r.can_edit)

    def leader_key(self) -> Optional[str]:
        for mapping in (self.by_uid, self.by_email):
            for key, role in mapping.items():
                if role is Role.ACTIVITY_LEADER:
                    return key
        return None

    def has_activity_leader(self) -> bool:
        return self.leader_key() is not None

    def leader_count(self) -> int:
        return sum(
            1
            for mapping in (self.by_uid, self.by_email)
            for role in mapping.values()
            if role is Role.ACTIVITY_LEADER
        )

    def would_remove_last_editor(self, ref: PrincipalRef, role: Optional[Role]) -> bool:
        return self.set_role(ref, role).editor_count() == 0

    # --------- mutations (pure, return new maps) --------- #

    def set_role(self, ref: PrincipalRef, role: Optional[Role]) -> "RoleMap":
        """New map with ``ref`` set to ``role``; ``None`` revokes access."""
        out = self.copy()
        if isinstance(ref, RegisteredUser):
            if role is None:
                out.by_uid.pop(ref.uid, None)
            else:
                out.by_uid[ref.uid] = role
            if ref.email:
                out.by_email.pop(ref.email, None)
        else:
            email = normalize_email(ref.email)
            if role is None:
                out.by_email.pop(email, None)
            else:
                out.by_email[email] = role
        return out

    def promote(self, email: str, uid: str, role: Optional[Role] = None) -> "RoleMap":
        """Move the email-keyed entry to ``uid``. A no-op once already moved."""
        email = normalize_email(email)
        out = self.copy()
        pending = out.by_email.pop(email, None)
        chosen = role or pending
        if chosen is not None and uid not in out.by_uid:
            out.by_uid[uid] = chosen
        return out

    # --------- partial updates --------- #

    def field_updates_for(self, ref: PrincipalRef, role: Optional[Role]) -> Dict[FieldPath, Any]:
        value = role.value if role is not None else DELETE
        if isinstance(ref, RegisteredUser):
            updates: Dict[FieldPath, Any] = {PEOPLE_BY_UID.child(ref.uid): value}
            if ref.email and ref.email in self.by_email:
                updates[PEOPLE_BY_EMAIL.child(ref.email)] = DELETE
            return updates
        return {PEOPLE_BY_EMAIL.child(normalize_email(ref.email)): value}

    def promotion_updates(self, email: str, uid: str) -> Dict[FieldPath, Any]:
        email = normalize_email(email)
        pending = self.by_email.get(email)
        if pending is None:
            return {}
        updates: Dict[FieldPath, Any] = {PEOPLE_BY_EMAIL.child(email): DELETE}
        if uid not in self.by_uid:
            updates[PEOPLE_BY_UID.child(uid)] = pending.value
        return updates
