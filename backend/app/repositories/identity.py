"""
app/repositories/identity.py
Identity Provider: Firebase Authentication behind a narrow contract.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol

from firebase_admin import auth as fb_auth

from backend.app.core.errors import Unauthenticated

logger = logging.getLogger("planner.identity")

# firebase_admin.auth.get_users accepts at most 100 identifiers per call
MAX_LOOKUP_BATCH = 100


@dataclass
class UserInfo:
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email_verified: bool = False

    def public(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "photoURL": self.photo_url,
        }


@dataclass
class LookupResult:
    found: List[UserInfo] = field(default_factory=list)
    # identifiers that matched no account, in the shape they were given
    not_found: List[Dict[str, str]] = field(default_factory=list)

    def by_email(self) -> Dict[str, UserInfo]:
        return {u.email.lower(): u for u in self.found if u.email}

    def by_uid(self) -> Dict[str, UserInfo]:
        return {u.uid: u for u in self.found}


class IdentityProvider(Protocol):
    def get_users(self, identifiers: Iterable[Dict[str, str]]) -> LookupResult: ...

    def get_user(self, uid: str) -> Optional[UserInfo]: ...

    def verify_id_token(self, id_token: str) -> Dict[str, Any]: ...


def _to_info(record) -> UserInfo:
    return UserInfo(
        uid=record.uid,
        email=record.email,
        display_name=record.display_name,
        photo_url=record.photo_url,
        email_verified=bool(record.email_verified),
    )


def _to_identifier(ident: Dict[str, str]):
    if ident.get("uid"):
        return fb_auth.UidIdentifier(ident["uid"])
    if ident.get("email"):
        return fb_auth.EmailIdentifier(ident["email"])
    raise ValueError(f"Identifier needs an email or a uid: {ident!r}")


def _from_identifier(ident) -> Dict[str, str]:
    if isinstance(ident, fb_auth.UidIdentifier):
        return {"uid": ident.uid}
    return {"email": ident.email}


class FirebaseIdentityProvider:
    """``IdentityProvider`` backed by ``firebase_admin.auth``."""

    def __init__(self, app=None):
        self._app = app

    def get_users(self, identifiers: Iterable[Dict[str, str]]) -> LookupResult:
        idents = [_to_identifier(i) for i in identifiers]
        result = LookupResult()
        for start in range(0, len(idents), MAX_LOOKUP_BATCH):
            chunk = idents[start:start + MAX_LOOKUP_BATCH]
            resp = fb_auth.get_users(chunk, app=self._app)
            result.found.extend(_to_info(u) for u in resp.users)
            result.not_found.extend(_from_identifier(i) for i in resp.not_found)
        return result

    def get_user(self, uid: str) -> Optional[UserInfo]:
        try:
            return _to_info(fb_auth.get_user(uid, app=self._app))
        except fb_auth.UserNotFoundError:
            return None

    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        try:
            return fb_auth.verify_id_token(id_token, app=self._app, check_revoked=True)
        except fb_auth.ExpiredIdTokenError:
            raise Unauthenticated("Token expired")
        except fb_auth.RevokedIdTokenError:
            raise Unauthenticated("Session revoked")
        except fb_auth.UserDisabledError:
            raise Unauthenticated("Account disabled")
        except (ValueError, fb_auth.InvalidIdTokenError) as exc:
            logger.info("Rejected ID token: %s", exc)
            raise Unauthenticated("Invalid authentication token")
