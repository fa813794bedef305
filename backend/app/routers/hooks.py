"""
# `app/routers/hooks.py` - Account lifecycle hooks

Called by the identity platform (a Cloud Function or Identity Platform
blocking function forwarding the event), never by the client app.

| Endpoint                     | When                                  |
|------------------------------|---------------------------------------|
| `POST /hooks/user-created`   | a Firebase account has been created   |
| `POST /hooks/email-verified` | the account's email has been verified |

Both take `{"uid": "..."}` and a shared secret in `X-Hook-Secret`. Both
provision `users/{uid}`; when the email is verified, pending invites for that
address are moved onto the uid.
"""
import hmac
import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header

from backend.app.config import Settings, get_identity, get_settings, get_store
from backend.app.core.errors import InvalidArgument, ResourceNotFound, Unauthenticated
from backend.app.core.rules import DEFINED, NON_BLANK, STRING, ValidationField, check_rules
from backend.app.repositories.documents import DocumentStore
from backend.app.repositories.identity import IdentityProvider
from backend.app.services.accounts import ensure_profile, promote_pending_invites

logger = logging.getLogger("planner.hooks")

router = APIRouter(prefix="/hooks", tags=["Hooks"])


def require_hook_secret(
    x_hook_secret: Optional[str] = Header(None),
    config: Settings = Depends(get_settings),
) -> None:
    if not config.hook_secret or not x_hook_secret:
        raise Unauthenticated("Hook secret missing")
    if not hmac.compare_digest(x_hook_secret, config.hook_secret):
        raise Unauthenticated("Hook secret mismatch")


def _sync_account(data: Any, store: DocumentStore, identity: IdentityProvider, config: Settings) -> dict:
    if not isinstance(data, dict):
        raise InvalidArgument("No parameters have been provided.")
    uid = data.get("uid")
    check_rules([ValidationField("uid", uid, [DEFINED, STRING, NON_BLANK])])
    user = identity.get_user(uid)
    if user is None:
        raise ResourceNotFound(str(uid), resource="user")

    ensure_profile(store, user.uid, user.email, user.display_name, user.photo_url)
    promoted = 0
    if user.email_verified or not config.require_verified_email:
        promoted = promote_pending_invites(store, user.email, user.uid)
    logger.info("Synced account %s (promoted on %d activities)", user.uid, promoted)
    return {"uid": user.uid, "promoted": promoted}


@router.post("/user-created", dependencies=[Depends(require_hook_secret)])
def user_created(
    data: Any = Body(None),
    store: DocumentStore = Depends(get_store),
    identity: IdentityProvider = Depends(get_identity),
    config: Settings = Depends(get_settings),
):
    return _sync_account(data, store, identity, config)


@router.post("/email-verified", dependencies=[Depends(require_hook_secret)])
def email_verified(
    data: Any = Body(None),
    store: DocumentStore = Depends(get_store),
    identity: IdentityProvider = Depends(get_identity),
    config: Settings = Depends(get_settings),
):
    return _sync_account(data, store, identity, config)
