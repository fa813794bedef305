"""
# `app/routers/users.py` - Profiles and user lookup

## Endpoints

### `POST /users/lookup`
**Purpose:** tell the client which emails already belong to an account
before it assigns roles.

**Body:** `{"emails": ["a@b.com", ...]}`

### `GET /users/me`
**Purpose:** the caller's profile. Created from the Firebase account on first read.

### `PATCH /users/me`
**Purpose:** partial profile update. Only keys present in the body are written;
`emergencyContact` is merged key by key.
"""
from typing import Any, List

from fastapi import APIRouter, Body, Depends

from backend.app.config import get_identity, get_store
from backend.app.core.auth import get_principal
from backend.app.core.errors import InvalidArgument
from backend.app.core.paths import FieldPath
from backend.app.core.rules import (
    ARRAY, DEFINED, EMAIL, NON_BLANK, OBJECT, STRING, ValidationField, check_rules, present_values,
)
from backend.app.repositories.documents import SERVER_TIMESTAMP, DocumentStore
from backend.app.repositories.identity import IdentityProvider
from backend.app.schemas.principal import Principal
from backend.app.schemas.user import UserLookupOut, UserProfile
from backend.app.services.accounts import ensure_profile, profile_path

router = APIRouter(prefix="/users", tags=["Users"])

PROFILE_RULES = {
    "displayName": [STRING, NON_BLANK],
    "phone": [STRING],
    "emergencyContact": [OBJECT],
    "emergencyContact.name": [STRING],
    "emergencyContact.phone": [STRING],
    "dietaryRequirements": [STRING],
    "medicalNotes": [STRING],
}
MAX_LOOKUP = 100


def _profile_out(uid: str, data: dict) -> UserProfile:
    return UserProfile(
        id=uid,
        displayName=data.get("displayName"),
        email=data.get("email"),
        photoURL=data.get("photoURL"),
        phone=data.get("phone"),
        emergencyContact=data.get("emergencyContact") or {},
        dietaryRequirements=data.get("dietaryRequirements"),
        medicalNotes=data.get("medicalNotes"),
    )


@router.post("/lookup", response_model=List[UserLookupOut], summary="Which emails have accounts")
def lookup_users(
    data: Any = Body(None),
    principal: Principal = Depends(get_principal),
    identity: IdentityProvider = Depends(get_identity),
):
    emails = data.get("emails") if isinstance(data, dict) else None
    check_rules([ValidationField("emails", emails, [DEFINED, ARRAY])])
    if len(emails) > MAX_LOOKUP:
        raise InvalidArgument(f"The argument emails can hold at most {MAX_LOOKUP} addresses.")
    check_rules(
        ValidationField(FieldPath.of("emails", str(i)), e, [DEFINED, STRING, EMAIL])
        for i, e in enumerate(emails)
    )
    if not emails:
        return []

    result = identity.get_users([{"email": e.strip()} for e in emails])
    return [
        *(UserLookupOut(userExists=True, email=u.email, displayName=u.display_name, photoURL=u.photo_url)
          for u in result.found),
        *(UserLookupOut(userExists=False, email=nf["email"]) for nf in result.not_found),
    ]


@router.get("/me", response_model=UserProfile)
def get_my_profile(
    principal: Principal = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    """
    Get the profile of the currently authenticated user.
    """
    data = ensure_profile(store, principal.uid, principal.email, principal.display_name, principal.photo_url)
    return _profile_out(principal.uid, data)


@router.patch("/me", response_model=UserProfile)
def update_my_profile(
    data: Any = Body(None),
    principal: Principal = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    if not isinstance(data, dict):
        raise InvalidArgument("No parameters have been provided.")
    ensure_profile(store, principal.uid, principal.email, principal.display_name, principal.photo_url)

    updates = present_values(data, PROFILE_RULES)
    contact = FieldPath.of("emergencyContact")
    if contact in updates and updates[contact] is not None:
        check_rules([ValidationField(contact, updates.pop(contact), PROFILE_RULES["emergencyContact"])])
    check_rules(ValidationField(path, value, PROFILE_RULES[path.dotted]) for path, value in updates.items())

    if updates:
        updates[FieldPath.of("updatedAt")] = SERVER_TIMESTAMP
        store.update(profile_path(principal.uid), updates)
    return _profile_out(principal.uid, store.get(profile_path(principal.uid)).data)
