# app/core/auth.py
from typing import Optional
from fastapi import Depends, Request

from backend.app.config import get_identity
from backend.app.core.errors import Unauthenticated
from backend.app.repositories.identity import IdentityProvider
from backend.app.schemas.principal import Principal


def _extract_bearer_token(request: Request) -> Optional[str]:
    """
    Token from an ``Authorization: Bearer <id_token>`` header, or None.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def _token_to_principal(decoded: dict) -> Principal:
    uid = decoded.get("uid") or decoded.get("user_id")
    if not uid:
        raise Unauthenticated("Token missing uid.")
    return Principal(
        uid=uid,
        email=decoded.get("email"),
        email_verified=bool(decoded.get("email_verified")),
        display_name=decoded.get("name"),
        photo_url=decoded.get("picture"),
    )

# --------- FastAPI Dependencies --------- #

def get_optional_principal(
    request: Request,
    identity: IdentityProvider = Depends(get_identity),
) -> Optional[Principal]:
    """
    Token is optional: verified and returned as a Principal when present, else None.
    """
    token = _extract_bearer_token(request)
    if not token:
        return None
    return _token_to_principal(identity.verify_id_token(token))


async def get_principal(principal: Optional[Principal] = Depends(get_optional_principal)) -> Principal:
    """
    Token is required.
    """
    if principal is None:
        raise Unauthenticated()
    return principal
