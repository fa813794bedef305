"""
# `app/routers/signatures.py` - Digital sign-off

Each edit-capable person signs for themselves; the signature lives on the
activity document under `signatures.<uid>`. Sending `signature: null`
withdraws it.
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from backend.app.core.auth import get_optional_principal
from backend.app.core.errors import InvalidArgument
from backend.app.core.guard import DocumentAccessGuard, get_guard
from backend.app.core.paths import FieldPath
from backend.app.core.rules import NON_BLANK, STRING, ValidationField
from backend.app.repositories.documents import DELETE, SERVER_TIMESTAMP, to_jsonable
from backend.app.schemas.principal import Principal

logger = logging.getLogger("planner.signatures")

router = APIRouter(prefix="/activities", tags=["Signatures"])

SIGNATURES = FieldPath.of("signatures")


@router.get("/{activity_id}/signatures", summary="Signatures on an activity")
def get_signatures(
    activity_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    ctx = guard.open_activity(principal, activity_id)
    signed = SIGNATURES.resolve(ctx.data) or {}
    return [
        {
            "uid": uid,
            "name": entry.get("name"),
            "signature": entry.get("signature"),
            "role": entry.get("role"),
            "signedAt": to_jsonable(entry.get("signedAt")),
        }
        for uid, entry in sorted(signed.items())
        if isinstance(entry, dict)
    ]


@router.put("/{activity_id}/signature", summary="Sign (or withdraw a signature)")
def set_signature(
    activity_id: str,
    data: Any = Body(None),
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    ctx = guard.open_for_edit(principal, activity_id, data)
    if "signature" not in data:
        raise InvalidArgument("The argument signature is undefined.")
    field = SIGNATURES.child(ctx.principal.uid)

    signature = data.get("signature")
    if signature is None:
        guard.commit(ctx, {field: DELETE})
        logger.info("%s withdrew their signature on activity %s", ctx.principal.uid, ctx.id)
        return {"uid": ctx.principal.uid, "signed": False}

    name = data.get("name") or ctx.principal.display_name or ctx.principal.email
    guard.validate([
        ValidationField("signature", signature, [STRING, NON_BLANK]),
        ValidationField("name", name, [STRING]),
    ])
    guard.commit(ctx, {
        field: {
            "name": name,
            "signature": signature,
            "role": ctx.role.value,
            "signedAt": SERVER_TIMESTAMP,
        }
    })
    logger.info("%s signed activity %s", ctx.principal.uid, ctx.id)
    return {"uid": ctx.principal.uid, "signed": True, "name": name, "role": ctx.role.value}
