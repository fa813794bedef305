"""
# `app/routers/risks.py` - Risk assessment rows

Each risk is its own document under `activities/{activity_id}/risks`.
`riskRating` is derived from `likelihood` and `consequence` on every write.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from backend.app.core.auth import get_optional_principal
from backend.app.core.errors import ResourceNotFound
from backend.app.core.guard import ActivityContext, DocumentAccessGuard, get_guard
from backend.app.core.paths import FieldPath
from backend.app.core.rules import DEFINED, NON_BLANK, STRING, ValidationField, fields_from, one_of, present_values
from backend.app.repositories.documents import SERVER_TIMESTAMP, Snapshot, to_jsonable
from backend.app.schemas.principal import Principal

logger = logging.getLogger("planner.risks")

router = APIRouter(prefix="/activities", tags=["Risks"])

LIKELIHOOD = ("Rare", "Unlikely", "Possible", "Likely", "Almost Certain")
CONSEQUENCE = ("Insignificant", "Minor", "Moderate", "Major", "Catastrophic")

RISK_RULES = {
    "hazard": [STRING, NON_BLANK],
    "who": [STRING],
    "controls": [STRING],
    "likelihood": [one_of(*LIKELIHOOD)],
    "consequence": [one_of(*CONSEQUENCE)],
}
CREATE_RULES = {**RISK_RULES, "hazard": [DEFINED, STRING, NON_BLANK]}


def risk_rating(likelihood: Optional[str], consequence: Optional[str]) -> Optional[str]:
    """5x5 matrix: the sum of both indices, banded into four ratings."""
    if likelihood not in LIKELIHOOD or consequence not in CONSEQUENCE:
        return None
    score = LIKELIHOOD.index(likelihood) + CONSEQUENCE.index(consequence)
    if score <= 2:
        return "Low"
    if score <= 4:
        return "Medium"
    if score <= 6:
        return "High"
    return "Extreme"


def _risks_path(ctx: ActivityContext) -> str:
    return f"{ctx.path}/risks"


def _project(snap: Snapshot) -> Dict[str, Any]:
    out = {"id": snap.id}
    for name in RISK_RULES:
        out[name] = snap.data.get(name)
    out["riskRating"] = snap.data.get("riskRating")
    out["updatedAt"] = to_jsonable(snap.data.get("updatedAt"))
    return out


def _load_risk(guard: DocumentAccessGuard, ctx: ActivityContext, risk_id: str) -> Snapshot:
    snap = guard.store.get(f"{_risks_path(ctx)}/{risk_id}") if risk_id and "/" not in risk_id else None
    if snap is None or not snap.exists:
        raise ResourceNotFound(risk_id, resource="risk")
    return snap


@router.get("/{activity_id}/risks", summary="List risks")
def list_risks(
    activity_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    ctx = guard.open_activity(principal, activity_id)
    snaps = guard.store.list(_risks_path(ctx))
    snaps.sort(key=lambda s: str(to_jsonable(s.data.get("createdAt")) or ""))
    return [_project(s) for s in snaps]


@router.post("/{activity_id}/risks", status_code=201, summary="Add a risk")
def create_risk(
    activity_id: str,
    data: Any = Body(None),
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    ctx = guard.open_for_edit(principal, activity_id, data)
    guard.validate(fields_from(data, CREATE_RULES))

    doc = {name: data.get(name) for name in RISK_RULES}
    doc["riskRating"] = risk_rating(doc["likelihood"], doc["consequence"])
    doc["createdBy"] = ctx.principal.uid
    doc["createdAt"] = SERVER_TIMESTAMP
    doc["updatedAt"] = SERVER_TIMESTAMP
    risk_id = guard.store.add(_risks_path(ctx), doc)
    logger.info("Risk %s added to activity %s", risk_id, ctx.id)
    return _project(guard.store.get(f"{_risks_path(ctx)}/{risk_id}"))


@router.put("/{activity_id}/risks/{risk_id}", summary="Update a risk")
def update_risk(
    activity_id: str,
    risk_id: str,
    data: Any = Body(None),
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    ctx = guard.open_for_edit(principal, activity_id, data)
    current = _load_risk(guard, ctx, risk_id)

    updates = present_values(data, RISK_RULES)
    guard.validate(ValidationField(path, value, RISK_RULES[path.dotted]) for path, value in updates.items())

    merged = {**current.data, **{path.dotted: value for path, value in updates.items()}}
    updates[FieldPath.of("riskRating")] = risk_rating(merged.get("likelihood"), merged.get("consequence"))
    updates[FieldPath.of("updatedAt")] = SERVER_TIMESTAMP
    path = f"{_risks_path(ctx)}/{risk_id}"
    guard.store.update(path, updates)
    return _project(guard.store.get(path))


@router.delete("/{activity_id}/risks/{risk_id}", summary="Delete a risk")
def delete_risk(
    activity_id: str,
    risk_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    ctx = guard.open_for_edit(principal, activity_id, body=False)
    _load_risk(guard, ctx, risk_id)
    guard.store.delete(f"{_risks_path(ctx)}/{risk_id}")
    logger.info("Risk %s deleted from activity %s", risk_id, ctx.id)
    return {"id": risk_id, "deleted": True}
