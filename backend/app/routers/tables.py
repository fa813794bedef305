"""
# `app/routers/tables.py` - Tabular paperwork

Stored on the activity document as `tables.<name>`, a list of row objects.
A PUT replaces every row of one table; other tables are untouched.
"""
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from backend.app.core.auth import get_optional_principal
from backend.app.core.errors import InvalidArgument
from backend.app.core.guard import DocumentAccessGuard, get_guard
from backend.app.core.paths import FieldPath
from backend.app.core.rules import ARRAY, DEFINED, INTEGER, NON_BLANK, STRING, TIME, ValidationField, records
from backend.app.repositories.documents import SERVER_TIMESTAMP
from backend.app.schemas.principal import Principal

router = APIRouter(prefix="/activities", tags=["Tables"])

TABLES_FIELD = FieldPath.of("tables")
MAX_ROWS = 200

TABLES = {
    "route": records(
        location=[DEFINED, STRING, NON_BLANK],
        time=[STRING, TIME],
        notes=[STRING],
    ),
    "equipment": records(
        item=[DEFINED, STRING, NON_BLANK],
        quantity=[INTEGER],
        notes=[STRING],
    ),
    "contacts": records(
        name=[DEFINED, STRING, NON_BLANK],
        phone=[STRING],
        relationship=[STRING],
    ),
}


def _table_rule(name: str):
    if name not in TABLES:
        raise InvalidArgument(f"The table {name} doesn't exist. Tables: {', '.join(TABLES)}.")
    return TABLES[name]


@router.get("/{activity_id}/tables", summary="Every table on an activity")
def get_tables(
    activity_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    ctx = guard.open_activity(principal, activity_id)
    return {name: TABLES_FIELD.child(name).resolve(ctx.data) or [] for name in TABLES}


@router.get("/{activity_id}/tables/{table}", summary="Rows of one table")
def get_table(
    activity_id: str,
    table: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    _table_rule(table)
    ctx = guard.open_activity(principal, activity_id)
    return {"table": table, "rows": TABLES_FIELD.child(table).resolve(ctx.data) or []}


@router.put("/{activity_id}/tables/{table}", summary="Replace the rows of one table")
def set_table(
    activity_id: str,
    table: str,
    data: Any = Body(None),
    principal: Optional[Principal] = Depends(get_optional_principal),
    guard: DocumentAccessGuard = Depends(get_guard),
):
    rule = _table_rule(table)
    ctx = guard.open_for_edit(principal, activity_id, data, "rows")
    rows = data["rows"]
    guard.validate([ValidationField("rows", rows, [ARRAY, rule])])
    if len(rows) > MAX_ROWS:
        raise InvalidArgument(f"The argument rows can hold at most {MAX_ROWS} rows.")

    guard.commit(ctx, {TABLES_FIELD.child(table): rows, FieldPath.of("updatedAt"): SERVER_TIMESTAMP})
    return {"table": table, "rows": rows}
