"""
app/repositories/documents.py
Document Store: a narrow contract over Cloud Firestore.

Handlers and the guard only talk to a ``DocumentStore``; the Firestore
implementation below is the production one and ``tests/fakes.py`` carries an
in-memory one. Paths are slash separated (``"activities/abc"``,
``"activities/abc/risks"``); field paths inside a document are ``FieldPath``
objects so keys containing dots (emails) address a single field.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

from google.api_core.exceptions import FailedPrecondition, NotFound
from google.cloud import firestore as gcf
from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.field_path import FieldPath as FirestoreFieldPath

from backend.app.core.errors import ConcurrentModification
from backend.app.core.paths import FieldPath, PathLike, as_path

logger = logging.getLogger("planner.store")


class _Delete:
    def __repr__(self) -> str:
        return "DELETE"


# Value in a partial update that removes the field.
DELETE = _Delete()
# Value replaced by the commit time on the server.
SERVER_TIMESTAMP = gcf.SERVER_TIMESTAMP

Updates = Mapping[Union[FieldPath, str], Any]


@dataclass
class Snapshot:
    id: str
    exists: bool
    data: Dict[str, Any] = field(default_factory=dict)
    update_time: Optional[Any] = None


class DocumentStore(Protocol):
    def get(self, path: str) -> Snapshot: ...

    def set(self, path: str, doc: Dict[str, Any], merge: bool = False) -> None: ...

    def update(self, path: str, updates: Updates, if_unchanged_since: Any = None) -> None: ...

    def add(self, collection_path: str, doc: Dict[str, Any]) -> str: ...

    def delete(self, path: str) -> None: ...

    def where(self, collection_path: str, field_path: PathLike, op: str, value: Any) -> List[Snapshot]: ...

    def list(self, collection_path: str) -> List[Snapshot]: ...


def _to_snapshot(snap) -> Snapshot:
    return Snapshot(
        id=snap.id,
        exists=bool(snap.exists),
        data=(snap.to_dict() or {}) if snap.exists else {},
        update_time=getattr(snap, "update_time", None),
    )


def _render(path: PathLike) -> str:
    """FieldPath -> Firestore field path string (quotes segments with dots, '@', ...)."""
    return FirestoreFieldPath(*as_path(path).segments).to_api_repr()


def _render_value(value: Any) -> Any:
    return gcf.DELETE_FIELD if value is DELETE else value


class FirestoreDocumentStore:
    """``DocumentStore`` backed by a ``google.cloud.firestore.Client``."""

    ALLOWED_OPS = ("==", "in")

    def __init__(self, client):
        self._db = client

    def get(self, path: str) -> Snapshot:
        return _to_snapshot(self._db.document(path).get())

    def set(self, path: str, doc: Dict[str, Any], merge: bool = False) -> None:
        self._db.document(path).set(doc, merge=merge)

    def update(self, path: str, updates: Updates, if_unchanged_since: Any = None) -> None:
        if not updates:
            return
        payload = {_render(k): _render_value(v) for k, v in updates.items()}
        option = None
        if if_unchanged_since is not None:
            option = self._db.write_option(last_update_time=if_unchanged_since)
        try:
            self._db.document(path).update(payload, option=option)
        except FailedPrecondition as exc:
            logger.info("Precondition failed updating %s: %s", path, exc)
            raise ConcurrentModification() from exc

    def add(self, collection_path: str, doc: Dict[str, Any]) -> str:
        _, ref = self._db.collection(collection_path).add(doc)
        return ref.id

    def delete(self, path: str) -> None:
        try:
            self._db.document(path).delete()
        except NotFound:
            pass

    def where(self, collection_path: str, field_path: PathLike, op: str, value: Any) -> List[Snapshot]:
        if op not in self.ALLOWED_OPS:
            raise ValueError(f"Unsupported query operator: {op}")
        query = self._db.collection(collection_path).where(
            filter=FieldFilter(_render(field_path), op, list(value) if op == "in" else value)
        )
        return [_to_snapshot(s) for s in query.stream()]

    def list(self, collection_path: str) -> List[Snapshot]:
        return [_to_snapshot(s) for s in self._db.collection(collection_path).stream()]


def to_jsonable(value: Any) -> Any:
    """Firestore timestamps (and datetimes) -> ISO strings, recursively."""
    if hasattr(value, "to_datetime"):
        return value.to_datetime().isoformat()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    return value
