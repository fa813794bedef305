"""
app/core/paths.py
Field paths into nested documents.

A path is an ordered tuple of segment names. Segments may themselves contain
dots (email keys do), so never build a path by joining strings: use
``FieldPath.of(...)`` or ``parent.child(...)`` and let the document store
render it for the backend.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Tuple, Union

_ABSENT = object()


@dataclass(frozen=True)
class FieldPath:
    segments: Tuple[str, ...]

    def __post_init__(self):
        if not self.segments or any(not isinstance(s, str) or s == "" for s in self.segments):
            raise ValueError(f"Invalid field path segments: {self.segments!r}")

    @classmethod
    def of(cls, *segments: str) -> "FieldPath":
        return cls(tuple(segments))

    @classmethod
    def parse(cls, dotted: str) -> "FieldPath":
        """``"activityLeader.name"`` -> ``("activityLeader", "name")``."""
        return cls(tuple(dotted.split(".")))

    def child(self, *segments: str) -> "FieldPath":
        return FieldPath(self.segments + tuple(segments))

    @property
    def dotted(self) -> str:
        return ".".join(self.segments)

    @property
    def leaf(self) -> str:
        return self.segments[-1]

    def _lookup(self, data: Any) -> Any:
        current = data
        for segment in self.segments:
            if not isinstance(current, Mapping) or segment not in current:
                return _ABSENT
            current = current[segment]
        return current

    def resolve(self, data: Any, default: Any = None) -> Any:
        """Value at this path, or ``default`` when any segment is missing."""
        value = self._lookup(data)
        return default if value is _ABSENT else value

    def is_present(self, data: Any) -> bool:
        return self._lookup(data) is not _ABSENT

    def __str__(self) -> str:
        return self.dotted


PathLike = Union[FieldPath, str]


def as_path(name: PathLike) -> FieldPath:
    return name if isinstance(name, FieldPath) else FieldPath.parse(name)
