"""
app/core/rules.py
Declarative field validation.

Handlers describe their input as a list of ``ValidationField`` objects (a
path, the submitted value and the rules it must meet) and hand it to
``check_rules``. Rules are evaluated in order and the first failing rule of
a field stops that field's checks.

Absent or ``None`` values pass every rule except ``DEFINED`` and
``NON_BLANK``: a field is optional unless one of those is listed.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Tuple

from backend.app.core.errors import InvalidArgument
from backend.app.core.paths import FieldPath, PathLike, as_path
from backend.app.core.roles import ROLE_VALUES

EMAIL_PATTERN = re.compile(r".+@.+")


class RuleKind(str, Enum):
    DEFINED = "defined"
    NON_BLANK = "nonBlank"
    TYPE_STRING = "typeString"
    TYPE_NUMBER = "typeNumber"
    TYPE_INTEGER = "typeInteger"
    TYPE_BOOLEAN = "typeBoolean"
    TYPE_ARRAY = "typeArray"
    TYPE_OBJECT = "typeObject"
    ENUM_MEMBERSHIP = "enumMembership"
    EMAIL_SHAPE = "emailShape"
    PATTERN = "pattern"
    STRUCTURED_PEOPLE_LIST = "structuredPeopleList"
    STRUCTURED_RECORD_LIST = "structuredRecordList"


Columns = Tuple[Tuple[str, Tuple["Rule", ...]], ...]


@dataclass(frozen=True)
class Rule:
    kind: RuleKind
    allowed: Tuple[str, ...] = ()
    columns: Columns = ()
    pattern: str = ""
    label: str = ""
    parse: Optional[Callable[[str], Any]] = None

    def check(self, value: Any) -> bool:
        return _CHECKS[self.kind](self, value)

    def message(self, name: str) -> str:
        if self.kind is RuleKind.ENUM_MEMBERSHIP:
            return f"The argument {name} must be one of: {', '.join(self.allowed)}."
        if self.kind is RuleKind.PATTERN:
            return f"The argument {name} must be a {self.label}."
        if self.kind is RuleKind.STRUCTURED_RECORD_LIST:
            cols = ", ".join(c for c, _ in self.columns)
            return f"The argument {name} must contain objects with valid {cols} properties."
        return _MESSAGES[self.kind].format(name=name)


_MESSAGES = {
    RuleKind.DEFINED: "The argument {name} is undefined.",
    RuleKind.NON_BLANK: "The argument {name} must not be blank.",
    RuleKind.TYPE_STRING: "The argument {name} is not a string.",
    RuleKind.TYPE_NUMBER: "The argument {name} is not a number.",
    RuleKind.TYPE_INTEGER: "The argument {name} is not an integer.",
    RuleKind.TYPE_BOOLEAN: "The argument {name} is not a boolean.",
    RuleKind.TYPE_ARRAY: "The argument {name} is not an array.",
    RuleKind.TYPE_OBJECT: "The argument {name} is not an object.",
    RuleKind.EMAIL_SHAPE: "The argument {name} is not a valid email address.",
    RuleKind.STRUCTURED_PEOPLE_LIST: (
        "The argument {name} must contain objects with valid email and role properties."
    ),
}


def _is_email(v: Any) -> bool:
    return isinstance(v, str) and EMAIL_PATTERN.fullmatch(v.strip()) is not None


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _people_ok(rule: Rule, v: Any) -> bool:
    if v is None:
        return True
    if not isinstance(v, list):
        return False
    return all(
        isinstance(p, Mapping) and _is_email(p.get("email")) and p.get("role") in ROLE_VALUES
        for p in v
    )


def _pattern_ok(rule: Rule, v: Any) -> bool:
    if v is None:
        return True
    if not isinstance(v, str) or re.fullmatch(rule.pattern, v) is None:
        return False
    if rule.parse is not None:
        try:
            rule.parse(v)
        except ValueError:
            return False
    return True


def _records_ok(rule: Rule, v: Any) -> bool:
    if v is None:
        return True
    if not isinstance(v, list):
        return False
    known = {name for name, _ in rule.columns}
    for record in v:
        if not isinstance(record, Mapping) or not set(record) <= known:
            return False
        fields = [ValidationField(name, record.get(name), rules) for name, rules in rule.columns]
        if not check_rules(fields, lenient=True):
            return False
    return True


_CHECKS = {
    RuleKind.DEFINED: lambda r, v: v is not None,
    RuleKind.NON_BLANK: lambda r, v: v is not None and (not isinstance(v, str) or bool(v.strip())),
    RuleKind.TYPE_STRING: lambda r, v: v is None or isinstance(v, str),
    RuleKind.TYPE_NUMBER: lambda r, v: v is None or _is_number(v),
    RuleKind.TYPE_INTEGER: lambda r, v: v is None or (isinstance(v, int) and not isinstance(v, bool)),
    RuleKind.TYPE_BOOLEAN: lambda r, v: v is None or isinstance(v, bool),
    RuleKind.TYPE_ARRAY: lambda r, v: v is None or isinstance(v, list),
    RuleKind.TYPE_OBJECT: lambda r, v: v is None or isinstance(v, Mapping),
    RuleKind.ENUM_MEMBERSHIP: lambda r, v: v is None or v in r.allowed,
    RuleKind.EMAIL_SHAPE: lambda r, v: v is None or _is_email(v),
    RuleKind.PATTERN: _pattern_ok,
    RuleKind.STRUCTURED_PEOPLE_LIST: _people_ok,
    RuleKind.STRUCTURED_RECORD_LIST: _records_ok,
}

# ready-made rules
DEFINED = Rule(RuleKind.DEFINED)
NON_BLANK = Rule(RuleKind.NON_BLANK)
STRING = Rule(RuleKind.TYPE_STRING)
NUMBER = Rule(RuleKind.TYPE_NUMBER)
INTEGER = Rule(RuleKind.TYPE_INTEGER)
BOOLEAN = Rule(RuleKind.TYPE_BOOLEAN)
ARRAY = Rule(RuleKind.TYPE_ARRAY)
OBJECT = Rule(RuleKind.TYPE_OBJECT)
EMAIL = Rule(RuleKind.EMAIL_SHAPE)
PEOPLE = Rule(RuleKind.STRUCTURED_PEOPLE_LIST)


def one_of(*allowed: str) -> Rule:
    return Rule(RuleKind.ENUM_MEMBERSHIP, allowed=tuple(allowed))


def matches(pattern: str, label: str, parse: Optional[Callable[[str], Any]] = None) -> Rule:
    """String, if present, must match ``pattern`` in full and, given ``parse``, parse without ValueError."""
    return Rule(RuleKind.PATTERN, pattern=pattern, label=label, parse=parse)


DATE = matches(r"\d{4}-\d{2}-\d{2}", "date (YYYY-MM-DD)", parse=date.fromisoformat)
TIME = matches(r"([01]\d|2[0-3]):[0-5]\d", "time (HH:MM)")


def records(**columns: Sequence[Rule]) -> Rule:
    """Array of records; each column is checked with its own rules."""
    return Rule(
        RuleKind.STRUCTURED_RECORD_LIST,
        columns=tuple((name, tuple(rules)) for name, rules in columns.items()),
    )


# --------- engine --------- #

class ValidationError(InvalidArgument):
    def __init__(self, field: FieldPath, rule: Rule):
        super().__init__(rule.message(field.dotted))
        self.field = field
        self.rule_kind = rule.kind


class ValidationField:
    __slots__ = ("path", "value", "rules")

    def __init__(self, name: PathLike, value: Any, rules: Iterable[Rule] = ()):
        self.path = as_path(name)
        self.value = value
        self.rules = tuple(rules)

    @property
    def name(self) -> str:
        return self.path.dotted

    def __repr__(self) -> str:
        return f"ValidationField({self.name!r}, {self.value!r})"


def check_rules(fields: Iterable[ValidationField], lenient: bool = False) -> bool:
    """
    Check every field against its rules.

    Strict (default): raise ``ValidationError`` on the first violation.
    Lenient: skip the rest of a failing field, carry on, and return False.
    """
    passed = True
    for field in fields:
        for rule in field.rules:
            if rule.check(field.value):
                continue
            if not lenient:
                raise ValidationError(field.path, rule)
            passed = False
            break
    return passed


def fields_from(data: Optional[Mapping[str, Any]], schema: Mapping[str, Sequence[Rule]]) -> list:
    """Build ``ValidationField`` objects by resolving each schema path in ``data``."""
    return [ValidationField(name, as_path(name).resolve(data), rules) for name, rules in schema.items()]


def present_values(data: Optional[Mapping[str, Any]], names: Iterable[PathLike]) -> dict:
    """``{FieldPath: value}`` for every path the caller actually sent (``None`` included)."""
    out = {}
    for name in names:
        path = as_path(name)
        if path.is_present(data):
            out[path] = path.resolve(data)
    return out
