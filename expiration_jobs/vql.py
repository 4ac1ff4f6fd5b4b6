"""
Typed builder for Vault Query Language (VQL) statements.

Conditions are values, not strings: thresholds and field names can be
inspected in tests, and every literal is quoted and escaped in one place.

Example:
    query = (
        Query.select("id", "document_number__v")
        .from_("documents")
        .where(Between("expiration_date__c", date(2026, 1, 1), date(2026, 2, 1)))
    )
    query.render()
    # "select id, document_number__v from documents
    #  where expiration_date__c between '2026-01-01' and '2026-02-01'"
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Sequence, Tuple, Union


@dataclass(frozen=True)
class Func:
    """A VQL function call used as a value or field, e.g. ``steadyState()``."""

    name: str
    argument: str = ""

    def render(self) -> str:
        return f"{self.name}({self.argument})"


Value = Union[str, int, float, Decimal, bool, date, Func]
FieldRef = Union[str, Func]


def to_name(field_name: str) -> Func:
    """``toName(field)``: compare picklist/reference fields by API name."""
    return Func("toName", field_name)


def steady_state() -> Func:
    return Func("steadyState")


def quote(value: Value) -> str:
    """Render a literal value for a VQL statement."""
    if isinstance(value, Func):
        return value.render()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, date):
        return f"'{value.isoformat()}'"
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _render_field(ref: FieldRef) -> str:
    return ref.render() if isinstance(ref, Func) else ref


@dataclass(frozen=True)
class Comparison:
    field: FieldRef
    operator: str
    value: Value

    def render(self) -> str:
        return f"{_render_field(self.field)} {self.operator} {quote(self.value)}"


def eq(field_ref: FieldRef, value: Value) -> Comparison:
    return Comparison(field_ref, "=", value)


def ne(field_ref: FieldRef, value: Value) -> Comparison:
    return Comparison(field_ref, "!=", value)


def le(field_ref: FieldRef, value: Value) -> Comparison:
    return Comparison(field_ref, "<=", value)


def ge(field_ref: FieldRef, value: Value) -> Comparison:
    return Comparison(field_ref, ">=", value)


@dataclass(frozen=True)
class Between:
    """Closed range ``field between low and high``."""

    field: FieldRef
    low: Value
    high: Value

    def render(self) -> str:
        return f"{_render_field(self.field)} between {quote(self.low)} and {quote(self.high)}"


@dataclass(frozen=True)
class ContainsAny:
    """``field contains ('a', 'b')``."""

    field: FieldRef
    values: Tuple[Value, ...]

    def __post_init__(self) -> None:
        if not self.values:
            raise ValueError("contains filter needs at least one value")

    def render(self) -> str:
        joined = ", ".join(quote(v) for v in self.values)
        return f"{_render_field(self.field)} contains ({joined})"


Condition = Union[Comparison, Between, ContainsAny]


@dataclass(frozen=True)
class Query:
    """Immutable ``select ... from ... where ...`` statement."""

    fields: Tuple[str, ...]
    source: str = ""
    conditions: Tuple[Condition, ...] = field(default_factory=tuple)

    @classmethod
    def select(cls, *fields: str) -> "Query":
        if not fields:
            raise ValueError("select needs at least one field")
        return cls(fields=tuple(fields))

    def from_(self, source: str) -> "Query":
        return Query(self.fields, source, self.conditions)

    def where(self, *conditions: Condition) -> "Query":
        return Query(self.fields, self.source, self.conditions + tuple(conditions))

    def condition(self, kind: type, field_ref: Any) -> Condition:
        """Return the first condition of ``kind`` on ``field_ref``.

        Raises:
            KeyError: If no such condition exists
        """
        for cond in self.conditions:
            if isinstance(cond, kind) and cond.field == field_ref:
                return cond
        raise KeyError(f"{kind.__name__} on {field_ref!r}")

    def render(self) -> str:
        if not self.source:
            raise ValueError("query has no source object")
        statement = f"select {', '.join(self.fields)} from {self.source}"
        if self.conditions:
            statement += " where " + " and ".join(c.render() for c in self.conditions)
        return statement

    def __str__(self) -> str:
        return self.render()


def contains_any(field_ref: FieldRef, values: Sequence[Value]) -> ContainsAny:
    return ContainsAny(field_ref, tuple(values))
