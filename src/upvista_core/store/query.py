"""PostgREST filter and ordering builders.

A :class:`Filter` collects ``(field, "op.value")`` pairs that are sent as
query-string parameters. Values are rendered into the PostgREST text grammar
here so callers never build operator strings by hand.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from upvista_core.utils.timestamps import format_timestamp

_RESERVED = set(',.:()"')


def render_value(value: Any) -> str:
    """Render a Python value as a PostgREST literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return format_timestamp(value)
    return str(value)


def _quote(value: Any) -> str:
    text = render_value(value)
    if any(char in _RESERVED for char in text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


@dataclass
class Filter:
    """Chainable row filter.

    Each method appends one predicate and returns the filter, so queries read
    ``Filter().eq("user_id", uid).is_("deleted_at", None)``.
    """

    conditions: list[tuple[str, str]] = field(default_factory=list)

    def _add(self, column: str, op: str, value: str) -> Filter:
        self.conditions.append((column, f"{op}.{value}"))
        return self

    def eq(self, column: str, value: Any) -> Filter:
        return self._add(column, "eq", render_value(value))

    def in_(self, column: str, values: Iterable[Any]) -> Filter:
        rendered = ",".join(_quote(value) for value in values)
        return self._add(column, "in", f"({rendered})")

    def is_(self, column: str, value: bool | None) -> Filter:
        return self._add(column, "is", render_value(value))

    def ilike(self, column: str, pattern: str) -> Filter:
        return self._add(column, "ilike", pattern)

    def lt(self, column: str, value: Any) -> Filter:
        return self._add(column, "lt", render_value(value))

    def gt(self, column: str, value: Any) -> Filter:
        return self._add(column, "gt", render_value(value))

    def gte(self, column: str, value: Any) -> Filter:
        return self._add(column, "gte", render_value(value))

    def lte(self, column: str, value: Any) -> Filter:
        return self._add(column, "lte", render_value(value))

    def or_(self, *alternatives: Filter) -> Filter:
        """Combine the predicates of ``alternatives`` with a logical OR."""
        parts = [
            f"{column}.{expression}"
            for alternative in alternatives
            for column, expression in alternative.conditions
        ]
        self.conditions.append(("or", f"({','.join(parts)})"))
        return self

    def copy(self) -> Filter:
        return Filter(list(self.conditions))

    def to_params(self) -> list[tuple[str, str]]:
        return list(self.conditions)


@dataclass(frozen=True)
class Order:
    """Sequence of ``(column, direction)`` pairs."""

    columns: tuple[tuple[str, str], ...]

    @classmethod
    def by(cls, *columns: str) -> Order:
        """Build an ordering from ``"col"`` or ``"-col"`` (descending) names."""
        pairs = tuple(
            (name[1:], "desc") if name.startswith("-") else (name, "asc") for name in columns
        )
        return cls(pairs)

    def render(self) -> str:
        return ",".join(f"{column}.{direction}" for column, direction in self.columns)
