"""Parameter expansion, bind-kind tagging and identifier sanitizing."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from sql_session.errors import InvalidIdentifierError

_IDENTIFIER_STRIP_RE = re.compile(r"[^a-zA-Z0-9_]")

# Values under these types are expanded into one placeholder per element
_SEQUENCE_TYPES = (list, tuple, set, frozenset)

Params = Mapping[str | int, Any] | Sequence[Any]


class BindKind(StrEnum):
    """Scalar category the driver is asked to encode a value as."""

    INTEGER = "integer"
    BOOLEAN = "boolean"
    NULL = "null"
    TEXT = "text"


@dataclass(frozen=True)
class Param:
    """A scalar value tagged with its bind kind."""

    value: Any
    kind: BindKind

    @classmethod
    def of(cls, value: Any) -> Param:
        """Tag a scalar value. ``bool`` is checked before ``int``."""
        if isinstance(value, bool):
            return cls(value, BindKind.BOOLEAN)
        if isinstance(value, int):
            return cls(value, BindKind.INTEGER)
        if value is None:
            return cls(None, BindKind.NULL)
        if isinstance(value, (str, bytes)):
            return cls(value, BindKind.TEXT)
        return cls(str(value), BindKind.TEXT)

    @property
    def driver_value(self) -> Any:
        """Value as handed to a DB-API driver."""
        if self.kind is BindKind.BOOLEAN:
            return int(self.value)
        return self.value


def _in_clause_re(name: str) -> re.Pattern[str]:
    return re.compile(r"\s+IN\s+\(:" + re.escape(name) + r"\)", re.IGNORECASE)


def _as_mapping(params: Params | None) -> dict[str | int, Any]:
    if params is None:
        return {}
    if isinstance(params, Mapping):
        return dict(params)
    if isinstance(params, (str, bytes)):
        raise TypeError("params must be a mapping or a sequence of values, not a string")
    return dict(enumerate(params))


def build_params(query: str, params: Params | None = None) -> tuple[str, dict[str | int, Param]]:
    """Expand sequence values for ``IN (:name)`` clauses and tag every value.

    ``IN (:ids)`` with ``ids=[1, 2]`` becomes ``IN (:ids_0, :ids_1)``;
    an empty sequence becomes ``IN (NULL)``. Only that exact form is
    rewritten. Returns the rewritten query and a flat mapping of
    placeholder to :class:`Param`.
    """
    processed_query = query
    processed: dict[str | int, Any] = {}

    for key, value in _as_mapping(params).items():
        if not isinstance(value, _SEQUENCE_TYPES):
            processed[key] = value
            continue
        if isinstance(key, int):
            raise TypeError(f"Positional parameter {key} cannot be a sequence")

        pattern = _in_clause_re(key)
        if not value:
            processed_query = pattern.sub(" IN (NULL)", processed_query)
            continue

        placeholders = []
        for index, item in enumerate(value):
            new_key = f"{key}_{index}"
            placeholders.append(f":{new_key}")
            processed[new_key] = item
        in_clause = f" IN ({', '.join(placeholders)})"
        processed_query = pattern.sub(lambda _m: in_clause, processed_query)

    return processed_query, {key: Param.of(value) for key, value in processed.items()}


def sanitize_identifier(identifier: str) -> str:
    """Strip everything outside ``[A-Za-z0-9_]``.

    Raises InvalidIdentifierError if nothing is left.
    """
    sanitized = _IDENTIFIER_STRIP_RE.sub("", identifier)
    if not sanitized:
        raise InvalidIdentifierError(f"Invalid identifier provided: {identifier!r}")
    return sanitized


def quote_identifier(identifier: str, quote_char: str = "`") -> str:
    """Sanitize an identifier and wrap it in the dialect quote character."""
    return f"{quote_char}{sanitize_identifier(identifier)}{quote_char}"
