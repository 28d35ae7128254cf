"""
Typed placeholder formatting.

A template such as ``SELECT * FROM t WHERE status = %s AND id = %i`` is turned
into three outputs built in lock-step, one token at a time:

- backend SQL with every token replaced by the driver's parameter marker,
- a diagnostic statement with quoted literals, for logs and error messages,
- the ordered list of validated values (plus their kinds, for binding).

Tokens:

- ``%kind``  next positional argument, validated as *kind* (see param_type).
- ``{n}``    1-based positional argument, kind ``s``.
- ``{name}`` key of the single mapping argument, kind ``s``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple

from polydb.backends import Backend
from polydb.core.errors import InvalidArgumentError
from polydb.core.param_type import validate

_TOKEN = re.compile(r"%(\w+)|\{(.+?)\}")


class FormattedStatement(NamedTuple):
    sql: str
    diagnostic_sql: str
    values: list[Any]
    kinds: list[str]


def _quote(value: Any) -> str:
    return "'" + str(value).replace("'", "''") + "'"


class PlaceholderFormatter:
    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    def _literal(self, text: str) -> str:
        if self.backend.escape_percent:
            return text.replace("%", "%%")
        return text

    def format(self, template: str, args: Sequence[Any] = ()) -> FormattedStatement:
        """Resolve every placeholder of *template* against *args*.

        Raises InvalidArgumentError on the first invalid value; nothing is
        returned partially bound.
        """
        args = list(args)
        named = args[0] if len(args) == 1 and isinstance(args[0], Mapping) else None
        marker = self.backend.param_marker

        sql: list[str] = []
        diagnostic: list[str] = []
        values: list[Any] = []
        kinds: list[str] = []
        pos = 0
        next_arg = 0

        for m in _TOKEN.finditer(template):
            literal = template[pos : m.start()]
            sql.append(self._literal(literal))
            diagnostic.append(literal)
            pos = m.end()

            if m.group(1) is not None:
                kind = m.group(1)
                raw = args[next_arg] if next_arg < len(args) else ""
                next_arg += 1
            else:
                key = m.group(2)
                kind = "s"
                if key.isdigit():
                    idx = int(key) - 1
                    raw = args[idx] if 0 <= idx < len(args) else ""
                elif named is not None:
                    if key not in named:
                        raise InvalidArgumentError(
                            f"No value supplied for named placeholder {{{key}}} "
                            f"within SQL statement, {template}",
                            kind=kind,
                            sql=template,
                        )
                    raw = named[key]
                else:
                    # Not a placeholder without a mapping argument; keep the text.
                    sql.append(self._literal(m.group(0)))
                    diagnostic.append(m.group(0))
                    continue

            sql.append(marker)
            kinds.append(kind)
            if raw is None:
                values.append(None)
                diagnostic.append("NULL")
                continue

            value = validate(kind, raw, sql=template)
            if kind == "ls":
                values.append(f"%{value}%")
                diagnostic.append(_quote(value))
            elif kind == "blob":
                values.append(value)
                diagnostic.append("'--BLOB--'")
            else:
                values.append(value)
                diagnostic.append(_quote(value))

        tail = template[pos:]
        sql.append(self._literal(tail))
        diagnostic.append(tail)
        return FormattedStatement("".join(sql), "".join(diagnostic), values, kinds)
