"""
Split SQL file contents into individual statements.

Used by Database.execute_sql_file() / execute_statements(). Semicolons inside
quoted literals, dollar-quoted bodies and comments do not end a statement.
Comments are dropped from the output.
"""

from __future__ import annotations

import re

_DOLLAR_TAG = re.compile(r"\$(\w*)\$")


def _skip_quoted(text: str, start: int) -> int:
    """Index just past the literal opened at *start* ('...', "..." or `...`)."""
    quote = text[start]
    i = start + 1
    n = len(text)
    while i < n:
        c = text[i]
        if c == "\\" and quote != "`":
            i += 2
            continue
        if c == quote:
            # Doubled quote is an escaped quote.
            if i + 1 < n and text[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def split_statements(text: str) -> list[str]:
    """Return the non-empty statements of *text*, stripped, without trailing ';'."""
    statements: list[str] = []
    buf: list[str] = []
    i = 0
    n = len(text)

    def flush() -> None:
        stmt = "".join(buf).strip()
        if stmt:
            statements.append(stmt)
        buf.clear()

    while i < n:
        c = text[i]
        two = text[i : i + 2]

        if c in ("'", '"', "`"):
            end = _skip_quoted(text, i)
            buf.append(text[i:end])
            i = end
        elif c == "$" and (m := _DOLLAR_TAG.match(text, i)):
            close = text.find(m.group(0), m.end())
            end = n if close == -1 else close + len(m.group(0))
            buf.append(text[i:end])
            i = end
        elif two == "--" or c == "#":
            nl = text.find("\n", i)
            i = n if nl == -1 else nl + 1
            buf.append("\n")
        elif two == "/*":
            close = text.find("*/", i + 2)
            i = n if close == -1 else close + 2
            buf.append(" ")
        elif c == ";":
            flush()
            i += 1
        else:
            buf.append(c)
            i += 1

    flush()
    return statements
