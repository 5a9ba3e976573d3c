"""
Tolerant JSON Reader

Editor launch files are JSON with comments (and often trailing commas).
The scanner tracks string literals, so `//` or `/*` inside a value such
as "http://host" is left alone.
"""

import json
from typing import Any


def strip_comments(text: str) -> str:
    """
    Remove `//` line comments and `/* */` block comments.

    Newlines inside removed comments are kept so parse errors still point
    at the right line. An unterminated block comment runs to end of input.
    """
    out = []
    i = 0
    n = len(text)
    in_string = False

    while i < n:
        ch = text[i]

        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            stop = n if end == -1 else end + 2
            out.append("\n" * text.count("\n", i, stop))
            i = stop
        else:
            out.append(ch)
            i += 1

    return "".join(out)


def strip_trailing_commas(text: str) -> str:
    """Drop commas that directly precede `}` or `]` (outside strings)."""
    out = []
    i = 0
    n = len(text)
    in_string = False

    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            out.append(ch)
        elif ch == ",":
            j = i + 1
            while j < n and text[j] in " \t\r\n":
                j += 1
            if j >= n or text[j] not in "}]":
                out.append(ch)
        else:
            out.append(ch)
        i += 1

    return "".join(out)


def loads(text: str) -> Any:
    """Parse JSON with comments and trailing commas."""
    return json.loads(strip_trailing_commas(strip_comments(text)))


def dumps(document: Any) -> str:
    """Serialize with 2-space indentation and a trailing newline."""
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
