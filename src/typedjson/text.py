"""Canonical text rendering of the value model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from typedjson.values import (
    JSONArray,
    JSONBoolean,
    JSONDecimal,
    JSONInt,
    JSONObject,
    JSONString,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from decimal import Decimal

    from typedjson.values import JSONValue

_SHORT_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def _escape_char(ch: str, escape_non_ascii: bool) -> str:
    if short := _SHORT_ESCAPES.get(ch):
        return short
    code = ord(ch)
    if code < 0x20:
        return f"\\u{code:04x}"
    if code < 0x80:
        return ch
    # lone surrogates have no UTF-8 encoding
    if not escape_non_ascii and not 0xD800 <= code < 0xE000:
        return ch
    if code > 0xFFFF:
        code -= 0x10000
        return f"\\u{0xD800 + (code >> 10):04x}\\u{0xDC00 + (code & 0x3FF):04x}"
    return f"\\u{code:04x}"


def quote(text: str, *, escape_non_ascii: bool = False) -> str:
    """Quote a string with the minimal escaping JSON requires."""
    if text.isascii() and text.isprintable() and '"' not in text and "\\" not in text:
        return f'"{text}"'
    return '"' + "".join(_escape_char(ch, escape_non_ascii) for ch in text) + '"'


def render_number(value: int | Decimal) -> str:
    # str(Decimal) is exact and valid JSON (e.g. "2.0", "1E+3")
    return str(value)


def iter_text(
    node: JSONValue | None,
    *,
    escape_non_ascii: bool = False,
) -> Iterator[str]:
    """Yield the canonical text of a node in chunks."""
    match node:
        case None:
            yield "null"
        case JSONBoolean(value=value):
            yield "true" if value else "false"
        case JSONInt(value=value) | JSONDecimal(value=value):
            yield render_number(value)
        case JSONString(value=value):
            yield quote(value, escape_non_ascii=escape_non_ascii)
        case JSONArray(items=items):
            yield "["
            for index, item in enumerate(items):
                if index:
                    yield ","
                yield from iter_text(item, escape_non_ascii=escape_non_ascii)
            yield "]"
        case JSONObject(properties=properties):
            yield "{"
            for index, (name, value) in enumerate(properties):
                if index:
                    yield ","
                yield quote(name, escape_non_ascii=escape_non_ascii)
                yield ":"
                yield from iter_text(value, escape_non_ascii=escape_non_ascii)
            yield "}"
        case _:
            msg = f"Not a JSON node: {type(node).__name__}"
            raise TypeError(msg)


def stringify(node: JSONValue | None, *, escape_non_ascii: bool = False) -> str:
    """Render a node canonically: no whitespace, keys quoted, minimal escapes."""
    return "".join(iter_text(node, escape_non_ascii=escape_non_ascii))
