"""Recursive-descent JSON parser producing the value model."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from typedjson.errors import DepthExceededError, ParseError
from typedjson.pointer import JSONPointer
from typedjson.values import (
    INT_MAX,
    INT_MIN,
    JSONArray,
    JSONBoolean,
    JSONDecimal,
    JSONInt,
    JSONObject,
    JSONString,
    JSONValue,
)

EXCESS_CHARS = "Excess characters following JSON"
ILLEGAL_NUMBER = "Illegal JSON number"
ILLEGAL_SYNTAX = "Illegal JSON syntax"
ILLEGAL_KEY = "Illegal key in JSON object"
DUPLICATE_KEY = "Duplicate key in JSON object"
MISSING_COLON = "Missing colon in JSON object"
MISSING_CLOSING_BRACE = "Missing closing brace in JSON object"
MISSING_CLOSING_BRACKET = "Missing closing bracket in JSON array"
UNTERMINATED_STRING = "Unterminated JSON string"
ILLEGAL_CHAR = "Illegal character in JSON string"
ILLEGAL_UNICODE_SEQUENCE = "Illegal Unicode sequence in JSON string"
ILLEGAL_ESCAPE_SEQUENCE = "Illegal escape sequence in JSON string"
UNEXPECTED_END = "Unexpected end of JSON input"
TRAILING_COMMA = "Trailing comma not allowed"
MAX_DEPTH_EXCEEDED = "Maximum nesting depth exceeded"

_WHITESPACE = re.compile(r"[ \t\n\r]*")
_STRING_CHUNK = re.compile(r'[^"\\\x00-\x1f]*')
_NUMBER = re.compile(r"-?(?:0|[1-9][0-9]*)(\.[0-9]+)?([eE][-+]?[0-9]+)?")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_NUMBER_CONTINUATION = frozenset("0123456789.eE+-")

_SIMPLE_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}


class DuplicateKeyPolicy(Enum):
    """What to do when an object repeats a key."""

    REJECT = "reject"
    FIRST = "first"
    LAST = "last"


@dataclass(frozen=True)
class ParseOptions:
    """Parser tolerances.

    Attributes:
        duplicate_keys: Reject duplicates, or keep the first or last value
        trailing_commas: Accept a comma before a closing brace or bracket
        max_depth: Maximum nesting of arrays and objects

    """

    duplicate_keys: DuplicateKeyPolicy = DuplicateKeyPolicy.REJECT
    trailing_commas: bool = False
    max_depth: int = 128


def parse(text: str, options: ParseOptions | None = None) -> JSONValue | None:
    """Parse JSON text into a value model tree (JSON null is None).

    Raises:
        ParseError: If the text is not valid JSON
        DepthExceededError: If nesting exceeds options.max_depth

    """
    return _Parser(text, options or ParseOptions()).parse_document()


class _Parser:
    def __init__(self, text: str, options: ParseOptions) -> None:
        self._text = text
        self._end = len(text)
        self._pos = 0
        self._options = options

    def parse_document(self) -> JSONValue | None:
        result = self._value(JSONPointer.root, 0)
        self._skip_whitespace()
        if self._pos < self._end:
            raise ParseError(EXCESS_CHARS, self._pos)
        return result

    def _skip_whitespace(self) -> None:
        self._pos = _WHITESPACE.match(self._text, self._pos).end()

    def _peek(self) -> str:
        return self._text[self._pos] if self._pos < self._end else ""

    def _value(self, pointer: JSONPointer, depth: int) -> JSONValue | None:
        self._skip_whitespace()
        ch = self._peek()
        if ch == "{":
            return self._object(pointer, depth + 1)
        if ch == "[":
            return self._array(pointer, depth + 1)
        if ch == '"':
            self._pos += 1
            return JSONString(self._string(pointer))
        if ch == "-" or "0" <= ch <= "9":
            return self._number(pointer)
        for keyword, value in (("true", JSONBoolean(True)), ("false", JSONBoolean(False))):
            if self._text.startswith(keyword, self._pos):
                self._pos += len(keyword)
                return value
        if self._text.startswith("null", self._pos):
            self._pos += 4
            return None
        if not ch:
            raise ParseError(UNEXPECTED_END, self._pos, pointer)
        raise ParseError(ILLEGAL_SYNTAX, self._pos, pointer)

    def _check_depth(self, depth: int, pointer: JSONPointer) -> None:
        if depth > self._options.max_depth:
            raise DepthExceededError(MAX_DEPTH_EXCEEDED, self._pos, pointer)

    def _object(self, pointer: JSONPointer, depth: int) -> JSONObject:
        self._check_depth(depth, pointer)
        self._pos += 1
        properties: dict[str, JSONValue | None] = {}
        self._skip_whitespace()
        if self._peek() == "}":
            self._pos += 1
            return JSONObject()
        while True:
            self._skip_whitespace()
            ch = self._peek()
            if ch != '"':
                if ch == "}" and properties:
                    if not self._options.trailing_commas:
                        raise ParseError(TRAILING_COMMA, self._pos, pointer)
                    self._pos += 1
                    break
                if not ch:
                    raise ParseError(UNEXPECTED_END, self._pos, pointer)
                raise ParseError(ILLEGAL_KEY, self._pos, pointer)
            key_offset = self._pos
            self._pos += 1
            key = self._string(pointer)
            self._skip_whitespace()
            if self._peek() != ":":
                raise ParseError(MISSING_COLON, self._pos, pointer)
            self._pos += 1
            value = self._value(pointer.child(key), depth)
            if key not in properties:
                properties[key] = value
            else:
                match self._options.duplicate_keys:
                    case DuplicateKeyPolicy.REJECT:
                        raise ParseError(DUPLICATE_KEY, key_offset, pointer)
                    case DuplicateKeyPolicy.LAST:
                        properties[key] = value
                    case DuplicateKeyPolicy.FIRST:
                        pass
            self._skip_whitespace()
            ch = self._peek()
            if ch == ",":
                self._pos += 1
                continue
            if ch == "}":
                self._pos += 1
                break
            raise ParseError(MISSING_CLOSING_BRACE, self._pos, pointer)
        return JSONObject(tuple(properties.items()))

    def _array(self, pointer: JSONPointer, depth: int) -> JSONArray:
        self._check_depth(depth, pointer)
        self._pos += 1
        items: list[JSONValue | None] = []
        self._skip_whitespace()
        if self._peek() == "]":
            self._pos += 1
            return JSONArray()
        while True:
            self._skip_whitespace()
            if self._peek() == "]" and items:
                if not self._options.trailing_commas:
                    raise ParseError(TRAILING_COMMA, self._pos, pointer)
                self._pos += 1
                break
            items.append(self._value(pointer.child(len(items)), depth))
            self._skip_whitespace()
            ch = self._peek()
            if ch == ",":
                self._pos += 1
                continue
            if ch == "]":
                self._pos += 1
                break
            raise ParseError(MISSING_CLOSING_BRACKET, self._pos, pointer)
        return JSONArray(tuple(items))

    def _number(self, pointer: JSONPointer) -> JSONInt | JSONDecimal:
        start = self._pos
        match = _NUMBER.match(self._text, start)
        if match is None:
            raise ParseError(ILLEGAL_NUMBER, start, pointer)
        self._pos = match.end()
        if self._peek() and self._peek() in _NUMBER_CONTINUATION:
            raise ParseError(ILLEGAL_NUMBER, self._pos, pointer)
        text = match.group()
        # int64 values have at most 19 digits
        if match.group(1) is None and match.group(2) is None and len(text.lstrip("-")) <= 19:
            value = int(text)
            if INT_MIN <= value <= INT_MAX:
                return JSONInt(value)
        return JSONDecimal(Decimal(text))

    def _string(self, pointer: JSONPointer) -> str:
        text = self._text
        chunks: list[str] = []
        while True:
            match = _STRING_CHUNK.match(text, self._pos)
            chunks.append(match.group())
            self._pos = match.end()
            if self._pos >= self._end:
                raise ParseError(UNTERMINATED_STRING, self._pos, pointer)
            ch = text[self._pos]
            if ch == '"':
                self._pos += 1
                return "".join(chunks)
            if ch != "\\":
                raise ParseError(ILLEGAL_CHAR, self._pos, pointer)
            self._pos += 1
            if self._pos >= self._end:
                raise ParseError(UNTERMINATED_STRING, self._pos, pointer)
            escape = text[self._pos]
            if (simple := _SIMPLE_ESCAPES.get(escape)) is not None:
                chunks.append(simple)
                self._pos += 1
            elif escape == "u":
                chunks.append(self._unicode_escape(pointer))
            else:
                raise ParseError(ILLEGAL_ESCAPE_SEQUENCE, self._pos, pointer)

    def _hex4(self, start: int, pointer: JSONPointer) -> int:
        digits = self._text[start : start + 4]
        if len(digits) != 4 or not _HEX_DIGITS.issuperset(digits):
            raise ParseError(ILLEGAL_UNICODE_SEQUENCE, start, pointer)
        return int(digits, 16)

    def _unicode_escape(self, pointer: JSONPointer) -> str:
        # self._pos is on the "u"
        code = self._hex4(self._pos + 1, pointer)
        self._pos += 5
        if 0xD800 <= code < 0xDC00 and self._text.startswith("\\u", self._pos):
            low_digits = self._text[self._pos + 2 : self._pos + 6]
            if len(low_digits) == 4 and _HEX_DIGITS.issuperset(low_digits):
                low = int(low_digits, 16)
                if 0xDC00 <= low < 0xE000:
                    self._pos += 6
                    return chr(0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00))
        return chr(code)
