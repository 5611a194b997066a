"""Immutable JSON value model.

JSON null is represented by Python ``None`` wherever a node may appear, so
node slots are typed ``JSONValue | None``.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from typedjson.errors import TypeMismatchError
from typedjson.pointer import JSONPointer

INT_MIN = -(2**63)
INT_MAX = 2**63 - 1


class JSONKind(Enum):
    """Kind tag of a value model node."""

    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DECIMAL = "decimal"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


class JSONValue(ABC):
    """Base for all non-null value model nodes."""

    kind: ClassVar[JSONKind]

    def to_json(self, *, escape_non_ascii: bool = False) -> str:
        """Render in canonical form (no insignificant whitespace)."""
        from typedjson.text import stringify

        return stringify(self, escape_non_ascii=escape_non_ascii)

    @abstractmethod
    def display(self) -> str:
        """Short form of the node for error messages."""
        ...


@dataclass(frozen=True)
class JSONBoolean(JSONValue):
    value: bool

    kind: ClassVar[JSONKind] = JSONKind.BOOLEAN

    def display(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True, eq=False)
class JSONNumber(JSONValue):
    """Numeric node; subtypes with equal numeric value compare equal."""

    value: int | Decimal

    def __eq__(self, other: object) -> bool:
        if isinstance(other, JSONNumber):
            return self.value == other.value
        return NotImplemented

    def __hash__(self) -> int:
        # hash(Decimal("2.0")) == hash(2), so equal numbers hash equally
        return hash(self.value)

    def is_integral(self) -> bool:
        return True

    def to_decimal(self) -> Decimal:
        return Decimal(self.value)

    def display(self) -> str:
        return str(self.value)


@dataclass(frozen=True, eq=False)
class JSONInt(JSONNumber):
    """Integer in the signed 64-bit range."""

    value: int

    kind: ClassVar[JSONKind] = JSONKind.INTEGER

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            msg = f"JSONInt requires int, got {type(self.value).__name__}"
            raise TypeError(msg)
        if not INT_MIN <= self.value <= INT_MAX:
            msg = f"JSONInt value out of 64-bit range: {self.value}"
            raise ValueError(msg)


@dataclass(frozen=True, eq=False)
class JSONDecimal(JSONNumber):
    """Arbitrary-precision number (fractions, exponents, large integers)."""

    value: Decimal

    kind: ClassVar[JSONKind] = JSONKind.DECIMAL

    def __post_init__(self) -> None:
        if not isinstance(self.value, Decimal):
            object.__setattr__(self, "value", Decimal(self.value))
        if not self.value.is_finite():
            msg = f"JSONDecimal requires a finite value, got {self.value}"
            raise ValueError(msg)

    def is_integral(self) -> bool:
        return self.value == self.value.to_integral_value()

    def to_decimal(self) -> Decimal:
        return self.value


@dataclass(frozen=True)
class JSONString(JSONValue):
    value: str

    kind: ClassVar[JSONKind] = JSONKind.STRING

    def display(self) -> str:
        text = self.value if len(self.value) <= 20 else f"{self.value[:17]}..."
        return f'"{text}"'


@dataclass(frozen=True)
class JSONArray(JSONValue):
    """Ordered sequence of nodes."""

    items: tuple[JSONValue | None, ...] = ()

    kind: ClassVar[JSONKind] = JSONKind.ARRAY

    @classmethod
    def of(cls, *items: Any) -> JSONArray:
        return cls(tuple(json_value(item) for item in items))

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[JSONValue | None]:
        return iter(self.items)

    def __getitem__(self, index: int) -> JSONValue | None:
        return self.items[index]

    def require(self, index: int, kind: JSONKind) -> JSONValue | None:
        """Item at index, checked against the expected kind.

        Raises:
            IndexError: If the index is out of range
            TypeMismatchError: If the item is present but of another kind

        """
        item = self.items[index]
        if kind_of(item) is not kind:
            raise TypeMismatchError(
                kind.value,
                display(item),
                JSONPointer.root.child(index),
            )
        return item

    def display(self) -> str:
        return "[...]" if self.items else "[]"


@dataclass(frozen=True, eq=False)
class JSONObject(JSONValue, Mapping[str, "JSONValue | None"]):
    """Ordered name/value pairs with unique names."""

    properties: tuple[tuple[str, JSONValue | None], ...] = ()
    _index: dict[str, JSONValue | None] = field(
        init=False,
        repr=False,
        compare=False,
    )

    kind: ClassVar[JSONKind] = JSONKind.OBJECT

    def __post_init__(self) -> None:
        index = dict(self.properties)
        if len(index) != len(self.properties):
            msg = "Duplicate key in JSON object"
            raise ValueError(msg)
        object.__setattr__(self, "_index", index)

    @classmethod
    def of(cls, **properties: Any) -> JSONObject:
        return cls.build(properties.items())

    @classmethod
    def build(cls, pairs: Iterable[tuple[str, Any]]) -> JSONObject:
        return cls(tuple((name, json_value(value)) for name, value in pairs))

    def __getitem__(self, name: str) -> JSONValue | None:
        return self._index[name]

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self.properties)

    def __len__(self) -> int:
        return len(self.properties)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, JSONObject):
            return self._index == other._index
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self.properties))

    def require(self, name: str, kind: JSONKind) -> JSONValue | None:
        """Property value, checked against the expected kind.

        Raises:
            KeyError: If the property is absent
            TypeMismatchError: If the property is present but of another kind

        """
        value = self._index[name]
        if kind_of(value) is not kind:
            raise TypeMismatchError(
                kind.value,
                display(value),
                JSONPointer.root.child(name),
            )
        return value

    def without(self, name: str) -> JSONObject:
        """Copy of this object with one property removed."""
        return JSONObject(tuple(p for p in self.properties if p[0] != name))

    def display(self) -> str:
        return "{...}" if self.properties else "{}"


def kind_of(node: JSONValue | None) -> JSONKind:
    return JSONKind.NULL if node is None else node.kind


def display(node: JSONValue | None) -> str:
    return "null" if node is None else node.display()


def json_value(obj: Any) -> JSONValue | None:
    """Build a node from a Python literal.

    Accepts None, bool, int, float, Decimal, str, lists/tuples, string-keyed
    mappings and existing nodes.

    Raises:
        TypeError: If obj (or something inside it) is not a JSON literal
        ValueError: If a float or Decimal is not finite

    """
    match obj:
        case None | JSONValue():
            return obj
        case bool():
            return JSONBoolean(obj)
        case int():
            return JSONInt(obj) if INT_MIN <= obj <= INT_MAX else JSONDecimal(Decimal(obj))
        case float():
            if not math.isfinite(obj):
                msg = f"Can't represent {obj} in JSON"
                raise ValueError(msg)
            return JSONDecimal(Decimal(repr(obj)))
        case Decimal():
            return JSONDecimal(obj)
        case str():
            return JSONString(obj)
        case list() | tuple():
            return JSONArray(tuple(json_value(item) for item in obj))
        case Mapping():
            return JSONObject.build(obj.items())
    msg = f"Not a JSON literal: {type(obj).__name__}"
    raise TypeError(msg)


def to_python(node: JSONValue | None) -> Any:
    """Convert a node to plain Python builtins (numbers stay exact)."""
    match node:
        case None:
            return None
        case JSONBoolean(value=value) | JSONInt(value=value) | JSONDecimal(value=value):
            return value
        case JSONString(value=value):
            return value
        case JSONArray(items=items):
            return [to_python(item) for item in items]
        case JSONObject():
            return {name: to_python(value) for name, value in node.properties}
    msg = f"Not a JSON node: {type(node).__name__}"
    raise TypeError(msg)
