"""Type-directed serialization of Python objects to the JSON value model.

All entry points share one dispatch routine, ``_Serializer._prepare``, which
turns a value into either a finished leaf node or a lazily-converted set of
members. ``serialize`` assembles members into nodes; the streaming variants
render them to text chunk by chunk without building the tree.
"""

from __future__ import annotations

import dataclasses
import functools
import inspect
import math
from collections.abc import Iterable, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from typedjson.codecs import TypeCodecs
from typedjson.config import JSONConfig
from typedjson.errors import (
    CircularReferenceError,
    ConstructionError,
    ConversionError,
    CustomHookError,
    NestingDepthError,
    UnsupportedTypeError,
)
from typedjson.opt import Opt, is_null
from typedjson.pointer import JSONPointer
from typedjson.sealed import Sealed
from typedjson.text import iter_text, quote, render_number
from typedjson.types import OptType, TaggedUnionType, TypeDef
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
    json_value,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterator

    from typedjson.registry import RecordStrategy

MAX_DEPTH_EXCEEDED = "Maximum nesting depth exceeded"

type Member = tuple[str | None, Any, TypeDef | None]


@dataclass(frozen=True)
class _Members:
    """Children of an array or object, converted as they are consumed.

    Attributes:
        is_object: Render as an object (named members) or an array
        owner: Instance tracked for circular references, if any
        items: (name, value, static descriptor) per member; name is None
            for array elements

    """

    is_object: bool
    owner: object | None
    items: Iterable[Member]


class _Serializer:
    def __init__(self, config: JSONConfig) -> None:
        self._config = config
        self._references: set[int] = set()

    # ==========================================================================
    # Tree building and streaming
    # ==========================================================================

    def convert(
        self,
        value: Any,
        descriptor: TypeDef | None,
        pointer: JSONPointer,
        depth: int = 0,
    ) -> JSONValue | None:
        prepared = self._prepare(value, descriptor, pointer)
        if not isinstance(prepared, _Members):
            return prepared
        with self._entered(prepared, pointer, depth + 1):
            if prepared.is_object:
                return JSONObject(
                    tuple(
                        (name, self.convert(item, typ, pointer.child(name), depth + 1))
                        for name, item, typ in prepared.items
                    ),
                )
            return JSONArray(
                tuple(
                    self.convert(item, typ, pointer.child(index), depth + 1)
                    for index, (_, item, typ) in enumerate(prepared.items)
                ),
            )

    def stream(
        self,
        value: Any,
        descriptor: TypeDef | None,
        pointer: JSONPointer,
        depth: int = 0,
    ) -> Iterator[str]:
        escape = self._config.escape_non_ascii
        prepared = self._prepare(value, descriptor, pointer)
        if not isinstance(prepared, _Members):
            yield from iter_text(prepared, escape_non_ascii=escape)
            return
        with self._entered(prepared, pointer, depth + 1):
            yield "{" if prepared.is_object else "["
            for index, (name, item, typ) in enumerate(prepared.items):
                if index:
                    yield ","
                if prepared.is_object:
                    yield quote(name, escape_non_ascii=escape)
                    yield ":"
                    child = pointer.child(name)
                else:
                    child = pointer.child(index)
                yield from self.stream(item, typ, child, depth + 1)
            yield "}" if prepared.is_object else "]"

    @contextmanager
    def _entered(self, members: _Members, pointer: JSONPointer, depth: int) -> Iterator[None]:
        if depth > self._config.max_depth:
            raise NestingDepthError(MAX_DEPTH_EXCEEDED, pointer)
        if members.owner is None:
            yield
            return
        key = id(members.owner)
        if key in self._references:
            msg = f"Circular reference to {type(members.owner).__name__}"
            raise CircularReferenceError(msg, pointer)
        self._references.add(key)
        try:
            yield
        finally:
            self._references.discard(key)

    # ==========================================================================
    # Dispatch
    # ==========================================================================

    def _prepare(
        self,
        value: Any,
        descriptor: TypeDef | None,
        pointer: JSONPointer,
        *,
        hooks: bool = True,
    ) -> JSONValue | _Members | None:
        if value is None or value is Opt.UNSET:
            return None

        cls = type(value)
        if hooks and (converted := self._hooked(value, pointer)) is not _NOT_HOOKED:
            if converted is None or isinstance(converted, JSONValue):
                return converted
            return self._prepare(
                converted,
                None,
                pointer,
                hooks=type(converted) is not cls,
            )

        if (codec := TypeCodecs.find(cls)) is not None:
            encode, _ = codec
            try:
                return json_value(encode(value))
            except (TypeError, ValueError) as exc:
                msg = f"Can't encode {cls.__name__}: {exc}"
                raise ConversionError(msg, pointer) from exc

        match value:
            case JSONValue():
                return value
            case Enum():
                return JSONString(value.name)
            case bool():
                return JSONBoolean(value)
            case int():
                return self._integer(value)
            case float():
                if not math.isfinite(value):
                    msg = f"Can't serialize non-finite float {value}"
                    raise UnsupportedTypeError(msg, pointer)
                return JSONDecimal(Decimal(repr(value)))
            case Decimal():
                if not value.is_finite():
                    msg = f"Can't serialize non-finite Decimal {value}"
                    raise UnsupportedTypeError(msg, pointer)
                if self._config.decimal_string:
                    return JSONString(str(value))
                return JSONDecimal(value)
            case str():
                return JSONString(value)
            case Opt():
                inner = descriptor.inner if isinstance(descriptor, OptType) else None
                return self._prepare(value.value, inner, pointer)
            case Mapping():
                return _Members(True, value, self._mapping_members(value, pointer))
            case list() | tuple() | set() | frozenset():
                return _Members(False, value, ((None, item, None) for item in value))

        if isinstance(descriptor, TaggedUnionType):
            self._check_variant(value, descriptor, pointer)
        if _is_record(value):
            try:
                strategy = self._config.strategies.record(cls)
            except UnsupportedTypeError as exc:
                if exc.pointer.is_root and not pointer.is_root:
                    raise type(exc)(exc.text, pointer) from exc
                raise
            return _Members(True, value, self._record_members(value, strategy))
        if isinstance(value, Iterable):
            return _Members(False, value, ((None, item, None) for item in value))

        msg = f"Can't serialize {cls.__qualname__}"
        raise UnsupportedTypeError(msg, pointer)

    def _hooked(self, value: Any, pointer: JSONPointer) -> Any:
        cls = type(value)
        converter = self._config.find_to_json(cls)
        if converter is None:
            converter = getattr(cls, "__to_json__", None)
        if converter is None:
            return _NOT_HOOKED
        try:
            return converter(value)
        except Exception as exc:
            msg = f"Error in custom to_json for {cls.__qualname__}: {exc}"
            raise CustomHookError(msg, pointer) from exc

    def _integer(self, value: int) -> JSONValue:
        if INT_MIN <= value <= INT_MAX:
            return JSONInt(value)
        if self._config.big_integer_string:
            return JSONString(render_number(Decimal(value)))
        return JSONDecimal(Decimal(value))

    def _check_variant(
        self,
        value: Any,
        descriptor: TaggedUnionType,
        pointer: JSONPointer,
    ) -> None:
        variants = descriptor.cls.__json_variants__.values()
        if not any(type(value) is variant for variant in variants):
            msg = (
                f"{type(value).__qualname__} is not a variant of "
                f"{descriptor.cls.__qualname__}"
            )
            raise ConstructionError(msg, pointer)

    # ==========================================================================
    # Members
    # ==========================================================================

    def _mapping_members(
        self,
        mapping: Mapping[Any, Any],
        pointer: JSONPointer,
    ) -> Iterator[Member]:
        seen: set[str] = set()
        for key, item in mapping.items():
            name = self._key(key, pointer)
            if name in seen:
                msg = f"Duplicate key {name} in JSON object"
                raise ConversionError(msg, pointer)
            seen.add(name)
            yield name, item, None

    def _key(self, key: Any, pointer: JSONPointer) -> str:
        match key:
            case Enum():
                return key.name
            case str():
                return key
            case bool():
                return "true" if key else "false"
            case int():
                return render_number(key if INT_MIN <= key <= INT_MAX else Decimal(key))
            case float() if math.isfinite(key):
                return render_number(Decimal(repr(key)))
            case Decimal() if key.is_finite():
                return render_number(key)
        if (codec := TypeCodecs.find(type(key))) is not None:
            encode, _ = codec
            try:
                encoded = encode(key)
            except (TypeError, ValueError) as exc:
                msg = f"Can't encode {type(key).__name__}: {exc}"
                raise ConversionError(msg, pointer) from exc
            if isinstance(encoded, str | int) and not isinstance(encoded, bool):
                return str(encoded)
        msg = f"Can't use {type(key).__qualname__} as a JSON object key"
        raise UnsupportedTypeError(msg, pointer)

    def _record_members(self, value: Any, strategy: RecordStrategy) -> Iterator[Member]:
        discriminator = None
        if strategy.discriminator is not None:
            discriminator, identifier = strategy.discriminator
            yield discriminator, identifier, None
        for plan in strategy.fields:
            if plan.ignore or plan.json_name == discriminator:
                continue
            item = getattr(value, plan.attribute, Opt.UNSET)
            if is_null(item) and not plan.include_null:
                continue
            yield plan.json_name, item, plan.type


_NOT_HOOKED = object()


def _is_record(value: Any) -> bool:
    if dataclasses.is_dataclass(value) or isinstance(value, Sealed):
        return True
    return _annotated(type(value))


@functools.cache
def _annotated(cls: type) -> bool:
    return any(
        klass.__module__ != "builtins" and inspect.get_annotations(klass)
        for klass in cls.__mro__[:-1]
    )


def _start(
    value: Any,
    typ: Any,
    config: JSONConfig | None,
) -> tuple[_Serializer, TypeDef | None]:
    config = config or JSONConfig.default()
    descriptor = config.strategies.descriptor(typ) if typ is not None else None
    return _Serializer(config), descriptor


def serialize(
    value: Any,
    typ: Any = None,
    config: JSONConfig | None = None,
) -> JSONValue | None:
    """Convert a Python value to a value model tree.

    Args:
        value: Object graph to convert
        typ: Static type of value; a tagged-union root makes the runtime
            class be checked against the declared variants
        config: Settings and converters (default: ``JSONConfig.default()``)

    Returns:
        The node, or None for JSON null

    Raises:
        ConversionError: If any part of the graph can't be converted; the
            error's pointer locates the failing value

    """
    serializer, descriptor = _start(value, typ, config)
    return serializer.convert(value, descriptor, JSONPointer.root)


def iter_json(
    value: Any,
    typ: Any = None,
    config: JSONConfig | None = None,
) -> Iterator[str]:
    """Yield the canonical JSON text of a value in chunks.

    The concatenated chunks equal ``serialize(value).to_json()``; errors are
    raised when the offending value is reached.
    """
    serializer, descriptor = _start(value, typ, config)
    return serializer.stream(value, descriptor, JSONPointer.root)


def serialize_to(
    sink: Callable[[str], object],
    value: Any,
    typ: Any = None,
    config: JSONConfig | None = None,
) -> None:
    """Write the JSON text of a value to a sink, one chunk per call."""
    for chunk in iter_json(value, typ, config):
        sink(chunk)


async def aserialize_to(
    sink: Callable[[str], Awaitable[object]],
    value: Any,
    typ: Any = None,
    config: JSONConfig | None = None,
) -> None:
    """Write the JSON text of a value to an async sink, awaiting each chunk."""
    for chunk in iter_json(value, typ, config):
        await sink(chunk)


async def aiter_json(
    value: Any,
    typ: Any = None,
    config: JSONConfig | None = None,
) -> AsyncIterator[str]:
    """Async iterator over the JSON text chunks of a value."""
    for chunk in iter_json(value, typ, config):
        yield chunk
