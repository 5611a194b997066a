"""Declarative conversion metadata for fields, classes and constructors."""

from __future__ import annotations

import dataclasses
from dataclasses import MISSING, dataclass
from typing import TYPE_CHECKING, Annotated, Any

if TYPE_CHECKING:
    from collections.abc import Callable

METADATA_KEY = "typedjson"


@dataclass(frozen=True)
class JSONField:
    """Per-field conversion settings.

    Attach with ``json_field(...)`` on a dataclass field, or as
    ``Annotated[T, JSONField(...)]`` on any annotated attribute.

    Attributes:
        name: Property name used in JSON instead of the attribute name
        ignore: Leave the field out of JSON entirely
        include_null: Emit null (or absent ``Opt``) values for this field

    """

    name: str | None = None
    ignore: bool = False
    include_null: bool | None = None


@dataclass(frozen=True)
class JSONOptions:
    """Per-class conversion settings set by ``json_options``."""

    include_nulls: bool | None = None
    allow_extra: bool | None = None


@dataclass(frozen=True)
class IntWidth:
    """Marks an int annotation as width-bounded."""

    bits: int
    signed: bool = True


@dataclass(frozen=True)
class SingleChar:
    """Marks a str annotation as holding exactly one character."""


Int8 = Annotated[int, IntWidth(8)]
Int16 = Annotated[int, IntWidth(16)]
Int32 = Annotated[int, IntWidth(32)]
Int64 = Annotated[int, IntWidth(64)]
UInt8 = Annotated[int, IntWidth(8, signed=False)]
UInt16 = Annotated[int, IntWidth(16, signed=False)]
UInt32 = Annotated[int, IntWidth(32, signed=False)]
UInt64 = Annotated[int, IntWidth(64, signed=False)]
Char = Annotated[str, SingleChar()]


def json_field(
    *,
    name: str | None = None,
    ignore: bool = False,
    include_null: bool | None = None,
    default: Any = MISSING,
    default_factory: Any = MISSING,
    **kwargs: Any,
) -> Any:
    """Dataclass field carrying JSON conversion settings.

    Args:
        name: Property name used in JSON
        ignore: Leave the field out of JSON
        include_null: Emit the field even when its value is null
        default: Passed through to ``dataclasses.field``
        default_factory: Passed through to ``dataclasses.field``
        **kwargs: Other ``dataclasses.field`` arguments

    Example:
        @dataclass
        class User:
            user_id: int = json_field(name="id")

    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[METADATA_KEY] = JSONField(name=name, ignore=ignore, include_null=include_null)
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata=metadata,
        **kwargs,
    )


def json_options[C: type](
    *,
    include_nulls: bool | None = None,
    allow_extra: bool | None = None,
) -> Callable[[C], C]:
    """Class decorator setting null inclusion and extra-property tolerance.

    Example:
        @json_options(allow_extra=True)
        @dataclass
        class Event:
            name: str

    """

    def decorate(cls: C) -> C:
        cls.__json_options__ = JSONOptions(
            include_nulls=include_nulls,
            allow_extra=allow_extra,
        )
        return cls

    return decorate


def json_constructor[F](func: F) -> F:
    """Mark a classmethod or staticmethod as an alternative constructor.

    Marked factories are considered after ``__init__``, in definition order,
    when choosing how to build an instance from a JSON object.
    """
    target = getattr(func, "__func__", func)
    target.__json_constructor__ = True
    return func


def options_of(cls: type) -> JSONOptions:
    return getattr(cls, "__json_options__", None) or JSONOptions()


def is_json_constructor(member: Any) -> bool:
    target = getattr(member, "__func__", member)
    return callable(target) and getattr(target, "__json_constructor__", False)
