"""Runtime type descriptors used to direct conversion."""

from __future__ import annotations

import types
from dataclasses import dataclass
from typing import (
    Annotated,
    Any,
    ClassVar,
    Literal,
    dataclass_transform,
    get_args,
    get_origin,
)


@dataclass(frozen=True)
@dataclass_transform(frozen_default=True)
class TypeDef:
    """Base for type descriptors."""

    tag: ClassVar[str]
    registry: ClassVar[dict[str, type[TypeDef]]] = {}

    def __init_subclass__(cls, tag: str | None = None) -> None:
        """Register descriptor subclass with automatic tag derivation."""
        dataclass(frozen=True)(cls)
        cls.tag = tag if tag is not None else cls.__name__

        if (existing := TypeDef.registry.get(cls.tag)) and existing is not cls:
            msg = (
                f"Tag '{cls.tag}' already registered to {existing}. "
                "Choose a different tag."
            )
            raise ValueError(msg)

        TypeDef.registry[cls.tag] = cls


class AnyType(TypeDef, tag="any"):
    """Unconstrained type: any JSON value, converted to builtins."""


class NoneType(TypeDef, tag="none"):
    """None/null type."""


class BoolType(TypeDef, tag="bool"):
    """Boolean type."""


class IntType(TypeDef, tag="int"):
    """Integer type, optionally width-bounded.

    Attributes:
        bits: Width in bits, or None for unbounded Python int
        signed: Whether negative values are allowed

    """

    bits: int | None = None
    signed: bool = True

    def bounds(self) -> tuple[int, int] | None:
        """Inclusive value range, or None when unbounded."""
        if self.bits is None:
            return None
        if self.signed:
            return -(2 ** (self.bits - 1)), 2 ** (self.bits - 1) - 1
        return 0, 2**self.bits - 1


class FloatType(TypeDef, tag="float"):
    """Floating point type."""


class DecimalType(TypeDef, tag="decimal"):
    """Arbitrary precision decimal type."""


class StrType(TypeDef, tag="str"):
    """String type."""


class CharType(TypeDef, tag="char"):
    """String of exactly one character."""


class ListType(TypeDef, tag="list"):
    """List type: list[int] → ListType(element=IntType())."""

    element: TypeDef


class SequenceType(TypeDef, tag="sequence"):
    """Abstract sequence type: Sequence[int] → SequenceType(element=IntType())."""

    element: TypeDef


class SetType(TypeDef, tag="set"):
    """Set type: set[int] → SetType(element=IntType())."""

    element: TypeDef


class FrozenSetType(TypeDef, tag="frozenset"):
    """Immutable set type: frozenset[int] → FrozenSetType(element=IntType())."""

    element: TypeDef


class TupleType(TypeDef, tag="tuple"):
    """Fixed-length heterogeneous tuple: tuple[int, str] → TupleType(elements=(...))."""

    elements: tuple[TypeDef, ...]


class VarTupleType(TypeDef, tag="vartuple"):
    """Homogeneous tuple of any length: tuple[int, ...] → VarTupleType(IntType())."""

    element: TypeDef


class DictType(TypeDef, tag="dict"):
    """Dict type: dict[str, int] → DictType(key=StrType(), value=IntType())."""

    key: TypeDef
    value: TypeDef


class MappingType(TypeDef, tag="mapping"):
    """Abstract mapping type: Mapping[str, int] → MappingType(...)."""

    key: TypeDef
    value: TypeDef


class LiteralType(TypeDef, tag="literal"):
    """Literal enumeration: Literal["a", "b"] → LiteralType(values=("a", "b"))."""

    values: tuple[str | int | bool | None, ...]


class EnumType(TypeDef, tag="enum"):
    """Enum class, represented in JSON by member name."""

    cls: type


class UnionType(TypeDef, tag="union"):
    """Union type: int | str → UnionType(options=(IntType(), StrType()))."""

    options: tuple[TypeDef, ...]


class NullableType(TypeDef, tag="nullable"):
    """Type that also admits null: int | None → NullableType(IntType())."""

    inner: TypeDef


class OptType(TypeDef, tag="opt"):
    """Absent-capable value: Opt[int] → OptType(IntType())."""

    inner: TypeDef


class RecordType(TypeDef, tag="record"):
    """Class converted field by field.

    Example: Box[int] → RecordType(cls=Box, type_args=(int,))

    Type arguments are kept as Python type expressions so that they can be
    substituted into the class's field annotations.
    """

    cls: type
    type_args: tuple[Any, ...] = ()


class TaggedUnionType(TypeDef, tag="tagged_union"):
    """Root of a closed hierarchy, dispatched on a discriminator property."""

    cls: type
    type_args: tuple[Any, ...] = ()


class ExternalType(TypeDef, tag="external"):
    """Class converted through a registered codec (datetime, UUID, ...)."""

    cls: type


class JSONValueType(TypeDef, tag="json_value"):
    """Value model node class, passed through unchanged."""

    cls: type


class TypeParameter(TypeDef, tag="typeparam"):
    """Type parameter left free after substitution.

    Attributes:
        name: The type parameter name (e.g., "T")
        bound: Optional upper bound, used in place of the parameter

    """

    name: str
    bound: TypeDef | None = None


class UnresolvedType(TypeDef, tag="unresolved"):
    """Generic argument that could not be resolved to a concrete type."""

    reason: str


def describe(typedef: TypeDef) -> str:
    """Short human-readable name of a descriptor, used in error messages."""
    match typedef:
        case AnyType():
            return "any"
        case NoneType():
            return "null"
        case IntType(bits=None):
            return "int"
        case IntType(bits=bits, signed=signed):
            return f"{'int' if signed else 'uint'}{bits}"
        case ListType(element=element) | SequenceType(element=element):
            return f"list[{describe(element)}]"
        case SetType(element=element) | FrozenSetType(element=element):
            return f"{typedef.tag}[{describe(element)}]"
        case TupleType(elements=elements):
            return f"tuple[{', '.join(describe(e) for e in elements)}]"
        case VarTupleType(element=element):
            return f"tuple[{describe(element)}, ...]"
        case DictType(key=key, value=value) | MappingType(key=key, value=value):
            return f"dict[{describe(key)}, {describe(value)}]"
        case LiteralType(values=values):
            return f"Literal[{', '.join(repr(v) for v in values)}]"
        case UnionType(options=options):
            return " | ".join(describe(o) for o in options)
        case NullableType(inner=inner):
            return f"{describe(inner)} | None"
        case OptType(inner=inner):
            return f"Opt[{describe(inner)}]"
        case RecordType(cls=cls, type_args=args) | TaggedUnionType(cls=cls, type_args=args):
            if not args:
                return cls.__name__
            return f"{cls.__name__}[{', '.join(_arg_name(a) for a in args)}]"
        case EnumType(cls=cls) | ExternalType(cls=cls) | JSONValueType(cls=cls):
            return cls.__name__
        case TypeParameter(name=name):
            return name
        case UnresolvedType():
            return "unresolved"
    return typedef.tag


def _arg_name(arg: Any) -> str:
    return arg.__name__ if isinstance(arg, type) else str(arg)


def substitute_type_params(type_expr: Any, substitutions: dict[Any, Any]) -> Any:
    """Recursively substitute type parameters in a type expression."""
    origin = get_origin(type_expr)
    if origin is Literal:
        return type_expr

    if origin is Annotated:
        inner = substitute_type_params(type_expr.__origin__, substitutions)
        return Annotated[inner, *type_expr.__metadata__]

    try:
        if type_expr in substitutions:
            return substitutions[type_expr]
    except TypeError:
        return type_expr

    args = get_args(type_expr)
    if origin is None or not args:
        return type_expr

    new_args = tuple(substitute_type_params(arg, substitutions) for arg in args)

    # UnionType (| operator) needs special reconstruction
    if isinstance(type_expr, types.UnionType):
        result = new_args[0]
        for arg in new_args[1:]:
            result = result | arg
        return result

    return origin[new_args]
