"""Type extraction and class reflection utilities."""

from __future__ import annotations

import dataclasses
import inspect
import types
from collections.abc import (
    Collection,
    Iterable,
    Mapping,
    MutableMapping,
    MutableSequence,
    MutableSet,
    Sequence,
    Set as AbstractSet,
)
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Annotated,
    Any,
    ClassVar,
    Generic,
    Literal,
    NewType,
    Protocol,
    TypeAliasType,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from typedjson.codecs import TypeCodecs
from typedjson.errors import UnsupportedTypeError
from typedjson.metadata import (
    METADATA_KEY,
    IntWidth,
    JSONField,
    SingleChar,
    is_json_constructor,
)
from typedjson.opt import Opt
from typedjson.sealed import is_sealed_root
from typedjson.types import (
    AnyType,
    BoolType,
    CharType,
    DecimalType,
    DictType,
    EnumType,
    ExternalType,
    FloatType,
    FrozenSetType,
    IntType,
    JSONValueType,
    ListType,
    LiteralType,
    MappingType,
    NoneType,
    NullableType,
    OptType,
    RecordType,
    SequenceType,
    SetType,
    StrType,
    TaggedUnionType,
    TupleType,
    TypeDef,
    TypeParameter,
    UnionType,
    UnresolvedType,
    VarTupleType,
    substitute_type_params,
)
from typedjson.values import JSONValue

if TYPE_CHECKING:
    from collections.abc import Callable

_SEQUENCES: dict[Any, type[ListType] | type[SequenceType]] = {
    list: ListType,
    MutableSequence: ListType,
    Sequence: SequenceType,
    Collection: SequenceType,
    Iterable: SequenceType,
}

_SETS: dict[Any, type[SetType] | type[FrozenSetType]] = {
    set: SetType,
    MutableSet: SetType,
    frozenset: FrozenSetType,
    AbstractSet: FrozenSetType,
}

_MAPPINGS: dict[Any, type[DictType] | type[MappingType]] = {
    dict: DictType,
    MutableMapping: DictType,
    Mapping: MappingType,
}

_PRIMITIVES: dict[Any, TypeDef] = {
    bool: BoolType(),
    int: IntType(),
    float: FloatType(),
    Decimal: DecimalType(),
    str: StrType(),
}

# Classes from these modules are never converted field by field
_NON_RECORD_MODULES = frozenset({"builtins", "typing", "collections.abc", "abc"})


@dataclass(frozen=True)
class FieldSchema:
    """Schema for a class attribute converted to a JSON property.

    Attributes:
        name: Attribute name
        type: Descriptor of the attribute's annotation
        settings: Settings from ``json_field`` or ``Annotated`` metadata
        mutable: Whether the attribute may be assigned after construction

    """

    name: str
    type: TypeDef
    settings: JSONField | None = None
    mutable: bool = True


@dataclass(frozen=True)
class ParamSchema:
    """Schema for one constructor parameter."""

    name: str
    type: TypeDef
    has_default: bool
    positional_only: bool = False

    @property
    def required(self) -> bool:
        """Parameters with a default, or of Opt or nullable type, may be absent."""
        return not self.has_default and not isinstance(
            self.type,
            OptType | NullableType | AnyType,
        )


@dataclass(frozen=True)
class ConstructorSchema:
    """A way of creating an instance: ``__init__`` or a marked factory."""

    factory: Callable[..., Any]
    params: tuple[ParamSchema, ...]


@dataclass(frozen=True)
class RecordSchema:
    """Complete schema for a class converted field by field."""

    cls: type
    fields: tuple[FieldSchema, ...]
    constructors: tuple[ConstructorSchema, ...]


def extract_type(py_type: Any, *, context: str | None = None) -> TypeDef:
    """Convert a Python type annotation to a descriptor.

    Args:
        py_type: Any supported type expression (``int``, ``list[Foo]``,
            ``Box[int]``, ``Opt[str]``, ``Int8``, ...)
        context: Where the annotation came from, used in diagnostics

    Raises:
        UnsupportedTypeError: If the expression has no JSON conversion

    """
    origin = get_origin(py_type)
    args = get_args(py_type)

    if isinstance(py_type, TypeVar):
        bound = py_type.__bound__
        return TypeParameter(
            name=py_type.__name__,
            bound=extract_type(bound, context=context) if bound is not None else None,
        )

    if origin is Annotated:
        for marker in py_type.__metadata__:
            if isinstance(marker, IntWidth):
                return IntType(bits=marker.bits, signed=marker.signed)
            if isinstance(marker, SingleChar):
                return CharType()
        return extract_type(py_type.__origin__, context=context)

    # Expand PEP 695 type aliases
    if isinstance(py_type, TypeAliasType):
        return extract_type(py_type.__value__, context=context)
    if isinstance(origin, TypeAliasType):
        type_params = origin.__type_params__
        if len(type_params) != len(args):
            msg = (
                f"Type alias {origin.__name__} expects {len(type_params)} "
                f"arguments but got {len(args)}"
            )
            raise UnsupportedTypeError(msg)
        substitutions = dict(zip(type_params, args, strict=True))
        substituted = substitute_type_params(origin.__value__, substitutions)
        return extract_type(substituted, context=context)

    if isinstance(py_type, NewType):
        return extract_type(py_type.__supertype__, context=context)

    if py_type is Any or py_type is object:
        return AnyType()
    if py_type is None or py_type is type(None):
        return NoneType()
    if (primitive := _PRIMITIVES.get(py_type)) is not None:
        return primitive

    if isinstance(py_type, types.UnionType) or origin is Union:
        return _extract_union(args, context)

    if origin is Literal:
        for val in args:
            if val is not None and not isinstance(val, str | int | bool):
                msg = f"Literal values must be str, int, bool or None, got {type(val)}"
                raise UnsupportedTypeError(msg)
        return LiteralType(values=args)

    if py_type is Opt:
        return OptType(AnyType())
    if origin is Opt:
        return OptType(extract_type(args[0], context=context))

    container = origin if origin is not None else py_type
    if container in _SEQUENCES:
        element = extract_type(args[0], context=context) if args else AnyType()
        return _SEQUENCES[container](element)
    if container in _SETS:
        element = extract_type(args[0], context=context) if args else AnyType()
        return _SETS[container](element)
    if container in _MAPPINGS:
        if args and len(args) != 2:
            msg = f"{container.__name__} type must have key and value types"
            raise UnsupportedTypeError(msg)
        if not args:
            return _MAPPINGS[container](key=StrType(), value=AnyType())
        return _MAPPINGS[container](
            key=extract_type(args[0], context=context),
            value=extract_type(args[1], context=context),
        )
    if container is tuple:
        if not args:
            return VarTupleType(AnyType())
        if len(args) == 2 and args[1] is Ellipsis:
            return VarTupleType(extract_type(args[0], context=context))
        if args == ((),):
            return TupleType(elements=())
        return TupleType(elements=tuple(extract_type(a, context=context) for a in args))

    if isinstance(py_type, type):
        return _extract_class(py_type)

    if isinstance(origin, type) and origin.__module__ not in _NON_RECORD_MODULES:
        if free := _free_type_params(args):
            reason = (
                f"Can't resolve type parameter {', '.join(free)} "
                f"of {origin.__name__}"
            )
            if context:
                reason = f"{reason} in {context}"
            return UnresolvedType(reason)
        if is_sealed_root(origin):
            return TaggedUnionType(cls=origin, type_args=args)
        return RecordType(cls=origin, type_args=args)

    msg = f"Cannot extract type from: {py_type}"
    raise UnsupportedTypeError(msg)


def _extract_union(args: tuple[Any, ...], context: str | None) -> TypeDef:
    options = [a for a in args if a is not type(None) and a is not None]
    if len(options) == len(args):
        return UnionType(tuple(extract_type(a, context=context) for a in options))
    if len(options) == 1:
        inner = extract_type(options[0], context=context)
    else:
        inner = UnionType(tuple(extract_type(a, context=context) for a in options))
    return NullableType(inner)


def _extract_class(cls: type) -> TypeDef:
    if issubclass(cls, JSONValue):
        return JSONValueType(cls)
    if issubclass(cls, Enum):
        return EnumType(cls)
    if TypeCodecs.find(cls) is not None:
        return ExternalType(cls)
    if is_sealed_root(cls):
        return TaggedUnionType(cls=cls)
    if cls.__module__ in _NON_RECORD_MODULES:
        msg = f"Cannot extract type from: {cls.__name__}"
        raise UnsupportedTypeError(msg)
    return RecordType(cls=cls)


def _free_type_params(args: tuple[Any, ...]) -> list[str]:
    names: list[str] = []
    for arg in args:
        if isinstance(arg, TypeVar):
            names.append(arg.__name__)
        elif get_origin(arg) is not Literal:
            names.extend(_free_type_params(get_args(arg)))
    return names


def type_params(cls: type) -> tuple[Any, ...]:
    """Declared type parameters of a generic class (PEP 695 or Generic)."""
    return tuple(
        getattr(cls, "__type_params__", ()) or getattr(cls, "__parameters__", ()),
    )


def type_substitutions(cls: type, type_args: tuple[Any, ...] = ()) -> dict[Any, Any]:
    """Map type parameters of a class and its generic bases to arguments.

    Parameters bound through ``__orig_bases__`` (``class IntBox(Box[int])``)
    are included, so annotations inherited from generic bases resolve too.

    Raises:
        UnsupportedTypeError: If the number of arguments doesn't match

    """
    params = type_params(cls)
    if type_args and len(type_args) != len(params):
        msg = (
            f"{cls.__name__} expects {len(params)} type arguments "
            f"but got {len(type_args)}"
        )
        raise UnsupportedTypeError(msg)
    substitutions: dict[Any, Any] = dict(zip(params, type_args, strict=False))

    for klass in cls.__mro__:
        for base in klass.__dict__.get("__orig_bases__", ()):
            origin = get_origin(base)
            if origin is None or origin is Generic or origin is Protocol:
                continue
            for param, arg in zip(type_params(origin), get_args(base), strict=False):
                if param not in substitutions:
                    substitutions[param] = substitute_type_params(arg, substitutions)
    return substitutions


def variant_type_args(
    variant: type,
    root: type,
    root_args: tuple[Any, ...],
) -> tuple[Any, ...]:
    """Type arguments for a variant given the arguments of its generic root.

    Returns an empty tuple when the variant's parameters can't be solved
    from the root's, leaving them to fall back to their bounds.
    """
    variant_params = type_params(variant)
    if not root_args or not variant_params:
        return ()
    inherited = type_substitutions(variant)
    solved = {}
    for param, arg in zip(type_params(root), root_args, strict=False):
        expr = inherited.get(param)
        if isinstance(expr, TypeVar) and expr in variant_params:
            solved[expr] = arg
    if all(p in solved for p in variant_params):
        return tuple(solved[p] for p in variant_params)
    return ()


def record_schema(cls: type, type_args: tuple[Any, ...] = ()) -> RecordSchema:
    """Get the field and constructor schema for a class.

    Fields are the dataclass fields, or for other classes the annotated
    attributes (class variables excluded), in declaration order. Private
    attributes (leading underscore) are skipped.

    Raises:
        UnsupportedTypeError: If annotations can't be resolved

    """
    substitutions = type_substitutions(cls, type_args)
    try:
        hints = get_type_hints(cls, include_extras=True)
    except (NameError, TypeError) as exc:
        msg = f"Can't resolve annotations of {cls.__qualname__}: {exc}"
        raise UnsupportedTypeError(msg) from exc

    if dataclasses.is_dataclass(cls):
        mutable = not cls.__dataclass_params__.frozen
        entries = [(f.name, f.metadata.get(METADATA_KEY)) for f in dataclasses.fields(cls)]
    else:
        mutable = True
        entries = [
            (name, None)
            for name, hint in hints.items()
            if hint is not ClassVar and get_origin(hint) is not ClassVar
        ]

    record_fields: list[FieldSchema] = []
    for name, settings in entries:
        if name.startswith("_"):
            continue
        hint = substitute_type_params(hints.get(name, Any), substitutions)
        if settings is None and get_origin(hint) is Annotated:
            settings = next(
                (m for m in hint.__metadata__ if isinstance(m, JSONField)),
                None,
            )
        record_fields.append(
            FieldSchema(
                name=name,
                type=extract_type(hint, context=f"field {name} of {cls.__qualname__}"),
                settings=settings,
                mutable=mutable,
            ),
        )

    field_types = {f.name: f.type for f in record_fields}
    constructors = [_constructor(cls, cls, field_types, substitutions)]
    for name, member in cls.__dict__.items():
        if is_json_constructor(member):
            constructors.append(
                _constructor(cls, getattr(cls, name), field_types, substitutions),
            )

    return RecordSchema(
        cls=cls,
        fields=tuple(record_fields),
        constructors=tuple(constructors),
    )


def _constructor(
    cls: type,
    factory: Callable[..., Any],
    field_types: dict[str, TypeDef],
    substitutions: dict[Any, Any],
) -> ConstructorSchema:
    if factory is cls and cls.__init__ is object.__init__:
        return ConstructorSchema(factory=cls, params=())
    try:
        signature = inspect.signature(factory)
    except (TypeError, ValueError) as exc:
        msg = f"Can't inspect constructor of {cls.__qualname__}: {exc}"
        raise UnsupportedTypeError(msg) from exc

    hints: dict[str, Any] | None = None
    params: list[ParamSchema] = []
    for param in signature.parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        if param.name in field_types:
            typ = field_types[param.name]
        else:
            if hints is None:
                hints = _callable_hints(factory)
            hint = substitute_type_params(hints.get(param.name, Any), substitutions)
            typ = extract_type(hint, context=f"parameter {param.name} of {cls.__qualname__}")
        params.append(
            ParamSchema(
                name=param.name,
                type=typ,
                has_default=param.default is not param.empty,
                positional_only=param.kind is param.POSITIONAL_ONLY,
            ),
        )
    return ConstructorSchema(factory=factory, params=tuple(params))


def _callable_hints(factory: Callable[..., Any]) -> dict[str, Any]:
    target = factory.__init__ if isinstance(factory, type) else factory
    try:
        return get_type_hints(target, include_extras=True)
    except (NameError, TypeError):
        return {}
