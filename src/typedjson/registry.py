"""Conversion strategies and the per-configuration strategy cache."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from typedjson.codecs import TypeCodecs
from typedjson.errors import UnsupportedTypeError
from typedjson.schema import extract_type, record_schema
from typedjson.sealed import sealed_root
from typedjson.types import (
    EnumType,
    ExternalType,
    RecordType,
    TaggedUnionType,
    TypeDef,
    describe,
)
from typedjson.values import JSONString, JSONValue

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from typedjson.config import JSONConfig, Polymorphism
    from typedjson.pointer import JSONPointer
    from typedjson.schema import ConstructorSchema, FieldSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldPlan:
    """How one attribute maps to a JSON property."""

    attribute: str
    json_name: str
    type: TypeDef
    ignore: bool = False
    include_null: bool = False
    mutable: bool = True


@dataclass(frozen=True)
class ParamPlan:
    """How one constructor parameter is filled from a JSON property."""

    name: str
    json_name: str
    type: TypeDef
    required: bool
    positional_only: bool = False


@dataclass(frozen=True)
class ConstructorPlan:
    factory: Callable[..., Any]
    params: tuple[ParamPlan, ...]


@dataclass(frozen=True, eq=False)
class RecordStrategy:
    """Field-by-field conversion of a class.

    Attributes:
        cls: The class converted
        fields: Field plans in declaration order
        constructors: ``__init__`` first, then marked factories
        allow_extra: Tolerate properties matching no parameter or field
        discriminator: Property name and identifier written first when the
            class is a tagged-union variant

    """

    cls: type
    fields: tuple[FieldPlan, ...]
    constructors: tuple[ConstructorPlan, ...]
    allow_extra: bool = False
    discriminator: tuple[str, JSONValue] | None = None
    by_json_name: Mapping[str, FieldPlan] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "by_json_name",
            MappingProxyType({plan.json_name: plan for plan in self.fields}),
        )


@dataclass(frozen=True, eq=False)
class TaggedUnionStrategy:
    """Dispatch on a discriminator to one of a closed set of variants."""

    root: type
    type_args: tuple[Any, ...]
    discriminator: str | JSONPointer
    variants: Mapping[JSONValue, type]
    keep_discriminator: frozenset[type] = frozenset()


@dataclass(frozen=True, eq=False)
class EnumStrategy:
    cls: type[Enum]
    members: Mapping[str, Enum]


@dataclass(frozen=True, eq=False)
class ExternalStrategy:
    cls: type
    encode: Callable[[Any], Any]
    decode: Callable[[Any], Any]


type Strategy = RecordStrategy | TaggedUnionStrategy | EnumStrategy | ExternalStrategy


class StrategyCache:
    """Memo of conversion strategies for one configuration.

    Strategies are built on first use under a re-entrant lock and never
    change afterwards; lookups of already-built strategies don't lock.
    Nested types are resolved when conversion reaches them, so building a
    strategy for a recursive type never recurses.
    """

    def __init__(self, config: JSONConfig) -> None:
        self._config = config
        self._lock = threading.RLock()
        self._strategies: dict[Any, Strategy] = {}
        self._descriptors: dict[Any, TypeDef] = {}

    def descriptor(self, py_type: Any) -> TypeDef:
        """Descriptor for a Python type expression, memoized."""
        if isinstance(py_type, TypeDef):
            return py_type
        try:
            cached = self._descriptors.get(py_type)
        except TypeError:
            # unhashable type expression (e.g. Annotated with a list)
            return extract_type(py_type)
        if cached is None:
            cached = extract_type(py_type)
            self._descriptors[py_type] = cached
        return cached

    def resolve(self, descriptor: TypeDef) -> Strategy:
        """Strategy for a record, tagged-union, enum or external descriptor.

        Raises:
            UnsupportedTypeError: If the descriptor has no strategy

        """
        return self._cached(descriptor, lambda: self._build(descriptor))

    def record(self, cls: type, type_args: tuple[Any, ...] = ()) -> RecordStrategy:
        """Field-by-field strategy for cls, ignoring tagged-union dispatch."""
        key = ("record", cls, type_args)
        return self._cached(key, lambda: self._build_record(cls, type_args))

    def _cached(self, key: Any, build: Callable[[], Any]) -> Any:
        strategy = self._strategies.get(key)
        if strategy is None:
            with self._lock:
                strategy = self._strategies.get(key)
                if strategy is None:
                    strategy = build()
                    self._strategies[key] = strategy
                    logger.debug("Created %s for %s", type(strategy).__name__, key)
        return strategy

    def _build(self, descriptor: TypeDef) -> Strategy:
        match descriptor:
            case RecordType(cls=cls, type_args=type_args):
                if (poly := self._config.polymorphism.get(cls)) is not None:
                    return self._build_polymorphic(poly, type_args)
                return self.record(cls, type_args)
            case TaggedUnionType(cls=cls, type_args=type_args):
                return self._build_sealed(cls, type_args)
            case EnumType(cls=cls):
                return EnumStrategy(cls=cls, members=MappingProxyType(dict(cls.__members__)))
            case ExternalType(cls=cls):
                codec = TypeCodecs.find(cls)
                if codec is None:
                    msg = f"No codec registered for {cls.__name__}"
                    raise UnsupportedTypeError(msg)
                encode, decode = codec
                return ExternalStrategy(cls=cls, encode=encode, decode=decode)
        msg = f"No conversion strategy for {describe(descriptor)}"
        raise UnsupportedTypeError(msg)

    def _build_record(self, cls: type, type_args: tuple[Any, ...]) -> RecordStrategy:
        config = self._config
        schema = record_schema(cls, type_args)
        include_nulls = config.include_nulls_default(cls)
        fields = tuple(self._field_plan(cls, f, include_nulls) for f in schema.fields)
        names = {plan.attribute: plan.json_name for plan in fields}
        constructors = tuple(
            self._constructor_plan(cls, constructor, names)
            for constructor in schema.constructors
        )
        return RecordStrategy(
            cls=cls,
            fields=fields,
            constructors=constructors,
            allow_extra=config.allow_extra_default(cls),
            discriminator=self._variant_discriminator(cls),
        )

    def _field_plan(self, cls: type, schema: FieldSchema, include_nulls: bool) -> FieldPlan:
        settings = schema.settings
        json_name = self._config.name_for(cls, schema.name)
        if json_name is None:
            json_name = settings.name if settings and settings.name else schema.name
        include_null = include_nulls
        if settings is not None and settings.include_null is not None:
            include_null = settings.include_null
        return FieldPlan(
            attribute=schema.name,
            json_name=json_name,
            type=schema.type,
            ignore=self._config.is_ignored(cls, schema.name)
            or (settings is not None and settings.ignore),
            include_null=include_null,
            mutable=schema.mutable,
        )

    def _constructor_plan(
        self,
        cls: type,
        schema: ConstructorSchema,
        names: dict[str, str],
    ) -> ConstructorPlan:
        params = tuple(
            ParamPlan(
                name=param.name,
                json_name=names.get(param.name)
                or self._config.name_for(cls, param.name)
                or param.name,
                type=param.type,
                required=param.required,
                positional_only=param.positional_only,
            )
            for param in schema.params
        )
        return ConstructorPlan(factory=schema.factory, params=params)

    def _variant_discriminator(self, cls: type) -> tuple[str, JSONValue] | None:
        root = sealed_root(cls)
        if root is not None and root is not cls:
            name = self._config.discriminator_name(root)
            return name, JSONString(cls.__json_identifier__)
        if (found := self._config.polymorphic_variant(cls)) is not None:
            poly, identifier = found
            if isinstance(poly.discriminator, str):
                return poly.discriminator, identifier
        return None

    def _build_sealed(self, root: type, type_args: tuple[Any, ...]) -> TaggedUnionStrategy:
        name = self._config.discriminator_name(root)
        variants = {
            JSONString(identifier): variant
            for identifier, variant in root.__json_variants__.items()
        }
        return TaggedUnionStrategy(
            root=root,
            type_args=type_args,
            discriminator=name,
            variants=MappingProxyType(variants),
            keep_discriminator=self._keeping(name, variants.values()),
        )

    def _build_polymorphic(
        self,
        poly: Polymorphism,
        type_args: tuple[Any, ...],
    ) -> TaggedUnionStrategy:
        keep: frozenset[type] = frozenset()
        if isinstance(poly.discriminator, str):
            keep = self._keeping(poly.discriminator, poly.variants.values())
        return TaggedUnionStrategy(
            root=poly.root,
            type_args=type_args,
            discriminator=poly.discriminator,
            variants=poly.variants,
            keep_discriminator=keep,
        )

    def _keeping(self, name: str, variants: Any) -> frozenset[type]:
        """Variants with a field named like the discriminator."""
        return frozenset(
            variant
            for variant in variants
            if name in self.record(variant).by_json_name
        )
