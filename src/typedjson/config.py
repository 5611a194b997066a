"""Conversion configuration and its builder."""

from __future__ import annotations

import functools
import logging
import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Self

from typedjson.errors import ConfigError, TypeMismatchError
from typedjson.metadata import options_of
from typedjson.parser import DuplicateKeyPolicy, ParseOptions
from typedjson.pointer import JSONPointer
from typedjson.registry import StrategyCache
from typedjson.values import JSONString, JSONValue, display, json_value

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)

ENV_PREFIX = "TYPEDJSON_"
DEFAULT_DISCRIMINATOR = "class"
DEFAULT_MAX_DEPTH = 128

_TRUE = frozenset({"true", "1", "yes", "on"})
_FALSE = frozenset({"false", "0", "no", "off"})
_FLAGS = (
    "include_nulls",
    "allow_extra",
    "big_integer_string",
    "decimal_string",
    "escape_non_ascii",
)

type ToJSON = Callable[[Any], Any]
type FromJSON = Callable[[JSONValue], Any]


@dataclass(frozen=True)
class Polymorphism:
    """Tagged-union dispatch registered for a class outside ``Sealed``.

    Attributes:
        root: Class named as the target type
        discriminator: Property name, or pointer into the object
        variants: Identifier node → variant class

    """

    root: type
    discriminator: str | JSONPointer
    variants: Mapping[JSONValue, type]


@dataclass(frozen=True, eq=False)
class JSONConfig:
    """Immutable conversion settings, built with ``JSONConfig.builder()``.

    Attributes:
        discriminator: Default discriminator property for tagged unions
        include_nulls: Emit null-valued fields
        allow_extra: Tolerate JSON properties with no matching field
        big_integer_string: Write ints beyond 64 bits as strings
        decimal_string: Write Decimal values as strings
        escape_non_ascii: Escape non-ASCII characters in JSON text
        parse_options: Parser tolerances used by ``from_json``
        max_depth: Maximum nesting of composite values

    """

    discriminator: str = DEFAULT_DISCRIMINATOR
    include_nulls: bool = False
    allow_extra: bool = False
    big_integer_string: bool = False
    decimal_string: bool = False
    escape_non_ascii: bool = False
    parse_options: ParseOptions = ParseOptions()
    max_depth: int = DEFAULT_MAX_DEPTH
    discriminators: Mapping[type, str] = field(default_factory=dict)
    null_inclusion: Mapping[type, bool] = field(default_factory=dict)
    extra_tolerance: Mapping[type, bool] = field(default_factory=dict)
    renames: Mapping[tuple[type, str], str] = field(default_factory=dict)
    ignored: frozenset[tuple[type, str]] = frozenset()
    to_json_converters: Mapping[type, ToJSON] = field(default_factory=dict)
    from_json_converters: Mapping[type, FromJSON] = field(default_factory=dict)
    polymorphism: Mapping[type, Polymorphism] = field(default_factory=dict)
    strategies: StrategyCache = field(init=False, repr=False)

    def __post_init__(self) -> None:
        for name in (
            "discriminators",
            "null_inclusion",
            "extra_tolerance",
            "renames",
            "to_json_converters",
            "from_json_converters",
            "polymorphism",
        ):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        object.__setattr__(self, "strategies", StrategyCache(self))

    @classmethod
    def builder(cls) -> JSONConfigBuilder:
        """Builder starting from the environment defaults."""
        return JSONConfigBuilder(**env_defaults())

    @classmethod
    def default(cls) -> JSONConfig:
        """Shared configuration with environment defaults applied."""
        return _default_config()

    def find_to_json(self, cls: type) -> ToJSON | None:
        """Converter for a class or its nearest ancestor, in MRO order."""
        for klass in cls.__mro__:
            if (converter := self.to_json_converters.get(klass)) is not None:
                return converter
        return None

    def find_from_json(self, cls: type) -> FromJSON | None:
        for klass in cls.__mro__:
            if (converter := self.from_json_converters.get(klass)) is not None:
                return converter
        return None

    def name_for(self, cls: type, attribute: str) -> str | None:
        """Configured JSON name for an attribute, if renamed."""
        for klass in cls.__mro__:
            if (name := self.renames.get((klass, attribute))) is not None:
                return name
        return None

    def is_ignored(self, cls: type, attribute: str) -> bool:
        return any((klass, attribute) in self.ignored for klass in cls.__mro__)

    def discriminator_name(self, root: type) -> str:
        """Discriminator for a tagged-union root.

        A per-type setting wins over the name declared on a ``Sealed`` root,
        which wins over the global default.
        """
        if (name := self.discriminators.get(root)) is not None:
            return name
        poly = self.polymorphism.get(root)
        if poly is not None and isinstance(poly.discriminator, str):
            return poly.discriminator
        declared = getattr(root, "__json_discriminator__", None)
        return declared if declared is not None else self.discriminator

    def include_nulls_default(self, cls: type) -> bool:
        for klass in cls.__mro__:
            if (flag := self.null_inclusion.get(klass)) is not None:
                return flag
        declared = options_of(cls).include_nulls
        return declared if declared is not None else self.include_nulls

    def allow_extra_default(self, cls: type) -> bool:
        for klass in cls.__mro__:
            if (flag := self.extra_tolerance.get(klass)) is not None:
                return flag
        declared = options_of(cls).allow_extra
        return declared if declared is not None else self.allow_extra

    def polymorphic_variant(self, cls: type) -> tuple[Polymorphism, JSONValue] | None:
        """Registration and identifier naming cls as a polymorphic variant."""
        for poly in self.polymorphism.values():
            for identifier, variant in poly.variants.items():
                if variant is cls:
                    return poly, identifier
        return None


class JSONConfigBuilder:
    """Single-threaded builder for ``JSONConfig``.

    Every method returns the builder, so calls chain:

        config = (
            JSONConfig.builder()
            .include_nulls()
            .rename(User, "user_id", "id")
            .to_json_string(IPv4Address)
            .build()
        )
    """

    def __init__(self, **settings: Any) -> None:
        self._settings: dict[str, Any] = settings
        self._discriminators: dict[type, str] = {}
        self._null_inclusion: dict[type, bool] = {}
        self._extra_tolerance: dict[type, bool] = {}
        self._renames: dict[tuple[type, str], str] = {}
        self._ignored: set[tuple[type, str]] = set()
        self._to_json: dict[type, ToJSON] = {}
        self._from_json: dict[type, FromJSON] = {}
        self._polymorphism: dict[type, Polymorphism] = {}

    def discriminator(self, name: str) -> Self:
        self._settings["discriminator"] = _check_name(name, "discriminator")
        return self

    def include_nulls(self, flag: bool = True) -> Self:
        self._settings["include_nulls"] = flag
        return self

    def allow_extra(self, flag: bool = True) -> Self:
        self._settings["allow_extra"] = flag
        return self

    def big_integer_string(self, flag: bool = True) -> Self:
        self._settings["big_integer_string"] = flag
        return self

    def decimal_string(self, flag: bool = True) -> Self:
        self._settings["decimal_string"] = flag
        return self

    def escape_non_ascii(self, flag: bool = True) -> Self:
        self._settings["escape_non_ascii"] = flag
        return self

    def parse_options(self, options: ParseOptions) -> Self:
        self._settings["parse_options"] = options
        return self

    def max_depth(self, depth: int) -> Self:
        self._settings["max_depth"] = _check_depth(depth)
        return self

    def discriminator_for(self, root: type, name: str) -> Self:
        self._discriminators[root] = _check_name(name, "discriminator")
        return self

    def include_nulls_for(self, cls: type, flag: bool = True) -> Self:
        self._null_inclusion[cls] = flag
        return self

    def allow_extra_for(self, cls: type, flag: bool = True) -> Self:
        self._extra_tolerance[cls] = flag
        return self

    def rename(self, cls: type, attribute: str, json_name: str) -> Self:
        self._renames[(cls, attribute)] = _check_name(json_name, "property name")
        return self

    def ignore(self, cls: type, attribute: str) -> Self:
        self._ignored.add((cls, attribute))
        return self

    def to_json(self, cls: type, converter: ToJSON) -> Self:
        """Convert instances of cls (and subclasses) with a function.

        The function's result is serialized in turn; a value model node is
        used as-is.
        """
        self._to_json[cls] = converter
        return self

    def from_json(self, cls: type, converter: FromJSON) -> Self:
        """Create instances of cls from a value model node with a function."""
        self._from_json[cls] = converter
        return self

    def to_json_string(self, cls: type) -> Self:
        """Serialize instances of cls as ``str(value)``."""
        return self.to_json(cls, lambda value: JSONString(str(value)))

    def from_json_string(self, cls: type) -> Self:
        """Deserialize cls by calling ``cls(text)`` on a JSON string."""

        def convert(node: JSONValue) -> Any:
            if not isinstance(node, JSONString):
                raise TypeMismatchError("string", display(node))
            return cls(node.value)

        return self.from_json(cls, convert)

    def polymorphic(
        self,
        root: type,
        discriminator: str,
        variants: Mapping[str | int | bool, type],
    ) -> Self:
        """Dispatch deserialization of root on a discriminator value.

        Args:
            root: Class used as the target type
            discriminator: Property name, or a JSON Pointer ("/meta/type")
            variants: Discriminator value → class to create

        Raises:
            ConfigError: If the discriminator or an identifier is invalid

        """
        target: str | JSONPointer
        if discriminator.startswith("/"):
            target = JSONPointer.parse(discriminator)
        else:
            target = _check_name(discriminator, "discriminator")
        table: dict[JSONValue, type] = {}
        for identifier, variant in variants.items():
            if not isinstance(identifier, str | int | bool):
                msg = f"Invalid identifier for {root.__name__}: {identifier!r}"
                raise ConfigError(msg)
            if not isinstance(variant, type):
                msg = f"Variant for {identifier!r} is not a class: {variant!r}"
                raise ConfigError(msg)
            table[json_value(identifier)] = variant
        self._polymorphism[root] = Polymorphism(root, target, table)
        return self

    def combine(self, other: JSONConfig) -> Self:
        """Copy settings, overrides and converters from another config."""
        self._settings.update(
            discriminator=other.discriminator,
            include_nulls=other.include_nulls,
            allow_extra=other.allow_extra,
            big_integer_string=other.big_integer_string,
            decimal_string=other.decimal_string,
            escape_non_ascii=other.escape_non_ascii,
            parse_options=other.parse_options,
            max_depth=other.max_depth,
        )
        self._discriminators.update(other.discriminators)
        self._null_inclusion.update(other.null_inclusion)
        self._extra_tolerance.update(other.extra_tolerance)
        self._renames.update(other.renames)
        self._ignored.update(other.ignored)
        self._to_json.update(other.to_json_converters)
        self._from_json.update(other.from_json_converters)
        self._polymorphism.update(other.polymorphism)
        return self

    def build(self) -> JSONConfig:
        return JSONConfig(
            **self._settings,
            discriminators=self._discriminators,
            null_inclusion=self._null_inclusion,
            extra_tolerance=self._extra_tolerance,
            renames=self._renames,
            ignored=frozenset(self._ignored),
            to_json_converters=self._to_json,
            from_json_converters=self._from_json,
            polymorphism=self._polymorphism,
        )


def _check_name(name: str, what: str) -> str:
    if not isinstance(name, str) or not name:
        msg = f"Invalid {what}: {name!r}"
        raise ConfigError(msg)
    return name


def _check_depth(depth: int) -> int:
    if isinstance(depth, bool) or not isinstance(depth, int) or depth < 1:
        msg = f"Invalid maximum depth: {depth!r}"
        raise ConfigError(msg)
    return depth


def _env_flag(variable: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    msg = f"Invalid value for {variable}: {value!r}"
    raise ConfigError(msg)


@functools.cache
def env_defaults() -> dict[str, Any]:
    """Settings read once from ``TYPEDJSON_*`` environment variables.

    Raises:
        ConfigError: If a variable holds an invalid value

    """
    settings: dict[str, Any] = {}
    env = os.environ

    if (value := env.get(f"{ENV_PREFIX}DISCRIMINATOR")) is not None:
        settings["discriminator"] = _check_name(value, "discriminator")

    for flag in _FLAGS:
        variable = f"{ENV_PREFIX}{flag.upper()}"
        if (value := env.get(variable)) is not None:
            settings[flag] = _env_flag(variable, value)

    parse_options = ParseOptions()
    if (value := env.get(f"{ENV_PREFIX}DUPLICATE_KEYS")) is not None:
        try:
            policy = DuplicateKeyPolicy(value.strip().lower())
        except ValueError:
            msg = f"Invalid value for {ENV_PREFIX}DUPLICATE_KEYS: {value!r}"
            raise ConfigError(msg) from None
        parse_options = replace(parse_options, duplicate_keys=policy)

    if (value := env.get(f"{ENV_PREFIX}MAX_DEPTH")) is not None:
        try:
            depth = _check_depth(int(value))
        except ValueError:
            msg = f"Invalid value for {ENV_PREFIX}MAX_DEPTH: {value!r}"
            raise ConfigError(msg) from None
        settings["max_depth"] = depth
        parse_options = replace(parse_options, max_depth=depth)

    if parse_options != ParseOptions():
        settings["parse_options"] = parse_options
    if settings:
        logger.debug("Configuration defaults from environment: %s", settings)
    return settings


@functools.cache
def _default_config() -> JSONConfig:
    return JSONConfigBuilder(**env_defaults()).build()


def reset_defaults() -> None:
    """Forget cached environment defaults so they are read again."""
    env_defaults.cache_clear()
    _default_config.cache_clear()
