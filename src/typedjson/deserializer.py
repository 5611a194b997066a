"""Type-directed deserialization of the JSON value model to Python objects."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from typedjson.config import JSONConfig
from typedjson.errors import (
    ConstructionError,
    ConversionError,
    CustomHookError,
    DuplicateElementError,
    MissingPropertyError,
    NestingDepthError,
    ParseError,
    TypeMismatchError,
    UnexpectedPropertyError,
    UnresolvedTypeParameterError,
    UnsupportedTypeError,
)
from typedjson.opt import Opt
from typedjson.parser import parse
from typedjson.pointer import JSONPointer
from typedjson.registry import (
    EnumStrategy,
    ExternalStrategy,
    RecordStrategy,
    TaggedUnionStrategy,
)
from typedjson.schema import variant_type_args
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
    describe,
)
from typedjson.values import (
    JSONArray,
    JSONBoolean,
    JSONDecimal,
    JSONInt,
    JSONNumber,
    JSONObject,
    JSONString,
    JSONValue,
    display,
    json_value,
    to_python,
)

if TYPE_CHECKING:
    from typedjson.registry import ConstructorPlan

MAX_DEPTH_EXCEEDED = "Maximum nesting depth exceeded"
MAX_INTEGER_DIGITS = 10_000

_INTEGER_TEXT = re.compile(r"-?[0-9]+")

_TARGET_CLASSES: dict[type[TypeDef], type] = {
    BoolType: bool,
    IntType: int,
    FloatType: float,
    DecimalType: Decimal,
    StrType: str,
    CharType: str,
}


def _target_class(descriptor: TypeDef) -> type | None:
    """Class whose converters apply to a descriptor, if any."""
    match descriptor:
        case (
            RecordType(cls=cls)
            | TaggedUnionType(cls=cls)
            | EnumType(cls=cls)
            | ExternalType(cls=cls)
        ):
            return cls
    return _TARGET_CLASSES.get(type(descriptor))


def _mismatch(
    descriptor: TypeDef,
    node: JSONValue | None,
    pointer: JSONPointer,
) -> TypeMismatchError:
    return TypeMismatchError(describe(descriptor), display(node), pointer)


def _bounded_int(
    value: Decimal,
    descriptor: IntType,
    node: JSONValue,
    pointer: JSONPointer,
) -> int:
    """Integral value as int, refusing more digits than the target can hold."""
    bounds = descriptor.bounds()
    limit = len(str(max(-bounds[0], bounds[1]))) if bounds else MAX_INTEGER_DIGITS
    if value and value.adjusted() >= limit:
        raise _mismatch(descriptor, node, pointer)
    return int(value)


class _Deserializer:
    def __init__(self, config: JSONConfig) -> None:
        self._config = config

    def convert(
        self,
        node: JSONValue | None,
        descriptor: TypeDef,
        pointer: JSONPointer,
        depth: int = 0,
    ) -> Any:
        if node is None:
            return self._null(descriptor, pointer)

        target = _target_class(descriptor)
        if target is not None and (hook := self._hook_for(target)) is not None:
            try:
                return hook(node)
            except Exception as exc:
                msg = f"Error in custom from_json for {target.__qualname__}: {exc}"
                raise CustomHookError(msg, pointer) from exc

        outer = depth
        if isinstance(node, JSONArray | JSONObject):
            depth += 1
            if depth > self._config.max_depth:
                raise NestingDepthError(MAX_DEPTH_EXCEEDED, pointer)

        match descriptor:
            case AnyType():
                return to_python(node)
            case NoneType():
                raise _mismatch(descriptor, node, pointer)
            case BoolType():
                if isinstance(node, JSONBoolean):
                    return node.value
                raise _mismatch(descriptor, node, pointer)
            case IntType():
                return self._integer(node, descriptor, pointer)
            case FloatType():
                if isinstance(node, JSONNumber):
                    return float(node.value)
                raise _mismatch(descriptor, node, pointer)
            case DecimalType():
                return self._decimal(node, descriptor, pointer)
            case StrType():
                if isinstance(node, JSONString):
                    return node.value
                raise _mismatch(descriptor, node, pointer)
            case CharType():
                if isinstance(node, JSONString) and len(node.value) == 1:
                    return node.value
                raise _mismatch(descriptor, node, pointer)
            case ListType(element=element) | SequenceType(element=element):
                return self._items(node, descriptor, element, pointer, depth)
            case VarTupleType(element=element):
                return tuple(self._items(node, descriptor, element, pointer, depth))
            case TupleType(elements=elements):
                return self._tuple(node, descriptor, elements, pointer, depth)
            case SetType(element=element):
                return self._set(node, descriptor, element, pointer, depth)
            case FrozenSetType(element=element):
                return frozenset(self._set(node, descriptor, element, pointer, depth))
            case DictType(key=key, value=value) | MappingType(key=key, value=value):
                return self._dict(node, descriptor, key, value, pointer, depth)
            case LiteralType(values=values):
                for candidate in values:
                    if json_value(candidate) == node:
                        return candidate
                raise _mismatch(descriptor, node, pointer)
            case UnionType(options=options):
                return self._union(node, descriptor, options, pointer, outer)
            case NullableType(inner=inner):
                return self.convert(node, inner, pointer, outer)
            case OptType(inner=inner):
                return Opt.of(self.convert(node, inner, pointer, outer))
            case JSONValueType(cls=cls):
                if isinstance(node, cls):
                    return node
                raise _mismatch(descriptor, node, pointer)
            case TypeParameter(bound=bound):
                if bound is None:
                    return to_python(node)
                return self.convert(node, bound, pointer, outer)
            case UnresolvedType(reason=reason):
                raise UnresolvedTypeParameterError(reason, pointer)

        return self._strategic(node, descriptor, pointer, depth)

    def _hook_for(self, target: type) -> Any:
        hook = self._config.find_from_json(target)
        # in-class hooks are not inherited, so a root's hook can dispatch to variants
        if hook is None and "__from_json__" in vars(target):
            hook = getattr(target, "__from_json__")
        return hook

    def _null(self, descriptor: TypeDef, pointer: JSONPointer) -> Any:
        match descriptor:
            case NullableType() | AnyType() | NoneType():
                return None
            case OptType():
                return Opt.of(None)
            case TypeParameter(bound=None):
                return None
            case TypeParameter(bound=bound):
                return self._null(bound, pointer)
            case LiteralType(values=values) if None in values:
                return None
        msg = f"Can't deserialize null as {describe(descriptor)}"
        raise TypeMismatchError(describe(descriptor), "null", pointer, text=msg)

    # ==========================================================================
    # Scalars
    # ==========================================================================

    def _integer(self, node: JSONValue, descriptor: IntType, pointer: JSONPointer) -> int:
        match node:
            case JSONInt(value=value):
                result = value
            case JSONDecimal(value=value) if node.is_integral():
                result = _bounded_int(value, descriptor, node, pointer)
            case JSONString(value=text) if self._config.big_integer_string:
                if not _INTEGER_TEXT.fullmatch(text):
                    raise _mismatch(descriptor, node, pointer)
                result = _bounded_int(Decimal(text), descriptor, node, pointer)
            case _:
                raise _mismatch(descriptor, node, pointer)
        bounds = descriptor.bounds()
        if bounds is not None and not bounds[0] <= result <= bounds[1]:
            raise _mismatch(descriptor, node, pointer)
        return result

    def _decimal(self, node: JSONValue, descriptor: TypeDef, pointer: JSONPointer) -> Decimal:
        if isinstance(node, JSONNumber):
            return node.to_decimal()
        if isinstance(node, JSONString):
            try:
                result = Decimal(node.value)
            except InvalidOperation:
                raise _mismatch(descriptor, node, pointer) from None
            if result.is_finite():
                return result
        raise _mismatch(descriptor, node, pointer)

    # ==========================================================================
    # Collections
    # ==========================================================================

    def _items(
        self,
        node: JSONValue,
        descriptor: TypeDef,
        element: TypeDef,
        pointer: JSONPointer,
        depth: int,
    ) -> list[Any]:
        if not isinstance(node, JSONArray):
            raise _mismatch(descriptor, node, pointer)
        return [
            self.convert(item, element, pointer.child(index), depth)
            for index, item in enumerate(node)
        ]

    def _tuple(
        self,
        node: JSONValue,
        descriptor: TypeDef,
        elements: tuple[TypeDef, ...],
        pointer: JSONPointer,
        depth: int,
    ) -> tuple[Any, ...]:
        if not isinstance(node, JSONArray):
            raise _mismatch(descriptor, node, pointer)
        if len(node) != len(elements):
            msg = (
                f"Incorrect number of elements for {describe(descriptor)}, "
                f"expected {len(elements)} but was {len(node)}"
            )
            raise TypeMismatchError(describe(descriptor), display(node), pointer, text=msg)
        return tuple(
            self.convert(item, element, pointer.child(index), depth)
            for index, (item, element) in enumerate(zip(node, elements, strict=True))
        )

    def _set(
        self,
        node: JSONValue,
        descriptor: TypeDef,
        element: TypeDef,
        pointer: JSONPointer,
        depth: int,
    ) -> set[Any]:
        if not isinstance(node, JSONArray):
            raise _mismatch(descriptor, node, pointer)
        result: set[Any] = set()
        for index, item in enumerate(node):
            child = pointer.child(index)
            value = self.convert(item, element, child, depth)
            try:
                if value in result:
                    msg = "Duplicate not allowed"
                    raise DuplicateElementError(msg, child)
                result.add(value)
            except TypeError as exc:
                msg = f"Can't add unhashable {type(value).__qualname__} to a set"
                raise UnsupportedTypeError(msg, child) from exc
        return result

    def _dict(
        self,
        node: JSONValue,
        descriptor: TypeDef,
        key: TypeDef,
        value: TypeDef,
        pointer: JSONPointer,
        depth: int,
    ) -> dict[Any, Any]:
        if not isinstance(node, JSONObject):
            raise _mismatch(descriptor, node, pointer)
        result: dict[Any, Any] = {}
        for name, item in node.properties:
            child = pointer.child(name)
            result[self._key(name, key, child)] = self.convert(item, value, child, depth)
        return result

    def _key(self, name: str, descriptor: TypeDef, pointer: JSONPointer) -> Any:
        if isinstance(descriptor, StrType | AnyType):
            return name
        key_node: JSONValue = JSONString(name)
        if isinstance(descriptor, IntType | FloatType | DecimalType | BoolType):
            try:
                parsed = parse(name)
            except ParseError:
                raise _mismatch(descriptor, key_node, pointer) from None
            if parsed is not None:
                key_node = parsed
        return self.convert(key_node, descriptor, pointer)

    def _union(
        self,
        node: JSONValue,
        descriptor: TypeDef,
        options: tuple[TypeDef, ...],
        pointer: JSONPointer,
        depth: int,
    ) -> Any:
        for option in options:
            try:
                return self.convert(node, option, pointer, depth)
            except (UnresolvedTypeParameterError, CustomHookError):
                raise
            except ConversionError:
                continue
        raise _mismatch(descriptor, node, pointer)

    # ==========================================================================
    # Strategies
    # ==========================================================================

    def _strategic(
        self,
        node: JSONValue,
        descriptor: TypeDef,
        pointer: JSONPointer,
        depth: int,
    ) -> Any:
        try:
            strategy = self._config.strategies.resolve(descriptor)
        except UnsupportedTypeError as exc:
            if exc.pointer.is_root and not pointer.is_root:
                raise type(exc)(exc.text, pointer) from exc
            raise

        match strategy:
            case EnumStrategy(cls=cls, members=members):
                if isinstance(node, JSONString) and node.value in members:
                    return members[node.value]
                msg = f"Not a valid {cls.__name__} - {display(node)}"
                raise TypeMismatchError(cls.__name__, display(node), pointer, text=msg)
            case ExternalStrategy(cls=cls, decode=decode):
                try:
                    return decode(to_python(node))
                except (ValueError, TypeError, AttributeError) as exc:
                    msg = f"Can't deserialize {display(node)} as {cls.__name__}"
                    raise TypeMismatchError(
                        cls.__name__,
                        display(node),
                        pointer,
                        text=msg,
                    ) from exc
            case TaggedUnionStrategy():
                return self._tagged(node, strategy, pointer, depth)
            case RecordStrategy():
                return self._record(node, strategy, pointer, depth)
        msg = f"No conversion strategy for {describe(descriptor)}"
        raise UnsupportedTypeError(msg, pointer)

    def _tagged(
        self,
        node: JSONValue,
        strategy: TaggedUnionStrategy,
        pointer: JSONPointer,
        depth: int,
    ) -> Any:
        root = strategy.root
        if not isinstance(node, JSONObject):
            raise TypeMismatchError(root.__name__, display(node), pointer)

        discriminator = strategy.discriminator
        if isinstance(discriminator, JSONPointer):
            try:
                identifier = discriminator.find(node)
            except KeyError:
                raise MissingPropertyError(
                    root.__name__,
                    [str(discriminator)],
                    pointer,
                ) from None
            body = node
        else:
            if discriminator not in node:
                raise MissingPropertyError(root.__name__, [discriminator], pointer)
            identifier = node[discriminator]
            body = node

        variant = strategy.variants.get(identifier) if identifier is not None else None
        if variant is None:
            shown = identifier.value if isinstance(identifier, JSONString) else display(identifier)
            msg = f"Can't find identifier {shown} for {root.__name__}"
            raise ConstructionError(msg, pointer)

        if isinstance(discriminator, str) and variant not in strategy.keep_discriminator:
            body = node.without(discriminator)
        type_args = variant_type_args(variant, root, strategy.type_args)
        record = self._config.strategies.record(variant, type_args)
        return self._record(body, record, pointer, depth, tagged=True)

    def _record(
        self,
        node: JSONValue,
        strategy: RecordStrategy,
        pointer: JSONPointer,
        depth: int,
        *,
        tagged: bool = False,
    ) -> Any:
        cls = strategy.cls
        if not isinstance(node, JSONObject):
            return self._from_scalar(node, strategy, pointer, depth)

        properties = dict(node.properties)
        for plan in strategy.fields:
            if plan.ignore:
                properties.pop(plan.json_name, None)
        if not tagged and strategy.discriminator is not None:
            name, _ = strategy.discriminator
            if name not in strategy.by_json_name:
                properties.pop(name, None)

        constructor = self._choose(properties, strategy, pointer)
        consumed = {param.json_name for param in constructor.params}
        leftover = [name for name in properties if name not in consumed]
        for name in leftover:
            plan = strategy.by_json_name.get(name)
            if (plan is None or not plan.mutable) and not strategy.allow_extra:
                raise UnexpectedPropertyError(cls.__name__, name, pointer)

        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for param in constructor.params:
            if param.json_name in properties:
                value = self.convert(
                    properties[param.json_name],
                    param.type,
                    pointer.child(param.json_name),
                    depth,
                )
            elif isinstance(param.type, OptType):
                value = Opt.UNSET
            elif not param.required and isinstance(param.type, NullableType | AnyType):
                value = None
            else:
                continue
            if param.positional_only:
                args.append(value)
            else:
                kwargs[param.name] = value
        instance = self._invoke(constructor, cls, args, kwargs, pointer)

        for name in leftover:
            plan = strategy.by_json_name.get(name)
            if plan is not None and plan.mutable:
                value = self.convert(properties[name], plan.type, pointer.child(name), depth)
                setattr(instance, plan.attribute, value)
        return instance

    def _choose(
        self,
        properties: dict[str, JSONValue | None],
        strategy: RecordStrategy,
        pointer: JSONPointer,
    ) -> ConstructorPlan:
        """Pick the constructor that best matches the offered properties."""
        cls = strategy.cls
        constructors = strategy.constructors
        if len(constructors) == 1:
            constructor = constructors[0]
            missing = [
                param.json_name
                for param in constructor.params
                if param.required and param.json_name not in properties
            ]
            if missing:
                raise MissingPropertyError(cls.__name__, missing, pointer)
            return constructor

        best: ConstructorPlan | None = None
        best_score = -1
        for constructor in constructors:
            score = self._score(constructor, properties, strategy)
            if score > best_score:
                best, best_score = constructor, score
        if best is None:
            offered = ", ".join(properties) or "none"
            msg = f"Can't locate constructor for {cls.__name__}; properties: {offered}"
            raise ConstructionError(msg, pointer)
        return best

    def _score(
        self,
        constructor: ConstructorPlan,
        properties: dict[str, JSONValue | None],
        strategy: RecordStrategy,
    ) -> int:
        names = {param.json_name for param in constructor.params}
        score = 0
        for param in constructor.params:
            if param.required:
                if param.json_name not in properties:
                    return -1
                score += 1
        if not strategy.allow_extra:
            for name in properties:
                plan = strategy.by_json_name.get(name)
                if name not in names and (plan is None or not plan.mutable):
                    return -1
        return score

    def _from_scalar(
        self,
        node: JSONValue,
        strategy: RecordStrategy,
        pointer: JSONPointer,
        depth: int,
    ) -> Any:
        """Create a record from a non-object through a one-argument constructor."""
        cls = strategy.cls
        candidates = [
            c
            for c in strategy.constructors
            if sum(param.required for param in c.params) == 1
        ]
        if isinstance(node, JSONString):
            candidates.sort(key=lambda c: not _takes_string(c))
        if not candidates:
            raise TypeMismatchError(cls.__name__, display(node), pointer)
        constructor = candidates[0]
        param = next(param for param in constructor.params if param.required)
        value = self.convert(node, param.type, pointer, depth)
        if param.positional_only:
            return self._invoke(constructor, cls, [value], {}, pointer)
        return self._invoke(constructor, cls, [], {param.name: value}, pointer)

    def _invoke(
        self,
        constructor: ConstructorPlan,
        cls: type,
        args: list[Any],
        kwargs: dict[str, Any],
        pointer: JSONPointer,
    ) -> Any:
        try:
            return constructor.factory(*args, **kwargs)
        except Exception as exc:
            msg = f"Error creating {cls.__name__}: {exc}"
            raise ConstructionError(msg, pointer) from exc


def _takes_string(constructor: ConstructorPlan) -> bool:
    param = next(param for param in constructor.params if param.required)
    return isinstance(param.type, StrType)


def deserialize(
    node: JSONValue | None,
    typ: Any,
    config: JSONConfig | None = None,
) -> Any:
    """Convert a value model tree to an instance of a Python type.

    Args:
        node: Tree to convert (None for JSON null)
        typ: Target type expression, e.g. ``int``, ``list[Item]``,
            ``Box[int]``, ``Opt[str]`` or a ``Sealed`` root
        config: Settings and converters (default: ``JSONConfig.default()``)

    Raises:
        ConversionError: If the tree doesn't fit the type; the error's
            pointer locates the failing node

    """
    config = config or JSONConfig.default()
    descriptor = config.strategies.descriptor(typ)
    return _Deserializer(config).convert(node, descriptor, JSONPointer.root)
