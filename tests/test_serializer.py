"""Tests for serialization to the value model."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Annotated

import pytest

from typedjson.config import JSONConfig
from typedjson.errors import (
    CircularReferenceError,
    ConstructionError,
    ConversionError,
    CustomHookError,
    NestingDepthError,
    UnsupportedTypeError,
)
from typedjson.metadata import JSONField, json_field, json_options
from typedjson.opt import Opt
from typedjson.sealed import Sealed
from typedjson.serializer import serialize
from typedjson.values import JSONDecimal, JSONInt, JSONString, json_value


class Color(Enum):
    RED = "r"
    GREEN = "g"


@dataclass
class Account:
    account_id: int = json_field(name="id")
    owner: str = ""
    password: str = json_field(ignore=True, default="")
    note: str | None = None
    email: Annotated[str | None, JSONField(include_null=True)] = None
    nickname: Opt[str] = Opt.UNSET


@json_options(include_nulls=True)
@dataclass
class Sparse:
    a: int | None = None
    b: Opt[int] = Opt.UNSET


class Plain:
    name: str
    count: int

    def __init__(self, name: str, count: int) -> None:
        self.name = name
        self.count = count


class Expr(Sealed, discriminator="op"):
    pass


@dataclass
class Num(Expr, identifier="num"):
    value: float


@dataclass
class Add(Expr, identifier="add"):
    left: Expr
    right: Expr


class Msg(Sealed, discriminator="kind"):
    pass


@dataclass
class Ping(Msg, identifier="ping"):
    kind: str = "ping"
    seq: int = 0


@dataclass
class Other:
    value: int


@dataclass(eq=False)
class Parent:
    name: str
    b: "Child | None" = None


@dataclass(eq=False)
class Child:
    a: Parent


@dataclass
class Inner:
    f: complex


@dataclass
class Outer:
    inner: Inner


@dataclass
class Tree:
    children: "list[Tree]" = field(default_factory=list)


class Secret:
    def __init__(self, text: str) -> None:
        self.text = text

    def __to_json__(self) -> str:
        return "*" * len(self.text)


class ApiKey(Secret):
    pass


# =============================================================================
# Scalars
# =============================================================================


class TestScalars:
    """Test leaf values."""

    def test_null_and_absent(self) -> None:
        """Test None and an unset Opt both serialize to null."""
        assert serialize(None) is None
        assert serialize(Opt.UNSET) is None
        assert serialize(Opt.of(3)) == JSONInt(3)

    def test_numbers(self) -> None:
        """Test ints, floats and decimals keep their exact values."""
        assert serialize(42) == JSONInt(42)
        assert serialize(0.1) == JSONDecimal(Decimal("0.1"))
        assert serialize(Decimal("1.10")).to_json() == "1.10"

    def test_big_integer(self) -> None:
        """Test integers beyond 64 bits become decimals, or strings if asked."""
        assert serialize(2**64).to_json() == "18446744073709551616"
        config = JSONConfig.builder().big_integer_string().build()
        assert serialize(2**64, config=config) == JSONString("18446744073709551616")
        assert serialize(5, config=config) == JSONInt(5)

    def test_long_big_integer_string(self) -> None:
        """Test integers longer than int()'s string limit as strings."""
        config = JSONConfig.builder().big_integer_string().build()
        assert serialize(10**5000, config=config) == JSONString("1" + "0" * 5000)

    def test_decimal_string(self) -> None:
        """Test decimals written as strings when configured."""
        config = JSONConfig.builder().decimal_string().build()
        assert serialize(Decimal("1.10"), config=config) == JSONString("1.10")

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), Decimal("NaN")])
    def test_non_finite(self, value: object) -> None:
        """Test non-finite numbers have no JSON form."""
        with pytest.raises(UnsupportedTypeError, match="non-finite"):
            serialize(value)

    def test_enum_by_name(self) -> None:
        """Test enum members serialize by name, not value."""
        assert serialize(Color.GREEN) == JSONString("GREEN")


# =============================================================================
# Collections
# =============================================================================


class TestCollections:
    """Test sequences, sets and mappings."""

    def test_sequences(self) -> None:
        """Test lists, tuples and other iterables become arrays."""
        assert serialize([1, "a", None]) == json_value([1, "a", None])
        assert serialize((1, 2)) == json_value([1, 2])
        assert serialize(frozenset({3})) == json_value([3])
        assert serialize(x * 2 for x in range(3)) == json_value([0, 2, 4])

    def test_mapping_keys(self) -> None:
        """Test non-string keys take their textual form."""
        assert serialize({2: "x", False: "y", Color.RED: "z"}) == json_value(
            {"2": "x", "false": "y", "RED": "z"},
        )

    def test_duplicate_keys(self) -> None:
        """Test keys that collide as strings are rejected."""
        with pytest.raises(ConversionError, match="Duplicate key 1"):
            serialize({1: "a", "1": "b"})

    def test_unsupported_key(self) -> None:
        """Test keys with no textual form are rejected."""
        with pytest.raises(UnsupportedTypeError, match="as a JSON object key"):
            serialize({(1, 2): "x"})

    def test_number_keys(self) -> None:
        """Test float and decimal keys take their number text."""
        assert serialize({1.5: "a", 1e20: "b", Decimal("1.10"): "c"}) == json_value(
            {"1.5": "a", "1E+20": "b", "1.10": "c"},
        )
        with pytest.raises(UnsupportedTypeError, match="as a JSON object key"):
            serialize({float("nan"): "x"})

    def test_long_integer_key(self) -> None:
        """Test integer keys longer than int()'s string limit."""
        key = 10**5000
        assert list(serialize({key: 1})) == ["1" + "0" * 5000]

    def test_shared_values_are_not_cycles(self) -> None:
        """Test the same object may appear twice when it doesn't contain itself."""
        shared = [1]
        assert serialize([shared, shared]) == json_value([[1], [1]])


# =============================================================================
# Records
# =============================================================================


class TestRecords:
    """Test field-by-field conversion."""

    def test_field_order_names_and_nulls(self) -> None:
        """Test declared order, renames, ignored fields and null omission."""
        account = Account(7, "ann", password="x")
        assert serialize(account).to_json() == '{"id":7,"owner":"ann","email":null}'

    def test_opt_present(self) -> None:
        """Test a set Opt is written and a present null omitted by default."""
        assert serialize(Account(1, nickname=Opt.of("a")))["nickname"] == JSONString("a")
        node = serialize(Account(1, nickname=Opt.of(None)))
        assert "nickname" not in node

    def test_config_rename_wins(self) -> None:
        """Test a configured name beats the json_field name."""
        config = JSONConfig.builder().rename(Account, "account_id", "key").build()
        assert list(serialize(Account(1), config=config)) == ["key", "owner", "email"]

    def test_config_ignore(self) -> None:
        """Test fields ignored through configuration."""
        config = JSONConfig.builder().ignore(Account, "owner").build()
        assert "owner" not in serialize(Account(1), config=config)

    def test_include_nulls_per_type(self) -> None:
        """Test a type's null inclusion applies to null and absent values."""
        assert serialize(Sparse()).to_json() == '{"a":null,"b":null}'

    def test_include_nulls_global(self) -> None:
        """Test the global setting applies unless a field says otherwise."""
        config = JSONConfig.builder().include_nulls().build()
        node = serialize(Account(1), config=config)
        assert list(node) == ["id", "owner", "note", "email", "nickname"]

    def test_include_nulls_override(self) -> None:
        """Test a configured per-type setting beats json_options."""
        config = JSONConfig.builder().include_nulls_for(Sparse, False).build()
        assert serialize(Sparse(), config=config).to_json() == "{}"

    def test_plain_class(self) -> None:
        """Test annotated attributes of a plain class."""
        assert serialize(Plain("a", 2)) == json_value({"name": "a", "count": 2})

    def test_recursive_type(self) -> None:
        """Test a self-referencing type converts level by level."""
        tree = Tree([Tree(), Tree([Tree()])])
        assert serialize(tree).to_json() == (
            '{"children":[{"children":[]},{"children":[{"children":[]}]}]}'
        )


# =============================================================================
# Tagged unions
# =============================================================================


class TestTaggedUnions:
    """Test variants of sealed hierarchies."""

    def test_discriminator_first(self) -> None:
        """Test the identifier is written before the fields."""
        expr = Add(Num(1.5), Num(2.0))
        assert serialize(expr, Expr).to_json() == (
            '{"op":"add","left":{"op":"num","value":1.5},'
            '"right":{"op":"num","value":2.0}}'
        )

    def test_configured_discriminator(self) -> None:
        """Test a configured discriminator name replaces the declared one."""
        config = JSONConfig.builder().discriminator_for(Expr, "type").build()
        assert serialize(Num(1.0), config=config).to_json() == '{"type":"num","value":1.0}'

    def test_field_named_like_discriminator(self) -> None:
        """Test a field sharing the discriminator's name isn't written twice."""
        assert serialize(Ping(seq=3)).to_json() == '{"kind":"ping","seq":3}'

    def test_value_not_a_variant(self) -> None:
        """Test a static tagged-union type rejects unrelated classes."""
        with pytest.raises(ConstructionError, match="Other is not a variant of Expr"):
            serialize(Other(1), Expr)

    def test_polymorphic_variant(self) -> None:
        """Test configured polymorphism writes the identifier too."""
        config = JSONConfig.builder().polymorphic(Other, "type", {"other": Other}).build()
        assert serialize(Other(1), config=config).to_json() == '{"type":"other","value":1}'


# =============================================================================
# Hooks
# =============================================================================


class TestHooks:
    """Test custom conversions."""

    def test_config_converter(self) -> None:
        """Test a configured converter's result is serialized in turn."""
        config = JSONConfig.builder().to_json(Other, lambda o: [o.value]).build()
        assert serialize({"o": Other(4)}, config=config) == json_value({"o": [4]})

    def test_to_json_string(self) -> None:
        """Test the string shorthand."""
        config = JSONConfig.builder().to_json_string(Other).build()
        assert serialize(Other(4), config=config) == JSONString("Other(value=4)")

    def test_in_class_hook_inherited(self) -> None:
        """Test __to_json__ applies to subclasses."""
        assert serialize(ApiKey("abc")) == JSONString("***")

    def test_same_type_result(self) -> None:
        """Test a converter returning its own type isn't applied again."""
        config = JSONConfig.builder().to_json(str, str.upper).build()
        assert serialize(["ab"], config=config) == json_value(["AB"])

    def test_hook_error_wrapped(self) -> None:
        """Test converter exceptions become CustomHookError with a path."""
        config = JSONConfig.builder().to_json(Other, lambda o: 1 / 0).build()
        with pytest.raises(CustomHookError) as exc_info:
            serialize([Other(1)], config=config)
        assert str(exc_info.value.pointer) == "/0"
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)


# =============================================================================
# Errors
# =============================================================================


class TestGraphErrors:
    """Test cycles and depth."""

    def test_cycle_path(self) -> None:
        """Test a back-reference fails at the path that closes the cycle."""
        parent = Parent("p")
        parent.b = Child(parent)
        with pytest.raises(CircularReferenceError) as exc_info:
            serialize(parent)
        assert str(exc_info.value) == "Circular reference to Parent, at /b/a"

    def test_self_containing_list(self) -> None:
        """Test a list that contains itself."""
        items: list[object] = [1]
        items.append(items)
        with pytest.raises(CircularReferenceError, match="at /1"):
            serialize(items)

    def test_depth_limit(self) -> None:
        """Test nesting beyond the configured depth."""
        config = JSONConfig.builder().max_depth(3).build()
        assert serialize([[[1]]], config=config) == json_value([[[1]]])
        with pytest.raises(NestingDepthError) as exc_info:
            serialize([[[[1]]]], config=config)
        assert str(exc_info.value.pointer) == "/0/0/0"

    def test_unsupported_field_type_path(self) -> None:
        """Test a nested record with an unsupported field type fails at its path."""
        with pytest.raises(UnsupportedTypeError) as exc_info:
            serialize([Outer(Inner(1j))])
        assert str(exc_info.value.pointer) == "/0/inner"

    def test_unsupported_value(self) -> None:
        """Test values with no conversion report their path."""
        with pytest.raises(UnsupportedTypeError) as exc_info:
            serialize({"a": [object()]})
        assert str(exc_info.value) == "Can't serialize object, at /a/0"
