"""Tests for type extraction and record schemas."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, NewType, TypeVar

import pytest

from typedjson.errors import UnsupportedTypeError
from typedjson.metadata import Char, Int8, JSONField, UInt64, json_constructor, json_field
from typedjson.opt import Opt
from typedjson.schema import extract_type, record_schema, type_substitutions, variant_type_args
from typedjson.sealed import Sealed
from typedjson.types import (
    AnyType,
    CharType,
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
    TypeParameter,
    UnionType,
    UnresolvedType,
    VarTupleType,
)
from typedjson.values import JSONObject

T = TypeVar("T")
N = TypeVar("N", bound=int)

UserId = NewType("UserId", int)

type IntList = list[int]
type Pair[X] = tuple[X, X]


class Color(Enum):
    RED = 1
    GREEN = 2


@dataclass
class Box[V]:
    item: V


@dataclass
class IntBox(Box[int]):
    pass


@dataclass
class Holder:
    box: Box[T]  # type: ignore[valid-type]


class Shape(Sealed):
    pass


@dataclass
class Circle(Shape):
    radius: float


@dataclass
class User:
    user_id: int = json_field(name="id")
    nickname: Annotated[str | None, JSONField(include_null=True)] = None
    secret: str = json_field(ignore=True, default="")
    _cache: Any = None
    registry: ClassVar[dict[str, Any]] = {}


@dataclass
class Contact:
    name: str
    email: str | None
    phone: Opt[str]


@dataclass(frozen=True)
class Point:
    x: float
    y: float


class Plain:
    name: str
    count: int
    kind: ClassVar[str] = "plain"

    def __init__(self, name: str, count: int = 0) -> None:
        self.name = name
        self.count = count


@dataclass(frozen=True)
class Money:
    amount: int
    currency: str

    @json_constructor
    @classmethod
    def euros(cls, amount: int) -> "Money":
        return cls(amount, "EUR")

    @json_constructor
    @staticmethod
    def parse(text: str) -> "Money":
        amount, currency = text.split()
        return Money(int(amount), currency)


class Node[L]:
    pass


class Leaf[L](Node[L]):
    pass


class IntLeaf(Node[int]):
    pass


# =============================================================================
# extract_type
# =============================================================================


class TestExtractType:
    """Test conversion of annotations to descriptors."""

    @pytest.mark.parametrize(
        ("py_type", "expected"),
        [
            (int, IntType()),
            (float, FloatType()),
            (str, StrType()),
            (None, NoneType()),
            (Any, AnyType()),
            (object, AnyType()),
            (Int8, IntType(bits=8)),
            (UInt64, IntType(bits=64, signed=False)),
            (Char, CharType()),
            (UserId, IntType()),
            (IntList, ListType(IntType())),
            (Pair[int], TupleType((IntType(), IntType()))),
            (list[str], ListType(StrType())),
            (list, ListType(AnyType())),
            (Sequence[int], SequenceType(IntType())),
            (set[int], SetType(IntType())),
            (frozenset[str], FrozenSetType(StrType())),
            (dict[str, int], DictType(StrType(), IntType())),
            (dict, DictType(StrType(), AnyType())),
            (Mapping[int, str], MappingType(IntType(), StrType())),
            (tuple[int, str], TupleType((IntType(), StrType()))),
            (tuple[int, ...], VarTupleType(IntType())),
            (int | None, NullableType(IntType())),
            (int | str, UnionType((IntType(), StrType()))),
            (int | str | None, NullableType(UnionType((IntType(), StrType())))),
            (Literal["a", "b"], LiteralType(("a", "b"))),
            (Opt[int], OptType(IntType())),
            (Color, EnumType(Color)),
            (datetime, ExternalType(datetime)),
            (JSONObject, JSONValueType(JSONObject)),
            (Point, RecordType(Point)),
            (Box[int], RecordType(Box, (int,))),
            (Shape, TaggedUnionType(Shape)),
        ],
    )
    def test_extract(self, py_type: Any, expected: Any) -> None:
        """Test each supported annotation form."""
        assert extract_type(py_type) == expected

    def test_type_variable(self) -> None:
        """Test a bare type variable becomes a parameter with its bound."""
        assert extract_type(T) == TypeParameter("T")
        assert extract_type(N) == TypeParameter("N", bound=IntType())

    def test_free_parameter_in_generic_is_unresolved(self) -> None:
        """Test a generic applied to a free parameter can't be resolved."""
        result = extract_type(Box[T], context="field box of Holder")
        assert isinstance(result, UnresolvedType)
        assert result.reason == "Can't resolve type parameter T of Box in field box of Holder"

    def test_unsupported_builtin(self) -> None:
        """Test builtin classes without a JSON form are rejected."""
        with pytest.raises(UnsupportedTypeError, match="complex"):
            extract_type(complex)

    def test_literal_values_checked(self) -> None:
        """Test Literal accepts only JSON scalar values."""
        with pytest.raises(UnsupportedTypeError, match="Literal values"):
            extract_type(Literal[1.5])

    def test_mapping_needs_two_arguments(self) -> None:
        """Test a dict annotation must name key and value types."""
        with pytest.raises(UnsupportedTypeError, match="key and value"):
            extract_type(dict[int])


# =============================================================================
# record_schema
# =============================================================================


class TestRecordSchema:
    """Test field and constructor analysis."""

    def test_dataclass_fields(self) -> None:
        """Test fields, settings and skipped members of a dataclass."""
        schema = record_schema(User)
        names = [f.name for f in schema.fields]
        assert names == ["user_id", "nickname", "secret"]
        user_id, nickname, secret = schema.fields
        assert user_id.settings == JSONField(name="id")
        assert nickname.type == NullableType(StrType())
        assert nickname.settings == JSONField(include_null=True)
        assert secret.settings is not None and secret.settings.ignore
        assert all(f.mutable for f in schema.fields)

    def test_frozen_fields_immutable(self) -> None:
        """Test fields of a frozen dataclass can't be assigned later."""
        schema = record_schema(Point)
        assert [f.mutable for f in schema.fields] == [False, False]

    def test_plain_class(self) -> None:
        """Test annotated attributes of a plain class, class variables excluded."""
        schema = record_schema(Plain)
        assert [f.name for f in schema.fields] == ["name", "count"]
        (constructor,) = schema.constructors
        assert [(p.name, p.required) for p in constructor.params] == [
            ("name", True),
            ("count", False),
        ]

    def test_marked_constructors_follow_init(self) -> None:
        """Test json_constructor factories are listed after __init__ in order."""
        schema = record_schema(Money)
        assert [len(c.params) for c in schema.constructors] == [2, 1, 1]
        euros, parse = schema.constructors[1:]
        assert euros.params[0].name == "amount"
        assert euros.params[0].type == IntType()
        assert parse.params[0].type == StrType()

    def test_optional_params_not_required(self) -> None:
        """Test nullable and Opt parameters without default may be absent."""
        schema = record_schema(Contact)
        assert [p.required for p in schema.constructors[0].params] == [True, False, False]

    def test_type_arguments_substituted(self) -> None:
        """Test a generic record's fields use the given arguments."""
        schema = record_schema(Box, (int,))
        assert schema.fields[0].type == IntType()

    def test_inherited_arguments_substituted(self) -> None:
        """Test arguments bound through a generic base apply to its fields."""
        schema = record_schema(IntBox)
        assert schema.fields[0].type == IntType()

    def test_unbound_generic_falls_back(self) -> None:
        """Test an unparameterized generic keeps the parameter."""
        schema = record_schema(Box)
        assert isinstance(schema.fields[0].type, TypeParameter)

    def test_wrong_argument_count(self) -> None:
        """Test supplying the wrong number of type arguments fails."""
        with pytest.raises(UnsupportedTypeError, match="expects 1 type arguments"):
            record_schema(Box, (int, str))

    def test_unresolved_field(self) -> None:
        """Test a field typed with another generic's free parameter."""
        schema = record_schema(Holder)
        field_type = schema.fields[0].type
        assert isinstance(field_type, UnresolvedType)
        assert "field box of Holder" in field_type.reason


# =============================================================================
# Generic substitution
# =============================================================================


class TestGenerics:
    """Test type parameter bookkeeping across generic hierarchies."""

    def test_substitutions_include_bases(self) -> None:
        """Test parameters bound in bases appear in the substitutions."""
        (param,) = Box.__type_params__
        assert type_substitutions(IntBox) == {param: int}

    def test_variant_arguments_from_root(self) -> None:
        """Test a variant's parameters are solved from the root's arguments."""
        assert variant_type_args(Leaf, Node, (str,)) == (str,)

    def test_variant_without_parameters(self) -> None:
        """Test a concrete variant needs no arguments."""
        assert variant_type_args(IntLeaf, Node, (int,)) == ()

    def test_root_without_arguments(self) -> None:
        """Test nothing is solved when the root is unparameterized."""
        assert variant_type_args(Leaf, Node, ()) == ()
