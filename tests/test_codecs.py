"""Tests for TypeCodecs - lossless JSON forms for value types."""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from pathlib import PurePosixPath
from uuid import UUID

import pytest

from typedjson.codecs import TypeCodecs
from typedjson.config import JSONConfig
from typedjson.errors import ConversionError, TypeMismatchError, UnsupportedTypeError
from typedjson.formats.json import from_json, to_json
from typedjson.types import ExternalType


@dataclass
class Point:
    """Value type given a compact array form by a codec."""

    x: float
    y: float


@dataclass
class Event:
    name: str
    when: datetime
    ids: dict[UUID, int]


class Celsius(float):
    pass


@pytest.fixture(autouse=True)
def restore_codecs() -> Iterator[None]:
    yield
    TypeCodecs.clear()


def fresh() -> JSONConfig:
    return JSONConfig.builder().build()


# =============================================================================
# Test: TypeCodecs Registration API
# =============================================================================


class TestTypeCodecsRegistration:
    """Test the TypeCodecs.register() API."""

    def test_register_and_get(self) -> None:
        """Test registering a value type with encode/decode functions."""
        TypeCodecs.register(
            Point,
            encode=lambda p: [p.x, p.y],
            decode=lambda data: Point(x=data[0], y=data[1]),
        )

        codec = TypeCodecs.get(Point)
        assert codec is not None
        encode, decode = codec
        assert encode(Point(1.5, 2.5)) == [1.5, 2.5]
        assert decode([3.0, 4.0]) == Point(3.0, 4.0)

    def test_get_unregistered_type_returns_none(self) -> None:
        """Test that getting an unregistered type returns None."""
        assert TypeCodecs.get(Point) is None

    def test_find_walks_mro(self) -> None:
        """Test a codec for a base class covers subclasses."""
        TypeCodecs.register(float, encode=str, decode=float)
        assert TypeCodecs.get(Celsius) is None
        assert TypeCodecs.find(Celsius) is TypeCodecs.get(float)

    def test_unregister(self) -> None:
        """Test unregister reports whether a codec was removed."""
        TypeCodecs.register(Point, encode=lambda p: [p.x, p.y], decode=lambda d: Point(*d))
        assert TypeCodecs.unregister(Point)
        assert not TypeCodecs.unregister(Point)

    def test_clear_keeps_builtins(self) -> None:
        """Test clear() drops custom codecs and restores builtins."""
        TypeCodecs.register(Point, encode=lambda p: [p.x, p.y], decode=lambda d: Point(*d))
        TypeCodecs.clear()
        assert TypeCodecs.get(Point) is None
        assert TypeCodecs.get(datetime) is not None

    def test_registered_class_is_external(self) -> None:
        """Test a registered class converts through its codec, not its fields."""
        TypeCodecs.register(Point, encode=lambda p: [p.x, p.y], decode=lambda d: Point(*d))
        config = fresh()
        assert config.strategies.descriptor(Point) == ExternalType(Point)
        assert to_json(Point(1.0, 2.0), config=config) == "[1.0,2.0]"
        assert from_json("[1.0,2.0]", Point, config) == Point(1.0, 2.0)


# =============================================================================
# Test: Builtin Codecs (pre-registered)
# =============================================================================


class TestBuiltinCodecs:
    """Test pre-registered codecs for standard library types."""

    @pytest.mark.parametrize(
        ("value", "text"),
        [
            (datetime(2024, 1, 15, 10, 30), '"2024-01-15T10:30:00"'),
            (
                datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
                '"2024-01-15T10:30:00+00:00"',
            ),
            (date(2024, 6, 15), '"2024-06-15"'),
            (time(8, 5, 1), '"08:05:01"'),
            (timedelta(minutes=1, seconds=30), "90.0"),
            (b"hello", '"aGVsbG8="'),
            (UUID("12345678-1234-5678-1234-567812345678"), '"12345678-1234-5678-1234-567812345678"'),
            (PurePosixPath("/tmp/x"), '"/tmp/x"'),
        ],
    )
    def test_round_trip(self, value: object, text: str) -> None:
        """Test each builtin codec's JSON form and its way back."""
        assert to_json(value) == text
        assert from_json(text, type(value)) == value

    def test_bytes_require_valid_base64(self) -> None:
        """Test malformed base64 is a type mismatch."""
        with pytest.raises(TypeMismatchError, match="as bytes"):
            from_json('"***"', bytes)

    def test_bytes_require_string(self) -> None:
        """Test bytes can't come from a number."""
        with pytest.raises(TypeMismatchError):
            from_json("12", bytes)


# =============================================================================
# Test: Codecs inside records
# =============================================================================


class TestCodecsInRecords:
    """Test codec-converted values nested in other values."""

    def test_record_with_codec_fields(self) -> None:
        """Test fields and mapping keys with codecs."""
        key = UUID("00000000-0000-0000-0000-000000000001")
        event = Event("launch", datetime(2024, 1, 1), {key: 3})
        text = to_json(event)
        assert text == (
            '{"name":"launch","when":"2024-01-01T00:00:00",'
            '"ids":{"00000000-0000-0000-0000-000000000001":3}}'
        )
        assert from_json(text, Event) == event

    def test_invalid_value_reports_path(self) -> None:
        """Test a decode failure points at the field."""
        with pytest.raises(TypeMismatchError) as exc_info:
            from_json('{"name":"x","when":"soon","ids":{}}', Event)
        assert str(exc_info.value) == 'Can\'t deserialize "soon" as datetime, at /when'

    def test_unregistered_value_unsupported(self) -> None:
        """Test a value with no codec, fields or items can't be serialized."""
        with pytest.raises(UnsupportedTypeError, match="Can't serialize object"):
            to_json({"a": object()})

    def test_failing_key_encoder_reports_path(self) -> None:
        """Test an encoder raising on a mapping key fails at the mapping."""

        def encode(point: Point) -> str:
            msg = "no text form"
            raise ValueError(msg)

        TypeCodecs.register(Point, encode, lambda raw: Point(*raw))
        with pytest.raises(ConversionError) as exc_info:
            to_json({"grid": {Point(1, 2): "a"}})
        assert str(exc_info.value) == "Can't encode Point: no text form, at /grid"
        assert isinstance(exc_info.value.__cause__, ValueError)
