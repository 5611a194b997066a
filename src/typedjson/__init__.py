"""typedjson - Type-directed JSON conversion for Python 3.12+."""

from typedjson.codecs import TypeCodecs
from typedjson.config import (
    JSONConfig,
    JSONConfigBuilder,
    Polymorphism,
)
from typedjson.deserializer import deserialize
from typedjson.errors import (
    CircularReferenceError,
    ConfigError,
    ConstructionError,
    ConversionError,
    CustomHookError,
    DepthExceededError,
    DuplicateElementError,
    JSONError,
    MissingPropertyError,
    NestingDepthError,
    ParseError,
    TypeMismatchError,
    UnexpectedPropertyError,
    UnresolvedTypeParameterError,
    UnsupportedTypeError,
)
from typedjson.formats.json import (
    from_json,
    to_json,
)
from typedjson.metadata import (
    Char,
    Int8,
    Int16,
    Int32,
    Int64,
    JSONField,
    UInt8,
    UInt16,
    UInt32,
    UInt64,
    json_constructor,
    json_field,
    json_options,
)
from typedjson.opt import Opt
from typedjson.parser import (
    DuplicateKeyPolicy,
    ParseOptions,
    parse,
)
from typedjson.pointer import JSONPointer
from typedjson.schema import extract_type, record_schema
from typedjson.sealed import Sealed
from typedjson.serializer import (
    aiter_json,
    aserialize_to,
    iter_json,
    serialize,
    serialize_to,
)
from typedjson.text import stringify
from typedjson.values import (
    JSONArray,
    JSONBoolean,
    JSONDecimal,
    JSONInt,
    JSONKind,
    JSONNumber,
    JSONObject,
    JSONString,
    JSONValue,
    json_value,
    to_python,
)

__all__ = [
    "Char",
    "CircularReferenceError",
    "ConfigError",
    "ConstructionError",
    "ConversionError",
    "CustomHookError",
    "DepthExceededError",
    "DuplicateElementError",
    "DuplicateKeyPolicy",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "JSONArray",
    "JSONBoolean",
    "JSONConfig",
    "JSONConfigBuilder",
    "JSONDecimal",
    "JSONError",
    "JSONField",
    "JSONInt",
    "JSONKind",
    "JSONNumber",
    "JSONObject",
    "JSONPointer",
    "JSONString",
    "JSONValue",
    "MissingPropertyError",
    "NestingDepthError",
    "Opt",
    "ParseError",
    "ParseOptions",
    "Polymorphism",
    "Sealed",
    "TypeCodecs",
    "TypeMismatchError",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "UnexpectedPropertyError",
    "UnresolvedTypeParameterError",
    "UnsupportedTypeError",
    "aiter_json",
    "aserialize_to",
    "deserialize",
    "extract_type",
    "from_json",
    "iter_json",
    "json_constructor",
    "json_field",
    "json_options",
    "json_value",
    "parse",
    "record_schema",
    "serialize",
    "serialize_to",
    "stringify",
    "to_json",
    "to_python",
]
