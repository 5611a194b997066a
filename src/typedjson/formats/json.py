"""JSON text conveniences: typed values to text and back."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typedjson.config import JSONConfig
from typedjson.deserializer import deserialize
from typedjson.parser import parse
from typedjson.serializer import iter_json

if TYPE_CHECKING:
    from typedjson.values import JSONValue


def to_json(obj: Any, typ: Any = None, config: JSONConfig | None = None) -> str:
    """Serialize a Python value to canonical JSON text.

    Args:
        obj: The object to serialize
        typ: Static type of obj (optional)
        config: Conversion settings (default: ``JSONConfig.default()``)

    Returns:
        JSON text with no insignificant whitespace

    """
    return "".join(iter_json(obj, typ, config))


def from_json(s: str, typ: Any, config: JSONConfig | None = None) -> Any:
    """Deserialize JSON text to an instance of typ.

    Args:
        s: JSON text
        typ: Target type expression
        config: Conversion settings; its parse options apply to the text

    Returns:
        The converted value

    Raises:
        ParseError: If the text is not valid JSON
        ConversionError: If the document doesn't fit typ

    """
    config = config or JSONConfig.default()
    node: JSONValue | None = parse(s, config.parse_options)
    return deserialize(node, typ, config)
