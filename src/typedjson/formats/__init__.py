"""Text format entry points.

Each format module provides to_<format> and from_<format> functions built
on the serialization and deserialization engines.
"""

from typedjson.formats.json import from_json, to_json

__all__ = ["from_json", "to_json"]
