"""Exception hierarchy for parsing and type-directed conversion.

Every conversion failure carries the JSON Pointer of the location being
converted when it happened, so callers can report exactly which part of a
document (or object graph) was at fault.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from typedjson.pointer import JSONPointer

if TYPE_CHECKING:
    from collections.abc import Sequence


class JSONError(Exception):
    """Base class for all typedjson errors."""


class ConfigError(JSONError):
    """Invalid configuration value (builder argument or environment default)."""


class ParseError(JSONError):
    """Malformed JSON text.

    Attributes:
        message: Description of the syntax problem
        offset: Character offset in the input where the problem was detected
        pointer: Location within the document being built

    """

    def __init__(
        self,
        message: str,
        offset: int,
        pointer: JSONPointer = JSONPointer.root,
    ) -> None:
        self.message = message
        self.offset = offset
        self.pointer = pointer
        super().__init__(self._describe())

    def _describe(self) -> str:
        text = f"{self.message} (offset {self.offset})"
        if self.pointer.is_root:
            return text
        return f"{text}, at {self.pointer}"


class DepthExceededError(ParseError):
    """Document nesting exceeds the configured maximum depth."""


class ConversionError(JSONError):
    """Failure while converting between Python values and the JSON value model.

    Attributes:
        text: Description without location
        pointer: Error Path of the value being converted

    """

    def __init__(self, text: str, pointer: JSONPointer = JSONPointer.root) -> None:
        self.text = text
        self.pointer = pointer
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.pointer.is_root:
            return self.text
        return f"{self.text}, at {self.pointer}"


class TypeMismatchError(ConversionError):
    """JSON node kind (or value) incompatible with the target type."""

    def __init__(
        self,
        expected: str,
        actual: str,
        pointer: JSONPointer = JSONPointer.root,
        *,
        text: str | None = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            text or f"Incorrect type, expected {expected} but was {actual}",
            pointer,
        )


class MissingPropertyError(ConversionError):
    """One or more required properties are absent."""

    def __init__(
        self,
        target: str,
        names: Sequence[str],
        pointer: JSONPointer = JSONPointer.root,
    ) -> None:
        self.target = target
        self.names = tuple(names)
        if len(self.names) == 1:
            missing = f"property {self.names[0]}"
        else:
            missing = f"properties {', '.join(self.names)}"
        super().__init__(f"Can't create {target} - missing {missing}", pointer)


class ConstructionError(ConversionError):
    """No viable constructor or tagged-union variant, or construction failed."""


class UnexpectedPropertyError(ConstructionError):
    """Property with no matching parameter or mutable field."""

    def __init__(
        self,
        target: str,
        name: str,
        pointer: JSONPointer = JSONPointer.root,
    ) -> None:
        self.target = target
        self.name = name
        super().__init__(f"Can't find property {name} in {target}", pointer)


class DuplicateElementError(ConversionError):
    """Duplicate element in a collection that enforces uniqueness."""


class CircularReferenceError(ConversionError):
    """An object graph refers back to an instance already being serialized."""


class UnsupportedTypeError(ConversionError):
    """No strategy exists for a type or runtime value."""


class UnresolvedTypeParameterError(UnsupportedTypeError):
    """A generic parameter could not be resolved to a concrete type."""


class CustomHookError(ConversionError):
    """A user-supplied converter raised; the original exception is the cause."""


class NestingDepthError(ConversionError):
    """Object graph or document nesting exceeds the configured maximum depth."""
