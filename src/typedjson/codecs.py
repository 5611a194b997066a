"""Codec table of lossless JSON forms for standard library value types."""

from __future__ import annotations

import base64
from datetime import date, datetime, time, timedelta
from pathlib import Path, PurePath, PurePosixPath, PureWindowsPath
from typing import TYPE_CHECKING, Any, ClassVar
from uuid import UUID

if TYPE_CHECKING:
    from collections.abc import Callable


class TypeCodecs:
    """Registry of encode/decode pairs for value types with a textual form.

    Encoders turn a value into JSON-compatible builtins (usually a string);
    decoders take those builtins back. Lookup walks the class's MRO, so a
    codec registered for a base class also covers its subclasses.

    Usage:
        TypeCodecs.register(
            IPv4Address,
            encode=str,
            decode=IPv4Address,
        )
    """

    _registry: ClassVar[
        dict[type, tuple[Callable[[Any], Any], Callable[[Any], Any]]]
    ] = {}

    @classmethod
    def register[T](
        cls,
        typ: type[T],
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
    ) -> None:
        """Register encode/decode functions for a value type.

        Args:
            typ: The type to register (e.g., datetime, UUID)
            encode: Function to convert T → JSON-compatible builtins
            decode: Function to convert JSON-compatible builtins → T

        Example:
            TypeCodecs.register(
                datetime,
                encode=lambda dt: dt.isoformat(),
                decode=datetime.fromisoformat,
            )

        """
        cls._registry[typ] = (encode, decode)

    @classmethod
    def get[T](
        cls,
        typ: type[T],
    ) -> tuple[Callable[[T], Any], Callable[[Any], T]] | None:
        """Get codec registered for exactly this type, or None."""
        return cls._registry.get(typ)

    @classmethod
    def find[T](
        cls,
        typ: type[T],
    ) -> tuple[Callable[[T], Any], Callable[[Any], T]] | None:
        """Get codec for type or its nearest registered ancestor, or None."""
        for klass in getattr(typ, "__mro__", ()):
            if (codec := cls._registry.get(klass)) is not None:
                return codec
        return None

    @classmethod
    def unregister(cls, typ: type) -> bool:
        """Unregister a type's codec.

        Args:
            typ: The type to unregister

        Returns:
            True if the type was registered and removed, False otherwise.

        """
        if typ in cls._registry:
            del cls._registry[typ]
            return True
        return False

    @classmethod
    def clear(cls) -> None:
        """Clear codec registry and re-register builtins."""
        cls._registry.clear()
        _register_builtins()


def _decode_bytes(value: Any) -> bytes:
    if not isinstance(value, str):
        msg = f"Expected base64 string, got {type(value).__name__}"
        raise TypeError(msg)
    return base64.b64decode(value, validate=True)


def _register_builtins() -> None:
    """Pre-register codecs for standard library value types."""
    TypeCodecs.register(
        bytes,
        encode=lambda b: base64.b64encode(b).decode("ascii"),
        decode=_decode_bytes,
    )

    TypeCodecs.register(
        datetime,
        encode=lambda dt: dt.isoformat(),
        decode=datetime.fromisoformat,
    )

    TypeCodecs.register(
        date,
        encode=lambda d: d.isoformat(),
        decode=date.fromisoformat,
    )

    TypeCodecs.register(
        time,
        encode=lambda t: t.isoformat(),
        decode=time.fromisoformat,
    )

    TypeCodecs.register(
        timedelta,
        encode=lambda td: td.total_seconds(),
        decode=lambda s: timedelta(seconds=float(s)),
    )

    TypeCodecs.register(
        UUID,
        encode=str,
        decode=UUID,
    )

    for path_type in (PurePath, PurePosixPath, PureWindowsPath, Path):
        TypeCodecs.register(
            path_type,
            encode=str,
            decode=path_type,
        )


# Register builtins on module load
_register_builtins()
