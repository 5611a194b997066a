"""Absent-capable value wrapper."""

from __future__ import annotations

from typing import Any, ClassVar, final


@final
class Opt[T]:
    """A value that may be absent, distinct from being present and null.

    ``Opt.UNSET`` marks a property missing from the JSON object, while
    ``Opt.of(None)`` marks a property present with a null value.

    Example:
        @dataclass
        class Patch:
            name: Opt[str] = Opt.UNSET

    """

    __slots__ = ("_is_set", "_value")

    UNSET: ClassVar[Opt[Any]]

    def __init__(self, value: T, *, _is_set: bool = True) -> None:
        self._value = value
        self._is_set = _is_set

    @classmethod
    def of(cls, value: T) -> Opt[T]:
        return cls(value)

    @property
    def is_set(self) -> bool:
        return self._is_set

    @property
    def value(self) -> T:
        """The wrapped value.

        Raises:
            ValueError: If the value is absent

        """
        if not self._is_set:
            msg = "Opt value is not set"
            raise ValueError(msg)
        return self._value

    def get(self, default: T | None = None) -> T | None:
        return self._value if self._is_set else default

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Opt):
            return NotImplemented
        if not self._is_set or not other._is_set:
            return self._is_set == other._is_set
        return bool(self._value == other._value)

    def __hash__(self) -> int:
        return hash((self._is_set, self._value))

    def __repr__(self) -> str:
        return f"Opt.of({self._value!r})" if self._is_set else "Opt.UNSET"


Opt.UNSET = Opt(None, _is_set=False)


def is_null(value: Any) -> bool:
    """True for None, ``Opt.UNSET`` and ``Opt.of(None)``."""
    if value is None:
        return True
    return isinstance(value, Opt) and value.get() is None
