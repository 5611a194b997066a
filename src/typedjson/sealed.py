"""Closed class hierarchies converted as tagged unions."""

from __future__ import annotations

from typing import Any, ClassVar


class Sealed:
    """Base for closed hierarchies.

    A class that lists ``Sealed`` among its direct bases is a root; each of
    its subclasses registers as a variant under an identifier (the class
    name unless given). JSON objects for variants carry the identifier in a
    discriminator property, named by the root or by configuration.

    Example:
        class Expr(Sealed, discriminator="kind"):
            pass

        @dataclass
        class Num(Expr, identifier="num"):
            value: int

    """

    __json_root__: ClassVar[type[Sealed]]
    __json_discriminator__: ClassVar[str | None] = None
    __json_identifier__: ClassVar[str]
    __json_variants__: ClassVar[dict[str, type[Sealed]]]

    def __init_subclass__(
        cls,
        *,
        discriminator: str | None = None,
        identifier: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Register a root or a variant of the root it descends from."""
        super().__init_subclass__(**kwargs)

        if Sealed in cls.__bases__:
            cls.__json_root__ = cls
            if discriminator is None:
                discriminator = cls.__dict__.get("__json_discriminator__")
            cls.__json_discriminator__ = discriminator
            cls.__json_variants__ = {}
            return

        if discriminator is not None:
            msg = (
                f"Discriminator can only be declared on the root of a sealed "
                f"hierarchy, not on {cls.__name__}"
            )
            raise TypeError(msg)

        if identifier is None:
            identifier = cls.__dict__.get("__json_identifier__", cls.__name__)
        cls.__json_identifier__ = identifier
        variants = cls.__json_root__.__json_variants__
        existing = variants.get(cls.__json_identifier__)
        # dataclass(slots=True) re-creates the class under the same name
        if existing is not None and existing is not cls and not _same_class(existing, cls):
            msg = (
                f"Identifier '{cls.__json_identifier__}' already registered to "
                f"{existing} in {cls.__json_root__.__name__}. "
                "Choose a different identifier."
            )
            raise ValueError(msg)
        variants[cls.__json_identifier__] = cls


def _same_class(a: type, b: type) -> bool:
    return a.__module__ == b.__module__ and a.__qualname__ == b.__qualname__


def is_sealed_root(cls: type) -> bool:
    return isinstance(cls, type) and issubclass(cls, Sealed) and cls.__dict__.get(
        "__json_root__",
    ) is cls


def sealed_root(cls: type) -> type[Sealed] | None:
    """Root of the sealed hierarchy a class belongs to, if any."""
    if isinstance(cls, type) and issubclass(cls, Sealed) and cls is not Sealed:
        return cls.__json_root__
    return None
