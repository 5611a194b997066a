"""JSON Pointer (RFC 6901) used as the Error Path during conversion."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from typedjson.values import JSONValue


def _escape(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def _unescape(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


@dataclass(frozen=True)
class JSONPointer:
    """Immutable sequence of reference tokens.

    Pointers are extended one token at a time while the engines recurse, so
    the pointer in hand at any point names the location being converted.

    Example:
        JSONPointer.root.child("items").child(2)  ->  /items/2

    """

    tokens: tuple[str, ...] = ()

    root: ClassVar[JSONPointer]

    @classmethod
    def parse(cls, text: str) -> JSONPointer:
        """Parse the string form of a pointer ("" is the root).

        Raises:
            ValueError: If a non-empty pointer does not start with "/"

        """
        if text == "":
            return cls.root
        if not text.startswith("/"):
            msg = f"Illegal JSON Pointer: {text!r}"
            raise ValueError(msg)
        return cls(tuple(_unescape(token) for token in text[1:].split("/")))

    @property
    def is_root(self) -> bool:
        return not self.tokens

    @property
    def current(self) -> str | None:
        """Last token, or None for the root pointer."""
        return self.tokens[-1] if self.tokens else None

    def child(self, token: str | int) -> JSONPointer:
        """Pointer to a property name or array index below this one."""
        return JSONPointer((*self.tokens, str(token)))

    def parent(self) -> JSONPointer:
        if not self.tokens:
            msg = "Can't get parent of root JSON Pointer"
            raise ValueError(msg)
        return JSONPointer(self.tokens[:-1])

    def find(self, node: JSONValue | None) -> JSONValue | None:
        """Resolve this pointer against a value model tree.

        Raises:
            KeyError: If any token does not address an existing node

        """
        from typedjson.values import JSONArray, JSONObject

        current = node
        for depth, token in enumerate(self.tokens):
            if isinstance(current, JSONObject) and token in current:
                current = current[token]
            elif (
                isinstance(current, JSONArray)
                and token.isdigit()
                and (token == "0" or not token.startswith("0"))
                and int(token) < len(current)
            ):
                current = current[int(token)]
            else:
                msg = f"Can't resolve JSON Pointer {JSONPointer(self.tokens[: depth + 1])}"
                raise KeyError(msg)
        return current

    def exists_in(self, node: JSONValue | None) -> bool:
        try:
            self.find(node)
        except KeyError:
            return False
        return True

    def __str__(self) -> str:
        return "".join(f"/{_escape(token)}" for token in self.tokens)


JSONPointer.root = JSONPointer()
