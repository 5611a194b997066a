"""Tests for sealed hierarchies."""

from dataclasses import dataclass

import pytest

from typedjson.sealed import Sealed, is_sealed_root, sealed_root


class Expr(Sealed, discriminator="op"):
    pass


@dataclass(frozen=True)
class Num(Expr, identifier="num"):
    value: int


@dataclass(frozen=True, slots=True)
class Neg(Expr):
    operand: Expr


class Shape(Sealed):
    pass


class TestSealed:
    """Test root and variant registration."""

    def test_root_registration(self) -> None:
        """Test a direct subclass of Sealed becomes a root."""
        assert is_sealed_root(Expr)
        assert Expr.__json_discriminator__ == "op"
        assert Shape.__json_discriminator__ is None
        assert not is_sealed_root(Num)

    def test_variants(self) -> None:
        """Test variants register under their identifiers."""
        assert Expr.__json_variants__ == {"num": Num, "Neg": Neg}
        assert Num.__json_identifier__ == "num"
        assert sealed_root(Neg) is Expr

    def test_slots_dataclass_keeps_identity(self) -> None:
        """Test a slots dataclass replaces its registration in place."""
        assert "__slots__" in vars(Neg)
        assert Expr.__json_variants__["Neg"] is Neg

    def test_duplicate_identifier(self) -> None:
        """Test two variants can't share an identifier."""
        with pytest.raises(ValueError, match="already registered"):

            class Other(Expr, identifier="num"):
                pass

    def test_discriminator_only_on_root(self) -> None:
        """Test a variant can't declare its own discriminator."""
        with pytest.raises(TypeError, match="root of a sealed hierarchy"):

            class Bad(Expr, discriminator="kind"):
                pass

    def test_not_sealed(self) -> None:
        """Test ordinary classes have no root."""
        assert sealed_root(int) is None
        assert sealed_root(Sealed) is None
        assert not is_sealed_root(int)
