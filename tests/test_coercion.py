"""Tests for permissive argument coercion."""

from __future__ import annotations

import pytest

from recipekit.core import DeclaredType, coerce, zero_value


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, False),
        (True, True),
        ("true", True),
        (" TRUE ", True),
        ("yes", False),
        (1, False),
        ([True], False),
    ],
)
def test_bool(value, expected) -> None:
    assert coerce(value, DeclaredType.BOOL) is expected


@pytest.mark.parametrize("target", [DeclaredType.INT, DeclaredType.LONG])
def test_integers(target) -> None:
    assert coerce(None, target) == 0
    assert coerce(7, target) == 7
    assert coerce(3.9, target) == 3
    assert coerce(" 42 ", target) == 42
    assert coerce("4.5", target) == 0
    assert coerce("abc", target) == 0
    assert coerce({"a": 1}, target) == 0


def test_bool_is_not_a_number() -> None:
    assert coerce(True, DeclaredType.INT) == 0
    assert coerce(True, DeclaredType.DOUBLE) == 0.0


def test_non_finite_numbers_fall_back_to_zero() -> None:
    assert coerce(float("inf"), DeclaredType.INT) == 0
    assert coerce(float("nan"), DeclaredType.LONG) == 0


@pytest.mark.parametrize("target", [DeclaredType.DOUBLE, DeclaredType.FLOAT])
def test_floats(target) -> None:
    assert coerce(None, target) == 0.0
    assert coerce(3, target) == 3.0
    assert isinstance(coerce(3, target), float)
    assert coerce("2.5", target) == 2.5
    assert coerce("nope", target) == 0.0
    assert coerce(object(), target) == 0.0


def test_strings() -> None:
    assert coerce(None, DeclaredType.STRING) is None
    assert coerce("x", DeclaredType.STRING) == "x"
    assert coerce(5, DeclaredType.STRING) == "5"
    assert coerce(False, DeclaredType.STRING) == "false"
    assert coerce([1, 2], DeclaredType.STRING) == "[1, 2]"


def test_list_and_other_pass_through() -> None:
    payload = [1, "2"]
    assert coerce(payload, DeclaredType.LIST) is payload
    assert coerce(None, DeclaredType.OTHER) is None
    assert coerce("x", "mystery") == "x"


def test_zero_values() -> None:
    assert zero_value(DeclaredType.BOOL) is False
    assert zero_value(DeclaredType.INT) == 0
    assert zero_value(DeclaredType.DOUBLE) == 0.0
    assert zero_value(DeclaredType.STRING) is None
