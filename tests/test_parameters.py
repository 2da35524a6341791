"""Tests for signature extraction and declared types."""

from __future__ import annotations

from typing import List, Optional, Sequence, Union

import pytest

from recipekit.core import (
    NO_VAL,
    DeclaredType,
    Float,
    Long,
    ParamSpec,
    declared_type_of,
    extract_signature,
    format_signature,
)


@pytest.mark.parametrize(
    ("annotation", "expected"),
    [
        (str, DeclaredType.STRING),
        (bool, DeclaredType.BOOL),
        (int, DeclaredType.INT),
        (float, DeclaredType.DOUBLE),
        (Long, DeclaredType.LONG),
        (Float, DeclaredType.FLOAT),
        (list, DeclaredType.LIST),
        (List[str], DeclaredType.LIST),
        (Sequence[int], DeclaredType.LIST),
        (Optional[int], DeclaredType.INT),
        (Optional[List[str]], DeclaredType.LIST),
        (Union[int, str], DeclaredType.OTHER),
        (dict, DeclaredType.OTHER),
        ("Optional[str]", DeclaredType.STRING),
        ("List[str]", DeclaredType.LIST),
    ],
)
def test_declared_type_of(annotation, expected) -> None:
    assert declared_type_of(annotation) is expected


def test_pep604_optional() -> None:
    assert declared_type_of(int | None) is DeclaredType.INT


def test_extract_signature_orders_and_types_parameters() -> None:
    def op(path: str, limit: int = 10, *args, verbose=False, **kwargs) -> None:
        return None

    specs = extract_signature(op)

    assert [s.name for s in specs] == ["path", "limit", "verbose"]
    assert [s.index for s in specs] == [0, 1, 2]
    assert specs[0].type is DeclaredType.STRING and not specs[0].has_default
    assert specs[1].default == 10
    # Unannotated parameters take the type of their default.
    assert specs[2].type is DeclaredType.BOOL
    assert specs[2].kind == "KEYWORD_ONLY"


def test_paramspec_is_an_immutable_dict() -> None:
    spec = ParamSpec("count", 1, type="int", default=3)

    assert spec.to_dict() == {"name": "count", "index": 1, "kind": "POSITIONAL_OR_KEYWORD", "type": "int", "default": 3}
    assert ParamSpec.from_dict(spec.to_dict()) == spec
    with pytest.raises(TypeError):
        spec["name"] = "other"


def test_missing_default_is_not_serialized() -> None:
    spec = ParamSpec("x", 0)

    assert spec.default is NO_VAL
    assert "default" not in spec
    assert spec.type is DeclaredType.OTHER


def test_format_signature() -> None:
    specs = [ParamSpec("b", 1, type="int", default=0), ParamSpec("a", 0, type="string")]

    assert format_signature("op", specs) == "op(a: string, b: int = 0)"
