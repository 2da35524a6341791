"""Parameter specification and signature extraction for tool operations.

This module provides:
- DeclaredType: the closed set of parameter types the dispatch layer coerces to
- Long / Float: annotation markers for the integer and float widths Python lacks
- ParamSpec: a self-contained, immutable description of one parameter
- extract_signature: build the ordered ParamSpec list of any callable
"""

from __future__ import annotations

import inspect
import types
import typing
from collections.abc import Sequence as ABCSequence
from enum import Enum
from typing import Any, Callable, List, Mapping, NewType, Union, get_args, get_origin

__all__ = [
    "DeclaredType",
    "Long",
    "Float",
    "NO_VAL",
    "ParamSpec",
    "declared_type_of",
    "extract_signature",
    "format_signature",
]


class _NoVal:
    """Marker for "no default declared"; ``None`` is a legitimate default."""

    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "NO_VAL"


NO_VAL: Any = _NoVal()

# Python has one int and one float; these markers declare the long and
# single-precision variants.
Long = NewType("Long", int)
Float = NewType("Float", float)


class DeclaredType(str, Enum):
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    LONG = "long"
    DOUBLE = "double"
    FLOAT = "float"
    LIST = "list"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Union["DeclaredType", str]) -> "DeclaredType":
        """Accept an enum member or its lowercase name; unknown names are OTHER."""
        if isinstance(value, DeclaredType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


_BY_NAME = {
    "str": DeclaredType.STRING,
    "bool": DeclaredType.BOOL,
    "int": DeclaredType.INT,
    "Long": DeclaredType.LONG,
    "float": DeclaredType.DOUBLE,
    "Float": DeclaredType.FLOAT,
    "list": DeclaredType.LIST,
    "tuple": DeclaredType.LIST,
}

_LIST_ORIGINS = (list, tuple, ABCSequence)


def declared_type_of(annotation: Any) -> DeclaredType:
    """Map a Python annotation onto a :class:`DeclaredType`.

    - ``str``/``bool``/``int``/``float`` map to string/bool/int/double.
    - ``Long``/``Float`` map to long/float.
    - ``list``, ``tuple`` and parameterized sequences map to list.
    - ``Optional[X]`` maps like ``X``; other unions and unknown types are other.
    - String annotations (forward references) are matched by their head name.
    """
    if annotation is inspect.Parameter.empty or annotation is None:
        return DeclaredType.OTHER

    if isinstance(annotation, str):
        head = annotation.replace(" ", "")
        if head.startswith("Optional[") and head.endswith("]"):
            head = head[len("Optional["):-1]
        elif head.endswith("|None"):
            head = head[: -len("|None")]
        head = head.split("[", 1)[0].split(".")[-1]
        if head in ("List", "Sequence", "Tuple"):
            return DeclaredType.LIST
        return _BY_NAME.get(head, DeclaredType.OTHER)

    if annotation is Long:
        return DeclaredType.LONG
    if annotation is Float:
        return DeclaredType.FLOAT
    if annotation is bool:
        return DeclaredType.BOOL
    if annotation is str:
        return DeclaredType.STRING
    if annotation is int:
        return DeclaredType.INT
    if annotation is float:
        return DeclaredType.DOUBLE
    if annotation in _LIST_ORIGINS:
        return DeclaredType.LIST

    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        members = [a for a in get_args(annotation) if a is not type(None)]
        if len(members) == 1:
            return declared_type_of(members[0])
        return DeclaredType.OTHER
    if origin in _LIST_ORIGINS:
        return DeclaredType.LIST
    return DeclaredType.OTHER


class ParamSpec(dict):
    """Typed, read-only description of one operation parameter.

    Instances are dicts (so they serialize to JSON as-is) with attribute
    access for internal code:

      - name: str
      - index: int (signature position)
      - kind: str (``inspect.Parameter`` kind name)
      - type: DeclaredType
      - default: Any or ``NO_VAL`` when the parameter has no default
    """

    __slots__ = ("_name", "_index", "_kind", "_type", "_default")

    def __init__(
        self,
        name: str,
        index: int,
        type: Union[DeclaredType, str] = DeclaredType.OTHER,
        kind: str = "POSITIONAL_OR_KEYWORD",
        default: Any = NO_VAL,
    ) -> None:
        declared = DeclaredType.parse(type)
        dict.__init__(self, name=name, index=index, kind=kind, type=declared.value)
        if default is not NO_VAL:
            dict.__setitem__(self, "default", default)
        self._name = name
        self._index = index
        self._kind = kind
        self._type = declared
        self._default = default

    @property
    def name(self) -> str:
        return self._name

    @property
    def index(self) -> int:
        return self._index

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def type(self) -> DeclaredType:
        return self._type

    @property
    def default(self) -> Any:
        return self._default

    @property
    def has_default(self) -> bool:
        return self._default is not NO_VAL

    def __setitem__(self, key, value):  # pragma: no cover - trivial immutability
        raise TypeError("ParamSpec is immutable")

    def __delitem__(self, key):  # pragma: no cover - trivial immutability
        raise TypeError("ParamSpec is immutable")

    def to_dict(self) -> dict:
        return dict(self)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ParamSpec":
        if not isinstance(d, Mapping):
            raise TypeError("ParamSpec.from_dict expects a mapping")
        name, idx = d.get("name"), d.get("index")
        if not isinstance(name, str) or not isinstance(idx, int):
            raise TypeError("ParamSpec.from_dict expects 'name' (str) and 'index' (int)")
        return cls(
            name=name,
            index=idx,
            type=d.get("type", DeclaredType.OTHER),
            kind=str(d.get("kind", "POSITIONAL_OR_KEYWORD")),
            default=d.get("default", NO_VAL),
        )


def _resolved_hints(function: Callable[..., Any]) -> Mapping[str, Any]:
    # Modules using `from __future__ import annotations` store strings; resolve
    # them where possible and fall back to the raw strings otherwise.
    try:
        return typing.get_type_hints(function)
    except Exception:  # noqa: BLE001 - unresolved forward refs are matched by name
        return getattr(function, "__annotations__", {}) or {}


def extract_signature(function: Callable[..., Any]) -> List[ParamSpec]:
    """Build the ordered :class:`ParamSpec` list for ``function``.

    Bound methods exclude ``self``. ``*args``/``**kwargs`` are skipped: the
    dispatch layer only binds named, fixed-position parameters.

    The declared type comes from the annotation when present, otherwise from
    the default value's type, otherwise it is ``other``.
    """
    if not callable(function):
        raise TypeError(f"extract_signature expects a callable, got {type(function)!r}")

    hints = _resolved_hints(function)
    specs: List[ParamSpec] = []
    for param in inspect.signature(function).parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = hints.get(param.name, param.annotation)
        if annotation is inspect.Parameter.empty and param.default is not inspect.Parameter.empty:
            annotation = type(param.default) if param.default is not None else annotation
        specs.append(
            ParamSpec(
                name=param.name,
                index=len(specs),
                type=declared_type_of(annotation),
                kind=param.kind.name,
                default=param.default if param.default is not inspect.Parameter.empty else NO_VAL,
            )
        )
    return specs


def format_signature(name: str, parameters: List[ParamSpec]) -> str:
    """Human-readable ``name(a: string, b: int = 0)`` form used in listings."""
    parts = []
    for spec in sorted(parameters, key=lambda p: p.index):
        if spec.has_default:
            parts.append(f"{spec.name}: {spec.type.value} = {spec.default!r}")
        else:
            parts.append(f"{spec.name}: {spec.type.value}")
    return f"{name}({', '.join(parts)})"
