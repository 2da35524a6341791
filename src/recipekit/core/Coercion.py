"""Permissive value coercion for LLM-originated tool arguments.

``coerce`` converts an arbitrary dynamic value into a parameter's declared
type. It never raises: a value that cannot be converted degrades to the
type's zero value.

=========  =======  ==========  =============  ======================  =======
target     None     matches     number         string                  other
=========  =======  ==========  =============  ======================  =======
bool       False    passthru    False          "true" (any case)       False
int/long   0        passthru    int(v)         parse, else 0           0
double     0.0      passthru    float(v)       parse, else 0.0         0.0
float      0.0      passthru    float(v)       parse, else 0.0         0.0
string     None     passthru    str(v)         passthru                str(v)
list/other passthru
=========  =======  ==========  =============  ======================  =======

``bool`` is never treated as a number here even though it subclasses ``int``.
"""

from __future__ import annotations

from numbers import Number
from typing import Any, Callable, Dict

from .Parameters import DeclaredType

__all__ = ["coerce", "zero_value"]


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def _to_int(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        if _is_number(value):
            return int(value)
        if isinstance(value, str):
            return int(value.strip())
    except (ValueError, OverflowError, TypeError):
        return 0
    return 0


def _to_float(value: Any) -> float:
    if isinstance(value, float):
        return value
    try:
        if _is_number(value):
            return float(value)
        if isinstance(value, str):
            return float(value.strip())
    except (ValueError, OverflowError, TypeError):
        return 0.0
    return 0.0


def _to_str(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


_COERCERS: Dict[DeclaredType, Callable[[Any], Any]] = {
    DeclaredType.BOOL: _to_bool,
    DeclaredType.INT: _to_int,
    DeclaredType.LONG: _to_int,
    DeclaredType.DOUBLE: _to_float,
    DeclaredType.FLOAT: _to_float,
    DeclaredType.STRING: _to_str,
}


def coerce(value: Any, target: DeclaredType) -> Any:
    """Coerce ``value`` to ``target``; see the module table for the contract."""
    coercer = _COERCERS.get(DeclaredType.parse(target))
    if coercer is None:
        return value
    return coercer(value)


def zero_value(target: DeclaredType) -> Any:
    """The value a missing argument of type ``target`` takes."""
    return coerce(None, target)
