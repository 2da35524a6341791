from .Coercion import coerce, zero_value
from .Parameters import (
    NO_VAL,
    DeclaredType,
    Float,
    Long,
    ParamSpec,
    declared_type_of,
    extract_signature,
    format_signature,
)
from .Template import placeholders, render

__all__ = [
    "NO_VAL",
    "DeclaredType",
    "Float",
    "Long",
    "ParamSpec",
    "coerce",
    "declared_type_of",
    "extract_signature",
    "format_signature",
    "placeholders",
    "render",
    "zero_value",
]
