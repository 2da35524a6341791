from __future__ import annotations

import re
from typing import List, Mapping

__all__ = ["render", "placeholders"]

# `{{ key }}` or `{{ key | fallback }}`; neither part may contain `}`, the key
# may not contain `|`.
_VAR_RE = re.compile(r"\{\{(?P<key>[^}|]+)(?:\|(?P<fallback>[^}]*))?\}\}")


def render(template: str, variables: Mapping[str, str]) -> str:
    """Substitute ``{{key}}`` / ``{{key|fallback}}`` placeholders in one pass.

    Resolution per placeholder: ``variables[key]`` if present, else the
    trimmed fallback if one was written, else the empty string. Inserted
    values are never re-scanned, so a value containing ``{{x}}`` stays
    literal.
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group("key").strip()
        if key in variables:
            value = variables[key]
            return "" if value is None else str(value)
        fallback = match.group("fallback")
        if fallback is not None:
            return fallback.strip()
        return ""

    return _VAR_RE.sub(_replace, template)


def placeholders(template: str) -> List[str]:
    """Keys referenced by ``template`` in first-appearance order, deduplicated."""
    seen: List[str] = []
    for match in _VAR_RE.finditer(template):
        key = match.group("key").strip()
        if key not in seen:
            seen.append(key)
    return seen
