from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Sequence

from ..core.Template import render
from ..tools.catalog import ToolCatalog
from .model import PostAction

logger = logging.getLogger(__name__)

__all__ = ["PostActionRunner", "eval_condition", "format_output", "render_args"]

_FENCE_PREFIXES = ("```markdown", "```md", "```")

# ANSI "bold cyan" for the first line in ``ansi`` output mode.
_ANSI_HEADER = "\x1b[1;36m{}\x1b[0m"


def render_args(args: Any, variables: Mapping[str, str]) -> Any:
    """Render every string inside ``args``; lists and maps are walked recursively.

    Tuples stay tuples so an *ordered array* keeps its no-coercion binding.
    """
    if isinstance(args, str):
        return render(args, variables)
    if isinstance(args, Mapping):
        return {k: render_args(v, variables) for k, v in args.items()}
    if isinstance(args, tuple):
        return tuple(render_args(v, variables) for v in args)
    if isinstance(args, list):
        return [render_args(v, variables) for v in args]
    return args


def eval_condition(expression: str) -> bool:
    """``true``/``false`` (any case), or ``a == b`` compared case-insensitively.

    Surrounding double quotes on either operand are ignored. Anything else is
    false.
    """
    text = (expression or "").strip()
    if text.lower() == "true":
        return True
    if text.lower() == "false":
        return False
    parts = [p.strip().strip('"') for p in text.split("==")]
    return len(parts) == 2 and parts[0].lower() == parts[1].lower()


def _strip_fences(text: str) -> str:
    for prefix in _FENCE_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):]
            break
    if text.endswith("```"):
        text = text[: -len("```")]
    return text.strip()


def format_output(text: str, mode: str = "plain") -> str:
    """Shape the model response for display.

    - ``markdown``/``md``: strip any fence and re-wrap in a ```` ```markdown ```` fence.
    - ``ansi``: style the first line bold cyan.
    - anything else (``plain``): strip code fences.
    """
    t = (text or "").strip()
    mode = (mode or "plain").strip().lower()
    if mode in ("markdown", "md"):
        return f"```markdown\n{_strip_fences(t)}\n```"
    if mode == "ansi":
        lines = t.splitlines()
        if not lines:
            return t
        return "\n".join([_ANSI_HEADER.format(lines[0])] + lines[1:])
    return _strip_fences(t)


class PostActionRunner:
    """Runs a recipe's post-actions against the catalog of that run."""

    def run(
        self,
        actions: Sequence[PostAction],
        catalog: ToolCatalog,
        variables: Mapping[str, str],
    ) -> List[Dict[str, Any]]:
        """Evaluate each action's condition and invoke the ones that hold.

        Returns one record per action (``tool``, ``ran``, ``result``) in
        declaration order. Tool failures propagate.
        """
        records: List[Dict[str, Any]] = []
        for action in actions:
            condition = render(action.when if action.when is not None else "true", variables)
            if not eval_condition(condition):
                logger.debug("Skipping post-action %s (when=%r)", action.call.tool, condition)
                records.append({"tool": action.call.tool, "ran": False, "result": None})
                continue
            result = catalog.invoke(action.call.tool, render_args(action.call.args, variables))
            logger.info("Post-action %s completed", action.call.tool)
            records.append({"tool": action.call.tool, "ran": True, "result": result})
        return records
