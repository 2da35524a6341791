from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)

from ..core.Exceptions import (
    ExecutionFailure,
    PermanentExecutionFailure,
    ToolNotFound,
    TransientExecutionFailure,
)
from ..core.Template import render
from ..retry import classify_failure
from ..tools.catalog import ToolCatalog
from .actions import PostActionRunner, format_output, render_args
from .model import RecipeDefinition
from .registry import RecipeRegistry

logger = logging.getLogger(__name__)

__all__ = [
    "ChatClient",
    "PreparedRecipe",
    "RecipeExecutor",
    "RecipeResult",
    "RunOptions",
    "stringify",
]

TokenCallback = Callable[[str], None]


class ChatClient(Protocol):
    """The chat collaborator: one system + user prompt in, one reply out."""

    def send(self, system_prompt: str, user_prompt: str, on_token: Optional[TokenCallback] = None) -> str: ...


@dataclass(frozen=True)
class RunOptions:
    overrides: Mapping[str, str] = field(default_factory=dict)
    external_args: Sequence[str] = ()


@dataclass
class PreparedRecipe:
    """Everything decided before the model is called."""

    definition: RecipeDefinition
    catalog: ToolCatalog
    system_prompt: str
    user_prompt: str
    variables: Dict[str, str]


@dataclass
class RecipeResult:
    recipe: str
    system_prompt: str
    user_prompt: str
    response: str
    output: str
    actions: List[Dict[str, Any]] = field(default_factory=list)


def stringify(value: Any) -> str:
    """Turn a tool result into a binding value.

    ``None`` is empty, booleans are lower-case, mappings and sequences are
    indented JSON, everything else is ``str()``.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        if isinstance(value, (set, frozenset)):
            value = sorted(value, key=str)
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return str(value)


class RecipeExecutor:
    """Runs a named recipe: resolve variables, render prompts, ask the model.

    ``prepare`` is deterministic apart from the tools it calls; ``run`` adds
    the chat call, output formatting and post-actions. Nothing is retried
    here: wrap ``run`` in :func:`recipekit.retry.retry_call` for that.
    """

    def __init__(
        self,
        registry: RecipeRegistry,
        chat: Optional[ChatClient] = None,
        catalog_factory: Callable[..., ToolCatalog] = ToolCatalog.defaults,
        post_actions: Optional[PostActionRunner] = None,
    ) -> None:
        self.registry = registry
        self.chat = chat
        self.catalog_factory = catalog_factory
        self.post_actions = post_actions or PostActionRunner()

    # ------------------------------------------------------------------ #
    # Deterministic half
    # ------------------------------------------------------------------ #
    def prepare(self, name: str, options: Optional[RunOptions] = None) -> PreparedRecipe:
        options = options or RunOptions()
        definition = self.registry.load(name)

        allow = set(definition.allowed_tools) if definition.allowed_tools else None
        catalog = self.catalog_factory(allow=allow)
        for tool_name in definition.referenced_tools():
            if tool_name not in catalog:
                raise ToolNotFound(tool_name, catalog.keys())

        variables: Dict[str, str] = dict(definition.defaults)
        variables.update({str(k): str(v) for k, v in options.overrides.items()})
        for index, arg in enumerate(options.external_args, start=1):
            variables[f"arg{index}"] = str(arg)

        for var_name, call in definition.vars.items():
            args = render_args(call.args, variables)
            start = time.time()
            result = catalog.invoke(call.tool, args)
            variables[var_name] = stringify(result)
            logger.debug(
                "Resolved %s via %s in %.3fs (%d chars)",
                var_name,
                call.tool,
                time.time() - start,
                len(variables[var_name]),
            )

        return PreparedRecipe(
            definition=definition,
            catalog=catalog,
            system_prompt=render(definition.system, variables),
            user_prompt=render(definition.user_template, variables),
            variables=variables,
        )

    # ------------------------------------------------------------------ #
    # Full run
    # ------------------------------------------------------------------ #
    def run(
        self,
        name: str,
        options: Optional[RunOptions] = None,
        on_token: Optional[TokenCallback] = None,
    ) -> RecipeResult:
        prepared = self.prepare(name, options)
        if self.chat is None:
            raise PermanentExecutionFailure("No chat engine configured for this executor")

        logger.info("Running recipe %s", prepared.definition.name)
        try:
            if on_token is None:
                response = self.chat.send(prepared.system_prompt, prepared.user_prompt)
            else:
                response = self.chat.send(prepared.system_prompt, prepared.user_prompt, on_token=on_token)
        except ExecutionFailure:
            raise
        except Exception as exc:
            raise classify_failure(exc, context=f"recipe {prepared.definition.name!r}") from exc

        if response is None or not str(response).strip():
            raise TransientExecutionFailure("Model returned empty output")
        response = str(response).strip()

        output = format_output(response, prepared.variables.get("format", "plain"))
        action_vars = dict(prepared.variables)
        action_vars["output"] = output
        records = self.post_actions.run(prepared.definition.post_actions, prepared.catalog, action_vars)

        return RecipeResult(
            recipe=prepared.definition.name,
            system_prompt=prepared.system_prompt,
            user_prompt=prepared.user_prompt,
            response=response,
            output=output,
            actions=records,
        )
