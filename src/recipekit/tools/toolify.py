from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, List, Optional, TypeVar

from ..core.Exceptions import ToolDefinitionError
from .base import Tool

logger = logging.getLogger(__name__)

__all__ = ["tool", "toolify"]

_F = TypeVar("_F", bound=Callable[..., Any])

# Attribute set on functions decorated with @tool.
_TOOL_MARKER = "__recipekit_tool__"


def tool(name: Optional[str] = None, description: Optional[str] = None) -> Callable[[_F], _F]:
    """Mark a provider method as a catalog operation.

    The method keeps working as a normal Python method; :func:`toolify`
    discovers the marker and publishes it under ``name`` (defaulting to the
    method name)::

        class IoTools:
            @tool("writeFile")
            def write_file(self, path: str, content: str) -> str: ...
    """

    def _decorate(function: _F) -> _F:
        setattr(function, _TOOL_MARKER, {"name": name or function.__name__, "description": description})
        return function

    return _decorate


def toolify(component: Any, **kwargs: Any) -> List[Tool]:
    """
    Normalize a single component into a list of Tool instances.

    Parameters
    ----------
    component:
        One of:
        - Tool       → returned as ``[component]`` (passthrough).
        - provider   → an object exposing ``provide_tools()`` contributes the
                       tools it returns (used by the MCP provider).
        - provider   → any other object contributes its ``@tool``-marked
                       methods, bound to the instance.
        - callable   → wrapped as a plain ``Tool``.
        - str        → treated as an MCP endpoint URL; every tool the server
                       lists is proxied (subject to ``include``/``exclude``).

    Keyword-only configuration
    --------------------------
    name, description : Optional[str]
        Only for callables; default to ``__name__`` and ``__doc__``.
    namespace : Optional[str]
        Logical namespace for the resulting tools.
    headers : Optional[Mapping[str, str]]
        Transport headers for MCP endpoints.
    include, exclude : Optional[Sequence[str]]
        Filters applied to MCP tool names.

    Raises
    ------
    ToolDefinitionError
        For invalid inputs or a provider that exposes no operations.
    """
    name = kwargs.pop("name", None)
    description = kwargs.pop("description", None)
    namespace = kwargs.pop("namespace", None)
    headers = kwargs.pop("headers", None)
    include = kwargs.pop("include", None)
    exclude = kwargs.pop("exclude", None)
    if kwargs:
        unexpected = ", ".join(sorted(kwargs.keys()))
        raise ToolDefinitionError(f"toolify: unexpected keyword argument(s): {unexpected}")

    # 1) Passthrough
    if isinstance(component, Tool):
        return [component]

    # 2) URL → MCP provider
    if isinstance(component, str):
        url = component.strip()
        if not (url.startswith("http://") or url.startswith("https://")):
            raise ToolDefinitionError(
                "toolify: when `component` is a string it must be an HTTP(S) MCP URL "
                "(e.g. 'http://localhost:8000/mcp')."
            )
        from .mcp import McpToolProvider

        provider = McpToolProvider(url, headers=headers, namespace=namespace, include=include, exclude=exclude)
        return provider.provide_tools()

    # 3) Plain function → Tool
    if inspect.isfunction(component) or inspect.isbuiltin(component) or inspect.ismethod(component):
        if description is not None and not isinstance(description, str):
            raise ToolDefinitionError("toolify: 'description' must be a string when provided for callables.")
        return [Tool(component, name=name, description=description, namespace=namespace)]

    # 4) Provider objects
    provide = getattr(component, "provide_tools", None)
    if callable(provide):
        tools = list(provide())
        bad = [t for t in tools if not isinstance(t, Tool)]
        if bad:
            raise ToolDefinitionError(f"toolify: {type(component).__name__}.provide_tools() returned non-Tool items")
        return tools

    tools = _marked_methods(component, namespace)
    if tools:
        return tools

    # 5) Any remaining callable object
    if callable(component):
        return [Tool(component, name=name or type(component).__name__, description=description, namespace=namespace)]

    raise ToolDefinitionError(f"toolify: {type(component).__name__} exposes no tool operations")


def _marked_methods(provider: Any, namespace: Optional[str]) -> List[Tool]:
    tools: List[Tool] = []
    for attr_name, member in inspect.getmembers(type(provider)):
        marker = getattr(member, _TOOL_MARKER, None)
        if marker is None:
            continue
        bound = getattr(provider, attr_name)
        tools.append(
            Tool(
                bound,
                name=marker["name"],
                description=marker["description"],
                provider=provider,
                namespace=namespace,
            )
        )
        logger.debug("Discovered tool %s on %s", marker["name"], type(provider).__name__)
    # getmembers sorts by attribute name; keep the declaration order instead.
    order = {name: i for i, name in enumerate(_declaration_order(type(provider)))}
    tools.sort(key=lambda t: order.get(getattr(t.function, "__name__", ""), len(order)))
    return tools


def _declaration_order(cls: type) -> List[str]:
    names: List[str] = []
    for klass in reversed(cls.__mro__):
        for attr_name in vars(klass):
            if attr_name not in names:
                names.append(attr_name)
    return names
