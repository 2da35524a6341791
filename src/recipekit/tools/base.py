from __future__ import annotations

import logging
import re
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
)

from ..core.Coercion import coerce
from ..core.Exceptions import ToolDefinitionError, ToolInvocationError
from ..core.Parameters import DeclaredType, ParamSpec, extract_signature, format_signature

logger = logging.getLogger(__name__)

__all__ = ["Tool"]

# Tool names follow identifier rules, plus `-` and `.` which MCP servers use.
_VALID_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")


# ───────────────────────────────────────────────────────────────────────────────
# Tool primitive
# ───────────────────────────────────────────────────────────────────────────────
class Tool:
    """A named operation with an ordered, typed parameter signature.

    A Tool is shape-agnostic at its entrypoint. It implements the template
    method::

        invoke(args) -> bind(args) -> execute(call_args, call_kwargs)

    ``args`` may take any of the shapes an LLM-driven caller produces:

    - ``None``     : call with no arguments (the operation's own defaults apply).
    - ``tuple``    : an *ordered array*, bound positionally without coercion.
    - ``list``     : an *ordered list*, bound positionally with coercion. A
      signature of exactly one ``list`` parameter receives the list whole.
      Missing trailing elements are ``None`` before coercion.
    - ``Mapping``  : a *named map*, bound by parameter name with coercion.
      Absent names are ``None`` before coercion.
    - anything else: treated as a one-element ordered list.

    Subclasses (e.g. :class:`~recipekit.tools.mcp.McpTool`) customise
    :meth:`execute` and pass an explicit ``parameters`` list; :meth:`invoke`
    itself is not meant to be overridden.
    """

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #
    def __init__(
        self,
        function: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        *,
        provider: Any = None,
        namespace: Optional[str] = None,
        parameters: Optional[Sequence[ParamSpec]] = None,
    ) -> None:
        if not callable(function):
            raise ToolDefinitionError(f"Tool function must be callable, got {type(function)!r}")

        inferred_name = name or getattr(function, "__name__", None)
        if not isinstance(inferred_name, str) or not _VALID_NAME.match(inferred_name):
            raise ToolDefinitionError(f"Invalid tool name: {inferred_name!r}")

        self._function = function
        self._name = inferred_name
        self._description = (description or getattr(function, "__doc__", "") or "").strip()
        self._provider = provider
        self._namespace = namespace or (type(provider).__name__ if provider is not None else "default")

        specs = list(parameters) if parameters is not None else extract_signature(function)
        indices = [s.index for s in specs]
        if len(indices) != len(set(indices)):
            raise ToolDefinitionError(f"{self._name}: duplicate parameter indices {indices}")
        self._parameters: List[ParamSpec] = sorted(specs, key=lambda s: s.index)

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #
    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def provider(self) -> Any:
        return self._provider

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def function(self) -> Callable[..., Any]:
        return self._function

    @property
    def parameters(self) -> List[ParamSpec]:
        return list(self._parameters)

    @property
    def full_name(self) -> str:
        """``namespace.name``, e.g. ``GitTools.stagedDiff``."""
        return f"{self._namespace}.{self._name}"

    @property
    def signature(self) -> str:
        return format_signature(self._name, self._parameters)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def invoke(self, args: Any = None) -> Any:
        """Bind ``args`` to the signature and run the operation."""
        call_args, call_kwargs = self.bind(args)
        logger.debug("Tool %s invoked with args=%r kwargs=%r", self.full_name, call_args, call_kwargs)
        return self.execute(call_args, call_kwargs)

    def bind(self, args: Any) -> tuple[tuple[Any, ...], Dict[str, Any]]:
        """Turn a dynamic argument payload into ``(*args, **kwargs)``."""
        if args is None:
            return self._bind_none()
        if isinstance(args, tuple):
            return self._bind_array(args)
        if isinstance(args, Mapping):
            return self._bind_named(args)
        if isinstance(args, list):
            return self._bind_list(args)
        return self._bind_list([args])

    def execute(self, args: tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
        """Run the underlying callable, normalising failures to ToolInvocationError."""
        try:
            return self._function(*args, **kwargs)
        except ToolInvocationError:
            raise
        except Exception as exc:
            raise ToolInvocationError(f"{self.full_name}: invocation failed: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Binding helpers
    # ------------------------------------------------------------------ #
    def _bind_none(self) -> tuple[tuple[Any, ...], Dict[str, Any]]:
        missing = [p.name for p in self._parameters if not p.has_default]
        if missing:
            raise ToolInvocationError(
                f"{self._name}: requires parameters {missing}; "
                "provide args as a list or a map of paramName -> value"
            )
        return (), {}

    def _bind_array(self, values: tuple[Any, ...]) -> tuple[tuple[Any, ...], Dict[str, Any]]:
        if len(values) > len(self._parameters):
            raise ToolInvocationError(
                f"{self._name}: expected at most {len(self._parameters)} arguments, got {len(values)}"
            )
        missing = [p.name for p in self._parameters[len(values):] if not p.has_default]
        if missing:
            raise ToolInvocationError(f"{self._name}: missing required parameters: {missing}")
        return self._split(dict(zip((p.name for p in self._parameters), values)))

    def _bind_list(self, values: List[Any]) -> tuple[tuple[Any, ...], Dict[str, Any]]:
        params = self._parameters
        if len(params) == 1 and params[0].type is DeclaredType.LIST:
            return self._split({params[0].name: values})
        if len(values) > len(params):
            logger.debug("Tool %s ignoring %d surplus list argument(s)", self._name, len(values) - len(params))
        bound = {}
        for index, spec in enumerate(params):
            raw = values[index] if index < len(values) else None
            bound[spec.name] = coerce(raw, spec.type)
        return self._split(bound)

    def _bind_named(self, values: Mapping[str, Any]) -> tuple[tuple[Any, ...], Dict[str, Any]]:
        unknown = set(values) - {p.name for p in self._parameters}
        if unknown:
            logger.debug("Tool %s ignoring unknown named arguments: %s", self._name, sorted(unknown))
        bound = {spec.name: coerce(values.get(spec.name), spec.type) for spec in self._parameters}
        return self._split(bound)

    def _split(self, bound: Mapping[str, Any]) -> tuple[tuple[Any, ...], Dict[str, Any]]:
        """Route bound values: keyword-only parameters by name, the rest by position."""
        args: List[Any] = []
        kwargs: Dict[str, Any] = {}
        for spec in self._parameters:
            if spec.name not in bound:
                continue
            if spec.kind == "KEYWORD_ONLY":
                kwargs[spec.name] = bound[spec.name]
            else:
                args.append(bound[spec.name])
        return tuple(args), kwargs

    # ------------------------------------------------------------------ #
    # Serialization
    # ------------------------------------------------------------------ #
    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self._name,
            "namespace": self._namespace,
            "description": self._description,
            "parameters": [p.to_dict() for p in self._parameters],
        }

    def __repr__(self) -> str:
        return f"<Tool {self.full_name}: {self.signature}>"
