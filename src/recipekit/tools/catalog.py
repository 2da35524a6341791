from __future__ import annotations

import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Set,
)

from ..core.Exceptions import ToolNotFound
from .base import Tool
from .toolify import toolify

if TYPE_CHECKING:  # pragma: no cover
    from ..config import Settings

logger = logging.getLogger(__name__)

__all__ = ["ToolCatalog"]


# ───────────────────────────────────────────────────────────────────────────────
# Tool Catalog
# ───────────────────────────────────────────────────────────────────────────────
class ToolCatalog:
    """Name-indexed set of tools discovered from providers.

    A catalog is built once and is read-only afterwards. When an allow-list
    is given only those names are visible; names in the allow-list that no
    provider declares are reported once at build time and otherwise ignored.
    """

    def __init__(self, tools: Optional[Dict[str, Tool]] = None) -> None:
        self._tools: Dict[str, Tool] = dict(tools or {})

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #
    @classmethod
    def build(cls, providers: Iterable[Any], allow: Optional[Iterable[str]] = None) -> "ToolCatalog":
        allowed: Optional[Set[str]] = set(allow) if allow is not None else None
        tools: Dict[str, Tool] = {}
        for provider in providers:
            for t in toolify(provider):
                if allowed is not None and t.name not in allowed:
                    continue
                previous = tools.get(t.name)
                if previous is not None:
                    logger.warning(
                        "Tool name collision for %r: %s replaces %s",
                        t.name,
                        t.full_name,
                        previous.full_name,
                    )
                tools[t.name] = t

        if allowed is not None:
            unknown = sorted(allowed - tools.keys())
            if unknown:
                logger.warning("Allowed tools not provided by any provider: %s", unknown)

        logger.debug("Built tool catalog with %d tool(s): %s", len(tools), sorted(tools))
        return cls(tools)

    @classmethod
    def defaults(cls, allow: Optional[Iterable[str]] = None, settings: Optional["Settings"] = None) -> "ToolCatalog":
        """Catalog over the built-in git and local filesystem providers.

        Every URL in ``settings.mcp_servers`` adds an MCP provider after the
        built-ins, so a remote tool with a built-in's name replaces it. An
        unreachable server raises ``ToolDefinitionError``.
        """
        from ..config import load_settings
        from .fs import LocalFsTools
        from .git import GitTools
        from .mcp import McpToolProvider

        settings = settings or load_settings()
        providers: List[Any] = [
            GitTools(),
            LocalFsTools(allowed_root=settings.fs_root, max_kb=settings.file_max_kb),
        ]
        providers += [McpToolProvider(url) for url in settings.mcp_servers]
        return cls.build(providers, allow=allow)

    # ------------------------------------------------------------------ #
    # Lookup & dispatch
    # ------------------------------------------------------------------ #
    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFound(name, self._tools.keys()) from None

    def invoke(self, name: str, args: Any = None) -> Any:
        """Dispatch ``args`` to the tool registered as ``name``.

        See :class:`~recipekit.tools.base.Tool` for the accepted argument
        shapes. Raises ``ToolNotFound`` for unknown or disallowed names and
        ``ToolInvocationError`` when binding or the operation fails.
        """
        return self.get(name).invoke(args)

    def keys(self) -> Set[str]:
        return set(self._tools)

    def describe(self) -> List[Dict[str, str]]:
        """Rows for listings: name, provider namespace, signature, description."""
        return [
            {
                "name": t.name,
                "provider": t.namespace,
                "signature": t.signature,
                "description": t.description.splitlines()[0] if t.description else "",
            }
            for t in self
        ]

    # ------------------------------------------------------------------ #
    # Container protocol
    # ------------------------------------------------------------------ #
    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools[name] for name in sorted(self._tools))

    def __repr__(self) -> str:
        return f"ToolCatalog({sorted(self._tools)})"
