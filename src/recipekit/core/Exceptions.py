# ───────────────────────────────────────────────────────────────────────────────
# Exceptions
# ───────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

from typing import Iterable, List


class RecipeKitError(Exception):
    """Base class for every error raised by recipekit."""


class ConfigError(RecipeKitError, ValueError):
    """Raised when settings from the environment or config file are invalid."""


# ── Tools ─────────────────────────────────────────────────────────────────────
class ToolError(RecipeKitError):
    """Base exception for Tool-related errors."""


class ToolDefinitionError(ToolError):
    """Raised when a provider or callable cannot be turned into a Tool."""


class ToolInvocationError(ToolError):
    """Raised when an argument payload cannot be bound or the operation fails."""


class ToolNotFound(ToolError, LookupError):
    """Raised when a tool name is absent from a (possibly restricted) catalog.

    The message always lists the sorted names that *are* available so that
    the CLI can print an actionable error without further lookups.
    """

    def __init__(self, name: str, available: Iterable[str]) -> None:
        self.name = name
        self.available: List[str] = sorted(available)
        super().__init__(f"Tool not found or not allowed: {name}. Available: {self.available}")


class GitCommandError(ToolInvocationError):
    """Raised when a git subprocess exits with a non-zero status."""


# ── Recipes ───────────────────────────────────────────────────────────────────
class RecipeError(RecipeKitError):
    """Base class for recipe lookup and parsing errors."""


class RecipeNotFound(RecipeError, LookupError):
    """Raised when the registry has no recipe with the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Recipe '{name}' not found. Use 'recipekit recipes' to list all available recipes."
        )


class InvalidRecipeDefinition(RecipeError, ValueError):
    """Raised when a recipe document is malformed or misses required fields."""


# ── Execution ─────────────────────────────────────────────────────────────────
class ExecutionFailure(RecipeKitError):
    """Base class for failures at the chat-collaborator boundary."""


class TransientExecutionFailure(ExecutionFailure):
    """Timeouts, rate limits and network hiccups. Eligible for whole-run retry."""


class PermanentExecutionFailure(ExecutionFailure):
    """Any other chat failure. Surfaced immediately, never retried."""


__all__ = [
    "RecipeKitError",
    "ConfigError",
    "ToolError",
    "ToolDefinitionError",
    "ToolInvocationError",
    "ToolNotFound",
    "GitCommandError",
    "RecipeError",
    "RecipeNotFound",
    "InvalidRecipeDefinition",
    "ExecutionFailure",
    "TransientExecutionFailure",
    "PermanentExecutionFailure",
]
