from importlib.metadata import PackageNotFoundError, version

try:  # populated when installed or when a wheel is built
    __version__ = version("recipekit")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

from .core.Exceptions import RecipeKitError
from .tools import Tool, ToolCatalog, tool, toolify

__all__ = [
    "RecipeKitError",
    "Tool",
    "ToolCatalog",
    "tool",
    "toolify",
    ]
