from .model import PostAction, RecipeDefinition, ToolCall
from .registry import RecipeRegistry, parse_recipe
from .actions import PostActionRunner, eval_condition, format_output
from .executor import PreparedRecipe, RecipeExecutor, RecipeResult, RunOptions

__all__ = ["PostAction",
           "PostActionRunner",
           "PreparedRecipe",
           "RecipeDefinition",
           "RecipeExecutor",
           "RecipeRegistry",
           "RecipeResult",
           "RunOptions",
           "ToolCall",
           "eval_condition",
           "format_output",
           "parse_recipe",]
