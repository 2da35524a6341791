from __future__ import annotations

import logging
import re
from importlib import resources
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import ValidationError

from ..core.Exceptions import InvalidRecipeDefinition, RecipeError, RecipeNotFound
from .model import RecipeDefinition

logger = logging.getLogger(__name__)

__all__ = ["RecipeRegistry", "BUNDLED_RECIPES", "parse_recipe"]

BUNDLED_RECIPES = ("gitcommit.yml", "summarize.yml")

_SUFFIX = ".yml"
_VALID_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")


def parse_recipe(text: str, source: Union[str, Path] = "<string>") -> RecipeDefinition:
    """Parse and validate one YAML recipe document.

    Raises ``InvalidRecipeDefinition`` naming ``source`` on YAML syntax
    errors, non-mapping documents and schema violations.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise InvalidRecipeDefinition(f"{source}: invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise InvalidRecipeDefinition(f"{source}: a recipe must be a YAML mapping, got {type(data).__name__}")
    try:
        return RecipeDefinition.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidRecipeDefinition(f"{source}: {problems}") from exc


class RecipeRegistry:
    """File-backed recipe store: one ``<name>.yml`` per recipe in ``base_dir``."""

    def __init__(self, base_dir: Union[str, Path]) -> None:
        self.base_dir = Path(base_dir).expanduser()

    def path_for(self, name: str) -> Path:
        if not name or not _VALID_NAME.match(name):
            raise RecipeNotFound(name)
        return self.base_dir / f"{name}{_SUFFIX}"

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    def load(self, name: str) -> RecipeDefinition:
        path = self.path_for(name)
        if not path.is_file():
            raise RecipeNotFound(name)
        logger.debug("Loading recipe %s from %s", name, path)
        return parse_recipe(path.read_text(encoding="utf-8"), source=path)

    def names(self) -> List[str]:
        if not self.base_dir.is_dir():
            return []
        return sorted(p.stem for p in self.base_dir.glob(f"*{_SUFFIX}") if p.is_file())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and bool(_VALID_NAME.match(name)) and self.path_for(name).is_file()

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #
    def create(self, template_path: Union[str, Path], name: Optional[str] = None) -> Path:
        """Register the recipe in ``template_path`` under ``name`` (or its own name).

        The document is validated first; an existing recipe of the same name
        is never overwritten.
        """
        source = Path(template_path).expanduser()
        if not source.is_file():
            raise RecipeError(f"Template file not found: {source}")
        definition = parse_recipe(source.read_text(encoding="utf-8"), source=source)
        if name:
            definition = definition.model_copy(update={"name": name})
        if not _VALID_NAME.match(definition.name):
            raise InvalidRecipeDefinition(f"{source}: invalid recipe name {definition.name!r}")

        target = self.path_for(definition.name)
        if target.exists():
            raise RecipeError(f"Recipe '{definition.name}' already exists at {target}. Delete it first.")

        self.base_dir.mkdir(parents=True, exist_ok=True)
        target.write_text(_dump(definition.to_document()), encoding="utf-8")
        logger.info("Registered recipe %s at %s", definition.name, target)
        return target

    def delete(self, name: str) -> Path:
        path = self.path_for(name)
        if not path.is_file():
            raise RecipeNotFound(name)
        path.unlink()
        logger.info("Deleted recipe %s", name)
        return path

    def install_defaults(self) -> List[Path]:
        """Copy the bundled recipes into ``base_dir``; existing files are kept."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        templates = resources.files("recipekit.recipes").joinpath("templates")
        created: List[Path] = []
        for filename in BUNDLED_RECIPES:
            target = self.base_dir / filename
            if target.exists():
                logger.debug("Keeping existing recipe %s", target)
                continue
            target.write_text(templates.joinpath(filename).read_text(encoding="utf-8"), encoding="utf-8")
            logger.debug("Created default recipe %s", target)
            created.append(target)
        return created


def _dump(document: Any) -> str:
    return yaml.safe_dump(document, sort_keys=False, allow_unicode=True, default_flow_style=False)
