from __future__ import annotations

import pytest
import yaml

from recipekit.core.Exceptions import InvalidRecipeDefinition, RecipeError, RecipeNotFound
from recipekit.recipes import RecipeRegistry, parse_recipe
from recipekit.recipes.registry import BUNDLED_RECIPES

MINIMAL = """
    name: hello
    description: Says hello
    system: Be brief.
    userTemplate: "Hello {{who|world}}"
"""


def test_load_parses_aliases_and_defaults(registry, write_recipe) -> None:
    write_recipe(
        "full",
        """
        name: full
        allowedTools: [readFile, writeFile]
        vars:
          body:
            tool: readFile
            args: ["{{arg1}}"]
        system: s
        userTemplate: u
        postActions:
          - when: "{{save|false}}"
            call: {tool: writeFile, args: {path: out.md, content: "{{output}}"}}
        defaults:
          save: true
          count: 3
          empty:
        futureField: ignored
        """,
    )

    definition = registry.load("full")

    assert definition.version == 3
    assert definition.allowed_tools == ["readFile", "writeFile"]
    assert definition.vars["body"].tool == "readFile"
    assert definition.vars["body"].args == ["{{arg1}}"]
    assert definition.post_actions[0].when == "{{save|false}}"
    assert definition.defaults == {"save": "true", "count": "3", "empty": ""}
    assert definition.referenced_tools() == ["readFile", "writeFile"]
    assert not definition.is_unrestricted


def test_empty_sections_load_as_empty(registry, write_recipe) -> None:
    write_recipe(
        "bare",
        """
        name: bare
        vars:
        allowedTools:
        system: s
        userTemplate: u
        """,
    )

    definition = registry.load("bare")

    assert definition.vars == {}
    assert definition.is_unrestricted
    assert definition.referenced_tools() == []


def test_names_are_sorted_stems(registry, write_recipe, recipes_dir) -> None:
    write_recipe("zeta", MINIMAL)
    write_recipe("alpha", MINIMAL)
    (recipes_dir / "notes.txt").write_text("not a recipe")

    assert registry.names() == ["alpha", "zeta"]
    assert "alpha" in registry
    assert "notes" not in registry


def test_names_of_missing_directory(tmp_path) -> None:
    assert RecipeRegistry(tmp_path / "absent").names() == []


def test_unknown_and_invalid_names(registry) -> None:
    with pytest.raises(RecipeNotFound, match="'ghost' not found"):
        registry.load("ghost")
    with pytest.raises(RecipeNotFound):
        registry.load("../escape")
    assert "../escape" not in registry


def test_invalid_yaml_names_the_file(registry, write_recipe) -> None:
    path = write_recipe("broken", "name: [unclosed\n")

    with pytest.raises(InvalidRecipeDefinition, match="invalid YAML") as info:
        registry.load("broken")
    assert str(path) in str(info.value)


def test_non_mapping_document(registry, write_recipe) -> None:
    write_recipe("listy", "- just\n- a list\n")

    with pytest.raises(InvalidRecipeDefinition, match="must be a YAML mapping"):
        registry.load("listy")


def test_missing_required_fields_are_reported(registry, write_recipe) -> None:
    write_recipe(
        "partial",
        """
        name: partial
        vars:
          x:
            args: [1]
        """,
    )

    with pytest.raises(InvalidRecipeDefinition) as info:
        registry.load("partial")

    message = str(info.value)
    assert "system" in message
    assert "userTemplate" in message
    assert "vars.x.tool" in message


def test_create_registers_a_copy(registry, tmp_path) -> None:
    source = tmp_path / "draft.yml"
    source.write_text("name: draft\nsystem: s\nuserTemplate: u\ncomment: dropped\n", encoding="utf-8")

    target = registry.create(source)

    assert target == registry.base_dir / "draft.yml"
    document = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert document["name"] == "draft"
    assert document["userTemplate"] == "u"
    assert "comment" not in document
    assert registry.load("draft").system == "s"


def test_create_with_name_override_and_no_overwrite(registry, tmp_path) -> None:
    source = tmp_path / "draft.yml"
    source.write_text("name: draft\nsystem: s\nuserTemplate: u\n", encoding="utf-8")

    registry.create(source, name="renamed")

    assert registry.load("renamed").name == "renamed"
    with pytest.raises(RecipeError, match="already exists"):
        registry.create(source, name="renamed")


def test_create_requires_an_existing_valid_file(registry, tmp_path) -> None:
    with pytest.raises(RecipeError, match="not found"):
        registry.create(tmp_path / "nope.yml")

    bad = tmp_path / "bad.yml"
    bad.write_text("name: bad\n", encoding="utf-8")
    with pytest.raises(InvalidRecipeDefinition):
        registry.create(bad)
    assert registry.names() == []


def test_delete(registry, write_recipe) -> None:
    path = write_recipe("hello", MINIMAL)

    assert registry.delete("hello") == path
    assert not path.exists()
    with pytest.raises(RecipeNotFound):
        registry.delete("hello")


def test_install_defaults_keeps_user_copies(registry, recipes_dir) -> None:
    (recipes_dir / "gitcommit.yml").write_text("name: mine\nsystem: s\nuserTemplate: u\n", encoding="utf-8")

    created = registry.install_defaults()

    assert [p.name for p in created] == ["summarize.yml"]
    assert registry.load("gitcommit").name == "mine"
    assert registry.install_defaults() == []


def test_bundled_recipes_are_valid(tmp_path) -> None:
    registry = RecipeRegistry(tmp_path / "fresh")

    created = registry.install_defaults()

    assert sorted(p.name for p in created) == sorted(BUNDLED_RECIPES)
    gitcommit = registry.load("gitcommit")
    assert gitcommit.referenced_tools() == ["stagedDiff", "branch", "commit"]
    assert set(gitcommit.allowed_tools) >= set(gitcommit.referenced_tools())
    summarize = registry.load("summarize")
    assert summarize.defaults["format"] == "markdown"
    assert set(summarize.allowed_tools) >= set(summarize.referenced_tools())


def test_parse_recipe_from_text() -> None:
    definition = parse_recipe("name: inline\nsystem: s\nuserTemplate: '{{a}}'\n")

    assert definition.user_template == "{{a}}"
    assert definition.to_document()["userTemplate"] == "{{a}}"
