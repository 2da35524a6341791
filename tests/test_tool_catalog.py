"""Tests for tool discovery, argument binding and catalog lookup."""

from __future__ import annotations

import logging

import pytest

from recipekit.core.Exceptions import ToolDefinitionError, ToolInvocationError, ToolNotFound
from recipekit.core.Parameters import DeclaredType
from recipekit.tools import Tool, ToolCatalog, tool, toolify


def test_list_args_are_coerced_to_declared_types(tool_tools) -> None:
    catalog = ToolCatalog.build([tool_tools])

    from_strings = catalog.invoke("multipleParams", ["Bob", "99", "true"])
    typed = catalog.invoke("multipleParams", ["Bob", 99, True])

    assert from_strings == typed == "Bob:99:True"


def test_named_map_missing_entries_take_zero_values(tool_tools) -> None:
    catalog = ToolCatalog.build([tool_tools])

    assert catalog.invoke("multipleParams", {"name": "Bob"}) == "Bob:0:False"
    assert catalog.invoke("multipleParams", {"name": "Bob", "count": "7", "extra": 1}) == "Bob:7:False"


def test_short_list_pads_with_zero_values(tool_tools) -> None:
    catalog = ToolCatalog.build([tool_tools])

    assert catalog.invoke("multipleParams", ["Bob"]) == "Bob:0:False"
    assert catalog.invoke("multipleParams", ["Bob", "1", "TRUE", "surplus"]) == "Bob:1:True"


def test_tuple_binds_positionally_without_coercion(tool_tools) -> None:
    catalog = ToolCatalog.build([tool_tools])

    assert catalog.invoke("multipleParams", ("Bob", "99", "true")) == "Bob:99:true"

    with pytest.raises(ToolInvocationError):
        catalog.invoke("multipleParams", ("a", 1, True, "too many"))
    with pytest.raises(ToolInvocationError):
        catalog.invoke("multipleParams", ("only-name",))


def test_single_list_parameter_receives_whole_list(tool_tools) -> None:
    catalog = ToolCatalog.build([tool_tools])

    assert catalog.invoke("joinAll", ["a", "b", 3]) == "a,b,3"


def test_scalar_is_a_one_element_list(tool_tools) -> None:
    catalog = ToolCatalog.build([tool_tools])

    assert catalog.invoke("greet", "hello") == "hello"


def test_none_uses_operation_defaults(tool_tools) -> None:
    catalog = ToolCatalog.build([tool_tools])

    assert catalog.invoke("greet", None) == "hi"
    with pytest.raises(ToolInvocationError, match="requires parameters"):
        catalog.invoke("multipleParams", None)


def test_operation_errors_are_wrapped(tool_tools) -> None:
    catalog = ToolCatalog.build([tool_tools])

    with pytest.raises(ToolInvocationError, match="boom") as info:
        catalog.invoke("explode")
    assert isinstance(info.value.__cause__, RuntimeError)


def test_long_and_float_markers(tool_tools) -> None:
    catalog = ToolCatalog.build([tool_tools])
    measure = catalog.get("measure")

    assert [p.type for p in measure.parameters] == [DeclaredType.LONG, DeclaredType.FLOAT, DeclaredType.DOUBLE]
    assert catalog.invoke("measure", {"size": "12", "ratio": "0.5", "weight": 2}) == [12, 0.5, 2.0]


def test_unknown_tool_lists_sorted_available_names(tool_tools) -> None:
    catalog = ToolCatalog.build([tool_tools])

    with pytest.raises(ToolNotFound) as info:
        catalog.invoke("missing", None)

    expected = ["explode", "greet", "joinAll", "measure", "multipleParams"]
    assert info.value.available == expected
    assert f"Available: {expected}" in str(info.value)
    assert isinstance(info.value, LookupError)


def test_allow_list_restricts_catalog(stub_io, tool_tools) -> None:
    catalog = ToolCatalog.build([stub_io, tool_tools], allow={"writeFile"})

    assert catalog.keys() == {"writeFile"}
    assert "readFile" not in catalog
    with pytest.raises(ToolNotFound):
        catalog.invoke("readFile", ["x"])


def test_allow_list_unknown_names_are_only_reported(stub_io, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="recipekit.tools.catalog"):
        catalog = ToolCatalog.build([stub_io], allow={"readFile", "nope"})

    assert catalog.keys() == {"readFile"}
    assert "nope" in caplog.text


def test_empty_allow_list_exposes_nothing(stub_io, tool_tools) -> None:
    catalog = ToolCatalog.build([stub_io, tool_tools], allow=set())

    assert catalog.keys() == set()
    with pytest.raises(ToolNotFound):
        catalog.invoke("readFile", ["x"])
    assert ToolCatalog.build([stub_io], allow=None).keys() == {"readFile", "writeFile"}


def test_name_collision_last_registration_wins(caplog) -> None:
    class First:
        @tool("same")
        def op(self) -> str:
            return "first"

    class Second:
        @tool("same")
        def op(self) -> str:
            return "second"

    with caplog.at_level(logging.WARNING, logger="recipekit.tools.catalog"):
        catalog = ToolCatalog.build([First(), Second()])

    assert catalog.invoke("same") == "second"
    assert "collision" in caplog.text


def test_only_marked_methods_are_published(tool_tools) -> None:
    names = [t.name for t in toolify(tool_tools)]

    assert "not_a_tool" not in names
    assert names == ["multipleParams", "joinAll", "greet", "explode", "measure"]


def test_toolify_accepts_tools_and_functions() -> None:
    def shout(text: str) -> str:
        """Upper-case the text."""
        return text.upper()

    [from_function] = toolify(shout)
    [passthrough] = toolify(from_function)

    assert passthrough is from_function
    assert from_function.name == "shout"
    assert from_function.description == "Upper-case the text."
    assert from_function.invoke(["hey"]) == "HEY"


def test_toolify_uses_provide_tools() -> None:
    class Provider:
        def provide_tools(self):
            return [Tool(lambda: 42, name="answer")]

    catalog = ToolCatalog.build([Provider()])

    assert catalog.invoke("answer") == 42


def test_toolify_rejects_empty_providers() -> None:
    with pytest.raises(ToolDefinitionError):
        toolify(object())
    with pytest.raises(ToolDefinitionError):
        toolify("not-a-url")


def test_iteration_and_describe_are_sorted(tool_tools) -> None:
    catalog = ToolCatalog.build([tool_tools])

    assert [t.name for t in catalog] == sorted(catalog.keys())
    rows = {row["name"]: row for row in catalog.describe()}
    assert rows["multipleParams"]["signature"] == "multipleParams(name: string, count: int, enabled: bool)"
    assert rows["greet"]["provider"] == "ToolTools"
    assert len(catalog) == 5
