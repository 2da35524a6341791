"""Shared pytest fixtures: stub tool providers, a stub chat and a recipe store."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from recipekit.core.Parameters import Float, Long
from recipekit.recipes.registry import RecipeRegistry
from recipekit.tools import ToolCatalog, tool


class ToolTools:
    """Operations exercising every argument shape."""

    @tool("multipleParams")
    def multiple_params(self, name: str, count: int, enabled: bool) -> str:
        return f"{name}:{count}:{enabled}"

    @tool("joinAll")
    def join_all(self, items: list) -> str:
        return ",".join(str(i) for i in items)

    @tool("greet")
    def greet(self, greeting: str = "hi") -> str:
        return greeting

    @tool("explode")
    def explode(self) -> str:
        raise RuntimeError("boom")

    @tool("measure")
    def measure(self, size: Long, ratio: Float, weight: float) -> List[Any]:
        return [size, ratio, weight]

    def not_a_tool(self) -> str:  # pragma: no cover - must never be published
        return "hidden"


class StubIo:
    """``readFile`` always answers ``HELLO``; ``writeFile`` records its calls."""

    def __init__(self) -> None:
        self.reads: List[str] = []
        self.writes: List[Dict[str, str]] = []

    @tool("readFile")
    def read_file(self, path: str) -> str:
        self.reads.append(path)
        return "HELLO"

    @tool("writeFile")
    def write_file(self, path: str, content: str) -> str:
        self.writes.append({"path": path, "content": content})
        return f"wrote:\n{path}"


class Echo:
    """Returns its arguments so tests can observe rendering and ordering."""

    def __init__(self) -> None:
        self.calls: List[Any] = []

    @tool("echo")
    def echo(self, text: str) -> str:
        self.calls.append(text)
        return text

    @tool("info")
    def info(self, key: str) -> Dict[str, Any]:
        self.calls.append(key)
        return {"key": key, "ok": True}


class StubChat:
    """Chat collaborator double: returns ``reply`` or raises ``error``."""

    def __init__(self, reply: str = "MODEL OUTPUT", error: Optional[BaseException] = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: List[Dict[str, str]] = []

    def send(self, system_prompt: str, user_prompt: str, on_token: Optional[Callable[[str], None]] = None) -> str:
        self.calls.append({"system": system_prompt, "user": user_prompt})
        if self.error is not None:
            raise self.error
        if on_token is not None:
            on_token(self.reply)
        return self.reply


@pytest.fixture
def tool_tools() -> ToolTools:
    return ToolTools()


@pytest.fixture
def stub_io() -> StubIo:
    return StubIo()


@pytest.fixture
def echo() -> Echo:
    return Echo()


@pytest.fixture
def catalog_factory(stub_io: StubIo, echo: Echo) -> Callable[..., ToolCatalog]:
    def factory(allow=None) -> ToolCatalog:
        return ToolCatalog.build([stub_io, echo], allow=allow)

    return factory


@pytest.fixture
def recipes_dir(tmp_path: Path) -> Path:
    path = tmp_path / "recipes"
    path.mkdir()
    return path


@pytest.fixture
def registry(recipes_dir: Path) -> RecipeRegistry:
    return RecipeRegistry(recipes_dir)


@pytest.fixture
def write_recipe(recipes_dir: Path) -> Callable[[str, str], Path]:
    def _write(name: str, body: str) -> Path:
        path = recipes_dir / f"{name}.yml"
        path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
        return path

    return _write
