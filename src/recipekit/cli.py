"""``recipekit`` command line interface."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Set

import typer
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Settings, load_settings
from .core.Exceptions import RecipeKitError, RecipeNotFound
from .core.Template import placeholders
from .LLMEngines import LLMEngine, OpenAIEngine
from .recipes.executor import RecipeExecutor, RunOptions
from .recipes.registry import RecipeRegistry
from .retry import RetryPolicy, retry_call
from .tools.catalog import ToolCatalog

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="recipekit",
    help="Run YAML recipes that gather context with tools and ask a chat model.",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


# ───────────────────────────────────────────────────────────────────────────────
# Wiring (patched in tests)
# ───────────────────────────────────────────────────────────────────────────────
def build_catalog(settings: Settings, allow: Optional[Set[str]] = None) -> ToolCatalog:
    return ToolCatalog.defaults(allow=allow, settings=settings)


def build_engine(settings: Settings) -> LLMEngine:
    return OpenAIEngine(
        model=settings.model,
        api_key=settings.api_key,
        base_url=settings.base_url,
        temperature=settings.temperature,
        timeout_seconds=settings.timeout_seconds,
    )


def _registry(settings: Settings) -> RecipeRegistry:
    return RecipeRegistry(settings.recipes_dir)


def _fail(exc: Exception) -> typer.Exit:
    err_console.print(f"Error: {exc}", markup=False, highlight=False, soft_wrap=True)
    return typer.Exit(code=1)


def _parse_sets(values: Optional[List[str]]) -> dict:
    overrides = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"expected key=value, got {item!r}", param_hint="--set")
        overrides[key.strip()] = value
    return overrides


def _stream_restart_notice(attempt: int, attempts: int, exc: BaseException, delay: float) -> None:
    # Tokens already printed belong to the failed attempt; the next attempt starts on a fresh line.
    typer.echo()
    err_console.print(
        f"Attempt {attempt}/{attempts} failed: {exc}. Restarting the recipe in {delay:.1f}s; "
        "output above is discarded.",
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"recipekit {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit."
    ),
) -> None:
    # OPENAI_API_KEY and RECIPEKIT_* may come from a .env in or above the working directory.
    load_dotenv(find_dotenv(usecwd=True))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )


# ───────────────────────────────────────────────────────────────────────────────
# Commands
# ───────────────────────────────────────────────────────────────────────────────
@app.command()
def run(
    name: str = typer.Argument(..., help="Recipe name."),
    args: Optional[List[str]] = typer.Argument(None, help="External arguments, bound as arg1..argN."),
    set_: Optional[List[str]] = typer.Option(None, "--set", "-s", help="Override a variable (key=value)."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Resolve variables and print the prompts only."),
    stream: bool = typer.Option(False, "--stream", help="Print tokens as they arrive."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Chat model to use."),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="OpenAI-compatible endpoint."),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", min=1, help="Whole-run attempts."),
) -> None:
    """Run a recipe."""
    overrides = _parse_sets(set_)
    try:
        settings = load_settings().with_overrides(model=model, base_url=base_url, max_attempts=max_attempts)
        executor = RecipeExecutor(
            _registry(settings),
            chat=None if dry_run else build_engine(settings),
            catalog_factory=lambda allow=None: build_catalog(settings, allow),
        )
        options = RunOptions(overrides=overrides, external_args=tuple(args or ()))

        if dry_run:
            prepared = executor.prepare(name, options)
            console.rule("system")
            typer.echo(prepared.system_prompt)
            console.rule("user")
            typer.echo(prepared.user_prompt)
            return

        on_token = (lambda chunk: typer.echo(chunk, nl=False)) if stream else None
        result = retry_call(
            lambda: executor.run(name, options, on_token=on_token),
            RetryPolicy(max_attempts=settings.max_attempts),
            on_retry=_stream_restart_notice if stream else None,
        )
    except RecipeKitError as exc:
        raise _fail(exc) from exc

    if stream:
        typer.echo()
    else:
        typer.echo(result.output)
    for record in result.actions:
        if record["ran"]:
            err_console.print(f"post-action {record['tool']}: done", markup=False, highlight=False)


@app.command("recipes")
def list_recipes() -> None:
    """List registered recipes."""
    try:
        settings = load_settings()
        registry = _registry(settings)
        names = registry.names()
    except RecipeKitError as exc:
        raise _fail(exc) from exc

    if not names:
        console.print(f"No recipes in {settings.recipes_dir}. Run 'recipekit init' to install the defaults.")
        return
    table = Table(title="Recipes")
    table.add_column("name")
    table.add_column("description")
    for recipe_name in names:
        try:
            description = registry.load(recipe_name).description or ""
        except RecipeKitError as exc:
            description = f"(invalid: {exc})"
        table.add_row(recipe_name, description)
    console.print(table)


@app.command()
def show(name: str = typer.Argument(..., help="Recipe name.")) -> None:
    """Describe a recipe: tools, variables and template placeholders."""
    try:
        definition = _registry(load_settings()).load(name)
    except RecipeKitError as exc:
        raise _fail(exc) from exc

    console.print(f"[bold]{definition.name}[/bold] (v{definition.version})")
    if definition.description:
        console.print(definition.description, markup=False)
    console.print(f"allowed tools: {', '.join(definition.allowed_tools) or '(all)'}", markup=False)
    for var_name, call in definition.vars.items():
        console.print(f"var {var_name} <- {call.tool}({call.args!r})", markup=False, highlight=False)
    keys = placeholders(definition.system + "\n" + definition.user_template)
    console.print(f"placeholders: {', '.join(keys) or '(none)'}", markup=False)
    for key, value in definition.defaults.items():
        console.print(f"default {key} = {value}", markup=False, highlight=False)
    for action in definition.post_actions:
        console.print(f"post-action {action.call.tool} when {action.when or 'true'}", markup=False, highlight=False)


@app.command()
def tools(
    allow: Optional[List[str]] = typer.Option(None, "--allow", "-a", help="Restrict the listing to these names."),
) -> None:
    """List available tools with their signatures."""
    try:
        catalog = build_catalog(load_settings(), set(allow) if allow else None)
    except RecipeKitError as exc:
        raise _fail(exc) from exc

    table = Table(title="Tools")
    table.add_column("name")
    table.add_column("provider")
    table.add_column("signature")
    table.add_column("description")
    for row in catalog.describe():
        table.add_row(row["name"], row["provider"], row["signature"], row["description"])
    console.print(table)


@app.command()
def create(
    template: Path = typer.Argument(..., help="YAML recipe file to register."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Register under this name."),
) -> None:
    """Register a recipe from a YAML file."""
    try:
        target = _registry(load_settings()).create(template, name=name)
    except RecipeKitError as exc:
        raise _fail(exc) from exc
    console.print(f"Created {target}", markup=False, highlight=False)


@app.command()
def delete(
    name: str = typer.Argument(..., help="Recipe name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete a registered recipe."""
    try:
        registry = _registry(load_settings())
    except RecipeKitError as exc:
        raise _fail(exc) from exc
    if name not in registry:
        raise _fail(RecipeNotFound(name))
    if not yes:
        typer.confirm(f"Delete recipe '{name}'?", abort=True)
    try:
        path = registry.delete(name)
    except RecipeKitError as exc:
        raise _fail(exc) from exc
    console.print(f"Deleted {path}", markup=False, highlight=False)


@app.command()
def init() -> None:
    """Install the bundled recipes (existing files are kept)."""
    try:
        settings = load_settings()
        created = _registry(settings).install_defaults()
    except RecipeKitError as exc:
        raise _fail(exc) from exc
    if created:
        for path in created:
            console.print(f"Installed {path}", markup=False, highlight=False)
    else:
        console.print(f"Bundled recipes already present in {settings.recipes_dir}", markup=False, highlight=False)
