from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from .core.Exceptions import ConfigError

logger = logging.getLogger(__name__)

__all__ = ["Settings", "load_settings"]

# TOML key -> environment variable. The environment wins over the file.
_ENV_KEYS = {
    "recipes_dir": "RECIPEKIT_RECIPES_DIR",
    "model": "RECIPEKIT_MODEL",
    "base_url": "RECIPEKIT_BASE_URL",
    "api_key": "OPENAI_API_KEY",
    "temperature": "RECIPEKIT_TEMPERATURE",
    "timeout_seconds": "RECIPEKIT_TIMEOUT_SECONDS",
    "max_attempts": "RECIPEKIT_MAX_ATTEMPTS",
    "file_max_kb": "RECIPEKIT_FILE_MAX_KB",
    "fs_root": "RECIPEKIT_FS_ROOT",
    "mcp_servers": "RECIPEKIT_MCP_SERVERS",
}


def _as_int(value: Any, *, key: str, minimum: int = 1) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid int for {key}: {value!r}") from e
    if parsed < minimum:
        raise ConfigError(f"Invalid {key}: must be >= {minimum}, got {parsed}")
    return parsed


def _as_float(value: Any, *, key: str) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid float for {key}: {value!r}") from e
    if parsed < 0:
        raise ConfigError(f"Invalid {key}: must not be negative, got {parsed}")
    return parsed


def _as_urls(value: Any, *, key: str) -> Tuple[str, ...]:
    # The environment gives a comma-separated string, TOML an array.
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"Invalid {key}: expected a list of URLs, got {value!r}")
    urls = tuple(str(v).strip() for v in value if str(v).strip())
    for url in urls:
        if not url.startswith(("http://", "https://")):
            raise ConfigError(f"Invalid {key}: {url!r} is not an http(s) URL")
    return urls


def _as_path(value: Any, *, base_dir: Path) -> Path:
    p = Path(str(value)).expanduser()
    return p if p.is_absolute() else (base_dir / p)


@dataclass(frozen=True)
class Settings:
    home: Path
    recipes_dir: Path
    model: str = "gpt-4o-mini"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: float = 0.2
    timeout_seconds: float = 120.0
    max_attempts: int = 3
    file_max_kb: int = 100
    fs_root: Path = Path.home()
    mcp_servers: Tuple[str, ...] = ()

    @property
    def config_file(self) -> Path:
        return self.home / "config.toml"

    def with_overrides(self, **changes: Any) -> "Settings":
        """Copy with the non-None ``changes`` applied (CLI flags)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _read_toml(path: Path) -> Mapping[str, Any]:
    if not path.is_file():
        return {}
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    # Accept both a flat file and a [recipekit] table.
    section = raw.get("recipekit", raw)
    if not isinstance(section, Mapping):
        raise ConfigError(f"Invalid {path}: [recipekit] must be a table")
    return section


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Resolve settings from ``$RECIPEKIT_HOME/config.toml`` overlaid by the environment."""
    env = os.environ if environ is None else environ
    home = Path(env.get("RECIPEKIT_HOME") or "~/.recipekit").expanduser()

    values = dict(_read_toml(home / "config.toml"))
    for key, var in _ENV_KEYS.items():
        if env.get(var):
            values[key] = env[var]

    unknown = set(values) - set(_ENV_KEYS)
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", sorted(unknown))

    settings = Settings(
        home=home,
        recipes_dir=_as_path(values.get("recipes_dir", "recipes"), base_dir=home),
        model=str(values.get("model") or "gpt-4o-mini"),
        base_url=str(values["base_url"]) if values.get("base_url") else None,
        api_key=str(values["api_key"]) if values.get("api_key") else None,
        temperature=_as_float(values.get("temperature", 0.2), key="temperature"),
        timeout_seconds=_as_float(values.get("timeout_seconds", 120.0), key="timeout_seconds"),
        max_attempts=_as_int(values.get("max_attempts", 3), key="max_attempts"),
        file_max_kb=_as_int(values.get("file_max_kb", 100), key="file_max_kb"),
        fs_root=_as_path(values.get("fs_root", Path.home()), base_dir=home),
        mcp_servers=_as_urls(values.get("mcp_servers", ()), key="mcp_servers"),
    )
    logger.debug("Loaded settings: home=%s recipes_dir=%s model=%s", settings.home, settings.recipes_dir, settings.model)
    return settings
