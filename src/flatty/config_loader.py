"""
Configuration file loader for flatty.

Supports loading configuration from:
- flatty.toml / .flatty.toml
- flatty.yml / .flatty.yml / flatty.yaml / .flatty.yaml

CLI flags override config file values.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .config import (
    DEFAULT_OUTPUT_DIR,
    DEFAULT_SEPARATOR,
    DEFAULT_TOKEN_LIMIT,
    ConfigError,
    GroupMode,
)

# Config file search order (first found wins)
CONFIG_FILE_NAMES = [
    "flatty.toml",
    ".flatty.toml",
    "flatty.yml",
    ".flatty.yml",
    "flatty.yaml",
    ".flatty.yaml",
]

# Section name for configs nested in a shared file
CONFIG_SECTION = "flatty"


@dataclass
class ProjectConfig:
    """
    Project-level configuration loaded from config files.

    All fields are optional - CLI flags will override any values set here.
    """

    output_dir: Path | None = None
    group_by: GroupMode | None = None
    include: list[str] | None = None
    exclude: list[str] | None = None
    tokens: int | None = None
    separator: str | None = None
    respect_gitignore: bool | None = None
    skip_unreadable: bool | None = None


def find_config_file(root: Path) -> Path | None:
    """
    Find a configuration file in the tree root.

    Args:
        root: Root directory being flattened

    Returns:
        Path to the config file, or None if not found
    """
    for name in CONFIG_FILE_NAMES:
        config_path = root / name
        if config_path.is_file():
            return config_path
    return None


def _unwrap_section(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        return {}
    if CONFIG_SECTION in data and isinstance(data[CONFIG_SECTION], dict):
        return dict(data[CONFIG_SECTION])
    return dict(data)


def _parse_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML config file, supporting a nested [flatty] table."""
    with open(path, "rb") as f:
        return _unwrap_section(tomllib.load(f))


def _parse_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML config file, supporting a nested `flatty:` mapping."""
    with open(path, encoding="utf-8") as f:
        return _unwrap_section(yaml.safe_load(f))


def _normalize_patterns(patterns: Any, key: str) -> list[str] | None:
    """Normalize pattern input (comma-separated string or list) to a list."""
    if patterns is None:
        return None

    if isinstance(patterns, str):
        patterns = patterns.split(",")

    if not isinstance(patterns, (list, tuple)):
        raise ConfigError(f"'{key}' must be a list of glob patterns")

    return [str(p).strip() for p in patterns if str(p).strip()]


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigError(f"'{key}' must be true or false, got {value!r}")


def load_config(root: Path, config_path: Path | None = None) -> ProjectConfig:
    """
    Load configuration from a config file.

    Args:
        root: Root directory being flattened
        config_path: Explicit path to config file (optional)

    Returns:
        ProjectConfig with loaded values (unset values remain None).

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values.
    """
    if config_path is None:
        config_path = find_config_file(root)
        if config_path is None:
            return ProjectConfig()
    elif not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    # Parse based on extension
    suffix = config_path.suffix.lower()
    try:
        if suffix == ".toml":
            data = _parse_toml(config_path)
        elif suffix in (".yml", ".yaml"):
            data = _parse_yaml(config_path)
        else:
            raise ConfigError(f"Unsupported config file type: {config_path.name}")
    except (OSError, tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to parse {config_path}: {e}") from e

    config = ProjectConfig()

    if "output_dir" in data:
        output_dir = Path(str(data["output_dir"])).expanduser()
        # Relative paths in a config file are relative to the tree root
        config.output_dir = output_dir if output_dir.is_absolute() else root / output_dir

    group_by = data.get("group_by", data.get("mode"))
    if group_by is not None:
        try:
            config.group_by = GroupMode(str(group_by).lower())
        except ValueError:
            raise ConfigError(f"Invalid grouping mode in {config_path.name}: {group_by!r}")

    config.include = _normalize_patterns(data.get("include"), "include")
    config.exclude = _normalize_patterns(data.get("exclude"), "exclude")

    if "tokens" in data:
        tokens = data["tokens"]
        if isinstance(tokens, bool) or not isinstance(tokens, int):
            raise ConfigError(f"'tokens' must be an integer, got {tokens!r}")
        config.tokens = tokens

    if "separator" in data:
        config.separator = str(data["separator"])
    if "respect_gitignore" in data:
        config.respect_gitignore = _as_bool(data["respect_gitignore"], "respect_gitignore")
    if "skip_unreadable" in data:
        config.skip_unreadable = _as_bool(data["skip_unreadable"], "skip_unreadable")

    return config


def merge_cli_with_config(
    config: ProjectConfig,
    *,
    # CLI arguments (None means not specified on CLI)
    output_dir: Path | None = None,
    group_by: GroupMode | None = None,
    include: list[str] | None = None,
    exclude: list[str] | None = None,
    tokens: int | None = None,
    separator: str | None = None,
    no_gitignore: bool = False,
    skip_unreadable: bool = False,
) -> dict[str, Any]:
    """Merge CLI arguments with config file values (CLI wins).

    Include and exclude patterns given on the CLI replace the file's lists.

    Args:
        config: Config loaded from file (may have unset values).
        output_dir: CLI output directory (optional).
        group_by: CLI grouping mode (optional).
        include: CLI include patterns, including positional ones (optional).
        exclude: CLI exclude patterns (optional).
        tokens: CLI token limit (optional).
        separator: CLI separator (optional).
        no_gitignore: CLI flag to disable `.gitignore` respect.
        skip_unreadable: CLI flag to skip unreadable files.

    Returns:
        Keyword arguments for `RunConfig` (without `root` and `verbose`).
    """
    result: dict[str, Any] = {}

    if output_dir is not None:
        result["output_dir"] = output_dir
    elif config.output_dir is not None:
        result["output_dir"] = config.output_dir
    else:
        result["output_dir"] = DEFAULT_OUTPUT_DIR

    if group_by is not None:
        result["mode"] = group_by
    elif config.group_by is not None:
        result["mode"] = config.group_by
    else:
        result["mode"] = GroupMode.DIRECTORY

    if include:
        result["include_patterns"] = tuple(include)
    else:
        result["include_patterns"] = tuple(config.include or ())

    if exclude:
        result["exclude_patterns"] = tuple(exclude)
    else:
        result["exclude_patterns"] = tuple(config.exclude or ())

    if tokens is not None:
        result["token_limit"] = tokens
    elif config.tokens is not None:
        result["token_limit"] = config.tokens
    else:
        result["token_limit"] = DEFAULT_TOKEN_LIMIT

    if separator is not None:
        result["separator"] = separator
    elif config.separator is not None:
        result["separator"] = config.separator
    else:
        result["separator"] = DEFAULT_SEPARATOR

    # Respect gitignore (CLI --no-gitignore sets False)
    if no_gitignore:
        result["respect_gitignore"] = False
    elif config.respect_gitignore is not None:
        result["respect_gitignore"] = config.respect_gitignore
    else:
        result["respect_gitignore"] = True

    if skip_unreadable:
        result["skip_unreadable"] = True
    elif config.skip_unreadable is not None:
        result["skip_unreadable"] = config.skip_unreadable
    else:
        result["skip_unreadable"] = False

    return result
