"""
minigrep Configuration - TOML-based search options.

This module provides:
- The search option schema and validation
- Loading a SearchConfig from a TOML file
- Writing a commented default config file

Example usage:
    import minigrep.config

    minigrep.config.write_default(Path("minigrep.toml"))
    cfg = minigrep.config.load(Path("minigrep.toml"))
    minigrep.search("duct", contents, cfg)

The file holds one table:

    [search]
    case_insensitive = false
    max_matches = 0
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from minigrep.config.schema import (
    ConfigField,
    ValidationError,
    generate_default_config,
    resolve_config,
)
from minigrep.config.toml_handler import (
    TOMLError,
    generate_toml_from_schema,
    read_toml,
    write_toml,
)
from minigrep.search import SearchConfig

logger = logging.getLogger(__name__)

DEFAULT_SECTION = "search"


class ConfigError(Exception):
    """Base exception for config API errors."""

    pass


def field(
    type_: type,
    default: Any,
    description: str = "",
    min: Any = None,
    max: Any = None,
    choices: list[Any] | None = None,
) -> ConfigField:
    """
    Helper function to create a ConfigField.

    Example:
        field(int, 0, "Stop after this many matches", min=0)
    """
    return ConfigField(
        type_=type_,
        default=default,
        description=description,
        min=min,
        max=max,
        choices=choices,
    )


SEARCH_SCHEMA: dict[str, ConfigField] = {
    "case_insensitive": field(
        bool, False, "Ignore case when matching the pattern"
    ),
    "max_matches": field(
        int, 0, "Stop after this many matching lines (0 = no limit)", min=0
    ),
}


def from_mapping(data: Mapping[str, Any]) -> SearchConfig:
    """
    Build a SearchConfig from a mapping of option values.

    Missing options take their defaults.

    Raises:
        ValidationError: On unknown options or invalid values
    """
    if not isinstance(data, Mapping):
        raise ValidationError(
            f"Search options must be a table, got {type(data).__name__}"
        )
    return SearchConfig(**resolve_config(dict(data), SEARCH_SCHEMA))


def load(file_path: Path, section: str = DEFAULT_SECTION) -> SearchConfig:
    """
    Load search options from a TOML file.

    A missing file or a file without the section gives the default options.

    Raises:
        ConfigError: If the file exists but cannot be read or parsed
        ValidationError: If the section holds unknown or invalid options
    """
    file_path = Path(file_path)
    if not file_path.exists():
        logger.debug("No config at %s, using defaults", file_path)
        return SearchConfig()

    try:
        data = read_toml(file_path)
    except TOMLError as e:
        raise ConfigError(f"Failed to load config: {e}") from e

    # dotted names reach nested tables, e.g. "tool.minigrep" in pyproject.toml
    table: Any = data
    for key in section.split("."):
        if not isinstance(table, Mapping) or key not in table:
            logger.debug("No [%s] table in %s, using defaults", section, file_path)
            return SearchConfig()
        table = table[key]
    return from_mapping(table)


def write_default(file_path: Path, section: str = DEFAULT_SECTION) -> None:
    """
    Write a commented config file holding the default options.

    Raises:
        ConfigError: If the file cannot be written
    """
    content = generate_toml_from_schema(
        section, SEARCH_SCHEMA, generate_default_config(SEARCH_SCHEMA)
    )
    try:
        write_toml(Path(file_path), content)
    except TOMLError as e:
        raise ConfigError(str(e)) from e
    logger.debug("Wrote default config to %s", file_path)


__all__ = [
    "field",
    "from_mapping",
    "load",
    "write_default",
    "ConfigError",
    "SEARCH_SCHEMA",
]
