"""Configuration loading and validation."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .state import LinkMode
from .validation import ValidationError, validate_mapping

CONFIG_FILENAME = ".git-overlay.yml"


class ConfigError(Exception):
    """Raised when config is invalid or not found."""
    pass


@dataclass(frozen=True)
class MappingSpec:
    """One overlay rule: a path in the upstream tree and where it appears."""

    source: str
    target: str | None = None

    @property
    def destination(self) -> str:
        """Target path, falling back to the source path."""
        return self.target if self.target is not None else self.source


@dataclass(frozen=True)
class UpstreamConfig:
    url: str
    ref: str


@dataclass(frozen=True)
class Config:
    upstream: UpstreamConfig
    mappings: list[MappingSpec] = field(default_factory=list)
    link_mode: LinkMode | None = None
    debug: bool = False


def find_config(start_dir: Path | None = None) -> Path:
    """Find .git-overlay.yml by searching upward from start_dir.

    Args:
        start_dir: Directory to start search from. Defaults to cwd.

    Returns:
        Path to the config file.

    Raises:
        ConfigError: If no config file found.
    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()

    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.exists():
            return config_path

        parent = current.parent
        if parent == current:
            raise ConfigError(f"No {CONFIG_FILENAME} found")
        current = parent


def load_config(config_path: Path) -> Config:
    """Load and validate config from YAML file.

    Args:
        config_path: Path to the config file.

    Returns:
        Parsed config.

    Raises:
        ConfigError: If config is missing or invalid.
    """
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid config: {e}")

    if raw is None:
        raise ConfigError("Invalid config: empty file")

    return parse_config(validate_config(raw))


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate config structure and values.

    Args:
        config: Raw config dict.

    Returns:
        Validated config dict.

    Raises:
        ConfigError: If config is invalid.
    """
    if not isinstance(config, dict):
        raise ConfigError("Invalid config: expected mapping")

    if "upstream" not in config:
        raise ConfigError("Missing required field: upstream")

    upstream = config["upstream"]
    if not isinstance(upstream, dict):
        raise ConfigError("Invalid config: upstream must be a mapping")

    for key in ("url", "ref"):
        value = upstream.get(key)
        if not value:
            raise ConfigError(f"Missing required field: upstream.{key}")
        if not isinstance(value, str):
            raise ConfigError(f"Invalid config: upstream.{key} must be a string")

    symlinks = config.get("symlinks")
    if symlinks is not None:
        if not isinstance(symlinks, list):
            raise ConfigError("Invalid config: symlinks must be a list")
        for i, entry in enumerate(symlinks):
            _validate_mapping_entry(i, entry)

    if config.get("link_mode") is not None:
        try:
            LinkMode(config["link_mode"])
        except ValueError:
            raise ConfigError(
                f"Unsupported link_mode: {config['link_mode']} "
                "(expected symlink, hardlink or copy)"
            )

    if "debug" in config and not isinstance(config["debug"], bool):
        raise ConfigError("Invalid config: debug must be a boolean")

    return config


def _validate_mapping_entry(index: int, entry: Any) -> None:
    """Validate one entry of the symlinks list.

    Args:
        index: Position in the list, for error messages
        entry: Bare path string or mapping with from/to keys

    Raises:
        ConfigError: If the entry is invalid
    """
    if isinstance(entry, str):
        paths = {"path": entry}
    elif isinstance(entry, dict):
        if "from" not in entry:
            raise ConfigError(f"Missing required field: symlinks[{index}].from")
        paths = {"from": entry["from"]}
        if entry.get("to") is not None:
            paths["to"] = entry["to"]
    else:
        raise ConfigError(f"Invalid mapping at index {index}: expected string or mapping")

    for key, value in paths.items():
        if not isinstance(value, str) or not value:
            raise ConfigError(f"Invalid mapping at index {index}: {key} must be a non-empty string")

    source = paths.get("from", paths.get("path"))
    try:
        validate_mapping(MappingSpec(source=source, target=paths.get("to")))
    except ValidationError as e:
        raise ConfigError(f"Invalid mapping at index {index}: {e}")


def parse_config(config: dict[str, Any]) -> Config:
    """Convert a validated config dict into a Config.

    Args:
        config: Dict that passed validate_config

    Returns:
        Config object
    """
    mappings = []
    for entry in config.get("symlinks") or []:
        if isinstance(entry, str):
            mappings.append(MappingSpec(source=entry))
        else:
            mappings.append(MappingSpec(source=entry["from"], target=entry.get("to")))

    link_mode = config.get("link_mode")

    return Config(
        upstream=UpstreamConfig(
            url=config["upstream"]["url"],
            ref=str(config["upstream"]["ref"]),
        ),
        mappings=mappings,
        link_mode=LinkMode(link_mode) if link_mode is not None else None,
        debug=config.get("debug", False),
    )
