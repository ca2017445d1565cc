"""Tests for config module."""

import pytest
import yaml

from gitoverlay.config import (
    ConfigError,
    MappingSpec,
    find_config,
    load_config,
    parse_config,
    validate_config,
)
from gitoverlay.state import LinkMode


@pytest.fixture
def raw_config():
    return {
        "upstream": {"url": "https://example.com/upstream.git", "ref": "main"},
        "symlinks": [
            "README.md",
            {"from": "src/lib", "to": "library"},
            {"from": "docs"},
        ],
        "link_mode": "hardlink",
    }


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config(self, raw_config):
        """Valid config passes unchanged."""
        assert validate_config(raw_config) == raw_config

    def test_not_a_mapping(self):
        """Top level must be a mapping."""
        with pytest.raises(ConfigError, match="expected mapping"):
            validate_config(["a"])

    def test_missing_upstream(self, raw_config):
        """Missing upstream errors."""
        del raw_config["upstream"]
        with pytest.raises(ConfigError, match="Missing required field: upstream"):
            validate_config(raw_config)

    def test_missing_url(self, raw_config):
        """Missing upstream.url errors."""
        del raw_config["upstream"]["url"]
        with pytest.raises(ConfigError, match="Missing required field: upstream.url"):
            validate_config(raw_config)

    def test_missing_ref(self, raw_config):
        """Empty upstream.ref errors."""
        raw_config["upstream"]["ref"] = ""
        with pytest.raises(ConfigError, match="Missing required field: upstream.ref"):
            validate_config(raw_config)

    def test_symlinks_optional(self, raw_config):
        """A config without symlinks is valid."""
        del raw_config["symlinks"]
        validate_config(raw_config)

    def test_symlinks_not_a_list(self, raw_config):
        """symlinks must be a list."""
        raw_config["symlinks"] = "README.md"
        with pytest.raises(ConfigError, match="symlinks must be a list"):
            validate_config(raw_config)

    def test_mapping_missing_from(self, raw_config):
        """Structured mappings need from."""
        raw_config["symlinks"] = [{"to": "x"}]
        with pytest.raises(ConfigError, match=r"symlinks\[0\].from"):
            validate_config(raw_config)

    def test_mapping_wrong_type(self, raw_config):
        """Entries must be strings or mappings."""
        raw_config["symlinks"] = [42]
        with pytest.raises(ConfigError, match="expected string or mapping"):
            validate_config(raw_config)

    def test_absolute_target(self, raw_config):
        """Absolute targets are rejected."""
        raw_config["symlinks"] = [{"from": "a", "to": "/etc/a"}]
        with pytest.raises(ConfigError, match="Absolute paths are not allowed"):
            validate_config(raw_config)

    def test_escaping_source(self, raw_config):
        """Sources may not leave the upstream tree."""
        raw_config["symlinks"] = ["../outside"]
        with pytest.raises(ConfigError, match="escape base directory"):
            validate_config(raw_config)

    def test_unknown_link_mode(self, raw_config):
        """Unknown link modes are rejected."""
        raw_config["link_mode"] = "junction"
        with pytest.raises(ConfigError, match="Unsupported link_mode: junction"):
            validate_config(raw_config)

    def test_debug_must_be_bool(self, raw_config):
        """debug must be a boolean."""
        raw_config["debug"] = "yes"
        with pytest.raises(ConfigError, match="debug must be a boolean"):
            validate_config(raw_config)


class TestParseConfig:
    """Tests for parse_config function."""

    def test_mappings(self, raw_config):
        """Bare strings map to themselves, mappings keep from/to."""
        config = parse_config(raw_config)

        assert config.mappings == [
            MappingSpec(source="README.md"),
            MappingSpec(source="src/lib", target="library"),
            MappingSpec(source="docs"),
        ]
        assert [m.destination for m in config.mappings] == ["README.md", "library", "docs"]

    def test_upstream_and_mode(self, raw_config):
        """Upstream and link mode are parsed."""
        config = parse_config(raw_config)

        assert config.upstream.url == "https://example.com/upstream.git"
        assert config.upstream.ref == "main"
        assert config.link_mode is LinkMode.HARDLINK
        assert config.debug is False

    def test_link_mode_optional(self, raw_config):
        """Without link_mode the config leaves it unset."""
        del raw_config["link_mode"]
        assert parse_config(raw_config).link_mode is None


class TestLoadConfig:
    """Tests for load_config and find_config."""

    def test_load(self, tmp_path, raw_config):
        """Loads YAML from disk."""
        config_path = tmp_path / ".git-overlay.yml"
        config_path.write_text(yaml.dump(raw_config))

        config = load_config(config_path)
        assert len(config.mappings) == 3

    def test_load_empty(self, tmp_path):
        """Empty file errors."""
        config_path = tmp_path / ".git-overlay.yml"
        config_path.write_text("")

        with pytest.raises(ConfigError, match="empty file"):
            load_config(config_path)

    def test_load_invalid_yaml(self, tmp_path):
        """Broken YAML errors."""
        config_path = tmp_path / ".git-overlay.yml"
        config_path.write_text("upstream: [unclosed")

        with pytest.raises(ConfigError, match="Invalid config"):
            load_config(config_path)

    def test_load_missing_file(self, tmp_path):
        """Missing file errors."""
        with pytest.raises(ConfigError, match="Config file not found"):
            load_config(tmp_path / "nope.yml")

    def test_find_config_upward(self, tmp_path):
        """find_config searches parent directories."""
        config_path = tmp_path / ".git-overlay.yml"
        config_path.write_text("upstream: {}")
        subdir = tmp_path / "a" / "b"
        subdir.mkdir(parents=True)

        assert find_config(subdir) == config_path.resolve()

    def test_find_config_missing(self, tmp_path):
        """find_config errors when nothing is found."""
        with pytest.raises(ConfigError, match="No .git-overlay.yml found"):
            find_config(tmp_path)
