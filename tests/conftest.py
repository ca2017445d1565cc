"""Test fixtures for git-overlay."""

import subprocess

import pytest
import yaml


def _git(*args, cwd):
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)


@pytest.fixture
def project(tmp_path):
    """Project root with an upstream checkout and an empty overlay directory."""
    root = tmp_path / "project"
    upstream = root / ".upstream"

    (upstream / "src" / "lib").mkdir(parents=True)
    (upstream / "src" / "lib" / "x.txt").write_text("x content")
    (upstream / "src" / "lib" / "nested").mkdir()
    (upstream / "src" / "lib" / "nested" / "y.txt").write_text("y content")
    (upstream / "README.md").write_text("# upstream")
    (upstream / ".gitignore").write_text("*.log\n")

    script = upstream / "run.sh"
    script.write_text("#!/bin/sh\necho hi\n")
    script.chmod(0o755)

    (root / "overlay").mkdir()
    return root


@pytest.fixture
def write_config(project):
    """Write a .git-overlay.yml into the project and return its path."""
    def _write(config):
        config_path = project / ".git-overlay.yml"
        config_path.write_text(yaml.dump(config))
        return config_path

    return _write


@pytest.fixture
def upstream_origin(tmp_path):
    """Local git repo acting as the upstream remote.

    main has two commits, tag v1 points at the first one.
    """
    repo = tmp_path / "upstream-origin"
    repo.mkdir()
    _git("init", cwd=repo)
    _git("symbolic-ref", "HEAD", "refs/heads/main", cwd=repo)
    _git("config", "user.email", "test@test.com", cwd=repo)
    _git("config", "user.name", "Test", cwd=repo)

    (repo / "src" / "lib").mkdir(parents=True)
    (repo / "src" / "lib" / "x.txt").write_text("v1")
    (repo / "README.md").write_text("# upstream")
    _git("add", ".", cwd=repo)
    _git("commit", "-m", "first", cwd=repo)
    _git("tag", "v1", cwd=repo)

    (repo / "src" / "lib" / "x.txt").write_text("v2")
    _git("commit", "-am", "second", cwd=repo)

    return repo


@pytest.fixture
def sample_config(upstream_origin):
    """Minimal valid config pointing at upstream_origin."""
    return {
        "upstream": {"url": str(upstream_origin), "ref": "main"},
        "symlinks": [
            "README.md",
            {"from": "src/lib", "to": "library"},
        ],
    }
