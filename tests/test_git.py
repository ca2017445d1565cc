"""Tests for git module."""

import subprocess

import pytest

from gitoverlay import git


def _rev(repo, ref):
    return subprocess.run(
        ["git", "rev-parse", ref],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    ).stdout.strip()


@pytest.fixture
def clone_dir(tmp_path, upstream_origin):
    """Clone of upstream_origin."""
    target = tmp_path / "clone"
    git.clone(str(upstream_origin), target)
    return target


class TestClone:
    """Tests for clone function."""

    def test_clone(self, clone_dir):
        """Clone checks out the default branch."""
        assert (clone_dir / ".git").is_dir()
        assert (clone_dir / "src" / "lib" / "x.txt").read_text() == "v2"

    def test_clone_failure(self, tmp_path):
        """Clone of a missing repo raises GitError."""
        with pytest.raises(git.GitError, match="Clone failed"):
            git.clone(str(tmp_path / "missing"), tmp_path / "clone")


class TestResolveRef:
    """Tests for resolve_ref function."""

    def test_branch(self, clone_dir, upstream_origin):
        """Branches resolve through origin."""
        assert git.resolve_ref(clone_dir, "main") == _rev(upstream_origin, "main")

    def test_tag(self, clone_dir, upstream_origin):
        """Tags resolve to the tagged commit."""
        assert git.resolve_ref(clone_dir, "v1") == _rev(upstream_origin, "v1")

    def test_commit(self, clone_dir, upstream_origin):
        """Full and abbreviated hashes resolve."""
        commit = _rev(upstream_origin, "v1")
        assert git.resolve_ref(clone_dir, commit) == commit
        assert git.resolve_ref(clone_dir, commit[:10]) == commit

    def test_unknown(self, clone_dir):
        """Unknown refs raise GitError."""
        with pytest.raises(git.GitError, match="Unknown ref: nope"):
            git.resolve_ref(clone_dir, "nope")


class TestCheckout:
    """Tests for checkout function."""

    def test_checkout_tag(self, clone_dir, upstream_origin):
        """Checkout moves the work tree to the ref."""
        commit = git.checkout(clone_dir, "v1")

        assert commit == _rev(upstream_origin, "v1")
        assert (clone_dir / "src" / "lib" / "x.txt").read_text() == "v1"

    def test_checkout_discards_local_changes(self, clone_dir):
        """Checkout is forced."""
        (clone_dir / "src" / "lib" / "x.txt").write_text("local edit")

        git.checkout(clone_dir, "v1")

        assert (clone_dir / "src" / "lib" / "x.txt").read_text() == "v1"


class TestFetch:
    """Tests for fetch function."""

    def test_fetch_new_commits(self, clone_dir, upstream_origin):
        """Fetch picks up commits made upstream after the clone."""
        (upstream_origin / "README.md").write_text("# updated")
        subprocess.run(
            ["git", "commit", "-am", "third"],
            cwd=upstream_origin,
            check=True,
            capture_output=True,
        )

        git.fetch(clone_dir)
        git.checkout(clone_dir, "main")

        assert (clone_dir / "README.md").read_text() == "# updated"

    def test_fetch_new_tags(self, clone_dir, upstream_origin):
        """Fetch picks up new tags."""
        subprocess.run(["git", "tag", "v2"], cwd=upstream_origin, check=True, capture_output=True)

        git.fetch(clone_dir)

        assert git.resolve_ref(clone_dir, "v2") == _rev(upstream_origin, "v2")

    def test_fetch_without_remote(self, tmp_path):
        """Fetch fails without an origin."""
        repo = tmp_path / "repo"
        repo.mkdir()
        subprocess.run(["git", "init"], cwd=repo, check=True, capture_output=True)

        with pytest.raises(git.GitError, match="Fetch failed"):
            git.fetch(repo)


class TestRepository:
    """Tests for work tree detection and initialization."""

    def test_is_work_tree(self, clone_dir, tmp_path):
        assert git.is_work_tree(clone_dir)

        plain = tmp_path / "plain"
        plain.mkdir()
        assert not git.is_work_tree(plain)

    def test_ensure_repository_creates(self, tmp_path):
        """ensure_repository runs git init in a plain directory."""
        plain = tmp_path / "plain"
        plain.mkdir()

        assert git.ensure_repository(plain) is True
        assert (plain / ".git").is_dir()

    def test_ensure_repository_existing(self, clone_dir):
        """ensure_repository leaves existing repositories alone."""
        assert git.ensure_repository(clone_dir) is False

    def test_run_git_failure(self, tmp_path):
        """run_git raises with git's error output."""
        with pytest.raises(git.GitError):
            git.run_git(tmp_path, ["rev-parse", "--verify", "nope"])
