"""Git command wrapper."""

import subprocess
from pathlib import Path


class GitError(Exception):
    """Raised when git command fails."""
    pass


def run_git(repo_dir: Path, args: list[str]) -> subprocess.CompletedProcess:
    """Run a git command in a repository and capture its output.

    Args:
        repo_dir: Path to the repository.
        args: Git command arguments (without 'git' prefix)

    Returns:
        CompletedProcess result

    Raises:
        GitError: If the command exits non-zero.
    """
    result = subprocess.run(
        ["git"] + args,
        cwd=repo_dir,
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        raise GitError(result.stderr.strip() or f"Git command failed: {' '.join(args)}")
    return result


def clone(repo_url: str, target_dir: Path) -> None:
    """Clone a git repository.

    Args:
        repo_url: URL or path to the repository.
        target_dir: Directory to clone into.

    Raises:
        GitError: If clone fails.
    """
    result = subprocess.run(
        ["git", "clone", repo_url, str(target_dir)],
        capture_output=True,
        text=True,
    )

    if result.returncode != 0:
        raise GitError(f"Clone failed: {result.stderr.strip()}")


def fetch(repo_dir: Path) -> None:
    """Fetch all branches and tags from origin, overwriting local copies.

    Args:
        repo_dir: Path to the repository.

    Raises:
        GitError: If fetch fails.
    """
    try:
        run_git(repo_dir, [
            "fetch", "--force", "origin",
            "+refs/heads/*:refs/remotes/origin/*",
            "+refs/tags/*:refs/tags/*",
        ])
    except GitError as e:
        raise GitError(f"Fetch failed: {e}")


def resolve_ref(repo_dir: Path, ref: str) -> str:
    """Resolve a branch, tag or commit to a commit hash.

    Remote branches win over tags, tags win over anything else git can
    resolve (local branches, full or abbreviated hashes).

    Args:
        repo_dir: Path to the repository.
        ref: Branch, tag, or commit.

    Returns:
        Full commit hash

    Raises:
        GitError: If the ref does not name a commit.
    """
    candidates = [f"refs/remotes/origin/{ref}", f"refs/tags/{ref}", ref]

    for candidate in candidates:
        result = subprocess.run(
            ["git", "rev-parse", "--verify", "--quiet", f"{candidate}^{{commit}}"],
            cwd=repo_dir,
            capture_output=True,
            text=True,
        )
        if result.returncode == 0:
            return result.stdout.strip()

    raise GitError(f"Unknown ref: {ref}")


def checkout(repo_dir: Path, ref: str) -> str:
    """Force-checkout a ref as a detached HEAD.

    Args:
        repo_dir: Path to the repository.
        ref: Branch, tag, or commit to checkout.

    Returns:
        Commit hash now checked out

    Raises:
        GitError: If the ref is unknown or checkout fails.
    """
    commit = resolve_ref(repo_dir, ref)

    try:
        run_git(repo_dir, ["checkout", "--force", "--detach", commit])
    except GitError as e:
        raise GitError(f"Checkout failed: {e}")

    return commit


def is_work_tree(path: Path) -> bool:
    """Check if a directory is inside a git work tree.

    Args:
        path: Directory to check.

    Returns:
        True if git considers the directory part of a work tree.
    """
    result = subprocess.run(
        ["git", "rev-parse", "--is-inside-work-tree"],
        cwd=path,
        capture_output=True,
        text=True,
    )
    return result.returncode == 0 and result.stdout.strip() == "true"


def ensure_repository(root_dir: Path) -> bool:
    """Initialize a git repository unless root_dir is already in one.

    Args:
        root_dir: Project root directory.

    Returns:
        True if a new repository was created.

    Raises:
        GitError: If git init fails.
    """
    if is_work_tree(root_dir):
        return False

    run_git(root_dir, ["init"])
    return True
