"""Overlay link creation and cleanup."""

import os
import posixpath
import shutil
from dataclasses import dataclass
from pathlib import Path

from . import git
from .config import Config, MappingSpec
from .gitignore import update_gitignore
from .output import Output, get_output
from .state import LinkMode, Registry, path_depth, read_state, write_state
from .validation import ValidationError, validate_mapping, validate_path

UPSTREAM_DIRNAME = ".upstream"
TARGET_DIRNAME = "overlay"

# Targets with this suffix are always copied, git does not follow symlinked ignore files
IGNORE_FILENAME = ".gitignore"


class OverlayError(Exception):
    """Raised when overlay operations fail."""
    pass


class SourceNotFoundError(OverlayError):
    """Raised when a mapping source does not exist in the upstream tree."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class TargetExistsError(OverlayError):
    """Raised when a target exists and force is not set."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class TargetRootMissingError(OverlayError):
    """Raised when cleaning without an overlay directory."""
    pass


class UnsupportedLinkModeError(OverlayError):
    """Raised for a link mode other than symlink, hardlink or copy."""

    def __init__(self, message: str, mode: str):
        super().__init__(message)
        self.mode = mode


class OverlayIOError(OverlayError):
    """Raised when a filesystem operation on the overlay fails."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


@dataclass(frozen=True)
class LinkPlan:
    """A single file to expose: source under .upstream/, target under overlay/."""

    source: str
    target: str


def get_upstream_dir(root_dir: Path) -> Path:
    """Get path to the upstream checkout.

    Args:
        root_dir: Project root directory.

    Returns:
        Path to .upstream/
    """
    return root_dir / UPSTREAM_DIRNAME


def get_target_dir(root_dir: Path) -> Path:
    """Get path to the overlay directory receiving the links.

    Args:
        root_dir: Project root directory.

    Returns:
        Path to overlay/
    """
    return root_dir / TARGET_DIRNAME


def parse_link_mode(value: str | LinkMode) -> LinkMode:
    """Convert a link mode name to a LinkMode.

    Raises:
        UnsupportedLinkModeError: If the name is unknown
    """
    if isinstance(value, LinkMode):
        return value
    try:
        return LinkMode(value)
    except ValueError:
        raise UnsupportedLinkModeError(
            f"Unsupported link mode: {value} (expected symlink, hardlink or copy)",
            str(value),
        )


def _is_local_path(repo: str) -> bool:
    """Check if repo is a local path rather than a git URL.

    Args:
        repo: Repository URL or path

    Returns:
        True if it's a local filesystem path
    """
    if "://" in repo or (repo.startswith("git@") and ":" in repo):
        return False
    return True


def enumerate_links(source_root: Path, mapping: MappingSpec) -> list[LinkPlan]:
    """List the files a mapping exposes, without touching the filesystem.

    A file source maps to the mapping target directly. A directory source
    maps every file beneath it to the same relative path under the target;
    directories themselves are never linked. Symlinks inside a directory
    source are treated as files.

    Args:
        source_root: Root of the upstream tree
        mapping: Mapping to expand

    Returns:
        Link plans in sorted path order

    Raises:
        EscapeError: If the source or target is absolute or escapes
        SourceNotFoundError: If the source does not exist
        ValidationError: If a file source targets the overlay directory itself
    """
    validate_mapping(mapping)
    source = posixpath.normpath(mapping.source)
    target = posixpath.normpath(mapping.destination)
    src_path = source_root / source

    if not src_path.exists():
        raise SourceNotFoundError(f"Source does not exist: {UPSTREAM_DIRNAME}/{source}", source)

    if not src_path.is_dir():
        if target == ".":
            raise ValidationError(f"File source {source} cannot replace the overlay directory")
        return [LinkPlan(source=source, target=target)]

    plans = []
    for dirpath, dirnames, filenames in os.walk(src_path):
        leaves = list(filenames)
        # os.walk lists symlinked directories as directories without entering them
        for name in list(dirnames):
            if os.path.islink(os.path.join(dirpath, name)):
                dirnames.remove(name)
                leaves.append(name)
        dirnames.sort()

        rel_dir = Path(dirpath).relative_to(src_path).as_posix()
        for name in sorted(leaves):
            rel_path = name if rel_dir == "." else f"{rel_dir}/{name}"
            plans.append(LinkPlan(
                source=posixpath.normpath(posixpath.join(source, rel_path)),
                target=posixpath.normpath(posixpath.join(target, rel_path)),
            ))

    return plans


def materialize(
    root_dir: Path,
    mappings: list[MappingSpec],
    link_mode: str | LinkMode,
    *,
    force: bool = False,
    output: Output | None = None,
) -> list[str]:
    """Create links in overlay/ for every file the mappings expose.

    Each created entry is recorded in the state file. When a mapping fails
    part way, the entries created so far are still saved and the error is
    re-raised, so running again with force completes the job.

    Args:
        root_dir: Project root directory.
        mappings: Mappings to apply, in order. Later mappings win on
            colliding targets.
        link_mode: symlink, hardlink or copy
        force: Replace existing targets
        output: Output handler

    Returns:
        Created paths, relative to the project root.

    Raises:
        UnsupportedLinkModeError: If link_mode is unknown
        EscapeError: If a target escapes the overlay directory
        SourceNotFoundError: If a mapping source does not exist
        TargetExistsError: If a target exists and force is not set
        OverlayIOError: If a filesystem operation fails
        StateError: If the state file cannot be read or written
    """
    if output is None:
        output = get_output()

    mode = parse_link_mode(link_mode)
    root_dir = Path(root_dir).resolve()
    source_root = get_upstream_dir(root_dir)
    target_root = get_target_dir(root_dir)

    registry = read_state(root_dir)
    created = []

    try:
        for mapping in mappings:
            plans = enumerate_links(source_root, mapping)
            output.debug(f"{mapping.source} -> {mapping.destination}: {len(plans)} file(s)")
            for plan in plans:
                _create_link(source_root, target_root, plan, mode, registry, output, force=force)
                created.append(f"{TARGET_DIRNAME}/{plan.target}")
    finally:
        write_state(root_dir, registry)
        _refresh_gitignore(root_dir, registry)

    return created


def _create_link(
    source_root: Path,
    target_root: Path,
    plan: LinkPlan,
    link_mode: LinkMode,
    registry: Registry,
    output: Output,
    *,
    force: bool = False,
) -> None:
    """Create a single link and record it in the registry.

    Raises:
        EscapeError: If the target escapes the overlay directory
        TargetExistsError: If the target exists and force is not set
        OverlayIOError: If a filesystem operation fails
    """
    validate_path(TARGET_DIRNAME, plan.target)

    src_path = source_root / plan.source
    dst_path = target_root / plan.target
    display = f"{TARGET_DIRNAME}/{plan.target}"

    if plan.target.endswith(IGNORE_FILENAME) and link_mode is not LinkMode.COPY:
        output.note(f"{display} is being copied for compatibility")
        link_mode = LinkMode.COPY

    try:
        dst_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OverlayIOError(f"Failed to create directory for {display}: {e}", plan.target)

    if os.path.lexists(dst_path):
        if not force:
            raise TargetExistsError(f"Target already exists: {display}", plan.target)
        output.debug(f"Replacing existing {display}")
        _remove_existing(dst_path, plan.target)

    try:
        if link_mode is LinkMode.SYMLINK:
            dst_path.symlink_to(os.path.relpath(src_path, dst_path.parent))
        elif link_mode is LinkMode.HARDLINK:
            os.link(src_path, dst_path)
        else:
            shutil.copyfile(src_path, dst_path)
            shutil.copymode(src_path, dst_path)
    except OSError as e:
        raise OverlayIOError(
            f"Failed to {link_mode.value} {UPSTREAM_DIRNAME}/{plan.source} to {display}: {e}",
            plan.target,
        )

    registry.upsert(plan.target, link_mode, plan.source)
    output.created(display, link_mode.value)


def _remove_existing(path: Path, rel_path: str) -> None:
    """Remove a file, symlink or empty directory in the way of a new link.

    Raises:
        OverlayIOError: If removal fails, e.g. for a non-empty directory
    """
    try:
        if path.is_dir() and not path.is_symlink():
            path.rmdir()
        else:
            path.unlink()
    except OSError as e:
        raise OverlayIOError(f"Failed to remove existing target {TARGET_DIRNAME}/{rel_path}: {e}", rel_path)


def clean(root_dir: Path, *, output: Output | None = None) -> int:
    """Remove everything recorded in the state file from overlay/.

    Files and symlinks are always removed. A managed directory is only
    removed when everything inside it is managed too; directories holding
    custom content survive. Empty directories left behind are pruned, the
    overlay directory itself is kept.

    Args:
        root_dir: Project root directory.
        output: Output handler

    Returns:
        Number of managed files and directories removed.

    Raises:
        TargetRootMissingError: If overlay/ does not exist
        EscapeError: If a recorded path escapes the overlay directory
        OverlayIOError: If a filesystem operation fails. The state file is
            left as it was.
        StateError: If the state file cannot be read or written
    """
    if output is None:
        output = get_output()

    root_dir = Path(root_dir).resolve()
    target_root = get_target_dir(root_dir)

    if not target_root.is_dir():
        raise TargetRootMissingError(f"Overlay directory does not exist: {target_root}")

    registry = read_state(root_dir)
    managed = set(registry.paths())
    removed = 0

    # Deepest first so children are handled before their parents
    for rel_path in sorted(managed, key=lambda p: (path_depth(p), p), reverse=True):
        validate_path(TARGET_DIRNAME, rel_path)
        full_path = target_root / rel_path
        display = f"{TARGET_DIRNAME}/{rel_path}"

        if not os.path.lexists(full_path):
            output.debug(f"Already gone: {display}")
            registry.remove(rel_path)
            continue

        try:
            if full_path.is_symlink() or not full_path.is_dir():
                full_path.unlink()
            elif _is_fully_managed(target_root, rel_path, managed):
                shutil.rmtree(full_path)
            else:
                output.debug(f"Keeping {display}: contains unmanaged content")
                continue
        except OSError as e:
            raise OverlayIOError(f"Failed to remove {display}: {e}", rel_path)

        removed += 1
        registry.remove(rel_path)
        output.removed(display)

    # Whatever was kept is no longer ours to manage
    for rel_path in managed:
        registry.remove(rel_path)

    _remove_empty_dirs(target_root, target_root, output)

    write_state(root_dir, registry)
    _refresh_gitignore(root_dir, registry)

    return removed


def _is_fully_managed(target_root: Path, rel_dir: str, managed: set[str]) -> bool:
    """Check that every path inside a directory is managed.

    Args:
        target_root: Overlay directory
        rel_dir: Directory relative to target_root
        managed: Managed paths relative to target_root

    Returns:
        True if all direct and nested children are in managed
    """
    with os.scandir(target_root / rel_dir) as entries:
        children = [(entry.name, entry.is_dir(follow_symlinks=False)) for entry in entries]

    for name, is_dir in children:
        child = posixpath.join(rel_dir, name)
        if child not in managed:
            return False
        if is_dir and not _is_fully_managed(target_root, child, managed):
            return False

    return True


def _remove_empty_dirs(directory: Path, target_root: Path, output: Output) -> None:
    """Remove empty directories bottom-up, keeping target_root itself.

    Raises:
        OverlayIOError: If a directory cannot be listed or removed
    """
    try:
        with os.scandir(directory) as entries:
            subdirs = [Path(entry.path) for entry in entries if entry.is_dir(follow_symlinks=False)]

        for subdir in subdirs:
            _remove_empty_dirs(subdir, target_root, output)

        if directory != target_root and not any(directory.iterdir()):
            directory.rmdir()
            output.debug(f"Pruned empty directory {directory.relative_to(target_root.parent)}")
    except OSError as e:
        raise OverlayIOError(f"Failed to prune {directory}: {e}", str(directory))


def _refresh_gitignore(root_dir: Path, registry: Registry) -> None:
    """Rewrite the managed .gitignore block from the registry.

    Raises:
        OverlayIOError: If .gitignore cannot be written
    """
    try:
        update_gitignore(root_dir, [f"{TARGET_DIRNAME}/{path}" for path in registry.paths()])
    except OSError as e:
        raise OverlayIOError(f"Failed to update .gitignore: {e}", ".gitignore")


def init_overlay(
    root_dir: Path,
    config: Config,
    link_mode: str | LinkMode,
    *,
    force: bool = False,
    output: Output | None = None,
) -> list[str]:
    """Clone the upstream repo at the configured ref and create links.

    An existing .upstream/ is replaced by a fresh clone.

    Args:
        root_dir: Project root directory (contains .git-overlay.yml).
        config: Loaded config.
        link_mode: symlink, hardlink or copy
        force: Replace existing targets
        output: Output handler

    Returns:
        Created paths, relative to the project root.

    Raises:
        OverlayError: If any step fails.
    """
    if output is None:
        output = get_output()

    root_dir = Path(root_dir).resolve()
    upstream_dir = get_upstream_dir(root_dir)
    repo_url = config.upstream.url

    if _is_local_path(repo_url) and not Path(repo_url).is_absolute():
        repo_url = str((root_dir / repo_url).resolve())

    try:
        if git.ensure_repository(root_dir):
            output.info(f"Initialized git repository in {output.path(str(root_dir))}")

        if upstream_dir.exists():
            output.debug(f"Removing existing {UPSTREAM_DIRNAME}/")
            shutil.rmtree(upstream_dir)

        get_target_dir(root_dir).mkdir(parents=True, exist_ok=True)

        git.clone(repo_url, upstream_dir)
        commit = git.checkout(upstream_dir, config.upstream.ref)
    except git.GitError as e:
        raise OverlayError(str(e))
    except OSError as e:
        raise OverlayIOError(f"Failed to prepare {root_dir}: {e}", str(root_dir))

    output.info(f"Upstream {output.path(config.upstream.ref)} at {commit[:12]}")

    created = materialize(root_dir, config.mappings, link_mode, force=force, output=output)

    output.success("Git overlay repository initialized successfully")
    return created


def sync_overlay(
    root_dir: Path,
    config: Config,
    link_mode: str | LinkMode,
    *,
    force: bool = False,
    output: Output | None = None,
) -> list[str]:
    """Fetch upstream, check out the configured ref again and rebuild links.

    Args:
        root_dir: Project root directory.
        config: Loaded config.
        link_mode: symlink, hardlink or copy
        force: Replace existing targets
        output: Output handler

    Returns:
        Created paths, relative to the project root.

    Raises:
        OverlayError: If any step fails.
    """
    if output is None:
        output = get_output()

    root_dir = Path(root_dir).resolve()
    upstream_dir = get_upstream_dir(root_dir)

    if not upstream_dir.exists():
        raise OverlayError("Upstream not initialized. Run 'git-overlay init' first")

    try:
        git.fetch(upstream_dir)
        commit = git.checkout(upstream_dir, config.upstream.ref)
    except git.GitError as e:
        raise OverlayError(str(e))

    output.info(f"Upstream {output.path(config.upstream.ref)} at {commit[:12]}")

    created = materialize(root_dir, config.mappings, link_mode, force=force, output=output)

    output.success("Git overlay repository synchronized successfully")
    return created
