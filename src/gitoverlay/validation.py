"""Path validation for git-overlay."""

import os
import posixpath


class ValidationError(Exception):
    """Raised when path validation fails."""
    pass


class EscapeError(ValidationError):
    """Raised when a path would resolve outside its base directory."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


def validate_path(base, path) -> None:
    """Ensure a relative path does not escape its base directory.

    The check is purely lexical: ``.`` and ``..`` segments and repeated
    separators are collapsed with POSIX rules, nothing is looked up on disk.

    Args:
        base: Directory the path must stay inside
        path: Path relative to base

    Raises:
        EscapeError: If path is absolute or resolves outside base
    """
    base = os.fspath(base)
    path = os.fspath(path)

    if posixpath.isabs(path) or os.path.isabs(path):
        raise EscapeError(f"Absolute paths are not allowed: {path}", path)

    clean_base = posixpath.normpath(base)
    resolved = posixpath.normpath(posixpath.join(clean_base, path))

    if not _is_within(clean_base, resolved):
        raise EscapeError(f"Path attempts to escape base directory: {path}", path)


def validate_mapping(mapping) -> None:
    """Validate both sides of a mapping against the current directory.

    Args:
        mapping: Object with source and target attributes, target may be None

    Raises:
        EscapeError: If either path is absolute or escapes
    """
    validate_path(".", mapping.source)
    if mapping.target is not None:
        validate_path(".", mapping.target)


def _is_within(base: str, resolved: str) -> bool:
    """Check whether a normalized path equals or is nested under base.

    Args:
        base: Normalized base directory
        resolved: Normalized path

    Returns:
        True if resolved is base or lies under it
    """
    if base == ".":
        return resolved != ".." and not resolved.startswith("../")

    if resolved == base:
        return True

    prefix = base if base.endswith("/") else base + "/"
    return resolved.startswith(prefix)
