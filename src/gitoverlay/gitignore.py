"""Managed .gitignore block for git-overlay."""

from pathlib import Path

BEGIN_MARKER = "# BEGIN GIT-OVERLAY MANAGED BLOCK - DO NOT EDIT"
END_MARKER = "# END GIT-OVERLAY MANAGED BLOCK"

# Always ignored: the upstream checkout and the per-checkout state file
ALWAYS_IGNORED = [".upstream/", ".git-overlay.state.json"]


def get_gitignore_path(root_dir: Path) -> Path:
    """Get path to the project .gitignore.

    Args:
        root_dir: Project root directory

    Returns:
        Path to .gitignore
    """
    return root_dir / ".gitignore"


def update_gitignore(root_dir: Path, paths: list[str]) -> None:
    """Write the managed block listing paths into .gitignore.

    An existing block is replaced where it stands, so user lines before and
    after it keep their order. Otherwise the block is appended.

    Args:
        root_dir: Project root directory
        paths: Paths to ignore, relative to the project root
    """
    gitignore_path = get_gitignore_path(root_dir)

    existing_content = ""
    if gitignore_path.exists():
        existing_content = gitignore_path.read_text()

    block = _build_managed_block(paths)
    before, after, found = _split_managed_block(existing_content)

    if found:
        new_content = before + block + after
    else:
        new_content = existing_content.rstrip("\n")
        if new_content:
            new_content += "\n\n"
        new_content += block

    gitignore_path.write_text(new_content)


def _split_managed_block(content: str) -> tuple[str, str, bool]:
    """Split content around the managed block.

    Args:
        content: File content

    Returns:
        Tuple of (text before the block, text after it, whether a block was
        found). Without a block, before holds the whole content.
    """
    lines = content.splitlines(keepends=True)
    begin = end = None

    for i, line in enumerate(lines):
        stripped = line.strip()
        if begin is None and stripped == BEGIN_MARKER:
            begin = i
        elif begin is not None and stripped == END_MARKER:
            end = i
            break

    if begin is None:
        return content, "", False

    # Unterminated block runs to the end of the file
    if end is None:
        end = len(lines) - 1

    return "".join(lines[:begin]), "".join(lines[end + 1:]), True


def _build_managed_block(paths: list[str]) -> str:
    """Build the managed block content.

    Args:
        paths: Paths to list in the block

    Returns:
        Managed block content
    """
    lines = [BEGIN_MARKER]
    lines.extend(ALWAYS_IGNORED)
    lines.extend(sorted(set(paths) - set(ALWAYS_IGNORED)))
    lines.append(END_MARKER)

    return "\n".join(lines) + "\n"
