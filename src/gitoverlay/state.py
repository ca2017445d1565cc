"""State file management."""

import json
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Iterator

STATE_FILENAME = ".git-overlay.state.json"


class StateError(Exception):
    """Raised when the state file cannot be read or written."""
    pass


class CorruptStateError(StateError):
    """Raised when the state file exists but cannot be parsed."""
    pass


class LinkMode(str, Enum):
    """How a source file is exposed at its target path."""

    SYMLINK = "symlink"
    HARDLINK = "hardlink"
    COPY = "copy"


@dataclass(frozen=True)
class ManagedEntry:
    """A filesystem object created by git-overlay in the overlay tree."""

    path: str
    link_mode: LinkMode
    source: str

    def to_dict(self) -> dict[str, str]:
        return {
            "path": self.path,
            "linkMode": self.link_mode.value,
            "source": self.source,
        }


class Registry:
    """Ordered collection of managed entries, keyed by path.

    At most one entry exists per path. Upserting an existing path replaces
    the old entry and moves it to the end.
    """

    def __init__(self, entries: list[ManagedEntry] | None = None):
        self._entries: list[ManagedEntry] = []
        for entry in entries or []:
            self.upsert(entry.path, entry.link_mode, entry.source)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ManagedEntry]:
        return iter(list(self._entries))

    def __contains__(self, path: object) -> bool:
        return any(entry.path == path for entry in self._entries)

    def upsert(self, path: str, link_mode: LinkMode, source: str) -> ManagedEntry:
        """Insert an entry, replacing any existing entry for the same path.

        Args:
            path: Path relative to the overlay root
            link_mode: Link mode used to create it
            source: Path relative to the upstream root

        Returns:
            The stored entry
        """
        self.remove(path)
        entry = ManagedEntry(path=path, link_mode=LinkMode(link_mode), source=source)
        self._entries.append(entry)
        return entry

    def remove(self, path: str) -> None:
        """Remove the entry for path. Does nothing if it is not registered.

        Args:
            path: Path relative to the overlay root
        """
        self._entries = [entry for entry in self._entries if entry.path != path]

    def get(self, path: str) -> ManagedEntry | None:
        for entry in self._entries:
            if entry.path == path:
                return entry
        return None

    def paths(self) -> list[str]:
        return [entry.path for entry in self._entries]

    def entries_under(self, directory: str) -> list[ManagedEntry]:
        """Get entries equal to or nested under a directory.

        Args:
            directory: Directory relative to the overlay root. An empty
                string or "." selects every entry.

        Returns:
            Matching entries in registry order
        """
        directory = directory.rstrip("/")
        if directory in ("", "."):
            return list(self._entries)

        prefix = directory + "/"
        return [
            entry for entry in self._entries
            if entry.path == directory or entry.path.startswith(prefix)
        ]

    def to_dict(self) -> dict[str, Any]:
        return {"managed_files": [entry.to_dict() for entry in self._entries]}

    @classmethod
    def from_dict(cls, data: Any) -> "Registry":
        """Build a registry from its JSON form.

        Raises:
            CorruptStateError: If data does not have the expected shape
        """
        if not isinstance(data, dict):
            raise CorruptStateError("Invalid state: expected an object")

        records = data.get("managed_files")
        if records is None:
            records = []
        if not isinstance(records, list):
            raise CorruptStateError("Invalid state: managed_files must be a list")

        entries = []
        for i, record in enumerate(records):
            if not isinstance(record, dict):
                raise CorruptStateError(f"Invalid state entry at index {i}: expected an object")
            for key in ("path", "linkMode", "source"):
                if not isinstance(record.get(key), str):
                    raise CorruptStateError(f"Invalid state entry at index {i}: missing {key}")
            try:
                link_mode = LinkMode(record["linkMode"])
            except ValueError:
                raise CorruptStateError(
                    f"Invalid state entry at index {i}: unknown link mode '{record['linkMode']}'"
                )
            entries.append(ManagedEntry(record["path"], link_mode, record["source"]))

        return cls(entries)


def path_depth(path: str) -> int:
    """Number of components in a relative POSIX path.

    Trailing and repeated separators do not count.
    """
    return len(PurePosixPath(path).parts)


def get_state_path(root_dir: Path) -> Path:
    """Get path to state file.

    Args:
        root_dir: Project root directory

    Returns:
        Path to .git-overlay.state.json
    """
    return root_dir / STATE_FILENAME


def read_state(root_dir: Path) -> Registry:
    """Read the registry from the state file.

    Args:
        root_dir: Project root directory

    Returns:
        Registry, empty if the state file doesn't exist.

    Raises:
        CorruptStateError: If the state file is not valid
        StateError: If the state file cannot be read
    """
    state_path = get_state_path(root_dir)

    if not state_path.exists():
        return Registry()

    try:
        with open(state_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CorruptStateError(f"Failed to parse state file {state_path}: {e}")
    except OSError as e:
        raise StateError(f"Failed to read state file {state_path}: {e}")

    return Registry.from_dict(data)


def write_state(root_dir: Path, registry: Registry) -> None:
    """Atomically write the registry to the state file.

    The content goes to a temporary sibling first and then replaces the
    state file, so readers never see a half-written file.

    Args:
        root_dir: Project root directory
        registry: Registry to persist

    Raises:
        StateError: If the state file cannot be written
    """
    state_path = get_state_path(root_dir)
    tmp_path = state_path.with_name(state_path.name + ".tmp")

    try:
        with open(tmp_path, "w") as f:
            json.dump(registry.to_dict(), f, indent=2)
            f.write("\n")
        os.replace(tmp_path, state_path)
    except OSError as e:
        raise StateError(f"Failed to write state file {state_path}: {e}")
