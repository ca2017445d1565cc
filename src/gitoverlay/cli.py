"""Command-line interface."""

import argparse
import sys
from pathlib import Path

from . import __version__
from .config import Config, ConfigError, find_config, load_config
from .output import Output, set_output
from .overlay import (
    TARGET_DIRNAME,
    OverlayError,
    clean,
    enumerate_links,
    get_upstream_dir,
    init_overlay,
    materialize,
    sync_overlay,
)
from .state import LinkMode, StateError, read_state
from .validation import ValidationError, validate_path

LINK_MODES = "{" + ",".join(mode.value for mode in LinkMode) + "}"


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Arguments to parse (default sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for error).
    """
    parser = argparse.ArgumentParser(
        prog="git-overlay",
        description="Manage overlay repositories that extend upstream Git repositories",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Global flags
    parser.add_argument(
        "--config", "-c",
        help="Path to config file (default: search upward for .git-overlay.yml)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress informational output",
    )

    subparsers = parser.add_subparsers(dest="command")

    link_help = {
        "init": "Clone upstream at the configured ref and create links",
        "sync": "Update upstream code and rebuild links",
        "link": "Create links from the current upstream checkout",
    }
    for name, help_text in link_help.items():
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--force", "-f",
            action="store_true",
            help="Overwrite existing files and links",
        )
        sub.add_argument(
            "--link-mode",
            choices=[mode.value for mode in LinkMode],
            metavar=LINK_MODES,
            help="Link mode (default: link_mode from config, else symlink)",
        )

    subparsers.add_parser("clean", help="Remove managed files and links")

    validate_parser = subparsers.add_parser(
        "validate",
        help="Check that paths stay inside the overlay directory",
    )
    validate_parser.add_argument(
        "paths",
        nargs="*",
        help="Paths relative to overlay/ (default: every configured mapping)",
    )

    subparsers.add_parser("list", help="List managed files")

    args = parser.parse_args(argv)

    output = Output(no_color=args.no_color, quiet=args.quiet, debug=args.debug)
    set_output(output)

    if args.command is None:
        parser.print_help()
        return 0

    handlers = {
        "init": lambda: cmd_link(args, output, init_overlay),
        "sync": lambda: cmd_link(args, output, sync_overlay),
        "link": lambda: cmd_link(args, output, None),
        "clean": lambda: cmd_clean(args, output),
        "validate": lambda: cmd_validate(args, output),
        "list": lambda: cmd_list(args, output),
    }

    handler = handlers.get(args.command)
    if handler:
        return handler()

    return 0


def _find_root(args, output: Output) -> Path | None:
    """Locate the project root from --config or by searching upward.

    Args:
        args: Parsed arguments
        output: Output handler

    Returns:
        Project root directory, or None on error
    """
    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            output.error(f"Config file not found: {config_path}")
            return None
        return config_path.resolve().parent

    try:
        return find_config().parent
    except ConfigError as e:
        output.error(str(e))
        return None


def _get_config_and_root(args, output: Output) -> tuple[Config, Path] | None:
    """Find config and load it.

    Args:
        args: Parsed arguments
        output: Output handler

    Returns:
        Tuple of (config, root_dir) or None on error
    """
    root_dir = _find_root(args, output)
    if root_dir is None:
        return None

    config_path = Path(args.config).resolve() if args.config else find_config(root_dir)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        output.error(str(e))
        return None

    if config.debug:
        output.debug_enabled = True

    return config, root_dir


def _resolve_link_mode(args, config: Config) -> str:
    """Pick the link mode: command-line flag, then config, then symlink."""
    if args.link_mode:
        return args.link_mode
    if config.link_mode is not None:
        return config.link_mode.value
    return LinkMode.SYMLINK.value


def cmd_link(args, output: Output, operation) -> int:
    """Execute init, sync or link.

    Args:
        args: Parsed arguments
        output: Output handler
        operation: init_overlay or sync_overlay, None to only create links
    """
    result = _get_config_and_root(args, output)
    if result is None:
        return 1
    config, root_dir = result

    link_mode = _resolve_link_mode(args, config)
    output.debug(f"Project root {root_dir}, link mode {link_mode}, force={args.force}")

    try:
        if operation is None:
            created = materialize(
                root_dir,
                config.mappings,
                link_mode,
                force=args.force,
                output=output,
            )
            output.success(f"Created {len(created)} link(s)")
        else:
            operation(
                root_dir,
                config,
                link_mode,
                force=args.force,
                output=output,
            )
    except (OverlayError, ValidationError, StateError) as e:
        output.error(str(e))
        return 1

    return 0


def cmd_clean(args, output: Output) -> int:
    """Execute the clean command."""
    root_dir = _find_root(args, output)
    if root_dir is None:
        return 1

    try:
        removed = clean(root_dir, output=output)
    except (OverlayError, ValidationError, StateError) as e:
        output.error(str(e))
        return 1

    output.success(f"Removed {removed} managed files and directories")
    return 0


def cmd_validate(args, output: Output) -> int:
    """Validate explicit paths, or every configured mapping."""
    if args.paths:
        return _validate_paths(args.paths, output)

    result = _get_config_and_root(args, output)
    if result is None:
        return 1
    config, root_dir = result

    source_root = get_upstream_dir(root_dir)
    failures = 0

    for mapping in config.mappings:
        try:
            validate_path(TARGET_DIRNAME, mapping.destination)
            if source_root.exists():
                for plan in enumerate_links(source_root, mapping):
                    validate_path(TARGET_DIRNAME, plan.target)
        except (OverlayError, ValidationError) as e:
            output.error(str(e))
            failures += 1
            continue
        output.info(f"ok {mapping.source} -> {output.path(mapping.destination)}")

    if not source_root.exists():
        output.warning("Upstream not initialized, sources were not checked")

    return 1 if failures else 0


def _validate_paths(paths: list[str], output: Output) -> int:
    failures = 0
    for path in paths:
        try:
            validate_path(TARGET_DIRNAME, path)
        except ValidationError as e:
            output.error(str(e))
            failures += 1
            continue
        output.info(f"ok {output.path(path)}")
    return 1 if failures else 0


def cmd_list(args, output: Output) -> int:
    """List files recorded in the state file."""
    root_dir = _find_root(args, output)
    if root_dir is None:
        return 1

    try:
        registry = read_state(root_dir)
    except StateError as e:
        output.error(str(e))
        return 1

    if not len(registry):
        output.info("No managed files")
        return 0

    for entry in sorted(registry, key=lambda e: e.path):
        print(f"{TARGET_DIRNAME}/{entry.path}  ({entry.link_mode.value}) <- {entry.source}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
