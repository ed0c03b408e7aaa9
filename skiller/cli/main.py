"""CLI entry point for skiller.

Provides commands for managing registries and harnesses, syncing git
registries, and installing or uninstalling skills.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from skiller import __version__
from skiller.core.catalog import (
    find_skills,
    harness_paths,
    scan_harnesses,
    scan_registries,
    sync_registries,
)
from skiller.core.config import Config, load_config
from skiller.core.errors import SkillerError
from skiller.core.installer import install_skill, uninstall_skill
from skiller.core.paths import config_path, expand_path
from skiller.core.registry_sync import (
    is_auth_error,
    remove_registry_cache,
    sync_registry,
)
from skiller.core.types import ConflictAction, HarnessPath


logger = logging.getLogger(__name__)

DEFAULT_SYNC_TIMEOUT = 120.0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="skiller",
        description="Install skill folders from local or git registries into agent harnesses.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Add a local registry and a git registry pinned to a branch
  skiller registry add ~/src/my-skills
  skiller registry add https://github.com/user/skills.git#main

  # Fetch git registries into the local cache
  skiller sync

  # List skills available in all registries
  skiller skills

  # Install a skill into a harness, keeping both copies on conflict
  skiller install pdf-tools --harness ~/.claude/skills --on-conflict rename

  # Uninstall a skill
  skiller uninstall pdf-tools --harness ~/.claude/skills
        """,
    )

    # Global options
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help=f"Config file (default: {config_path()})",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug output",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress all logging output",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Registry commands
    registry_parser = subparsers.add_parser("registry", help="Manage skill registries")
    registry_sub = registry_parser.add_subparsers(dest="action")
    registry_sub.add_parser("list", help="List configured registries")
    registry_add = registry_sub.add_parser(
        "add",
        help="Add a registry",
        description="Add a local directory or a git repository (use URL#ref for a branch or tag).",
    )
    registry_add.add_argument("source", help="Directory path or git URL")
    registry_remove = registry_sub.add_parser(
        "remove", help="Remove a registry and its cache"
    )
    registry_remove.add_argument("identifier", help="Registry id or source")

    # Harness commands
    harness_parser = subparsers.add_parser("harness", help="Manage harness directories")
    harness_sub = harness_parser.add_subparsers(dest="action")
    harness_sub.add_parser("list", help="List custom and detected harnesses")
    harness_add = harness_sub.add_parser("add", help="Add a custom harness")
    harness_add.add_argument("path", help="Harness directory")
    harness_remove = harness_sub.add_parser("remove", help="Remove a custom harness")
    harness_remove.add_argument("path", help="Harness directory")

    # Sync command
    sync_parser = subparsers.add_parser(
        "sync",
        help="Clone or update git registries",
        description="Bring the local cache of every git registry up to date.",
    )
    sync_parser.add_argument(
        "--registry", "-r",
        type=str,
        default=None,
        help="Only sync this registry (id or source)",
    )
    sync_parser.add_argument(
        "--interactive", "-i",
        action="store_true",
        help="Let git prompt for credentials",
    )
    sync_parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=DEFAULT_SYNC_TIMEOUT,
        help=f"Timeout per registry in seconds (default: {DEFAULT_SYNC_TIMEOUT:g})",
    )

    # Skills command
    skills_parser = subparsers.add_parser("skills", help="List skills in registries")
    skills_parser.add_argument(
        "--registry", "-r",
        type=str,
        default=None,
        help="Only list this registry (id or source)",
    )

    # Install command
    install_parser = subparsers.add_parser(
        "install",
        help="Install a skill into a harness",
        description="Copy a skill (by name from the registries, or a directory path) into a harness.",
    )
    install_parser.add_argument("skill", help="Skill name or path to a skill directory")
    install_parser.add_argument(
        "--harness", "-H",
        type=str,
        required=True,
        help="Harness directory to install into",
    )
    install_parser.add_argument(
        "--on-conflict",
        choices=[action.value for action in ConflictAction],
        default=ConflictAction.SKIP.value,
        help="What to do if the skill is already installed (default: skip)",
    )
    install_parser.add_argument(
        "--registry", "-r",
        type=str,
        default=None,
        help="Registry to take the skill from when several provide it",
    )

    # Uninstall command
    uninstall_parser = subparsers.add_parser(
        "uninstall",
        help="Uninstall a skill",
        description="Remove an installed skill from a harness.",
    )
    uninstall_parser.add_argument("name", help="Name of the skill to uninstall")
    uninstall_parser.add_argument(
        "--harness", "-H",
        type=str,
        required=True,
        help="Harness directory to remove the skill from",
    )

    # Installed command
    installed_parser = subparsers.add_parser(
        "installed", help="List skills installed in harnesses"
    )
    installed_parser.add_argument(
        "--harness", "-H",
        type=str,
        default=None,
        help="Only list this harness",
    )

    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    if args.quiet:
        logging.disable(logging.CRITICAL)
        return
    logging.disable(logging.NOTSET)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load(args: argparse.Namespace) -> tuple[Config, Path]:
    return load_config(expand_path(args.config) if args.config else None)


def _fail(message: str) -> int:
    print(f"✗ {message}", file=sys.stderr)
    return 1


def cmd_registry(args: argparse.Namespace) -> int:
    """Handle the registry commands."""
    config, path = _load(args)

    if args.action == "add":
        if not config.add_registry(args.source):
            print(f"Registry already configured: {args.source}")
            return 0
        config.save(path)
        print(f"✓ Registry added: {args.source}")
        return 0

    if args.action == "remove":
        removed = config.remove_registry(args.identifier)
        if not removed:
            print(f"No registry matches {args.identifier}")
            return 0
        for registry in removed:
            if registry.is_remote:
                remove_registry_cache(registry)
        config.save(path)
        print(f"✓ Removed {len(removed)} registry(ies)")
        return 0

    if not config.registries:
        print(f"No registries configured in {path}")
        return 0
    for registry in config.registries:
        print(f"  {registry}")
    return 0


def cmd_harness(args: argparse.Namespace) -> int:
    """Handle the harness commands."""
    config, path = _load(args)

    if args.action == "add":
        config.add_harness(args.path)
        config.save(path)
        print(f"✓ Harness added: {expand_path(args.path)}")
        return 0

    if args.action == "remove":
        target = str(expand_path(args.path))
        if not config.is_custom_harness(target):
            return _fail(f"{target} is not a custom harness (detected harnesses cannot be removed)")
        config.remove_harness(target)
        config.save(path)
        print(f"✓ Harness removed: {target}")
        return 0

    harnesses = harness_paths(config)
    if not harnesses:
        print("No harnesses configured or detected")
        return 0
    for harness in harnesses:
        print(f"  {harness}")
    return 0


def _can_prompt(args: argparse.Namespace) -> bool:
    return not args.interactive and sys.stdin is not None and sys.stdin.isatty()


def cmd_sync(args: argparse.Namespace) -> int:
    """Handle the sync command."""
    config, _ = _load(args)

    registries = config.registries
    if args.registry:
        registry = config.find_registry(args.registry)
        if registry is None:
            return _fail(f"No registry matches {args.registry}")
        if not registry.is_remote:
            return _fail(f"{registry.display_name} is not a git registry, nothing to sync")
        registries = [registry]

    failures = 0
    for outcome in sync_registries(
        registries, interactive=args.interactive, timeout=args.timeout
    ):
        registry = outcome.registry
        error = outcome.error
        if error is not None and is_auth_error(error) and _can_prompt(args):
            print(f"Credentials required for {registry.display_name}, retrying interactively...")
            try:
                outcome.result = sync_registry(registry, interactive=True, timeout=args.timeout)
                error = None
            except SkillerError as e:
                error = e

        if error is not None:
            failures += 1
            print(f"✗ {registry.display_name}: {error}", file=sys.stderr)
        elif outcome.result is not None:
            result = outcome.result
            print(f"✓ {registry.display_name}: {result.action} -> {result.repo_path}")

    return 1 if failures else 0


def cmd_skills(args: argparse.Namespace) -> int:
    """Handle the skills command."""
    config, _ = _load(args)

    registries = config.registries
    if args.registry:
        registry = config.find_registry(args.registry)
        if registry is None:
            return _fail(f"No registry matches {args.registry}")
        registries = [registry]

    if not registries:
        print("No registries configured")
        return 0

    total = 0
    for scan in scan_registries(registries):
        print(f"{scan.registry.display_name} [{scan.registry.id}]:")
        if scan.error is not None:
            print(f"  ✗ {scan.error}")
        elif not scan.skills:
            print("  (no skills)")
        for skill in scan.skills:
            print(f"  {skill.name}")
            print(f"    {skill.path}")
        total += len(scan.skills)
        print()

    print(f"Total: {total} skill(s)")
    return 0


def _resolve_skill_source(args: argparse.Namespace, config: Config) -> Path:
    if "/" in args.skill or args.skill.startswith("~"):
        candidate = expand_path(args.skill)
        if not candidate.is_dir():
            raise SkillerError(f"Skill directory not found: {candidate}")
        return candidate

    registries = config.registries
    if args.registry:
        registry = config.find_registry(args.registry)
        if registry is None:
            raise SkillerError(f"No registry matches {args.registry}")
        registries = [registry]

    matches = find_skills(scan_registries(registries), args.skill)
    if not matches:
        raise SkillerError(f"Skill '{args.skill}' not found in any registry")
    if len(matches) > 1:
        sources = ", ".join(f"{r.id} ({s.path})" for r, s in matches)
        raise SkillerError(
            f"Skill '{args.skill}' is provided by several registries: {sources}. "
            f"Use --registry to choose."
        )
    return Path(matches[0][1].path)


def cmd_install(args: argparse.Namespace) -> int:
    """Handle the install command."""
    config, _ = _load(args)

    source = _resolve_skill_source(args, config)
    harness = expand_path(args.harness)
    print(f"Installing {source.name} into {harness}...")

    result = install_skill(source, harness, args.on_conflict)
    if result.installed:
        print(f"✓ {result.message}")
    else:
        print(f"- {result.message}")
    return 0


def cmd_uninstall(args: argparse.Namespace) -> int:
    """Handle the uninstall command."""
    harness = expand_path(args.harness)
    uninstall_skill(harness, args.name)
    print(f"✓ Uninstalled '{args.name}' from {harness}")
    return 0


def cmd_installed(args: argparse.Namespace) -> int:
    """Handle the installed command."""
    config, _ = _load(args)

    harnesses = harness_paths(config)
    if args.harness:
        target = str(expand_path(args.harness))
        harnesses = [HarnessPath(path=target, custom=True)]

    if not harnesses:
        print("No harnesses configured or detected")
        return 0

    for scan in scan_harnesses(harnesses):
        print(f"{scan.harness}:")
        if scan.error is not None:
            print(f"  ✗ {scan.error}")
        elif not scan.skills:
            print("  (no skills)")
        for skill in scan.skills:
            print(f"  {skill.name}")
        print()
    return 0


COMMANDS = {
    "registry": cmd_registry,
    "harness": cmd_harness,
    "sync": cmd_sync,
    "skills": cmd_skills,
    "install": cmd_install,
    "uninstall": cmd_uninstall,
    "installed": cmd_installed,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # If no command specified, print help
    if args.command is None:
        parser.print_help()
        return 0

    _configure_logging(args)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except SkillerError as e:
        return _fail(str(e))
    except OSError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        return _fail(str(e))


if __name__ == "__main__":
    sys.exit(main())
