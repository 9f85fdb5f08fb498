"""Command line entrypoint.

Usage:
  update-notifier [ROOT] [--concurrency N] [--exclude NAME ...] [--json]

Prints one line per package.json found below ROOT with the number of
dependencies that have a newer version on the registry.
"""

from __future__ import annotations

import argparse
import logging
import sys

from .config import ConfigError, load_settings
from .core import run

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

EXIT_CONFIG_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="update-notifier",
        description="Report how many dependencies of every package.json below a directory are outdated.",
    )
    parser.add_argument(
        "root",
        nargs="?",
        default=None,
        help="Directory to scan. Default: $UPDATE_NOTIFIER_ROOT or ~/code.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum simultaneous directory listings and manifest checks. Default: 4.",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="NAME",
        help="Directory name to skip, in addition to node_modules. Repeatable.",
    )
    parser.add_argument(
        "--registry",
        default=None,
        help="Registry base URL. Default: https://registry.npmjs.org.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for each registry request. Default: 30.",
    )
    parser.add_argument(
        "--no-upgrade-all",
        dest="upgrade_all",
        action="store_false",
        default=None,
        help="Only count dependencies whose latest version falls outside the declared range.",
    )
    parser.add_argument(
        "--sort",
        dest="sort_entries",
        action="store_true",
        default=None,
        help="Visit directory entries in name order instead of filesystem order.",
    )
    parser.add_argument(
        "--follow-symlinks",
        action="store_true",
        default=None,
        help="Descend into symlinked directories.",
    )
    parser.add_argument(
        "--color",
        action="store_true",
        default=None,
        help="Colorize counts and paths. Default: only when stdout is a terminal.",
    )
    parser.add_argument(
        "--no-color",
        dest="color",
        action="store_false",
        default=None,
        help="Never colorize output.",
    )
    parser.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        default=False,
        help="Print a single JSON document when the scan finishes.",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="JSON settings file. Default: $UPDATE_NOTIFIER_CONFIG if set.",
    )
    parser.add_argument(
        "--debug",
        help="Enable debug logging.",
        default=False,
        action="store_true",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
    )

    try:
        settings = load_settings(
            args.root,
            config_path=args.config_path,
            concurrency=args.concurrency,
            excludes=args.exclude,
            registry_url=args.registry,
            timeout=args.timeout,
            upgrade_all=args.upgrade_all,
            sort_entries=args.sort_entries,
            follow_symlinks=args.follow_symlinks,
        )
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    color = args.color if args.color is not None else sys.stdout.isatty()
    return run(settings, json_output=args.json_output, color=color)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
