"""Argument parsing functionality for lspreg."""

import argparse
from typing import List, Optional

ACTIONS = ["list", "show", "install", "uninstall", "enable", "disable", "status"]


def _add_global_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)
    parser.add_argument("--feed",
                        dest="FEED",
                        help="Registry feed URL or local file (JSON, YAML or zip)",
                        action="store",
                        type=str)
    parser.add_argument("--data-dir",
                        dest="DATA_DIR",
                        help="Directory holding installed servers and state",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Only log errors to the console.",
                        action="store_true")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="lspreg",
        description="Language-server registry: resolve and install language servers",
        add_help=True,
    )
    _add_global_options(parser)

    sub = parser.add_subparsers(dest="action", metavar="<command>")
    sub.required = True

    list_p = sub.add_parser("list", help="List registry entries")
    list_p.add_argument("--installed",
                        dest="INSTALLED_ONLY",
                        help="Only show installed entries",
                        action="store_true")
    list_p.add_argument("--json",
                        dest="JSON",
                        help="Emit JSON instead of text",
                        action="store_true")

    show_p = sub.add_parser("show", help="Show how an entry would be installed")
    show_p.add_argument("NAME", help="Registry entry name")
    show_p.add_argument("--json",
                        dest="JSON",
                        help="Emit JSON instead of text",
                        action="store_true")

    install_p = sub.add_parser("install", help="Install one or more entries")
    install_p.add_argument("NAMES", nargs="+", help="Registry entry names")

    for action, text in (
        ("uninstall", "Remove an installed entry"),
        ("enable", "Enable an installed entry"),
        ("disable", "Disable an installed entry"),
    ):
        p = sub.add_parser(action, help=text)
        p.add_argument("NAME", help="Registry entry name")

    status_p = sub.add_parser("status", help="Show installed entries and available updates")
    status_p.add_argument("--json",
                          dest="JSON",
                          help="Emit JSON instead of text",
                          action="store_true")

    return parser.parse_args(argv)
