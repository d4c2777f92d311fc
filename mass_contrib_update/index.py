#!/usr/bin/env python3
"""
Mass Contrib Update
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import argparse
import sys

from mass_contrib_update.client.api import PlatformClient
from mass_contrib_update.context import RunContext, RunOptions
from mass_contrib_update.exceptions import UsageError
from mass_contrib_update.orchestrator import MassContribUpdate
from mass_contrib_update.utils.index import enable_debug_logging, log_message, setup_global_update_logging
from mass_contrib_update.utils.moduleUtils import get_module_debug_mode, load_module_config

COMMAND = "mass-contrib-update"
COMMAND_ALIASES = ["mcu"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mass-contrib-update",
        description="Check and apply Drupal contrib module updates across hosted sites",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    command = subparsers.add_parser(COMMAND, aliases=COMMAND_ALIASES,
                                    help="Perform mass Drupal contrib module updates on sites")

    command.add_argument("--env", default=None,
                         help="Environment to update (default: mcu, or dev with --report)")
    command.add_argument("--report", action="store_true",
                         help="Only report which sites need contrib updates")
    command.add_argument("--message", default=None,
                         help="Commit message for the applied updates")
    command.add_argument("--confirm", action="store_true",
                         help="Prompt before applying updates on each site")
    command.add_argument("--skip-backup", action="store_true",
                         help="Do not back up the environment before updating")
    command.add_argument("--security-only", action="store_true",
                         help="Apply security updates only")
    command.add_argument("--projects", default=None, metavar="LIST",
                         help="Comma separated list of projects to update")
    command.add_argument("--reset", action="store_true",
                         help="Delete and recreate the multidev environment from dev first")

    filters = command.add_argument_group("site filters")
    filters.add_argument("--team", action="store_true",
                         help="Only sites you are a team member of")
    filters.add_argument("--owner", default=None, metavar="UUID",
                         help='Only sites owned by this user; "me" for yourself')
    filters.add_argument("--org", nargs="?", const="all", default=None, metavar="ID",
                         help='Only sites of this organization; "all" for any organization')
    filters.add_argument("--name", default=None, metavar="REGEX",
                         help="Only sites whose name matches this regular expression")
    filters.add_argument("--cached", action="store_true",
                         help="Use the cached site list instead of fetching a fresh one")

    command.add_argument("--yes", "-y", action="store_true",
                         help="Assume yes for every prompt")
    command.add_argument("--format", choices=["table", "json"], default="table",
                         help="Summary output format")
    command.add_argument("--machine-token", default=None,
                         help="Machine token (default: PANTHEON_MACHINE_TOKEN or the Terminus session)")
    command.add_argument("--config", default=None, metavar="PATH",
                         help="JSON file merged over the default configuration")
    command.add_argument("--debug", action="store_true",
                         help="Verbose logging")
    return parser


def run(args: argparse.Namespace) -> int:
    """Execute one mass update run and return the process exit code."""
    try:
        config = load_module_config(args.config)
    except (OSError, ValueError) as e:
        raise UsageError(f"Unable to load configuration {args.config}: {e}")

    if get_module_debug_mode(config):
        enable_debug_logging()

    client = PlatformClient(config)
    user_id = client.authenticate(args.machine_token)

    context = RunContext(config=config, client=client, user_id=user_id,
                         options=RunOptions.from_args(args))
    report = MassContribUpdate(context).run()
    report.emit(context.options.format)
    return 0


def main(argv=None):
    """
    Main entry point for the mass contrib update command.
    """
    args = build_parser().parse_args(argv)

    try:
        setup_global_update_logging(args.debug)
        exit_code = run(args)
        log_message("Mass contrib update completed")
        sys.exit(exit_code)

    except UsageError as e:
        log_message(str(e), "ERROR")
        sys.exit(1)
    except KeyboardInterrupt:
        log_message("Mass contrib update interrupted by user", "WARNING")
        sys.exit(130)
    except Exception as e:
        log_message(f"Unhandled error in mass contrib update: {e}", "ERROR")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
