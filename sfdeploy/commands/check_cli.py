"""
CLI Prerequisites Command.

Checks Node.js, npm and the Salesforce CLI, installing or updating them
on request.

Usage:
    sf-check-cli
    sf-check-cli --auto-install --auto-update
"""

import argparse
import sys

from loguru import logger

from sfdeploy.actions.base import ask_yes_no
from sfdeploy.log import configure_logging
from sfdeploy.sf_cli.installer import CLIInstaller, InstallerError


def parse_args(argv=None):
    """Parse command-line arguments for the CLI check."""
    parser = argparse.ArgumentParser(
        prog="sf-check-cli",
        description="Check and install Salesforce CLI prerequisites and the CLI itself.",
    )
    parser.add_argument(
        "--auto-install",
        action="store_true",
        help="Install missing tools without asking",
    )
    parser.add_argument(
        "--auto-update",
        action="store_true",
        help="Update the Salesforce CLI when a newer version is published",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for the CLI check."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    installer = CLIInstaller(confirm=ask_yes_no)
    try:
        installer.ensure_cli_ready(auto_install=args.auto_install, auto_update=args.auto_update)
    except InstallerError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
