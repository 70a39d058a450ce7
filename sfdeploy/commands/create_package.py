"""
Package Creation Command.

Creates an Unlocked or Managed 2GP package on a Dev Hub and builds its
first version from ``force-app``.

Usage:
    sf-create-package -a my-devhub
    sf-create-package -a my-devhub -n "My Package" -t Managed -v 1.2.0
"""

import argparse
import sys

from loguru import logger

from sfdeploy.actions.base import ask_yes_no
from sfdeploy.actions.package_actions import PACKAGE_TYPES, PackageActions
from sfdeploy.commands.common import add_config_arguments, banner, check_cli, load_config
from sfdeploy.log import configure_logging
from sfdeploy.sf_cli.client import SalesforceCLI

DEFAULT_PACKAGE_NAME = "Agentforce Assets"
DEFAULT_DESCRIPTION = (
    "Agentforce agent assets including GenAI Functions, Plugins, Flows, "
    "and supporting Apex classes"
)


def parse_args(argv=None):
    """Parse command-line arguments for package creation."""
    parser = argparse.ArgumentParser(
        prog="sf-create-package",
        description="Create a Salesforce package (Unlocked or Managed) from force-app.",
    )
    parser.add_argument("alias_positional", nargs="?", metavar="DEVHUB_ALIAS", help="Dev Hub org alias")
    parser.add_argument("-a", "--alias", type=str, help="Dev Hub org alias (required)")
    parser.add_argument(
        "-n", "--name",
        type=str,
        default=DEFAULT_PACKAGE_NAME,
        help=f'Package name (default: "{DEFAULT_PACKAGE_NAME}")',
    )
    parser.add_argument(
        "-t", "--type",
        dest="package_type",
        choices=PACKAGE_TYPES,
        default="Unlocked",
        help="Package type: Unlocked or Managed (default: Unlocked)",
    )
    parser.add_argument(
        "-d", "--description",
        type=str,
        default=DEFAULT_DESCRIPTION,
        help="Package description",
    )
    parser.add_argument(
        "-v", "--version",
        type=str,
        default="1.0.0",
        help="Package version (default: 1.0.0)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    add_config_arguments(parser)
    args = parser.parse_args(argv)

    if args.alias and args.alias_positional:
        parser.error(f"Unexpected argument: {args.alias_positional}")
    args.alias = args.alias or args.alias_positional
    return args


def main(argv=None):
    """Main entry point for package creation."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    config = load_config(args)
    if config is None:
        return 1

    banner("📦 Create Salesforce Package")
    cli = SalesforceCLI()
    if not check_cli(cli):
        return 1

    if not args.alias:
        logger.error("Dev Hub org alias is required (use -a to specify one)")
        return 1

    packages = PackageActions(cli)
    dev_hub = packages.verify_dev_hub(args.alias)
    if not dev_hub.is_success:
        return dev_hub.exit_code

    logger.info("Package Configuration:")
    logger.info(f"  Name: {args.name}")
    logger.info(f"  Type: {args.package_type}")
    logger.info(f"  Description: {args.description}")
    logger.info(f"  Version: {args.version}")
    if not ask_yes_no("Continue with package creation?", True):
        logger.info("Package creation cancelled")
        return 0

    result = packages.create(
        args.name,
        dev_hub=args.alias,
        package_type=args.package_type,
        description=args.description,
        version=args.version,
        wait=config.salesforce.wait_minutes,
    )
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
