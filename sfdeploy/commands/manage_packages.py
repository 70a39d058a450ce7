"""
Package Management Command.

Install, upgrade and uninstall packages, manage scratch orgs, run Apex
tests and validate deployments.

Usage:
    sf-manage-packages install 04t000000000001AAA -a my-org
    sf-manage-packages upgrade -v 04t000000000002AAA -a my-org -f
    sf-manage-packages list-installed -a my-org
    sf-manage-packages run-tests -t RunSpecifiedTests -c MyTest,OtherTest
"""

import argparse
import sys

from loguru import logger

from sfdeploy.actions.deploy_actions import DeployActions
from sfdeploy.actions.package_actions import TEST_LEVELS, PackageActions
from sfdeploy.commands.common import add_config_arguments, banner, check_cli, load_config
from sfdeploy.log import configure_logging
from sfdeploy.sf_cli.client import SalesforceCLI
from sfdeploy.sf_cli.ids import looks_like_package_id

ACTIONS = (
    "install",
    "uninstall",
    "list-installed",
    "list-available",
    "upgrade",
    "create-scratch",
    "delete-scratch",
    "open-org",
    "run-tests",
    "validate",
)


def parse_args(argv=None):
    """Parse command-line arguments for package management."""
    parser = argparse.ArgumentParser(
        prog="sf-manage-packages",
        description="Manage Salesforce packages, scratch orgs and deployments.",
    )
    parser.add_argument(
        "positional",
        nargs="*",
        metavar="ACTION [PACKAGE_ID]",
        help=f"One of: {', '.join(ACTIONS)} (default: install). "
             f"A package ID (04t.../0Ho...) may follow; a second ID is the version ID",
    )
    parser.add_argument("-a", "--alias", type=str, help="Org alias (default: deploy-target)")
    parser.add_argument(
        "-p", "--package-id",
        type=str,
        help="Package ID (04t... for managed, 0Ho... for unlocked)",
    )
    parser.add_argument("-v", "--version-id", type=str, help="Package Version ID (04t...)")
    parser.add_argument("-w", "--wait", type=int, help="Wait time in minutes (default: 10)")
    parser.add_argument(
        "-t", "--test-level",
        choices=TEST_LEVELS,
        help="Test level (default: RunLocalTests)",
    )
    parser.add_argument(
        "-c", "--class-names",
        type=str,
        help="Comma-separated test class names (for RunSpecifiedTests)",
    )
    parser.add_argument(
        "-f", "--force",
        action="store_true",
        help="Force operation (skip confirmation)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    add_config_arguments(parser)
    args = parser.parse_args(argv)

    args.action = None
    for value in args.positional:
        if value in ACTIONS and args.action is None:
            args.action = value
            continue
        if not looks_like_package_id(value):
            parser.error(f"Unexpected argument: {value}")
        if not args.package_id:
            args.package_id = value
        elif not args.version_id:
            args.version_id = value
        else:
            parser.error(f"Unexpected argument: {value}")
    args.action = args.action or "install"
    return args


def main(argv=None):
    """Main entry point for package management."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    config = load_config(args)
    if config is None:
        return 1
    alias = args.alias or config.salesforce.org_alias
    wait = args.wait or config.salesforce.wait_minutes

    banner("📦 Salesforce Package Management")
    cli = SalesforceCLI()
    if not check_cli(cli):
        return 1

    packages = PackageActions(cli, force=args.force)

    if args.action == "install":
        result = packages.install(alias, package_id=args.package_id, version_id=args.version_id, wait=wait)
    elif args.action == "uninstall":
        result = packages.uninstall(alias, args.package_id, wait=wait)
    elif args.action == "list-installed":
        result = packages.list_installed(alias)
    elif args.action == "list-available":
        result = packages.list_available(alias)
    elif args.action == "upgrade":
        result = packages.upgrade(alias, args.version_id, wait=wait)
    elif args.action == "create-scratch":
        result = packages.create_scratch(alias)
    elif args.action == "delete-scratch":
        result = packages.delete_scratch(alias)
    elif args.action == "open-org":
        result = packages.open_org(alias)
    elif args.action == "run-tests":
        result = packages.run_tests(
            alias, test_level=args.test_level, class_names=args.class_names, wait=wait
        )
    else:
        result = DeployActions(cli).validate(config.salesforce.source_dir, alias, wait=wait)

    logger.debug(f"{args.action}: {result.status.value} in {result.duration_ms:.0f}ms")
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
