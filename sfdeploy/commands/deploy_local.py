"""
Local Deployment Command.

Deploys the project straight to an org with the local Salesforce CLI,
no GitHub Actions needed.

Usage:
    sf-deploy-local                                    # Use defaults
    sf-deploy-local -v                                 # Verbose mode with defaults
    sf-deploy-local https://test.salesforce.com        # Specify instance URL
    sf-deploy-local -v production-org                  # Verbose mode with org alias
    sf-deploy-local https://login.salesforce.com prod  # Specify both
"""

import argparse
import sys

from loguru import logger

from sfdeploy.actions.deploy_actions import DeployActions
from sfdeploy.actions.org_actions import OrgActions
from sfdeploy.commands.common import add_config_arguments, banner, check_cli, load_config
from sfdeploy.log import configure_logging
from sfdeploy.sf_cli.client import SalesforceCLI


def parse_args(argv=None):
    """Parse command-line arguments for local deployment."""
    parser = argparse.ArgumentParser(
        prog="sf-deploy-local",
        description="Deploy Salesforce project directly using local CLI.",
    )
    parser.add_argument(
        "positional",
        nargs="*",
        metavar="[INSTANCE_URL] [ORG_ALIAS]",
        help="Salesforce instance URL and org alias (defaults from config)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    add_config_arguments(parser)
    args = parser.parse_args(argv)

    args.instance_url = None
    args.alias = None
    values = list(args.positional)
    # A single non-URL positional is the org alias.
    if values and values[0].startswith("http"):
        args.instance_url = values.pop(0)
    if values:
        args.alias = values.pop(0)
    if values:
        parser.error(f"Unexpected argument: {values[0]}")
    return args


def main(argv=None):
    """Main entry point for local deployment."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    config = load_config(args)
    if config is None:
        return 1
    instance_url = args.instance_url or config.salesforce.instance_url
    alias = args.alias or config.salesforce.org_alias

    banner("🚀 Local Salesforce Deployment")
    logger.info("This will deploy directly to Salesforce using your local CLI.")
    logger.debug("Verbose mode: enabled")
    logger.info(f"Instance URL: {instance_url}")
    logger.info(f"Org Alias: {alias}")

    cli = SalesforceCLI()
    if not check_cli(cli):
        return 1

    logger.info("Checking for authenticated Salesforce org...")
    login = OrgActions(cli).ensure_authenticated(alias, instance_url, offer_reauth=True)
    if not login.is_success:
        return login.exit_code

    banner("📦 Deploying to Salesforce")
    result = DeployActions(cli).deploy_local(
        config.salesforce.source_dir, alias=alias, wait=config.salesforce.wait_minutes
    )
    if result.is_failure:
        logger.info("Check the error messages above for details.")
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
