"""
Agentforce Asset Retrieval Command.

Pulls Agentforce agent assets, external services and named credentials,
plus the permission sets assigned to the current user.

Usage:
    sf-pull-agentforce -a my-org
    sf-pull-agentforce -a my-org -o agentforce-assets
    sf-pull-agentforce -a my-org -f custom-agentforce.txt --verbose
"""

import argparse
import sys

from loguru import logger

from sfdeploy.actions.agentforce_actions import DEFAULT_METADATA_FILE, AgentforceActions
from sfdeploy.actions.retrieve_actions import RetrieveActions
from sfdeploy.commands.common import add_config_arguments, banner, check_cli, load_config
from sfdeploy.log import configure_logging
from sfdeploy.sf_cli.client import SalesforceCLI


def parse_args(argv=None):
    """Parse command-line arguments for Agentforce retrieval."""
    parser = argparse.ArgumentParser(
        prog="sf-pull-agentforce",
        description=(
            "Pull Agentforce agent assets, external services, and named "
            "credentials from a Salesforce org."
        ),
    )
    parser.add_argument("alias_positional", nargs="?", metavar="ORG_ALIAS", help="Org alias")
    parser.add_argument("-a", "--alias", type=str, help="Org alias (required)")
    parser.add_argument("-o", "--output-dir", type=str, help="Output directory (default: force-app)")
    parser.add_argument(
        "-f", "--metadata-file",
        type=str,
        default=DEFAULT_METADATA_FILE,
        help=f"Custom metadata file (default: {DEFAULT_METADATA_FILE})",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    add_config_arguments(parser)
    args = parser.parse_args(argv)

    if args.alias and args.alias_positional:
        parser.error(f"Unexpected argument: {args.alias_positional}")
    args.alias = args.alias or args.alias_positional
    return args


def main(argv=None):
    """Main entry point for Agentforce retrieval."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    config = load_config(args)
    if config is None:
        return 1

    banner("🤖 Agentforce Asset Retrieval")
    logger.info("This will retrieve:")
    for item in (
        "Agent Script files (AiAuthoringBundle - Next Generation agents)",
        "Bot and BotVersion (agent configurations)",
        "GenAI Functions, Plugins, and Planner Bundles",
        "External Service Registrations",
        "Named Credentials",
        "External Credentials",
        "Connected Apps",
        "Custom Metadata Types",
        "Apex Classes (invocable actions)",
        "Flows (including flow actions)",
    ):
        logger.info(f"  • {item}")

    if not args.alias:
        logger.error("Org alias is required")
        logger.info("Usage: sf-pull-agentforce -a ORG_ALIAS")
        logger.info("To see available orgs: sf-pull-assets --list-orgs")
        return 1

    cli = SalesforceCLI()
    if not check_cli(cli):
        return 1

    retriever = RetrieveActions(cli, api_version=config.salesforce.api_version)
    result = AgentforceActions(cli, retriever).pull(
        args.alias,
        metadata_file=args.metadata_file,
        output_dir=args.output_dir or config.salesforce.output_dir,
        wait=config.salesforce.wait_minutes,
    )
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
