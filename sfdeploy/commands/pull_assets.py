"""
Asset Retrieval Command.

Retrieves metadata from a Salesforce org by types, from a metadata file,
or with an existing package.xml manifest.

Usage:
    sf-pull-assets -a my-org -t CustomObject,ApexClass
    sf-pull-assets -a my-org -f metadata-example.txt -o retrieved
    sf-pull-assets -a my-org -m manifest/package.xml
    sf-pull-assets --add-org -a new-org -i https://test.salesforce.com
    sf-pull-assets --list-orgs
"""

import argparse
import sys

from loguru import logger

from sfdeploy.actions.base import ask_yes_no
from sfdeploy.actions.org_actions import OrgActions
from sfdeploy.actions.retrieve_actions import RetrieveActions
from sfdeploy.commands.common import add_config_arguments, ask_text, banner, check_cli, load_config
from sfdeploy.log import configure_logging
from sfdeploy.sf_cli.client import SalesforceCLI


def parse_args(argv=None):
    """Parse command-line arguments for asset retrieval."""
    parser = argparse.ArgumentParser(
        prog="sf-pull-assets",
        description="Pull assets from a Salesforce org using the Salesforce CLI.",
    )
    parser.add_argument("alias_positional", nargs="?", metavar="ORG_ALIAS", help="Org alias")
    parser.add_argument("-a", "--alias", type=str, help="Org alias (required if not default)")
    parser.add_argument(
        "-i", "--instance-url",
        type=str,
        help="Salesforce instance URL (default: https://login.salesforce.com)",
    )
    parser.add_argument(
        "-t", "--metadata-types",
        type=str,
        help="Comma-separated metadata types (e.g., CustomObject,ApexClass)",
    )
    parser.add_argument(
        "-f", "--metadata-file",
        type=str,
        help="File containing metadata to retrieve (one per line)",
    )
    parser.add_argument("-m", "--manifest", type=str, help="Use manifest file (package.xml)")
    parser.add_argument("-o", "--output-dir", type=str, help="Output directory (default: force-app)")
    parser.add_argument("-w", "--wait", type=int, help="Wait time in minutes (default: 10)")
    parser.add_argument(
        "--add-org", "--new-org",
        dest="add_org",
        action="store_true",
        help="Add/authenticate a new org (will prompt for alias if not provided)",
    )
    parser.add_argument(
        "--list-orgs",
        action="store_true",
        help="List all authenticated orgs and exit",
    )
    parser.add_argument(
        "--list-metadata-types",
        action="store_true",
        help="List metadata types available in the org and exit",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    add_config_arguments(parser)
    args = parser.parse_args(argv)

    if args.alias and args.alias_positional:
        parser.error(f"Unexpected argument: {args.alias_positional}")
    args.alias = args.alias or args.alias_positional
    return args


def _retrieval_requested(args) -> bool:
    return bool(args.manifest or args.metadata_file or args.metadata_types)


def main(argv=None):
    """Main entry point for asset retrieval."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    config = load_config(args)
    if config is None:
        return 1
    instance_url = args.instance_url or config.salesforce.instance_url
    output_dir = args.output_dir or config.salesforce.output_dir
    wait = args.wait or config.salesforce.wait_minutes

    cli = SalesforceCLI()
    orgs = OrgActions(cli)

    if args.list_orgs:
        return orgs.list_orgs().exit_code

    banner("📥 Salesforce Asset Retrieval")
    if not check_cli(cli):
        return 1

    retriever = RetrieveActions(cli, api_version=config.salesforce.api_version)
    if args.list_metadata_types:
        if not args.alias:
            logger.error("Org alias is required (use -a to specify one)")
            return 1
        return retriever.list_metadata_types(args.alias).exit_code

    alias = args.alias
    added = False
    if not alias and not args.add_org:
        logger.warning("No org alias specified")
        orgs.list_orgs()
        alias = ask_text("Enter org alias to use (or press Enter to add new)")
        if not alias:
            if not ask_yes_no("Do you want to add a new org?", True):
                logger.error("Org alias is required")
                return 1
            args.add_org = True

    if args.add_org:
        alias = alias or ask_text("Enter a name for this org (alias)")
        if not alias:
            logger.error("Org alias is required")
            return 1
        result = orgs.add_org(alias, instance_url)
        if result.is_failure:
            return result.exit_code
        added = True
        if not _retrieval_requested(args):
            logger.info("Org added successfully. No metadata specified for retrieval.")
            logger.info("To retrieve metadata, run:")
            logger.info(f"  sf-pull-assets -a {alias} -t CustomObject,ApexClass")
            logger.info(f"  sf-pull-assets -a {alias} -f metadata-example.txt")
            logger.info(f"  sf-pull-assets -a {alias} -m manifest/package.xml")
            return 0

    if not added:
        login = orgs.ensure_authenticated(alias, instance_url)
        if not login.is_success:
            return login.exit_code

    verified = orgs.verify(alias)
    if not verified.is_success:
        return verified.exit_code
    logger.info(f"Target org: {verified.data.username}")
    logger.info(f"Output directory: {output_dir}")

    if args.manifest:
        result = retriever.retrieve_manifest(args.manifest, alias, wait=wait, output_dir=output_dir)
    elif args.metadata_file:
        result = retriever.retrieve_file(args.metadata_file, alias, wait=wait, output_dir=output_dir)
    elif args.metadata_types:
        result = retriever.retrieve_types(args.metadata_types, alias, wait=wait, output_dir=output_dir)
    else:
        logger.error("No retrieval method specified")
        logger.info("You must specify one of:")
        logger.info("  -t, --metadata-types    Comma-separated metadata types")
        logger.info("  -f, --metadata-file     File containing metadata")
        logger.info("  -m, --manifest          Manifest file (package.xml)")
        return 1

    if result.is_success:
        logger.success("Retrieval completed!")
        logger.info(f"Retrieved metadata is in: {output_dir}")
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
