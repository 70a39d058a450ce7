"""
Deployment Portal Command.

Serves the browser portal that logs in to Salesforce with the OAuth
implicit flow and triggers the deployment workflow.

Usage:
    sf-portal
    sf-portal --host 0.0.0.0 --port 8080 --config sfdeploy.yaml
"""

import argparse
import sys

from loguru import logger

from sfdeploy.commands.common import add_config_arguments, load_config
from sfdeploy.github.credentials import CredentialsError, load_github_token
from sfdeploy.log import configure_logging
from sfdeploy.portal.app import open_portal, serve


def parse_args(argv=None):
    """Parse command-line arguments for the portal server."""
    parser = argparse.ArgumentParser(
        prog="sf-portal",
        description="Serve the Salesforce deployment portal.",
    )
    parser.add_argument("--host", type=str, help="Bind address (default: portal.host)")
    parser.add_argument("--port", type=int, help="Port (default: portal.port)")
    parser.add_argument(
        "--open",
        action="store_true",
        help="Open the portal in a browser once it starts",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    add_config_arguments(parser)
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for the portal server."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    config = load_config(args)
    if config is None:
        return 1
    if not config.portal.client_id:
        logger.error("portal.client_id is not configured (set it in the config or SF_CLIENT_ID)")
        return 1
    try:
        config.github.token = load_github_token(args.env_file)
    except CredentialsError as e:
        logger.error(f"{e} The portal cannot dispatch workflows without it.")
        return 1

    host = args.host or config.portal.host
    port = args.port or config.portal.port
    if args.open:
        open_portal(f"http://{host}:{port}/")
    serve(config, host=host, port=port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
