"""
GitHub Credentials Setup Command.

Stores the GitHub token from ``.env`` in the git credential helper so
that ``git push`` works without prompting.

Usage:
    sf-setup-github-credentials
    sf-setup-github-credentials --username octocat --helper store
"""

import argparse
import sys

from loguru import logger

from sfdeploy.commands.common import add_config_arguments, load_config
from sfdeploy.github.credentials import CredentialsError, load_github_token, store_git_credentials
from sfdeploy.log import configure_logging


def parse_args(argv=None):
    """Parse command-line arguments for credential setup."""
    parser = argparse.ArgumentParser(
        prog="sf-setup-github-credentials",
        description="Set up GitHub credentials using the token from the .env file.",
    )
    parser.add_argument(
        "--username",
        type=str,
        help="GitHub username (default: github.owner from the config)",
    )
    parser.add_argument("--host", type=str, default="github.com", help="Git host (default: github.com)")
    parser.add_argument(
        "--helper",
        type=str,
        default="osxkeychain",
        help="git credential helper (default: osxkeychain)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    add_config_arguments(parser)
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for credential setup."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    config = load_config(args)
    if config is None:
        return 1

    username = args.username or config.github.owner
    if not username:
        logger.error("GitHub username is required (use --username or set github.owner)")
        return 1

    try:
        token = load_github_token(args.env_file)
        store_git_credentials(token, username, host=args.host, helper=args.helper)
    except CredentialsError as e:
        logger.error(str(e))
        return 1

    logger.info("You can now push to the repository using: git push")
    return 0


if __name__ == "__main__":
    sys.exit(main())
