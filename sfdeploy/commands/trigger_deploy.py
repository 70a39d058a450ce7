"""
Deployment Trigger Command.

Triggers the GitHub Actions deployment workflow through the REST API and
follows the run, showing the Salesforce device login code when the
workflow asks for one. With ``--portal`` it opens the deployment portal
in a browser instead.

Usage:
    sf-trigger-deploy
    sf-trigger-deploy --ref release --input environment=uat --no-wait
    sf-trigger-deploy --portal
"""

import argparse
import sys

from loguru import logger

from sfdeploy.actions.trigger_actions import TriggerActions
from sfdeploy.commands.common import add_config_arguments, banner, load_config
from sfdeploy.github.actions_client import GitHubActionsClient
from sfdeploy.github.credentials import CredentialsError, load_github_token
from sfdeploy.github.monitor import DeploymentMonitor
from sfdeploy.log import configure_logging
from sfdeploy.portal.app import open_portal


def _key_value(text):
    key, sep, value = text.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{text}'")
    return key.strip(), value


def parse_args(argv=None):
    """Parse command-line arguments for the deployment trigger."""
    parser = argparse.ArgumentParser(
        prog="sf-trigger-deploy",
        description="Trigger the GitHub Actions deployment workflow.",
    )
    parser.add_argument("--ref", type=str, help="Branch or tag to run the workflow on")
    parser.add_argument("--workflow", type=str, help="Workflow file name")
    parser.add_argument(
        "--input",
        dest="inputs",
        type=_key_value,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Workflow input (repeatable)",
    )
    parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Return right after dispatching the workflow",
    )
    parser.add_argument(
        "--portal",
        action="store_true",
        help="Open the deployment portal in a browser instead of calling the API",
    )
    parser.add_argument("--portal-url", type=str, help="Portal URL (default: the local portal)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    add_config_arguments(parser)
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for the deployment trigger."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    config = load_config(args)
    if config is None:
        return 1

    if args.portal:
        url = args.portal_url or f"http://{config.portal.host}:{config.portal.port}/"
        logger.info(f"Opening deployment portal: {url}")
        open_portal(url)
        return 0

    try:
        token = load_github_token(args.env_file)
    except CredentialsError as e:
        logger.error(str(e))
        return 1

    gh = config.github
    workflow_file = args.workflow or gh.workflow_file
    ref = args.ref or gh.ref

    banner("🚀 Trigger Deployment")
    client = GitHubActionsClient(
        owner=gh.owner, repo=gh.repo, token=token, api_url=gh.api_url, timeout_sec=gh.timeout_sec
    )
    monitor = DeploymentMonitor(
        client,
        poll_interval_sec=gh.poll_interval_sec,
        max_attempts=gh.max_attempts,
        discovery_attempts=gh.run_discovery_attempts,
    )
    try:
        result = TriggerActions(monitor).trigger(
            workflow_file, ref=ref, inputs=dict(args.inputs), wait=not args.no_wait
        )
    finally:
        client.close()

    if result.is_success and args.no_wait:
        logger.info("Remember to watch the logs for the device login code!")
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
