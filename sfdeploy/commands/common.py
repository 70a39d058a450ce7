"""Helpers shared by the command-line entry points."""

from __future__ import annotations

import argparse
from typing import Optional

from loguru import logger

from sfdeploy.config.loader import ConfigLoader, ConfigurationError
from sfdeploy.config.settings import DeployConfig
from sfdeploy.sf_cli.client import SalesforceCLI, SalesforceCLIError


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Project config file (default: sfdeploy.yaml if present)",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Environment file to load (default: .env)",
    )


def load_config(args: argparse.Namespace) -> Optional[DeployConfig]:
    """Load the project config, or log why it failed and return None."""
    try:
        return ConfigLoader(config_dir=".").load_deploy_config(
            filename=getattr(args, "config", None),
            env_file=getattr(args, "env_file", ".env"),
        )
    except (ConfigurationError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        return None


def banner(title: str) -> None:
    logger.info("=" * 42)
    logger.info(title)
    logger.info("=" * 42)


def check_cli(cli: SalesforceCLI) -> bool:
    """Log the CLI version, or an install hint when it is missing."""
    try:
        cli.require_installed()
        logger.success(f"Salesforce CLI found: {cli.version()}")
    except SalesforceCLIError as e:
        logger.error(str(e))
        logger.info("Or visit: https://developer.salesforce.com/tools/salesforcecli")
        return False
    return True


def ask_text(prompt: str) -> str:
    """Read one line from the terminal; EOF reads as empty."""
    try:
        return input(f"{prompt}: ").strip()
    except EOFError:
        return ""
