"""
Deployment Atomic Actions.

Deploys a local source directory straight to an org with the Salesforce
CLI (no CI involved), or validates it with a dry run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from loguru import logger

from sfdeploy.actions.base import ActionResult, AtomicAction
from sfdeploy.sf_cli.client import SalesforceCLI, SalesforceCLIError


class DeployActions:
    """
    Collection of atomic actions for source deployment.

    Usage::

        deployer = DeployActions(SalesforceCLI())
        result = deployer.deploy_local("force-app", alias="deploy-target")
        print(result.data["instance_url"])
    """

    def __init__(self, cli: SalesforceCLI) -> None:
        self.cli = cli

    def deploy_local(self, source_dir: str | Path, alias: str, wait: int = 10) -> ActionResult:
        """Deploy ``source_dir``; data holds the org username and instance URL."""
        return _DeployAction(self.cli, dry_run=False).run(
            source_dir=Path(source_dir), alias=alias, wait=wait
        )

    def validate(self, source_dir: str | Path, alias: str, wait: int = 10) -> ActionResult:
        """Dry-run deploy of ``source_dir``."""
        return _DeployAction(self.cli, dry_run=True).run(
            source_dir=Path(source_dir), alias=alias, wait=wait
        )


class _DeployAction(AtomicAction):
    """Atomic action: deploy (or validate) a source directory."""

    def __init__(self, cli: SalesforceCLI, dry_run: bool) -> None:
        super().__init__(name="validate_deployment" if dry_run else "deploy_source")
        self.cli = cli
        self.dry_run = dry_run

    def _validate(self, **kwargs: Any) -> None:
        source_dir: Path = kwargs["source_dir"]
        if not source_dir.is_dir():
            raise FileNotFoundError(
                f"{source_dir} directory not found! Current directory: {Path.cwd()}"
            )

    def _execute(self, **kwargs: Any) -> Dict[str, str]:
        source_dir: Path = kwargs["source_dir"]
        alias = kwargs["alias"]

        try:
            info = self.cli.display_org(alias)
        except SalesforceCLIError as e:
            raise RuntimeError(f"Target org '{alias}' is not authenticated") from e

        if self.dry_run:
            logger.info("Validating deployment (dry-run)...")
        else:
            logger.info(f"Deploying to org: {info.username}")
            logger.info(f"Deploying from {source_dir} directory...")

        self.cli.deploy(source_dir, alias=alias, wait=kwargs.get("wait", 10), dry_run=self.dry_run)

        if self.dry_run:
            logger.success("Validation completed successfully! No errors found. Ready to deploy.")
        else:
            logger.success("Deployment completed successfully!")
            logger.info(f"Org: {info.username}")
            logger.info(f"View in Salesforce: {info.instance_url}")
        return {"username": info.username, "instance_url": info.instance_url}
