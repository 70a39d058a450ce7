"""
Agentforce Atomic Actions.

Pulls Agentforce agent assets (agent scripts, bots, GenAI functions and
plugins, external services, credentials) listed in a metadata file. The
``PermissionSet`` entry of that file is filled with the permission sets
assigned to the current user.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from loguru import logger

from sfdeploy.actions.base import ActionResult, AtomicAction
from sfdeploy.actions.retrieve_actions import RetrieveActions
from sfdeploy.manifest.package_xml import PackageManifest
from sfdeploy.sf_cli.client import SalesforceCLI, SalesforceCLIError

DEFAULT_METADATA_FILE = "agentforce-metadata.txt"

PERMISSION_SET_TYPE = "PermissionSet"

KEY_LOCATIONS = [
    ("Agent Script files", "aiAuthoringBundles"),
    ("Agents (Bots)", "bots"),
    ("Bot Versions", "botVersions"),
    ("GenAI Planner Bundles", "genAiPlannerBundles"),
    ("GenAI Functions", "genAiFunctions"),
    ("GenAI Plugins", "genAiPlugins"),
    ("Permission Sets", "permissionsets"),
    ("External Services", "externalServiceRegistrations"),
    ("Named Credentials", "namedCredentials"),
    ("External Credentials", "externalCredentials"),
]


def permission_set_query(username: str) -> str:
    """SOQL for the permission sets assigned to ``username``."""
    escaped = username.replace("\\", "\\\\").replace("'", "\\'")
    return (
        "SELECT PermissionSet.Name, PermissionSet.Label "
        f"FROM PermissionSetAssignment WHERE Assignee.Username = '{escaped}'"
    )


class AgentforceActions:
    """
    Collection of atomic actions for Agentforce asset retrieval.

    Usage::

        cli = SalesforceCLI()
        agentforce = AgentforceActions(cli, RetrieveActions(cli))
        agentforce.pull("my-org", output_dir="agentforce-assets")
    """

    def __init__(self, cli: SalesforceCLI, retrieve: RetrieveActions) -> None:
        self.cli = cli
        self.retrieve = retrieve

    def current_user_permission_sets(self, alias: str) -> ActionResult:
        """Names of permission sets assigned to the org's current user."""
        return _PermissionSetsAction(self.cli).run(alias=alias)

    def pull(
        self,
        alias: str,
        metadata_file: str | Path = DEFAULT_METADATA_FILE,
        output_dir: str | Path = "force-app",
        wait: int = 10,
    ) -> ActionResult:
        """Retrieve the Agentforce assets listed in ``metadata_file``."""
        return _PullAgentforceAction(self.cli, self.retrieve).run(
            alias=alias, metadata_file=Path(metadata_file), output_dir=output_dir, wait=wait
        )


def _permission_sets_for(cli: SalesforceCLI, alias: str, username: str) -> List[str]:
    logger.info("Finding permission sets assigned to current user...")
    try:
        records = cli.query(permission_set_query(username), alias)
    except SalesforceCLIError as e:
        logger.warning(f"Permission set query failed: {e}")
        return []

    names: List[str] = []
    for record in records:
        name = (record.get("PermissionSet") or {}).get("Name")
        if name and name not in names:
            names.append(name)
    return names


class _PermissionSetsAction(AtomicAction):
    """Atomic action: query permission sets of the current user."""

    def __init__(self, cli: SalesforceCLI) -> None:
        super().__init__(name="current_user_permission_sets")
        self.cli = cli

    def _execute(self, **kwargs: Any) -> List[str]:
        alias = kwargs["alias"]
        username = self.cli.display_org(alias).username
        logger.info(f"Current user: {username}")
        return _permission_sets_for(self.cli, alias, username)


class _PullAgentforceAction(AtomicAction):
    """Atomic action: build the Agentforce manifest and retrieve it."""

    def __init__(self, cli: SalesforceCLI, retrieve: RetrieveActions) -> None:
        super().__init__(name="pull_agentforce")
        self.cli = cli
        self.retrieve = retrieve

    def _validate(self, **kwargs: Any) -> None:
        if not kwargs.get("alias"):
            raise ValueError("Org alias is required")
        metadata_file: Path = kwargs["metadata_file"]
        if not metadata_file.is_file():
            raise FileNotFoundError(
                f"Metadata file not found: {metadata_file}. "
                f"Create it or specify a different file with -f"
            )

    def _execute(self, **kwargs: Any) -> Dict[str, Any]:
        alias = kwargs["alias"]
        output_dir = kwargs["output_dir"]
        manifest = PackageManifest.from_metadata_file(
            kwargs["metadata_file"], version=self.retrieve.api_version
        )

        logger.info("Querying permission sets assigned to current user...")
        permission_sets: List[str] = []
        try:
            username = self.cli.display_org(alias).username
        except SalesforceCLIError:
            username = ""
        # org display may succeed without reporting a username
        if username in ("", "unknown"):
            logger.warning("Could not determine current user, skipping permission set filtering")
        else:
            logger.info(f"Current user: {username}")
            permission_sets = _permission_sets_for(self.cli, alias, username)
            if permission_sets:
                logger.success("Found permission sets assigned to current user:")
                for name in permission_sets:
                    logger.info(f"  • {name}")
            else:
                logger.warning("No permission sets found assigned to current user")
            manifest = manifest.with_members(PERMISSION_SET_TYPE, permission_sets)

        result = self.retrieve.retrieve(
            manifest, alias=alias, wait=kwargs.get("wait", 10), output_dir=output_dir
        )
        if not result.is_success:
            raise RuntimeError("Failed to retrieve Agentforce assets")

        logger.success("Agentforce assets retrieved successfully!")
        logger.info(f"Retrieved assets are in: {output_dir}")
        logger.info("Key locations:")
        for label, folder in KEY_LOCATIONS:
            logger.info(f"  • {label}: {Path(output_dir) / 'main' / 'default' / folder}/")
        return {"permission_sets": permission_sets, **(result.data or {})}
