"""
Org Atomic Actions.

Encapsulates org-level operations on top of the Salesforce CLI:
- Listing authenticated orgs.
- Browser login when an alias is not authenticated yet.
- Adding (or re-authenticating) an org.
- Verifying that an alias is usable and reading its details.
"""

from __future__ import annotations

from typing import Any, List, Optional

from loguru import logger

from sfdeploy.actions.base import ActionResult, AtomicAction, Confirm, ask_yes_no
from sfdeploy.sf_cli.client import OrgInfo, OrgSummary, SalesforceCLI, SalesforceCLIError


class OrgActions:
    """
    Collection of atomic actions for org authentication.

    Usage::

        orgs = OrgActions(SalesforceCLI())
        result = orgs.ensure_authenticated("deploy-target", "https://login.salesforce.com")
        info = orgs.verify("deploy-target").data
    """

    def __init__(self, cli: SalesforceCLI, confirm: Optional[Confirm] = None) -> None:
        self.cli = cli
        self.confirm = confirm or ask_yes_no

    def list_orgs(self) -> ActionResult:
        """List authenticated orgs; data is a list of OrgSummary."""
        return _ListOrgsAction(self.cli).run()

    def ensure_authenticated(
        self,
        alias: str,
        instance_url: str,
        offer_reauth: bool = False,
    ) -> ActionResult:
        """
        Log in through the browser unless ``alias`` is already authenticated.

        Args:
            alias: Org alias.
            instance_url: Login URL used for a new login.
            offer_reauth: Ask whether to log in again when the alias exists.
        """
        return _EnsureAuthenticatedAction(self.cli, self.confirm).run(
            alias=alias, instance_url=instance_url, offer_reauth=offer_reauth
        )

    def add_org(self, alias: str, instance_url: str) -> ActionResult:
        """Authenticate a new org, or re-authenticate an existing alias on request."""
        return _AddOrgAction(self.cli, self.confirm).run(alias=alias, instance_url=instance_url)

    def verify(self, alias: str) -> ActionResult:
        """Check that the alias is authenticated; data is the OrgInfo."""
        return _VerifyOrgAction(self.cli).run(alias=alias)


# ---------------------------------------------------------------------------
# Internal Atomic Action Implementations
# ---------------------------------------------------------------------------


class _ListOrgsAction(AtomicAction):
    """Atomic action: list authenticated orgs."""

    def __init__(self, cli: SalesforceCLI) -> None:
        super().__init__(name="list_orgs")
        self.cli = cli

    def _execute(self, **kwargs: Any) -> List[OrgSummary]:
        orgs = self.cli.list_orgs()
        if not orgs:
            logger.warning("No authenticated orgs found")
            logger.info("To authenticate an org, run: sf org login web --alias my-org")
        for org in orgs:
            logger.info(org.describe())
        return orgs


class _EnsureAuthenticatedAction(AtomicAction):
    """Atomic action: log in unless the alias is already known."""

    def __init__(self, cli: SalesforceCLI, confirm: Confirm) -> None:
        super().__init__(name="ensure_authenticated")
        self.cli = cli
        self.confirm = confirm

    def _validate(self, **kwargs: Any) -> None:
        if not kwargs.get("alias"):
            raise ValueError("Org alias is required")

    def _execute(self, **kwargs: Any) -> bool:
        alias = kwargs["alias"]
        instance_url = kwargs["instance_url"]

        if not self.cli.org_exists(alias):
            logger.info(f"No authenticated org found with alias: {alias}")
            if not self.confirm("This will open your browser to log in to Salesforce. Continue?", True):
                raise RuntimeError("Org authentication cancelled")
            self.cli.login_web(alias, instance_url)
            logger.success("Successfully authenticated to Salesforce!")
            return True

        logger.success(f"Found authenticated org: {alias}")
        if kwargs.get("offer_reauth") and self.confirm(
            "Do you want to login to a different org?", False
        ):
            self.cli.login_web(alias, instance_url)
            logger.success("Successfully authenticated to Salesforce!")
            return True
        return False


class _AddOrgAction(AtomicAction):
    """Atomic action: authenticate a new org alias."""

    def __init__(self, cli: SalesforceCLI, confirm: Confirm) -> None:
        super().__init__(name="add_org")
        self.cli = cli
        self.confirm = confirm

    def _validate(self, **kwargs: Any) -> None:
        if not kwargs.get("alias"):
            raise ValueError("Org alias is required")

    def _execute(self, **kwargs: Any) -> Optional[OrgInfo]:
        alias = kwargs["alias"]
        instance_url = kwargs["instance_url"]

        if self.cli.org_exists(alias):
            logger.warning(f"Org alias '{alias}' already exists")
            if not self.confirm("Do you want to re-authenticate this org?", False):
                logger.info(f"Using existing org: {alias}")
                return None

        logger.info(f"Adding new org: {alias} ({instance_url})")
        self.cli.login_web(alias, instance_url)
        logger.success(f"Successfully authenticated new org: {alias}")

        info = self.cli.display_org(alias)
        logger.info(f"  Alias: {alias}")
        logger.info(f"  Username: {info.username}")
        logger.info(f"  Instance URL: {info.instance_url}")
        return info


class _VerifyOrgAction(AtomicAction):
    """Atomic action: confirm an alias is authenticated."""

    def __init__(self, cli: SalesforceCLI) -> None:
        super().__init__(name="verify_org")
        self.cli = cli

    def _validate(self, **kwargs: Any) -> None:
        if not kwargs.get("alias"):
            raise ValueError("Org alias is required (use -a to specify one)")

    def _execute(self, **kwargs: Any) -> OrgInfo:
        return require_org(self.cli, kwargs["alias"])


def require_org(cli: SalesforceCLI, alias: str) -> OrgInfo:
    """
    Display an org, turning a CLI failure into a login hint.

    Raises:
        RuntimeError: If the alias is not authenticated.
    """
    logger.info("Verifying org authentication...")
    try:
        info = cli.display_org(alias)
    except SalesforceCLIError as e:
        raise RuntimeError(
            f"Org '{alias}' is not authenticated. "
            f"To authenticate, run: sf org login web --alias {alias}"
        ) from e

    logger.success(f"Org verified: {info.username}")
    logger.debug(f"Org ID: {info.id}")
    logger.debug(f"Instance URL: {info.instance_url}")
    return info
