"""
Package Management Atomic Actions.

Encapsulates 2GP package and scratch org operations on a Dev Hub or
target org:
- Package creation and versioning (Unlocked or Managed).
- Install, upgrade and uninstall of package versions.
- Listing installed and available packages.
- Scratch org lifecycle and Apex test runs.

Destructive or interactive steps ask ``confirm`` unless ``force`` is set.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from sfdeploy.actions.base import (
    ActionResult,
    AtomicAction,
    Confirm,
    ask_yes_no,
    confirm_or_cancel,
)
from sfdeploy.actions.org_actions import require_org
from sfdeploy.sf_cli.client import OrgInfo, SalesforceCLI
from sfdeploy.sf_cli.ids import package_api_name

PACKAGE_TYPES = ("Unlocked", "Managed")
TEST_LEVELS = ("NoTestRun", "RunSpecifiedTests", "RunLocalTests", "RunAllTestsInOrg")
SCRATCH_DEFINITION = Path("config") / "project-scratch-def.json"
SCRATCH_DURATION_DAYS = 7


def format_installed_package(entry: Dict[str, Any]) -> str:
    """Render one ``sf package installed list`` record."""
    version = ".".join(
        str(entry.get(key, "?"))
        for key in ("MajorVersion", "MinorVersion", "PatchVersion", "BuildNumber")
    )
    return (
        f"{entry.get('SubscriberPackageName', 'unknown')} "
        f"({entry.get('SubscriberPackageVersionId', 'unknown')})\n"
        f"  Namespace: {entry.get('NamespacePrefix') or 'none'}\n"
        f"  Version: {version}\n"
        f"  Installed: {entry.get('InstalledDate', 'unknown')}"
    )


def format_package_version(entry: Dict[str, Any]) -> str:
    """Render one ``sf package version list`` record."""
    released = " [released]" if entry.get("IsReleased") else ""
    return (
        f"{entry.get('Package2Name', 'unknown')} {entry.get('Version', '?')} "
        f"({entry.get('SubscriberPackageVersionId', 'unknown')}){released}"
    )


def _always_yes(prompt: str, default: bool) -> bool:
    return True


class PackageActions:
    """
    Collection of atomic actions for packages and scratch orgs.

    Usage::

        packages = PackageActions(SalesforceCLI(), force=True)
        packages.install(alias="my-org", version_id="04t...")
        for line in packages.list_installed("my-org").data:
            print(line)
    """

    def __init__(
        self,
        cli: SalesforceCLI,
        confirm: Optional[Confirm] = None,
        force: bool = False,
        project_dir: str | Path = ".",
    ) -> None:
        self.cli = cli
        self.force = force
        self.confirm = _always_yes if force else (confirm or ask_yes_no)
        self.project_dir = Path(project_dir)

    # ------------------------------------------------------------------
    # Package creation
    # ------------------------------------------------------------------

    def verify_dev_hub(self, alias: str) -> ActionResult:
        """Check the org is authenticated and a Dev Hub; data is the OrgInfo."""
        return _VerifyDevHubAction(self.cli, self.confirm).run(alias=alias)

    def create(
        self,
        name: str,
        dev_hub: str,
        package_type: str = "Unlocked",
        description: str = "",
        version: str = "1.0.0",
        wait: int = 10,
    ) -> ActionResult:
        """Create a package and its first version; data holds both IDs."""
        return _CreatePackageAction(self.cli, self.confirm, self.project_dir).run(
            name=name,
            dev_hub=dev_hub,
            package_type=package_type,
            description=description or f"{name} package",
            version=version,
            wait=wait,
        )

    def create_version(
        self,
        name: str,
        dev_hub: str,
        package_type: str = "Unlocked",
        version: str = "1.0.0",
        wait: int = 10,
    ) -> ActionResult:
        """Create a new version of an existing package."""
        return _CreateVersionAction(self.cli, self.project_dir).run(
            name=name, dev_hub=dev_hub, package_type=package_type, version=version, wait=wait
        )

    # ------------------------------------------------------------------
    # Install / upgrade / uninstall
    # ------------------------------------------------------------------

    def install(
        self,
        alias: str,
        package_id: Optional[str] = None,
        version_id: Optional[str] = None,
        wait: int = 10,
    ) -> ActionResult:
        """Install a package version; the version ID wins over the package ID."""
        return _InstallAction(self.cli, self.confirm, upgrade=False).run(
            alias=alias, package=version_id or package_id, wait=wait
        )

    def upgrade(self, alias: str, version_id: Optional[str], wait: int = 10) -> ActionResult:
        """Upgrade an installed package to ``version_id``."""
        return _InstallAction(self.cli, self.confirm, upgrade=True).run(
            alias=alias, package=version_id, wait=wait
        )

    def uninstall(self, alias: str, package_id: Optional[str], wait: int = 10) -> ActionResult:
        """Uninstall a package. This cannot be undone."""
        return _UninstallAction(self.cli, self.confirm).run(
            alias=alias, package=package_id, wait=wait
        )

    def list_installed(self, alias: str) -> ActionResult:
        """Installed packages; data is a list of formatted entries."""
        return _ListInstalledAction(self.cli).run(alias=alias)

    def list_available(self, dev_hub: str) -> ActionResult:
        """Package versions owned by the Dev Hub; data is a list of lines."""
        return _ListAvailableAction(self.cli).run(alias=dev_hub)

    # ------------------------------------------------------------------
    # Scratch orgs and tests
    # ------------------------------------------------------------------

    def create_scratch(self, alias: str) -> ActionResult:
        """Create a 7-day default scratch org from the project definition."""
        return _CreateScratchAction(self.cli, self.project_dir).run(alias=alias)

    def delete_scratch(self, alias: str) -> ActionResult:
        return _DeleteScratchAction(self.cli, self.confirm).run(alias=alias)

    def open_org(self, alias: str) -> ActionResult:
        return _OpenOrgAction(self.cli).run(alias=alias)

    def run_tests(
        self,
        alias: str,
        test_level: Optional[str] = None,
        class_names: Optional[str] = None,
        wait: int = 10,
    ) -> ActionResult:
        """Run Apex tests with coverage; results land in ``test-results/``."""
        return _RunTestsAction(self.cli).run(
            alias=alias,
            test_level=test_level or "RunLocalTests",
            class_names=class_names,
            wait=wait,
        )


# ---------------------------------------------------------------------------
# Internal Atomic Action Implementations
# ---------------------------------------------------------------------------


class _OrgAction(AtomicAction):
    """Base for actions that need an alias."""

    def __init__(self, name: str, cli: SalesforceCLI) -> None:
        super().__init__(name=name)
        self.cli = cli

    def _validate(self, **kwargs: Any) -> None:
        if not kwargs.get("alias"):
            raise ValueError("Org alias is required (use -a to specify one)")


class _VerifyDevHubAction(_OrgAction):
    """Atomic action: confirm the org is a Dev Hub."""

    def __init__(self, cli: SalesforceCLI, confirm: Confirm) -> None:
        super().__init__("verify_dev_hub", cli)
        self.confirm = confirm

    def _execute(self, **kwargs: Any) -> OrgInfo:
        alias = kwargs["alias"]
        logger.info("Verifying Dev Hub org...")
        info = require_org(self.cli, alias)

        if not info.is_dev_hub:
            logger.warning(f"Org '{alias}' may not be a Dev Hub")
            logger.info("To enable Dev Hub: Setup → Dev Hub → Enable Dev Hub")
            if not self.confirm("Continue anyway?", False):
                raise RuntimeError(f"Org '{alias}' is not a Dev Hub")

        logger.success(f"Dev Hub org verified: {info.username}")
        return info


class _CreateVersionAction(AtomicAction):
    """Atomic action: create a package version from force-app."""

    def __init__(self, cli: SalesforceCLI, project_dir: Path) -> None:
        super().__init__(name="create_package_version")
        self.cli = cli
        self.project_dir = project_dir

    def _validate(self, **kwargs: Any) -> None:
        if not (self.project_dir / "force-app").is_dir():
            raise FileNotFoundError("force-app directory not found!")
        if kwargs.get("package_type", "Unlocked") not in PACKAGE_TYPES:
            raise ValueError(f"Package type must be one of: {', '.join(PACKAGE_TYPES)}")

    def _execute(self, **kwargs: Any) -> Dict[str, str]:
        name = kwargs["name"]
        dev_hub = kwargs["dev_hub"]
        package_type = kwargs.get("package_type", "Unlocked")
        version = kwargs.get("version", "1.0.0")

        logger.info("Creating package version...")
        logger.info("This may take several minutes...")
        ids = self.cli.create_package_version(
            name,
            dev_hub=dev_hub,
            wait=kwargs.get("wait", 10),
            version_number=version if package_type == "Managed" else None,
        )
        version_id = ids["Package2VersionId"] or ids["SubscriberPackageVersionId"]
        install_id = ids["SubscriberPackageVersionId"] or version_id
        logger.success(f"Package version created: {version_id}")

        logger.info("📦 Package Created Successfully!")
        logger.info(f"Package Name: {name}")
        logger.info(f"API Name: {package_api_name(name)}")
        logger.info(f"Package Type: {package_type}")
        logger.info(f"Version: {version}")
        if kwargs.get("package_id"):
            logger.info(f"Package ID: {kwargs['package_id']}")
        logger.info(f"Version ID: {version_id}")
        logger.info("To install this package in another org:")
        logger.info(f"  sf package install --package {install_id} --target-org <org-alias>")
        logger.info("To list package versions:")
        logger.info(f"  sf package version list --target-dev-hub {dev_hub}")
        return {
            "package_version_id": ids["Package2VersionId"],
            "subscriber_package_version_id": ids["SubscriberPackageVersionId"],
        }


class _CreatePackageAction(AtomicAction):
    """Atomic action: create a package (or reuse an existing one) and version it."""

    def __init__(self, cli: SalesforceCLI, confirm: Confirm, project_dir: Path) -> None:
        super().__init__(name="create_package")
        self.cli = cli
        self.confirm = confirm
        self.project_dir = project_dir

    def _validate(self, **kwargs: Any) -> None:
        if not kwargs.get("name"):
            raise ValueError("Package name is required")
        if not kwargs.get("dev_hub"):
            raise ValueError("Dev Hub org alias is required")
        if kwargs.get("package_type") not in PACKAGE_TYPES:
            raise ValueError(f"Package type must be one of: {', '.join(PACKAGE_TYPES)}")

    def _find_existing(self, name: str, dev_hub: str) -> Optional[str]:
        for package in self.cli.list_packages(dev_hub):
            if package.get("Name") == name and package.get("Id"):
                return package["Id"]
        return None

    def _execute(self, **kwargs: Any) -> Dict[str, str]:
        name = kwargs["name"]
        dev_hub = kwargs["dev_hub"]
        package_type = kwargs["package_type"]

        logger.info(f"Creating {package_type} package: {name}")
        package_id = self._find_existing(name, dev_hub)
        if package_id:
            logger.warning(f"Package '{name}' already exists (ID: {package_id})")
            confirm_or_cancel(
                self.confirm,
                "Create a new version instead?",
                True,
                "Package creation cancelled",
            )
            logger.info(f"Using existing package: {package_id}")
        else:
            package_id = self.cli.create_package(
                name,
                description=kwargs["description"],
                package_type=package_type,
                dev_hub=dev_hub,
            )
            logger.success(f"Package created: {package_id}")
            logger.info("Package Details:")
            logger.info(f"  Name: {name}")
            logger.info(f"  Type: {package_type}")
            logger.info(f"  ID: {package_id}")

        version = _CreateVersionAction(self.cli, self.project_dir).run(
            name=name,
            dev_hub=dev_hub,
            package_type=package_type,
            version=kwargs.get("version", "1.0.0"),
            wait=kwargs.get("wait", 10),
            package_id=package_id,
        )
        if not version.is_success:
            raise RuntimeError("Failed to create package version")
        return {"package_id": package_id, **version.data}


class _InstallAction(_OrgAction):
    """Atomic action: install or upgrade a package version."""

    def __init__(self, cli: SalesforceCLI, confirm: Confirm, upgrade: bool) -> None:
        super().__init__("upgrade_package" if upgrade else "install_package", cli)
        self.confirm = confirm
        self.upgrade = upgrade

    def _validate(self, **kwargs: Any) -> None:
        super()._validate(**kwargs)
        if not kwargs.get("package"):
            if self.upgrade:
                raise ValueError("Package Version ID required for upgrade (use -v, 04t...)")
            raise ValueError(
                "Package ID or Version ID required for installation "
                "(use -p for Package ID or -v for Version ID)"
            )

    def _execute(self, **kwargs: Any) -> str:
        alias = kwargs["alias"]
        package = kwargs["package"]
        require_org(self.cli, alias)

        if self.upgrade:
            logger.info(f"Upgrading package to version: {package}")
            confirm_or_cancel(self.confirm, "Continue with upgrade?", False, "Upgrade cancelled")
        else:
            logger.info(f"Installing package: {package}")
            confirm_or_cancel(
                self.confirm, "Continue with installation?", False, "Installation cancelled"
            )

        self.cli.install_package(
            package, alias=alias, wait=kwargs.get("wait", 10), upgrade_only=self.upgrade
        )
        if self.upgrade:
            logger.success("Package upgraded successfully!")
        else:
            logger.success("Package installed successfully!")
        return package


class _UninstallAction(_OrgAction):
    """Atomic action: uninstall a package."""

    def __init__(self, cli: SalesforceCLI, confirm: Confirm) -> None:
        super().__init__("uninstall_package", cli)
        self.confirm = confirm

    def _validate(self, **kwargs: Any) -> None:
        super()._validate(**kwargs)
        if not kwargs.get("package"):
            raise ValueError("Package ID required for uninstallation (use -p, 04t...)")

    def _execute(self, **kwargs: Any) -> str:
        alias = kwargs["alias"]
        package = kwargs["package"]
        require_org(self.cli, alias)

        logger.info(f"Uninstalling package: {package}")
        logger.warning("Uninstalling a package cannot be undone!")
        confirm_or_cancel(
            self.confirm, "Continue with uninstallation?", False, "Uninstallation cancelled"
        )
        self.cli.uninstall_package(package, alias=alias, wait=kwargs.get("wait", 10))
        logger.success("Package uninstalled successfully!")
        return package


class _ListInstalledAction(_OrgAction):
    """Atomic action: list installed packages."""

    def __init__(self, cli: SalesforceCLI) -> None:
        super().__init__("list_installed_packages", cli)

    def _execute(self, **kwargs: Any) -> List[str]:
        alias = kwargs["alias"]
        require_org(self.cli, alias)
        logger.info("Fetching installed packages...")

        lines = [format_installed_package(entry) for entry in self.cli.list_installed_packages(alias)]
        logger.info("📦 Installed Packages")
        if not lines:
            logger.info("No packages installed.")
        for line in lines:
            logger.info(line)
        return lines


class _ListAvailableAction(_OrgAction):
    """Atomic action: list package versions owned by a Dev Hub."""

    def __init__(self, cli: SalesforceCLI) -> None:
        super().__init__("list_available_packages", cli)

    def _execute(self, **kwargs: Any) -> List[str]:
        alias = kwargs["alias"]
        require_org(self.cli, alias)
        logger.info("Fetching package versions from Dev Hub...")

        lines = [format_package_version(entry) for entry in self.cli.list_package_versions(alias)]
        if not lines:
            logger.info("No package versions found.")
        for line in lines:
            logger.info(f"  {line}")
        return lines


class _CreateScratchAction(_OrgAction):
    """Atomic action: create a scratch org."""

    def __init__(self, cli: SalesforceCLI, project_dir: Path) -> None:
        super().__init__("create_scratch_org", cli)
        self.definition = project_dir / SCRATCH_DEFINITION

    def _validate(self, **kwargs: Any) -> None:
        super()._validate(**kwargs)
        if not self.definition.is_file():
            raise FileNotFoundError(
                f"project-scratch-def.json not found! "
                f"Create a scratch org definition file at: {SCRATCH_DEFINITION}"
            )

    def _execute(self, **kwargs: Any) -> Dict[str, str]:
        alias = kwargs["alias"]
        logger.info("Creating scratch org...")
        logger.info(f"Using scratch org definition: {SCRATCH_DEFINITION}")
        self.cli.create_scratch(
            self.definition, alias=alias, duration_days=SCRATCH_DURATION_DAYS, set_default=True
        )
        logger.success(f"Scratch org created: {alias}")

        info = self.cli.display_org(alias)
        logger.info(f"Org Username: {info.username}")
        logger.info(f"Org URL: {info.instance_url}")
        return {"username": info.username, "instance_url": info.instance_url}


class _DeleteScratchAction(_OrgAction):
    """Atomic action: delete a scratch org."""

    def __init__(self, cli: SalesforceCLI, confirm: Confirm) -> None:
        super().__init__("delete_scratch_org", cli)
        self.confirm = confirm

    def _execute(self, **kwargs: Any) -> str:
        alias = kwargs["alias"]
        require_org(self.cli, alias)
        logger.warning(f"This will permanently delete the scratch org: {alias}")
        confirm_or_cancel(self.confirm, "Continue?", False, "Deletion cancelled")
        self.cli.delete_scratch(alias)
        logger.success(f"Scratch org deleted: {alias}")
        return alias


class _OpenOrgAction(_OrgAction):
    def __init__(self, cli: SalesforceCLI) -> None:
        super().__init__("open_org", cli)

    def _execute(self, **kwargs: Any) -> str:
        alias = kwargs["alias"]
        require_org(self.cli, alias)
        logger.info("Opening org in browser...")
        self.cli.open_org(alias)
        return alias


class _RunTestsAction(_OrgAction):
    """Atomic action: run Apex tests."""

    def __init__(self, cli: SalesforceCLI) -> None:
        super().__init__("run_apex_tests", cli)

    def _validate(self, **kwargs: Any) -> None:
        super()._validate(**kwargs)
        if kwargs["test_level"] not in TEST_LEVELS:
            raise ValueError(f"Test level must be one of: {', '.join(TEST_LEVELS)}")

    def _execute(self, **kwargs: Any) -> str:
        alias = kwargs["alias"]
        test_level = kwargs["test_level"]
        class_names = kwargs.get("class_names")
        require_org(self.cli, alias)

        logger.info("Running Apex tests...")
        logger.info(f"Test Level: {test_level}")
        if test_level == "RunSpecifiedTests" and class_names:
            logger.info(f"Test Classes: {class_names}")

        self.cli.run_apex_tests(
            alias,
            test_level=test_level,
            class_names=class_names,
            wait=kwargs.get("wait", 10),
        )
        logger.success("Tests completed!")
        logger.info("Results saved to: test-results/")
        return "test-results"
