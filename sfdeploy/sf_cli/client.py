"""
Salesforce CLI Wrapper.

Provides a thin client around the ``sf`` executable:
- Org authentication (web OAuth, device code, SFDX auth URL) and display.
- Metadata retrieve/deploy driven by a package.xml manifest or source dir.
- Package, package version and installed package management.
- Scratch org lifecycle, Apex test runs and SOQL queries.

Every call that can return structured data is issued with ``--json`` and
the ``{status, result, message}`` envelope is unwrapped here, so callers
deal with plain dictionaries and lists instead of CLI text.
"""

from __future__ import annotations

import json
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from loguru import logger

Runner = Callable[..., subprocess.CompletedProcess]

INSTALL_HINT = "npm install -g @salesforce/cli"


class SalesforceCLIError(Exception):
    """Raised when an ``sf`` command fails or returns unparsable output."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        command: Optional[Sequence[str]] = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.command = list(command or [])
        self.output = output


class CLINotInstalledError(SalesforceCLIError):
    """Raised when the ``sf`` executable cannot be found on PATH."""


@dataclass
class OrgSummary:
    """One entry of ``sf org list``."""

    username: str
    alias: str = ""
    instance_url: str = ""
    is_scratch: bool = False

    def describe(self) -> str:
        """Single-line description, as printed by the org listing."""
        line = f"{self.alias or 'unnamed'} - {self.username} - {self.instance_url}"
        return f"{line} (Scratch)" if self.is_scratch else line


@dataclass
class OrgInfo:
    """Result of ``sf org display``."""

    username: str = "unknown"
    id: str = "unknown"
    instance_url: str = ""
    access_token: str = ""
    alias: str = ""
    is_dev_hub: bool = False

    @classmethod
    def from_result(cls, result: Dict[str, Any]) -> "OrgInfo":
        return cls(
            username=result.get("username") or "unknown",
            id=result.get("id") or "unknown",
            instance_url=result.get("instanceUrl") or "",
            access_token=result.get("accessToken") or "",
            alias=result.get("alias") or "",
            is_dev_hub=bool(result.get("isDevHub", False)),
        )

    def __repr__(self) -> str:
        return (
            f"OrgInfo(username={self.username!r}, id={self.id!r}, "
            f"instance_url={self.instance_url!r}, alias={self.alias!r}, "
            f"is_dev_hub={self.is_dev_hub!r})"
        )


class SalesforceCLI:
    """
    Client for the Salesforce CLI (``sf``).

    Usage::

        cli = SalesforceCLI()
        if not cli.org_exists("deploy-target"):
            cli.login_web("deploy-target", "https://login.salesforce.com")
        info = cli.display_org("deploy-target")
        cli.deploy("force-app", alias="deploy-target", wait=10)
    """

    def __init__(self, executable: str = "sf", runner: Optional[Runner] = None) -> None:
        """
        Initialize the CLI wrapper.

        Args:
            executable: Name or path of the ``sf`` binary.
            runner: Callable with the ``subprocess.run`` signature. Injected in tests.
        """
        self.executable = executable
        self._runner = runner or subprocess.run
        logger.debug(f"SalesforceCLI initialized — executable={executable}")

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def is_installed(self) -> bool:
        """Check whether the executable is on PATH."""
        return shutil.which(self.executable) is not None

    def require_installed(self) -> None:
        """
        Raises:
            CLINotInstalledError: If the CLI cannot be found.
        """
        if not self.is_installed():
            raise CLINotInstalledError(
                f"Salesforce CLI ({self.executable}) is not installed. "
                f"Install it with: {INSTALL_HINT}"
            )

    def version(self) -> str:
        """Return the ``sf --version`` string."""
        completed = self._invoke(["--version"], capture=True)
        return completed.stdout.strip()

    def _invoke(self, args: Sequence[str], capture: bool) -> subprocess.CompletedProcess:
        command = [self.executable, *args]
        logger.debug(f"Command: {' '.join(command)}")
        try:
            if capture:
                return self._runner(command, capture_output=True, text=True)
            return self._runner(command)
        except FileNotFoundError as e:
            raise CLINotInstalledError(
                f"Salesforce CLI ({self.executable}) is not installed. "
                f"Install it with: {INSTALL_HINT}",
                command=command,
            ) from e

    def _run_json(self, args: Sequence[str]) -> Any:
        """
        Run a command with ``--json`` and return the unwrapped ``result``.

        Raises:
            SalesforceCLIError: On a non-zero exit or an invalid envelope.
        """
        completed = self._invoke([*args, "--json"], capture=True)
        command = [self.executable, *args, "--json"]
        stdout = completed.stdout or ""

        try:
            envelope = json.loads(stdout) if stdout.strip() else {}
        except json.JSONDecodeError:
            envelope = None

        if completed.returncode != 0:
            message = ""
            if isinstance(envelope, dict):
                message = envelope.get("message", "")
            message = message or (completed.stderr or "").strip() or stdout.strip()
            raise SalesforceCLIError(
                f"'{' '.join(args[:3])}' failed: {message}",
                returncode=completed.returncode,
                command=command,
                output=stdout,
            )

        if not isinstance(envelope, dict):
            raise SalesforceCLIError(
                f"'{' '.join(args[:3])}' returned invalid JSON",
                returncode=completed.returncode,
                command=command,
                output=stdout,
            )

        return envelope.get("result")

    def _run_streamed(self, args: Sequence[str], failure: str) -> None:
        """Run a command with its output going straight to the terminal."""
        completed = self._invoke(args, capture=False)
        if completed.returncode != 0:
            raise SalesforceCLIError(
                failure,
                returncode=completed.returncode,
                command=[self.executable, *args],
            )

    # ------------------------------------------------------------------
    # Org Operations
    # ------------------------------------------------------------------

    def list_orgs(self) -> List[OrgSummary]:
        """List authenticated orgs (non-scratch first, then scratch)."""
        result = self._run_json(["org", "list"]) or {}
        orgs: List[OrgSummary] = []
        seen: set[str] = set()

        groups = [("nonScratchOrgs", False), ("scratchOrgs", True)]
        groups += [(key, False) for key in result if key not in dict(groups)]

        for key, is_scratch in groups:
            entries = result.get(key)
            if not isinstance(entries, list):
                continue
            for entry in entries:
                username = entry.get("username", "")
                if not username or username in seen:
                    continue
                seen.add(username)
                orgs.append(OrgSummary(
                    username=username,
                    alias=entry.get("alias") or "",
                    instance_url=entry.get("instanceUrl") or "",
                    is_scratch=is_scratch or bool(entry.get("isScratch")),
                ))
        return orgs

    def org_exists(self, alias: str) -> bool:
        """Check whether an authenticated org with this alias exists."""
        try:
            orgs = self.list_orgs()
        except SalesforceCLIError as e:
            logger.debug(f"Org listing failed: {e}")
            return False
        return any(org.alias == alias for org in orgs)

    def login_web(self, alias: str, instance_url: str) -> None:
        """Authenticate an org through the browser OAuth flow."""
        logger.info(f"Opening browser login for '{alias}' at {instance_url}")
        self._run_streamed(
            ["org", "login", "web", "--alias", alias, "--instance-url", instance_url],
            failure="Salesforce login failed",
        )

    def login_device(self, alias: str, instance_url: str) -> None:
        """
        Authenticate an org through the device-code flow.

        The CLI prints a verification URL and an 8-character code and
        waits until the user approves it in a browser.
        """
        logger.info(f"Starting device login for '{alias}' at {instance_url}")
        self._run_streamed(
            ["org", "login", "device", "--alias", alias, "--instance-url", instance_url],
            failure="Salesforce device login failed",
        )

    def login_sfdx_url(self, alias: str, url_file: str | Path, set_default: bool = True) -> None:
        """Authenticate from a file holding an SFDX auth URL."""
        args = ["org", "login", "sfdx-url", "--sfdx-url-file", str(url_file), "--alias", alias]
        if set_default:
            args.append("--set-default")
        self._run_json(args)

    def display_org(self, alias: str) -> OrgInfo:
        """
        Return details of an authenticated org.

        Raises:
            SalesforceCLIError: If the org is not authenticated.
        """
        result = self._run_json(["org", "display", "--target-org", alias]) or {}
        return OrgInfo.from_result(result)

    def open_org(self, alias: str) -> None:
        """Open the org in the default browser."""
        self._run_streamed(["org", "open", "--target-org", alias], failure="Failed to open org")

    def create_scratch(
        self,
        definition_file: str | Path,
        alias: str,
        duration_days: int = 7,
        set_default: bool = True,
    ) -> Dict[str, Any]:
        """Create a scratch org from a definition file."""
        args = [
            "org", "create", "scratch",
            "--definition-file", str(definition_file),
            "--alias", alias,
            "--duration-days", str(duration_days),
        ]
        if set_default:
            args.append("--set-default")
        return self._run_json(args) or {}

    def delete_scratch(self, alias: str) -> None:
        """Permanently delete a scratch org."""
        self._run_json(["org", "delete", "scratch", "--target-org", alias, "--no-prompt"])

    # ------------------------------------------------------------------
    # Metadata Operations
    # ------------------------------------------------------------------

    def retrieve(
        self,
        manifest: str | Path,
        alias: str,
        wait: int = 10,
        output_dir: Optional[str | Path] = None,
    ) -> Dict[str, Any]:
        """Retrieve the metadata listed in a package.xml manifest."""
        args = [
            "project", "retrieve", "start",
            "--manifest", str(manifest),
            "--target-org", alias,
            "--wait", str(wait),
        ]
        if output_dir:
            args += ["--output-dir", str(output_dir)]
        return self._run_json(args) or {}

    def deploy(
        self,
        source_dir: str | Path,
        alias: str,
        wait: int = 10,
        dry_run: bool = False,
    ) -> None:
        """Deploy a source directory, streaming the CLI progress output."""
        args = [
            "project", "deploy", "start",
            "--source-dir", str(source_dir),
            "--target-org", alias,
            "--wait", str(wait),
        ]
        if dry_run:
            args.append("--dry-run")
        self._run_streamed(args, failure="Validation failed" if dry_run else "Deployment failed")

    def deploy_manifest(
        self,
        manifest: str | Path,
        alias: str,
        wait: int = 10,
        dry_run: bool = False,
    ) -> Dict[str, Any]:
        """Deploy the components listed in a package.xml manifest."""
        args = [
            "project", "deploy", "start",
            "--manifest", str(manifest),
            "--target-org", alias,
            "--wait", str(wait),
        ]
        if dry_run:
            args.append("--dry-run")
        return self._run_json(args) or {}

    def list_metadata_types(self, alias: str) -> List[Dict[str, Any]]:
        """List the metadata types supported by the org."""
        result = self._run_json(["org", "list", "metadata-types", "--target-org", alias]) or {}
        if isinstance(result, dict):
            return list(result.get("metadataObjects", []))
        return list(result)

    # ------------------------------------------------------------------
    # Package Operations
    # ------------------------------------------------------------------

    def list_packages(self, dev_hub: str) -> List[Dict[str, Any]]:
        """List packages owned by a Dev Hub."""
        return list(self._run_json(["package", "list", "--target-dev-hub", dev_hub]) or [])

    def create_package(
        self,
        name: str,
        description: str,
        package_type: str,
        dev_hub: str,
        path: str = "force-app",
    ) -> str:
        """
        Create an Unlocked or Managed package.

        Returns:
            The new package ID (0Ho...).
        """
        args = [
            "package", "create",
            "--name", name,
            "--description", description,
            "--package-type", package_type,
            "--path", path,
            "--target-dev-hub", dev_hub,
        ]
        if package_type == "Managed":
            args.append("--no-namespace")
        result = self._run_json(args) or {}
        package_id = result.get("Id", "")
        if not package_id:
            raise SalesforceCLIError("Could not extract package ID from output", command=args)
        return package_id

    def create_package_version(
        self,
        package: str,
        dev_hub: str,
        wait: int = 10,
        version_number: Optional[str] = None,
    ) -> Dict[str, str]:
        """
        Create a package version with code coverage and no installation key.

        Returns:
            Mapping with ``Package2VersionId`` and ``SubscriberPackageVersionId``.
        """
        args = [
            "package", "version", "create",
            "--package", package,
            "--target-dev-hub", dev_hub,
            "--wait", str(wait),
            "--code-coverage",
            "--installation-key-bypass",
        ]
        if version_number:
            args += ["--version-number", version_number]
        result = self._run_json(args) or {}
        if not result.get("Package2VersionId") and not result.get("SubscriberPackageVersionId"):
            raise SalesforceCLIError("Could not extract version ID", command=args)
        return {
            "Package2VersionId": result.get("Package2VersionId", ""),
            "SubscriberPackageVersionId": result.get("SubscriberPackageVersionId", ""),
        }

    def list_package_versions(self, dev_hub: str) -> List[Dict[str, Any]]:
        """List package versions owned by a Dev Hub."""
        return list(
            self._run_json(["package", "version", "list", "--target-dev-hub", dev_hub]) or []
        )

    def install_package(
        self,
        package: str,
        alias: str,
        wait: int = 10,
        upgrade_only: bool = False,
    ) -> None:
        """Install (or upgrade) a package version in an org."""
        args = [
            "package", "install",
            "--package", package,
            "--target-org", alias,
            "--wait", str(wait),
            "--no-prompt",
        ]
        if upgrade_only:
            args.insert(-1, "--upgrade-only")
        self._run_streamed(
            args,
            failure="Package upgrade failed" if upgrade_only else "Package installation failed",
        )

    def uninstall_package(self, package: str, alias: str, wait: int = 10) -> None:
        """Uninstall a package from an org."""
        self._run_streamed(
            ["package", "uninstall", "--package", package,
             "--target-org", alias, "--wait", str(wait), "--no-prompt"],
            failure="Package uninstallation failed",
        )

    def list_installed_packages(self, alias: str) -> List[Dict[str, Any]]:
        """List packages installed in an org."""
        return list(
            self._run_json(["package", "installed", "list", "--target-org", alias]) or []
        )

    # ------------------------------------------------------------------
    # Tests and Data
    # ------------------------------------------------------------------

    def run_apex_tests(
        self,
        alias: str,
        test_level: str = "RunLocalTests",
        class_names: Optional[str] = None,
        wait: int = 10,
        output_dir: str = "test-results",
    ) -> None:
        """Run Apex tests with code coverage, writing results to output_dir."""
        args = ["apex", "run", "test", "--test-level", test_level]
        if test_level == "RunSpecifiedTests" and class_names:
            args += ["--class-names", class_names]
        args += [
            "--target-org", alias,
            "--wait", str(wait),
            "--result-format", "human",
            "--code-coverage",
            "--output-dir", output_dir,
        ]
        self._run_streamed(args, failure="Test execution failed")

    def query(self, soql: str, alias: str) -> List[Dict[str, Any]]:
        """Run a SOQL query and return its records."""
        result = self._run_json(["data", "query", "--query", soql, "--target-org", alias]) or {}
        return list(result.get("records", []))
