"""
Salesforce CLI Prerequisite Installer.

Checks that Node.js/npm and the Salesforce CLI are available, optionally
installing or updating them through npm (and Homebrew for Node.js on
macOS). Interactive confirmation is delegated to an injected callable so
the same code serves terminals and unattended CI jobs.
"""

from __future__ import annotations

import os
import re
import shutil
import subprocess
import sys
from typing import Callable, Optional

from loguru import logger

from sfdeploy.sf_cli.client import Runner

CLI_PACKAGE = "@salesforce/cli"

Confirm = Callable[[str, bool], bool]

_VERSION_PATTERN = re.compile(r"[0-9]+\.[0-9]+\.[0-9]+")


class InstallerError(Exception):
    """Raised when a prerequisite is missing and cannot be installed."""


def extract_version(text: str) -> str:
    """Return the first ``N.N.N`` in text ("@salesforce/cli/2.108.6 ..." -> "2.108.6")."""
    match = _VERSION_PATTERN.search(text or "")
    return match.group(0) if match else ""


def compare_versions(v1: str, v2: str) -> bool:
    """
    Check whether version v1 is greater than or equal to v2.

    Both arguments may carry surrounding text; unparsable input compares
    as False.
    """
    a, b = extract_version(v1), extract_version(v2)
    if not a or not b:
        return False
    return tuple(int(p) for p in a.split(".")) >= tuple(int(p) for p in b.split("."))


def detect_os() -> str:
    """Return "macos", "linux" or "unknown"."""
    if sys.platform == "darwin":
        return "macos"
    if sys.platform.startswith("linux"):
        return "linux"
    return "unknown"


class CLIInstaller:
    """
    Ensures the Salesforce CLI and its Node.js runtime are ready.

    Usage::

        installer = CLIInstaller(confirm=ask_yes_no)
        installer.ensure_cli_ready(auto_install=False, auto_update=True)
    """

    def __init__(
        self,
        runner: Optional[Runner] = None,
        confirm: Optional[Confirm] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
        os_name: Optional[str] = None,
    ) -> None:
        self._runner = runner or subprocess.run
        self._confirm = confirm or (lambda prompt, default: default)
        self._which = which
        self.os_name = os_name or detect_os()

    def _output(self, *command: str) -> str:
        completed = self._runner(list(command), capture_output=True, text=True)
        if completed.returncode != 0:
            return ""
        return (completed.stdout or "").strip()

    def _execute(self, *command: str) -> bool:
        logger.debug(f"Command: {' '.join(command)}")
        return self._runner(list(command)).returncode == 0

    # ------------------------------------------------------------------
    # Node.js
    # ------------------------------------------------------------------

    def check_nodejs(self, auto_install: bool = False) -> bool:
        """
        Check for Node.js and npm, installing Node.js if allowed.

        Raises:
            InstallerError: If Node.js is missing and cannot be installed.
        """
        if self._which("node") and self._which("npm"):
            logger.success(f"Node.js found: {self._output('node', '--version')}")
            logger.success(f"npm found: {self._output('npm', '--version')}")
            return True

        logger.warning("Node.js or npm is not installed")
        if not auto_install and not self._confirm("Do you want to install Node.js now?", True):
            raise InstallerError(
                "Node.js is required. Install it with 'brew install node' (macOS) "
                "or from https://nodejs.org/"
            )

        if self.os_name != "macos":
            raise InstallerError(
                "Automatic Node.js installation is only supported on macOS. "
                "See https://nodejs.org/en/download/"
            )
        if not self._which("brew"):
            raise InstallerError("Homebrew not found. Install Node.js with: brew install node")

        logger.info("Installing Node.js via Homebrew...")
        if not self._execute("brew", "install", "node"):
            raise InstallerError("Failed to install Node.js via Homebrew")
        if not (self._which("node") and self._which("npm")):
            raise InstallerError("Node.js installation completed but not found in PATH")

        logger.success(f"Node.js installed: {self._output('node', '--version')}")
        return True

    # ------------------------------------------------------------------
    # Salesforce CLI
    # ------------------------------------------------------------------

    def latest_cli_version(self) -> str:
        """Latest published CLI version from the npm registry, or "" if unknown."""
        return self._output("npm", "view", CLI_PACKAGE, "version")

    def check_salesforce_cli(self, auto_install: bool = False, auto_update: bool = False) -> str:
        """
        Check for the CLI, installing or updating it when requested.

        Returns:
            The installed ``sf --version`` string.

        Raises:
            InstallerError: If the CLI is missing and cannot be installed.
        """
        self.check_nodejs(auto_install)

        if self._which("sf"):
            current = self._output("sf", "--version")
            logger.success(f"Salesforce CLI found: {current}")
            if auto_update:
                current = self._update_if_outdated(current)
            return current

        logger.warning("Salesforce CLI (sf) is not installed!")
        if not auto_install and not self._confirm(
            "Do you want to install Salesforce CLI now?", True
        ):
            raise InstallerError(
                f"Salesforce CLI is required. Install it with: "
                f"npm install -g {CLI_PACKAGE}@latest"
            )

        logger.info("Installing latest Salesforce CLI...")
        if not self._execute("npm", "install", "-g", f"{CLI_PACKAGE}@latest"):
            raise InstallerError(
                "Failed to install Salesforce CLI. Check npm write permissions "
                "with: npm config get prefix"
            )

        self._extend_path()
        if not self._which("sf"):
            raise InstallerError(
                "Salesforce CLI installation completed but 'sf' command not found. "
                "Add the npm global bin directory to PATH."
            )
        version = self._output("sf", "--version")
        logger.success(f"Salesforce CLI installed: {version}")
        return version

    def _update_if_outdated(self, current: str) -> str:
        logger.info("Checking for CLI updates...")
        latest = self.latest_cli_version()
        current_version = extract_version(current)
        if not latest or not current_version:
            return current

        if latest == current_version or not compare_versions(latest, current_version):
            logger.success(f"Salesforce CLI is up to date: {current_version}")
            return current

        logger.warning(f"CLI update available: {current_version} -> {latest}")
        if not self._execute("npm", "install", "-g", f"{CLI_PACKAGE}@latest"):
            raise InstallerError("Failed to update Salesforce CLI")
        updated = self._output("sf", "--version")
        logger.success(f"Salesforce CLI updated to: {updated}")
        return updated

    def _extend_path(self) -> None:
        """Append the npm global bin directory to PATH if it is missing."""
        prefix = self._output("npm", "config", "get", "prefix")
        if not prefix:
            return
        bin_dir = os.path.join(prefix, "bin")
        entries = os.environ.get("PATH", "").split(os.pathsep)
        if bin_dir not in entries:
            os.environ["PATH"] = os.pathsep.join([*entries, bin_dir])
            logger.debug(f"Added {bin_dir} to PATH")

    def ensure_cli_ready(self, auto_install: bool = False, auto_update: bool = False) -> str:
        """
        Check and install/update everything needed to run ``sf``.

        Returns:
            The ready CLI version string.
        """
        logger.info("Checking Salesforce CLI prerequisites...")
        version = self.check_salesforce_cli(auto_install, auto_update)
        self._extend_path()
        logger.success(f"Salesforce CLI is ready: {version}")
        return version
