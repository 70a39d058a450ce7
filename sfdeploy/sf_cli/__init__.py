"""
Salesforce CLI Module.

Wraps the ``sf`` executable for:
- Org authentication and display.
- Metadata retrieve/deploy.
- Package, scratch org and Apex test operations.
- Checking and installing the CLI itself.
"""

from sfdeploy.sf_cli.client import (
    CLINotInstalledError,
    OrgInfo,
    OrgSummary,
    SalesforceCLI,
    SalesforceCLIError,
)
from sfdeploy.sf_cli.ids import looks_like_package_id, package_api_name
from sfdeploy.sf_cli.installer import CLIInstaller, InstallerError, compare_versions

__all__ = [
    "CLIInstaller",
    "CLINotInstalledError",
    "InstallerError",
    "OrgInfo",
    "OrgSummary",
    "SalesforceCLI",
    "SalesforceCLIError",
    "compare_versions",
    "looks_like_package_id",
    "package_api_name",
]
