"""
GitHub Actions Module.

Provides integration with the GitHub REST API for:
- Dispatching the deployment workflow.
- Monitoring its run with bounded polling.
- Scraping the device login URL and code out of job logs.
- Storing the GitHub token for git.
"""

from sfdeploy.github.actions_client import (
    GitHubActionsClient,
    GitHubActionsError,
    RunTimeoutError,
    WorkflowDispatchError,
    WorkflowJob,
    WorkflowRun,
)
from sfdeploy.github.credentials import CredentialsError, load_github_token, store_git_credentials
from sfdeploy.github.device_login import DeviceLogin, extract_device_login
from sfdeploy.github.monitor import DeploymentMonitor, DeploymentOutcome

__all__ = [
    "CredentialsError",
    "DeploymentMonitor",
    "DeploymentOutcome",
    "DeviceLogin",
    "GitHubActionsClient",
    "GitHubActionsError",
    "RunTimeoutError",
    "WorkflowDispatchError",
    "WorkflowJob",
    "WorkflowRun",
    "extract_device_login",
    "load_github_token",
    "store_git_credentials",
]
