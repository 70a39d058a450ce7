"""
Deployment Trigger Atomic Actions.

Dispatches the GitHub Actions deployment workflow and, optionally,
follows the run until it finishes.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from loguru import logger

from sfdeploy.actions.base import ActionResult, AtomicAction
from sfdeploy.github.device_login import DeviceLogin
from sfdeploy.github.monitor import DeploymentMonitor


def print_device_login(login: DeviceLogin) -> None:
    """Default device login handler: tell the user where to go."""
    logger.warning("The deployment is waiting for you to approve the Salesforce login")
    logger.info(f"  1. Open: {login.verification_url}")
    logger.info(f"  2. Enter the code: {login.user_code}")


class TriggerActions:
    """
    Collection of atomic actions for the CI deployment.

    Usage::

        trigger = TriggerActions(DeploymentMonitor(client))
        result = trigger.trigger("deploy-with-login.yml", ref="main")
        print(result.data["run_url"])
    """

    def __init__(self, monitor: DeploymentMonitor) -> None:
        self.monitor = monitor

    def trigger(
        self,
        workflow_file: str,
        ref: str = "main",
        inputs: Optional[Dict[str, Any]] = None,
        wait: bool = True,
        on_device_login: Optional[Callable[[DeviceLogin], None]] = print_device_login,
    ) -> ActionResult:
        """Dispatch the workflow; data is the outcome as a dict."""
        return _TriggerDeploymentAction(self.monitor).run(
            workflow_file=workflow_file,
            ref=ref,
            inputs=inputs or {},
            wait=wait,
            on_device_login=on_device_login,
        )


class _TriggerDeploymentAction(AtomicAction):
    """Atomic action: dispatch and monitor the deployment workflow."""

    def __init__(self, monitor: DeploymentMonitor) -> None:
        super().__init__(name="trigger_deployment")
        self.monitor = monitor

    def _validate(self, **kwargs: Any) -> None:
        client = self.monitor.client
        if not client.is_configured:
            raise ValueError(
                "GitHub repository is not configured "
                "(set github.owner, github.repo and GITHUB_TOKEN)"
            )
        if not kwargs.get("workflow_file"):
            raise ValueError("Workflow file is required")

    def _execute(self, **kwargs: Any) -> Dict[str, Any]:
        workflow_file = kwargs["workflow_file"]
        ref = kwargs["ref"]
        wait = kwargs.get("wait", True)

        logger.info(f"Triggering deployment via GitHub Actions ({workflow_file} on {ref})...")
        outcome = self.monitor.trigger_and_monitor(
            workflow_file,
            ref=ref,
            inputs=kwargs.get("inputs"),
            on_device_login=kwargs.get("on_device_login"),
            wait=wait,
        )
        if not wait:
            logger.info(f"View the workflow run at: {outcome.actions_url}")
            return outcome.to_dict()

        if not outcome.succeeded:
            state = outcome.run.state if outcome.run else "unknown"
            raise RuntimeError(f"Deployment workflow did not succeed ({state})")
        return outcome.to_dict()
