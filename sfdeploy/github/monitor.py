"""
Deployment Run Monitor.

Triggers the deployment workflow and follows it to completion:

1. Dispatch the workflow.
2. Poll the runs list until the run created by that dispatch shows up.
3. Poll the run's job logs for a device login prompt and hand it over.
4. Poll the run until it is completed.

Every loop sleeps a fixed interval (5 seconds by default) for a bounded
number of attempts. Discovery and completion give up with
:class:`RunTimeoutError`; a run that never prints a device login prompt
is simply followed to completion.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Collection, Dict, Optional

from loguru import logger

from sfdeploy.github.actions_client import (
    GitHubActionsClient,
    RunTimeoutError,
    WorkflowRun,
)
from sfdeploy.github.device_login import DeviceLogin, extract_device_login

# GitHub timestamps have one-second resolution; allow for clock drift too.
CLOCK_SKEW = timedelta(seconds=10)


@dataclass
class DeploymentOutcome:
    """What happened to one triggered deployment."""

    dispatched_at: datetime
    actions_url: str
    run: Optional[WorkflowRun] = None
    device_login: Optional[DeviceLogin] = None
    inputs: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.run is not None and self.run.succeeded

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dispatched_at": self.dispatched_at.isoformat(),
            "actions_url": self.actions_url,
            "run_id": self.run.id if self.run else None,
            "run_url": self.run.html_url if self.run else None,
            "state": self.run.state if self.run else "dispatched",
            "device_login": (
                {
                    "verification_url": self.device_login.verification_url,
                    "user_code": self.device_login.user_code,
                }
                if self.device_login
                else None
            ),
        }


class DeploymentMonitor:
    """
    Polls GitHub Actions for a dispatched deployment run.

    Usage::

        monitor = DeploymentMonitor(client, poll_interval_sec=5, max_attempts=60)
        outcome = monitor.trigger_and_monitor(
            "deploy-with-login.yml", ref="main",
            on_device_login=lambda login: print(login.instructions()),
        )
    """

    def __init__(
        self,
        client: GitHubActionsClient,
        poll_interval_sec: float = 5,
        max_attempts: int = 60,
        discovery_attempts: int = 12,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        """
        Args:
            client: GitHub Actions client for the target repository.
            poll_interval_sec: Seconds between polls.
            max_attempts: Polls allowed for device login and for completion.
            discovery_attempts: Polls allowed for the new run to appear.
            sleep: Sleep function, replaced in tests.
            clock: Current UTC time, replaced in tests.
        """
        self.client = client
        self.poll_interval_sec = poll_interval_sec
        self.max_attempts = max_attempts
        self.discovery_attempts = discovery_attempts
        self._sleep = sleep
        self._clock = clock

    def find_triggered_run(
        self,
        workflow_file: str,
        ref: str,
        since: datetime,
        exclude_ids: Collection[int] = (),
    ) -> WorkflowRun:
        """
        Wait for the run created by a dispatch issued at ``since``.

        Raises:
            RunTimeoutError: If no matching run appears in time.
        """
        threshold = since - CLOCK_SKEW
        for attempt in range(1, self.discovery_attempts + 1):
            runs = self.client.list_runs(workflow_file, branch=ref, event="workflow_dispatch")
            for run in runs:
                if run.id in exclude_ids:
                    continue
                if run.created_at is None or run.created_at >= threshold:
                    logger.info(f"Found workflow run {run.id} ({run.status})")
                    return run
            logger.debug(f"Run not visible yet (attempt {attempt}/{self.discovery_attempts})")
            if attempt < self.discovery_attempts:
                self._sleep(self.poll_interval_sec)

        raise RunTimeoutError(
            f"No run of {workflow_file} appeared after {self.discovery_attempts} attempts"
        )

    def wait_for_device_login(self, run_id: int) -> Optional[DeviceLogin]:
        """
        Poll the run's job logs for a device login prompt.

        Returns:
            The DeviceLogin, or None if the run completed without one or
            printed none within max_attempts.
        """
        for attempt in range(1, self.max_attempts + 1):
            for job in self.client.list_jobs(run_id):
                login = extract_device_login(self.client.get_job_logs(job.id))
                if login:
                    logger.info(f"Device login code found in job '{job.name}'")
                    return login

            run = self.client.get_run(run_id)
            if run.is_completed:
                logger.info(f"Run {run_id} finished without a device login prompt")
                return None

            logger.debug(f"Waiting for device login code (attempt {attempt}/{self.max_attempts})")
            if attempt < self.max_attempts:
                self._sleep(self.poll_interval_sec)

        logger.warning(
            f"No device login code in run {run_id} after {self.max_attempts} attempts; "
            f"waiting for the run to complete"
        )
        return None

    def wait_for_completion(
        self,
        run_id: int,
        on_status: Optional[Callable[[WorkflowRun], None]] = None,
    ) -> WorkflowRun:
        """
        Poll a run until its status is ``completed``.

        Raises:
            RunTimeoutError: If the run is still going after max_attempts.
        """
        last_status = ""
        for attempt in range(1, self.max_attempts + 1):
            run = self.client.get_run(run_id)
            if run.status != last_status:
                logger.info(f"Run {run_id}: {run.status}")
                last_status = run.status
            if on_status:
                on_status(run)
            if run.is_completed:
                return run
            if attempt < self.max_attempts:
                self._sleep(self.poll_interval_sec)

        raise RunTimeoutError(
            f"Run {run_id} did not complete after {self.max_attempts} attempts "
            f"({self.max_attempts * self.poll_interval_sec:.0f}s)"
        )

    def trigger_and_monitor(
        self,
        workflow_file: str,
        ref: str = "main",
        inputs: Optional[Dict[str, Any]] = None,
        on_device_login: Optional[Callable[[DeviceLogin], None]] = None,
        wait: bool = True,
        scrape_device_login: bool = True,
    ) -> DeploymentOutcome:
        """
        Dispatch the workflow and follow the resulting run.

        Args:
            workflow_file: Workflow file name.
            ref: Branch or tag to run on.
            inputs: Workflow inputs.
            on_device_login: Called once with the scraped device login.
            wait: Return right after dispatching when False.
            scrape_device_login: Look for a device login prompt in the logs.

        Returns:
            DeploymentOutcome describing the run.
        """
        known_ids = set()
        if wait:
            known_ids = {
                run.id
                for run in self.client.list_runs(workflow_file, branch=ref, event="workflow_dispatch")
            }

        dispatched_at = self._clock()
        self.client.dispatch_workflow(workflow_file, ref=ref, inputs=inputs)
        outcome = DeploymentOutcome(
            dispatched_at=dispatched_at,
            actions_url=self.client.actions_url,
            inputs={k: v for k, v in (inputs or {}).items() if "token" not in k.lower()},
        )
        if not wait:
            return outcome

        run = self.find_triggered_run(workflow_file, ref, dispatched_at, exclude_ids=known_ids)
        outcome.run = run
        logger.info(f"View the workflow run at: {run.html_url or outcome.actions_url}")

        if scrape_device_login:
            outcome.device_login = self.wait_for_device_login(run.id)
            if outcome.device_login and on_device_login:
                on_device_login(outcome.device_login)

        outcome.run = self.wait_for_completion(run.id)
        if outcome.run.succeeded:
            logger.success(f"Deployment run {run.id} succeeded")
        else:
            logger.error(f"Deployment run {run.id} finished with: {outcome.run.state}")
        return outcome
