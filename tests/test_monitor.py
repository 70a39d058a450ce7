"""
Unit Tests for Deployment Run Monitoring.

Covers:
- Device login extraction from job logs.
- DeploymentMonitor: run discovery, device login polling, completion.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from sfdeploy.github.actions_client import RunTimeoutError, WorkflowJob, WorkflowRun
from sfdeploy.github.device_login import (
    DEFAULT_VERIFICATION_URL,
    DeviceLogin,
    extract_device_login,
    extract_user_code,
)
from sfdeploy.github.monitor import DeploymentMonitor

NOW = datetime(2026, 10, 19, 10, 0, 0, tzinfo=timezone.utc)


def _run(run_id: int, status: str = "in_progress", conclusion: Optional[str] = None,
         created_at: Optional[datetime] = None) -> WorkflowRun:
    return WorkflowRun(
        id=run_id,
        status=status,
        conclusion=conclusion,
        html_url=f"https://github.com/acme/sf-demo/actions/runs/{run_id}",
        created_at=created_at or NOW,
    )


class _Script:
    """Returns queued values in order, repeating the last one."""

    def __init__(self, values: List[Any]) -> None:
        self.values = list(values)

    def next(self) -> Any:
        return self.values.pop(0) if len(self.values) > 1 else self.values[0]


class FakeActionsClient:
    """Scripted stand-in for GitHubActionsClient."""

    actions_url = "https://github.com/acme/sf-demo/actions"

    def __init__(self, run_lists, runs=None, logs=None) -> None:
        self._run_lists = _Script(run_lists)
        self._runs = _Script(runs or [_run(2, "completed", "success")])
        self._logs = _Script(logs or [""])
        self.dispatched: List[Dict[str, Any]] = []

    def list_runs(self, workflow_file=None, branch=None, event=None, per_page=10):
        return self._run_lists.next()

    def dispatch_workflow(self, workflow_file, ref="main", inputs=None):
        self.dispatched.append({"workflow_file": workflow_file, "ref": ref, "inputs": inputs})

    def list_jobs(self, run_id):
        return [WorkflowJob(id=7, name="deploy")]

    def get_job_logs(self, job_id):
        return self._logs.next()

    def get_run(self, run_id):
        return self._runs.next()


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _monitor(client: FakeActionsClient, sleep: SleepRecorder, **kwargs) -> DeploymentMonitor:
    return DeploymentMonitor(client, sleep=sleep, clock=lambda: NOW, **kwargs)


# ---------------------------------------------------------------------------
# Device Login Extraction
# ---------------------------------------------------------------------------


class TestDeviceLogin:
    """Tests for scraping device login prompts out of logs."""

    def test_code_and_url(self) -> None:
        """Test a log with both the verification URL and the code."""
        log = (
            "2026-10-19T10:00:01.1234567Z Action Required! Enter the code: ABCD1234\n"
            "2026-10-19T10:00:01.2234567Z Open https://login.salesforce.com/setup/connect "
            "in a browser.\n"
        )
        login = extract_device_login(log)
        assert login == DeviceLogin(
            verification_url="https://login.salesforce.com/setup/connect",
            user_code="ABCD1234",
        )

    def test_dashed_code(self) -> None:
        """Test that a dashed code is normalised."""
        assert extract_user_code("Your user code ABCD-1234") == "ABCD1234"

    def test_code_before_label(self) -> None:
        """Test the "<code> user code" wording."""
        assert extract_user_code("Enter WXYZ9876 user code in the browser") == "WXYZ9876"

    def test_sandbox_url(self) -> None:
        """Test that a non-default verification URL is kept."""
        login = extract_device_login(
            "Enter the code: QWER5678 at https://test.salesforce.com/setup/connect."
        )
        assert login.verification_url == "https://test.salesforce.com/setup/connect"

    def test_json_output(self) -> None:
        """Test the --json form of the device login prompt."""
        log = (
            '2026-10-19T10:00:01.1234567Z {"status": 0, "result": {"user_code":"ABCD1234", '
            '"verification_uri": "https://test.salesforce.com/setup/connect"}}\n'
        )
        assert extract_device_login(log) == DeviceLogin(
            verification_url="https://test.salesforce.com/setup/connect",
            user_code="ABCD1234",
        )

    def test_default_url(self) -> None:
        """Test the fallback URL when only the code is printed."""
        login = extract_device_login("code: ABCD1234")
        assert login.verification_url == DEFAULT_VERIFICATION_URL

    def test_no_code(self) -> None:
        """Test that ordinary output is not mistaken for a code."""
        assert extract_device_login("Running tests with code coverage") is None
        assert extract_device_login("") is None

    def test_instructions(self) -> None:
        """Test the instruction line shown to the user."""
        login = DeviceLogin(verification_url=DEFAULT_VERIFICATION_URL, user_code="ABCD1234")
        assert login.instructions().endswith("enter the code: ABCD1234")


# ---------------------------------------------------------------------------
# DeploymentMonitor Tests
# ---------------------------------------------------------------------------


class TestDeploymentMonitor:
    """Tests for the DeploymentMonitor class."""

    def test_full_flow(self) -> None:
        """Test dispatch, discovery, device login and completion."""
        old = _run(1, "completed", "success", created_at=NOW - timedelta(minutes=1))
        new = _run(2)
        client = FakeActionsClient(
            run_lists=[[old], [old], [new, old]],
            runs=[_run(2), _run(2), _run(2, "completed", "success")],
            logs=["", "Enter the code: ABCD1234"],
        )
        sleep = SleepRecorder()
        seen: List[DeviceLogin] = []

        outcome = _monitor(client, sleep).trigger_and_monitor(
            "deploy-with-login.yml",
            ref="main",
            inputs={"instance_url": "https://x.my.salesforce.com", "access_token": "secret"},
            on_device_login=seen.append,
        )

        assert outcome.succeeded
        assert outcome.run.id == 2
        assert [login.user_code for login in seen] == ["ABCD1234"]
        assert client.dispatched[0]["ref"] == "main"
        assert "access_token" not in outcome.inputs
        assert sleep.calls == [5, 5, 5]
        assert outcome.to_dict()["state"] == "success"
        assert outcome.to_dict()["device_login"]["user_code"] == "ABCD1234"

    def test_no_wait(self) -> None:
        """Test that only the dispatch happens without waiting."""
        client = FakeActionsClient(run_lists=[[]])
        sleep = SleepRecorder()

        outcome = _monitor(client, sleep).trigger_and_monitor("deploy.yml", wait=False)

        assert client.dispatched
        assert outcome.run is None
        assert not outcome.succeeded
        assert outcome.to_dict()["state"] == "dispatched"
        assert sleep.calls == []

    def test_failed_run(self) -> None:
        """Test that a failing run is reported as not succeeded."""
        client = FakeActionsClient(
            run_lists=[[], [_run(3)]],
            runs=[_run(3, "completed", "failure")],
        )
        outcome = _monitor(client, SleepRecorder()).trigger_and_monitor(
            "deploy.yml", scrape_device_login=False
        )
        assert not outcome.succeeded
        assert outcome.run.state == "failure"

    def test_discovery_timeout(self) -> None:
        """Test that discovery gives up after the configured attempts."""
        client = FakeActionsClient(run_lists=[[]])
        sleep = SleepRecorder()
        with pytest.raises(RunTimeoutError):
            _monitor(client, sleep, discovery_attempts=3).find_triggered_run("deploy.yml", "main", NOW)
        assert len(sleep.calls) == 2

    def test_discovery_ignores_older_runs(self) -> None:
        """Test that runs created well before the dispatch are skipped."""
        stale = _run(5, created_at=NOW - timedelta(hours=1))
        skewed = _run(6, created_at=NOW - timedelta(seconds=5))
        client = FakeActionsClient(run_lists=[[stale, skewed]])
        run = _monitor(client, SleepRecorder()).find_triggered_run("deploy.yml", "main", NOW)
        assert run.id == 6

    def test_discovery_excludes_known_ids(self) -> None:
        """Test that runs seen before the dispatch are never picked."""
        client = FakeActionsClient(run_lists=[[_run(1)], [_run(2), _run(1)]])
        run = _monitor(client, SleepRecorder()).find_triggered_run(
            "deploy.yml", "main", NOW, exclude_ids={1}
        )
        assert run.id == 2

    def test_device_login_absent(self) -> None:
        """Test that a run completing without a prompt yields None."""
        client = FakeActionsClient(
            run_lists=[[]],
            runs=[_run(2, "completed", "success")],
            logs=["Deploy succeeded"],
        )
        assert _monitor(client, SleepRecorder()).wait_for_device_login(2) is None

    def test_device_login_budget_exhausted(self) -> None:
        """Test that a run without a prompt is still followed to completion."""
        client = FakeActionsClient(
            run_lists=[[], [_run(2)]],
            runs=[_run(2)] * 4 + [_run(2, "completed", "success")],
            logs=["Authenticating with the provided access token"],
        )
        sleep = SleepRecorder()
        seen: List[DeviceLogin] = []

        outcome = _monitor(client, sleep, max_attempts=3).trigger_and_monitor(
            "deploy-with-login.yml",
            inputs={"instance_url": "https://x.my.salesforce.com", "access_token": "secret"},
            on_device_login=seen.append,
        )

        assert outcome.succeeded
        assert outcome.device_login is None
        assert seen == []
        assert sleep.calls == [5, 5, 5]

    def test_completion_timeout(self) -> None:
        """Test that a run stuck in progress times out."""
        client = FakeActionsClient(run_lists=[[]], runs=[_run(2, "queued")])
        sleep = SleepRecorder()
        with pytest.raises(RunTimeoutError, match="did not complete"):
            _monitor(client, sleep, max_attempts=2).wait_for_completion(2)
        assert sleep.calls == [5]

    def test_status_callback(self) -> None:
        """Test that every poll is reported to on_status."""
        client = FakeActionsClient(
            run_lists=[[]],
            runs=[_run(2, "queued"), _run(2, "in_progress"), _run(2, "completed", "success")],
        )
        statuses: List[str] = []
        _monitor(client, SleepRecorder()).wait_for_completion(
            2, on_status=lambda run: statuses.append(run.status)
        )
        assert statuses == ["queued", "in_progress", "completed"]
