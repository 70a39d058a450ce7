"""
Unit Tests for the GitHub Integration Module.

Covers:
- GitHubActionsClient: configuration, dispatch, runs, jobs and logs (session mocked).
- Token loading from the environment and .env files.
- Storing credentials through a git credential helper.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest
import requests

from sfdeploy.github.actions_client import (
    GitHubActionsClient,
    GitHubActionsError,
    WorkflowDispatchError,
    WorkflowRun,
)
from sfdeploy.github.credentials import (
    CredentialsError,
    load_github_token,
    store_git_credentials,
)


def _response(status_code: int, payload: Optional[Dict[str, Any]] = None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = text
    return response


def _client(session: MagicMock, token: str = "ghp_test") -> GitHubActionsClient:
    return GitHubActionsClient(owner="acme", repo="sf-demo", token=token, session=session)


RUN_PAYLOAD = {
    "id": 42,
    "status": "in_progress",
    "conclusion": None,
    "html_url": "https://github.com/acme/sf-demo/actions/runs/42",
    "created_at": "2026-10-19T10:00:00Z",
    "event": "workflow_dispatch",
    "head_branch": "main",
}


# ---------------------------------------------------------------------------
# GitHubActionsClient Tests
# ---------------------------------------------------------------------------


class TestGitHubActionsClient:
    """Tests for the GitHubActionsClient class."""

    def test_is_configured(self) -> None:
        """Test that owner, repo and token are all required."""
        assert _client(MagicMock()).is_configured
        assert not _client(MagicMock(), token="").is_configured

    def test_actions_url(self) -> None:
        """Test the browser URL of the Actions tab."""
        assert _client(MagicMock()).actions_url == "https://github.com/acme/sf-demo/actions"

    def test_dispatch_success(self) -> None:
        """Test a dispatch accepted with 204 No Content."""
        session = MagicMock()
        session.request.return_value = _response(204)

        _client(session).dispatch_workflow(
            "deploy-with-login.yml", ref="main", inputs={"retries": 3}
        )

        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == (
            "https://api.github.com/repos/acme/sf-demo/actions/workflows/"
            "deploy-with-login.yml/dispatches"
        )
        assert kwargs["json"] == {"ref": "main", "inputs": {"retries": "3"}}

    def test_auth_headers(self) -> None:
        """Test that the bearer token and API version headers are set."""
        session = MagicMock()
        session.request.return_value = _response(204)
        _client(session).dispatch_workflow("deploy.yml")

        headers = session.headers.update.call_args.args[0]
        assert headers["Authorization"] == "Bearer ghp_test"
        assert headers["X-GitHub-Api-Version"] == "2022-11-28"

    @pytest.mark.parametrize(
        "status_code, hint",
        [(401, "Bad credentials"), (403, "workflow"), (404, "Not found"), (422, "ref does not exist")],
    )
    def test_dispatch_failure_hints(self, status_code: int, hint: str) -> None:
        """Test that rejected dispatches carry an actionable hint."""
        session = MagicMock()
        session.request.return_value = _response(status_code, text="{}")

        with pytest.raises(WorkflowDispatchError) as exc_info:
            _client(session).dispatch_workflow("deploy.yml")
        assert hint in str(exc_info.value)
        assert exc_info.value.status_code == status_code

    def test_dispatch_200_is_not_success(self) -> None:
        """Test that only 204 counts as a successful dispatch."""
        session = MagicMock()
        session.request.return_value = _response(200)
        with pytest.raises(WorkflowDispatchError, match="Unexpected response"):
            _client(session).dispatch_workflow("deploy.yml")

    def test_timeout(self) -> None:
        """Test that request timeouts become GitHubActionsError."""
        session = MagicMock()
        session.request.side_effect = requests.exceptions.Timeout()
        with pytest.raises(GitHubActionsError, match="timed out"):
            _client(session).get_run(1)

    def test_connection_error(self) -> None:
        """Test that connection failures become GitHubActionsError."""
        session = MagicMock()
        session.request.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(GitHubActionsError, match="Cannot connect"):
            _client(session).get_run(1)

    def test_list_runs(self) -> None:
        """Test run listing with filters."""
        session = MagicMock()
        session.request.return_value = _response(200, {"workflow_runs": [RUN_PAYLOAD]})

        runs = _client(session).list_runs("deploy.yml", branch="main", event="workflow_dispatch")

        assert [run.id for run in runs] == [42]
        assert runs[0].created_at.year == 2026
        assert session.request.call_args.kwargs["params"] == {
            "per_page": 10,
            "branch": "main",
            "event": "workflow_dispatch",
        }

    def test_get_run_failure(self) -> None:
        """Test that a non-200 run lookup raises with the status code."""
        session = MagicMock()
        session.request.return_value = _response(500, text="oops")
        with pytest.raises(GitHubActionsError) as exc_info:
            _client(session).get_run(42)
        assert exc_info.value.status_code == 500

    def test_list_jobs(self) -> None:
        """Test job listing."""
        session = MagicMock()
        session.request.return_value = _response(
            200, {"jobs": [{"id": 7, "name": "deploy", "status": "in_progress"}]}
        )
        jobs = _client(session).list_jobs(42)
        assert jobs[0].id == 7
        assert jobs[0].name == "deploy"

    def test_job_logs_not_ready(self) -> None:
        """Test that a 404 for logs means no logs yet."""
        session = MagicMock()
        session.request.return_value = _response(404)
        assert _client(session).get_job_logs(7) == ""

    def test_job_logs(self) -> None:
        """Test that the log text is returned."""
        session = MagicMock()
        session.request.return_value = _response(200, text="line one\nline two")
        assert _client(session).get_job_logs(7).endswith("line two")

    def test_close(self) -> None:
        """Test that close releases the session and tolerates repeats."""
        session = MagicMock()
        client = _client(session)
        client.close()
        client.close()
        session.close.assert_called_once()


class TestWorkflowRun:
    """Tests for the WorkflowRun dataclass."""

    def test_in_progress(self) -> None:
        """Test state before completion."""
        run = WorkflowRun.from_api(RUN_PAYLOAD)
        assert not run.is_completed
        assert run.state == "in_progress"

    def test_completed_failure(self) -> None:
        """Test state after a failed completion."""
        run = WorkflowRun.from_api({**RUN_PAYLOAD, "status": "completed", "conclusion": "failure"})
        assert run.is_completed
        assert not run.succeeded
        assert run.state == "failure"


# ---------------------------------------------------------------------------
# Credentials Tests
# ---------------------------------------------------------------------------


class TestLoadGitHubToken:
    """Tests for load_github_token."""

    def test_from_environment(self, tmp_path: Path) -> None:
        """Test that the environment wins without reading .env."""
        token = load_github_token(tmp_path / ".env", environ={"GITHUB_TOKEN": "ghp_env"})
        assert token == "ghp_env"

    def test_from_env_file(self, tmp_path: Path) -> None:
        """Test the .env fallback."""
        env_file = tmp_path / ".env"
        env_file.write_text("GITHUB_TOKEN=ghp_file\n", encoding="utf-8")
        assert load_github_token(env_file, environ={}) == "ghp_file"

    def test_missing_env_file(self, tmp_path: Path) -> None:
        """Test the hint when neither source exists."""
        with pytest.raises(CredentialsError, match="Copy .env.example"):
            load_github_token(tmp_path / ".env", environ={})

    def test_placeholder_rejected(self, tmp_path: Path) -> None:
        """Test that the .env.example placeholder is not a token."""
        env_file = tmp_path / ".env"
        env_file.write_text("GITHUB_TOKEN=your_github_token_here\n", encoding="utf-8")
        with pytest.raises(CredentialsError, match="GITHUB_TOKEN not set"):
            load_github_token(env_file, environ={})


class TestStoreGitCredentials:
    """Tests for store_git_credentials."""

    def test_payload(self) -> None:
        """Test the helper command and the credential payload."""
        runner = MagicMock(return_value=subprocess.CompletedProcess([], 0, "", ""))
        store_git_credentials("ghp_x", "octocat", runner=runner)

        command = runner.call_args.args[0]
        assert command == ["git", "credential-osxkeychain", "store"]
        payload = runner.call_args.kwargs["input"]
        assert "host=github.com\n" in payload
        assert "username=octocat\n" in payload
        assert "password=ghp_x\n" in payload

    def test_helper_failure(self) -> None:
        """Test that a failing helper raises with its stderr."""
        runner = MagicMock(return_value=subprocess.CompletedProcess([], 1, "", "no helper"))
        with pytest.raises(CredentialsError, match="no helper"):
            store_git_credentials("ghp_x", "octocat", helper="store", runner=runner)

    def test_git_missing(self) -> None:
        """Test that a missing git executable raises."""
        runner = MagicMock(side_effect=FileNotFoundError("git"))
        with pytest.raises(CredentialsError, match="git is not installed"):
            store_git_credentials("ghp_x", "octocat", runner=runner)
