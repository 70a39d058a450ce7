"""
GitHub Actions REST API Client.

Provides a dedicated client for the parts of the GitHub REST API used to
drive a deployment workflow:
- Token authentication.
- Dispatching a ``workflow_dispatch`` event with inputs.
- Listing and fetching workflow runs and their jobs.
- Downloading plain-text job logs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

API_VERSION = "2022-11-28"

DISPATCH_HINTS = {
    401: "Bad credentials: check that GITHUB_TOKEN is valid and not expired",
    403: "Forbidden: the token needs the 'workflow' scope (or Actions write permission)",
    404: "Not found: check the repository owner/name and the workflow file name",
    422: "Unprocessable: the ref does not exist or the inputs do not match the workflow",
}


class GitHubActionsError(Exception):
    """Raised when a GitHub API operation fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class WorkflowDispatchError(GitHubActionsError):
    """Raised when a workflow_dispatch request is rejected."""


class RunTimeoutError(GitHubActionsError):
    """Raised when polling gives up before a run reaches the expected state."""


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class WorkflowRun:
    """A single workflow run as returned by the runs endpoints."""

    id: int
    status: str = ""
    conclusion: Optional[str] = None
    html_url: str = ""
    created_at: Optional[datetime] = None
    event: str = ""
    head_branch: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "WorkflowRun":
        return cls(
            id=int(data["id"]),
            status=data.get("status") or "",
            conclusion=data.get("conclusion"),
            html_url=data.get("html_url") or "",
            created_at=_parse_timestamp(data.get("created_at")),
            event=data.get("event") or "",
            head_branch=data.get("head_branch") or "",
        )

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def succeeded(self) -> bool:
        return self.is_completed and self.conclusion == "success"

    @property
    def state(self) -> str:
        """Conclusion once completed, status before that."""
        if self.is_completed and self.conclusion:
            return self.conclusion
        return self.status


@dataclass
class WorkflowJob:
    """A job within a workflow run."""

    id: int
    name: str = ""
    status: str = ""
    conclusion: Optional[str] = None
    html_url: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "WorkflowJob":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            status=data.get("status") or "",
            conclusion=data.get("conclusion"),
            html_url=data.get("html_url") or "",
        )


class GitHubActionsClient:
    """
    Client for the GitHub Actions REST API of a single repository.

    Usage::

        client = GitHubActionsClient(owner="dfelcey", repo="sf-demo", token=token)
        client.dispatch_workflow("deploy-with-login.yml", ref="main")
        runs = client.list_runs("deploy-with-login.yml", event="workflow_dispatch")
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str,
        api_url: str = "https://api.github.com",
        timeout_sec: int = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            owner: Repository owner (user or organisation).
            repo: Repository name.
            token: Personal access token or app token.
            api_url: API base URL (GitHub Enterprise uses its own).
            timeout_sec: Request timeout in seconds.
            session: Pre-built session, mainly for tests.
        """
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self._token = token
        self._session = session
        logger.debug(f"GitHubActionsClient initialized — repo={owner}/{repo}, url={self.api_url}")

    @property
    def is_configured(self) -> bool:
        """Check if the client has minimum configuration to operate."""
        return bool(self.owner and self.repo and self._token)

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    @property
    def actions_url(self) -> str:
        """Browser URL of the repository's Actions tab."""
        return f"https://github.com/{self.owner}/{self.repo}/actions"

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        self._session.headers.update({
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": API_VERSION,
        })
        return self._session

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        """
        Make an authenticated API request.

        Raises:
            GitHubActionsError: On connection failures and timeouts.
        """
        session = self._get_session()
        url = f"{self.api_url}{endpoint}"
        logger.debug(f"GitHub API {method} {url}")

        try:
            return session.request(method=method, url=url, timeout=self.timeout_sec, **kwargs)
        except requests.exceptions.Timeout as e:
            raise GitHubActionsError(
                f"GitHub API request timed out after {self.timeout_sec}s"
            ) from e
        except requests.exceptions.RequestException as e:
            raise GitHubActionsError(f"Cannot connect to GitHub: {e}") from e

    def _get_json(self, endpoint: str, **kwargs: Any) -> Dict[str, Any]:
        response = self._request("GET", endpoint, **kwargs)
        if response.status_code != 200:
            raise GitHubActionsError(
                f"GET {endpoint} failed: HTTP {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )
        return response.json()

    # ------------------------------------------------------------------
    # Workflow Dispatch
    # ------------------------------------------------------------------

    def dispatch_workflow(
        self,
        workflow_file: str,
        ref: str = "main",
        inputs: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Trigger a workflow_dispatch event.

        Args:
            workflow_file: Workflow file name (e.g., "deploy-with-login.yml") or ID.
            ref: Branch or tag to run the workflow on.
            inputs: Workflow inputs; values are sent as strings.

        Raises:
            WorkflowDispatchError: If GitHub does not answer 204 No Content.
        """
        logger.info(f"Triggering GitHub Actions workflow: {workflow_file}")
        logger.info(f"Repository: {self.owner}/{self.repo}")

        payload: Dict[str, Any] = {"ref": ref}
        if inputs:
            payload["inputs"] = {k: str(v) for k, v in inputs.items()}

        endpoint = f"{self.repo_path}/actions/workflows/{workflow_file}/dispatches"
        response = self._request("POST", endpoint, json=payload)

        if response.status_code == 204:
            logger.success("Workflow triggered successfully!")
            return

        hint = DISPATCH_HINTS.get(response.status_code, "Unexpected response")
        raise WorkflowDispatchError(
            f"Failed to trigger workflow (HTTP {response.status_code}): {hint}. "
            f"Response: {response.text[:500]}",
            status_code=response.status_code,
        )

    # ------------------------------------------------------------------
    # Runs and Jobs
    # ------------------------------------------------------------------

    def list_runs(
        self,
        workflow_file: Optional[str] = None,
        branch: Optional[str] = None,
        event: Optional[str] = None,
        per_page: int = 10,
    ) -> List[WorkflowRun]:
        """List the most recent runs, newest first."""
        if workflow_file:
            endpoint = f"{self.repo_path}/actions/workflows/{workflow_file}/runs"
        else:
            endpoint = f"{self.repo_path}/actions/runs"

        params: Dict[str, Any] = {"per_page": per_page}
        if branch:
            params["branch"] = branch
        if event:
            params["event"] = event

        data = self._get_json(endpoint, params=params)
        return [WorkflowRun.from_api(run) for run in data.get("workflow_runs", [])]

    def get_run(self, run_id: int) -> WorkflowRun:
        return WorkflowRun.from_api(self._get_json(f"{self.repo_path}/actions/runs/{run_id}"))

    def list_jobs(self, run_id: int) -> List[WorkflowJob]:
        data = self._get_json(f"{self.repo_path}/actions/runs/{run_id}/jobs")
        return [WorkflowJob.from_api(job) for job in data.get("jobs", [])]

    def get_job_logs(self, job_id: int) -> str:
        """
        Download a job's plain-text log.

        GitHub answers with a redirect to a short-lived download URL, which
        requests follows. Logs that are not available yet come back empty.
        """
        response = self._request("GET", f"{self.repo_path}/actions/jobs/{job_id}/logs")
        if response.status_code == 404:
            logger.debug(f"Logs for job {job_id} not available yet")
            return ""
        if response.status_code != 200:
            raise GitHubActionsError(
                f"Failed to fetch logs for job {job_id}: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.text

    def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None
