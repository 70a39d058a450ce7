"""
Root conftest.py — Shared Pytest fixtures.

Provides fixtures for:
- A fake ``sf`` executable (an injected ``subprocess.run`` replacement).
- A SalesforceCLI wired to that fake.
- Scripted yes/no confirmations.
- A project directory with ``force-app`` and a deployment config.

No test touches the network or a real Salesforce CLI.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from sfdeploy.config.settings import DeployConfig
from sfdeploy.sf_cli.client import SalesforceCLI


# ---------------------------------------------------------------------------
# Fake Salesforce CLI
# ---------------------------------------------------------------------------


def envelope(result: Any = None, status: int = 0, message: str = "") -> str:
    """Render the ``--json`` envelope printed by ``sf``."""
    return json.dumps({"status": status, "result": result, "message": message})


class FakeSF:
    """
    Stands in for ``subprocess.run`` and answers ``sf`` commands.

    Responses are registered by argument prefix; the most recent matching
    registration wins. Unmatched commands succeed with an empty result.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[List[str], Dict[str, Any]]] = []
        self._responses: List[Tuple[Tuple[str, ...], int, str, str]] = []

    def on(
        self,
        *prefix: str,
        result: Any = None,
        returncode: int = 0,
        message: str = "",
        stdout: Optional[str] = None,
        stderr: str = "",
    ) -> "FakeSF":
        if stdout is None:
            stdout = envelope(result, status=1 if returncode else 0, message=message)
        self._responses.append((tuple(prefix), returncode, stdout, stderr))
        return self

    def __call__(self, command: Sequence[str], **kwargs: Any) -> subprocess.CompletedProcess:
        command = list(command)
        self.calls.append((command, kwargs))
        args = command[1:]
        for prefix, returncode, stdout, stderr in reversed(self._responses):
            if tuple(args[: len(prefix)]) == prefix:
                return subprocess.CompletedProcess(command, returncode, stdout, stderr)
        return subprocess.CompletedProcess(command, 0, envelope({}), "")

    def commands(self, *prefix: str) -> List[List[str]]:
        """Arguments (without the executable) of calls matching ``prefix``."""
        return [
            command[1:]
            for command, _ in self.calls
            if tuple(command[1 : 1 + len(prefix)]) == prefix
        ]


class ScriptedConfirm:
    """Answers confirmations from a list and records the prompts."""

    def __init__(self, *answers: bool) -> None:
        self.answers = list(answers)
        self.prompts: List[str] = []

    def __call__(self, prompt: str, default: bool) -> bool:
        self.prompts.append(prompt)
        return self.answers.pop(0) if self.answers else default


ORG_LIST_RESULT = {
    "nonScratchOrgs": [
        {
            "alias": "deploy-target",
            "username": "admin@example.com",
            "instanceUrl": "https://example.my.salesforce.com",
        },
    ],
    "scratchOrgs": [
        {
            "alias": "scratch",
            "username": "test-abc@example.com",
            "instanceUrl": "https://scratch.my.salesforce.com",
        },
    ],
}

ORG_DISPLAY_RESULT = {
    "username": "admin@example.com",
    "id": "00D000000000001AAA",
    "instanceUrl": "https://example.my.salesforce.com",
    "accessToken": "00D!secret-token",
    "alias": "deploy-target",
}


@pytest.fixture
def fake_sf() -> FakeSF:
    """Fake ``sf`` with an authenticated ``deploy-target`` org."""
    fake = FakeSF()
    fake.on("org", "list", result=ORG_LIST_RESULT)
    fake.on("org", "display", result=ORG_DISPLAY_RESULT)
    return fake


@pytest.fixture
def cli(fake_sf: FakeSF) -> SalesforceCLI:
    return SalesforceCLI(runner=fake_sf)


# ---------------------------------------------------------------------------
# Project Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temporary project root with a force-app directory, used as cwd."""
    (tmp_path / "force-app" / "main" / "default").mkdir(parents=True)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove deployment variables from the environment for the test."""
    for name in (
        "GITHUB_TOKEN",
        "SF_ORG_ALIAS",
        "SF_INSTANCE_URL",
        "SF_CLIENT_ID",
        "SF_REDIRECT_URI",
        "GITHUB_OWNER",
        "GITHUB_REPO",
        "GITHUB_WORKFLOW",
    ):
        # setenv first so teardown also removes values loaded from .env files
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


@pytest.fixture
def deploy_config() -> DeployConfig:
    return DeployConfig.from_dict(
        {
            "github": {"owner": "acme", "repo": "sf-demo"},
            "portal": {"client_id": "3MVG9-client", "redirect_uri": "http://testserver/"},
        },
        environ={"GITHUB_TOKEN": "ghp_test"},
    )
