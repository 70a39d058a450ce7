"""
Unit Tests for the Deployment Portal.

Covers:
- OAuth implicit grant URL building and fragment parsing.
- One-time state handling.
- Portal endpoints (GitHub client mocked, FastAPI TestClient).
"""

from __future__ import annotations

from typing import List
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlencode, urlparse

import pytest
from fastapi.testclient import TestClient

from sfdeploy.config.settings import DeployConfig
from sfdeploy.github.actions_client import WorkflowDispatchError
from sfdeploy.portal.app import StateStore, create_app, open_portal
from sfdeploy.portal.oauth import PortalError, build_authorize_url, parse_fragment

INSTANCE_URL = "https://acme.my.salesforce.com"


def _fragment(state: str, **overrides: str) -> str:
    values = {
        "access_token": "00Dxx!session",
        "instance_url": INSTANCE_URL,
        "state": state,
        "token_type": "Bearer",
        **overrides,
    }
    return "#" + urlencode(values)


@pytest.fixture
def github_client() -> MagicMock:
    client = MagicMock()
    client.actions_url = "https://github.com/acme/sf-demo/actions"
    return client


@pytest.fixture
def portal(deploy_config: DeployConfig, github_client: MagicMock) -> TestClient:
    return TestClient(create_app(deploy_config, client_factory=lambda: github_client))


def _state(portal: TestClient) -> str:
    return portal.get("/api/config").json()["state"]


# ---------------------------------------------------------------------------
# OAuth Helpers
# ---------------------------------------------------------------------------


class TestOAuth:
    """Tests for the implicit grant helpers."""

    def test_authorize_url(self) -> None:
        """Test the authorize URL parameters."""
        url = build_authorize_url(
            "https://login.salesforce.com/", "client", "https://portal/", "s1", scope="api refresh_token"
        )
        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        assert parsed.path == "/services/oauth2/authorize"
        assert query["response_type"] == ["token"]
        assert query["redirect_uri"] == ["https://portal/"]
        assert query["state"] == ["s1"]
        assert query["scope"] == ["api refresh_token"]

    def test_authorize_url_requires_client_id(self) -> None:
        """Test that a missing client ID is reported."""
        with pytest.raises(PortalError):
            build_authorize_url("https://login.salesforce.com", "", "https://portal/", "s1")

    def test_parse_fragment(self) -> None:
        """Test a successful redirect fragment."""
        grant = parse_fragment(_fragment("s1"))
        assert grant.access_token == "00Dxx!session"
        assert grant.instance_url == INSTANCE_URL
        assert grant.state == "s1"
        assert "session" not in repr(grant)

    def test_parse_error_fragment(self) -> None:
        """Test that an OAuth error is surfaced."""
        with pytest.raises(PortalError, match="user denied"):
            parse_fragment("error=access_denied&error_description=user+denied")

    def test_parse_missing_token(self) -> None:
        """Test that a fragment without a token is rejected."""
        with pytest.raises(PortalError, match="No access token"):
            parse_fragment(f"instance_url={INSTANCE_URL}")

    def test_parse_insecure_instance(self) -> None:
        """Test that only https instance URLs are accepted."""
        with pytest.raises(PortalError, match="instance_url"):
            parse_fragment("access_token=x&instance_url=http://evil.example.com")


class TestStateStore:
    """Tests for the StateStore class."""

    def test_one_time(self) -> None:
        """Test that a state can only be used once."""
        store = StateStore()
        state = store.issue()
        assert store.consume(state)
        assert not store.consume(state)

    def test_expiry(self) -> None:
        """Test that states expire after the TTL."""
        now: List[float] = [1000.0]
        store = StateStore(ttl_sec=600, clock=lambda: now[0])
        state = store.issue()
        now[0] += 601
        assert not store.consume(state)

    def test_unknown(self) -> None:
        """Test that states never issued are rejected."""
        assert not StateStore().consume("made-up")


# ---------------------------------------------------------------------------
# Endpoint Tests
# ---------------------------------------------------------------------------


class TestPortalEndpoints:
    """Tests for the portal routes."""

    def test_index(self, portal: TestClient) -> None:
        """Test that the login page is served."""
        response = portal.get("/")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]

    def test_health(self, portal: TestClient) -> None:
        """Test the health endpoint."""
        assert portal.get("/health").json() == {"status": "alive", "service": "sfdeploy-portal"}

    def test_config(self, portal: TestClient) -> None:
        """Test the OAuth parameters handed to the page."""
        body = portal.get("/api/config").json()
        assert body["client_id"] == "3MVG9-client"
        assert body["repository"] == "acme/sf-demo"
        assert body["workflow_file"] == "deploy-with-login.yml"
        assert f"state={body['state']}" in body["authorize_url"]

    def test_config_never_exposes_github_token(self, portal: TestClient) -> None:
        """Test that the server-side token is not in the response."""
        assert "ghp_test" not in portal.get("/api/config").text

    def test_config_without_client_id(self, github_client: MagicMock) -> None:
        """Test that an unconfigured connected app is a 503."""
        config = DeployConfig.from_dict({}, environ={})
        response = TestClient(create_app(config, client_factory=lambda: github_client)).get("/api/config")
        assert response.status_code == 503

    def test_relay_dispatches(self, portal: TestClient, github_client: MagicMock) -> None:
        """Test that a valid fragment triggers the workflow."""
        response = portal.post("/api/relay", json={"fragment": _fragment(_state(portal))})

        assert response.status_code == 202
        assert response.json() == {
            "status": "dispatched",
            "instance_url": INSTANCE_URL,
            "actions_url": "https://github.com/acme/sf-demo/actions",
        }
        github_client.dispatch_workflow.assert_called_once_with(
            "deploy-with-login.yml",
            ref="main",
            inputs={"instance_url": INSTANCE_URL, "access_token": "00Dxx!session"},
        )
        github_client.close.assert_called_once()

    def test_relay_state_replay(self, portal: TestClient, github_client: MagicMock) -> None:
        """Test that a state cannot be replayed."""
        fragment = _fragment(_state(portal))
        assert portal.post("/api/relay", json={"fragment": fragment}).status_code == 202
        assert portal.post("/api/relay", json={"fragment": fragment}).status_code == 403
        assert github_client.dispatch_workflow.call_count == 1

    def test_relay_unknown_state(self, portal: TestClient, github_client: MagicMock) -> None:
        """Test that an unissued state is forbidden."""
        response = portal.post("/api/relay", json={"fragment": _fragment("forged")})
        assert response.status_code == 403
        github_client.dispatch_workflow.assert_not_called()

    def test_relay_oauth_error(self, portal: TestClient) -> None:
        """Test that an OAuth error fragment is a 400."""
        response = portal.post(
            "/api/relay", json={"fragment": "error=access_denied&error_description=denied"}
        )
        assert response.status_code == 400
        assert "denied" in response.json()["detail"]

    def test_relay_missing_fragment(self, portal: TestClient) -> None:
        """Test request body validation."""
        assert portal.post("/api/relay", json={}).status_code == 422

    def test_relay_dispatch_failure(self, portal: TestClient, github_client: MagicMock) -> None:
        """Test that GitHub's rejection is passed through."""
        github_client.dispatch_workflow.side_effect = WorkflowDispatchError(
            "Failed to trigger workflow (HTTP 404): Not found", status_code=404
        )
        response = portal.post("/api/relay", json={"fragment": _fragment(_state(portal))})
        assert response.status_code == 404
        assert "Not found" in response.json()["detail"]
        github_client.close.assert_called_once()


class TestOpenPortal:
    """Tests for open_portal."""

    def test_opened(self) -> None:
        """Test that nothing is printed when a browser opens."""
        assert open_portal("http://127.0.0.1:8765/", opener=lambda url: True)

    def test_fallback(self, capsys: pytest.CaptureFixture) -> None:
        """Test that the URL is printed when no browser is available."""
        assert not open_portal("http://127.0.0.1:8765/", opener=lambda url: False)
        assert "Please visit: http://127.0.0.1:8765/" in capsys.readouterr().out
