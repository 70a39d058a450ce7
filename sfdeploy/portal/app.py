"""
Deployment Portal.

A small FastAPI app that serves the login page, hands out OAuth
parameters with a one-time ``state``, and relays the Salesforce session
from the implicit-flow redirect to the GitHub workflow dispatch. The
GitHub token stays on the server.
"""

from __future__ import annotations

import threading
import time
import webbrowser
from pathlib import Path
from typing import Callable, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse, JSONResponse
from loguru import logger
from pydantic import BaseModel

from sfdeploy.config.settings import DeployConfig
from sfdeploy.github.actions_client import GitHubActionsClient, GitHubActionsError
from sfdeploy.portal.oauth import PortalError, build_authorize_url, new_state, parse_fragment

STATIC_DIR = Path(__file__).parent / "static"

STATE_TTL_SEC = 600

ClientFactory = Callable[[], GitHubActionsClient]


class RelayRequest(BaseModel):
    fragment: str


class StateStore:
    """One-time OAuth ``state`` values with an expiry."""

    def __init__(self, ttl_sec: float = STATE_TTL_SEC, clock: Callable[[], float] = time.monotonic):
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._issued: Dict[str, float] = {}
        self._lock = threading.Lock()

    def issue(self) -> str:
        state = new_state()
        with self._lock:
            self._purge()
            self._issued[state] = self._clock()
        return state

    def consume(self, state: str) -> bool:
        """True once for a state issued within the TTL."""
        with self._lock:
            self._purge()
            return self._issued.pop(state, None) is not None

    def _purge(self) -> None:
        now = self._clock()
        for state, issued_at in list(self._issued.items()):
            if now - issued_at > self.ttl_sec:
                del self._issued[state]


def _default_client_factory(config: DeployConfig) -> ClientFactory:
    def factory() -> GitHubActionsClient:
        gh = config.github
        return GitHubActionsClient(
            owner=gh.owner,
            repo=gh.repo,
            token=gh.token,
            api_url=gh.api_url,
            timeout_sec=gh.timeout_sec,
        )

    return factory


def create_app(
    config: DeployConfig,
    client_factory: Optional[ClientFactory] = None,
    states: Optional[StateStore] = None,
) -> FastAPI:
    """
    Build the portal app.

    Args:
        config: Project configuration (portal and github sections are used).
        client_factory: Returns a GitHub client per relay; replaced in tests.
        states: OAuth state store; replaced in tests.
    """
    app = FastAPI(title="sfdeploy portal", docs_url=None, redoc_url=None)
    client_factory = client_factory or _default_client_factory(config)
    states = states or StateStore()
    portal = config.portal
    github = config.github

    @app.get("/")
    async def index():
        return FileResponse(STATIC_DIR / "index.html")

    @app.get("/health")
    async def health():
        return {"status": "alive", "service": "sfdeploy-portal"}

    @app.get("/api/config")
    async def oauth_config():
        state = states.issue()
        try:
            authorize_url = build_authorize_url(
                portal.login_url, portal.client_id, portal.redirect_uri, state, portal.scope
            )
        except PortalError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {
            "authorize_url": authorize_url,
            "client_id": portal.client_id,
            "login_url": portal.login_url,
            "redirect_uri": portal.redirect_uri,
            "scope": portal.scope,
            "state": state,
            "repository": f"{github.owner}/{github.repo}",
            "workflow_file": github.workflow_file,
        }

    # Plain def: runs in the threadpool since dispatch_workflow blocks.
    @app.post("/api/relay", status_code=202)
    def relay(request: RelayRequest):
        try:
            grant = parse_fragment(request.fragment)
        except PortalError as e:
            raise HTTPException(status_code=e.status_code, detail=str(e))
        if not grant.state or not states.consume(grant.state):
            raise HTTPException(status_code=403, detail="Unknown or expired OAuth state")

        logger.info(f"Relaying Salesforce session for {grant.instance_url}")
        client = client_factory()
        try:
            client.dispatch_workflow(
                github.workflow_file,
                ref=github.ref,
                inputs={"instance_url": grant.instance_url, "access_token": grant.access_token},
            )
        except GitHubActionsError as e:
            return JSONResponse(status_code=e.status_code or 502, content={"detail": str(e)})
        finally:
            client.close()

        return {
            "status": "dispatched",
            "instance_url": grant.instance_url,
            "actions_url": client.actions_url,
        }

    return app


def serve(config: DeployConfig, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the portal with uvicorn until interrupted."""
    host = host or config.portal.host
    port = port or config.portal.port
    logger.info(f"Portal listening on http://{host}:{port}/")
    uvicorn.run(create_app(config), host=host, port=port, log_level="warning")


def open_portal(url: str, opener: Callable[[str], bool] = webbrowser.open) -> bool:
    """Open ``url`` in a browser, printing it when no browser is available."""
    try:
        opened = opener(url)
    except webbrowser.Error:
        opened = False
    if not opened:
        print(f"Please visit: {url}")
    return opened
