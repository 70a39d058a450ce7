"""
Salesforce OAuth implicit grant helpers.

The portal page sends the browser to the org's authorize endpoint with
``response_type=token``; Salesforce redirects back with the session in
the URL fragment. These helpers build that URL and parse the fragment.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlencode

AUTHORIZE_PATH = "/services/oauth2/authorize"


class PortalError(Exception):
    """Raised for OAuth errors and bad relay requests."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


def new_state() -> str:
    return secrets.token_urlsafe(24)


def build_authorize_url(
    login_url: str,
    client_id: str,
    redirect_uri: str,
    state: str,
    scope: Optional[str] = None,
) -> str:
    """
    Authorization URL for the implicit flow.

    Raises:
        PortalError: If the connected app client ID is not configured.
    """
    if not client_id:
        raise PortalError("portal.client_id is not configured")
    params = {
        "response_type": "token",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "state": state,
    }
    if scope:
        params["scope"] = scope
    return f"{login_url.rstrip('/')}{AUTHORIZE_PATH}?{urlencode(params)}"


@dataclass
class ImplicitGrant:
    """Session returned by the implicit flow."""

    access_token: str
    instance_url: str
    state: str = ""
    issued_at: Optional[str] = None
    id: Optional[str] = None
    token_type: Optional[str] = None

    def __repr__(self) -> str:
        return f"ImplicitGrant(instance_url={self.instance_url!r}, state={self.state!r})"


def parse_fragment(fragment: str) -> ImplicitGrant:
    """
    Parse ``#access_token=...&instance_url=...`` into an ImplicitGrant.

    Raises:
        PortalError: If Salesforce returned an error or no token.
    """
    values = {key: items[0] for key, items in parse_qs(fragment.lstrip("#")).items()}

    if "error" in values or "error_description" in values:
        description = values.get("error_description") or values.get("error")
        raise PortalError(f"Salesforce login failed: {description}")
    if not values.get("access_token"):
        raise PortalError("No access token in the OAuth response")
    if not values.get("instance_url", "").startswith("https://"):
        raise PortalError("Missing or invalid instance_url in the OAuth response")

    return ImplicitGrant(
        access_token=values["access_token"],
        instance_url=values["instance_url"],
        state=values.get("state", ""),
        issued_at=values.get("issued_at"),
        id=values.get("id"),
        token_type=values.get("token_type"),
    )
