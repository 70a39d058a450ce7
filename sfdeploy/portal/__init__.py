"""
Deployment Portal Module.

Browser-based trigger for the deployment workflow using the Salesforce
OAuth implicit flow.
"""

from sfdeploy.portal.app import StateStore, create_app, open_portal, serve
from sfdeploy.portal.oauth import ImplicitGrant, PortalError, build_authorize_url, parse_fragment

__all__ = [
    "ImplicitGrant",
    "PortalError",
    "StateStore",
    "build_authorize_url",
    "create_app",
    "open_portal",
    "parse_fragment",
    "serve",
]
