"""
Deployment settings.

Typed view over the project configuration file. Every field has a default
suited to a standard SFDX project layout, so a project
without a config file still works. Environment variables (usually coming
from a ``.env`` file) take precedence over file values.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Mapping, Optional

DEFAULT_INSTANCE_URL = "https://login.salesforce.com"
DEFAULT_ORG_ALIAS = "deploy-target"
DEFAULT_API_VERSION = "60.0"

# environment variable -> (section, key)
ENV_OVERRIDES: Dict[str, tuple[str, str]] = {
    "SF_ORG_ALIAS": ("salesforce", "org_alias"),
    "SF_INSTANCE_URL": ("salesforce", "instance_url"),
    "SF_CLIENT_ID": ("portal", "client_id"),
    "SF_REDIRECT_URI": ("portal", "redirect_uri"),
    "GITHUB_OWNER": ("github", "owner"),
    "GITHUB_REPO": ("github", "repo"),
    "GITHUB_WORKFLOW": ("github", "workflow_file"),
}


@dataclass
class SalesforceSettings:
    """Target org and project layout."""

    org_alias: str = DEFAULT_ORG_ALIAS
    instance_url: str = DEFAULT_INSTANCE_URL
    source_dir: str = "force-app"
    output_dir: str = "force-app"
    api_version: str = DEFAULT_API_VERSION
    wait_minutes: int = 10


@dataclass
class GitHubSettings:
    """Repository hosting the deployment workflow."""

    owner: str = ""
    repo: str = ""
    workflow_file: str = "deploy-with-login.yml"
    ref: str = "main"
    api_url: str = "https://api.github.com"
    poll_interval_sec: float = 5
    max_attempts: int = 60
    run_discovery_attempts: int = 12
    timeout_sec: int = 30
    token: str = field(default="", repr=False)


@dataclass
class PortalSettings:
    """OAuth implicit-flow portal."""

    client_id: str = ""
    redirect_uri: str = "http://127.0.0.1:8765/"
    login_url: str = DEFAULT_INSTANCE_URL
    scope: str = "api refresh_token"
    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class DeployConfig:
    """Complete project configuration."""

    salesforce: SalesforceSettings = field(default_factory=SalesforceSettings)
    github: GitHubSettings = field(default_factory=GitHubSettings)
    portal: PortalSettings = field(default_factory=PortalSettings)

    @classmethod
    def from_dict(
        cls,
        data: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "DeployConfig":
        """
        Build settings from a parsed config mapping plus environment overrides.

        Unknown keys are ignored here; the schema rejects them on load.
        """
        data = data or {}
        environ = os.environ if environ is None else environ

        sections: Dict[str, Dict[str, Any]] = {
            name: dict(data.get(name) or {})
            for name in ("salesforce", "github", "portal")
        }
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = environ.get(env_name)
            if value:
                sections[section][key] = value

        github = _build(GitHubSettings, sections["github"])
        github.token = environ.get("GITHUB_TOKEN", "")

        return cls(
            salesforce=_build(SalesforceSettings, sections["salesforce"]),
            github=github,
            portal=_build(PortalSettings, sections["portal"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize without secrets."""
        data = asdict(self)
        data["github"].pop("token", None)
        return data


def _build(cls: type, values: Dict[str, Any]) -> Any:
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in values.items() if k in known})
