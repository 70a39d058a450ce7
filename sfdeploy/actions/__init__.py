"""
Atomic Actions Module.

Contains reusable, atomic steps representing deployment operations.
These actions are the building blocks for every command:
- Org authentication and verification.
- Local source deployment and validation.
- Metadata and Agentforce asset retrieval.
- Package and scratch org management.
- Triggering the CI deployment workflow.
"""

from sfdeploy.actions.base import (
    ActionCancelled,
    ActionResult,
    ActionStatus,
    AtomicAction,
    ask_yes_no,
)
from sfdeploy.actions.agentforce_actions import AgentforceActions
from sfdeploy.actions.deploy_actions import DeployActions
from sfdeploy.actions.org_actions import OrgActions
from sfdeploy.actions.package_actions import PackageActions
from sfdeploy.actions.retrieve_actions import RetrieveActions
from sfdeploy.actions.trigger_actions import TriggerActions

__all__ = [
    "ActionCancelled",
    "ActionResult",
    "ActionStatus",
    "AgentforceActions",
    "AtomicAction",
    "DeployActions",
    "OrgActions",
    "PackageActions",
    "RetrieveActions",
    "TriggerActions",
    "ask_yes_no",
]
