"""
Atomic Action Base Module.

Every deployment step (log in, verify an org, retrieve, deploy, create a
package, trigger a workflow) runs as an atomic action. An action never
raises to its caller: it reports an ActionResult, and the command-line
entry points turn that result into a process exit code.

Outcomes:
    SUCCESS  the step completed.
    SKIPPED  the user declined a confirmation (exit code 0).
    ERROR    the step raised (exit code 1).
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from loguru import logger

Confirm = Callable[[str, bool], bool]


class ActionStatus(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class ActionCancelled(Exception):
    """Raised inside an action when the user declines a confirmation."""


@dataclass
class ActionResult:
    """
    Outcome of one deployment step.

    Attributes:
        status: SUCCESS, SKIPPED or ERROR.
        data: What the step produced (org details, package IDs, run outcome...).
        message: One-line description for logs.
        duration_ms: Wall time of the step.
        error: Exception text when the step failed.
    """

    status: ActionStatus = ActionStatus.SUCCESS
    data: Any = None
    message: str = ""
    duration_ms: float = 0.0
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status is ActionStatus.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.status is ActionStatus.ERROR

    @property
    def exit_code(self) -> int:
        """0 for success and cancellation, 1 for errors."""
        return 1 if self.is_failure else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "data": self.data,
            "message": self.message,
            "duration_ms": round(self.duration_ms, 3),
            "error": self.error,
        }


class AtomicAction(ABC):
    """
    Base class for deployment steps.

    ``run`` calls ``_validate``, then ``_execute``, and always ``_cleanup``
    (temporary manifests are removed there). Subclasses implement
    ``_execute`` and raise to signal failure; raising ActionCancelled
    marks the step as skipped instead.

    Example::

        class _VerifyOrgAction(AtomicAction):
            def _execute(self, **kwargs):
                return cli.display_org(kwargs["alias"])

        info = _VerifyOrgAction(name="verify_org").run(alias="deploy-target").data
    """

    def __init__(self, name: str) -> None:
        self.name = name

    def run(self, **kwargs: Any) -> ActionResult:
        """Run the step and package its outcome; never raises."""
        logger.debug(f"[Action: {self.name}] Starting with params: {sorted(kwargs)}")
        started = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - started) * 1000

        try:
            self._validate(**kwargs)
            data = self._execute(**kwargs)
        except ActionCancelled as e:
            message = str(e) or f"{self.name} cancelled"
            logger.info(message)
            return ActionResult(status=ActionStatus.SKIPPED, message=message, duration_ms=elapsed())
        except Exception as e:
            logger.error(f"{e}")
            return ActionResult(
                status=ActionStatus.ERROR,
                message=f"{self.name} failed: {e}",
                duration_ms=elapsed(),
                error=str(e),
            )
        finally:
            self._cleanup(**kwargs)

        duration_ms = elapsed()
        logger.debug(f"[Action: {self.name}] Completed in {duration_ms:.1f}ms")
        return ActionResult(data=data, message=f"{self.name} completed", duration_ms=duration_ms)

    def _validate(self, **kwargs: Any) -> None:
        """Check arguments before anything runs; raise ValueError to reject them."""

    @abstractmethod
    def _execute(self, **kwargs: Any) -> Any:
        ...

    def _cleanup(self, **kwargs: Any) -> None:
        """Release anything ``_execute`` created, even after a failure."""


def ask_yes_no(prompt: str, default: bool = False) -> bool:
    """Ask a yes/no question on the terminal; an empty answer takes the default."""
    suffix = "(Y/n)" if default else "(y/N)"
    try:
        reply = input(f"{prompt} {suffix}: ").strip().lower()
    except EOFError:
        return default
    if not reply:
        return default
    return reply.startswith("y")


def confirm_or_cancel(confirm: Confirm, prompt: str, default: bool, cancelled: str) -> None:
    """
    Raises:
        ActionCancelled: With message ``cancelled`` when the answer is no.
    """
    if not confirm(prompt, default):
        raise ActionCancelled(cancelled)
