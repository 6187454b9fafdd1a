"""Access and status rules shared by every resource handler.

Everything here is a pure function of its arguments: no database access, no
clock reads except through the ``now`` parameter.

- ownership: a user may read, update or delete a resource they own, and an
  admin may do so for any resource.
- admin protection: a user whose role is ``admin`` can never be deleted,
  whoever asks.
- script status: ``start``/``pause``/``stop`` map to ``running``/``paused``/
  ``stopped`` regardless of the current status. Entering ``running`` stamps
  ``last_run``.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .errors import AccessDeniedError, InvalidActionError


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class ScriptStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class AccountStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


ACTION_STATUS: Dict[str, ScriptStatus] = {
    "start": ScriptStatus.RUNNING,
    "pause": ScriptStatus.PAUSED,
    "stop": ScriptStatus.STOPPED,
}


def is_admin(user: Any) -> bool:
    return user is not None and user.role == Role.ADMIN.value


def can_access(user: Any, owner_id: Optional[int]) -> bool:
    if user is None:
        return False
    return user.id == owner_id or is_admin(user)


def check_access(user: Any, owner_id: Optional[int]) -> None:
    if not can_access(user, owner_id):
        raise AccessDeniedError()


def check_deletable(target: Any) -> None:
    if is_admin(target):
        raise AccessDeniedError("Cannot delete admin users")


def status_for_action(action: str) -> ScriptStatus:
    """Look up the target status for an action verb.

    Raises InvalidActionError for anything outside start/pause/stop.
    """
    try:
        return ACTION_STATUS[action]
    except (KeyError, TypeError):
        raise InvalidActionError(str(action)) from None


def status_changes(status: ScriptStatus, now: datetime) -> Dict[str, Any]:
    """Column updates for moving a script into ``status`` at ``now``."""
    status = ScriptStatus(status)
    changes: Dict[str, Any] = {"status": status.value}
    if status is ScriptStatus.RUNNING:
        changes["last_run"] = now
    return changes
