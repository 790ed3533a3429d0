"""
Lifecycle states of a sniper session.

``ACTIVE`` and ``MONITORING`` may alternate while a session is live;
``STOPPED`` and ``ERROR`` are terminal.
"""

from __future__ import annotations

from enum import Enum


class SessionStatus(str, Enum):
    """Possible states for a sniper session."""

    ACTIVE = "active"
    MONITORING = "monitoring"
    STOPPED = "stopped"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.STOPPED, SessionStatus.ERROR)
