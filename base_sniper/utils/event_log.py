"""
Leveled event sink for session activity.

Events are kept in bounded in-memory buffers (global and per session) so an
outer layer can display them, and mirrored to Python logging. Emitting an
event never raises and never blocks the caller.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from typing import Callable, Deque, Dict, List, Optional

from base_sniper.enums.log_level import LogLevel
from base_sniper.models.log_entry import LogEntry
from base_sniper.utils.logger import SUCCESS, logger_manager

logger = logger_manager.setup_logger(__name__)

_PY_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: SUCCESS,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}

Listener = Callable[[LogEntry], None]


class EventLog:
    def __init__(self, max_global: int = 2000, max_per_session: int = 500) -> None:
        self._global: Deque[LogEntry] = deque(maxlen=max_global)
        self._sessions: Dict[str, Deque[LogEntry]] = {}
        self._max_per_session = max_per_session
        self._listeners: List[Listener] = []

    def log(self, level: LogLevel, message: str, session_id: Optional[str] = None) -> None:
        try:
            entry = LogEntry(
                id=f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}",
                level=level,
                message=message,
                timestamp=int(time.time() * 1000),
                session_id=session_id,
            )
            self._global.appendleft(entry)
            if session_id:
                buf = self._sessions.get(session_id)
                if buf is None:
                    buf = self._sessions[session_id] = deque(maxlen=self._max_per_session)
                buf.appendleft(entry)

            suffix = f" ({session_id})" if session_id else ""
            logger.log(_PY_LEVELS[level], f"{message}{suffix}")
        except Exception as e:
            logger.debug(f"event log write failed: {e}")
            return

        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception as e:
                logger.debug(f"event listener failed: {e}")

    def info(self, message: str, session_id: Optional[str] = None) -> None:
        self.log(LogLevel.INFO, message, session_id)

    def success(self, message: str, session_id: Optional[str] = None) -> None:
        self.log(LogLevel.SUCCESS, message, session_id)

    def warning(self, message: str, session_id: Optional[str] = None) -> None:
        self.log(LogLevel.WARNING, message, session_id)

    def error(self, message: str, session_id: Optional[str] = None) -> None:
        self.log(LogLevel.ERROR, message, session_id)

    # ---------- read back ----------
    def get_logs(self, session_id: Optional[str] = None) -> List[LogEntry]:
        """Newest first."""
        if session_id is None:
            return list(self._global)
        return list(self._sessions.get(session_id, ()))

    def clear_session_logs(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def clear(self) -> None:
        self._global.clear()
        self._sessions.clear()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe
