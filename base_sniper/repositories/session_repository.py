"""
In-memory session table.

This repository is the single source of truth for session records. Every
mutation is a single-key replacement of an immutable pydantic model, so a
reader never observes a half-updated session. Nothing is persisted across
restarts.
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Dict, Iterable, List, Optional

from base_sniper.enums.session_status import SessionStatus
from base_sniper.models.session import SniperSession
from base_sniper.utils.logger import logger_manager

logger = logger_manager.setup_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class SessionRepository:
    """Repository for sniper sessions keyed by id."""

    def __init__(self) -> None:
        self._sessions: Dict[str, SniperSession] = {}

    def create(self, token_address: str, buy_amount_eth: float, slippage_bps: int) -> str:
        now = _now_ms()
        session_id = f"session-{now}-{uuid.uuid4().hex}"
        self._sessions[session_id] = SniperSession(
            id=session_id,
            token_address=token_address,
            buy_amount_eth=buy_amount_eth,
            slippage_bps=slippage_bps,
            status=SessionStatus.ACTIVE,
            start_time=now,
            last_update=now,
        )
        return session_id

    def get(self, session_id: str) -> Optional[SniperSession]:
        return self._sessions.get(session_id)

    def update(self, session_id: str, **fields: Any) -> Optional[SniperSession]:
        """Merge ``fields`` into the session and stamp ``last_update``.

        Unknown ids are ignored. A terminal status is never replaced by a live
        one, so late results cannot revive a stopped session.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return None

        if fields.get("status") is not None:
            new_status = fields["status"] = SessionStatus(fields["status"])
            if session.status.is_terminal and not new_status.is_terminal:
                logger.debug(f"[sessions] {session_id}: ignoring {session.status.value} -> {new_status.value}")
                fields.pop("status")

        updated = session.model_copy(update={**fields, "last_update": _now_ms()})
        self._sessions[session_id] = updated
        return updated

    def stop(self, session_id: str) -> bool:
        """Set status to stopped. Returns False if unknown or already stopped."""
        session = self._sessions.get(session_id)
        if session is None or session.status == SessionStatus.STOPPED:
            return False
        self._sessions[session_id] = session.model_copy(
            update={"status": SessionStatus.STOPPED, "last_update": _now_ms()}
        )
        return True

    def list_all(self) -> List[SniperSession]:
        return list(self._sessions.values())

    def list_active(self) -> List[SniperSession]:
        return [s for s in self._sessions.values() if s.is_live]

    def __len__(self) -> int:
        return len(self._sessions)

    # ---------- retention ----------
    def evict_expired(self, ttl_secs: float, protected: Iterable[str] = (), now_ms: Optional[int] = None) -> List[str]:
        """
        Drop finished sessions whose last update is older than ``ttl_secs``.

        Finished means stopped, errored, or executed (active with a tx hash)
        with no open position. Ids in ``protected`` are always kept.
        """
        now_ms = now_ms if now_ms is not None else _now_ms()
        cutoff = now_ms - int(ttl_secs * 1000)
        keep = set(protected)
        evicted: List[str] = []
        for sid, s in list(self._sessions.items()):
            if sid in keep or s.position_open or s.last_update > cutoff:
                continue
            executed = s.status == SessionStatus.ACTIVE and s.tx_hash is not None
            if s.status.is_terminal or executed:
                del self._sessions[sid]
                evicted.append(sid)
        if evicted:
            logger.info(f"[sessions] evicted {len(evicted)} expired session(s)")
        return evicted
