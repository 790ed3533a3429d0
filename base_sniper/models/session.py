"""
One user-initiated acquisition attempt for one token.

Sessions are owned by ``SessionRepository``; the engine is the only writer.
Times are epoch milliseconds.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from base_sniper.enums.session_status import SessionStatus


class SniperSession(BaseModel):
    id: str
    token_address: str
    buy_amount_eth: float
    slippage_bps: int
    status: SessionStatus = SessionStatus.ACTIVE
    start_time: int
    last_update: int
    tx_hash: Optional[str] = None
    error: Optional[str] = None

    # filled after a confirmed buy
    dex: Optional[str] = None
    token_symbol: Optional[str] = None
    token_amount: Optional[float] = None
    entry_price: Optional[float] = None
    last_price: Optional[float] = None
    position_open: bool = False

    @property
    def is_live(self) -> bool:
        return self.status in (SessionStatus.ACTIVE, SessionStatus.MONITORING)
