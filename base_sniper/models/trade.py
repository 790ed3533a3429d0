"""
Trade records and execution outcomes.

``Trade`` is one completed round trip (buy then sell) as kept by the ledger;
``TradeResult`` is the outcome of a single buy execution attempt.
"""

from __future__ import annotations

import time
import uuid
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def _trade_id() -> str:
    return f"trade-{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"


class Trade(BaseModel):
    id: str = Field(default_factory=_trade_id)
    token_address: str
    token_symbol: str
    buy_price: float
    sell_price: float
    amount: float
    profit: float = 0.0
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))
    tx_hash: str

    @field_validator("token_symbol", "tx_hash")
    @classmethod
    def _no_delimiters(cls, v: str) -> str:
        # CSV export does not escape, so delimiters are rejected here.
        if any(c in v for c in (",", "\n", "\r")):
            raise ValueError("must not contain commas or line breaks")
        return v

    @model_validator(mode="after")
    def _compute_profit(self) -> "Trade":
        self.profit = (self.sell_price - self.buy_price) * self.amount
        return self


class PnLSummary(BaseModel):
    total_trades: int
    successful_trades: int
    total_profit: float
    total_loss: float
    win_rate: float
    trades: List[Trade]


class TradeResult(BaseModel):
    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    gas_used: Optional[int] = None
    effective_gas_price: Optional[int] = None
    amount_out: Optional[int] = None
