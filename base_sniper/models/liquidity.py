"""
Result of a liquidity probe. Transient: never stored.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class Reserves(BaseModel):
    reserve0: int
    reserve1: int


class LiquidityResult(BaseModel):
    exists: bool
    dex: str
    pair_address: Optional[str] = None
    reserves: Optional[Reserves] = None
    error: Optional[str] = None
    detection_time_ms: float = 0.0
