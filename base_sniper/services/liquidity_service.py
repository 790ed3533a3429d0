from __future__ import annotations
import asyncio
import time
from typing import List, Optional

from web3 import Web3

from base_sniper.models.liquidity import LiquidityResult, Reserves
from base_sniper.models.venue import Venue
from base_sniper.utils.event_log import EventLog
from base_sniper.utils.logger import logger_manager
from base_sniper.utils.web3_utils import is_zero_address, normalize_address

logger = logger_manager.setup_logger(__name__)


class LiquidityService:
    """
    Probes venues, in order, for a (token, base asset) pair with reserves on
    both sides.

    The first venue reporting liquidity wins and later venues are not
    queried. A failing venue counts as "no liquidity" for that venue only.
    """

    def __init__(
        self,
        chain,
        venues: List[Venue],
        base_asset: str,
        events: EventLog,
        timeout_ms: int = 5000,
    ) -> None:
        self.chain = chain
        self.venues = list(venues)
        self.base_asset = base_asset
        self.events = events
        self.timeout_secs = timeout_ms / 1000

    async def probe(self, token_address: str, session_id: Optional[str] = None) -> LiquidityResult:
        t0 = time.monotonic()

        def elapsed() -> float:
            return (time.monotonic() - t0) * 1000

        token = normalize_address(token_address)
        if not Web3.is_address(token):
            self.events.error(f"Invalid token address: {token_address}", session_id)
            return LiquidityResult(exists=False, dex="none", error="Invalid address format", detection_time_ms=elapsed())

        self.events.info(f"[LIQUIDITY CHECK] Checking token: {token}", session_id)
        errors: List[str] = []
        for venue in self.venues:
            try:
                result = await asyncio.wait_for(self._check_venue(venue, token, session_id), self.timeout_secs)
            except asyncio.TimeoutError:
                errors.append(f"{venue.id}: timeout after {self.timeout_secs * 1000:.0f}ms")
                self.events.warning(f"    {venue.name} error: {errors[-1]}", session_id)
                continue
            except Exception as e:
                errors.append(f"{venue.id}: {e}")
                self.events.warning(f"    {venue.name} error: {e}", session_id)
                continue

            if result.exists:
                result.detection_time_ms = elapsed()
                self.events.success(f"✓ LIQUIDITY FOUND on {venue.name} in {result.detection_time_ms:.0f}ms", session_id)
                return result

        self.events.info(f"No liquidity found after {elapsed():.0f}ms", session_id)
        error = "; ".join(errors) if errors else "No liquidity found"
        return LiquidityResult(exists=False, dex="none", error=error, detection_time_ms=elapsed())

    async def _check_venue(self, venue: Venue, token: str, session_id: Optional[str]) -> LiquidityResult:
        self.events.info(f"  Checking {venue.name}...", session_id)
        pair = await self.chain.get_pair(venue.factory, token, self.base_asset)
        if is_zero_address(pair):
            self.events.info("    No pair found", session_id)
            return LiquidityResult(exists=False, dex=venue.id)

        self.events.info(f"    Pair found: {pair}", session_id)
        reserve0, reserve1 = await self.chain.get_reserves(pair)
        self.events.info(f"    Reserves: {reserve0} / {reserve1}", session_id)

        if reserve0 > 0 and reserve1 > 0:
            return LiquidityResult(
                exists=True,
                dex=venue.id,
                pair_address=pair,
                reserves=Reserves(reserve0=reserve0, reserve1=reserve1),
            )
        return LiquidityResult(exists=False, dex=venue.id, pair_address=pair)
