"""
Per-session price polling.

Each monitored session gets a recurring probe on the scheduler that reads
the reference venue's reserves and computes the price of one token in the
base asset (base reserve / token reserve). Observations are pushed onto a
bounded queue and delivered to the session's callback by a single consumer
task, so slow callbacks never delay the pollers. When the queue is full the
oldest pending update is dropped.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from base_sniper.models.venue import Venue
from base_sniper.utils.event_log import EventLog
from base_sniper.utils.logger import logger_manager
from base_sniper.utils.scheduler import PollScheduler
from base_sniper.utils.web3_utils import is_zero_address, normalize_address

logger = logger_manager.setup_logger(__name__)

PriceCallback = Callable[[float], Any]


@dataclass
class PriceUpdate:
    session_id: str
    token_address: str
    price: float


class PriceMonitorService:
    def __init__(
        self,
        chain,
        venue: Venue,
        base_asset: str,
        events: EventLog,
        interval_ms: int = 1000,
        queue_size: int = 100,
        scheduler: Optional[PollScheduler] = None,
    ) -> None:
        self.chain = chain
        self.venue = venue
        self.base_asset = base_asset
        self.events = events
        self.interval_secs = interval_ms / 1000
        self.scheduler = scheduler or PollScheduler()
        self._queue_size = queue_size
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._callbacks: Dict[str, PriceCallback] = {}
        self._price_cache: Dict[str, float] = {}
        self.dropped_updates = 0

    # ---------- public API ----------
    def start_monitoring(self, token_address: str, session_id: str, on_update: PriceCallback) -> None:
        token = normalize_address(token_address)
        self._ensure_consumer()
        self._callbacks[session_id] = on_update

        async def _tick() -> bool:
            try:
                price = await self.get_current_price(token)
            except Exception as e:
                self.events.warning(f"Price monitoring error: {e}", session_id)
                return True
            if price > 0:
                self._price_cache[token] = price
                self._publish(PriceUpdate(session_id, token, price))
            return True

        self.scheduler.schedule(self._key(session_id), self.interval_secs, _tick)
        self.events.info(f"Starting price monitoring for {token}", session_id)

    def stop_monitoring(self, session_id: str) -> None:
        self._callbacks.pop(session_id, None)
        if self.scheduler.cancel(self._key(session_id)):
            self.events.info(f"Stopped price monitoring for session {session_id}", session_id)

    def is_monitoring(self, session_id: str) -> bool:
        return self.scheduler.is_scheduled(self._key(session_id))

    def get_cached_price(self, token_address: str) -> Optional[float]:
        return self._price_cache.get(normalize_address(token_address))

    async def get_current_price(self, token_address: str) -> float:
        """Base asset per token on the reference venue; 0 when there is no usable pool."""
        pair = await self.chain.get_pair(self.venue.factory, token_address, self.base_asset)
        if is_zero_address(pair):
            return 0.0
        reserve0, reserve1 = await self.chain.get_reserves(pair)
        if reserve0 == 0 or reserve1 == 0:
            return 0.0
        token0, _ = await self.chain.get_pair_tokens(pair)
        if normalize_address(token0) == normalize_address(token_address):
            token_reserve, base_reserve = reserve0, reserve1
        else:
            token_reserve, base_reserve = reserve1, reserve0
        decimals = await self.chain.token_decimals(token_address)
        return (base_reserve / 1e18) / (token_reserve / 10 ** decimals)

    async def shutdown(self) -> None:
        for sid in list(self._callbacks):
            self.stop_monitoring(sid)
        if self._consumer and not self._consumer.done():
            self._consumer.cancel()
            await asyncio.gather(self._consumer, return_exceptions=True)
        self._consumer = None

    # ---------- queue ----------
    @staticmethod
    def _key(session_id: str) -> str:
        return f"price:{session_id}"

    def _ensure_consumer(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._queue_size)
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(self._consume(), name="price-monitor-consumer")

    def _publish(self, update: PriceUpdate) -> None:
        try:
            self._queue.put_nowait(update)
        except asyncio.QueueFull:
            self._queue.get_nowait()
            self._queue.task_done()
            self.dropped_updates += 1
            logger.warning(f"Price queue full; dropped oldest update ({self.dropped_updates} total)")
            self._queue.put_nowait(update)

    async def _consume(self) -> None:
        while True:
            update: PriceUpdate = await self._queue.get()
            try:
                callback = self._callbacks.get(update.session_id)
                if callback is None:
                    continue  # session stopped after the update was queued
                result = callback(update.price)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.events.warning(f"Price callback error: {e}", update.session_id)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued update has been delivered."""
        if self._queue is not None:
            await self._queue.join()
