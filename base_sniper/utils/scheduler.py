"""
Keyed recurring tasks on the running event loop.

``PollScheduler`` owns at most one task per key. Scheduling a key that is
already registered cancels the previous task first, so two pollers for the
same key never coexist. Ticks run sequentially inside the task: the next tick
starts only after the previous one has settled and the interval has elapsed.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, List

from base_sniper.utils.logger import logger_manager

logger = logger_manager.setup_logger(__name__)

# Returns True to keep polling, False to stop and deregister.
Tick = Callable[[], Awaitable[bool]]


class PollScheduler:
    def __init__(self) -> None:
        self._tasks: Dict[str, asyncio.Task] = {}

    def schedule(self, key: str, interval_secs: float, tick: Tick) -> asyncio.Task:
        self.cancel(key)
        task = asyncio.create_task(self._run(key, interval_secs, tick), name=f"poll:{key}")
        self._tasks[key] = task
        return task

    async def _run(self, key: str, interval_secs: float, tick: Tick) -> None:
        try:
            while True:
                await asyncio.sleep(interval_secs)
                try:
                    keep_going = await tick()
                except Exception as e:
                    # one bad tick must not end the poller
                    logger.exception(f"[scheduler] tick {key} failed: {e}")
                    continue
                if not keep_going:
                    return
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]

    def cancel(self, key: str) -> bool:
        """Cancel and deregister ``key``. Returns False when nothing was scheduled."""
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        if not task.done():
            task.cancel()
        return True

    def is_scheduled(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def keys(self) -> List[str]:
        return list(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
