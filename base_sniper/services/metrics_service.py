"""
Rolling execution metrics.

Latency and gas samples live in bounded windows (the most recent
``window`` samples); averages are recomputed over the window on every
record, while execution counts are lifetime totals.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Deque, Optional, Union

from base_sniper.models.metrics import ExecutionMetrics
from base_sniper.utils.logger import logger_manager

logger = logger_manager.setup_logger(__name__)

WINDOW = 1000


class MetricsService:
    def __init__(self, window: int = WINDOW) -> None:
        self._window = window
        self._metrics = ExecutionMetrics(last_update=int(time.time() * 1000))
        self._execution_times: Deque[float] = deque(maxlen=window)
        self._gas_usages: Deque[int] = deque(maxlen=window)

    def record(self, latency_ms: float, success: bool, gas_used: Optional[Union[int, str]] = None) -> None:
        self._execution_times.append(float(latency_ms))
        m = self._metrics
        m.total_executions += 1
        if success:
            m.successful_executions += 1
        else:
            m.failed_executions += 1

        if gas_used is not None:
            try:
                self._gas_usages.append(int(gas_used))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid gas value: {gas_used!r}")

        self._recompute()

    def _recompute(self) -> None:
        m = self._metrics
        if self._execution_times:
            m.avg_execution_time = sum(self._execution_times) / len(self._execution_times)
        if m.total_executions > 0:
            m.success_rate = m.successful_executions / m.total_executions * 100
        if self._gas_usages:
            # integer sum: exact for any gas magnitude
            m.avg_gas_used = str(sum(self._gas_usages) // len(self._gas_usages))
        m.last_update = int(time.time() * 1000)

    def snapshot(self) -> ExecutionMetrics:
        return self._metrics.model_copy()

    def reset(self) -> None:
        self._metrics = ExecutionMetrics(last_update=int(time.time() * 1000))
        self._execution_times.clear()
        self._gas_usages.clear()
