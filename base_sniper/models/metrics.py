"""
Snapshot of execution performance counters.
"""

from __future__ import annotations

from pydantic import BaseModel


class ExecutionMetrics(BaseModel):
    avg_execution_time: float = 0.0
    success_rate: float = 0.0
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    avg_gas_used: str = "0"
    last_update: int = 0
