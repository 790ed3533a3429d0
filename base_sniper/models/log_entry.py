from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from base_sniper.enums.log_level import LogLevel


class LogEntry(BaseModel):
    id: str
    level: LogLevel
    message: str
    timestamp: int
    session_id: Optional[str] = None
