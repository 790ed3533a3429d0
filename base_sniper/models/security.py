"""
Outcome of the heuristic token security check.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class SecurityChecks(BaseModel):
    is_verified: bool = False
    has_liquidity: bool = False
    ownership_risk: bool = False
    honeypot_risk: bool = False
    holder_distribution: bool = False


class SecurityCheckResult(BaseModel):
    is_valid: bool
    risk_level: str  # low | medium | high | critical
    checks: SecurityChecks = Field(default_factory=SecurityChecks)
    warnings: List[str] = Field(default_factory=list)
