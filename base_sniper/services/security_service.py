"""
Heuristic token safety check.

Reads on-chain facts only (bytecode, owner share of supply, total supply,
pool liquidity). It is advisory: the engine never calls it on its own and a
failing check never raises.
"""

from __future__ import annotations

from typing import Optional

from base_sniper.models.security import SecurityCheckResult, SecurityChecks
from base_sniper.services.liquidity_service import LiquidityService
from base_sniper.utils.event_log import EventLog
from base_sniper.utils.logger import log_function, logger_manager
from base_sniper.utils.web3_utils import is_zero_address, normalize_address

logger = logger_manager.setup_logger(__name__)

RISK_WEIGHTS = {
    "unverified": 2,
    "ownership": 3,
    "honeypot": 4,
    "holders": 2,
}


class SecurityService:
    def __init__(
        self,
        chain,
        liquidity: Optional[LiquidityService],
        events: EventLog,
        max_owner_percentage: float = 50.0,
    ) -> None:
        self.chain = chain
        self.liquidity = liquidity
        self.events = events
        self.max_owner_percentage = max_owner_percentage

    @log_function
    async def validate_token(self, token_address: str, session_id: Optional[str] = None) -> SecurityCheckResult:
        token = normalize_address(token_address)
        checks = SecurityChecks()
        warnings = []
        try:
            has_code = await self._has_bytecode(token)
            checks.is_verified = has_code
            checks.honeypot_risk = not has_code
            if not has_code:
                warnings.append("Contract has no bytecode")
                warnings.append("Potential honeypot indicators detected")

            checks.ownership_risk = await self._owner_share_too_high(token)
            if checks.ownership_risk:
                warnings.append("High ownership concentration detected")

            checks.holder_distribution = await self._has_supply(token)
            if not checks.holder_distribution:
                warnings.append("Suspicious holder distribution")

            if self.liquidity is not None:
                found = await self.liquidity.probe(token, session_id)
                checks.has_liquidity = found.exists
                if not found.exists:
                    warnings.append("No liquidity found")

            risk_level = self.risk_level(checks)
            is_valid = risk_level != "critical" and len(warnings) < 3
            self.events.info(
                f"Security check for {token}: {risk_level} risk ({len(warnings)} warnings)", session_id
            )
            return SecurityCheckResult(is_valid=is_valid, risk_level=risk_level, checks=checks, warnings=warnings)

        except Exception as e:
            self.events.warning(f"Security validation error: {e}", session_id)
            return SecurityCheckResult(
                is_valid=False,
                risk_level="critical",
                checks=checks,
                warnings=["Security validation failed"],
            )

    @staticmethod
    def risk_level(checks: SecurityChecks) -> str:
        score = 0
        if not checks.is_verified:
            score += RISK_WEIGHTS["unverified"]
        if checks.ownership_risk:
            score += RISK_WEIGHTS["ownership"]
        if checks.honeypot_risk:
            score += RISK_WEIGHTS["honeypot"]
        if not checks.holder_distribution:
            score += RISK_WEIGHTS["holders"]

        if score >= 8:
            return "critical"
        if score >= 6:
            return "high"
        if score >= 3:
            return "medium"
        return "low"

    # ---------- individual checks ----------
    async def _has_bytecode(self, token: str) -> bool:
        code = await self.chain.get_code(token)
        return bool(code) and len(code) > 0

    async def _owner_share_too_high(self, token: str) -> bool:
        try:
            owner = await self.chain.token_owner(token)
        except Exception as e:
            # no owner() on the contract: nothing to concentrate
            logger.debug(f"[security] {token} owner() unavailable: {e}")
            return False
        if is_zero_address(owner):
            return False
        balance = await self.chain.token_balance(token, owner)
        supply = await self.chain.total_supply(token)
        if supply <= 0:
            return False
        share = balance / supply * 100
        logger.info(f"[security] {token} owner holds {share:.2f}% of supply")
        return share > self.max_owner_percentage

    async def _has_supply(self, token: str) -> bool:
        try:
            return await self.chain.total_supply(token) > 0
        except Exception as e:
            logger.debug(f"[security] {token} totalSupply() failed: {e}")
            return False
