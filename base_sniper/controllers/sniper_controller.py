"""
Caller-facing entry points for the sniper engine.

Every method validates its input, delegates to ``SniperOrchestrator`` and
answers with a plain dict envelope ``{"ok": bool, "message": str, ...}``.
Nothing raised by the engine escapes this layer.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from base_sniper.exceptions import SniperError
from base_sniper.orchestrators.sniper_orchestrator import SniperOrchestrator
from base_sniper.services.security_service import SecurityService
from base_sniper.utils.logger import log_function, logger_manager
from base_sniper.utils.validators import (
    sanitize_address,
    validate_buy_amount,
    validate_session_id,
    validate_slippage,
    validate_token_address,
)

logger = logger_manager.setup_logger(__name__)

Envelope = Dict[str, Any]


def _fail(message: str, kind: str = "InvalidInput") -> Envelope:
    return {"ok": False, "message": message, "error_kind": kind}


class SniperController:
    def __init__(
        self,
        engine: SniperOrchestrator,
        security: Optional[SecurityService] = None,
        max_buy_eth: float = 10.0,
    ) -> None:
        self.engine = engine
        self.security = security
        self.max_buy_eth = max_buy_eth

    @log_function
    async def start(self, token_address: Any, buy_amount_eth: Any, slippage_bps: Any) -> Envelope:
        for ok, error in (
            validate_token_address(token_address),
            validate_buy_amount(buy_amount_eth, self.max_buy_eth),
            validate_slippage(slippage_bps),
        ):
            if not ok:
                return _fail(error)

        try:
            session_id = await self.engine.start_sniping(
                sanitize_address(token_address), buy_amount_eth, slippage_bps
            )
        except SniperError as e:
            return _fail(e.message, e.kind)
        except Exception as e:
            logger.exception(f"[controller] start failed: {e}")
            return _fail(str(e), type(e).__name__)
        return {"ok": True, "message": "Sniper started successfully", "session_id": session_id}

    @log_function
    async def stop(self, session_id: Any) -> Envelope:
        ok, error = validate_session_id(session_id)
        if not ok:
            return _fail(error)
        if self.engine.get_session_status(session_id) is None:
            return _fail("Session not found", "NotFound")
        await self.engine.stop_sniping(session_id)
        return {"ok": True, "message": "Sniper stopped successfully", "session_id": session_id}

    def session(self, session_id: Any) -> Envelope:
        ok, error = validate_session_id(session_id)
        if not ok:
            return _fail(error)
        session = self.engine.get_session_status(session_id)
        if session is None:
            return _fail("Session not found", "NotFound")
        return {"ok": True, "message": "", "session": session.model_dump(mode="json")}

    def sessions(self, active_only: bool = False) -> Envelope:
        items = self.engine.get_active_sessions() if active_only else self.engine.get_all_sessions()
        return {"ok": True, "message": "", "sessions": [s.model_dump(mode="json") for s in items]}

    def metrics(self) -> Envelope:
        return {"ok": True, "message": "", "metrics": self.engine.get_metrics().model_dump(mode="json")}

    def pnl(self) -> Envelope:
        return {"ok": True, "message": "", "pnl": self.engine.calculate_pnl().model_dump(mode="json")}

    def export_csv(self) -> Envelope:
        return {"ok": True, "message": "", "csv": self.engine.export_to_csv()}

    def logs(self, session_id: Optional[str] = None) -> Envelope:
        if session_id is not None:
            ok, error = validate_session_id(session_id)
            if not ok:
                return _fail(error)
        entries = self.engine.get_logs(session_id)
        return {"ok": True, "message": "", "logs": [e.model_dump(mode="json") for e in entries]}

    @log_function
    async def security_check(self, token_address: Any) -> Envelope:
        ok, error = validate_token_address(token_address)
        if not ok:
            return _fail(error)
        if self.security is None:
            return _fail("Security checks are not configured", "Unavailable")
        result = await self.security.validate_token(sanitize_address(token_address))
        return {"ok": True, "message": "", "result": result.model_dump(mode="json")}

    @log_function
    def close_position(self, session_id: Any, sell_price: Optional[float] = None, tx_hash: Optional[str] = None) -> Envelope:
        ok, error = validate_session_id(session_id)
        if not ok:
            return _fail(error)
        try:
            trade = self.engine.close_position(session_id, sell_price, tx_hash)
        except SniperError as e:
            return _fail(e.message, e.kind)
        return {"ok": True, "message": "Position closed", "trade": trade.model_dump(mode="json")}
