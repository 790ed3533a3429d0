from __future__ import annotations
import asyncio
import math
import time
from typing import Dict, List, Optional

from web3 import Web3

from base_sniper.controllers.autobuy_controller import AutoBuyController
from base_sniper.enums.session_status import SessionStatus
from base_sniper.exceptions import InvalidInputError, SessionNotFoundError
from base_sniper.models.liquidity import LiquidityResult
from base_sniper.models.log_entry import LogEntry
from base_sniper.models.metrics import ExecutionMetrics
from base_sniper.models.session import SniperSession
from base_sniper.models.trade import PnLSummary, Trade, TradeResult
from base_sniper.repositories.session_repository import SessionRepository
from base_sniper.repositories.trade_repository import TradeRepository
from base_sniper.services.liquidity_service import LiquidityService
from base_sniper.services.metrics_service import MetricsService
from base_sniper.services.price_monitor_service import PriceMonitorService
from base_sniper.utils.config import SniperSettings
from base_sniper.utils.constants import SLIPPAGE_BPS_MAX
from base_sniper.utils.event_log import EventLog
from base_sniper.utils.logger import logger_manager, log_function
from base_sniper.utils.scheduler import PollScheduler
from base_sniper.utils.web3_utils import normalize_address

logger = logger_manager.setup_logger(__name__)

HOUSEKEEPING_KEY = "housekeeping"
BANNER = "═" * 59


class SniperOrchestrator:
    """
    Drives every sniper session from start to outcome.

    Per session:
      create -> one-shot probe -> liquidity: execute now
                               -> none: status=monitoring, poll every
                                  ``liquidity_poll_interval_ms`` until found
                                  (then execute) or stopped.

    The scheduler holds at most one poller per session id. Every resumption
    after an await re-reads the session, so a stop issued meanwhile always
    wins over a late probe result.
    """

    def __init__(
        self,
        chain,
        sessions: SessionRepository,
        liquidity: LiquidityService,
        autobuy: AutoBuyController,
        metrics: MetricsService,
        trades: TradeRepository,
        price_monitor: PriceMonitorService,
        events: EventLog,
        settings: SniperSettings,
        scheduler: Optional[PollScheduler] = None,
    ) -> None:
        self.chain = chain
        self.sessions = sessions
        self.liquidity = liquidity
        self.autobuy = autobuy
        self.metrics = metrics
        self.trades = trades
        self.price_monitor = price_monitor
        self.events = events
        self.settings = settings
        self.scheduler = scheduler or PollScheduler()
        self._executions: Dict[str, asyncio.Task] = {}

    # ---------- public API ----------
    @log_function
    async def start_sniping(self, token_address: str, buy_amount_eth: float, slippage_bps: int) -> str:
        self._validate(token_address, buy_amount_eth, slippage_bps)
        token = normalize_address(token_address)

        session_id = self.sessions.create(token, float(buy_amount_eth), int(slippage_bps))
        self.events.info(BANNER, session_id)
        self.events.success(f"✓ Sniper started with session ID: {session_id}", session_id)
        self.events.info(BANNER, session_id)
        self.events.info(f"Token: {token}", session_id)
        self.events.info(f"Buy amount: {buy_amount_eth} ETH", session_id)
        self.events.info(f"Slippage: {slippage_bps} bps", session_id)

        self.events.info("[STEP 1] Checking liquidity immediately...", session_id)
        result = await self.liquidity.probe(token, session_id)

        if self._is_stopped(session_id):
            self.events.info("Session stopped during initial check; nothing to do", session_id)
            return session_id

        if result.exists:
            self.events.success(f"✓ LIQUIDITY CONFIRMED on {result.dex}!", session_id)
            self._log_reserves(result, session_id)
            self.events.info("[STEP 2] Executing buy transaction...", session_id)
            await self._execute(session_id, result)
        else:
            self.events.warning("⚠ No liquidity found - starting continuous monitoring", session_id)
            self.events.info(f"Monitoring interval: {self.settings.liquidity_poll_interval_ms}ms", session_id)
            self.sessions.update(session_id, status=SessionStatus.MONITORING)
            self._start_liquidity_polling(session_id)

        return session_id

    @log_function
    async def stop_sniping(self, session_id: str) -> None:
        session = self.sessions.get(session_id)
        if session is None:
            logger.info(f"stop_sniping: unknown session {session_id}")
            return
        if session.status == SessionStatus.STOPPED:
            self.events.info("Session already stopped", session_id)
            return

        self.events.info(f"Stopping sniper session {session_id}", session_id)
        self.sessions.stop(session_id)
        self.scheduler.cancel(session_id)
        self.price_monitor.stop_monitoring(session_id)

    def get_session_status(self, session_id: str) -> Optional[SniperSession]:
        return self.sessions.get(session_id)

    def get_all_sessions(self) -> List[SniperSession]:
        return self.sessions.list_all()

    def get_active_sessions(self) -> List[SniperSession]:
        return self.sessions.list_active()

    def get_metrics(self) -> ExecutionMetrics:
        return self.metrics.snapshot()

    def calculate_pnl(self) -> PnLSummary:
        return self.trades.summary()

    def export_to_csv(self) -> str:
        return self.trades.export_csv()

    def get_logs(self, session_id: Optional[str] = None) -> List[LogEntry]:
        return self.events.get_logs(session_id)

    def is_polling(self, session_id: str) -> bool:
        return self.scheduler.is_scheduled(session_id)

    # ---------- positions ----------
    def record_trade(
        self,
        token_address: str,
        token_symbol: str,
        buy_price: float,
        sell_price: float,
        amount: float,
        tx_hash: str,
    ) -> Trade:
        try:
            trade = Trade(
                token_address=normalize_address(token_address),
                token_symbol=token_symbol,
                buy_price=buy_price,
                sell_price=sell_price,
                amount=amount,
                tx_hash=tx_hash,
            )
        except ValueError as e:
            raise InvalidInputError(f"Invalid trade: {e}") from e
        self.trades.add(trade)
        self.events.success(f"Trade recorded: {trade.token_symbol} profit: {trade.profit:.8f} ETH")
        return trade

    def close_position(self, session_id: str, sell_price: Optional[float] = None, tx_hash: Optional[str] = None) -> Trade:
        """Record the round trip of a session's open position and stop its price feed."""
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError("Session not found", session_id=session_id)
        if not session.position_open or session.entry_price is None or not session.token_amount:
            raise InvalidInputError("Session has no open position", session_id=session_id)

        exit_price = sell_price if sell_price is not None else session.last_price
        if exit_price is None:
            raise InvalidInputError("No sell price given and no price observed yet", session_id=session_id)

        self.price_monitor.stop_monitoring(session_id)
        trade = self.record_trade(
            session.token_address,
            session.token_symbol or "UNKNOWN",
            session.entry_price,
            exit_price,
            session.token_amount,
            tx_hash or session.tx_hash or "",
        )
        self.sessions.update(session_id, position_open=False, last_price=exit_price)
        return trade

    # ---------- lifecycle ----------
    def start_housekeeping(self) -> None:
        """Evict finished sessions past their retention window, periodically."""
        async def _tick() -> bool:
            protected = set(self.scheduler.keys()) | set(self._executions)
            for sid in self.sessions.evict_expired(self.settings.session_ttl_secs, protected):
                self.events.clear_session_logs(sid)
            return True

        self.scheduler.schedule(HOUSEKEEPING_KEY, self.settings.housekeeping_interval_secs, _tick)

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()
        await self.price_monitor.shutdown()
        pending = list(self._executions.values())
        if pending:
            logger.info(f"Waiting for {len(pending)} in-flight execution(s)...")
            await asyncio.gather(*pending, return_exceptions=True)

    # ---------- internals ----------
    def _validate(self, token_address: str, buy_amount_eth: float, slippage_bps: int) -> None:
        if not isinstance(token_address, str) or not Web3.is_address(normalize_address(token_address)):
            raise InvalidInputError("Invalid token address", token_address=token_address)
        if isinstance(buy_amount_eth, bool) or not isinstance(buy_amount_eth, (int, float)) \
                or not math.isfinite(buy_amount_eth) or buy_amount_eth <= 0:
            raise InvalidInputError("Buy amount must be greater than 0", buy_amount_eth=buy_amount_eth)
        if isinstance(slippage_bps, bool) or not isinstance(slippage_bps, int) \
                or not 0 <= slippage_bps <= SLIPPAGE_BPS_MAX:
            raise InvalidInputError(f"Slippage must be between 0 and {SLIPPAGE_BPS_MAX} BPS", slippage_bps=slippage_bps)

    def _is_stopped(self, session_id: str) -> bool:
        session = self.sessions.get(session_id)
        return session is None or session.status == SessionStatus.STOPPED

    def _log_reserves(self, result: LiquidityResult, session_id: str) -> None:
        if result.reserves:
            self.events.info(f"Reserves: {result.reserves.reserve0} / {result.reserves.reserve1}", session_id)

    def _start_liquidity_polling(self, session_id: str) -> None:
        self.events.info("[MONITORING] Starting continuous liquidity monitoring...", session_id)
        check_count = 0

        async def _tick() -> bool:
            nonlocal check_count
            session = self.sessions.get(session_id)
            if session is None or session.status == SessionStatus.STOPPED:
                self.events.info(f"[MONITORING] Stopping monitoring for session {session_id}", session_id)
                return False

            check_count += 1
            if check_count % 5 == 0:
                self.events.info(f"[MONITORING] Check #{check_count}...", session_id)

            result = await self.liquidity.probe(session.token_address, session_id)
            if self._is_stopped(session_id):
                return False  # stopped while probing; result discarded
            if not result.exists:
                return True

            self.events.success(f"✓✓✓ LIQUIDITY DETECTED on {result.dex} after {check_count} checks!", session_id)
            self._log_reserves(result, session_id)
            self.events.info("[STEP 2] Executing buy transaction...", session_id)
            self._spawn_execution(session_id, result)
            return False

        self.scheduler.schedule(session_id, self.settings.liquidity_poll_interval_ms / 1000, _tick)

    def _spawn_execution(self, session_id: str, liquidity: LiquidityResult) -> None:
        task = asyncio.create_task(self._execute(session_id, liquidity), name=f"execute:{session_id}")
        self._executions[session_id] = task
        task.add_done_callback(lambda _t: self._executions.pop(session_id, None))

    async def _execute(self, session_id: str, liquidity: LiquidityResult) -> TradeResult:
        session = self.sessions.get(session_id)
        t0 = time.monotonic()
        result = await self.autobuy.execute_buy(
            session_id,
            session.token_address,
            session.buy_amount_eth,
            session.slippage_bps,
            liquidity.dex,
        )
        latency_ms = (time.monotonic() - t0) * 1000

        if result.error_kind == "Stopped":
            return result
        self.metrics.record(latency_ms, result.success, result.gas_used)

        if self._is_stopped(session_id):
            # outcome still recorded, but a stopped session keeps its status
            if result.tx_hash:
                self.sessions.update(session_id, tx_hash=result.tx_hash)
            return result

        if result.success:
            self.sessions.update(session_id, status=SessionStatus.ACTIVE, tx_hash=result.tx_hash, dex=liquidity.dex, error=None)
            await self._open_position(session_id, result)
        else:
            self.sessions.update(session_id, status=SessionStatus.ERROR, error=result.error, tx_hash=result.tx_hash)
        return result

    async def _open_position(self, session_id: str, result: TradeResult) -> None:
        session = self.sessions.get(session_id)
        token = session.token_address
        try:
            symbol = (await self.chain.token_symbol(token)).replace(",", "").strip() or "UNKNOWN"
            token_amount = entry_price = None
            if result.amount_out:
                decimals = await self.chain.token_decimals(token)
                token_amount = result.amount_out / 10 ** decimals
                entry_price = session.buy_amount_eth / token_amount
        except Exception as e:
            self.events.warning(f"Could not read position details: {e}", session_id)
            return

        if self._is_stopped(session_id):
            return
        has_position = token_amount is not None and token_amount > 0
        self.sessions.update(
            session_id,
            token_symbol=symbol,
            token_amount=token_amount,
            entry_price=entry_price,
            position_open=has_position,
        )
        if not has_position:
            self.events.warning("Received token amount unknown; position not tracked", session_id)
            return

        self.events.info(f"Position opened: {token_amount:.8f} {symbol} @ {entry_price:.12f} ETH", session_id)
        self.price_monitor.start_monitoring(token, session_id, lambda price: self._on_price(session_id, price))

    def _on_price(self, session_id: str, price: float) -> None:
        session = self.sessions.get(session_id)
        if session is None or not session.position_open:
            return
        self.sessions.update(session_id, last_price=price)
