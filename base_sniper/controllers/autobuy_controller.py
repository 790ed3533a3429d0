from __future__ import annotations
import time
from typing import Optional

from base_sniper.enums.session_status import SessionStatus
from base_sniper.exceptions import (
    InsufficientBalanceError,
    InvalidInputError,
    NoSignerError,
    SniperError,
    TransactionRevertedError,
)
from base_sniper.models.trade import TradeResult
from base_sniper.repositories.session_repository import SessionRepository
from base_sniper.utils.config import SniperSettings
from base_sniper.utils.event_log import EventLog
from base_sniper.utils.logger import logger_manager
from base_sniper.utils.web3_utils import compute_amount_out_min, eth_to_wei, wei_to_eth

logger = logger_manager.setup_logger(__name__)


class AutoBuyController:
    """
    Executes one market buy (base asset -> token) for a session.

    Flow:
      signer check -> balance check -> router for the detected venue
      -> amountOutMin -> best-effort gas estimate -> submit (tx hash stored on
      the session right away) -> wait for receipt.

    Every failure is returned as a ``TradeResult`` with ``success=False``;
    nothing raised inside escapes ``execute_buy``.
    """

    def __init__(self, chain, sessions: SessionRepository, settings: SniperSettings, events: EventLog) -> None:
        self.chain = chain
        self.sessions = sessions
        self.settings = settings
        self.events = events

    def _is_stopped(self, session_id: str) -> bool:
        session = self.sessions.get(session_id)
        return session is None or session.status == SessionStatus.STOPPED

    def _cancelled(self, session_id: str) -> TradeResult:
        self.events.warning("Session stopped before submission; buy cancelled", session_id)
        return TradeResult(success=False, error="Session stopped before submission", error_kind="Stopped")

    async def execute_buy(
        self,
        session_id: str,
        token_address: str,
        buy_amount_eth: float,
        slippage_bps: int,
        dex: str,
    ) -> TradeResult:
        tx_hash: Optional[str] = None
        try:
            if not self.chain.has_signer:
                raise NoSignerError("No signer configured (dry run)")

            self.events.info(f"Building buy transaction for {buy_amount_eth} ETH on {dex}", session_id)
            amount_in_wei = eth_to_wei(buy_amount_eth)

            balance = await self.chain.get_balance()
            self.events.info(f"Wallet balance: {wei_to_eth(balance)} ETH", session_id)
            if balance < amount_in_wei:
                raise InsufficientBalanceError(
                    f"Insufficient balance: {wei_to_eth(balance)} ETH < {buy_amount_eth} ETH required"
                )

            venue = self.settings.venue(dex)
            if venue is None:
                raise InvalidInputError(f"Unknown venue: {dex}")
            self.events.info(f"Using router: {venue.router}", session_id)

            amount_out_min = compute_amount_out_min(amount_in_wei, slippage_bps)
            self.events.info(f"Amount out min: {amount_out_min}", session_id)

            path = [self.settings.weth_address, token_address]
            deadline = int(time.time()) + self.settings.transaction_deadline_secs
            self.events.info(f"Executing swap: {buy_amount_eth} ETH -> {token_address}", session_id)

            try:
                gas_estimate = await self.chain.estimate_swap_gas(venue.router, amount_out_min, path, deadline, amount_in_wei)
                self.events.info(f"Estimated gas: {gas_estimate}", session_id)
            except Exception as e:
                # the swap is still sent with the fixed gas ceiling
                self.events.warning(f"Gas estimation failed: {e}", session_id)

            if self._is_stopped(session_id):
                return self._cancelled(session_id)

            # re-checked by the chain client once it holds the submit lock
            tx_hash = await self.chain.send_swap_exact_eth_for_tokens(
                venue.router,
                amount_out_min,
                path,
                deadline,
                amount_in_wei,
                gas_limit=self.settings.swap_gas_limit,
                should_submit=lambda: not self._is_stopped(session_id),
            )
            if tx_hash is None:
                return self._cancelled(session_id)
            self.events.success(f"✓ Transaction sent: {tx_hash}", session_id)
            self.sessions.update(session_id, status=SessionStatus.ACTIVE, tx_hash=tx_hash)

            receipt = await self.chain.wait_for_receipt(tx_hash)
            if receipt.get("status") != 1:
                raise TransactionRevertedError("Transaction reverted", tx_hash=tx_hash)

            gas_used = int(receipt.get("gasUsed") or 0)
            self.events.success(f"✓✓✓ Buy transaction confirmed: {tx_hash}", session_id)
            self.events.info(f"Gas used: {gas_used}", session_id)
            return TradeResult(
                success=True,
                tx_hash=tx_hash,
                gas_used=gas_used,
                effective_gas_price=int(receipt.get("effectiveGasPrice") or 0),
                amount_out=self.chain.received_token_amount(receipt, token_address),
            )

        except SniperError as e:
            self.events.error(f"✗ Buy execution failed: {e.message}", session_id)
            return TradeResult(success=False, error=e.message, error_kind=e.kind, tx_hash=tx_hash)
        except Exception as e:
            logger.exception(f"[autobuy] {session_id} unexpected failure: {e}")
            self.events.error(f"✗ Buy execution failed: {e}", session_id)
            return TradeResult(success=False, error=str(e), error_kind=type(e).__name__, tx_hash=tx_hash)
