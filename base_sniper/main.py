# main.py
from __future__ import annotations
import argparse
import asyncio
import json
import signal
from typing import List, Optional

from dotenv import load_dotenv

from base_sniper.controllers.autobuy_controller import AutoBuyController
from base_sniper.controllers.sniper_controller import SniperController
from base_sniper.orchestrators.sniper_orchestrator import SniperOrchestrator
from base_sniper.repositories.session_repository import SessionRepository
from base_sniper.repositories.trade_repository import TradeRepository
from base_sniper.services.liquidity_service import LiquidityService
from base_sniper.services.metrics_service import MetricsService
from base_sniper.services.price_monitor_service import PriceMonitorService
from base_sniper.services.security_service import SecurityService
from base_sniper.services.web3_service import Web3Service
from base_sniper.utils.config import SniperSettings, load_settings
from base_sniper.utils.event_log import EventLog
from base_sniper.utils.logger import logger_manager
from base_sniper.utils.scheduler import PollScheduler

logger = logger_manager.setup_logger(__name__)


# ------------------------------
# Composition root
# ------------------------------
def build_controller(settings: SniperSettings, chain=None) -> SniperController:
    """Wire every service once for the lifetime of the process."""
    chain = chain or Web3Service(settings)
    events = EventLog(settings.log_max_global_entries, settings.log_max_session_entries)
    scheduler = PollScheduler()
    sessions = SessionRepository()

    liquidity = LiquidityService(
        chain, settings.venues, settings.weth_address, events, timeout_ms=settings.liquidity_timeout_ms
    )
    price_monitor = PriceMonitorService(
        chain,
        settings.venues[0],
        settings.weth_address,
        events,
        interval_ms=settings.price_monitor_interval_ms,
        queue_size=settings.price_queue_size,
        scheduler=scheduler,
    )
    engine = SniperOrchestrator(
        chain=chain,
        sessions=sessions,
        liquidity=liquidity,
        autobuy=AutoBuyController(chain, sessions, settings, events),
        metrics=MetricsService(),
        trades=TradeRepository(),
        price_monitor=price_monitor,
        events=events,
        settings=settings,
        scheduler=scheduler,
    )
    security = SecurityService(chain, liquidity, events, settings.max_owner_percentage)
    return SniperController(engine, security, max_buy_eth=settings.max_buy_eth)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="base_sniper", description="Buy a token the moment its pool gets liquidity.")
    p.add_argument("--token", action="append", required=True, help="token address (repeatable)")
    p.add_argument("--amount", type=float, required=True, help="ETH to spend per token")
    p.add_argument("--slippage", type=int, default=100, help="slippage in BPS (0-5000)")
    p.add_argument("--security-check", action="store_true", help="run the token security check first")
    p.add_argument("--dry-run", action="store_true", help="never sign or send transactions")
    return p.parse_args(argv)


# ------------------------------
# Main
# ------------------------------
async def run(args: argparse.Namespace) -> int:
    overrides = {"dry_run": True} if args.dry_run else None
    settings = load_settings(overrides)
    chain = Web3Service(settings)
    await chain.connect()
    controller = build_controller(settings, chain)
    engine = controller.engine

    stop_evt = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_evt.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_evt.set))

    engine.start_housekeeping()
    logger.info(f"🚀 Sniper running on {chain.active_rpc} (signer: {chain.address or 'none, dry run'})")

    started = 0
    for token in args.token:
        if args.security_check:
            check = await controller.security_check(token)
            result = check.get("result") or {}
            if not check["ok"] or not result.get("is_valid"):
                logger.warning(f"Skipping {token}: {check.get('message') or result.get('warnings')}")
                continue
        res = await controller.start(token, args.amount, args.slippage)
        if res["ok"]:
            started += 1
            logger.info(f"Session {res['session_id']} started for {token}")
        else:
            logger.error(f"Could not start {token}: {res['message']}")

    if started:
        await stop_evt.wait()
        logger.info("🛑 Shutdown signal received, stopping sessions...")

    for session in engine.get_active_sessions():
        await engine.stop_sniping(session.id)
    await engine.shutdown()

    print(json.dumps(controller.metrics()["metrics"], indent=2))
    print(json.dumps(controller.pnl()["pnl"], indent=2))
    logger.info("✅ Shutdown complete.")
    return 0 if started else 1


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    return asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    raise SystemExit(main())
