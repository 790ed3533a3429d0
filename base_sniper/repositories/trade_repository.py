"""
Append-only ledger of completed round-trip trades.

Kept in memory for the lifetime of the process. ``summary`` aggregates
profit and loss; ``export_csv`` renders every trade for download.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from base_sniper.models.trade import PnLSummary, Trade
from base_sniper.utils.logger import logger_manager

logger = logger_manager.setup_logger(__name__)

CSV_HEADERS = ["ID", "Token", "Buy Price", "Sell Price", "Amount", "Profit", "Timestamp", "TX Hash"]


def _iso(ts_ms: int) -> str:
    dt = datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TradeRepository:
    def __init__(self) -> None:
        self._trades: List[Trade] = []

    def add(self, trade: Trade) -> None:
        self._trades.append(trade)
        logger.info(f"Trade recorded: {trade.token_symbol} profit={trade.profit:.8f}")

    def summary(self) -> PnLSummary:
        """
        - successful_trades: trades with profit >= 0
        - total_profit: sum of positive profits
        - total_loss: sum of |profit| over negative profits
        - win_rate: successful / total * 100 (0 when there are no trades)
        """
        total = len(self._trades)
        successful = sum(1 for t in self._trades if t.profit >= 0)
        total_profit = sum(t.profit for t in self._trades if t.profit > 0)
        total_loss = sum(abs(t.profit) for t in self._trades if t.profit < 0)
        return PnLSummary(
            total_trades=total,
            successful_trades=successful,
            total_profit=total_profit,
            total_loss=total_loss,
            win_rate=(successful / total * 100) if total > 0 else 0.0,
            trades=list(self._trades),
        )

    def export_csv(self) -> str:
        rows = [CSV_HEADERS]
        for t in self._trades:
            rows.append([
                t.id,
                t.token_symbol,
                f"{t.buy_price:.8f}",
                f"{t.sell_price:.8f}",
                f"{t.amount:.8f}",
                f"{t.profit:.8f}",
                _iso(t.timestamp),
                t.tx_hash,
            ])
        return "\n".join(",".join(r) for r in rows)
