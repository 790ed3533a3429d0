"""
Configuration loading for base_sniper.

Settings come from the environment (optionally populated from ``.env`` by the
entry point) and may be overridden by a YAML file. ``config.yaml`` is looked
up in the project root unless ``SNIPER_CONFIG`` points elsewhere; a missing
file quietly yields no overrides.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import yaml  # type: ignore
from pydantic import BaseModel, Field

from base_sniper.models.venue import Venue
from base_sniper.utils.constants import BASE_CHAIN_ID, BASE_RPC_URL, DEFAULT_VENUES, WETH_ADDRESS


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load overrides from a YAML file.

    :returns: A dictionary representing the configuration. Missing files
        quietly yield an empty dictionary.
    """
    if path is None:
        base_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir, os.pardir))
        path = os.getenv("SNIPER_CONFIG") or os.path.join(base_dir, "config.yaml")
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    return {}


def _rpc_urls_from_env() -> List[str]:
    # Comma-separated list for failover; the first one that connects is used.
    raw = (
        os.getenv("RPC_URLS")
        or os.getenv("ALCHEMY_RPC_URL")
        or os.getenv("RPC_URL")
        or BASE_RPC_URL
    )
    return [u.strip().rstrip("/") for u in raw.split(",") if u.strip()]


class SniperSettings(BaseModel):
    # ---------- chain ----------
    rpc_urls: List[str] = Field(default_factory=lambda: [BASE_RPC_URL])
    rpc_timeout_secs: float = 30.0
    rpc_retries: int = 3
    rpc_retry_backoff_secs: float = 0.4
    chain_id: int = BASE_CHAIN_ID
    weth_address: str = WETH_ADDRESS
    venues: List[Venue] = Field(default_factory=lambda: [Venue(**v) for v in DEFAULT_VENUES])

    # ---------- signer ----------
    private_key: str = ""
    dry_run: bool = False

    # ---------- polling ----------
    liquidity_poll_interval_ms: int = 500
    liquidity_timeout_ms: int = 5000
    price_monitor_interval_ms: int = 1000
    price_queue_size: int = 100

    # ---------- execution ----------
    transaction_deadline_secs: int = 300
    swap_gas_limit: int = 500_000
    receipt_timeout_secs: int = 180
    gas_mode: str = "auto"  # auto | legacy | 1559
    priority_fee_gwei: float = 0.01
    max_fee_multiplier: float = 2.0

    # ---------- retention / limits ----------
    session_ttl_secs: int = 86_400
    housekeeping_interval_secs: float = 60.0
    max_buy_eth: float = 10.0
    max_owner_percentage: float = 50.0
    log_max_session_entries: int = 500
    log_max_global_entries: int = 2000

    def venue(self, venue_id: str) -> Optional[Venue]:
        for v in self.venues:
            if v.id == venue_id:
                return v
        return None


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> SniperSettings:
    """Build settings from environment, YAML file and explicit overrides (in that order)."""
    env: Dict[str, Any] = {
        "rpc_urls": _rpc_urls_from_env(),
        "rpc_timeout_secs": float(os.getenv("RPC_TIMEOUT_SECS", "30")),
        "rpc_retries": int(os.getenv("RPC_RETRIES", "3")),
        "rpc_retry_backoff_secs": float(os.getenv("RPC_RETRY_BACKOFF_SECS", "0.4")),
        "chain_id": int(os.getenv("CHAIN_ID", str(BASE_CHAIN_ID))),
        "weth_address": os.getenv("WETH_ADDRESS", WETH_ADDRESS),
        "private_key": os.getenv("PRIVATE_KEY") or "",
        "dry_run": os.getenv("DRY_RUN", "false").lower() == "true",
        "liquidity_poll_interval_ms": int(os.getenv("LIQUIDITY_POLL_INTERVAL_MS", "500")),
        "liquidity_timeout_ms": int(os.getenv("LIQUIDITY_TIMEOUT_MS", "5000")),
        "price_monitor_interval_ms": int(os.getenv("MONITORING_INTERVAL_MS", "1000")),
        "transaction_deadline_secs": int(os.getenv("TRANSACTION_DEADLINE_SECS", "300")),
        "swap_gas_limit": int(os.getenv("SWAP_GAS_LIMIT", "500000")),
        "receipt_timeout_secs": int(os.getenv("RECEIPT_TIMEOUT_SECS", "180")),
        "gas_mode": os.getenv("GAS_MODE", "auto").lower(),
        "session_ttl_secs": int(os.getenv("SESSION_TTL_SECS", "86400")),
        "max_buy_eth": float(os.getenv("MAX_BUY_ETH", "10")),
    }
    data = {**env, **load_config(), **(overrides or {})}
    return SniperSettings(**data)
