"""
Caller input checks.

Each validator returns ``(ok, error)`` so controllers can answer with an
envelope instead of raising.
"""

from __future__ import annotations

import math
from typing import Any, Optional, Tuple

from web3 import Web3

from base_sniper.utils.constants import SLIPPAGE_BPS_MAX

Validation = Tuple[bool, Optional[str]]


def sanitize_address(address: str) -> str:
    return address.lower().strip()


def validate_token_address(address: Any) -> Validation:
    if not address or not isinstance(address, str):
        return False, "Token address is required"
    if not Web3.is_address(sanitize_address(address)):
        return False, "Invalid token address format"
    return True, None


def validate_buy_amount(amount: Any, max_eth: float = 10.0) -> Validation:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or math.isnan(amount):
        return False, "Buy amount must be a number"
    if amount <= 0:
        return False, "Buy amount must be greater than 0"
    if amount > max_eth:
        return False, f"Buy amount cannot exceed {max_eth:g} ETH"
    return True, None


def validate_slippage(slippage: Any) -> Validation:
    if isinstance(slippage, bool) or not isinstance(slippage, int):
        return False, "Slippage must be an integer number of BPS"
    if slippage < 0 or slippage > SLIPPAGE_BPS_MAX:
        return False, f"Slippage must be between 0 and {SLIPPAGE_BPS_MAX} BPS"
    return True, None


def validate_session_id(session_id: Any) -> Validation:
    if not session_id or not isinstance(session_id, str):
        return False, "Session ID is required"
    if len(session_id) < 10 or len(session_id) > 100:
        return False, "Invalid session ID format"
    return True, None
