"""
Pure helpers around amounts and addresses. No RPC access here.
"""

from __future__ import annotations

from decimal import Decimal

from web3 import Web3

from base_sniper.utils.constants import BPS_DENOMINATOR


def eth_to_wei(amount_eth: float) -> int:
    # via str so 0.1 becomes exactly 10**17
    return int(Web3.to_wei(Decimal(str(amount_eth)), "ether"))


def wei_to_eth(wei: int) -> float:
    return float(wei) / 1e18


def compute_amount_out_min(amount_in_wei: int, slippage_bps: int) -> int:
    """Minimum accepted output for a swap.

    Scales the *input* amount by the slippage factor with truncating integer
    division. This does not use a quoted token output.
    """
    return amount_in_wei * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR


def is_zero_address(address: str | None) -> bool:
    if not address:
        return True
    return int(address, 16) == 0


def normalize_address(address: str) -> str:
    return address.strip().lower()
