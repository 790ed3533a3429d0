"""
Chain constants for Base mainnet.

Addresses are the defaults used when neither the environment nor
``config.yaml`` override them.
"""

from __future__ import annotations

BASE_CHAIN_ID = 8453
BASE_RPC_URL = "https://mainnet.base.org"
WETH_ADDRESS = "0x4200000000000000000000000000000000000006"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Probe order matters: the first venue reporting liquidity wins.
DEFAULT_VENUES = [
    {
        "id": "uniswap-v2",
        "name": "Uniswap V2",
        "factory": "0x8909Dc15e40173Ff4699343b6eB8132c65e18eC6",
        "router": "0x4752ba5DBc23f44D87826276BF6Fd6b1C372aD24",
    },
    {
        "id": "aerodrome",
        "name": "Aerodrome",
        "factory": "0x420DD381b31aEf6683db6B902084cB0FFECe40Da",
        "router": "0xcF77a3Ba9A5CA399B7c97c74d54e5b1Beb874E43",
    },
]

SLIPPAGE_BPS_MAX = 5000
BPS_DENOMINATOR = 10_000
