# diagnostics.py
from __future__ import annotations
import asyncio
import sys

from dotenv import load_dotenv

from base_sniper.services.web3_service import Web3Service
from base_sniper.utils.config import load_settings
from base_sniper.utils.logger import logger_manager
from base_sniper.utils.web3_utils import is_zero_address, wei_to_eth

logger = logger_manager.setup_logger("diagnostics")

RULE = "═" * 59


def ok(b, msg): print(("✅" if b else "❌"), msg)


async def diagnose(token: str) -> bool:
    settings = load_settings()
    chain = Web3Service(settings)

    print(RULE)
    print("LIQUIDITY DETECTION DIAGNOSTIC")
    print(RULE)
    print(f"Token: {token}")
    print(f"WETH:  {settings.weth_address}")

    try:
        await chain.connect()
        block = await chain.get_block_number()
        ok(True, f"RPC {chain.active_rpc} connected, block {block}")
    except Exception as e:
        ok(False, f"RPC connection failed: {e}")
        return False

    found = False
    for venue in settings.venues:
        print(f"\n[{venue.name}] factory {venue.factory}")
        try:
            pair = await chain.get_pair(venue.factory, token, settings.weth_address)
            print(f"  Pair: {pair}")
            if is_zero_address(pair):
                ok(False, f"No {venue.name} pair found")
                continue
            token0, token1 = await chain.get_pair_tokens(pair)
            reserve0, reserve1 = await chain.get_reserves(pair)
            print(f"  Token0: {token0}")
            print(f"  Token1: {token1}")
            print(f"  Reserve0: {reserve0} ({wei_to_eth(reserve0)} formatted)")
            print(f"  Reserve1: {reserve1} ({wei_to_eth(reserve1)} formatted)")
            has_liquidity = reserve0 > 0 and reserve1 > 0
            ok(has_liquidity, f"{venue.name} liquidity" if has_liquidity else f"{venue.name} pair has zero reserves")
            found = found or has_liquidity
        except Exception as e:
            ok(False, f"{venue.name} check failed: {e}")

    print(f"\n{RULE}\nDIAGNOSTIC COMPLETE\n{RULE}")
    return found


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: python -m base_sniper.diagnostics <token_address>")
        sys.exit(2)
    load_dotenv()
    sys.exit(0 if asyncio.run(diagnose(sys.argv[1].strip())) else 1)
