"""
Shared fixtures: an in-memory chain client and fast-polling settings.

No test touches the network.
"""

import asyncio
import os

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest

from base_sniper.exceptions import ChainUnavailableError
from base_sniper.main import build_controller
from base_sniper.utils.config import SniperSettings
from base_sniper.utils.constants import WETH_ADDRESS, ZERO_ADDRESS
from base_sniper.utils.event_log import EventLog

TOKEN = "0x" + "ab" * 20
OTHER_TOKEN = "0x" + "cd" * 20


class FakeChain:
    """Async stand-in for ``Web3Service`` backed by plain dicts."""

    def __init__(self):
        self.has_signer = True
        self.address = "0x" + "11" * 20
        self.balance = 100 * 10**18
        self.pairs = {}        # (factory, token) -> pair
        self.reserves = {}     # pair -> (r0, r1)
        self.failing_factories = set()
        self.slow_factories = {}  # factory -> seconds
        self.probe_delay = 0.0
        self.get_pair_calls = []
        self.estimate_fails = False
        self.send_error = None
        self.receipt_status = 1
        self.amount_out = 1000 * 10**18
        self.sent = []
        self.submit_lock = asyncio.Lock()
        self.hold_submissions = None  # asyncio.Event keeping the submit lock held
        self.symbol = "TKN"
        self.decimals = 18
        self.code = b"\x60\x80"
        self.supply = 1_000_000 * 10**18
        self.owner = ZERO_ADDRESS
        self.owner_balance = 0

    def add_liquidity(self, factory, token, r0=10**21, r1=10**21):
        pair = "0x" + format(len(self.pairs) + 1, "040x")
        self.pairs[(factory.lower(), token.lower())] = pair
        self.reserves[pair] = (r0, r1)
        return pair

    # ---------- reads ----------
    async def get_pair(self, factory, token_a, token_b):
        self.get_pair_calls.append((factory.lower(), token_a.lower()))
        if self.probe_delay:
            await asyncio.sleep(self.probe_delay)
        if factory.lower() in self.slow_factories:
            await asyncio.sleep(self.slow_factories[factory.lower()])
        if factory.lower() in self.failing_factories:
            raise ChainUnavailableError("RPC 'getPair' failed: boom")
        return self.pairs.get((factory.lower(), token_a.lower()), ZERO_ADDRESS)

    async def get_reserves(self, pair):
        return self.reserves.get(pair, (0, 0))

    async def get_pair_tokens(self, pair):
        for (_, token), p in self.pairs.items():
            if p == pair:
                return token, WETH_ADDRESS.lower()
        return ZERO_ADDRESS, ZERO_ADDRESS

    async def token_decimals(self, token):
        return self.decimals

    async def token_symbol(self, token):
        return self.symbol

    async def get_balance(self, address=None):
        return self.balance

    async def get_code(self, address):
        return self.code

    async def total_supply(self, token):
        return self.supply

    async def token_owner(self, token):
        return self.owner

    async def token_balance(self, token, owner):
        return self.owner_balance

    # ---------- execution ----------
    async def estimate_swap_gas(self, router, amount_out_min, path, deadline, value_wei):
        if self.estimate_fails:
            raise ChainUnavailableError("RPC 'estimate_gas' failed: execution reverted")
        return 150_000

    async def send_swap_exact_eth_for_tokens(
        self, router, amount_out_min, path, deadline, value_wei, gas_limit, should_submit=None
    ):
        async with self.submit_lock:
            if self.hold_submissions is not None:
                await self.hold_submissions.wait()
            if should_submit is not None and not should_submit():
                return None
            if self.send_error:
                raise self.send_error
            self.sent.append({
                "router": router,
                "amount_out_min": amount_out_min,
                "path": path,
                "deadline": deadline,
                "value": value_wei,
                "gas": gas_limit,
            })
            return "0x" + format(len(self.sent), "064x")

    async def wait_for_receipt(self, tx_hash, timeout=None):
        await asyncio.sleep(0)
        return {"status": self.receipt_status, "gasUsed": 120_000, "effectiveGasPrice": 10**9, "logs": []}

    def received_token_amount(self, receipt, token):
        return self.amount_out


@pytest.fixture
def settings():
    return SniperSettings(
        rpc_urls=["http://127.0.0.1:8545"],
        liquidity_poll_interval_ms=10,
        liquidity_timeout_ms=500,
        price_monitor_interval_ms=10,
        housekeeping_interval_secs=0.05,
    )


@pytest.fixture
def uniswap(settings):
    return settings.venues[0]


@pytest.fixture
def aerodrome(settings):
    return settings.venues[1]


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
async def controller(settings, chain):
    ctrl = build_controller(settings, chain)
    yield ctrl
    await ctrl.engine.shutdown()


@pytest.fixture
def engine(controller):
    return controller.engine


async def wait_until(predicate, timeout=1.0, step=0.005):
    """Poll ``predicate`` on the loop until true or ``timeout`` elapses."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            return False
        await asyncio.sleep(step)
    return True
