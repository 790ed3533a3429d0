"""
Unit tests for the venue probe: precedence, short-circuit and failure isolation.
"""

import pytest

from base_sniper.services.liquidity_service import LiquidityService
from base_sniper.utils.constants import WETH_ADDRESS

from conftest import TOKEN


@pytest.fixture
def detector(chain, settings, events):
    return LiquidityService(chain, settings.venues, WETH_ADDRESS, events, timeout_ms=100)


class TestLiquidityProbe:
    async def test_first_venue_wins(self, detector, chain, uniswap, aerodrome):
        """Both venues liquid: the first in order is reported and the second never queried"""
        chain.add_liquidity(uniswap.factory, TOKEN, 5, 7)
        chain.add_liquidity(aerodrome.factory, TOKEN)

        result = await detector.probe(TOKEN)

        assert result.exists is True
        assert result.dex == "uniswap-v2"
        assert result.reserves.reserve0 == 5
        assert result.reserves.reserve1 == 7
        assert [f for f, _ in chain.get_pair_calls] == [uniswap.factory.lower()]

    async def test_second_venue_when_first_has_no_pair(self, detector, chain, aerodrome):
        chain.add_liquidity(aerodrome.factory, TOKEN)
        result = await detector.probe(TOKEN)
        assert result.exists is True
        assert result.dex == "aerodrome"
        assert result.detection_time_ms >= 0

    async def test_none_when_no_pairs(self, detector):
        result = await detector.probe(TOKEN)
        assert result.exists is False
        assert result.dex == "none"
        assert result.error == "No liquidity found"

    async def test_zero_reserve_is_not_liquidity(self, detector, chain, uniswap, aerodrome):
        chain.add_liquidity(uniswap.factory, TOKEN, 0, 10**18)
        chain.add_liquidity(aerodrome.factory, TOKEN, 10**18, 0)
        result = await detector.probe(TOKEN)
        assert result.exists is False
        assert result.dex == "none"

    async def test_failing_venue_does_not_abort_others(self, detector, chain, uniswap, aerodrome):
        chain.failing_factories.add(uniswap.factory.lower())
        chain.add_liquidity(aerodrome.factory, TOKEN)
        result = await detector.probe(TOKEN)
        assert result.exists is True
        assert result.dex == "aerodrome"

    async def test_errors_are_reported_when_nothing_found(self, detector, chain, uniswap, aerodrome):
        chain.failing_factories.add(uniswap.factory.lower())
        chain.slow_factories[aerodrome.factory.lower()] = 0.5
        result = await detector.probe(TOKEN)
        assert result.exists is False
        assert "uniswap-v2" in result.error
        assert "aerodrome: timeout" in result.error

    async def test_address_is_normalized(self, detector, chain, uniswap):
        chain.add_liquidity(uniswap.factory, TOKEN)
        result = await detector.probe("  " + TOKEN.upper().replace("0X", "0x") + " ")
        assert result.exists is True

    async def test_invalid_address(self, detector, chain):
        result = await detector.probe("not-an-address")
        assert result.exists is False
        assert result.error == "Invalid address format"
        assert chain.get_pair_calls == []
