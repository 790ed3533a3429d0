"""
Unit tests for the sniper engine state machine.

Tests core functionality:
1. Direct execution when liquidity is already there
2. One poller per waiting session
3. Stop before detection, idempotent stop
4. Status re-check after a suspended probe
5. Positions and round-trip recording
"""

import asyncio

import pytest

from base_sniper.enums.session_status import SessionStatus
from base_sniper.exceptions import InvalidInputError, SessionNotFoundError

from conftest import OTHER_TOKEN, TOKEN, wait_until


class TestStart:
    async def test_liquidity_present_executes_without_timer(self, engine, chain, uniswap):
        chain.add_liquidity(uniswap.factory, TOKEN)

        sid = await engine.start_sniping(TOKEN, 0.1, 100)

        assert not engine.is_polling(sid)
        assert len(chain.sent) == 1
        s = engine.get_session_status(sid)
        assert s.status == SessionStatus.ACTIVE
        assert s.tx_hash == "0x" + format(1, "064x")
        assert s.dex == "uniswap-v2"
        assert chain.sent[0]["router"] == uniswap.router
        assert chain.sent[0]["gas"] == 500_000

    async def test_no_liquidity_schedules_exactly_one_timer(self, engine, chain):
        sid = await engine.start_sniping(TOKEN, 0.1, 100)

        assert engine.get_session_status(sid).status == SessionStatus.MONITORING
        assert engine.is_polling(sid)
        assert engine.scheduler.keys() == [sid]
        assert chain.sent == []

    async def test_detection_while_monitoring_executes_once(self, engine, chain, aerodrome):
        sid = await engine.start_sniping(TOKEN, 0.1, 250)
        await asyncio.sleep(0.03)
        chain.add_liquidity(aerodrome.factory, TOKEN)

        assert await wait_until(lambda: engine.get_session_status(sid).tx_hash is not None)
        await asyncio.sleep(0.05)

        assert len(chain.sent) == 1
        assert not engine.is_polling(sid)
        s = engine.get_session_status(sid)
        assert s.status == SessionStatus.ACTIVE
        assert s.dex == "aerodrome"
        assert chain.sent[0]["amount_out_min"] == 10**17 * 9750 // 10_000

    async def test_failed_execution_sets_error(self, engine, chain, uniswap):
        chain.add_liquidity(uniswap.factory, TOKEN)
        chain.receipt_status = 0

        sid = await engine.start_sniping(TOKEN, 0.1, 100)

        s = engine.get_session_status(sid)
        assert s.status == SessionStatus.ERROR
        assert s.error == "Transaction reverted"
        assert s.tx_hash is not None
        assert engine.get_metrics().failed_executions == 1

    @pytest.mark.parametrize("token,amount,bps", [
        ("0x1234", 0.1, 100),
        (TOKEN, 0, 100),
        (TOKEN, -1.0, 100),
        (TOKEN, float("nan"), 100),
        (TOKEN, 0.1, -1),
        (TOKEN, 0.1, 5001),
        (TOKEN, 0.1, 1.5),
    ])
    async def test_invalid_input_rejected_before_mutation(self, engine, token, amount, bps):
        with pytest.raises(InvalidInputError):
            await engine.start_sniping(token, amount, bps)
        assert engine.get_all_sessions() == []

    async def test_sessions_are_independent(self, engine, chain, uniswap):
        """One session failing must not touch another's poller"""
        chain.add_liquidity(uniswap.factory, TOKEN)
        chain.balance = 0
        failed = await engine.start_sniping(TOKEN, 0.1, 100)
        waiting = await engine.start_sniping(OTHER_TOKEN, 0.1, 100)

        assert engine.get_session_status(failed).status == SessionStatus.ERROR
        assert engine.get_session_status(waiting).status == SessionStatus.MONITORING
        assert engine.is_polling(waiting)
        assert {s.id for s in engine.get_active_sessions()} == {waiting}


class TestStop:
    async def test_stop_before_detection_prevents_execution(self, engine, chain, uniswap):
        sid = await engine.start_sniping(TOKEN, 0.1, 100)
        await engine.stop_sniping(sid)
        chain.add_liquidity(uniswap.factory, TOKEN)
        await asyncio.sleep(0.05)

        assert engine.get_session_status(sid).status == SessionStatus.STOPPED
        assert not engine.is_polling(sid)
        assert chain.sent == []

    async def test_stop_during_in_flight_probe_discards_result(self, engine, chain, uniswap):
        sid = await engine.start_sniping(TOKEN, 0.1, 100)
        chain.probe_delay = 0.05
        calls = len(chain.get_pair_calls)
        assert await wait_until(lambda: len(chain.get_pair_calls) > calls)

        # probe is suspended inside get_pair; liquidity appears, then the stop lands
        chain.add_liquidity(uniswap.factory, TOKEN)
        await engine.stop_sniping(sid)
        await asyncio.sleep(0.1)

        assert chain.sent == []
        assert engine.get_session_status(sid).status == SessionStatus.STOPPED

    async def test_probe_result_rechecked_after_suspension(self, engine, chain, uniswap):
        """A stop that bypasses the scheduler is still honored after the await"""
        sid = await engine.start_sniping(TOKEN, 0.1, 100)
        chain.probe_delay = 0.05
        calls = len(chain.get_pair_calls)
        assert await wait_until(lambda: len(chain.get_pair_calls) > calls)

        chain.add_liquidity(uniswap.factory, TOKEN)
        engine.sessions.stop(sid)
        await asyncio.sleep(0.1)

        assert chain.sent == []
        assert not engine.is_polling(sid)

    async def test_stop_is_idempotent(self, engine):
        sid = await engine.start_sniping(TOKEN, 0.1, 100)
        cancels = []
        original = engine.scheduler.cancel
        engine.scheduler.cancel = lambda key: cancels.append(key) or original(key)

        await engine.stop_sniping(sid)
        after_first = list(cancels)
        await engine.stop_sniping(sid)

        assert sid in after_first
        assert cancels == after_first
        assert engine.get_session_status(sid).status == SessionStatus.STOPPED

    async def test_stop_unknown_is_noop(self, engine):
        await engine.stop_sniping("session-does-not-exist")
        assert engine.get_all_sessions() == []


class TestPositions:
    async def test_position_recorded_after_buy(self, engine, chain, uniswap):
        chain.add_liquidity(uniswap.factory, TOKEN, 10**21, 2 * 10**21)
        chain.amount_out = 500 * 10**18

        sid = await engine.start_sniping(TOKEN, 0.5, 100)

        s = engine.get_session_status(sid)
        assert s.position_open is True
        assert s.token_symbol == "TKN"
        assert s.token_amount == 500
        assert s.entry_price == pytest.approx(0.001)
        assert engine.price_monitor.is_monitoring(sid)

        assert await wait_until(lambda: engine.get_session_status(sid).last_price is not None)
        assert engine.get_session_status(sid).last_price == pytest.approx(2.0)

    async def test_close_position_records_trade(self, engine, chain, uniswap):
        chain.add_liquidity(uniswap.factory, TOKEN)
        chain.amount_out = 100 * 10**18
        sid = await engine.start_sniping(TOKEN, 1.0, 100)

        trade = engine.close_position(sid, sell_price=0.02, tx_hash="0xsell")

        assert trade.buy_price == pytest.approx(0.01)
        assert trade.profit == pytest.approx((0.02 - 0.01) * 100)
        assert trade.tx_hash == "0xsell"
        assert not engine.price_monitor.is_monitoring(sid)
        assert engine.get_session_status(sid).position_open is False
        assert engine.calculate_pnl().total_trades == 1

    async def test_close_position_without_position(self, engine):
        sid = await engine.start_sniping(TOKEN, 0.1, 100)
        with pytest.raises(InvalidInputError):
            engine.close_position(sid, sell_price=1.0)
        with pytest.raises(SessionNotFoundError):
            engine.close_position("session-missing", sell_price=1.0)

    async def test_record_trade_rejects_delimiters(self, engine):
        with pytest.raises(InvalidInputError):
            engine.record_trade(TOKEN, "BAD,SYM", 1.0, 2.0, 1.0, "0x1")
        with pytest.raises(InvalidInputError):
            engine.record_trade(TOKEN, "SYM", 1.0, 2.0, 1.0, "0x1\n0x2")
        assert engine.calculate_pnl().total_trades == 0


class TestHousekeeping:
    async def test_expired_sessions_evicted(self, engine, settings):
        sid = await engine.start_sniping(TOKEN, 0.1, 100)
        await engine.stop_sniping(sid)
        assert engine.get_logs(sid)

        settings.session_ttl_secs = 0
        engine.start_housekeeping()

        assert await wait_until(lambda: engine.get_session_status(sid) is None)
        assert engine.get_logs(sid) == []

    async def test_polling_session_survives(self, engine, settings):
        sid = await engine.start_sniping(TOKEN, 0.1, 100)
        settings.session_ttl_secs = 0
        engine.start_housekeeping()
        await asyncio.sleep(0.15)
        assert engine.get_session_status(sid) is not None


async def test_shutdown_cancels_everything(engine, chain, uniswap):
    chain.add_liquidity(uniswap.factory, OTHER_TOKEN)
    waiting = await engine.start_sniping(TOKEN, 0.1, 100)
    holding = await engine.start_sniping(OTHER_TOKEN, 0.1, 100)
    assert engine.price_monitor.is_monitoring(holding)

    await engine.shutdown()

    assert not engine.is_polling(waiting)
    assert not engine.price_monitor.is_monitoring(holding)
    assert len(engine.scheduler) == 0
