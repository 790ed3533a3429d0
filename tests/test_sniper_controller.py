"""
Unit tests for the caller-facing envelopes.
"""

from conftest import TOKEN, wait_until


class TestStartStop:
    async def test_start_and_stop(self, controller):
        res = await controller.start(TOKEN, 0.1, 100)
        assert res["ok"] is True
        sid = res["session_id"]

        status = controller.session(sid)
        assert status["session"]["status"] == "monitoring"

        stopped = await controller.stop(sid)
        assert stopped["ok"] is True
        assert controller.session(sid)["session"]["status"] == "stopped"

    async def test_invalid_input_never_raises(self, controller):
        for args in [("0xnope", 0.1, 100), (TOKEN, 0, 100), (TOKEN, 11, 100), (TOKEN, 0.1, 6000), (TOKEN, "1", 100)]:
            res = await controller.start(*args)
            assert res["ok"] is False
            assert res["error_kind"] == "InvalidInput"
            assert res["message"]
        assert controller.sessions()["sessions"] == []

    async def test_address_is_sanitized(self, controller):
        res = await controller.start(" " + TOKEN.upper().replace("0X", "0x") + " ", 0.1, 100)
        assert controller.session(res["session_id"])["session"]["token_address"] == TOKEN

    async def test_unknown_session(self, controller):
        assert controller.session("session-unknown-123")["error_kind"] == "NotFound"
        assert (await controller.stop("session-unknown-123"))["error_kind"] == "NotFound"
        assert controller.session("bad")["error_kind"] == "InvalidInput"

    async def test_engine_failure_becomes_envelope(self, controller):
        async def broken(*args):
            raise RuntimeError("loop closed")

        controller.engine.start_sniping = broken
        res = await controller.start(TOKEN, 0.1, 100)
        assert res == {"ok": False, "message": "loop closed", "error_kind": "RuntimeError"}


class TestReads:
    async def test_sessions_filter(self, controller):
        a = (await controller.start(TOKEN, 0.1, 100))["session_id"]
        b = (await controller.start(TOKEN, 0.2, 100))["session_id"]
        await controller.stop(a)

        assert {s["id"] for s in controller.sessions()["sessions"]} == {a, b}
        assert [s["id"] for s in controller.sessions(active_only=True)["sessions"]] == [b]

    async def test_metrics_pnl_csv_logs(self, controller, chain, uniswap):
        chain.add_liquidity(uniswap.factory, TOKEN)
        sid = (await controller.start(TOKEN, 0.1, 100))["session_id"]

        assert controller.metrics()["metrics"]["total_executions"] == 1
        assert controller.pnl()["pnl"]["total_trades"] == 0
        assert controller.export_csv()["csv"].startswith("ID,Token,")

        logs = controller.logs(sid)["logs"]
        assert logs and all(e["session_id"] == sid for e in logs)
        assert logs[0]["timestamp"] >= logs[-1]["timestamp"]
        assert any(e["level"] == "SUCCESS" for e in logs)

    async def test_close_position(self, controller, chain, uniswap):
        chain.add_liquidity(uniswap.factory, TOKEN)
        sid = (await controller.start(TOKEN, 0.1, 100))["session_id"]
        assert await wait_until(lambda: controller.session(sid)["session"]["last_price"] is not None)

        res = controller.close_position(sid)

        assert res["ok"] is True
        assert res["trade"]["sell_price"] == controller.session(sid)["session"]["last_price"]
        assert controller.pnl()["pnl"]["total_trades"] == 1

        again = controller.close_position(sid)
        assert again["ok"] is False
        assert again["error_kind"] == "InvalidInput"


async def test_security_check_envelope(controller, chain, uniswap):
    chain.add_liquidity(uniswap.factory, TOKEN)
    res = await controller.security_check(TOKEN)
    assert res["ok"] is True
    assert res["result"]["risk_level"] == "low"
    assert (await controller.security_check("nope"))["ok"] is False
