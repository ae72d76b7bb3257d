"""Tests for the polling controller."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from ticket_pipeline.core.polling import PollHandle, PollingController
from ticket_pipeline.enums import TriggerStatus
from ticket_pipeline.errors import NotFoundError, TransientFetchError
from ticket_pipeline.schemas import TriggerAck, VerificationResult

INTERVAL = 0.01


def _controller() -> PollingController:
    return PollingController("test", interval=INTERVAL, startup_delay=INTERVAL)


def _result(result_id: str = "ver-2") -> VerificationResult:
    return VerificationResult(id=result_id, report="ok")


class TestPollingController:
    @pytest.mark.asyncio
    async def test_processing_polls_until_terminal(self):
        controller = _controller()
        trigger = AsyncMock(return_value=TriggerAck(status=TriggerStatus.PROCESSING))
        check = AsyncMock(side_effect=[None, None, _result()])
        on_complete = AsyncMock()

        response = await controller.run(trigger, check, lambda r: True, on_complete)
        assert response.status == TriggerStatus.PROCESSING
        assert controller.is_polling

        await controller.wait()

        assert check.await_count == 3
        assert controller.handle.checks == 3
        on_complete.assert_awaited_once_with(_result())
        assert not controller.is_polling
        assert controller.handle.completed

    @pytest.mark.asyncio
    async def test_no_checks_after_completion(self):
        controller = _controller()
        check = AsyncMock(return_value=_result())
        on_complete = AsyncMock()

        controller.start(check, lambda r: True, on_complete)
        await controller.wait()
        await asyncio.sleep(INTERVAL * 5)

        assert check.await_count == 1
        assert on_complete.await_count == 1
        controller.handle.cancel()
        assert not controller.handle.active

    @pytest.mark.asyncio
    async def test_already_running_polls_without_second_trigger(self):
        controller = _controller()
        trigger = AsyncMock(return_value=TriggerAck(status=TriggerStatus.ALREADY_RUNNING))
        check = AsyncMock(return_value=_result())
        on_complete = AsyncMock()

        await controller.run(trigger, check, lambda r: True, on_complete)
        await controller.wait()

        trigger.assert_awaited_once()
        on_complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_direct_result_completes_without_polling(self):
        controller = _controller()
        trigger = AsyncMock(return_value=_result())
        check = AsyncMock()
        on_complete = AsyncMock()

        response = await controller.run(trigger, check, lambda r: True, on_complete)

        assert response == _result()
        on_complete.assert_awaited_once_with(_result())
        check.assert_not_awaited()
        assert controller.handle is None

    @pytest.mark.asyncio
    async def test_not_found_and_transient_failures_keep_polling(self):
        controller = _controller()
        check = AsyncMock(
            side_effect=[
                NotFoundError("none yet"),
                TransientFetchError("bad gateway", status_code=502),
                _result(),
            ]
        )
        on_complete = AsyncMock()

        controller.start(check, lambda r: True, on_complete)
        await controller.wait()

        assert check.await_count == 3
        on_complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_non_terminal_results_keep_polling(self):
        controller = _controller()
        check = AsyncMock(side_effect=[_result("ver-1"), _result("ver-1"), _result("ver-2")])
        on_complete = AsyncMock()

        controller.start(check, lambda r: r.id != "ver-1", on_complete)
        await controller.wait()

        on_complete.assert_awaited_once_with(_result("ver-2"))

    @pytest.mark.asyncio
    async def test_starting_new_loop_cancels_previous(self):
        controller = _controller()
        slow_check = AsyncMock(return_value=None)
        first = controller.start(slow_check, lambda r: True, AsyncMock())

        on_complete = AsyncMock()
        second = controller.start(AsyncMock(return_value=_result()), lambda r: True, on_complete)
        await first.wait()
        await second.wait()

        assert first.cancelled
        assert not first.active
        assert second.completed
        on_complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_stops_polling(self):
        controller = _controller()
        check = AsyncMock(return_value=None)
        controller.start(check, lambda r: True, AsyncMock())

        await controller.close()
        checks = check.await_count
        await asyncio.sleep(INTERVAL * 5)

        assert not controller.is_polling
        assert check.await_count == checks


class TestPollHandle:
    def test_cancel_is_idempotent_without_task(self):
        handle = PollHandle("idle")
        handle.cancel()
        handle.cancel()
        assert handle.cancelled
        assert not handle.active

    @pytest.mark.asyncio
    async def test_cancel_twice_on_running_loop(self):
        controller = _controller()
        handle = controller.start(AsyncMock(return_value=None), lambda r: True, AsyncMock())
        handle.cancel()
        handle.cancel()
        await handle.wait()
        assert not handle.active


class TestPollingFailures:
    @pytest.mark.asyncio
    async def test_unexpected_check_error_keeps_polling(self):
        controller = _controller()
        check = AsyncMock(side_effect=[ValueError("Expecting value"), None, _result()])
        on_complete = AsyncMock()

        controller.start(check, lambda r: True, on_complete)
        await controller.wait()

        assert check.await_count == 3
        on_complete.assert_awaited_once_with(_result())
        assert controller.handle.completed

    @pytest.mark.asyncio
    async def test_wait_does_not_raise_when_loop_fails(self):
        controller = _controller()

        def broken_predicate(result):
            raise RuntimeError("bad predicate")

        handle = controller.start(AsyncMock(return_value=_result()), broken_predicate, AsyncMock())
        await handle.wait()
        await controller.close()

        assert not handle.active
        assert not handle.completed


class TestPollingSchedule:
    @pytest.mark.asyncio
    async def test_startup_delay_then_one_check_per_interval(self, monkeypatch):
        events = []
        real_sleep = asyncio.sleep

        async def recording_sleep(delay, *args, **kwargs):
            events.append(("sleep", delay))
            await real_sleep(0)

        monkeypatch.setattr(asyncio, "sleep", recording_sleep)
        controller = PollingController("test", interval=3.0, startup_delay=2.0)
        results = [None, None, _result()]

        async def check():
            events.append(("check",))
            return results.pop(0)

        controller.start(check, lambda r: True, AsyncMock())
        await controller.wait()

        assert events == [
            ("sleep", 2.0),
            ("check",),
            ("sleep", 3.0),
            ("check",),
            ("sleep", 3.0),
            ("check",),
        ]
