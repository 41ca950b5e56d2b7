import asyncio

import pytest

from jumpiq.config import CONTROLLER_MODE_COUNTDOWN, SessionConfig
from jumpiq.controller import Complete, Error, Recording, SessionController, Stabilizing
from jumpiq.live import LiveRecorder


def _recorder(**overrides):
    overrides.setdefault("controller_mode", CONTROLLER_MODE_COUNTDOWN)
    overrides.setdefault("stabilize_seconds", 0)
    return LiveRecorder(SessionController(SessionConfig(**overrides)), stabilize_tick_sec=0.01)


def test_record_and_stop():
    async def scenario():
        recorder = _recorder()
        runner = asyncio.create_task(recorder.run())

        state = await recorder.start(80.0, "Sam")
        assert isinstance(state, Recording)
        recorder.push_accelerometer(0.0, 9.81, 0.0)
        recorder.push_gyroscope(0.0, 0.0, 0.0)
        await asyncio.sleep(0.2)

        state = await recorder.stop()
        await recorder.close()
        await runner
        return recorder, state

    recorder, state = asyncio.run(scenario())
    assert isinstance(state, Complete)
    assert len(state.result.frames) >= 1
    assert len(state.result.frames) == len(state.result.readings)
    assert recorder._ticker is None


def test_countdown_runs_on_timer():
    async def scenario():
        recorder = _recorder(stabilize_seconds=2)
        runner = asyncio.create_task(recorder.run())

        state = await recorder.start(80.0, "Sam")
        assert isinstance(state, Stabilizing)
        await asyncio.sleep(0.2)
        after = recorder.controller.state

        await recorder.reset()
        await recorder.close()
        await runner
        return after

    assert isinstance(asyncio.run(scenario()), Recording)


def test_report_error_stops_timers():
    async def scenario():
        recorder = _recorder()
        runner = asyncio.create_task(recorder.run())
        await recorder.start(80.0, "Sam")
        state = await recorder.report_error("sensor lost")
        timers = (recorder._ticker, recorder._countdown)
        await recorder.close()
        await runner
        return state, timers

    state, timers = asyncio.run(scenario())
    assert state == Error(message="sensor lost", reason="sensor_error")
    assert timers == (None, None)


def test_command_errors_reach_the_caller():
    async def scenario():
        recorder = _recorder()
        runner = asyncio.create_task(recorder.run())
        try:
            with pytest.raises(ValueError):
                await recorder._submit("bogus")
            # The consumer keeps running afterwards
            return await recorder.stop()
        finally:
            await recorder.close()
            await runner

    state = asyncio.run(scenario())
    assert isinstance(state, Error)
    assert state.reason == "empty_session"


def test_recorder_built_outside_event_loop():
    recorder = _recorder()

    async def scenario():
        runner = asyncio.create_task(recorder.run())
        state = await recorder.start(80.0, "Sam")
        await recorder.reset()
        await recorder.close()
        await runner
        return state

    assert isinstance(asyncio.run(scenario()), Recording)
