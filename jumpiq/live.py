"""
Live session runner for JumpIQ.

Serializes everything that touches the controller (commands and 50 Hz
ticks) through one asyncio queue, consumed by a single task, so the
controller never sees two events at once. Sensor callbacks only
overwrite the latest raw values (last value wins).

Usage:
    recorder = LiveRecorder(SessionController(config))
    runner = asyncio.create_task(recorder.run())

    sensor.on_accel(recorder.push_accelerometer)
    sensor.on_gyro(recorder.push_gyroscope)

    await recorder.start(80.0, "Sam")
    ...
    state = await recorder.stop()      # Complete(result) or Error(...)
    await recorder.close()
"""

import asyncio
import logging
from typing import Optional

from .controller import Complete, Error, Idle, SessionController, SessionState, Stabilizing

logger = logging.getLogger(__name__)

STABILIZE_TICK_SEC = 1.0

_CMD_START = "start"
_CMD_STOP = "stop"
_CMD_RESET = "reset"
_CMD_FAIL = "fail"
_CMD_TICK = "tick"
_CMD_STABILIZE = "stabilize"
_CMD_CLOSE = "close"


class LiveRecorder:
    """Single-consumer event loop around a SessionController."""

    def __init__(self, controller: SessionController, stabilize_tick_sec: float = STABILIZE_TICK_SEC):
        self.controller = controller
        self.stabilize_tick_sec = stabilize_tick_sec
        self._queue: Optional[asyncio.Queue] = None
        self._ticker: Optional[asyncio.Task] = None
        self._countdown: Optional[asyncio.Task] = None

    @property
    def queue(self) -> asyncio.Queue:
        # Bound to the running loop on first use
        if self._queue is None:
            self._queue = asyncio.Queue()
        return self._queue

    # ── Sensor side ──

    def push_accelerometer(self, x: float, y: float, z: float):
        self.controller.update_accelerometer(x, y, z)

    def push_gyroscope(self, x: float, y: float, z: float):
        self.controller.update_gyroscope(x, y, z)

    # ── Commands ──

    async def _submit(self, kind: str, payload=None) -> SessionState:
        fut = asyncio.get_running_loop().create_future()
        await self.queue.put((kind, payload, fut))
        return await fut

    async def start(self, weight_kg: float, name: str) -> SessionState:
        return await self._submit(_CMD_START, (weight_kg, name))

    async def stop(self) -> SessionState:
        return await self._submit(_CMD_STOP)

    async def reset(self) -> SessionState:
        return await self._submit(_CMD_RESET)

    async def report_error(self, message: str) -> SessionState:
        """Sensor stream failure from the host; aborts the session."""
        return await self._submit(_CMD_FAIL, message)

    async def close(self):
        await self._submit(_CMD_CLOSE)

    # ── Timers ──

    async def _tick_loop(self):
        period = self.controller.config.sample_period_sec
        while True:
            await asyncio.sleep(period)
            await self.queue.put((_CMD_TICK, None, None))

    async def _stabilize_loop(self):
        while True:
            await asyncio.sleep(self.stabilize_tick_sec)
            await self.queue.put((_CMD_STABILIZE, None, None))

    def _start_timers(self):
        self._cancel_timers()
        self._ticker = asyncio.create_task(self._tick_loop())
        if isinstance(self.controller.state, Stabilizing):
            self._countdown = asyncio.create_task(self._stabilize_loop())

    def _cancel_countdown(self):
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    def _cancel_timers(self):
        self._cancel_countdown()
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    # ── Consumer ──

    def _dispatch(self, kind: str, payload) -> Optional[SessionState]:
        c = self.controller
        if kind == _CMD_TICK:
            c.tick(payload)
        elif kind == _CMD_STABILIZE:
            c.stabilize_tick()
        elif kind == _CMD_START:
            weight_kg, name = payload
            c.start(weight_kg, name)
            self._start_timers()
        elif kind == _CMD_STOP:
            self._cancel_timers()
            c.stop()
        elif kind == _CMD_RESET:
            self._cancel_timers()
            c.reset()
        elif kind == _CMD_FAIL:
            self._cancel_timers()
            c.fail(payload)
        else:
            raise ValueError(f"unknown command: {kind}")

        if isinstance(c.state, (Complete, Error, Idle)):
            self._cancel_timers()
        elif not isinstance(c.state, Stabilizing):
            self._cancel_countdown()
        return c.state

    async def run(self):
        """Consume events until close() is called."""
        try:
            while True:
                kind, payload, fut = await self.queue.get()
                if kind == _CMD_CLOSE:
                    if fut is not None and not fut.done():
                        fut.set_result(self.controller.state)
                    break
                try:
                    state = self._dispatch(kind, payload)
                except Exception as e:
                    if fut is not None and not fut.done():
                        fut.set_exception(e)
                        continue
                    raise
                if fut is not None and not fut.done():
                    fut.set_result(state)
        finally:
            self._cancel_timers()
            logger.debug("Live recorder stopped")


if __name__ == "__main__":
    from .config import SessionConfig

    logging.basicConfig(level=logging.INFO)

    async def _demo():
        config = SessionConfig(calibration_samples=25)
        recorder = LiveRecorder(SessionController(config))
        runner = asyncio.create_task(recorder.run())

        await recorder.start(80.0, "Demo")
        # Phone upright and still for 1 s, then a 0.2 s push
        for i in range(60):
            recorder.push_accelerometer(0.0, 9.81 + (3.0 if 50 <= i < 60 else 0.0), 0.0)
            recorder.push_gyroscope(0.0, 0.0, 0.0)
            await asyncio.sleep(0.02)
        state = await recorder.stop()
        await recorder.close()
        await runner

        if isinstance(state, Complete):
            print(f"Recorded {len(state.result.frames)} frames")
            print(f"Summary: {state.result.summary()}")
        else:
            print(f"Ended in {state}")

    asyncio.run(_demo())
