from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from .controller import DiscreteControl
from .errors import DomainError

LoopState = Literal["STOPPED", "RUNNING", "STOPPING"]


@dataclass
class LoopStatus:
    running: bool
    loop_id: str | None
    fps: int | None
    frames: int


def _frame_interval_s(fps: int) -> float:
    if fps <= 0:
        return 1 / 60
    return 1.0 / float(fps)


class FrameLoop:
    """Drives ``controller.tick`` once per frame from an asyncio task.

    Each frame lets the host body integrate its own physics first (when it has
    a ``step(dt_ms)``), then advances the controller by the measured frame
    time in milliseconds.
    """

    def __init__(
        self,
        *,
        controller: DiscreteControl,
        body: Any,
        logger,
        fps: int = 60,
        emit_updates: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._controller = controller
        self._body = body
        self._logger = logger
        self._clock = clock

        self._task: asyncio.Task[None] | None = None
        self._state: LoopState = "STOPPED"
        self._loop_id: str | None = None

        self._fps: int = int(fps)
        self._emit_updates = bool(emit_updates)
        self._frames = 0

    def status(self) -> LoopStatus:
        return LoopStatus(
            running=self._state == "RUNNING",
            loop_id=self._loop_id,
            fps=self._fps if self._state == "RUNNING" else None,
            frames=self._frames,
        )

    def advance(self, dt_ms: float) -> None:
        """Run one frame of ``dt_ms`` milliseconds."""

        step = getattr(self._body, "step", None)
        if callable(step):
            step(dt_ms)

        self._controller.tick(dt_ms)
        self._frames += 1

        if self._emit_updates and self._controller.current_action is not None:
            self._controller.emit_update()

    async def start(self, *, fps: int | None = None) -> str:
        fps = self._fps if fps is None else int(fps)

        if self._state == "RUNNING":
            assert self._loop_id is not None
            if fps != self._fps:
                raise DomainError(
                    code="CONFLICT",
                    message="Frame loop is already running with a different fps; stop it first.",
                    details={"running": {"fps": self._fps}, "requested": {"fps": fps}},
                )
            return self._loop_id

        if fps < 1:
            raise DomainError(code="INVALID_ARGUMENT", message="fps must be >= 1.", details={"fps": fps})

        self._fps = fps
        self._state = "RUNNING"
        self._loop_id = str(uuid.uuid4())
        self._task = asyncio.create_task(self._run(), name="discrete-control-frame-loop")
        self._logger.info("loop.start", loop_id=self._loop_id, fps=self._fps)
        return self._loop_id

    async def stop(self) -> None:
        if self._state == "STOPPED":
            return

        self._state = "STOPPING"
        task = self._task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            finally:
                self._task = None

        self._logger.info("loop.stop", loop_id=self._loop_id, frames=self._frames)
        self._state = "STOPPED"
        self._loop_id = None

    async def _run(self) -> None:
        interval = _frame_interval_s(self._fps)
        last = self._clock()
        try:
            while True:
                await asyncio.sleep(interval)
                now = self._clock()
                dt_ms = (now - last) * 1000.0
                last = now
                self.advance(dt_ms)
        except asyncio.CancelledError:
            raise
        except Exception:
            self._logger.exception("loop.crashed", loop_id=self._loop_id, frames=self._frames)
            self._state = "STOPPED"
            self._loop_id = None
            raise
