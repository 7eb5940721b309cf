from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from ..observability.logging import component_logger
from .errors import DomainError

Snapshot = dict[str, Any]


@dataclass
class RotationAccumulator:
    """Net look/rotation deltas gathered while one action is current."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def apply(self, *, dx: float = 0.0, dy: float = 0.0, dz: float = 0.0) -> None:
        self.x -= dy
        self.y -= dx
        self.z += dz

    def reset(self) -> None:
        self.x = self.y = self.z = 0.0

    def as_snapshot(self) -> dict[str, float]:
        return {
            "x_rotation_accum": self.x,
            "y_rotation_accum": self.y,
            "z_rotation_accum": self.z,
        }


class RotationWriter:
    """Write-only sink for ``{dx, dy, dz}`` deltas into one accumulator."""

    def __init__(self, accumulator: RotationAccumulator) -> None:
        self._accum = accumulator
        self._ended = False

    @property
    def writable(self) -> bool:
        return not self._ended

    @property
    def accumulator(self) -> RotationAccumulator:
        return self._accum

    def write(self, changes: Mapping[str, Any]) -> bool:
        if self._ended:
            return False
        self._accum.apply(
            dx=float(changes.get("dx") or 0.0),
            dy=float(changes.get("dy") or 0.0),
            dz=float(changes.get("dz") or 0.0),
        )
        return True

    def end(self, changes: Mapping[str, Any] | None = None) -> None:
        if changes:
            self.write(changes)
        self._ended = True


class OutputListener(Protocol):
    def on_data(self, snapshot: Snapshot) -> None: ...

    def on_end(self) -> None: ...

    def on_pause(self) -> None: ...

    def on_drain(self) -> None: ...


@dataclass
class CallbackListener:
    """Adapts plain callables to ``OutputListener``; unset hooks are ignored."""

    data: Callable[[Snapshot], None] | None = None
    end: Callable[[], None] | None = None
    pause: Callable[[], None] | None = None
    drain: Callable[[], None] | None = None

    def on_data(self, snapshot: Snapshot) -> None:
        if self.data is not None:
            self.data(snapshot)

    def on_end(self) -> None:
        if self.end is not None:
            self.end()

    def on_pause(self) -> None:
        if self.pause is not None:
            self.pause()

    def on_drain(self) -> None:
        if self.drain is not None:
            self.drain()


class OutputChannel:
    """Bounded, pausable FIFO of status snapshots.

    Contract:
    - ``push`` never blocks; when the buffer is full the oldest snapshot is
      dropped.
    - Draining stops while paused. A ``None`` entry ends the stream: listeners
      get ``on_end`` instead of ``on_data`` and nothing after it is delivered.
      Pushes after ``close`` are ignored, and the end marker is never
      evicted by overflow.
    - ``resume`` notifies ``on_drain`` once the buffer is empty, unless a
      listener paused the channel again during the drain.
    """

    def __init__(self, *, max_buffer: int = 1024, logger=None) -> None:
        if max_buffer < 1:
            raise DomainError(code="INVALID_ARGUMENT", message="max_buffer must be >= 1.", details={"max_buffer": max_buffer})
        self._logger = logger or component_logger("output")
        self._max_buffer = int(max_buffer)
        self._buffer: deque[Snapshot | None] = deque()
        self._listeners: list[OutputListener] = []
        self._paused = False
        self._ended = False
        # Set once the end marker is queued; it stays the last buffered entry.
        self._closing = False
        self._dropped = 0

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def dropped(self) -> int:
        return self._dropped

    def buffered(self) -> int:
        return len(self._buffer)

    def subscribe(self, listener: OutputListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def push(self, snapshot: Snapshot | None) -> "OutputChannel":
        if self._ended or self._closing:
            self._logger.debug("output.after_end")
            return self
        if snapshot is None:
            self._closing = True
        if len(self._buffer) >= self._max_buffer:
            self._buffer.popleft()
            self._dropped += 1
            self._logger.warning("output.dropped", dropped=self._dropped, max_buffer=self._max_buffer)
        self._buffer.append(snapshot)
        self.drain()
        return self

    def close(self) -> "OutputChannel":
        return self.push(None)

    def drain(self) -> None:
        while self._buffer and not self._paused:
            item = self._buffer.popleft()
            if item is None:
                self._ended = True
                self._buffer.clear()
                self._notify("on_end")
                return
            self._notify("on_data", item)

    def pause(self) -> "OutputChannel":
        if self._paused:
            return self
        self._paused = True
        self._notify("on_pause")
        return self

    def resume(self) -> "OutputChannel":
        self._paused = False
        self.drain()
        if not self._paused:
            self._notify("on_drain")
        return self

    def _notify(self, hook: str, *args: Any) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, hook)(*args)
            except Exception:  # noqa: BLE001
                # One broken consumer must not starve the others.
                self._logger.exception("output.listener_failed", hook=hook, listener=type(listener).__name__)
