from __future__ import annotations

import math
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ..observability.logging import component_logger
from . import kinematics
from .actions import NormalizedAction, normalize_command
from .bounds import Bounds, enforce_bounds
from .errors import DomainError
from .host import ControlledObject, Force
from .output import OutputChannel, OutputListener, RotationAccumulator, RotationWriter, Snapshot
from .physics import NullPhysicsCoordinator, PhysicsCoordinator
from .vector import Vec3

# Overflow warnings are logged on the 1st drop and then every N drops.
_DROP_WARN_EVERY = 100

_NEUTRAL_FLAGS: dict[str, Any] = {
    "forward": 0.0,
    "backward": 0.0,
    "left": 0.0,
    "right": 0.0,
    "fire": False,
    "firealt": False,
    "jump": False,
}


@dataclass(frozen=True)
class ControllerDiagnostics:
    queue_depth: int
    max_actions: int
    dropped: int
    discarded: int
    completed: int
    active: bool
    gravity_aware: bool
    input_closed: bool


class DiscreteControl:
    """Plays queued movement commands on one controlled object, one at a time.

    States: idle (no current action) -> running -> idle. Everything happens
    inside ``tick``: an idle controller pulls and normalizes the next command
    and advances it in the same call, and the frame that reaches the
    action's duration snaps to the precomputed end state and returns to idle.

    With a gravity force (or a gravity-aware ``physics`` collaborator) a new
    action only starts while the object is grounded, gravity is suspended
    for the action's lifetime, and a command that both moves and rotates
    keeps only the movement.
    """

    def __init__(
        self,
        *,
        max_actions: int = 1024,
        movement_bounds: Bounds | Mapping[str, Any] | None = None,
        gravity: Force | None = None,
        physics: PhysicsCoordinator | NullPhysicsCoordinator | None = None,
        output: OutputChannel | None = None,
        logger=None,
    ) -> None:
        self._logger = logger or component_logger("controller")

        if physics is None:
            physics = PhysicsCoordinator(gravity, logger=self._logger) if gravity is not None else NullPhysicsCoordinator()
        self._physics = physics

        self._max_actions = int(max_actions)
        self._bounds = self._coerce_bounds(movement_bounds)
        self._output = output or OutputChannel(logger=self._logger)

        self._target: ControlledObject | None = None
        self._action: NormalizedAction | None = None
        self._queue: deque[Any] = deque()

        self._input_closed = False
        self._dropped = 0
        self._discarded = 0
        self._completed = 0

    # -----------------
    # Binding / configuration
    # -----------------

    def target(self, obj: ControlledObject | None = None) -> ControlledObject | None:
        if obj is not None:
            self._target = obj
        return self._target

    @property
    def gravity_aware(self) -> bool:
        return bool(self._physics.gravity_aware)

    @property
    def max_actions(self) -> int:
        return self._max_actions

    @property
    def movement_bounds(self) -> Bounds:
        return self._bounds

    @property
    def output(self) -> OutputChannel:
        return self._output

    @property
    def current_action(self) -> NormalizedAction | None:
        return self._action

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    def set_movement_bounds(self, bounds: Bounds | Mapping[str, Any] | None) -> Bounds:
        self._bounds = self._coerce_bounds(bounds)
        self._logger.info("bounds.set", **self._bounds.as_dict())
        return self._bounds

    @staticmethod
    def _coerce_bounds(bounds: Bounds | Mapping[str, Any] | None) -> Bounds:
        if isinstance(bounds, Bounds):
            return bounds
        return Bounds.from_mapping(bounds)

    def diagnostics(self) -> ControllerDiagnostics:
        return ControllerDiagnostics(
            queue_depth=len(self._queue),
            max_actions=self._max_actions,
            dropped=self._dropped,
            discarded=self._discarded,
            completed=self._completed,
            active=self._action is not None,
            gravity_aware=self.gravity_aware,
            input_closed=self._input_closed,
        )

    # -----------------
    # Command input
    # -----------------

    def write(self, command: Mapping[str, Any]) -> bool:
        if self._input_closed:
            self._logger.warning("queue.closed", message="write after end(); command dropped.")
            return False

        # The check is '>' so max_actions + 1 commands fit.
        if len(self._queue) > self._max_actions:
            self._dropped += 1
            if self._dropped % _DROP_WARN_EVERY == 1:
                self._logger.warning(
                    "queue.overflow",
                    message="Action queue exceeds max_actions; dropping the newest command.",
                    max_actions=self._max_actions,
                    dropped=self._dropped,
                )
            return False

        self._queue.append(command)
        return True

    def end(self, command: Mapping[str, Any] | None = None) -> None:
        if command is not None:
            self.write(command)
        self._input_closed = True
        self._output.close()

    # -----------------
    # Frame drive
    # -----------------

    def tick(self, dt: float) -> None:
        target = self._target
        if target is None:
            return
        if not math.isfinite(dt):
            self._logger.warning("tick.bad_dt", dt=repr(dt))
            return

        self._setup_action(target)
        action = self._action
        if action is None:
            return

        motion = kinematics.step(action, dt, action.elapsed)
        action.elapsed = motion.elapsed

        if motion.complete:
            self._finish_action(target, action)
            return

        if motion.relative_x or motion.relative_z:
            target.translate_relative(motion.relative_x, motion.relative_z)

        pos = target.get_position()
        target.set_position(
            Vec3(
                pos.x + motion.absolute_x,
                pos.y if motion.y is None else motion.y,
                pos.z + motion.absolute_z,
            )
        )

        if motion.rotate:
            target.set_rotation_y(target.get_rotation_y() + motion.rotate)

        self._enforce_bounds(target)

    def _setup_action(self, target: ControlledObject) -> None:
        if self._action is not None or not self._queue:
            return

        # Airborne objects keep their commands queued until they land.
        if self._physics.gravity_aware and not target.is_grounded():
            return

        while self._queue:
            raw = self._queue.popleft()
            action = normalize_command(raw, target, gravity_aware=self._physics.gravity_aware, logger=self._logger)
            if action is None:
                self._discarded += 1
                continue

            self._action = action
            self._physics.suspend(target)
            self._logger.info(
                "action.activated",
                duration=action.duration,
                height=action.height,
                end_position=action.end_position.as_dict(),
                end_rotation=action.end_rotation,
                queue_depth=len(self._queue),
            )
            return

    def _finish_action(self, target: ControlledObject, action: NormalizedAction) -> None:
        target.set_position(action.end_position)
        target.set_rotation_y(action.end_rotation)
        self._enforce_bounds(target)
        self._physics.restore(target)
        self._action = None
        self._completed += 1
        self._logger.info(
            "action.completed",
            position=target.get_position().as_dict(),
            rotation_y=target.get_rotation_y(),
            elapsed=action.elapsed,
        )

    def _enforce_bounds(self, target: ControlledObject) -> None:
        if self._bounds.is_unbounded():
            return
        if enforce_bounds(target, self._bounds):
            self._logger.debug("bounds.clamped", position=target.get_position().as_dict())

    def reset(self) -> None:
        """Drop pending commands and abort the current action where it stands."""

        pending = len(self._queue)
        self._queue.clear()

        aborted = self._action is not None
        if aborted and self._target is not None:
            self._physics.restore(self._target)
        self._action = None

        self._logger.info("controller.reset", pending_dropped=pending, aborted=aborted)

    # -----------------
    # Rotation input / status output
    # -----------------

    def create_write_rotation_stream(self) -> RotationWriter:
        action = self._action
        if action is None:
            raise DomainError(
                code="NO_ACTIVE_ACTION",
                message="Rotation input needs a current action; write a command and tick first.",
            )
        action.rotation.reset()
        return RotationWriter(action.rotation)

    def emit_update(self) -> Snapshot:
        action = self._action
        if action is None:
            snapshot: Snapshot = {**RotationAccumulator().as_snapshot(), **_NEUTRAL_FLAGS}
        else:
            snapshot = {**action.rotation.as_snapshot(), **action.flags()}
        self._output.push(snapshot)
        return snapshot

    def subscribe(self, listener: OutputListener) -> Callable[[], None]:
        return self._output.subscribe(listener)

    def pause(self) -> "DiscreteControl":
        self._output.pause()
        return self

    def resume(self) -> "DiscreteControl":
        self._output.resume()
        return self
