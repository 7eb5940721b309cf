from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.config import ConfigDict

from ..observability.logging import component_logger
from .host import ControlledObject
from .output import RotationAccumulator
from .vector import Vec3

DEFAULT_DURATION_MS = 1000.0
DEFAULT_HEIGHT = 0.5


class Command(BaseModel):
    """A raw movement command as written by a caller.

    Wire names are camelCase (``translateX``); snake_case is accepted too.
    Every field is optional and unknown keys are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    forward: float | None = None
    backward: float | None = None
    left: float | None = None
    right: float | None = None

    translate_x: float | None = Field(None, alias="translateX")
    translate_z: float | None = Field(None, alias="translateZ")
    moveto: Vec3 | None = None

    rotate: float | None = None
    duration: float | None = None
    height: float | None = None

    fire: bool | None = None
    firealt: bool | None = None
    jump: bool | None = None

    @field_validator("fire", "firealt", "jump", mode="before")
    @classmethod
    def _truthy_flag(cls, v: Any) -> bool | None:
        # Flags go by truthiness; a non-bool value never discards the command.
        if v is None:
            return None
        return bool(v)

    @field_validator("moveto", mode="before")
    @classmethod
    def _moveto_point(cls, v: Any) -> Vec3 | None:
        if v is None:
            return None
        try:
            return Vec3.of(v)
        except TypeError as e:
            # pydantic only wraps ValueError into a ValidationError.
            raise ValueError(str(e)) from e


@dataclass
class NormalizedAction:
    """A command after conflict resolution, with exact start/end state.

    After normalization ``forward``/``left`` carry the signed relative
    magnitudes (``backward``/``right`` are always 0) and
    ``translate_x``/``translate_z`` the absolute deltas. Only ``elapsed`` and
    the rotation accumulators change while the action runs.
    """

    forward: float
    backward: float
    left: float
    right: float
    translate_x: float
    translate_z: float
    moveto: Vec3 | None
    rotate: float
    duration: float
    height: float
    fire: bool
    firealt: bool
    jump: bool

    start_position: Vec3
    end_position: Vec3
    start_rotation: float
    end_rotation: float

    elapsed: float = 0.0
    rotation: RotationAccumulator = field(default_factory=RotationAccumulator)

    def flags(self) -> dict[str, Any]:
        return {
            "forward": self.forward,
            "backward": self.backward,
            "left": self.left,
            "right": self.right,
            "fire": self.fire,
            "firealt": self.firealt,
            "jump": self.jump,
        }

    def summary(self) -> dict[str, Any]:
        return {
            **self.flags(),
            "translateX": self.translate_x,
            "translateZ": self.translate_z,
            "rotate": self.rotate,
            "duration": self.duration,
            "height": self.height,
            "elapsed": self.elapsed,
            "start_position": self.start_position.as_dict(),
            "end_position": self.end_position.as_dict(),
            "start_rotation": self.start_rotation,
            "end_rotation": self.end_rotation,
        }


def _end_position(obj: ControlledObject, *, forward: float, left: float, translate_x: float, translate_z: float) -> Vec3:
    # Let the host do its own rotation-aware move, read it back, then undo it.
    saved = obj.get_position()
    try:
        if forward:
            obj.translate_relative(0.0, -forward)
        if left:
            obj.translate_relative(-left, 0.0)
        moved = obj.get_position()
    finally:
        obj.set_position(saved)
    return Vec3(moved.x + translate_x, moved.y, moved.z + translate_z)


def normalize_command(
    raw: Mapping[str, Any] | Command,
    obj: ControlledObject,
    *,
    gravity_aware: bool = False,
    logger=None,
) -> NormalizedAction | None:
    """Resolve a raw command against the current state of ``obj``.

    Contradictory fields never fail the command: each conflict is settled by a
    fixed precedence and logged. Commands that cannot be read at all are
    logged and discarded (returns None).
    """

    log = logger or component_logger("normalizer")

    if isinstance(raw, Command):
        cmd = raw
    elif isinstance(raw, Mapping):
        try:
            cmd = Command.model_validate(dict(raw))
        except ValidationError as e:
            log.warning("action.discarded", reason="invalid_fields", errors=e.errors(include_url=False))
            return None
    else:
        log.warning("action.discarded", reason="not_a_mapping", given_type=type(raw).__name__)
        return None

    forward = cmd.forward or 0.0
    backward = cmd.backward or 0.0
    left = cmd.left or 0.0
    right = cmd.right or 0.0
    translate_x = cmd.translate_x or 0.0
    translate_z = cmd.translate_z or 0.0
    moveto = cmd.moveto
    rotate = cmd.rotate or 0.0

    relative = bool(forward or backward or left or right)
    absolute = bool(translate_x or translate_z or moveto is not None)

    if gravity_aware and rotate and (relative or absolute):
        log.warning("action.conflict", rule="rotate_vs_move", message="Command both rotates and moves; keeping the movement.")
        rotate = 0.0

    if forward and backward:
        log.warning("action.conflict", rule="forward_vs_backward", message="Command sets forward and backward; choosing forward.")
        backward = 0.0

    if left and right:
        log.warning("action.conflict", rule="left_vs_right", message="Command sets left and right; choosing left.")
        right = 0.0

    if absolute and relative:
        log.warning(
            "action.conflict",
            rule="absolute_vs_relative",
            message="Command mixes absolute (moveto/translate) and relative (forward/left) movement; keeping absolute.",
        )
        forward = backward = left = right = 0.0

    if moveto is not None and (translate_x or translate_z):
        log.warning("action.conflict", rule="moveto_vs_translate", message="Command sets moveto and translateX/Z; choosing moveto.")
        translate_x = translate_z = 0.0

    start_position = obj.get_position()

    if moveto is not None:
        translate_x = moveto.x - start_position.x
        translate_z = moveto.z - start_position.z

    if backward:
        forward = -backward
        backward = 0.0

    if right:
        left = -right
        right = 0.0

    # Explicit zero/negative duration completes on the activating tick; a
    # non-finite one counts as unset.
    if cmd.duration is None or not math.isfinite(cmd.duration):
        duration = DEFAULT_DURATION_MS
    else:
        duration = max(0.0, float(cmd.duration))
    height = DEFAULT_HEIGHT if cmd.height is None else float(cmd.height)

    start_rotation = obj.get_rotation_y()
    action = NormalizedAction(
        forward=forward,
        backward=backward,
        left=left,
        right=right,
        translate_x=translate_x,
        translate_z=translate_z,
        moveto=moveto,
        rotate=rotate,
        duration=duration,
        height=height,
        fire=bool(cmd.fire),
        firealt=bool(cmd.firealt),
        jump=bool(cmd.jump),
        start_position=start_position,
        end_position=_end_position(obj, forward=forward, left=left, translate_x=translate_x, translate_z=translate_z),
        start_rotation=start_rotation,
        end_rotation=start_rotation + rotate,
    )
    log.debug(
        "action.normalized",
        duration=action.duration,
        height=action.height,
        end_position=action.end_position.as_dict(),
        end_rotation=action.end_rotation,
    )
    return action
