from __future__ import annotations

from dataclasses import dataclass

from .actions import NormalizedAction


@dataclass(frozen=True)
class FrameMotion:
    """What one frame of an action does to the controlled object.

    ``relative_*`` go through the host's rotation-aware translate,
    ``absolute_*`` and ``rotate`` are added to world position/yaw, ``y`` is an
    absolute height. A ``complete`` frame carries no motion: the caller snaps
    to the precomputed end state instead.
    """

    elapsed: float
    complete: bool
    relative_x: float = 0.0
    relative_z: float = 0.0
    absolute_x: float = 0.0
    absolute_z: float = 0.0
    rotate: float = 0.0
    y: float | None = None


def vertical_position(*, height: float, duration: float, start_y: float, elapsed: float) -> float:
    """Height on the jump arc at ``elapsed`` ms.

    y = -curvature * (t - D/2)^2 + height + start_y, with
    curvature = height / (D/2)^2 so that y(0) = y(D) = start_y and
    y(D/2) = start_y + height.
    """

    if duration <= 0:
        return start_y
    half = duration / 2
    curvature = height / (half * half)
    return height + start_y - curvature * (elapsed - half) ** 2


def step(action: NormalizedAction, dt: float, elapsed_before: float) -> FrameMotion:
    elapsed = elapsed_before + dt
    duration = action.duration

    if elapsed >= duration:
        return FrameMotion(elapsed=elapsed, complete=True)

    rate = dt / duration
    return FrameMotion(
        elapsed=elapsed,
        complete=False,
        relative_x=-action.left * rate if action.left else 0.0,
        relative_z=-action.forward * rate if action.forward else 0.0,
        absolute_x=action.translate_x * rate if action.translate_x else 0.0,
        absolute_z=action.translate_z * rate if action.translate_z else 0.0,
        rotate=action.rotate * rate if action.rotate else 0.0,
        # Height comes from total elapsed time, not accumulated increments.
        y=vertical_position(
            height=action.height,
            duration=duration,
            start_y=action.start_position.y,
            elapsed=elapsed,
        ),
    )
