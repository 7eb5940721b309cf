from __future__ import annotations

from typing import Any

from .actions import NormalizedAction
from .bounds import Bounds
from .controller import DiscreteControl
from .errors import DomainError
from .loop import FrameLoop, LoopStatus
from .output import RotationWriter

_MAX_BATCH = 256
_MAX_MANUAL_FRAMES = 1000
_MAX_MANUAL_DT_MS = 1000.0


def _bounds_from_arg(bounds: Any) -> Bounds:
    if bounds is None:
        return Bounds.unbounded()
    if not isinstance(bounds, dict):
        raise DomainError(code="INVALID_ARGUMENT", message="bounds must be an object or null.")

    unknown = sorted(k for k in bounds if k not in {"minx", "maxx", "miny", "maxy", "minz", "maxz"})
    if unknown:
        raise DomainError(
            code="INVALID_ARGUMENT",
            message="bounds contains unsupported fields.",
            details={"unknown": unknown, "supported": ["minx", "maxx", "miny", "maxy", "minz", "maxz"]},
        )

    try:
        b = Bounds.from_mapping(bounds)
    except (TypeError, ValueError) as e:
        raise DomainError(code="INVALID_ARGUMENT", message="bounds values must be numbers or null.") from e

    for axis in ("x", "y", "z"):
        lo = getattr(b, f"min{axis}")
        hi = getattr(b, f"max{axis}")
        if lo is not None and hi is not None and lo > hi:
            raise DomainError(
                code="INVALID_ARGUMENT",
                message=f"min{axis} must be <= max{axis}.",
                details={f"min{axis}": lo, f"max{axis}": hi},
            )
    return b


class DiscreteControlService:
    """Tool-facing operations over one controller and its host body.

    The controller itself never raises for bad commands (they are resolved or
    discarded and logged); this layer only rejects malformed tool arguments
    with DomainError.
    """

    def __init__(
        self,
        *,
        controller: DiscreteControl,
        loop: FrameLoop,
        logger,
        transport=None,
    ) -> None:
        self._controller = controller
        self._loop = loop
        self._logger = logger
        self._transport = transport

        self._rotation_writer: RotationWriter | None = None
        self._rotation_action: NormalizedAction | None = None

    # -----------------
    # Meta
    # -----------------

    def meta_get_status(self) -> dict[str, Any]:
        diag = self._controller.diagnostics()
        loop = self._loop.status()
        output = self._controller.output
        action = self._controller.current_action

        def _loop_obj(s: LoopStatus) -> dict[str, Any]:
            return {"running": s.running, "loop_id": s.loop_id, "fps": s.fps, "frames": s.frames}

        status: dict[str, Any] = {
            "body": self._body_obj(),
            "action": action.summary() if action is not None else None,
            "queue": {
                "depth": diag.queue_depth,
                "max_actions": diag.max_actions,
                "dropped": diag.dropped,
                "discarded": diag.discarded,
                "completed": diag.completed,
                "input_closed": diag.input_closed,
            },
            "gravity_aware": diag.gravity_aware,
            "bounds": self._controller.movement_bounds.as_dict(),
            "loop": _loop_obj(loop),
            "output": {
                "paused": output.paused,
                "buffered": output.buffered(),
                "dropped": output.dropped,
                "ended": output.ended,
            },
        }
        if self._transport is not None:
            status["last_send_ms_ago"] = self._transport.last_sent_ms_ago()
        return status

    def _body_obj(self) -> dict[str, Any] | None:
        target = self._controller.target()
        if target is None:
            return None
        d: dict[str, Any] = {
            "position": target.get_position().as_dict(),
            "rotation_y": target.get_rotation_y(),
            "grounded": target.is_grounded(),
        }
        forces = getattr(target, "forces", None)
        if forces is not None:
            d["forces"] = sorted(f.name for f in forces)
        velocity = getattr(target, "velocity", None)
        if velocity is not None:
            d["velocity"] = velocity.as_dict()
        return d

    # -----------------
    # Actions
    # -----------------

    def action_write(self, *, command: Any, trace_id: str) -> dict[str, Any]:
        if not isinstance(command, dict):
            raise DomainError(code="INVALID_ARGUMENT", message="command must be an object.")

        accepted = self._controller.write(command)
        self._logger.debug("action.write", trace_id=trace_id, accepted=accepted)
        diag = self._controller.diagnostics()
        return {"accepted": accepted, "queue_depth": diag.queue_depth, "dropped": diag.dropped}

    def action_write_many(self, *, commands: Any, trace_id: str) -> dict[str, Any]:
        if not isinstance(commands, list) or not commands:
            raise DomainError(code="INVALID_ARGUMENT", message="commands must be a non-empty array.")
        if len(commands) > _MAX_BATCH:
            raise DomainError(
                code="INVALID_ARGUMENT",
                message=f"too many commands (max {_MAX_BATCH}).",
                details={"max": _MAX_BATCH, "given": len(commands)},
            )
        if any(not isinstance(c, dict) for c in commands):
            raise DomainError(code="INVALID_ARGUMENT", message="commands[*] must be objects.")

        accepted = [self._controller.write(c) for c in commands]
        diag = self._controller.diagnostics()
        return {
            "accepted": sum(accepted),
            "rejected": len(accepted) - sum(accepted),
            "queue_depth": diag.queue_depth,
            "dropped": diag.dropped,
        }

    def action_reset(self, *, trace_id: str) -> dict[str, Any]:
        self._controller.reset()
        self._rotation_writer = None
        self._rotation_action = None
        self._logger.info("action.reset", trace_id=trace_id)
        return {"reset": True, "body": self._body_obj()}

    # -----------------
    # Bounds
    # -----------------

    def bounds_get(self) -> dict[str, Any]:
        return {"bounds": self._controller.movement_bounds.as_dict()}

    def bounds_set(self, *, bounds: Any, trace_id: str) -> dict[str, Any]:
        b = _bounds_from_arg(bounds)
        self._controller.set_movement_bounds(b)
        return {"bounds": b.as_dict()}

    # -----------------
    # Rotation input / status output
    # -----------------

    def rotation_write(self, *, dx: float = 0.0, dy: float = 0.0, dz: float = 0.0, trace_id: str) -> dict[str, Any]:
        action = self._controller.current_action
        if action is None or action is not self._rotation_action:
            # Raises NO_ACTIVE_ACTION when idle.
            self._rotation_writer = self._controller.create_write_rotation_stream()
            self._rotation_action = action

        assert self._rotation_writer is not None
        self._rotation_writer.write({"dx": dx, "dy": dy, "dz": dz})
        return {"accumulators": self._rotation_writer.accumulator.as_snapshot()}

    def emit_update(self, *, trace_id: str) -> dict[str, Any]:
        snapshot = self._controller.emit_update()
        return {"snapshot": snapshot}

    # -----------------
    # Frame loop
    # -----------------

    async def loop_start(self, *, fps: int | None = None, trace_id: str) -> dict[str, Any]:
        loop_id = await self._loop.start(fps=fps)
        s = self._loop.status()
        return {"running": True, "loop_id": loop_id, "fps": s.fps}

    async def loop_stop(self, *, trace_id: str) -> dict[str, Any]:
        await self._loop.stop()
        return {"stopped": True}

    def loop_tick(self, *, dt_ms: float, frames: int = 1, trace_id: str) -> dict[str, Any]:
        if self._loop.status().running:
            raise DomainError(code="CONFLICT", message="Frame loop is running; stop it before stepping manually.")
        if not isinstance(frames, int) or isinstance(frames, bool) or not (1 <= frames <= _MAX_MANUAL_FRAMES):
            raise DomainError(
                code="INVALID_ARGUMENT",
                message=f"frames must be an integer within [1, {_MAX_MANUAL_FRAMES}].",
                details={"frames": frames},
            )
        if not isinstance(dt_ms, (int, float)) or isinstance(dt_ms, bool) or not (0 < dt_ms <= _MAX_MANUAL_DT_MS):
            raise DomainError(
                code="INVALID_ARGUMENT",
                message=f"dt_ms must be a number within (0, {_MAX_MANUAL_DT_MS:g}].",
                details={"dt_ms": dt_ms},
            )

        for _ in range(frames):
            self._loop.advance(float(dt_ms))
        return {"frames": frames, "dt_ms": float(dt_ms), "body": self._body_obj()}

    # -----------------
    # Global stop
    # -----------------

    async def stop_all(self, *, trace_id: str) -> dict[str, Any]:
        # Best-effort: do not fail if one subsystem errors.
        errors: list[dict[str, Any]] = []

        try:
            await self.loop_stop(trace_id=trace_id)
        except DomainError as e:
            errors.append({"subsystem": "loop", "error": e.to_error_obj()})
        except Exception as e:  # noqa: BLE001
            errors.append({"subsystem": "loop", "error": {"code": "INTERNAL_ERROR", "message": str(e)}})

        try:
            self.action_reset(trace_id=trace_id)
        except Exception as e:  # noqa: BLE001
            errors.append({"subsystem": "actions", "error": {"code": "INTERNAL_ERROR", "message": str(e)}})

        return {"stopped": True, "errors": errors}
