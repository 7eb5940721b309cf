import inspect
import re
import uuid
from typing import Annotated

from fastmcp import Context, FastMCP
from pydantic import Field

from .domain.errors import DomainError
from .observability.logging import component_logger

# OpenAI function/tool name constraints (used by some MCP clients):
# - Allowed chars: A-Z a-z 0-9 _ -
# - Length capped (historically 64)
_OPENAI_TOOL_NAME_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

DC_TOOL_NAMES: tuple[str, ...] = (
    # Meta
    "dc_meta_get_status",
    # Actions
    "dc_action_write",
    "dc_action_write_many",
    "dc_action_reset",
    # Bounds
    "dc_bounds_get",
    "dc_bounds_set",
    # Rotation input / status output
    "dc_rotation_write",
    "dc_emit_update",
    # Frame loop
    "dc_loop_start",
    "dc_loop_stop",
    "dc_loop_tick",
    # Global safety
    "dc_stop_all",
)

_COMMAND_DESCRIPTION = (
    "Movement command object. Relative: forward/backward/left/right (units). "
    "Absolute: translateX/translateZ (deltas) or moveto ({x,y,z} or [x,y,z]). "
    "rotate (radians), duration (ms, default 1000), height (jump arc, default 0.5), "
    "flags fire/firealt/jump. Conflicting fields are resolved, never rejected."
)


def create_server(*, adapter) -> FastMCP:
    mcp = FastMCP(
        name="discrete-control",
        # Avoid leaking internals by default; our DomainError payload is explicit anyway.
        mask_error_details=True,
    )

    logger = component_logger("mcp")

    def _trace_id(ctx: Context | None) -> str:
        rid = getattr(ctx, "request_id", None)
        return rid or str(uuid.uuid4())

    def _ok(*, trace_id: str, data: dict | list | str | int | float | bool | None) -> dict:
        return {"ok": True, "data": data, "error": None, "trace_id": trace_id}

    def _err(*, trace_id: str, error_obj: dict) -> dict:
        return {"ok": False, "data": None, "error": error_obj, "trace_id": trace_id}

    def _wrap_sync(fn):
        def _inner(*args, **kwargs):
            ctx = kwargs.pop("ctx", None)
            trace_id = _trace_id(ctx) if isinstance(ctx, Context) else _trace_id(None)
            try:
                data = fn(*args, **kwargs, trace_id=trace_id)
                return _ok(trace_id=trace_id, data=data)
            except DomainError as e:
                return _err(trace_id=trace_id, error_obj=e.to_error_obj())
            except Exception as e:  # noqa: BLE001
                logger.exception("tool.internal_error", trace_id=trace_id, error=str(e))
                return _err(
                    trace_id=trace_id,
                    error_obj={"code": "INTERNAL_ERROR", "message": "Internal error"},
                )

        return _inner

    def _wrap_async(fn):
        async def _inner(*args, **kwargs):
            ctx = kwargs.pop("ctx", None)
            trace_id = _trace_id(ctx) if isinstance(ctx, Context) else _trace_id(None)
            try:
                data = await fn(*args, **kwargs, trace_id=trace_id)
                return _ok(trace_id=trace_id, data=data)
            except DomainError as e:
                return _err(trace_id=trace_id, error_obj=e.to_error_obj())
            except Exception as e:  # noqa: BLE001
                logger.exception("tool.internal_error", trace_id=trace_id, error=str(e))
                return _err(
                    trace_id=trace_id,
                    error_obj={"code": "INTERNAL_ERROR", "message": "Internal error"},
                )

        return _inner

    _ENVELOPE_OUTPUT_SCHEMA: dict = {
        "type": "object",
        "properties": {
            "ok": {"type": "boolean"},
            "data": {},
            "error": {"type": ["object", "null"]},
            "trace_id": {"type": "string"},
        },
        "required": ["ok", "data", "error", "trace_id"],
        "additionalProperties": False,
    }

    def _tool(*, name: str, **kwargs):
        # Fail fast if someone adds an incompatible name.
        if not _OPENAI_TOOL_NAME_RE.fullmatch(name):
            raise ValueError(
                f"Invalid MCP tool name: {name!r}. "
                "Tool names must match ^[A-Za-z0-9_-]{1,64}$."
            )
        if name not in DC_TOOL_NAMES:
            raise ValueError(f"MCP tool {name!r} is missing from DC_TOOL_NAMES.")

        def _decorator(fn):
            # Keep the injected Context out of the client-visible input schema.
            tool_kwargs = dict(kwargs)
            try:
                sig = inspect.signature(fn)
                if "ctx" in sig.parameters:
                    tool_kwargs.setdefault("exclude_args", ["ctx"])
            except (TypeError, ValueError):
                pass

            # Back-compat: older fastmcp versions may not support exclude_args.
            try:
                return mcp.tool(name=name, **tool_kwargs)(fn)
            except TypeError:
                tool_kwargs.pop("exclude_args", None)
                return mcp.tool(name=name, **tool_kwargs)(fn)

        return _decorator

    # -----------------
    # Meta
    # -----------------

    @_tool(
        name="dc_meta_get_status",
        description="Controller status: body position/rotation/grounded, current action, queue depth and drop counters, bounds, frame loop, output channel.",
        annotations={"readOnlyHint": True},
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    def dc_meta_get_status(ctx: Context | None = None) -> dict:
        """Read-only snapshot of the controller and its host body."""
        return _wrap_sync(lambda *, trace_id: adapter.meta_get_status())(ctx=ctx)

    # -----------------
    # Actions
    # -----------------

    @_tool(
        name="dc_action_write",
        description="Queue one movement command. Returns accepted=false when the queue is full (newest is dropped).",
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    def dc_action_write(
        command: Annotated[
            dict,
            Field(description=_COMMAND_DESCRIPTION, examples=[{"forward": 2, "duration": 1000}]),
        ],
        ctx: Context | None = None,
    ) -> dict:
        """Queue a single command; it runs after every command queued before it."""
        return _wrap_sync(adapter.action_write)(command=command, ctx=ctx)

    @_tool(
        name="dc_action_write_many",
        description="Queue several movement commands in order (max 256).",
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    def dc_action_write_many(
        commands: Annotated[
            list[dict],
            Field(description="Commands in execution order. " + _COMMAND_DESCRIPTION, min_length=1, max_length=256),
        ],
        ctx: Context | None = None,
    ) -> dict:
        return _wrap_sync(adapter.action_write_many)(commands=commands, ctx=ctx)

    @_tool(
        name="dc_action_reset",
        description="Drop all queued commands and abort the current action where it stands (gravity is restored, no snap to end).",
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    def dc_action_reset(ctx: Context | None = None) -> dict:
        return _wrap_sync(adapter.action_reset)(ctx=ctx)

    # -----------------
    # Bounds
    # -----------------

    @_tool(
        name="dc_bounds_get",
        description="Current movement bounds (null sides are unbounded).",
        annotations={"readOnlyHint": True},
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    def dc_bounds_get(ctx: Context | None = None) -> dict:
        return _wrap_sync(lambda *, trace_id: adapter.bounds_get())(ctx=ctx)

    @_tool(
        name="dc_bounds_set",
        description="Replace the movement bounds, effective from the next frame (also mid-action). Pass null to remove all bounds.",
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    def dc_bounds_set(
        bounds: Annotated[
            dict | None,
            Field(
                description="Object with optional minx/maxx/miny/maxy/minz/maxz (number or null).",
                examples=[{"minx": -5, "maxx": 5}],
            ),
        ] = None,
        ctx: Context | None = None,
    ) -> dict:
        return _wrap_sync(adapter.bounds_set)(bounds=bounds, ctx=ctx)

    # -----------------
    # Rotation input / status output
    # -----------------

    @_tool(
        name="dc_rotation_write",
        description="Feed look deltas into the current action's rotation accumulators (x -= dy, y -= dx, z += dz). Fails with NO_ACTIVE_ACTION when idle.",
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    def dc_rotation_write(
        dx: Annotated[float, Field(description="Horizontal look delta.")] = 0.0,
        dy: Annotated[float, Field(description="Vertical look delta.")] = 0.0,
        dz: Annotated[float, Field(description="Roll delta.")] = 0.0,
        ctx: Context | None = None,
    ) -> dict:
        return _wrap_sync(adapter.rotation_write)(dx=dx, dy=dy, dz=dz, ctx=ctx)

    @_tool(
        name="dc_emit_update",
        description="Push one status snapshot (rotation accumulators + command flags) to output subscribers.",
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    def dc_emit_update(ctx: Context | None = None) -> dict:
        return _wrap_sync(adapter.emit_update)(ctx=ctx)

    # -----------------
    # Frame loop
    # -----------------

    @_tool(
        name="dc_loop_start",
        description="Start the frame loop that ticks the controller in real time. Idempotent for the same fps.",
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    async def dc_loop_start(
        fps: Annotated[int | None, Field(description="Frames per second (1-240). Defaults to loop.fps from config.", ge=1, le=240)] = None,
        ctx: Context | None = None,
    ) -> dict:
        return await _wrap_async(adapter.loop_start)(fps=fps, ctx=ctx)

    @_tool(
        name="dc_loop_stop",
        description="Stop the real-time frame loop. Queued commands stay queued.",
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    async def dc_loop_stop(ctx: Context | None = None) -> dict:
        return await _wrap_async(adapter.loop_stop)(ctx=ctx)

    @_tool(
        name="dc_loop_tick",
        description="Advance the simulation manually by a fixed frame time (only while the loop is stopped).",
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    def dc_loop_tick(
        dt_ms: Annotated[float, Field(description="Frame time in milliseconds (0, 1000].", gt=0, le=1000)],
        frames: Annotated[int, Field(description="Number of frames to run (1-1000).", ge=1, le=1000)] = 1,
        ctx: Context | None = None,
    ) -> dict:
        """Deterministic stepping, useful for previews and tests."""
        return _wrap_sync(adapter.loop_tick)(dt_ms=dt_ms, frames=frames, ctx=ctx)

    # -----------------
    # Global stop
    # -----------------

    @_tool(
        name="dc_stop_all",
        description="Stop the frame loop and reset the controller (queue cleared, current action aborted).",
        output_schema=_ENVELOPE_OUTPUT_SCHEMA,
    )
    async def dc_stop_all(ctx: Context | None = None) -> dict:
        return await _wrap_async(adapter.stop_all)(ctx=ctx)

    return mcp
