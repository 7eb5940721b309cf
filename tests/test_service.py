from __future__ import annotations

import pytest

from discrete_control.domain.adapter import DiscreteControlService
from discrete_control.domain.controller import DiscreteControl
from discrete_control.domain.errors import DomainError
from discrete_control.domain.host import SimulatedBody, gravity_force
from discrete_control.domain.loop import FrameLoop
from discrete_control.observability.logging import configure_logging, get_logger


def _service(*, max_actions: int = 1024) -> tuple[DiscreteControlService, DiscreteControl, SimulatedBody]:
    configure_logging(level="ERROR", json_logs=True)
    gravity = gravity_force(9.8)
    body = SimulatedBody()
    body.apply_force(gravity)
    controller = DiscreteControl(max_actions=max_actions, gravity=gravity, logger=get_logger().bind(component="test-controller"))
    controller.target(body)
    loop = FrameLoop(controller=controller, body=body, logger=get_logger().bind(component="test-loop"))
    service = DiscreteControlService(controller=controller, loop=loop, logger=get_logger().bind(component="test-domain"))
    return service, controller, body


def test_write_and_tick_manually():
    service, controller, _body = _service()

    r = service.action_write(command={"forward": 2, "duration": 1000}, trace_id="t")
    assert r == {"accepted": True, "queue_depth": 1, "dropped": 0}

    out = service.loop_tick(dt_ms=100, frames=5, trace_id="t")
    assert out["frames"] == 5
    assert out["body"]["position"]["z"] == pytest.approx(-1.0)
    assert out["body"]["forces"] == []

    out = service.loop_tick(dt_ms=100, frames=5, trace_id="t")
    assert out["body"]["position"] == {"x": 0.0, "y": 0.0, "z": -2.0}
    assert out["body"]["forces"] == ["gravity"]
    assert controller.current_action is None


def test_write_many_reports_drops():
    service, _controller, _body = _service(max_actions=2)

    r = service.action_write_many(commands=[{"forward": 1}] * 5, trace_id="t")

    assert r == {"accepted": 3, "rejected": 2, "queue_depth": 3, "dropped": 2}


@pytest.mark.parametrize(
    "commands",
    [[], "forward", [{"forward": 1}, 3], [{"forward": 1}] * 257],
)
def test_write_many_rejects_bad_batches(commands):
    service, _controller, _body = _service()

    with pytest.raises(DomainError) as exc:
        service.action_write_many(commands=commands, trace_id="t")
    assert exc.value.code == "INVALID_ARGUMENT"


def test_write_rejects_non_object():
    service, _controller, _body = _service()

    with pytest.raises(DomainError) as exc:
        service.action_write(command=["forward", 1], trace_id="t")
    assert exc.value.code == "INVALID_ARGUMENT"


def test_status_shape():
    service, _controller, _body = _service()
    service.action_write(command={"rotate": 1, "forward": 1}, trace_id="t")
    service.loop_tick(dt_ms=10, trace_id="t")

    status = service.meta_get_status()

    assert status["gravity_aware"] is True
    assert status["action"]["rotate"] == 0.0  # dropped for gravity-aware hosts
    assert status["queue"]["depth"] == 0
    assert status["loop"]["running"] is False
    assert status["output"]["ended"] is False
    assert "last_send_ms_ago" not in status


def test_bounds_round_trip_and_validation():
    service, controller, _body = _service()

    assert service.bounds_set(bounds={"minx": -1, "maxx": 1}, trace_id="t")["bounds"]["maxx"] == 1.0
    assert controller.movement_bounds.minx == -1.0
    assert service.bounds_get()["bounds"]["minx"] == -1.0

    for bad in ({"maxq": 1}, {"maxx": "far"}, {"minx": 2, "maxx": 1}, [1, 2]):
        with pytest.raises(DomainError) as exc:
            service.bounds_set(bounds=bad, trace_id="t")
        assert exc.value.code == "INVALID_ARGUMENT"

    service.bounds_set(bounds=None, trace_id="t")
    assert controller.movement_bounds.is_unbounded()


def test_rotation_write_needs_action_and_keeps_writer_per_action():
    service, _controller, _body = _service()

    with pytest.raises(DomainError) as exc:
        service.rotation_write(dx=1.0, trace_id="t")
    assert exc.value.code == "NO_ACTIVE_ACTION"

    service.action_write(command={"forward": 1}, trace_id="t")
    service.loop_tick(dt_ms=10, trace_id="t")

    service.rotation_write(dx=1.0, dy=1.0, trace_id="t")
    r = service.rotation_write(dx=1.0, trace_id="t")
    assert r["accumulators"] == {"x_rotation_accum": -1.0, "y_rotation_accum": -2.0, "z_rotation_accum": 0.0}

    snap = service.emit_update(trace_id="t")["snapshot"]
    assert snap["y_rotation_accum"] == -2.0


@pytest.mark.parametrize("dt_ms,frames", [(0, 1), (-5, 1), (1001, 1), (16, 0), (16, 1001), (16, True)])
def test_loop_tick_validation(dt_ms, frames):
    service, _controller, _body = _service()

    with pytest.raises(DomainError) as exc:
        service.loop_tick(dt_ms=dt_ms, frames=frames, trace_id="t")
    assert exc.value.code == "INVALID_ARGUMENT"


@pytest.mark.asyncio
async def test_loop_tick_conflicts_with_running_loop():
    service, _controller, _body = _service()

    await service.loop_start(fps=30, trace_id="t")
    try:
        with pytest.raises(DomainError) as exc:
            service.loop_tick(dt_ms=16, trace_id="t")
        assert exc.value.code == "CONFLICT"
    finally:
        await service.loop_stop(trace_id="t")


@pytest.mark.asyncio
async def test_stop_all_resets_controller():
    service, controller, body = _service()
    service.action_write_many(commands=[{"translateX": 4, "duration": 1000}] * 3, trace_id="t")
    service.loop_tick(dt_ms=250, trace_id="t")
    await service.loop_start(trace_id="t")

    r = await service.stop_all(trace_id="t")

    assert r == {"stopped": True, "errors": []}
    assert service.meta_get_status()["loop"]["running"] is False
    assert controller.current_action is None
    assert controller.queue_depth == 0
    assert "gravity" in {f.name for f in body.forces}
