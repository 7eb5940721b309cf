from __future__ import annotations

import pytest

from discrete_control.domain.actions import normalize_command
from discrete_control.domain.host import SimulatedBody
from discrete_control.domain.kinematics import step, vertical_position
from discrete_control.domain.vector import Vec3


def test_vertical_arc_apex_and_ends():
    kw = {"height": 0.5, "duration": 1000.0, "start_y": 2.0}

    assert vertical_position(elapsed=0.0, **kw) == pytest.approx(2.0)
    assert vertical_position(elapsed=500.0, **kw) == pytest.approx(2.5)
    assert vertical_position(elapsed=1000.0, **kw) == pytest.approx(2.0)


def test_vertical_arc_zero_duration_stays_put():
    assert vertical_position(height=1.0, duration=0.0, start_y=3.0, elapsed=0.0) == 3.0


def test_step_increments_are_linear_in_dt():
    body = SimulatedBody(position=Vec3(0.0, 1.0, 0.0))
    action = normalize_command({"forward": 2, "left": 1, "rotate": 1.0, "duration": 1000}, body)

    motion = step(action, 250.0, 0.0)

    assert motion.complete is False
    assert motion.elapsed == 250.0
    assert motion.relative_z == pytest.approx(-0.5)
    assert motion.relative_x == pytest.approx(-0.25)
    assert motion.rotate == pytest.approx(0.25)
    assert motion.absolute_x == 0.0
    assert motion.y == pytest.approx(vertical_position(height=0.5, duration=1000.0, start_y=1.0, elapsed=250.0))


def test_step_reports_completion_without_motion():
    action = normalize_command({"translateX": 4, "duration": 400}, SimulatedBody())

    motion = step(action, 150.0, 300.0)

    assert motion.complete is True
    assert motion.elapsed == 450.0
    assert motion.absolute_x == 0.0
    assert motion.y is None


def test_step_does_not_mutate_action():
    action = normalize_command({"translateZ": 1}, SimulatedBody())

    step(action, 100.0, action.elapsed)

    assert action.elapsed == 0.0
