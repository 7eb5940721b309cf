from __future__ import annotations

import math

import pytest

from discrete_control.domain.bounds import Bounds, enforce_bounds
from discrete_control.domain.host import Force, SimulatedBody, gravity_force
from discrete_control.domain.vector import Vec3


def test_clamp_respects_open_sides():
    b = Bounds(minx=-1.0, maxx=1.0, miny=0.0)

    assert b.clamp(Vec3(5.0, -3.0, 100.0)) == Vec3(1.0, 0.0, 100.0)
    assert b.clamp(Vec3(-5.0, 2.0, -100.0)) == Vec3(-1.0, 2.0, -100.0)


def test_enforce_bounds_only_writes_when_outside():
    body = SimulatedBody(position=Vec3(0.5, 0.0, 0.0))
    b = Bounds(maxx=1.0)

    assert enforce_bounds(body, b) is False
    body.position = Vec3(2.0, 0.0, 0.0)
    assert enforce_bounds(body, b) is True
    assert body.position == Vec3(1.0, 0.0, 0.0)


def test_from_mapping_and_as_dict():
    b = Bounds.from_mapping({"minz": -2, "maxz": "3.5", "ignored": 1})

    assert b.as_dict() == {"minx": None, "maxx": None, "miny": None, "maxy": None, "minz": -2.0, "maxz": 3.5}
    assert Bounds.from_mapping(None).is_unbounded()
    assert not b.is_unbounded()


def test_from_mapping_rejects_non_numbers():
    with pytest.raises(ValueError):
        Bounds.from_mapping({"maxx": "far"})


def test_translate_relative_follows_yaw():
    body = SimulatedBody(rotation_y=math.pi / 2)

    body.translate_relative(0.0, -1.0)

    assert body.position.x == pytest.approx(-1.0)
    assert body.position.z == pytest.approx(0.0, abs=1e-12)


def test_body_step_falls_and_lands():
    body = SimulatedBody(position=Vec3(0.0, 1.0, 0.0))
    body.apply_force(gravity_force(10.0))

    body.step(100)
    assert body.position.y == pytest.approx(0.9)
    assert body.velocity.y == pytest.approx(-1.0)
    assert not body.is_grounded()

    for _ in range(20):
        body.step(100)
    assert body.position.y == 0.0
    assert body.velocity.y == 0.0
    assert body.is_grounded()


def test_forces_compare_by_value():
    body = SimulatedBody()
    body.apply_force(gravity_force(9.8))

    body.remove_force(Force(name="gravity", vector=Vec3(0.0, -9.8, 0.0)))

    assert body.forces == set()


def test_vec3_of_accepts_mappings_and_sequences():
    assert Vec3.of({"x": 1, "y": 2, "z": 3}) == Vec3(1.0, 2.0, 3.0)
    assert Vec3.of([1, 2, 3]) == Vec3(1.0, 2.0, 3.0)
    with pytest.raises(TypeError):
        Vec3.of("abc")
