from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from .vector import Vec3


@dataclass(frozen=True)
class Force:
    """Handle for a standing force in a host's applied-force set.

    Forces are compared by value, so the handle given to the controller at
    construction removes exactly the force the host applied.
    """

    name: str
    vector: Vec3


def gravity_force(g: float = 9.8) -> Force:
    return Force(name="gravity", vector=Vec3(0.0, -abs(float(g)), 0.0))


@runtime_checkable
class ControlledObject(Protocol):
    """Capabilities the controller needs from the host's scene object.

    The host keeps ownership of its real object and adapts it to this
    protocol. The force/velocity methods are only used when a gravity
    collaborator is configured.
    """

    def get_position(self) -> Vec3: ...

    def set_position(self, position: Vec3) -> None: ...

    def get_rotation_y(self) -> float: ...

    def set_rotation_y(self, radians: float) -> None: ...

    def translate_relative(self, dx: float, dz: float) -> None: ...

    def is_grounded(self) -> bool: ...

    def apply_force(self, force: Force) -> None: ...

    def remove_force(self, force: Force) -> None: ...

    def set_velocity(self, velocity: Vec3) -> None: ...

    def set_acceleration(self, acceleration: Vec3) -> None: ...


@dataclass
class SimulatedBody:
    """In-memory host object with a flat ground plane.

    Positions are in scene units, ``step`` takes milliseconds, forces are
    treated as accelerations in units/s^2 (unit mass).
    """

    position: Vec3 = field(default_factory=Vec3.zero)
    rotation_y: float = 0.0
    velocity: Vec3 = field(default_factory=Vec3.zero)
    acceleration: Vec3 = field(default_factory=Vec3.zero)
    forces: set[Force] = field(default_factory=set)
    ground_y: float = 0.0

    def get_position(self) -> Vec3:
        return self.position

    def set_position(self, position: Vec3) -> None:
        self.position = Vec3(float(position.x), float(position.y), float(position.z))

    def get_rotation_y(self) -> float:
        return self.rotation_y

    def set_rotation_y(self, radians: float) -> None:
        self.rotation_y = float(radians)

    def translate_relative(self, dx: float, dz: float) -> None:
        # Move along the yaw-rotated local X/Z axes.
        s = math.sin(self.rotation_y)
        c = math.cos(self.rotation_y)
        p = self.position
        self.position = Vec3(p.x + dx * c + dz * s, p.y, p.z - dx * s + dz * c)

    def is_grounded(self) -> bool:
        return self.position.y <= self.ground_y

    def apply_force(self, force: Force) -> None:
        self.forces.add(force)

    def remove_force(self, force: Force) -> None:
        self.forces.discard(force)

    def set_velocity(self, velocity: Vec3) -> None:
        self.velocity = velocity

    def set_acceleration(self, acceleration: Vec3) -> None:
        self.acceleration = acceleration

    def step(self, dt_ms: float) -> None:
        """Integrate one host frame (semi-implicit Euler)."""

        if dt_ms <= 0:
            return
        dt = dt_ms / 1000.0

        accel = self.acceleration
        for f in self.forces:
            accel = accel + f.vector

        v = self.velocity + accel.scaled(dt)
        p = self.position + v.scaled(dt)

        if p.y <= self.ground_y:
            p = p._replace(y=self.ground_y)
            if v.y < 0:
                v = v._replace(y=0.0)

        self.velocity = v
        self.position = p
