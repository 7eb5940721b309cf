from __future__ import annotations

from ..observability.logging import component_logger
from .host import ControlledObject, Force
from .vector import Vec3


class PhysicsCoordinator:
    """Hands the object over from host physics to a discrete action and back.

    While suspended the standing gravity force is out of the object's force
    set and velocity/acceleration are zero, so only the action writes
    position.
    """

    gravity_aware = True

    def __init__(self, gravity: Force, *, logger=None) -> None:
        self._gravity = gravity
        self._logger = logger or component_logger("physics")

    @property
    def gravity(self) -> Force:
        return self._gravity

    def suspend(self, obj: ControlledObject) -> None:
        obj.remove_force(self._gravity)
        obj.set_velocity(Vec3.zero())
        obj.set_acceleration(Vec3.zero())
        self._logger.debug("physics.suspend", force=self._gravity.name)

    def restore(self, obj: ControlledObject) -> None:
        obj.set_velocity(Vec3.zero())
        obj.set_acceleration(Vec3.zero())
        obj.apply_force(self._gravity)
        self._logger.debug("physics.restore", force=self._gravity.name)


class NullPhysicsCoordinator:
    """Coordinator for hosts without gravity: actions start even when airborne."""

    gravity_aware = False

    def suspend(self, obj: ControlledObject) -> None:
        return None

    def restore(self, obj: ControlledObject) -> None:
        return None
