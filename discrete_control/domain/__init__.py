from __future__ import annotations

from .actions import Command, NormalizedAction, normalize_command
from .bounds import Bounds, enforce_bounds
from .controller import ControllerDiagnostics, DiscreteControl
from .errors import DomainError
from .host import ControlledObject, Force, SimulatedBody, gravity_force
from .output import CallbackListener, OutputChannel, OutputListener, RotationAccumulator, RotationWriter
from .physics import NullPhysicsCoordinator, PhysicsCoordinator
from .vector import Vec3

__all__ = [
    "Bounds",
    "CallbackListener",
    "Command",
    "ControlledObject",
    "ControllerDiagnostics",
    "DiscreteControl",
    "DomainError",
    "Force",
    "NormalizedAction",
    "NullPhysicsCoordinator",
    "OutputChannel",
    "OutputListener",
    "PhysicsCoordinator",
    "RotationAccumulator",
    "RotationWriter",
    "SimulatedBody",
    "Vec3",
    "enforce_bounds",
    "gravity_force",
    "normalize_command",
]
