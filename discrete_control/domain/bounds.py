from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from .host import ControlledObject
from .vector import Vec3

_SIDES = ("minx", "maxx", "miny", "maxy", "minz", "maxz")


def _clamp(v: float, lo: float | None, hi: float | None) -> float:
    if lo is not None and v < lo:
        return lo
    if hi is not None and v > hi:
        return hi
    return v


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned movement box. ``None`` leaves that side unbounded."""

    minx: float | None = None
    maxx: float | None = None
    miny: float | None = None
    maxy: float | None = None
    minz: float | None = None
    maxz: float | None = None

    @classmethod
    def unbounded(cls) -> "Bounds":
        return cls()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "Bounds":
        if data is None:
            return cls()
        values: dict[str, float | None] = {}
        for side in _SIDES:
            v = data.get(side)
            values[side] = None if v is None else float(v)
        return cls(**values)

    def is_unbounded(self) -> bool:
        return all(getattr(self, side) is None for side in _SIDES)

    def clamp(self, point: Vec3) -> Vec3:
        return Vec3(
            _clamp(point.x, self.minx, self.maxx),
            _clamp(point.y, self.miny, self.maxy),
            _clamp(point.z, self.minz, self.maxz),
        )

    def as_dict(self) -> dict[str, float | None]:
        return asdict(self)


def enforce_bounds(obj: ControlledObject, bounds: Bounds) -> bool:
    """Clamp the live position of ``obj`` into ``bounds``.

    Only the current position is corrected; returns True if any axis moved.
    """

    pos = obj.get_position()
    clamped = bounds.clamp(pos)
    if clamped == pos:
        return False
    obj.set_position(clamped)
    return True
