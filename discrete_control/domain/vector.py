from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple


class Vec3(NamedTuple):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def zero(cls) -> "Vec3":
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def of(cls, value: Any) -> "Vec3":
        """Build from a ``{x, y, z}`` mapping or a 3-item sequence.

        Missing mapping keys default to 0. Raises ValueError/TypeError on
        anything else.
        """

        if isinstance(value, Vec3):
            return value
        if isinstance(value, Mapping):
            return cls(float(value.get("x", 0.0)), float(value.get("y", 0.0)), float(value.get("z", 0.0)))
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            if len(value) != 3:
                raise ValueError(f"expected 3 components, got {len(value)}")
            return cls(float(value[0]), float(value[1]), float(value[2]))
        raise TypeError(f"cannot build Vec3 from {type(value).__name__}")

    def __add__(self, other: "Vec3") -> "Vec3":  # type: ignore[override]
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def scaled(self, k: float) -> "Vec3":
        return Vec3(self.x * k, self.y * k, self.z * k)

    def as_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}
