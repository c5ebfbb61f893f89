"""
Vector Math for the headtrack aim-tracking pipeline.

Positions, velocities, view directions and aim points all share one
immutable 3D value type. Operations return fresh values, so a head position
cached on a Target can never be moved by later smoothing or humanization.

Coordinate convention follows the host simulation:
- X: right
- Y: up
- Z: forward (viewer look direction at zero yaw)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator


# Per-component tolerance for equality
VECTOR_EPSILON = 1e-10


# =============================================================================
# VECTOR3D CLASS
# =============================================================================

@dataclass(frozen=True, eq=False)
class Vector3D:
    """
    Immutable point or direction in world space.

    Attributes:
        x: Lateral component (right is positive).
        y: Vertical component (up is positive).
        z: Depth component (forward is positive).
    """
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z

    def __add__(self, other: Vector3D) -> Vector3D:
        return Vector3D(*(a + b for a, b in zip(self, other)))

    def __sub__(self, other: Vector3D) -> Vector3D:
        return Vector3D(*(a - b for a, b in zip(self, other)))

    def __mul__(self, scalar: float) -> Vector3D:
        return Vector3D(*(a * scalar for a in self))

    __rmul__ = __mul__

    def __neg__(self) -> Vector3D:
        return self * -1.0

    def __eq__(self, other: object) -> bool:
        """Component-wise comparison within VECTOR_EPSILON."""
        if not isinstance(other, Vector3D):
            return NotImplemented
        return all(abs(a - b) < VECTOR_EPSILON for a, b in zip(self, other))

    __hash__ = None

    # Named forms used by the scoring and smoothing code

    def add(self, other: Vector3D) -> Vector3D:
        return self + other

    def subtract(self, other: Vector3D) -> Vector3D:
        return self - other

    def multiply(self, scalar: float) -> Vector3D:
        return self * scalar

    def dot(self, other: Vector3D) -> float:
        return sum(a * b for a, b in zip(self, other))

    def cross(self, other: Vector3D) -> Vector3D:
        """Right-handed cross product."""
        return Vector3D(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x
        )

    @property
    def magnitude(self) -> float:
        """Euclidean length; also the speed of a velocity vector."""
        return math.hypot(self.x, self.y, self.z)

    def length(self) -> float:
        return self.magnitude

    def normalized(self) -> Vector3D:
        """
        Unit vector with the same heading.

        The zero vector has no heading and maps to itself.
        """
        size = self.magnitude
        if size == 0:
            return Vector3D.zero()
        return self * (1.0 / size)

    def distance_to(self, other: Vector3D) -> float:
        return (self - other).magnitude

    def lerp(self, other: Vector3D, t: float) -> Vector3D:
        """
        Move a fraction t of the way toward other.

        Args:
            other: Destination vector.
            t: Interpolation factor. Not clamped; the aim smoother clamps it.

        Returns:
            self + (other - self) * t
        """
        return self + (other - self) * t

    def angle_to(self, other: Vector3D) -> float:
        """
        Angle between two directions in radians, in [0, pi].

        Computed from atan2(|a x b|, a . b), which stays accurate for nearly
        parallel directions. Either operand being zero-length gives 0.0.
        """
        return math.atan2(self.cross(other).magnitude, self.dot(other))

    def clone(self) -> Vector3D:
        return Vector3D(self.x, self.y, self.z)

    def to_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)

    @classmethod
    def from_tuple(cls, values: tuple[float, float, float]) -> Vector3D:
        x, y, z = values
        return cls(float(x), float(y), float(z))

    @classmethod
    def zero(cls) -> Vector3D:
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def unit_x(cls) -> Vector3D:
        """Right."""
        return cls(1.0, 0.0, 0.0)

    @classmethod
    def unit_y(cls) -> Vector3D:
        """Up."""
        return cls(0.0, 1.0, 0.0)

    @classmethod
    def unit_z(cls) -> Vector3D:
        """Forward."""
        return cls(0.0, 0.0, 1.0)

    def __repr__(self) -> str:
        return f"Vector3D({self.x:.6g}, {self.y:.6g}, {self.z:.6g})"
