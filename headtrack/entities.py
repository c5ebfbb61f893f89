"""
Entity records supplied by the host simulation.

The core never mutates an entity. Optional pose data (skeleton bones,
bounding boxes, size hints) lives in an explicit PoseHints bundle so that
head/aim resolution walks a fixed priority chain instead of probing for
attributes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .vector import Vector3D


# Head offset above the entity origin when no other pose data is available
DEFAULT_HEAD_OFFSET = Vector3D(0.0, 1.7, 0.0)


@dataclass(frozen=True, eq=False)
class BoundingBox:
    """
    Axis-aligned bounding box in the same coordinates the host reports.

    Attributes:
        min: Minimum corner.
        max: Maximum corner.
    """
    min: Vector3D
    max: Vector3D

    @property
    def extent(self) -> Vector3D:
        """Size along each axis."""
        return self.max - self.min

    @property
    def max_extent(self) -> float:
        """Largest axis extent."""
        size = self.extent
        return max(size.x, size.y, size.z)


@dataclass(frozen=True, eq=False)
class PoseHints:
    """
    Optional pose information for an entity.

    Attributes:
        bone_head: World position of an explicit skeletal head bone.
        joint_head: Head joint from a skeleton joint table.
        bounding_box: Axis-aligned bounding box.
        head_offset: Offset from position to head used as the last resort.
        size: Explicit size hint when no bounding box is known.
    """
    bone_head: Optional[Vector3D] = None
    joint_head: Optional[Vector3D] = None
    bounding_box: Optional[BoundingBox] = None
    head_offset: Optional[Vector3D] = None
    size: Optional[float] = None


@dataclass(frozen=True, eq=False)
class Entity:
    """
    Read-only snapshot of a live entity in the host simulation.

    Attributes:
        entity_id: Stable identity of the entity.
        position: Entity origin. None marks a malformed record.
        entity_type: Type label used by priority/ignore lists.
        is_alive: Liveness flag.
        is_player: True for the viewer's own entity.
        velocity: Velocity in units per second.
        health: Current health, if known.
        max_health: Maximum health, if known.
        pose: Optional pose hints.
    """
    entity_id: str
    position: Optional[Vector3D]
    entity_type: str = "unknown"
    is_alive: bool = True
    is_player: bool = False
    velocity: Vector3D = field(default_factory=Vector3D.zero)
    health: Optional[float] = None
    max_health: Optional[float] = None
    pose: PoseHints = field(default_factory=PoseHints)

    @property
    def speed(self) -> float:
        return self.velocity.magnitude

    @property
    def health_fraction(self) -> Optional[float]:
        """Health as a fraction of max health in [0, 1], or None when unknown."""
        if self.health is None or not self.max_health or self.max_health <= 0:
            return None
        return max(0.0, min(1.0, self.health / self.max_health))
