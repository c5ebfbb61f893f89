"""
Collaborator contracts consumed by the targeting core.

The host wires in an occlusion check and an input sink. Defaults are
provided for both: visibility gating disabled, and a sink that drops every
delta.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, TYPE_CHECKING

from .vector import Vector3D

if TYPE_CHECKING:
    from .aimlock import AimDelta


class OcclusionCheck(Protocol):
    """Line-of-sight test between the viewer and a point."""

    def is_visible(self, point: Vector3D, viewer_pos: Vector3D) -> Optional[bool]:
        """
        Return True if visible, False if occluded, None if unknown.
        """
        ...


class InputSink(Protocol):
    """Receives aim deltas and fire signals produced by the controller."""

    def send_aim_delta(self, delta: AimDelta) -> None:
        ...

    def send_fire(self) -> None:
        ...


class AlwaysVisible:
    """Occlusion check that reports every point as visible."""

    def is_visible(self, point: Vector3D, viewer_pos: Vector3D) -> Optional[bool]:
        return True


class NullInputSink:
    """Input sink that discards everything."""

    def send_aim_delta(self, delta: AimDelta) -> None:
        pass

    def send_fire(self) -> None:
        pass


@dataclass
class RecordingInputSink:
    """
    Input sink that keeps every call in memory.

    Attributes:
        deltas: Aim deltas in the order they were sent.
        fire_count: Number of fire signals received.
    """
    deltas: List[AimDelta] = field(default_factory=list)
    fire_count: int = 0

    def send_aim_delta(self, delta: AimDelta) -> None:
        self.deltas.append(delta)

    def send_fire(self) -> None:
        self.fire_count += 1

    @property
    def last_delta(self) -> Optional[AimDelta]:
        return self.deltas[-1] if self.deltas else None

    def clear(self) -> None:
        self.deltas.clear()
        self.fire_count = 0
