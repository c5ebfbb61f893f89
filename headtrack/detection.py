"""
Target Detection for the headtrack aim-tracking pipeline.

The detector scores candidate entities against the viewer's pose and returns
a ranked list of Target records:
- Liveness, self and ignore-list filtering
- Distance and field-of-view gating
- Confidence scoring from size, proximity, motion and visibility
- Priority scoring from type and remaining health
- Result caching for a cooldown window between scans
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .clock import Clock, MonotonicClock
from .entities import Entity
from .interfaces import AlwaysVisible, OcclusionCheck
from .options import DetectionOptions
from .vector import Vector3D

logger = logging.getLogger(__name__)


# =============================================================================
# SCORING CONSTANTS
# =============================================================================

SIZE_CONFIDENCE = 0.2
PROXIMITY_CONFIDENCE = 0.3
MOTION_CONFIDENCE_MAX = 0.2
MOTION_CONFIDENCE_PER_SPEED = 0.1
VISIBILITY_CONFIDENCE = 0.3
PRIORITY_TYPE_CONFIDENCE = 0.1

# Minimum speed considered "moving"
MOTION_SPEED_THRESHOLD = 0.1

PRIORITY_TYPE_SCORE = 100.0
PRIORITY_HEALTH_SCORE = 50.0

DEFAULT_TARGET_SIZE = 1.0


# =============================================================================
# TARGET
# =============================================================================

@dataclass(frozen=True, eq=False)
class Target:
    """
    A scored candidate derived from one entity during a scan.

    Targets are never mutated. A stale target is replaced by a newer scan
    record of the same entity.

    Attributes:
        entity: The source entity.
        head_position: Resolved head/aim position.
        distance: Distance from the viewer at scan time.
        velocity: Velocity snapshot.
        confidence: Plausibility score in [0, 1].
        priority: Unbounded comparative score.
        target_type: Type label of the entity.
        last_seen: Clock time of the scan in milliseconds.
    """
    entity: Entity
    head_position: Vector3D
    distance: float
    velocity: Vector3D
    confidence: float
    priority: float
    target_type: str
    last_seen: float

    @property
    def entity_id(self) -> str:
        return self.entity.entity_id

    @property
    def speed(self) -> float:
        return self.velocity.magnitude

    def same_entity(self, other: Optional[Target]) -> bool:
        """True if both targets were derived from the same entity."""
        return other is not None and other.entity.entity_id == self.entity.entity_id


# =============================================================================
# TARGET DETECTOR
# =============================================================================

class TargetDetector:
    """
    Scores and ranks candidate entities around a viewer.

    Usage:
        detector = TargetDetector(DetectionOptions(scan_radius=400))
        targets = detector.scan_area(viewer_pos, viewer_dir, entities)

    Attributes:
        options: Detection configuration.
        clock: Time source shared with the rest of the pipeline.
        occlusion: Line-of-sight collaborator.
        last_scan_ms: Clock time of the last full scan, None before the first.
        cached_results: Result of the last full scan.
    """

    def __init__(
        self,
        options: Optional[DetectionOptions] = None,
        clock: Optional[Clock] = None,
        occlusion: Optional[OcclusionCheck] = None
    ) -> None:
        self.options = options or DetectionOptions()
        self.clock = clock or MonotonicClock()
        self.occlusion = occlusion or AlwaysVisible()
        self.last_scan_ms: Optional[float] = None
        self.cached_results: List[Target] = []

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def scan_area(
        self,
        viewer_pos: Vector3D,
        viewer_dir: Vector3D,
        entities: Iterable[Entity],
        viewer_id: Optional[str] = None
    ) -> List[Target]:
        """
        Scan for targets around the viewer.

        Calls made within the scan cooldown return the previous result
        unchanged, even if the entity list has changed.

        Args:
            viewer_pos: Viewer position.
            viewer_dir: Viewer look direction. Does not need to be normalized.
            entities: Candidate entities for this tick.
            viewer_id: Entity ID of the viewer, excluded from the results.

        Returns:
            Targets above the detection threshold, highest priority first.
        """
        now = self.clock.now_ms()
        if (self.last_scan_ms is not None and
                now - self.last_scan_ms < self.options.scan_cooldown_ms):
            return self.cached_results

        half_fov = self.options.half_fov_rad
        look = viewer_dir.normalized()
        results: List[Target] = []

        for entity in entities:
            if not self.is_valid_target(entity, viewer_id):
                continue

            to_target = entity.position - viewer_pos
            distance = to_target.magnitude
            if distance > self.options.scan_radius:
                continue

            # Entity at the viewer position has no direction; treat as on-axis
            if distance > 0 and look.angle_to(to_target.normalized()) > half_fov:
                continue

            target = self.analyze_entity(entity, viewer_pos, distance, now)
            if target.confidence > self.options.detection_threshold:
                results.append(target)

        # Stable sort keeps host order among equal priorities
        results.sort(key=lambda t: t.priority, reverse=True)

        logger.debug(
            "Scan found %d target(s) at t=%.0fms", len(results), now
        )
        self.cached_results = results
        self.last_scan_ms = now
        return self.cached_results

    def invalidate_cache(self) -> None:
        """Force the next scan to recompute regardless of cooldown."""
        self.last_scan_ms = None
        self.cached_results = []

    def is_valid_target(self, entity: Optional[Entity], viewer_id: Optional[str] = None) -> bool:
        """
        Check whether an entity may be scored at all.

        Malformed entities (no position) are skipped rather than aborting
        the scan.
        """
        if entity is None or not entity.is_alive or entity.is_player:
            return False
        if viewer_id is not None and entity.entity_id == viewer_id:
            return False
        if entity.entity_type in self.options.ignored_targets:
            return False
        if entity.position is None:
            logger.debug("Skipping entity %s with no position", entity.entity_id)
            return False
        return True

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def analyze_entity(
        self,
        entity: Entity,
        viewer_pos: Vector3D,
        distance: float,
        now_ms: Optional[float] = None
    ) -> Target:
        """
        Score an entity into a Target record.

        Confidence accumulates four bounded signals plus a priority-type
        bonus and is clamped to 1.0:
        - size within [min_target_size, max_target_size]: +0.2
        - proximity: up to +0.3, falling to 0 at scan radius
        - motion: up to +0.2 when speed exceeds 0.1
        - head visible: +0.3

        Priority is scored separately and never folded into confidence:
        +100 for prioritized types, up to +50 for missing health.

        Args:
            entity: Entity to score.
            viewer_pos: Viewer position.
            distance: Distance from viewer to entity.
            now_ms: Timestamp for the record; defaults to the clock.

        Returns:
            A new Target.
        """
        opts = self.options
        velocity = entity.velocity
        confidence = 0.0
        priority = 0.0

        size = self.estimate_target_size(entity)
        if opts.min_target_size <= size <= opts.max_target_size:
            confidence += SIZE_CONFIDENCE

        confidence += max(0.0, 1.0 - distance / opts.scan_radius) * PROXIMITY_CONFIDENCE

        speed = velocity.magnitude
        if speed > MOTION_SPEED_THRESHOLD:
            confidence += min(speed * MOTION_CONFIDENCE_PER_SPEED, MOTION_CONFIDENCE_MAX)

        head = self.estimate_head_position(entity)
        if self.is_head_visible(head, viewer_pos):
            confidence += VISIBILITY_CONFIDENCE

        if entity.entity_type in opts.priority_targets:
            priority += PRIORITY_TYPE_SCORE
            confidence += PRIORITY_TYPE_CONFIDENCE

        health_fraction = entity.health_fraction
        if health_fraction is not None:
            priority += (1.0 - health_fraction) * PRIORITY_HEALTH_SCORE

        return Target(
            entity=entity,
            head_position=head,
            distance=distance,
            velocity=velocity,
            confidence=min(confidence, 1.0),
            priority=priority,
            target_type=entity.entity_type or "unknown",
            last_seen=self.clock.now_ms() if now_ms is None else now_ms,
        )

    def estimate_head_position(self, entity: Entity) -> Vector3D:
        """
        Resolve the head/aim position of an entity.

        Resolution order: skeletal head bone, skeleton head joint,
        bounding-box top (minus head margin) above the entity origin,
        entity origin plus head offset.
        """
        pose = entity.pose
        if pose.bone_head is not None:
            return pose.bone_head
        if pose.joint_head is not None:
            return pose.joint_head
        if pose.bounding_box is not None:
            return Vector3D(
                entity.position.x,
                pose.bounding_box.max.y - self.options.head_margin,
                entity.position.z
            )
        offset = pose.head_offset if pose.head_offset is not None else self.options.default_head_offset
        return entity.position + offset

    def estimate_target_size(self, entity: Entity) -> float:
        """Largest bounding-box extent, else the size hint, else 1.0."""
        pose = entity.pose
        if pose.bounding_box is not None:
            return pose.bounding_box.max_extent
        if pose.size is not None:
            return pose.size
        return DEFAULT_TARGET_SIZE

    def is_head_visible(self, head_pos: Vector3D, viewer_pos: Vector3D) -> bool:
        """Ask the occlusion collaborator; an unknown answer counts as visible."""
        visible = self.occlusion.is_visible(head_pos, viewer_pos)
        return True if visible is None else bool(visible)
