"""
Targeting Controller for the headtrack aim-tracking pipeline.

Drives the detector and aim lock on a fixed tick cadence:
- Activation / deactivation edges with active-time accounting
- Scan, best-target selection and automatic locking
- Aim delta emission to the input sink
- Optional trigger assist when the residual aim error is small
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .aimlock import AimLock, AimResult, ReleaseReason
from .clock import Clock, MonotonicClock
from .detection import Target, TargetDetector
from .entities import Entity
from .events import EventBus, TargetingEventType
from .interfaces import InputSink, NullInputSink, OcclusionCheck
from .options import TargetingOptions, get_profile
from .vector import Vector3D

logger = logging.getLogger(__name__)


# =============================================================================
# VIEWER STATE & STATS
# =============================================================================

@dataclass
class ViewerState:
    """
    Per-tick snapshot supplied by the host.

    Attributes:
        position: Viewer position.
        direction: Viewer look direction.
        entities: Candidate entities for this tick.
        viewer_id: Entity ID of the viewer, if it appears among entities.
    """
    position: Vector3D
    direction: Vector3D
    entities: Sequence[Entity] = field(default_factory=list)
    viewer_id: Optional[str] = None


@dataclass
class TargetingStats:
    """
    Cumulative controller statistics. Counters only grow.

    Attributes:
        locks_acquired: Number of successful locks.
        time_active_ms: Accumulated time spent activated (closed periods).
        last_activation_ms: Clock time of the most recent activation.
    """
    locks_acquired: int = 0
    time_active_ms: float = 0.0
    last_activation_ms: float = 0.0


# =============================================================================
# TARGET SELECTION
# =============================================================================

def select_best_target(targets: Iterable[Target]) -> Optional[Target]:
    """
    Pick the best target.

    Higher confidence wins; on a confidence tie higher priority wins; on a
    full tie the closer target wins; otherwise the earlier target is kept.

    Returns:
        The best target, or None for an empty sequence.
    """
    best: Optional[Target] = None
    for current in targets:
        if best is None:
            best = current
        elif current.confidence > best.confidence:
            best = current
        elif current.confidence == best.confidence:
            if current.priority > best.priority:
                best = current
            elif current.priority == best.priority and current.distance < best.distance:
                best = current
    return best


# =============================================================================
# TARGETING CONTROLLER
# =============================================================================

class TargetingController:
    """
    Orchestrates detection and aim lock once per tick.

    Usage:
        controller = create_targeting_controller(input_sink=sink)
        controller.activate()
        controller.tick(ViewerState(position, direction, entities))

    Attributes:
        options: Complete option bundle.
        clock: Shared time source.
        detector: Target detector.
        aim_lock: Aim lock state machine.
        input_sink: Receiver of aim deltas and fire signals.
        events: Event bus shared with the aim lock.
        is_active: Activation flag.
        last_tick_ms: Clock time of the last tick that passed the interval gate.
        stats: Cumulative statistics.
    """

    def __init__(
        self,
        options: Optional[TargetingOptions] = None,
        clock: Optional[Clock] = None,
        input_sink: Optional[InputSink] = None,
        occlusion: Optional[OcclusionCheck] = None,
        rng: Optional[random.Random] = None,
        events: Optional[EventBus] = None
    ) -> None:
        self.options = options or TargetingOptions()
        self.clock = clock or MonotonicClock()
        self.events = events or EventBus()
        self.detector = TargetDetector(self.options.detection, self.clock, occlusion)
        self.aim_lock = AimLock(self.options.aim_lock, self.clock, rng, self.events)
        self.input_sink = input_sink or NullInputSink()

        self.is_active = False
        self.last_tick_ms: Optional[float] = None
        self.stats = TargetingStats()
        self._last_active_tick_ms: Optional[float] = None

    # -------------------------------------------------------------------------
    # Activation
    # -------------------------------------------------------------------------

    def activate(self) -> None:
        """Switch targeting on. No-op when already active."""
        if self.is_active:
            return
        now = self.clock.now_ms()
        self.is_active = True
        self.stats.last_activation_ms = now
        self._last_active_tick_ms = None
        logger.info("Targeting activated")
        self.events.emit(TargetingEventType.ACTIVATED, now)

    def deactivate(self) -> None:
        """Switch targeting off, releasing any lock and accruing active time."""
        now = self.clock.now_ms()
        was_active = self.is_active
        if was_active:
            self.stats.time_active_ms += now - self.stats.last_activation_ms

        self.aim_lock.release_lock(ReleaseReason.DEACTIVATED)
        self.is_active = False

        if was_active:
            logger.info("Targeting deactivated")
            self.events.emit(TargetingEventType.DEACTIVATED, now)

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def tick(self, viewer: ViewerState, delta_time: Optional[float] = None) -> Optional[AimResult]:
        """
        Run one targeting cycle.

        Args:
            viewer: Viewer pose and candidate entities.
            delta_time: Time step in seconds. Defaults to the time since the
                previous active tick, or the update interval on the first.

        Returns:
            The aim result emitted this tick, or None.
        """
        now = self.clock.now_ms()
        interval = self.options.controller.update_interval_ms
        if self.last_tick_ms is not None and now - self.last_tick_ms < interval:
            return None
        self.last_tick_ms = now

        if not self.is_active:
            return None

        if delta_time is None:
            delta_time = self._elapsed_seconds(now)
        self._last_active_tick_ms = now

        targets = self.detector.scan_area(
            viewer.position, viewer.direction, viewer.entities, viewer.viewer_id
        )

        if self.aim_lock.is_locked:
            if self._locked_entity_died(viewer.entities):
                # Cached scan results still hold the entity as alive
                self.aim_lock.release_lock(ReleaseReason.INVALID)
                self.detector.invalidate_cache()
            else:
                self._refresh_locked_target(targets)
        elif targets and self.options.controller.auto_lock:
            best = select_best_target(targets)
            if best is not None and self.aim_lock.lock_on_target(best, viewer.position):
                self.stats.locks_acquired += 1

        result = self.aim_lock.update_aim_lock(viewer.position, delta_time)
        if result is not None:
            self.input_sink.send_aim_delta(result.delta)
            if self.options.controller.trigger_bot and self.should_trigger(result):
                self.trigger_fire(result)
        return result

    def _elapsed_seconds(self, now: float) -> float:
        if self._last_active_tick_ms is None:
            return (self.options.controller.update_interval_ms or 16.0) / 1000.0
        return (now - self._last_active_tick_ms) / 1000.0

    def _locked_entity_died(self, entities: Iterable[Entity]) -> bool:
        """True if this tick's snapshot reports the locked entity as dead."""
        locked_id = self.aim_lock.locked_target.entity_id
        for entity in entities:
            if entity is not None and entity.entity_id == locked_id:
                return not entity.is_alive
        return False

    def _refresh_locked_target(self, targets: List[Target]) -> None:
        locked = self.aim_lock.locked_target
        for target in targets:
            if target.same_entity(locked):
                self.aim_lock.refresh_target(target)
                return

    # -------------------------------------------------------------------------
    # Trigger assist
    # -------------------------------------------------------------------------

    def should_trigger(self, result: AimResult) -> bool:
        """True if the aim point is within the trigger threshold of the head."""
        error = result.aim_position.distance_to(result.target.head_position)
        return error < self.options.controller.trigger_threshold

    def trigger_fire(self, result: AimResult) -> None:
        self.input_sink.send_fire()
        self.events.emit(
            TargetingEventType.FIRE_TRIGGERED,
            self.clock.now_ms(),
            target_id=result.target.entity_id
        )

    # -------------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        """
        Snapshot of the controller statistics.

        Returns:
            Dictionary with the counters, activation state, current target
            type and locks per second of active time (0 with no active time).
        """
        time_active = self.stats.time_active_ms
        if self.is_active:
            time_active += self.clock.now_ms() - self.stats.last_activation_ms

        locks_per_second = 0.0
        if time_active > 0:
            locks_per_second = self.stats.locks_acquired / (time_active / 1000.0)

        target = self.aim_lock.locked_target
        return {
            "locks_acquired": self.stats.locks_acquired,
            "time_active_ms": time_active,
            "last_activation_ms": self.stats.last_activation_ms,
            "is_active": self.is_active,
            "current_target": target.target_type if target is not None else "none",
            "locks_per_second": locks_per_second,
        }


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_targeting_controller(
    options: Optional[TargetingOptions] = None,
    seed: Optional[int] = None,
    **collaborators: Any
) -> TargetingController:
    """
    Create a targeting controller.

    Args:
        options: Option bundle (defaults when None).
        seed: Random seed for reproducible humanization.
        **collaborators: clock, input_sink, occlusion, events.

    Returns:
        Configured TargetingController.
    """
    rng = random.Random(seed) if seed is not None else None
    return TargetingController(options=options, rng=rng, **collaborators)


def create_from_profile(name: str, seed: Optional[int] = None, **collaborators: Any) -> TargetingController:
    """
    Create a targeting controller from a named profile.

    Raises:
        KeyError: If the profile does not exist.
    """
    return create_targeting_controller(get_profile(name), seed=seed, **collaborators)
