"""
Aim Lock for the headtrack aim-tracking pipeline.

State machine holding at most one locked Target. Each update:
1. Resolves the aim point for the configured aim bone
2. Leads moving targets by projectile travel time (first-order prediction)
3. Smooths from the previous aim point toward the new one
4. Adds temporally correlated humanization noise
5. Converts the final aim point into a yaw/pitch delta

The lock releases itself when its lifetime expires or when the locked target
is no longer valid (dead, or not re-confirmed by a scan within one second).
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .clock import Clock, MonotonicClock
from .detection import Target
from .events import EventBus, TargetingEventType
from .options import AimBone, AimLockOptions, HumanizationOptions
from .vector import Vector3D

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Projectile speed used for lead estimation (units/s)
PROJECTILE_SPEED = 1000.0

# Chest aim point relative to the entity origin
CHEST_OFFSET = Vector3D(0.0, 1.0, 0.0)

# "auto" aim bone switches to the chest beyond these limits
AUTO_CHEST_DISTANCE = 200.0
AUTO_CHEST_SPEED = 5.0

# Minimum target speed for prediction to apply
PREDICTION_SPEED_THRESHOLD = 0.1

# A locked target not re-confirmed by a scan within this window is stale
STALE_TARGET_MS = 1000.0

# Humanization offset blend rate per second
HUMANIZATION_BLEND_RATE = 5.0

DEFAULT_DELTA_TIME = 0.016


class ReleaseReason(Enum):
    """Why a lock was released."""
    MANUAL = "manual"
    EXPIRED = "expired"
    INVALID = "invalid"
    DEACTIVATED = "deactivated"


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class AimDelta:
    """
    Spherical aim delta toward the aim point, scaled by lock strength.

    Attributes:
        yaw: Horizontal angle in radians (atan2(x, z)).
        pitch: Vertical angle in radians (asin(-y)), positive looks down.
    """
    yaw: float
    pitch: float

    @property
    def delta_x(self) -> float:
        return self.yaw

    @property
    def delta_y(self) -> float:
        return self.pitch


@dataclass(frozen=True, eq=False)
class AimResult:
    """
    Output of one aim lock update.

    Attributes:
        target: The locked target.
        aim_position: Final smoothed and humanized aim point.
        delta: Aim delta toward aim_position.
        lock_strength: Lock strength applied to the delta.
        lock_time_ms: Time since the lock started.
    """
    target: Target
    aim_position: Vector3D
    delta: AimDelta
    lock_strength: float
    lock_time_ms: float


@dataclass
class LockState:
    """
    Single-owner state of an aim lock.

    Attributes:
        locked: Whether a lock is active.
        target: The locked target, replaced wholesale on refresh.
        lock_start_ms: Clock time the lock started.
        last_aim_position: Smoothing baseline for the next update.
        humanization_offset: Current decaying noise offset.
    """
    locked: bool = False
    target: Optional[Target] = None
    lock_start_ms: float = 0.0
    last_aim_position: Vector3D = field(default_factory=Vector3D.zero)
    humanization_offset: Vector3D = field(default_factory=Vector3D.zero)

    def reset(self) -> None:
        """Clear the lock, keeping the last aim position."""
        self.locked = False
        self.target = None
        self.lock_start_ms = 0.0
        self.humanization_offset = Vector3D.zero()


# =============================================================================
# AIM MATH
# =============================================================================

def get_aim_position(target: Target, aim_bone: AimBone) -> Vector3D:
    """
    Resolve the point to aim at for the given aim bone mode.

    "auto" switches to the chest on far or fast targets, where the larger,
    steadier point is easier to hold.
    """
    chest = target.entity.position + CHEST_OFFSET
    if aim_bone is AimBone.CHEST:
        return chest
    if aim_bone is AimBone.AUTO:
        if target.distance > AUTO_CHEST_DISTANCE or target.speed > AUTO_CHEST_SPEED:
            return chest
        return target.head_position
    return target.head_position


def get_predicted_aim(target: Target, viewer_pos: Vector3D, options: AimLockOptions) -> Vector3D:
    """
    Aim point led by projectile travel time.

    Assumes constant target velocity and a fixed projectile speed; no
    acceleration or drag.
    """
    aim = get_aim_position(target, options.aim_bone)
    if options.enable_prediction and target.speed > PREDICTION_SPEED_THRESHOLD:
        time_to_target = aim.distance_to(viewer_pos) / PROJECTILE_SPEED
        aim = aim + target.velocity * (time_to_target * options.prediction_multiplier)
    return aim


def smooth_toward(current: Vector3D, target: Vector3D, dt: float, smoothing: float) -> Vector3D:
    """Exponential approach from current toward target."""
    factor = min(dt * smoothing * 10.0, 1.0)
    return current.lerp(target, factor)


def to_aim_delta(aim: Vector3D, origin: Vector3D, lock_strength: float) -> AimDelta:
    """
    Convert an aim point into a yaw/pitch delta.

    Uses the spherical decomposition of the viewer-to-aim direction, so the
    result does not depend on distance.
    """
    direction = (aim - origin).normalized()
    pitch = math.asin(max(-1.0, min(1.0, -direction.y)))
    yaw = math.atan2(direction.x, direction.z)
    return AimDelta(yaw=yaw * lock_strength, pitch=pitch * lock_strength)


class Humanizer:
    """
    Temporally correlated aim noise.

    Each step draws a fresh jitter vector (each axis uniform in
    [-jitter/2, jitter/2]) and blends the running offset toward it, so the
    noise drifts instead of jumping every frame.
    """

    def __init__(self, options: HumanizationOptions, rng: Optional[random.Random] = None) -> None:
        self.options = options
        self.rng = rng or random.Random()

    def draw_jitter(self) -> Vector3D:
        jitter = self.options.jitter
        return Vector3D(
            (self.rng.random() - 0.5) * jitter,
            (self.rng.random() - 0.5) * jitter,
            (self.rng.random() - 0.5) * jitter
        )

    def step(self, offset: Vector3D, dt: float) -> Vector3D:
        """
        Advance the noise offset by one tick.

        Args:
            offset: Offset from the previous tick.
            dt: Time step in seconds.

        Returns:
            The new offset.
        """
        blend = min(dt * HUMANIZATION_BLEND_RATE, 1.0)
        return offset.lerp(self.draw_jitter(), blend)


# =============================================================================
# AIM LOCK
# =============================================================================

class AimLock:
    """
    Aim lock state machine (Unlocked / Locked).

    Usage:
        aim_lock = AimLock(AimLockOptions(smoothing=0.2), clock=clock)
        if aim_lock.lock_on_target(target, viewer_pos):
            result = aim_lock.update_aim_lock(viewer_pos, delta_time=0.016)

    Attributes:
        options: Aim lock configuration.
        clock: Time source shared with the detector.
        state: Current lock state.
        humanizer: Noise generator.
        events: Event bus for lock transitions.
    """

    def __init__(
        self,
        options: Optional[AimLockOptions] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        events: Optional[EventBus] = None
    ) -> None:
        self.options = options or AimLockOptions()
        self.clock = clock or MonotonicClock()
        self.state = LockState()
        self.humanizer = Humanizer(self.options.humanization, rng)
        self.events = events or EventBus()

    @property
    def is_locked(self) -> bool:
        return self.state.locked

    @property
    def locked_target(self) -> Optional[Target]:
        return self.state.target

    def set_seed(self, seed: int) -> None:
        """
        Set the random seed for reproducible humanization.

        Args:
            seed: Random seed value.
        """
        self.humanizer.rng = random.Random(seed)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def lock_on_target(self, target: Target, viewer_pos: Vector3D) -> bool:
        """
        Attempt to lock onto a target.

        Args:
            target: Target to lock.
            viewer_pos: Viewer position.

        Returns:
            True if the lock was acquired. False if the target is beyond
            max_lock_distance or another lock is already active; the state
            is left unchanged in both cases.
        """
        if self.state.locked:
            return False

        distance = target.head_position.distance_to(viewer_pos)
        if distance > self.options.max_lock_distance:
            logger.debug(
                "Lock refused on %s: %.1f beyond max %.1f",
                target.entity_id, distance, self.options.max_lock_distance
            )
            return False

        now = self.clock.now_ms()
        self.state.locked = True
        self.state.target = target
        self.state.lock_start_ms = now
        self.state.last_aim_position = get_aim_position(target, self.options.aim_bone)
        self.state.humanization_offset = Vector3D.zero()

        logger.info("Locked onto %s (%s) at %.1f", target.entity_id, target.target_type, distance)
        self.events.emit(
            TargetingEventType.TARGET_LOCKED,
            now,
            target_id=target.entity_id,
            data={"target_type": target.target_type, "distance": distance}
        )
        return True

    def refresh_target(self, target: Target) -> bool:
        """
        Replace the locked target with a newer scan record of the same entity.

        Returns:
            True if the locked target was replaced.
        """
        if not self.state.locked or not target.same_entity(self.state.target):
            return False
        self.state.target = target
        return True

    def release_lock(self, reason: ReleaseReason = ReleaseReason.MANUAL) -> None:
        """Release the current lock. Safe to call when unlocked."""
        was_locked = self.state.locked
        target = self.state.target
        self.state.reset()

        if was_locked:
            logger.info("Released lock (%s)", reason.value)
            self.events.emit(
                TargetingEventType.LOCK_RELEASED,
                self.clock.now_ms(),
                target_id=target.entity_id if target is not None else None,
                data={"reason": reason.value}
            )

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    def is_target_valid(self, target: Optional[Target], now_ms: Optional[float] = None) -> bool:
        """Entity present and alive, and seen by a scan within the last second."""
        if target is None or target.entity is None:
            return False
        if not target.entity.is_alive:
            return False
        now = self.clock.now_ms() if now_ms is None else now_ms
        return now - target.last_seen < STALE_TARGET_MS

    def update_aim_lock(
        self,
        viewer_pos: Vector3D,
        delta_time: float = DEFAULT_DELTA_TIME
    ) -> Optional[AimResult]:
        """
        Advance the lock by one tick.

        Args:
            viewer_pos: Viewer position.
            delta_time: Time step in seconds.

        Returns:
            The aim result, or None when unlocked or when the lock was just
            released because it expired or its target became invalid.
        """
        state = self.state
        if not state.locked or state.target is None:
            return None

        now = self.clock.now_ms()
        lock_time = now - state.lock_start_ms
        if lock_time > self.options.lock_duration_ms:
            self.release_lock(ReleaseReason.EXPIRED)
            return None
        if not self.is_target_valid(state.target, now):
            self.release_lock(ReleaseReason.INVALID)
            return None

        target = state.target
        aim = get_predicted_aim(target, viewer_pos, self.options)
        aim = smooth_toward(state.last_aim_position, aim, delta_time, self.options.smoothing)

        if self.options.humanization.enabled:
            state.humanization_offset = self.humanizer.step(state.humanization_offset, delta_time)
            aim = aim + state.humanization_offset

        state.last_aim_position = aim

        return AimResult(
            target=target,
            aim_position=aim,
            delta=to_aim_delta(aim, viewer_pos, self.options.lock_strength),
            lock_strength=self.options.lock_strength,
            lock_time_ms=lock_time,
        )
