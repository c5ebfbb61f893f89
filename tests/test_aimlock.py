"""
Tests for the aim lock state machine.

Tests cover:
1. Lock acquisition - distance gate, single-lock rule, baseline seeding
2. Lock lifetime - duration expiry, staleness, dead targets, release
3. Aim math - aim bone modes, prediction, smoothing, yaw/pitch conversion
4. Humanization - bounded, seeded, correlated noise
5. End-to-end update against a detector-produced target
"""

import math
import random

import pytest

from headtrack.aimlock import (
    AimLock,
    Humanizer,
    ReleaseReason,
    get_aim_position,
    get_predicted_aim,
    smooth_toward,
    to_aim_delta,
)
from headtrack.clock import ManualClock
from headtrack.detection import Target, TargetDetector
from headtrack.entities import BoundingBox, Entity, PoseHints
from headtrack.events import EventBus, TargetingEventType
from headtrack.options import AimBone, AimLockOptions, HumanizationOptions
from headtrack.vector import Vector3D


# =============================================================================
# FIXTURES
# =============================================================================

ORIGIN = Vector3D(0, 0, 0)

NO_NOISE = HumanizationOptions(enabled=False)


def make_target(
    entity_id="t1",
    position=Vector3D(0, 0, 20),
    head=None,
    velocity=Vector3D.zero(),
    last_seen=0.0,
    is_alive=True,
):
    entity = Entity(
        entity_id=entity_id,
        position=position,
        entity_type="enemy",
        is_alive=is_alive,
        velocity=velocity,
    )
    head = head if head is not None else position + Vector3D(0, 1.7, 0)
    return Target(
        entity=entity,
        head_position=head,
        distance=position.length(),
        velocity=velocity,
        confidence=0.9,
        priority=100.0,
        target_type="enemy",
        last_seen=last_seen,
    )


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def aim_lock(clock, events):
    return AimLock(AimLockOptions(humanization=NO_NOISE), clock=clock, events=events)


def release_reasons(events):
    return [
        e.data["reason"] for e in events.events
        if e.event_type is TargetingEventType.LOCK_RELEASED
    ]


# =============================================================================
# LOCK ACQUISITION
# =============================================================================

class TestLockAcquisition:
    """Tests for lock_on_target."""

    def test_lock_within_max_distance(self, clock):
        aim_lock = AimLock(AimLockOptions(max_lock_distance=100), clock=clock)
        assert aim_lock.lock_on_target(make_target(position=Vector3D(0, 0, 50)), ORIGIN)
        assert aim_lock.is_locked

    def test_lock_beyond_max_distance_fails(self, clock):
        aim_lock = AimLock(AimLockOptions(max_lock_distance=100), clock=clock)
        assert not aim_lock.lock_on_target(make_target(position=Vector3D(0, 0, 150)), ORIGIN)
        assert not aim_lock.is_locked
        assert aim_lock.locked_target is None

    def test_second_lock_is_refused(self, aim_lock):
        first = make_target("first")
        assert aim_lock.lock_on_target(first, ORIGIN)
        assert not aim_lock.lock_on_target(make_target("second"), ORIGIN)
        assert aim_lock.locked_target is first

    def test_lock_seeds_smoothing_baseline(self, aim_lock):
        target = make_target(head=Vector3D(1, 2, 3))
        aim_lock.lock_on_target(target, ORIGIN)
        assert aim_lock.state.last_aim_position == Vector3D(1, 2, 3)

    def test_lock_records_start_time_and_event(self, clock, aim_lock, events):
        clock.advance(500)
        aim_lock.lock_on_target(make_target(), ORIGIN)
        assert aim_lock.state.lock_start_ms == 500
        locked = [e for e in events.events if e.event_type is TargetingEventType.TARGET_LOCKED]
        assert len(locked) == 1
        assert locked[0].target_id == "t1"

    def test_refresh_replaces_same_entity_only(self, aim_lock):
        aim_lock.lock_on_target(make_target("t1"), ORIGIN)
        newer = make_target("t1", last_seen=100.0)
        assert aim_lock.refresh_target(newer)
        assert aim_lock.locked_target is newer
        assert not aim_lock.refresh_target(make_target("other"))
        assert aim_lock.locked_target is newer

    def test_refresh_when_unlocked_is_refused(self, aim_lock):
        assert not aim_lock.refresh_target(make_target())


# =============================================================================
# LOCK LIFETIME
# =============================================================================

class TestLockLifetime:
    """Tests for expiry, staleness and release."""

    def test_update_when_unlocked_returns_none(self, aim_lock):
        assert aim_lock.update_aim_lock(ORIGIN) is None

    def test_lock_expires_after_duration(self, clock, aim_lock, events):
        aim_lock.lock_on_target(make_target(), ORIGIN)
        clock.advance(5000 + 1)
        aim_lock.refresh_target(make_target(last_seen=clock.now_ms()))

        assert aim_lock.update_aim_lock(ORIGIN) is None
        assert not aim_lock.is_locked
        assert release_reasons(events) == ["expired"]

    def test_lock_alive_at_exact_duration(self, clock, aim_lock):
        aim_lock.lock_on_target(make_target(), ORIGIN)
        clock.advance(5000)
        aim_lock.refresh_target(make_target(last_seen=clock.now_ms()))
        result = aim_lock.update_aim_lock(ORIGIN)
        assert result is not None
        assert result.lock_time_ms == 5000

    def test_stale_target_releases_lock(self, clock, aim_lock, events):
        aim_lock.lock_on_target(make_target(last_seen=0.0), ORIGIN)
        clock.advance(1000)
        assert aim_lock.update_aim_lock(ORIGIN) is None
        assert not aim_lock.is_locked
        assert release_reasons(events) == ["invalid"]

    def test_recently_seen_target_keeps_lock(self, clock, aim_lock):
        aim_lock.lock_on_target(make_target(last_seen=0.0), ORIGIN)
        clock.advance(999)
        assert aim_lock.update_aim_lock(ORIGIN) is not None

    def test_dead_target_releases_lock(self, aim_lock):
        aim_lock.lock_on_target(make_target(), ORIGIN)
        aim_lock.refresh_target(make_target(is_alive=False))
        assert aim_lock.update_aim_lock(ORIGIN) is None
        assert not aim_lock.is_locked

    def test_release_clears_state_and_is_idempotent(self, aim_lock, events):
        aim_lock.lock_on_target(make_target(), ORIGIN)
        aim_lock.state.humanization_offset = Vector3D(0.01, 0.01, 0.01)

        aim_lock.release_lock()
        aim_lock.release_lock()

        assert not aim_lock.is_locked
        assert aim_lock.locked_target is None
        assert aim_lock.state.lock_start_ms == 0.0
        assert aim_lock.state.humanization_offset == Vector3D.zero()
        assert release_reasons(events) == [ReleaseReason.MANUAL.value]

    def test_can_relock_after_release(self, aim_lock):
        aim_lock.lock_on_target(make_target("a"), ORIGIN)
        aim_lock.release_lock()
        assert aim_lock.lock_on_target(make_target("b"), ORIGIN)
        assert aim_lock.locked_target.entity_id == "b"


# =============================================================================
# AIM MATH
# =============================================================================

class TestAimPosition:
    """Tests for aim bone selection."""

    def test_head_mode(self):
        target = make_target(head=Vector3D(0, 1.6, 20))
        assert get_aim_position(target, AimBone.HEAD) == Vector3D(0, 1.6, 20)

    def test_chest_mode(self):
        target = make_target(position=Vector3D(3, 0, 20))
        assert get_aim_position(target, AimBone.CHEST) == Vector3D(3, 1, 20)

    def test_auto_uses_head_when_close_and_slow(self):
        target = make_target(position=Vector3D(0, 0, 50))
        assert get_aim_position(target, AimBone.AUTO) == target.head_position

    def test_auto_uses_chest_when_far(self):
        target = make_target(position=Vector3D(0, 0, 250))
        assert get_aim_position(target, AimBone.AUTO) == Vector3D(0, 1, 250)

    def test_auto_uses_chest_when_fast(self):
        target = make_target(position=Vector3D(0, 0, 50), velocity=Vector3D(6, 0, 0))
        assert get_aim_position(target, AimBone.AUTO) == Vector3D(0, 1, 50)


class TestPrediction:
    """Tests for first-order lead."""

    def test_moving_target_is_led(self):
        target = make_target(head=Vector3D(0, 0, 100), velocity=Vector3D(10, 0, 0))
        aim = get_predicted_aim(target, ORIGIN, AimLockOptions())
        # 100 units at 1000 units/s -> 0.1s of travel
        assert aim == Vector3D(1, 0, 100)

    def test_prediction_multiplier_scales_lead(self):
        target = make_target(head=Vector3D(0, 0, 100), velocity=Vector3D(10, 0, 0))
        aim = get_predicted_aim(target, ORIGIN, AimLockOptions(prediction_multiplier=2.0))
        assert aim == Vector3D(2, 0, 100)

    def test_slow_target_is_not_led(self):
        target = make_target(head=Vector3D(0, 0, 100), velocity=Vector3D(0.05, 0, 0))
        assert get_predicted_aim(target, ORIGIN, AimLockOptions()) == Vector3D(0, 0, 100)

    def test_prediction_disabled(self):
        target = make_target(head=Vector3D(0, 0, 100), velocity=Vector3D(10, 0, 0))
        aim = get_predicted_aim(target, ORIGIN, AimLockOptions(enable_prediction=False))
        assert aim == Vector3D(0, 0, 100)


class TestSmoothing:
    """Tests for smooth_toward and convergence through update_aim_lock."""

    def test_smoothing_factor(self):
        result = smooth_toward(Vector3D(0, 0, 0), Vector3D(10, 0, 0), dt=0.1, smoothing=0.15)
        assert result == Vector3D(1.5, 0, 0)

    def test_smoothing_factor_is_clamped(self):
        result = smooth_toward(Vector3D(0, 0, 0), Vector3D(10, 0, 0), dt=1.0, smoothing=0.5)
        assert result == Vector3D(10, 0, 0)

    def test_stationary_target_converges_monotonically(self, aim_lock):
        aim_lock.lock_on_target(make_target(head=Vector3D(0, 1.7, 20)), ORIGIN)
        moved = make_target(head=Vector3D(5, 1.7, 20))
        aim_lock.refresh_target(moved)

        previous = math.inf
        for _ in range(100):
            result = aim_lock.update_aim_lock(ORIGIN, delta_time=0.1)
            error = result.aim_position.distance_to(moved.head_position)
            assert error < previous
            previous = error

        assert previous < 1e-4


class TestAimDelta:
    """Tests for yaw/pitch conversion."""

    def test_straight_ahead_is_zero(self):
        delta = to_aim_delta(Vector3D(0, 0, 10), ORIGIN, 1.0)
        assert delta.yaw == pytest.approx(0.0)
        assert delta.pitch == pytest.approx(0.0)

    def test_yaw_to_the_right(self):
        delta = to_aim_delta(Vector3D(10, 0, 10), ORIGIN, 1.0)
        assert delta.yaw == pytest.approx(math.pi / 4)

    def test_pitch_is_positive_below_horizon(self):
        delta = to_aim_delta(Vector3D(0, -10, 10), ORIGIN, 1.0)
        assert delta.pitch == pytest.approx(math.pi / 4)

    def test_lock_strength_scales_delta(self):
        full = to_aim_delta(Vector3D(10, -10, 10), ORIGIN, 1.0)
        half = to_aim_delta(Vector3D(10, -10, 10), ORIGIN, 0.5)
        assert half.yaw == pytest.approx(full.yaw * 0.5)
        assert half.pitch == pytest.approx(full.pitch * 0.5)

    def test_delta_independent_of_distance(self):
        near = to_aim_delta(Vector3D(3, 4, 12), ORIGIN, 1.0)
        far = to_aim_delta(Vector3D(30, 40, 120), ORIGIN, 1.0)
        assert near.yaw == pytest.approx(far.yaw)
        assert near.pitch == pytest.approx(far.pitch)


# =============================================================================
# HUMANIZATION
# =============================================================================

class TestHumanization:
    """Tests for the correlated noise generator."""

    def test_offset_stays_within_half_jitter(self):
        humanizer = Humanizer(HumanizationOptions(jitter=0.02), random.Random(42))
        offset = Vector3D.zero()
        for _ in range(1000):
            offset = humanizer.step(offset, 0.016)
            for component in offset.to_tuple():
                assert abs(component) <= 0.01 + 1e-12

    def test_seeded_noise_is_reproducible(self):
        a = Humanizer(HumanizationOptions(), random.Random(7))
        b = Humanizer(HumanizationOptions(), random.Random(7))
        offset_a = offset_b = Vector3D.zero()
        for _ in range(50):
            offset_a = a.step(offset_a, 0.016)
            offset_b = b.step(offset_b, 0.016)
            assert offset_a == offset_b

    def test_offset_moves_gradually(self):
        humanizer = Humanizer(HumanizationOptions(jitter=1.0), random.Random(3))
        offset = humanizer.step(Vector3D.zero(), 0.016)
        # Blend of 0.08 toward a draw bounded by 0.5 per axis
        assert offset.length() <= 0.08 * math.sqrt(3) * 0.5 + 1e-12

    def test_humanized_update_adds_offset(self, clock):
        aim_lock = AimLock(
            AimLockOptions(humanization=HumanizationOptions(jitter=0.5)),
            clock=clock,
            rng=random.Random(1)
        )
        target = make_target()
        aim_lock.lock_on_target(target, ORIGIN)
        result = aim_lock.update_aim_lock(ORIGIN, 0.016)

        offset = aim_lock.state.humanization_offset
        assert offset != Vector3D.zero()
        assert result.aim_position == target.head_position + offset

    def test_set_seed_makes_runs_repeatable(self, clock):
        results = []
        for _ in range(2):
            aim_lock = AimLock(AimLockOptions(), clock=clock)
            aim_lock.set_seed(99)
            aim_lock.lock_on_target(make_target(), ORIGIN)
            results.append(aim_lock.update_aim_lock(ORIGIN).aim_position)
        assert results[0] == results[1]


# =============================================================================
# END-TO-END
# =============================================================================

class TestEndToEnd:
    """Detector output feeding the aim lock."""

    def test_reference_scene_single_update(self, clock):
        enemy = Entity(
            entity_id="enemy_1",
            position=Vector3D(10, 0, 20),
            entity_type="enemy",
            velocity=Vector3D(1, 0, 0),
            health=80.0,
            max_health=100.0,
            pose=PoseHints(bounding_box=BoundingBox(
                min=Vector3D(-0.5, 0, -0.5),
                max=Vector3D(0.5, 1.8, 0.5)
            )),
        )
        detector = TargetDetector(clock=clock)
        targets = detector.scan_area(ORIGIN, Vector3D(0, 0, 1), [enemy])
        assert len(targets) == 1

        aim_lock = AimLock(AimLockOptions(humanization=NO_NOISE), clock=clock)
        assert aim_lock.lock_on_target(targets[0], ORIGIN)
        baseline = aim_lock.state.last_aim_position

        result = aim_lock.update_aim_lock(ORIGIN, delta_time=0.016)
        assert result is not None
        assert result.target is targets[0]

        predicted = get_predicted_aim(targets[0], ORIGIN, aim_lock.options)
        assert predicted != baseline
        span = baseline.distance_to(predicted)
        assert (baseline.distance_to(result.aim_position) +
                result.aim_position.distance_to(predicted)) == pytest.approx(span)
        assert 0 < baseline.distance_to(result.aim_position) < span
        assert aim_lock.state.last_aim_position == result.aim_position
