"""
Construction-time option bundles for the targeting pipeline.

Options are plain dataclasses validated in __post_init__; invalid values
raise ValueError at construction time. TargetingOptions.from_dict accepts
the camelCase configuration surface used by host profiles:

    {
        "detection": {"scanRadius": 400, "scanFOV": 120, ...},
        "aimLock": {"lockStrength": 0.6, "humanization": {"jitter": 0.02}},
        "autoLock": true,
        "updateInterval": 16,
        "triggerBot": false
    }

Controller keys may also be nested under "controller".
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from .entities import DEFAULT_HEAD_OFFSET
from .vector import Vector3D


class AimBone(Enum):
    """Which part of the target the aim lock tracks."""
    HEAD = "head"
    CHEST = "chest"
    AUTO = "auto"


def _require_finite(**values: float) -> None:
    """Raise ValueError for NaN or infinite numeric options."""
    for name, value in values.items():
        if not math.isfinite(value):
            raise ValueError(f"{name} must be a finite number, got {value}")


def _type_labels(name: str, labels: Any) -> Tuple[str, ...]:
    """Normalize a type-label list; a bare string is a single label."""
    if isinstance(labels, str):
        return (labels,)
    labels = tuple(labels)
    for label in labels:
        if not isinstance(label, str):
            raise ValueError(f"{name} entries must be strings, got {label!r}")
    return labels


# =============================================================================
# DETECTION OPTIONS
# =============================================================================

@dataclass
class DetectionOptions:
    """
    Target detector configuration.

    Attributes:
        scan_radius: Maximum distance to consider an entity.
        scan_fov: Full cone angle of the scan in degrees.
        detection_threshold: Minimum confidence (exclusive) to report a target.
        min_target_size: Smallest plausible target size.
        max_target_size: Largest plausible target size.
        priority_targets: Type labels that rank above all others.
        ignored_targets: Type labels that are never reported.
        scan_cooldown_ms: Minimum time between two full scans.
        head_margin: Distance below the bounding-box top used as head height.
        default_head_offset: Head offset for entities without pose data.
    """
    scan_radius: float = 360.0
    scan_fov: float = 180.0
    detection_threshold: float = 0.7
    min_target_size: float = 0.1
    max_target_size: float = 2.5
    priority_targets: Tuple[str, ...] = ("enemy", "hostile")
    ignored_targets: Tuple[str, ...] = ("friendly", "neutral")
    scan_cooldown_ms: float = 50.0
    head_margin: float = 0.1
    default_head_offset: Vector3D = field(default_factory=lambda: DEFAULT_HEAD_OFFSET)

    def __post_init__(self) -> None:
        """Validate detection parameters."""
        _require_finite(
            scan_radius=self.scan_radius,
            scan_fov=self.scan_fov,
            detection_threshold=self.detection_threshold,
            min_target_size=self.min_target_size,
            max_target_size=self.max_target_size,
            scan_cooldown_ms=self.scan_cooldown_ms,
            head_margin=self.head_margin,
        )
        if self.scan_radius <= 0:
            raise ValueError(f"scan_radius must be positive, got {self.scan_radius}")
        if not 0 < self.scan_fov <= 360:
            raise ValueError(f"scan_fov must be in (0, 360], got {self.scan_fov}")
        if not 0.0 <= self.detection_threshold <= 1.0:
            raise ValueError(
                f"detection_threshold must be in [0, 1], got {self.detection_threshold}"
            )
        if self.min_target_size < 0 or self.max_target_size < 0:
            raise ValueError("target sizes must not be negative")
        if self.min_target_size > self.max_target_size:
            raise ValueError(
                f"min_target_size ({self.min_target_size}) exceeds "
                f"max_target_size ({self.max_target_size})"
            )
        if self.scan_cooldown_ms < 0:
            raise ValueError(f"scan_cooldown_ms must not be negative, got {self.scan_cooldown_ms}")
        if self.head_margin < 0:
            raise ValueError(f"head_margin must not be negative, got {self.head_margin}")
        self.priority_targets = _type_labels("priority_targets", self.priority_targets)
        self.ignored_targets = _type_labels("ignored_targets", self.ignored_targets)

    @property
    def half_fov_rad(self) -> float:
        """Half of the scan cone in radians."""
        return self.scan_fov * math.pi / 360.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DetectionOptions:
        """Create detection options from the camelCase configuration surface."""
        return cls(**_translate(data, _DETECTION_KEYS, "detection"))


# =============================================================================
# AIM LOCK OPTIONS
# =============================================================================

@dataclass
class HumanizationOptions:
    """
    Synthetic aim noise configuration.

    Attributes:
        enabled: Whether noise is added to the aim point.
        jitter: Full width of the per-axis uniform jitter draw.
        delay: Reaction delay in seconds. Carried for profiles, not applied.
        variation: Reserved variation factor. Carried for profiles, not applied.
    """
    enabled: bool = True
    jitter: float = 0.02
    delay: float = 0.05
    variation: float = 0.1

    def __post_init__(self) -> None:
        _require_finite(jitter=self.jitter, delay=self.delay, variation=self.variation)
        if self.jitter < 0:
            raise ValueError(f"jitter must not be negative, got {self.jitter}")
        if self.delay < 0:
            raise ValueError(f"delay must not be negative, got {self.delay}")
        if self.variation < 0:
            raise ValueError(f"variation must not be negative, got {self.variation}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HumanizationOptions:
        return cls(**_translate(data, _HUMANIZATION_KEYS, "humanization"))


@dataclass
class AimLockOptions:
    """
    Aim lock configuration.

    Attributes:
        lock_strength: Scale applied to the output yaw/pitch delta.
        smoothing: Smoothing coefficient; higher converges faster.
        max_lock_distance: Farthest head distance that can be locked.
        lock_duration_ms: Maximum lifetime of a single lock.
        enable_prediction: Lead moving targets by projectile travel time.
        prediction_multiplier: Scale applied to the lead offset.
        aim_bone: Aim point selection mode.
        humanization: Synthetic noise settings.
    """
    lock_strength: float = 1.0
    smoothing: float = 0.15
    max_lock_distance: float = 1000.0
    lock_duration_ms: float = 5000.0
    enable_prediction: bool = True
    prediction_multiplier: float = 1.0
    aim_bone: AimBone = AimBone.HEAD
    humanization: HumanizationOptions = field(default_factory=HumanizationOptions)

    def __post_init__(self) -> None:
        """Validate aim lock parameters."""
        if isinstance(self.aim_bone, str):
            try:
                self.aim_bone = AimBone(self.aim_bone)
            except ValueError:
                raise ValueError(
                    f"aim_bone must be one of {[b.value for b in AimBone]}, got {self.aim_bone!r}"
                ) from None
        if isinstance(self.humanization, Mapping):
            self.humanization = HumanizationOptions.from_dict(self.humanization)
        _require_finite(
            lock_strength=self.lock_strength,
            smoothing=self.smoothing,
            max_lock_distance=self.max_lock_distance,
            lock_duration_ms=self.lock_duration_ms,
            prediction_multiplier=self.prediction_multiplier,
        )
        if self.lock_strength < 0:
            raise ValueError(f"lock_strength must not be negative, got {self.lock_strength}")
        if self.smoothing < 0:
            raise ValueError(f"smoothing must not be negative, got {self.smoothing}")
        if self.max_lock_distance <= 0:
            raise ValueError(f"max_lock_distance must be positive, got {self.max_lock_distance}")
        if self.lock_duration_ms <= 0:
            raise ValueError(f"lock_duration_ms must be positive, got {self.lock_duration_ms}")
        if self.prediction_multiplier < 0:
            raise ValueError(
                f"prediction_multiplier must not be negative, got {self.prediction_multiplier}"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AimLockOptions:
        """Create aim lock options from the camelCase configuration surface."""
        return cls(**_translate(data, _AIM_LOCK_KEYS, "aimLock"))


# =============================================================================
# CONTROLLER OPTIONS
# =============================================================================

@dataclass
class ControllerOptions:
    """
    Targeting controller configuration.

    Attributes:
        auto_lock: Lock onto the best target automatically when unlocked.
        update_interval_ms: Minimum time between two executed ticks.
        trigger_bot: Emit a fire signal when the aim error is small.
        trigger_threshold: Aim error below which the fire signal is sent.
    """
    auto_lock: bool = True
    update_interval_ms: float = 16.0
    trigger_bot: bool = False
    trigger_threshold: float = 0.05

    def __post_init__(self) -> None:
        _require_finite(
            update_interval_ms=self.update_interval_ms,
            trigger_threshold=self.trigger_threshold,
        )
        if self.update_interval_ms < 0:
            raise ValueError(
                f"update_interval_ms must not be negative, got {self.update_interval_ms}"
            )
        if self.trigger_threshold < 0:
            raise ValueError(
                f"trigger_threshold must not be negative, got {self.trigger_threshold}"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ControllerOptions:
        return cls(**_translate(data, _CONTROLLER_KEYS, "controller"))


@dataclass
class TargetingOptions:
    """Complete option bundle for a targeting controller."""
    detection: DetectionOptions = field(default_factory=DetectionOptions)
    aim_lock: AimLockOptions = field(default_factory=AimLockOptions)
    controller: ControllerOptions = field(default_factory=ControllerOptions)

    @classmethod
    def from_json(cls, path: str) -> TargetingOptions:
        """Load options from a JSON profile file."""
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Targeting profile not found: {path}")

        with open(config_path) as f:
            data = json.load(f)

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TargetingOptions:
        """
        Create options from the camelCase configuration surface.

        Raises:
            ValueError: On unknown keys or invalid values.
        """
        unknown = set(data) - {"detection", "aimLock", "controller"} - set(_CONTROLLER_KEYS)
        if unknown:
            raise ValueError(f"Unknown targeting option keys: {sorted(unknown)}")

        controller_data: Dict[str, Any] = dict(data.get("controller", {}))
        for key in _CONTROLLER_KEYS:
            if key in data:
                controller_data[key] = data[key]

        return cls(
            detection=DetectionOptions.from_dict(data.get("detection", {})),
            aim_lock=AimLockOptions.from_dict(data.get("aimLock", {})),
            controller=ControllerOptions.from_dict(controller_data),
        )


# =============================================================================
# KEY TRANSLATION
# =============================================================================

_DETECTION_KEYS = {
    "scanRadius": "scan_radius",
    "scanFOV": "scan_fov",
    "detectionThreshold": "detection_threshold",
    "minTargetSize": "min_target_size",
    "maxTargetSize": "max_target_size",
    "priorityTargets": "priority_targets",
    "ignoredTargets": "ignored_targets",
    "scanCooldown": "scan_cooldown_ms",
}

_HUMANIZATION_KEYS = {
    "enabled": "enabled",
    "jitter": "jitter",
    "delay": "delay",
    "variation": "variation",
}

_AIM_LOCK_KEYS = {
    "lockStrength": "lock_strength",
    "smoothing": "smoothing",
    "maxLockDistance": "max_lock_distance",
    "lockDuration": "lock_duration_ms",
    "enablePrediction": "enable_prediction",
    "predictionMultiplier": "prediction_multiplier",
    "aimBone": "aim_bone",
    "humanization": "humanization",
}

_CONTROLLER_KEYS = {
    "autoLock": "auto_lock",
    "updateInterval": "update_interval_ms",
    "triggerBot": "trigger_bot",
}


def _translate(data: Mapping[str, Any], keys: Dict[str, str], section: str) -> Dict[str, Any]:
    """Map camelCase keys to dataclass field names, rejecting unknown keys."""
    unknown = set(data) - set(keys)
    if unknown:
        raise ValueError(f"Unknown {section} option keys: {sorted(unknown)}")
    return {keys[key]: value for key, value in data.items()}


# =============================================================================
# PROFILES
# =============================================================================

PROFILES: Dict[str, Dict[str, Any]] = {
    "balanced": {
        "detection": {"scanRadius": 400, "scanFOV": 120, "detectionThreshold": 0.7},
        "aimLock": {"lockStrength": 0.6, "smoothing": 0.1, "enablePrediction": True},
        "autoLock": True,
    },
    "precise": {
        "detection": {"scanRadius": 600, "scanFOV": 40, "detectionThreshold": 0.75},
        "aimLock": {
            "lockStrength": 0.8,
            "smoothing": 0.3,
            "aimBone": "head",
            "humanization": {"enabled": False},
        },
        "autoLock": True,
    },
    "relaxed": {
        "detection": {"scanRadius": 250, "scanFOV": 150, "detectionThreshold": 0.6},
        "aimLock": {
            "lockStrength": 0.4,
            "smoothing": 0.05,
            "aimBone": "auto",
            "humanization": {"enabled": True, "jitter": 0.05},
        },
        "autoLock": True,
    },
}


def get_profile(name: str) -> TargetingOptions:
    """
    Build options for a named profile.

    Raises:
        KeyError: If the profile does not exist.
    """
    if name not in PROFILES:
        raise KeyError(f"Unknown targeting profile: {name!r} (available: {sorted(PROFILES)})")
    return TargetingOptions.from_dict(PROFILES[name])
