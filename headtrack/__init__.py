"""headtrack target selection and aim tracking package."""

from .vector import Vector3D

from .entities import (
    BoundingBox,
    DEFAULT_HEAD_OFFSET,
    Entity,
    PoseHints,
)

from .clock import (
    Clock,
    ManualClock,
    MonotonicClock,
)

from .interfaces import (
    AlwaysVisible,
    InputSink,
    NullInputSink,
    OcclusionCheck,
    RecordingInputSink,
)

from .events import (
    EventBus,
    TargetingEvent,
    TargetingEventType,
)

from .options import (
    AimBone,
    AimLockOptions,
    ControllerOptions,
    DetectionOptions,
    HumanizationOptions,
    PROFILES,
    TargetingOptions,
    get_profile,
)

from .detection import (
    Target,
    TargetDetector,
)

from .aimlock import (
    AimDelta,
    AimLock,
    AimResult,
    Humanizer,
    LockState,
    ReleaseReason,
)

from .controller import (
    TargetingController,
    TargetingStats,
    ViewerState,
    create_from_profile,
    create_targeting_controller,
    select_best_target,
)

__all__ = [
    # Vector math
    "Vector3D",
    # Entities
    "BoundingBox",
    "DEFAULT_HEAD_OFFSET",
    "Entity",
    "PoseHints",
    # Clock
    "Clock",
    "ManualClock",
    "MonotonicClock",
    # Collaborators
    "AlwaysVisible",
    "InputSink",
    "NullInputSink",
    "OcclusionCheck",
    "RecordingInputSink",
    # Events
    "EventBus",
    "TargetingEvent",
    "TargetingEventType",
    # Options
    "AimBone",
    "AimLockOptions",
    "ControllerOptions",
    "DetectionOptions",
    "HumanizationOptions",
    "PROFILES",
    "TargetingOptions",
    "get_profile",
    # Detection
    "Target",
    "TargetDetector",
    # Aim lock
    "AimDelta",
    "AimLock",
    "AimResult",
    "Humanizer",
    "LockState",
    "ReleaseReason",
    # Controller
    "TargetingController",
    "TargetingStats",
    "ViewerState",
    "create_from_profile",
    "create_targeting_controller",
    "select_best_target",
]
