"""Commit replay animation driven by the scheduler clock."""

from .transitions import EasingType, Transition, clamp_duration, ease, get_easing_curve
from .commit_animator import (
    AnimationCycle,
    AnimationTarget,
    AuthorMarker,
    CommitAnimator,
    ImpactPulse,
    Projectile,
    replay_active_files,
    resolve_target,
)
from .playback import PlaybackController

__all__ = [
    "EasingType",
    "Transition",
    "clamp_duration",
    "ease",
    "get_easing_curve",
    "AnimationCycle",
    "AnimationTarget",
    "AuthorMarker",
    "CommitAnimator",
    "ImpactPulse",
    "Projectile",
    "replay_active_files",
    "resolve_target",
    "PlaybackController",
]
