"""
Style configuration for edit generation.

Per-run options that steer cut density, clip choice and transitions.
Process-wide defaults live in ``beatcut.config.Settings``.
"""

from enum import Enum
from typing import Optional, Tuple
from pydantic import Field, field_validator

from .analysis import SceneContentType
from .base import FrozenModel
from ..config import settings


class EditStyle(str, Enum):
    """Overall editing style."""
    SMOOTH = "smooth"
    MIXED = "mixed"
    DYNAMIC = "dynamic"
    CINEMATIC = "cinematic"


class TransitionPreference(str, Enum):
    """Override for the transition rule table."""
    AUTO = "auto"
    CUT = "cut"
    DISSOLVE = "dissolve"
    WIPE = "wipe"
    DIP_TO_BLACK = "dip_to_black"


# Scene types each style favours when scoring candidates.
PREFERRED_CONTENT: dict = {
    EditStyle.SMOOTH: frozenset({
        SceneContentType.WIDE,
        SceneContentType.MEDIUM,
        SceneContentType.ESTABLISHING,
        SceneContentType.B_ROLL_STATIC,
    }),
    EditStyle.DYNAMIC: frozenset({
        SceneContentType.ACTION,
        SceneContentType.PERFORMANCE,
        SceneContentType.CLOSE_UP,
        SceneContentType.B_ROLL_DYNAMIC,
    }),
    EditStyle.CINEMATIC: frozenset({
        SceneContentType.ESTABLISHING,
        SceneContentType.WIDE,
        SceneContentType.CLOSE_UP,
        SceneContentType.EXTREME_CLOSE_UP,
        SceneContentType.REACTION,
    }),
    EditStyle.MIXED: frozenset(),
}


class ScoringWeights(FrozenModel):
    """Weights of the candidate scoring terms."""
    duration_fit: float = Field(0.3, ge=0, description="Weight of the duration fit term")
    content_type: float = Field(0.25, ge=0, description="Weight of the style/content match term")
    variety: float = Field(0.25, ge=0, description="Weight of the variety bonus")
    motion_energy: float = Field(0.2, ge=0, description="Weight of the motion/energy match term")


class StyleConfig(FrozenModel):
    """Options for a single generate() run. Unknown keys are ignored."""
    project_name: str = Field(settings.default_project_name, description="Name of the sequence")
    genre: Optional[str] = Field(None, description="Music genre, informational")
    style: EditStyle = Field(EditStyle.SMOOTH, description="Editing style")
    transition_preference: TransitionPreference = Field(
        TransitionPreference.AUTO, description="Transition rule override"
    )
    min_clip_duration: float = Field(1.0, gt=0, description="Minimum seconds between cuts")
    max_clip_duration: Optional[float] = Field(None, gt=0, description="Force a cut after this many seconds")
    beat_threshold: float = Field(0.5, ge=0, le=1, description="Beats must be stronger than this to cut")
    variety_window: int = Field(3, ge=0, description="Intervals a clip should rest before reuse")
    allow_loop: bool = Field(False, description="Reuse scenes when media runs out")
    frame_rate: float = Field(settings.default_frame_rate, gt=0, description="Timeline frame rate")
    resolution: str = Field(settings.default_resolution, description="Sequence resolution (WxH)")
    transition_duration: float = Field(1.0, ge=0, description="Length of dissolves and wipes (seconds)")
    speed: float = Field(1.0, gt=0, le=10.0, description="Playback speed of placed clips")
    weights: ScoringWeights = Field(default_factory=ScoringWeights, description="Scoring weights")

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v):
        try:
            width, height = v.lower().split("x")
            int(width), int(height)
        except ValueError:
            raise ValueError("Resolution must be in format WIDTHxHEIGHT (e.g., 1920x1080)")
        return v

    @property
    def frame_duration(self) -> float:
        return 1.0 / self.frame_rate

    @property
    def preferred_content(self) -> frozenset:
        return PREFERRED_CONTENT[self.style]

    @property
    def dimensions(self) -> Tuple[int, int]:
        width, height = self.resolution.lower().split("x")
        return int(width), int(height)
