"""
Analysis data models.

Read-only inputs produced by the audio and video feature extractors:
beats, energy segments and tempo for the music track, scenes with
motion and content classification for every source video.
"""

from enum import Enum
from typing import Optional, Tuple
from pydantic import Field, field_validator, model_validator

from .base import FrozenModel


class Beat(FrozenModel):
    """A detected musical beat."""
    time: float = Field(..., ge=0, description="Beat position in seconds")
    strength: float = Field(..., ge=0, le=1, description="Normalized salience of the beat")


class EnergySegment(FrozenModel):
    """A window of roughly constant loudness in the music."""
    start: float = Field(..., ge=0, description="Segment start in seconds")
    duration: float = Field(..., gt=0, description="Segment length in seconds")
    level: float = Field(..., ge=0, le=1, description="Normalized energy level")

    @property
    def end(self) -> float:
        return self.start + self.duration


class AudioAnalysis(FrozenModel):
    """Beat and energy analysis of the music track."""
    beats: Tuple[Beat, ...] = Field(default_factory=tuple, description="Time-ordered beats")
    energy_segments: Tuple[EnergySegment, ...] = Field(
        default_factory=tuple, description="Time-ordered energy segments"
    )
    tempo: float = Field(..., gt=0, description="Tempo in beats per minute")
    duration: Optional[float] = Field(None, gt=0, description="Track length in seconds")
    source_id: Optional[str] = Field(None, description="Identifier of the music track")
    file_path: Optional[str] = Field(None, description="Path to the music file")

    @field_validator("beats")
    @classmethod
    def validate_beat_order(cls, v):
        for prev, curr in zip(v, v[1:]):
            if curr.time < prev.time:
                raise ValueError(f"beats must be time-ordered ({curr.time} after {prev.time})")
        return v

    @field_validator("energy_segments")
    @classmethod
    def validate_segment_order(cls, v):
        for prev, curr in zip(v, v[1:]):
            if curr.start < prev.start:
                raise ValueError(f"energy segments must be time-ordered ({curr.start} after {prev.start})")
        return v

    @property
    def total_duration(self) -> float:
        """Track length, falling back to the last beat or energy segment."""
        if self.duration is not None:
            return self.duration
        last_beat = self.beats[-1].time if self.beats else 0.0
        last_energy = max((seg.end for seg in self.energy_segments), default=0.0)
        return max(last_beat, last_energy)


class SceneContentType(str, Enum):
    """Shot classification of a scene."""
    WIDE = "wide"
    MEDIUM = "medium"
    CLOSE_UP = "close_up"
    EXTREME_CLOSE_UP = "extreme_close_up"
    ESTABLISHING = "establishing"
    ACTION = "action"
    REACTION = "reaction"
    CUTAWAY = "cutaway"
    PERFORMANCE = "performance"
    B_ROLL_STATIC = "b_roll_static"
    B_ROLL_DYNAMIC = "b_roll_dynamic"
    UNKNOWN = "unknown"


class Scene(FrozenModel):
    """A continuous shot inside a source video."""
    start: float = Field(..., ge=0, description="Scene start within the source (seconds)")
    end: float = Field(..., gt=0, description="Scene end within the source (seconds)")
    motion_intensity: float = Field(0.5, ge=0, le=1, description="Amount of motion in the scene")
    content_type: SceneContentType = Field(SceneContentType.UNKNOWN, description="Shot classification")
    confidence: float = Field(1.0, ge=0, le=1, description="Classifier confidence")

    @model_validator(mode="after")
    def validate_times(self):
        if self.end <= self.start:
            raise ValueError("scene end must be after scene start")
        return self

    @property
    def duration(self) -> float:
        return self.end - self.start


class VideoAnalysis(FrozenModel):
    """Scene analysis of one source video."""
    clip_id: str = Field(..., min_length=1, description="Identifier of the source clip")
    duration: float = Field(..., gt=0, description="Source length in seconds")
    scenes: Tuple[Scene, ...] = Field(default_factory=tuple, description="Time-ordered scenes")
    file_path: Optional[str] = Field(None, description="Path to the video file")
    width: Optional[int] = Field(None, gt=0, description="Frame width in pixels")
    height: Optional[int] = Field(None, gt=0, description="Frame height in pixels")
    frame_rate: Optional[float] = Field(None, gt=0, description="Native frame rate")

    @model_validator(mode="after")
    def validate_scenes(self):
        for prev, curr in zip(self.scenes, self.scenes[1:]):
            if curr.start < prev.end - 1e-9:
                raise ValueError(
                    f"scenes of {self.clip_id} overlap or are unordered at {curr.start:.3f}s"
                )
        if self.scenes and self.scenes[-1].end > self.duration + 1e-6:
            raise ValueError(
                f"scene ends at {self.scenes[-1].end:.3f}s past clip duration {self.duration:.3f}s"
            )
        return self

    @property
    def scene_time(self) -> float:
        """Total length covered by scenes."""
        return sum(scene.duration for scene in self.scenes)


class AnalysisBundle(FrozenModel):
    """Joined output of the analysis pipeline.

    ``missing`` lists the media paths whose analysis did not complete. The
    engine refuses a bundle with missing entries.
    """
    audio: Optional[AudioAnalysis] = Field(None, description="Music analysis")
    videos: Tuple[VideoAnalysis, ...] = Field(default_factory=tuple, description="Per clip scene analyses")
    missing: Tuple[str, ...] = Field(default_factory=tuple, description="Inputs without a result")

    @property
    def complete(self) -> bool:
        return self.audio is not None and not self.missing
