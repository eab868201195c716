"""
Edit decision list data models.

Defines the immutable timeline produced by the edit decision engine:
matched clips, transitions between them and cut point markers.
Every edit returns a new EditDecisionList instead of mutating one.
"""

from collections import Counter
from enum import Enum
from typing import Dict, Optional, Tuple
from pydantic import Field, field_validator, model_validator

from .analysis import SceneContentType
from .base import FrozenModel

# Float tolerance for equalities that are exact by construction.
TIME_EPSILON = 1e-6


class TrackType(str, Enum):
    """Kind of track a clip is placed on."""
    VIDEO = "video"
    AUDIO = "audio"


class TransitionType(str, Enum):
    """Available transition effects between clips."""
    CUT = "cut"
    DISSOLVE = "dissolve"
    WIPE = "wipe"
    DIP_TO_BLACK = "dip_to_black"


class MarkerType(str, Enum):
    """Marker kinds understood by NLEs."""
    IN = "in"
    OUT = "out"
    MARKER = "marker"


class SourceMedia(FrozenModel):
    """A source file referenced by clips."""
    id: str = Field(..., min_length=1, description="Source identifier (VideoAnalysis.clip_id)")
    name: str = Field(..., description="Display name / file name")
    duration: float = Field(..., gt=0, description="Source length in seconds")
    file_path: Optional[str] = Field(None, description="Path to the media file")


class SceneRef(FrozenModel):
    """Provenance of a matched clip inside the analysis."""
    clip_id: str = Field(..., description="Source clip the scene belongs to")
    scene_index: int = Field(..., ge=0, description="Index of the first scene used")
    content_type: SceneContentType = Field(SceneContentType.UNKNOWN, description="Scene classification")
    motion_intensity: float = Field(0.5, ge=0, le=1, description="Scene motion")


class MatchedClip(FrozenModel):
    """A source range placed on the timeline."""
    id: str = Field(..., description="Unique clip identifier")
    source_id: str = Field(..., description="Reference to SourceMedia.id")
    track_type: TrackType = Field(TrackType.VIDEO, description="Track the clip sits on")
    timeline_in_point: float = Field(..., ge=0, description="Start on the timeline (seconds)")
    timeline_out_point: float = Field(..., gt=0, description="End on the timeline (seconds)")
    source_in_point: float = Field(..., ge=0, description="Start within the source (seconds)")
    source_out_point: float = Field(..., ge=0, description="End within the source (seconds)")
    speed: float = Field(1.0, gt=0, description="Playback speed multiplier")
    enabled: bool = Field(True, description="Whether the clip plays")
    scene_ref: Optional[SceneRef] = Field(None, description="Scene the clip was cut from")

    @model_validator(mode="after")
    def validate_ranges(self):
        if self.timeline_out_point <= self.timeline_in_point:
            raise ValueError("timeline_out_point must be greater than timeline_in_point")
        if self.source_out_point < self.source_in_point:
            raise ValueError("source_out_point must not precede source_in_point")
        return self

    @property
    def duration(self) -> float:
        """Span on the timeline."""
        return self.timeline_out_point - self.timeline_in_point

    @property
    def source_duration(self) -> float:
        return self.source_out_point - self.source_in_point


class Transition(FrozenModel):
    """Transition centred on the cut between two adjacent clips."""
    id: str = Field(..., description="Unique transition identifier")
    type: TransitionType = Field(TransitionType.CUT, description="Transition effect")
    duration: float = Field(0.0, ge=0, description="Length in seconds, 0 for a cut")
    outgoing_clip_id: str = Field(..., description="Clip before the cut")
    incoming_clip_id: str = Field(..., description="Clip after the cut")
    center_point: float = Field(..., ge=0, description="Timeline position of the cut")

    @model_validator(mode="after")
    def validate_cut_duration(self):
        if self.type == TransitionType.CUT and self.duration != 0:
            raise ValueError("a cut has zero duration")
        return self


class Marker(FrozenModel):
    """Timeline marker, one per cut point."""
    id: str = Field(..., description="Unique marker identifier")
    type: MarkerType = Field(MarkerType.MARKER, description="Marker kind")
    position: float = Field(..., description="Timeline position (seconds)")
    label: str = Field("", description="Marker label")
    color: Optional[str] = Field(None, description="Display colour")
    beat_strength: Optional[float] = Field(None, ge=0, le=1, description="Strength of the beat behind the cut")


class EDLStats(FrozenModel):
    """Summary statistics of an edit."""
    total_cuts: int = Field(0, ge=0, description="Number of internal cut points")
    average_clip_duration: float = Field(0.0, ge=0, description="Mean clip span in seconds")
    transition_types: Dict[str, int] = Field(default_factory=dict, description="Count per transition type")
    beat_alignment_score: float = Field(0.0, ge=0, le=1, description="Share of cuts landing on a beat")
    unique_sources: int = Field(0, ge=0, description="Distinct sources used")


class EditDecisionList(FrozenModel):
    """Complete, immutable timeline."""
    project_name: str = Field("Untitled", description="Sequence name")
    frame_rate: float = Field(30.0, gt=0, description="Timeline frame rate")
    total_duration: float = Field(..., ge=0, description="Timeline length in seconds")
    resolution: str = Field("1920x1080", description="Sequence resolution (WxH)")
    clips: Tuple[MatchedClip, ...] = Field(default_factory=tuple, description="Clips sorted by timeline_in_point")
    transitions: Tuple[Transition, ...] = Field(default_factory=tuple, description="Transitions between clips")
    cut_points: Tuple[Marker, ...] = Field(default_factory=tuple, description="Cut point markers")
    sources: Tuple[SourceMedia, ...] = Field(default_factory=tuple, description="Referenced source media")
    audio_source: Optional[SourceMedia] = Field(None, description="Music track laid under the edit")
    version: int = Field(1, ge=1, description="Incremented by each transform")

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
    def width(self) -> int:
        return int(self.resolution.lower().split("x")[0])

    @property
    def height(self) -> int:
        return int(self.resolution.lower().split("x")[1])

    def clip_by_id(self, clip_id: str) -> Optional[MatchedClip]:
        for clip in self.clips:
            if clip.id == clip_id:
                return clip
        return None

    def clip_index(self, clip_id: str) -> int:
        for index, clip in enumerate(self.clips):
            if clip.id == clip_id:
                return index
        raise KeyError(clip_id)

    def source_by_id(self, source_id: str) -> Optional[SourceMedia]:
        for source in self.sources:
            if source.id == source_id:
                return source
        return None

    def transition_between(self, outgoing_id: str, incoming_id: str) -> Optional[Transition]:
        for transition in self.transitions:
            if transition.outgoing_clip_id == outgoing_id and transition.incoming_clip_id == incoming_id:
                return transition
        return None

    def get_clip_at_time(self, time: float) -> Optional[MatchedClip]:
        """Find the clip playing at a timeline position."""
        for clip in self.clips:
            if clip.timeline_in_point <= time < clip.timeline_out_point:
                return clip
        return None

    def get_source_usage(self) -> Dict[str, float]:
        """Total screen time per source."""
        usage: Dict[str, float] = {}
        for clip in self.clips:
            usage[clip.source_id] = usage.get(clip.source_id, 0.0) + clip.duration
        return usage

    def stats(self) -> EDLStats:
        internal = [m for m in self.cut_points if m.type == MarkerType.MARKER]
        on_beat = [m for m in internal if m.beat_strength is not None]
        counts = Counter(t.type.value for t in self.transitions)
        return EDLStats(
            total_cuts=len(internal),
            average_clip_duration=(
                sum(c.duration for c in self.clips) / len(self.clips) if self.clips else 0.0
            ),
            transition_types=dict(counts),
            beat_alignment_score=len(on_beat) / len(internal) if internal else 0.0,
            unique_sources=len({c.source_id for c in self.clips}),
        )

    def replace(self, **changes) -> "EditDecisionList":
        """Return a revalidated copy with ``changes`` applied and the version bumped."""
        data = self.model_dump()
        data.update(changes)
        data["version"] = self.version + 1
        return EditDecisionList.model_validate(data)
