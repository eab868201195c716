"""
Data models for beatcut.

This module provides Pydantic models for the analysis inputs, the edit
style options, the edit decision list and the typed engine results.
"""

from .analysis import (
    Beat,
    EnergySegment,
    AudioAnalysis,
    SceneContentType,
    Scene,
    VideoAnalysis,
    AnalysisBundle,
)
from .style import (
    EditStyle,
    TransitionPreference,
    ScoringWeights,
    StyleConfig,
)
from .edl import (
    TrackType,
    TransitionType,
    MarkerType,
    SourceMedia,
    SceneRef,
    MatchedClip,
    Transition,
    Marker,
    EDLStats,
    EditDecisionList,
)
from .results import (
    EngineIssue,
    GenerationResult,
    ValidationResult,
    ExportResult,
)

__all__ = [
    # Analysis
    "Beat",
    "EnergySegment",
    "AudioAnalysis",
    "SceneContentType",
    "Scene",
    "VideoAnalysis",
    "AnalysisBundle",
    # Style
    "EditStyle",
    "TransitionPreference",
    "ScoringWeights",
    "StyleConfig",
    # Timeline
    "TrackType",
    "TransitionType",
    "MarkerType",
    "SourceMedia",
    "SceneRef",
    "MatchedClip",
    "Transition",
    "Marker",
    "EDLStats",
    "EditDecisionList",
    # Results
    "EngineIssue",
    "GenerationResult",
    "ValidationResult",
    "ExportResult",
]
