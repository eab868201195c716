"""Media analyzers producing the inputs of the edit decision engine."""

from .base import MediaAnalyzer, MediaKind
from .audio_analyzer import LibrosaAudioAnalyzer
from .video_analyzer import OpenCVSceneAnalyzer
from .registry import get_analyzer, media_kind_for
from .pipeline import analyze_project

__all__ = [
    "MediaAnalyzer",
    "MediaKind",
    "LibrosaAudioAnalyzer",
    "OpenCVSceneAnalyzer",
    "get_analyzer",
    "media_kind_for",
    "analyze_project",
]
