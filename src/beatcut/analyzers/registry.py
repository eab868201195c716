"""Static mapping from media kind to analyzer."""

from pathlib import Path
from typing import Dict, Type, Union

from .audio_analyzer import LibrosaAudioAnalyzer
from .base import MediaAnalyzer, MediaKind
from .video_analyzer import OpenCVSceneAnalyzer

ANALYZERS: Dict[MediaKind, Type[MediaAnalyzer]] = {
    MediaKind.AUDIO: LibrosaAudioAnalyzer,
    MediaKind.VIDEO: OpenCVSceneAnalyzer,
}

AUDIO_EXTENSIONS = {".mp3", ".wav", ".aac", ".ogg", ".flac", ".m4a"}
VIDEO_EXTENSIONS = {".mp4", ".mov", ".webm", ".avi", ".mkv", ".m4v"}


def get_analyzer(kind: Union[str, MediaKind], **kwargs) -> MediaAnalyzer:
    """Instantiate the analyzer for ``kind``.

    Raises:
        ValueError: Unknown media kind
    """
    try:
        media_kind = MediaKind(kind)
    except ValueError:
        raise ValueError(f"No analyzer for media kind {kind!r}; known kinds: "
                         f"{', '.join(k.value for k in ANALYZERS)}")
    return ANALYZERS[media_kind](**kwargs)


def media_kind_for(path: str) -> MediaKind:
    """Guess the media kind of a file from its extension."""
    suffix = Path(path).suffix.lower()
    if suffix in AUDIO_EXTENSIONS:
        return MediaKind.AUDIO
    if suffix in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    raise ValueError(f"Unrecognized media file type: {path}")
