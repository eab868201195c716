"""Common interface of the media analyzers."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional


class MediaKind(str, Enum):
    """Kinds of media an analyzer handles."""
    AUDIO = "audio"
    VIDEO = "video"


# Called with (path, fraction complete). Calls from different analyzers interleave.
ProgressCallback = Callable[[str, float], None]


class MediaAnalyzer(ABC):
    """Feature extractor for one kind of media file."""

    kind: MediaKind

    @abstractmethod
    async def analyze(self, path: str, progress: Optional[ProgressCallback] = None):
        """Analyze the file at ``path``.

        Args:
            path: Media file on the local filesystem
            progress: Optional progress callback

        Returns:
            AudioAnalysis or VideoAnalysis

        Raises:
            AnalysisError: If the file cannot be read or analyzed
        """
        pass

    @staticmethod
    def _report(progress: Optional[ProgressCallback], path: str, fraction: float) -> None:
        if progress is not None:
            progress(path, fraction)
