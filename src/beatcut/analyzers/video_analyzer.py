"""Scene detection and motion analysis of source videos using OpenCV."""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple
import cv2
import numpy as np

from ..config import settings
from ..errors import AnalysisError
from ..models.analysis import Scene, SceneContentType, VideoAnalysis
from .base import MediaAnalyzer, MediaKind, ProgressCallback


logger = logging.getLogger(__name__)

# Mean absolute grey-level difference is small in practice; scale it into [0, 1].
MOTION_SCALE = 4.0
ANALYSIS_WIDTH = 320


@dataclass
class _SceneAccumulator:
    start: float
    motion: List[float] = field(default_factory=list)
    edges: List[float] = field(default_factory=list)


def classify_scene(motion: float, edge_density: float, duration: float) -> Tuple[SceneContentType, float]:
    """Heuristic shot classification from motion and edge density.

    Returns:
        (content type, confidence)
    """
    if motion > 0.6:
        return SceneContentType.ACTION, round(min(1.0, motion), 3)
    if motion > 0.35:
        return SceneContentType.B_ROLL_DYNAMIC, 0.6
    if edge_density < 0.04:
        return SceneContentType.CLOSE_UP, 0.5
    if edge_density > 0.12:
        if duration >= 3.0 and motion < 0.15:
            return SceneContentType.ESTABLISHING, 0.5
        return SceneContentType.WIDE, 0.5
    if motion < 0.1:
        return SceneContentType.B_ROLL_STATIC, 0.5
    return SceneContentType.MEDIUM, 0.4


def histogram_similarity(hist_a: np.ndarray, hist_b: np.ndarray) -> float:
    """Correlation of two normalized HSV histograms (1.0 = identical)."""
    return float(cv2.compareHist(hist_a, hist_b, cv2.HISTCMP_CORREL))


class OpenCVSceneAnalyzer(MediaAnalyzer):
    """Splits a video into scenes by colour histogram changes."""

    kind = MediaKind.VIDEO

    def __init__(self, sample_fps: Optional[float] = None, cut_threshold: Optional[float] = None):
        """Initialize the scene analyzer.

        Args:
            sample_fps: Frames per second to sample, defaults to settings.scene_sample_fps
            cut_threshold: Histogram correlation below which a new scene starts
        """
        self.sample_fps = sample_fps or settings.scene_sample_fps
        self.cut_threshold = cut_threshold if cut_threshold is not None else settings.scene_cut_threshold

    async def analyze(self, path: str, progress: Optional[ProgressCallback] = None) -> VideoAnalysis:
        self._report(progress, path, 0.0)
        loop = asyncio.get_event_loop()
        try:
            analysis = await loop.run_in_executor(None, self.analyze_file, path)
        except AnalysisError:
            raise
        except Exception as e:
            logger.error(f"Failed to analyze video {path}: {e}")
            raise AnalysisError(f"Failed to analyze video {path}", detail=str(e)) from e
        self._report(progress, path, 1.0)
        logger.info(f"Analyzed {Path(path).name}: {len(analysis.scenes)} scenes, {analysis.duration:.1f}s")
        return analysis

    def analyze_file(self, path: str) -> VideoAnalysis:
        """Blocking analysis of one file."""
        cap = cv2.VideoCapture(path)
        if not cap.isOpened():
            raise AnalysisError(f"Cannot open video {path}")

        try:
            fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
            frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
            width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0) or None
            height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0) or None
            step = max(1, int(round(fps / self.sample_fps)))

            scenes: List[_SceneAccumulator] = []
            prev_hist = prev_gray = None
            index = 0
            last_time = 0.0
            while True:
                ok = cap.grab()
                if not ok:
                    break
                if index % step == 0:
                    ok, frame = cap.retrieve()
                    if not ok:
                        break
                    time = index / fps
                    hist, gray, edges = self._frame_features(frame)
                    if prev_hist is None or histogram_similarity(prev_hist, hist) < self.cut_threshold:
                        scenes.append(_SceneAccumulator(start=time))
                    elif prev_gray is not None:
                        diff = float(np.mean(cv2.absdiff(gray, prev_gray))) / 255.0
                        scenes[-1].motion.append(min(1.0, diff * MOTION_SCALE))
                    scenes[-1].edges.append(edges)
                    prev_hist, prev_gray = hist, gray
                    last_time = time
                index += 1
        finally:
            cap.release()

        if not scenes:
            raise AnalysisError(f"No frames could be read from {path}")

        duration = frame_count / fps if frame_count > 0 else last_time + 1.0 / fps
        return VideoAnalysis(
            clip_id=Path(path).stem,
            duration=duration,
            scenes=tuple(self._build_scenes(scenes, duration)),
            file_path=path,
            width=width,
            height=height,
            frame_rate=fps,
        )

    @staticmethod
    def _frame_features(frame: np.ndarray) -> Tuple[np.ndarray, np.ndarray, float]:
        h, w = frame.shape[:2]
        if w > ANALYSIS_WIDTH:
            frame = cv2.resize(frame, (ANALYSIS_WIDTH, int(h * ANALYSIS_WIDTH / w)))

        hsv = cv2.cvtColor(frame, cv2.COLOR_BGR2HSV)
        hist = cv2.calcHist([hsv], [0, 1, 2], None, [8, 8, 8], [0, 180, 0, 256, 0, 256])
        cv2.normalize(hist, hist, alpha=0, beta=1, norm_type=cv2.NORM_MINMAX)

        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        edges = cv2.Canny(gray, 100, 200)
        edge_density = float(np.count_nonzero(edges)) / edges.size
        return hist, gray, edge_density

    @staticmethod
    def _build_scenes(accumulated: List[_SceneAccumulator], duration: float) -> List[Scene]:
        scenes = []
        for current, following in zip(accumulated, accumulated[1:] + [None]):
            end = min(following.start if following is not None else duration, duration)
            if end <= current.start:
                continue
            motion = float(np.mean(current.motion)) if current.motion else 0.0
            edge_density = float(np.mean(current.edges)) if current.edges else 0.0
            content_type, confidence = classify_scene(motion, edge_density, end - current.start)
            scenes.append(Scene(
                start=current.start,
                end=end,
                motion_intensity=motion,
                content_type=content_type,
                confidence=confidence,
            ))
        return scenes
