"""Concurrent analysis of a project's music track and source videos."""

import asyncio
import logging
from collections import Counter
from typing import List, Optional, Sequence

from ..errors import AnalysisError, GenerationCancelledError
from ..models.analysis import AnalysisBundle, AudioAnalysis, VideoAnalysis
from ..utils.cancellation import CancellationToken
from ..utils.simple_logger import log_start, log_update, log_complete
from .base import MediaKind, ProgressCallback
from .registry import get_analyzer


logger = logging.getLogger(__name__)

TOKEN_POLL_SECONDS = 0.05


async def _watch_token(token: CancellationToken, tasks: List[asyncio.Task]) -> None:
    while not token.cancelled:
        await asyncio.sleep(TOKEN_POLL_SECONDS)
    for task in tasks:
        task.cancel()


def _unique_clip_ids(videos: Sequence[VideoAnalysis]) -> List[VideoAnalysis]:
    """Suffix clip ids that collide (same file stem in different folders)."""
    counts = Counter(video.clip_id for video in videos)
    seen: Counter = Counter()
    unique = []
    for video in videos:
        if counts[video.clip_id] > 1:
            seen[video.clip_id] += 1
            video = video.model_copy(update={"clip_id": f"{video.clip_id}_{seen[video.clip_id]}"})
        unique.append(video)
    return unique


async def analyze_project(
    audio_path: str,
    video_paths: Sequence[str],
    token: Optional[CancellationToken] = None,
    progress: Optional[ProgressCallback] = None,
) -> AnalysisBundle:
    """Analyze the music and every video concurrently and join the results.

    Args:
        audio_path: Music track
        video_paths: Source videos
        token: Cancels the in-flight analyses when triggered
        progress: Receives (path, fraction) updates from all analyzers in any order

    Returns:
        AnalysisBundle with every result

    Raises:
        GenerationCancelledError: Cancelled through the token or task cancellation
        AnalysisError: An analyzer failed
    """
    if not video_paths:
        raise AnalysisError("No video files to analyze")

    log_start(logger, f"Analyzing 1 audio track and {len(video_paths)} videos")
    audio_analyzer = get_analyzer(MediaKind.AUDIO)
    video_analyzer = get_analyzer(MediaKind.VIDEO)

    tasks = [asyncio.ensure_future(audio_analyzer.analyze(audio_path, progress))]
    tasks += [asyncio.ensure_future(video_analyzer.analyze(path, progress)) for path in video_paths]
    watcher = asyncio.ensure_future(_watch_token(token, tasks)) if token is not None else None

    try:
        results = await asyncio.gather(*tasks)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        reason = "cancellation token" if token is not None and token.cancelled else "task cancelled"
        logger.warning(f"Analysis cancelled ({reason})")
        raise GenerationCancelledError("Analysis cancelled", detail=reason)
    except AnalysisError:
        for task in tasks:
            task.cancel()
        raise
    except Exception as e:
        for task in tasks:
            task.cancel()
        raise AnalysisError("Analysis failed", detail=str(e)) from e
    finally:
        if watcher is not None:
            watcher.cancel()

    audio: AudioAnalysis = results[0]
    videos = _unique_clip_ids(results[1:])
    log_update(logger, f"Audio: {audio.tempo:.1f} BPM, {len(audio.beats)} beats")
    log_complete(logger, f"Analysis complete: {sum(len(v.scenes) for v in videos)} scenes in {len(videos)} videos")
    return AnalysisBundle(audio=audio, videos=tuple(videos))
