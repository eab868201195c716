"""Edit decision engine.

Turns the beat/energy analysis of a music track and the scene analysis of
several source videos into a frame-accurate, validated EditDecisionList.
Generation is synchronous, deterministic and does no I/O.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import settings
from ..errors import AnalysisError, EditEngineError, InsufficientMediaError
from ..models.analysis import AnalysisBundle, AudioAnalysis, Scene, VideoAnalysis
from ..models.edl import (
    EditDecisionList,
    Marker,
    MarkerType,
    MatchedClip,
    SceneRef,
    SourceMedia,
    Transition,
    TransitionType,
    TIME_EPSILON,
)
from ..models.results import EngineIssue, GenerationResult
from ..models.style import EditStyle, StyleConfig
from ..utils.cancellation import CancellationToken
from ..utils.simple_logger import log_start, log_update, log_complete
from ..utils.timecode import FRAME_EPSILON, seconds_to_frames
from .timeline_validator import TimelineValidator, head_slack, tail_slack
from .transition_selector import TransitionSelector, content_continuity


logger = logging.getLogger(__name__)

BEAT_MARKER_COLOR = "#f1c0e8"
FORCED_MARKER_COLOR = "#ffbe0b"
SCORE_TIE = 1e-9


@dataclass
class CutPoint:
    """A timeline boundary on the frame grid."""
    frame: int
    strength: Optional[float] = None  # None for forced cuts and the timeline ends


@dataclass
class SceneSlot:
    """Consumption state of one scene during a generate() run."""
    clip_id: str
    scene_index: int
    scene: Scene
    consumed: float = 0.0
    uses: int = 0

    @property
    def remaining(self) -> float:
        return max(0.0, self.scene.duration - self.consumed)

    @property
    def source_position(self) -> float:
        return self.scene.start + self.consumed


@dataclass
class Candidate:
    slot_index: int
    available: float
    score: float
    recently_used: bool


class SceneLibrary:
    """All scenes of all videos, ordered by clip id then scene index."""

    def __init__(self, videos: Sequence[VideoAnalysis]):
        self.videos: Dict[str, VideoAnalysis] = {
            video.clip_id: video for video in sorted(videos, key=lambda v: v.clip_id)
        }
        self.slots: List[SceneSlot] = [
            SceneSlot(video.clip_id, index, scene)
            for video in self.videos.values()
            for index, scene in enumerate(video.scenes)
        ]

    @property
    def scene_time(self) -> float:
        return sum(video.scene_time for video in self.videos.values())

    def continues(self, index: int) -> bool:
        """True when slot ``index + 1`` picks up exactly where slot ``index`` ends."""
        if index + 1 >= len(self.slots):
            return False
        current, following = self.slots[index], self.slots[index + 1]
        return (
            current.clip_id == following.clip_id
            and abs(following.scene.start - current.scene.end) <= TIME_EPSILON
        )

    def available_runs(self) -> List[float]:
        """Unconsumed material from each slot through the untouched contiguous scenes after it.

        One right-to-left pass: an untouched slot hands its whole run back to the
        slot before it, a partly used slot hands back nothing.
        """
        runs = [0.0] * len(self.slots)
        untouched_run = 0.0
        for index in reversed(range(len(self.slots))):
            slot = self.slots[index]
            following = untouched_run if self.continues(index) else 0.0
            runs[index] = slot.remaining + following
            untouched_run = slot.scene.duration + following if slot.consumed == 0 else 0.0
        return runs

    def longest_run(self) -> float:
        """Longest contiguous stretch of scenes, ignoring consumption."""
        best = current = 0.0
        for index, slot in enumerate(self.slots):
            if index > 0 and self.continues(index - 1):
                current += slot.scene.duration
            else:
                current = slot.scene.duration
            best = max(best, current)
        return best

    def longest_remaining_run(self) -> Tuple[Optional[int], float]:
        best_index, best_run = None, 0.0
        for index, run in enumerate(self.available_runs()):
            if self.slots[index].remaining <= TIME_EPSILON:
                continue
            if run > best_run + TIME_EPSILON:
                best_index, best_run = index, run
        return best_index, best_run

    def consume(self, index: int, amount: float) -> float:
        """Take ``amount`` seconds starting at slot ``index``; returns the source in point."""
        source_in = self.slots[index].source_position
        remaining = amount
        while True:
            slot = self.slots[index]
            take = min(remaining, slot.remaining)
            slot.consumed += take
            slot.uses += 1
            remaining -= take
            if remaining <= TIME_EPSILON or not self.continues(index):
                return source_in
            index += 1

    def reset(self) -> None:
        """Make every scene available again. Use counts are kept."""
        for slot in self.slots:
            slot.consumed = 0.0


def interval_energy(audio: AudioAnalysis, start: float, end: float) -> float:
    """Music energy over [start, end).

    Overlap-weighted mean of the energy segment levels, falling back to the
    mean strength of the beats inside the interval, then to 0.5.
    """
    weighted = covered = 0.0
    for segment in audio.energy_segments:
        overlap = min(end, segment.end) - max(start, segment.start)
        if overlap > 0:
            weighted += overlap * segment.level
            covered += overlap
    if covered > 0:
        return weighted / covered

    strengths = [beat.strength for beat in audio.beats if start <= beat.time < end]
    if strengths:
        return sum(strengths) / len(strengths)
    return 0.5


class EditDecisionEngine:
    """Generates beat-synchronised edit decision lists.

    The engine picks cut points on strong beats, assigns a scene to every
    interval with a weighted score (duration fit, style match, variety,
    motion/energy match), maps intervals onto source ranges and asks the
    TransitionSelector for the transition at each cut.
    """

    def __init__(
        self,
        selector: Optional[TransitionSelector] = None,
        validator: Optional[TimelineValidator] = None,
        check_interval: Optional[int] = None,
    ):
        self.selector = selector or TransitionSelector()
        self.validator = validator or TimelineValidator()
        self.check_interval = max(1, check_interval or settings.cancellation_check_interval)

    def generate(
        self,
        audio,
        videos,
        config=None,
        token: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        """Generate an EDL.

        Args:
            audio: AudioAnalysis (or a dict in camelCase/snake_case form)
            videos: Sequence of VideoAnalysis (or dicts)
            config: StyleConfig (or dict), defaults apply when omitted
            token: Optional cancellation token, polled while assigning clips

        Returns:
            GenerationResult with the EDL and warnings, or the error
        """
        try:
            audio, videos, config = self._coerce_inputs(audio, videos, config)
            edl, warnings = self._build(audio, videos, config, token)
        except EditEngineError as e:
            logger.error(f"Edit generation failed: {e.message}")
            return GenerationResult(error=EngineIssue.from_exception(e))

        return GenerationResult(
            edl=edl,
            warnings=[EngineIssue.from_exception(w) for w in warnings],
        )

    def generate_from_bundle(
        self,
        bundle: AnalysisBundle,
        config=None,
        token: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        """Generate from the joined output of the analysis pipeline."""
        if not bundle.complete:
            missing = ", ".join(bundle.missing) or "audio"
            error = AnalysisError("Analysis results are incomplete", detail=f"missing: {missing}")
            logger.error(f"Edit generation failed: {error.message} ({missing})")
            return GenerationResult(error=EngineIssue.from_exception(error))
        return self.generate(bundle.audio, list(bundle.videos), config, token)

    def _coerce_inputs(self, audio, videos, config):
        if audio is None:
            raise AnalysisError("Audio analysis is missing")
        if isinstance(audio, dict):
            audio = self._parse(AudioAnalysis, audio, "audio analysis")
        if not videos:
            raise AnalysisError("No video analyses provided")

        parsed = []
        for index, video in enumerate(videos):
            if video is None:
                raise AnalysisError("Video analysis results are incomplete", detail=f"entry {index} is missing")
            if isinstance(video, dict):
                video = self._parse(VideoAnalysis, video, f"video analysis #{index}")
            parsed.append(video)

        if config is None:
            config = StyleConfig()
        elif isinstance(config, dict):
            config = self._parse(StyleConfig, config, "style config")

        if not audio.beats:
            raise AnalysisError("Audio analysis contains no beats")

        clip_ids = [video.clip_id for video in parsed]
        duplicates = sorted({cid for cid in clip_ids if clip_ids.count(cid) > 1})
        if duplicates:
            raise AnalysisError("Duplicate clip ids", detail=", ".join(duplicates))
        if not any(video.scenes for video in parsed):
            raise AnalysisError("No video contains any scene")

        return audio, parsed, config

    @staticmethod
    def _parse(model, data: dict, what: str):
        try:
            return model.model_validate(data)
        except ValueError as e:
            raise AnalysisError(f"Invalid {what}", detail=str(e))

    def _build(
        self,
        audio: AudioAnalysis,
        videos: List[VideoAnalysis],
        config: StyleConfig,
        token: Optional[CancellationToken],
    ) -> Tuple[EditDecisionList, List[InsufficientMediaError]]:
        fps = config.frame_rate
        log_start(logger, f"Generating {config.style.value} edit from {len(videos)} clips")

        total_frames = seconds_to_frames(audio.total_duration, fps)
        if total_frames < 1:
            raise AnalysisError("Audio is shorter than one frame", detail=f"duration={audio.total_duration}")

        library = SceneLibrary(videos)
        warnings: List[InsufficientMediaError] = []
        if library.scene_time + TIME_EPSILON < audio.total_duration:
            shortfall = InsufficientMediaError(
                f"Video material ({library.scene_time:.2f}s) is shorter than the music "
                f"({audio.total_duration:.2f}s)",
                available=library.scene_time,
                required=audio.total_duration,
            )
            logger.warning(shortfall.message)
            warnings.append(shortfall)

        limit_frames = seconds_to_frames(library.longest_run() / config.speed, fps)
        if config.max_clip_duration is not None:
            limit_frames = min(limit_frames, max(1, seconds_to_frames(config.max_clip_duration, fps)))
        if limit_frames < 1:
            raise AnalysisError("No scene run is longer than one frame")

        points = self.select_cut_points(audio, config, total_frames, limit_frames)
        log_update(logger, f"Selected {len(points)} cut points over {total_frames / fps:.2f}s")

        clips, points = self._assign_clips(points, audio, library, config, token)
        end_frame = points[-1].frame
        if end_frame < total_frames:
            logger.warning(f"Ran out of scene material, EDL truncated to {end_frame / fps:.2f}s")
            if not warnings:
                warnings.append(InsufficientMediaError(
                    f"Scene material ran out at {end_frame / fps:.2f}s",
                    available=end_frame / fps,
                    required=total_frames / fps,
                ))

        sources = {cid: self._source_media(library.videos[cid]) for cid in sorted({c.source_id for c in clips})}
        transitions = self._assign_transitions(clips, points, sources, config)

        edl = EditDecisionList(
            project_name=config.project_name,
            frame_rate=fps,
            total_duration=end_frame / fps,
            resolution=config.resolution,
            clips=tuple(clips),
            transitions=tuple(transitions),
            cut_points=tuple(self._build_markers(points, fps)),
            sources=tuple(sources.values()),
            audio_source=self._audio_media(audio),
        )
        self.validator.check(edl)

        stats = edl.stats()
        log_complete(
            logger,
            f"Generated EDL: {len(edl.clips)} clips, {stats.total_cuts} cuts, "
            f"{stats.unique_sources} sources, {edl.total_duration:.2f}s",
        )
        return edl, warnings

    def select_cut_points(
        self,
        audio: AudioAnalysis,
        config: StyleConfig,
        total_frames: int,
        limit_frames: Optional[int] = None,
    ) -> List[CutPoint]:
        """Strictly increasing cut points from 0 to ``total_frames``."""
        fps = config.frame_rate
        total_seconds = total_frames / fps
        min_gap = config.min_clip_duration - FRAME_EPSILON

        points = [CutPoint(0)]
        for beat in audio.beats:
            if beat.strength <= config.beat_threshold:
                continue
            if beat.time <= 0 or beat.time >= total_seconds:
                continue
            frame = seconds_to_frames(beat.time, fps)
            if frame <= points[-1].frame:
                continue
            if (frame - points[-1].frame) / fps < min_gap:
                continue
            points.append(CutPoint(frame, beat.strength))

        points.append(CutPoint(total_frames))

        if limit_frames:
            points = self._split_long_intervals(points, limit_frames)
        return points

    @staticmethod
    def _split_long_intervals(points: List[CutPoint], limit_frames: int) -> List[CutPoint]:
        result = [points[0]]
        for point in points[1:]:
            start = result[-1].frame
            length = point.frame - start
            if length > limit_frames:
                pieces = math.ceil(length / limit_frames)
                base, extra = divmod(length, pieces)
                position = start
                for k in range(pieces - 1):
                    position += base + (1 if k < extra else 0)
                    result.append(CutPoint(position))
            result.append(point)
        return result

    def _assign_clips(
        self,
        points: List[CutPoint],
        audio: AudioAnalysis,
        library: SceneLibrary,
        config: StyleConfig,
        token: Optional[CancellationToken],
    ) -> Tuple[List[MatchedClip], List[CutPoint]]:
        """Assign a scene to every interval; returns the clips and the boundaries actually used."""
        fps = config.frame_rate
        clips: List[MatchedClip] = []
        last_used: Dict[str, int] = {}

        for index in range(len(points) - 1):
            if token is not None and index % self.check_interval == 0:
                token.raise_if_cancelled()

            start, end = points[index], points[index + 1]
            start_time, end_time = start.frame / fps, end.frame / fps
            required = (end_time - start_time) * config.speed
            energy = interval_energy(audio, start_time, end_time)

            candidate = self._best_candidate(library, required, energy, index, last_used, config)
            if candidate is None and config.allow_loop:
                logger.info(f"Scene material exhausted at {start_time:.2f}s, reusing scenes")
                library.reset()
                candidate = self._best_candidate(library, required, energy, index, last_used, config)

            if candidate is None:
                slot_index, run = library.longest_remaining_run()
                frames = min(seconds_to_frames(run / config.speed, fps), end.frame - start.frame)
                if slot_index is None or frames < 1:
                    return clips, points[: index + 1]
                last = CutPoint(start.frame + frames)
                clips.append(self._place(library, slot_index, start_time, last.frame / fps, config, len(clips) + 1))
                return clips, points[: index + 1] + [last]

            slot = library.slots[candidate.slot_index]
            last_used[slot.clip_id] = index
            clips.append(self._place(library, candidate.slot_index, start_time, end_time, config, len(clips) + 1))

        return clips, points

    def _best_candidate(
        self,
        library: SceneLibrary,
        required: float,
        energy: float,
        interval_index: int,
        last_used: Dict[str, int],
        config: StyleConfig,
    ) -> Optional[Candidate]:
        best: Optional[Candidate] = None
        runs = library.available_runs()
        for index, slot in enumerate(library.slots):
            if slot.remaining <= TIME_EPSILON:
                continue
            available = runs[index]
            if available + TIME_EPSILON < required:
                continue
            score, recent = self._score(slot, available, required, energy, interval_index, last_used, config)
            candidate = Candidate(index, available, score, recent)
            if best is None or self._prefer(candidate, best, library):
                best = candidate
        return best

    @staticmethod
    def _score(
        slot: SceneSlot,
        available: float,
        required: float,
        energy: float,
        interval_index: int,
        last_used: Dict[str, int],
        config: StyleConfig,
    ) -> Tuple[float, bool]:
        weights = config.weights
        scene = slot.scene

        duration_fit = required / available if available > 0 else 0.0

        if config.style == EditStyle.MIXED:
            content_match = 0.5
        elif scene.content_type in config.preferred_content:
            content_match = scene.confidence
        else:
            content_match = 0.0

        window = config.variety_window
        last = last_used.get(slot.clip_id)
        recent = last is not None and interval_index - last <= window
        clip_freshness = (interval_index - last) / (window + 1) if recent else 1.0
        scene_freshness = 1.0 / (1 + slot.uses)
        variety = 0.5 * clip_freshness + 0.5 * scene_freshness

        motion_match = 1.0 - abs(scene.motion_intensity - energy)

        score = (
            weights.duration_fit * duration_fit
            + weights.content_type * content_match
            + weights.variety * variety
            + weights.motion_energy * motion_match
        )
        return score, recent

    @staticmethod
    def _prefer(candidate: Candidate, best: Candidate, library: SceneLibrary) -> bool:
        """Whether ``candidate`` beats ``best``: higher score, then tie-break keys."""
        if candidate.score > best.score + SCORE_TIE:
            return True
        if candidate.score < best.score - SCORE_TIE:
            return False
        a, b = library.slots[candidate.slot_index], library.slots[best.slot_index]
        return (candidate.recently_used, a.clip_id, a.scene_index) < (best.recently_used, b.clip_id, b.scene_index)

    @staticmethod
    def _place(
        library: SceneLibrary,
        slot_index: int,
        start_time: float,
        end_time: float,
        config: StyleConfig,
        number: int,
    ) -> MatchedClip:
        slot = library.slots[slot_index]
        scene_ref = SceneRef(
            clip_id=slot.clip_id,
            scene_index=slot.scene_index,
            content_type=slot.scene.content_type,
            motion_intensity=slot.scene.motion_intensity,
        )
        source_span = (end_time - start_time) * config.speed
        source_in = library.consume(slot_index, source_span)
        return MatchedClip(
            id=f"clip_{number:03d}",
            source_id=slot.clip_id,
            timeline_in_point=start_time,
            timeline_out_point=end_time,
            source_in_point=source_in,
            source_out_point=source_in + source_span,
            speed=config.speed,
            scene_ref=scene_ref,
        )

    def _assign_transitions(
        self,
        clips: List[MatchedClip],
        points: List[CutPoint],
        sources: Dict[str, SourceMedia],
        config: StyleConfig,
    ) -> List[Transition]:
        transitions = []
        for index in range(1, len(clips)):
            outgoing, incoming = clips[index - 1], clips[index]
            spec = self.selector.select(
                points[index].strength,
                content_continuity(outgoing, incoming),
                config,
                index,
            )
            kind, duration = spec.type, 0.0
            if not spec.is_cut:
                duration = clamp_transition(
                    spec.duration, outgoing, incoming, sources.get(outgoing.source_id), config.frame_rate
                )
                if duration == 0.0:
                    kind = TransitionType.CUT
            transitions.append(Transition(
                id=f"transition_{index:03d}",
                type=kind,
                duration=duration,
                outgoing_clip_id=outgoing.id,
                incoming_clip_id=incoming.id,
                center_point=incoming.timeline_in_point,
            ))
        return transitions

    @staticmethod
    def _build_markers(points: List[CutPoint], fps: float) -> List[Marker]:
        markers = []
        last = len(points) - 1
        for index, point in enumerate(points):
            if index == 0:
                kind, label, color = MarkerType.IN, "In", None
            elif index == last:
                kind, label, color = MarkerType.OUT, "Out", None
            elif point.strength is None:
                kind, label, color = MarkerType.MARKER, "Forced cut", FORCED_MARKER_COLOR
            else:
                kind, label, color = MarkerType.MARKER, f"Beat {point.strength:.2f}", BEAT_MARKER_COLOR
            markers.append(Marker(
                id=f"marker_{index + 1:03d}",
                type=kind,
                position=point.frame / fps,
                label=label,
                color=color,
                beat_strength=point.strength if kind == MarkerType.MARKER else None,
            ))
        return markers

    @staticmethod
    def _source_media(video: VideoAnalysis) -> SourceMedia:
        name = Path(video.file_path).name if video.file_path else video.clip_id
        return SourceMedia(id=video.clip_id, name=name, duration=video.duration, file_path=video.file_path)

    @staticmethod
    def _audio_media(audio: AudioAnalysis) -> SourceMedia:
        source_id = audio.source_id or "music"
        name = Path(audio.file_path).name if audio.file_path else source_id
        return SourceMedia(id=source_id, name=name, duration=audio.total_duration, file_path=audio.file_path)


def clamp_transition(
    duration: float,
    outgoing: MatchedClip,
    incoming: MatchedClip,
    source: Optional[SourceMedia],
    fps: float,
) -> float:
    """Largest whole-frame duration not above ``duration`` that the handles and clip spans allow.

    Returns 0.0 when less than one frame fits.
    """
    limit = min(
        duration,
        tail_slack(outgoing, source),
        head_slack(incoming),
        outgoing.duration,
        incoming.duration,
    )
    frames = seconds_to_frames(limit, fps)
    return frames / fps if frames >= 1 else 0.0


# Shared instance
edit_decision_engine = EditDecisionEngine()
