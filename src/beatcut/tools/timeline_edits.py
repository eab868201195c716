"""Immutable timeline transforms and undo/redo history.

Every transform takes an EditDecisionList and returns a new one with its
version incremented. ``EditSession`` validates each candidate before it
becomes the current timeline.
"""

import logging
from typing import Callable, List, Optional, Sequence

from ..models.edl import (
    EditDecisionList,
    Marker,
    MarkerType,
    MatchedClip,
    Transition,
    TransitionType,
    TIME_EPSILON,
)
from ..models.results import ValidationResult
from ..models.style import StyleConfig
from ..utils.timecode import seconds_to_frames, snap_down
from .edit_decision_engine import FORCED_MARKER_COLOR, clamp_transition
from .timeline_validator import TimelineValidator
from .transition_selector import TransitionSelector, content_continuity


logger = logging.getLogger(__name__)


def _shift_clip(clip: MatchedClip, offset: float) -> MatchedClip:
    return clip.model_copy(update={
        "timeline_in_point": clip.timeline_in_point + offset,
        "timeline_out_point": clip.timeline_out_point + offset,
    })


def _as_cut(transition: Transition, center: float) -> Transition:
    return transition.model_copy(update={
        "type": TransitionType.CUT,
        "duration": 0.0,
        "center_point": center,
    })


def trim_clip(
    edl: EditDecisionList,
    clip_id: str,
    head: float = 0.0,
    tail: float = 0.0,
    ripple: bool = False,
) -> EditDecisionList:
    """Shorten a clip by ``head`` seconds at its start and ``tail`` at its end.

    Amounts are floored to whole frames. Without ripple the freed time
    becomes a gap and transitions on the trimmed edges turn into cuts; the
    last clip's tail trim shortens the timeline. With ripple every later
    clip, marker and transition moves left and ``total_duration`` shrinks.

    Raises:
        ValueError: Unknown clip, negative amounts or nothing left of the clip
    """
    if head < 0 or tail < 0:
        raise ValueError("trim amounts must not be negative")
    fps = edl.frame_rate
    head, tail = snap_down(head, fps), snap_down(tail, fps)

    try:
        index = edl.clip_index(clip_id)
    except KeyError:
        raise ValueError(f"Unknown clip: {clip_id}")
    clip = edl.clips[index]
    if seconds_to_frames(clip.duration - head - tail, fps) < 1:
        raise ValueError(f"Trimming {clip_id} by {head + tail:.3f}s leaves less than one frame")

    is_last = index == len(edl.clips) - 1
    old_out = clip.timeline_out_point

    if ripple:
        shift = head + tail
        trimmed = clip.model_copy(update={
            "timeline_out_point": clip.timeline_out_point - shift,
            "source_in_point": clip.source_in_point + head * clip.speed,
            "source_out_point": clip.source_out_point - tail * clip.speed,
        })
        clips = list(edl.clips[:index]) + [trimmed] + [_shift_clip(c, -shift) for c in edl.clips[index + 1:]]
        transitions = [
            t.model_copy(update={"center_point": t.center_point - shift})
            if t.center_point >= old_out - TIME_EPSILON else t
            for t in edl.transitions
        ]
        markers = [
            m.model_copy(update={"position": m.position - shift})
            if m.position >= old_out - TIME_EPSILON else m
            for m in edl.cut_points
        ]
        total = edl.total_duration - shift
    else:
        trimmed = clip.model_copy(update={
            "timeline_in_point": clip.timeline_in_point + head,
            "timeline_out_point": clip.timeline_out_point - tail,
            "source_in_point": clip.source_in_point + head * clip.speed,
            "source_out_point": clip.source_out_point - tail * clip.speed,
        })
        clips = list(edl.clips[:index]) + [trimmed] + list(edl.clips[index + 1:])
        transitions = []
        for t in edl.transitions:
            if head > 0 and t.incoming_clip_id == clip_id:
                t = _as_cut(t, trimmed.timeline_in_point)
            elif tail > 0 and t.outgoing_clip_id == clip_id:
                t = _as_cut(t, t.center_point)
            transitions.append(t)
        markers = list(edl.cut_points)
        total = edl.total_duration
        if is_last and tail > 0:
            total = trimmed.timeline_out_point
            markers = [
                m.model_copy(update={"position": total}) if m.type == MarkerType.OUT else m
                for m in markers
            ]

    logger.debug(f"Trimmed {clip_id} head={head:.3f}s tail={tail:.3f}s ripple={ripple}")
    return edl.replace(
        clips=[c.model_dump() for c in clips],
        transitions=[t.model_dump() for t in transitions],
        cut_points=[m.model_dump() for m in markers],
        total_duration=total,
    )


def reorder_clips(edl: EditDecisionList, order: Sequence[str]) -> EditDecisionList:
    """Lay the clips out back to back in ``order``.

    Transitions between clips that stay adjacent are kept, new adjacencies
    become cuts, and cut markers are regenerated at the new boundaries.

    Raises:
        ValueError: ``order`` is not a permutation of the clip ids
    """
    if sorted(order) != sorted(c.id for c in edl.clips):
        raise ValueError("order must list every clip id exactly once")

    clips: List[MatchedClip] = []
    cursor = 0.0
    for clip_id in order:
        clip = edl.clip_by_id(clip_id)
        span = clip.duration
        clips.append(clip.model_copy(update={
            "timeline_in_point": cursor,
            "timeline_out_point": cursor + span,
        }))
        cursor += span

    transitions = []
    for number, (outgoing, incoming) in enumerate(zip(clips, clips[1:]), start=1):
        existing = edl.transition_between(outgoing.id, incoming.id)
        if existing is not None:
            transition = existing.model_copy(update={
                "id": f"transition_{number:03d}",
                "center_point": incoming.timeline_in_point,
            })
        else:
            transition = Transition(
                id=f"transition_{number:03d}",
                type=TransitionType.CUT,
                outgoing_clip_id=outgoing.id,
                incoming_clip_id=incoming.id,
                center_point=incoming.timeline_in_point,
            )
        transitions.append(transition)

    markers = _boundary_markers(clips, cursor)
    logger.debug(f"Reordered {len(clips)} clips")
    return edl.replace(
        clips=[c.model_dump() for c in clips],
        transitions=[t.model_dump() for t in transitions],
        cut_points=[m.model_dump() for m in markers],
        total_duration=cursor,
    )


def _boundary_markers(clips: Sequence[MatchedClip], total: float) -> List[Marker]:
    positions = [0.0] + [c.timeline_in_point for c in clips[1:]] + [total]
    markers = []
    for index, position in enumerate(positions):
        if index == 0:
            kind, label, color = MarkerType.IN, "In", None
        elif index == len(positions) - 1:
            kind, label, color = MarkerType.OUT, "Out", None
        else:
            kind, label, color = MarkerType.MARKER, "Cut", FORCED_MARKER_COLOR
        markers.append(Marker(id=f"marker_{index + 1:03d}", type=kind, position=position, label=label, color=color))
    return markers


def retransition(
    edl: EditDecisionList,
    config: StyleConfig,
    selector: Optional[TransitionSelector] = None,
) -> EditDecisionList:
    """Re-run transition selection on every adjacency with a new style.

    Beat strengths come from the cut markers stored in the EDL. Clips
    separated by a gap are joined by a cut.
    """
    selector = selector or TransitionSelector()
    fps = edl.frame_rate
    transitions = []
    for number, (outgoing, incoming) in enumerate(zip(edl.clips, edl.clips[1:]), start=1):
        kind, duration = TransitionType.CUT, 0.0
        if abs(incoming.timeline_in_point - outgoing.timeline_out_point) <= TIME_EPSILON:
            spec = selector.select(
                _beat_strength_at(edl, incoming.timeline_in_point),
                content_continuity(outgoing, incoming),
                config,
                number,
            )
            if not spec.is_cut:
                duration = clamp_transition(
                    spec.duration, outgoing, incoming, edl.source_by_id(outgoing.source_id), fps
                )
                if duration > 0:
                    kind = spec.type
        transitions.append(Transition(
            id=f"transition_{number:03d}",
            type=kind,
            duration=duration,
            outgoing_clip_id=outgoing.id,
            incoming_clip_id=incoming.id,
            center_point=incoming.timeline_in_point,
        ))

    logger.debug(f"Re-selected {len(transitions)} transitions for style {config.style.value}")
    return edl.replace(transitions=[t.model_dump() for t in transitions])


def _beat_strength_at(edl: EditDecisionList, position: float) -> Optional[float]:
    for marker in edl.cut_points:
        if marker.type == MarkerType.MARKER and abs(marker.position - position) <= TIME_EPSILON:
            return marker.beat_strength
    return None


class EditSession:
    """Holds the current EDL with undo/redo history.

    Transforms are applied through ``apply``; a candidate timeline becomes
    current only when it passes validation.
    """

    def __init__(
        self,
        edl: EditDecisionList,
        validator: Optional[TimelineValidator] = None,
        max_history: int = 100,
    ):
        self.current = edl
        self.validator = validator or TimelineValidator()
        self.max_history = max_history
        self._undo: List[EditDecisionList] = []
        self._redo: List[EditDecisionList] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def apply(self, transform: Callable[..., EditDecisionList], *args, **kwargs) -> ValidationResult:
        """Run ``transform(current, *args, **kwargs)`` and commit the result if valid."""
        candidate = transform(self.current, *args, **kwargs)
        result = self.validator.validate(candidate)
        if not result.ok:
            logger.warning(f"Rejected {getattr(transform, '__name__', 'edit')}: {result.error.message}")
            return result

        self._undo.append(self.current)
        if len(self._undo) > self.max_history:
            self._undo.pop(0)
        self._redo.clear()
        self.current = candidate
        return result

    def undo(self) -> EditDecisionList:
        if not self._undo:
            raise IndexError("nothing to undo")
        self._redo.append(self.current)
        self.current = self._undo.pop()
        return self.current

    def redo(self) -> EditDecisionList:
        if not self._redo:
            raise IndexError("nothing to redo")
        self._undo.append(self.current)
        self.current = self._redo.pop()
        return self.current
