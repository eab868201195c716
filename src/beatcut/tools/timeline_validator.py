"""Structural validation of edit decision lists.

Checks run in a fixed order and the first violation is reported. The
validator never repairs a timeline.
"""

import logging
from typing import Dict, Optional

from ..errors import TimelineInvariantError
from ..models.edl import EditDecisionList, MatchedClip, SourceMedia, TIME_EPSILON
from ..models.results import EngineIssue, ValidationResult


logger = logging.getLogger(__name__)


class TimelineValidator:
    """Validates EDL invariants before export or commit."""

    def validate(self, edl: EditDecisionList) -> ValidationResult:
        """Validate ``edl`` and return a typed result."""
        try:
            self.check(edl)
        except TimelineInvariantError as e:
            logger.debug(f"EDL v{edl.version} invalid: {e.message}")
            return ValidationResult(error=EngineIssue.from_exception(e))
        return ValidationResult()

    def check(self, edl: EditDecisionList) -> None:
        """Validate ``edl``, raising TimelineInvariantError on the first violation."""
        sources = {source.id: source for source in edl.sources}
        self._check_clip_order(edl)
        self._check_transitions(edl, sources)
        self._check_source_ranges(edl, sources)
        self._check_markers(edl)
        self._check_duration(edl)

    def _check_clip_order(self, edl: EditDecisionList) -> None:
        seen = set()
        for clip in edl.clips:
            if clip.id in seen:
                raise TimelineInvariantError("clip_order", f"duplicate clip id {clip.id}")
            seen.add(clip.id)
            if clip.duration <= 0:
                raise TimelineInvariantError("clip_order", f"{clip.id} has non-positive span")

        for prev, curr in zip(edl.clips, edl.clips[1:]):
            if curr.timeline_in_point < prev.timeline_in_point:
                raise TimelineInvariantError(
                    "clip_order",
                    f"{curr.id} starts at {curr.timeline_in_point:.6f}s before {prev.id}",
                )
            overlap = prev.timeline_out_point - curr.timeline_in_point
            if overlap > TIME_EPSILON:
                transition = edl.transition_between(prev.id, curr.id)
                allowed = transition.duration if transition else 0.0
                if overlap > allowed + TIME_EPSILON:
                    raise TimelineInvariantError(
                        "overlap",
                        f"{prev.id} and {curr.id} overlap by {overlap:.6f}s (allowed {allowed:.6f}s)",
                    )

    def _check_transitions(self, edl: EditDecisionList, sources: Dict[str, SourceMedia]) -> None:
        tolerance = edl.frame_duration + TIME_EPSILON
        for transition in edl.transitions:
            outgoing = edl.clip_by_id(transition.outgoing_clip_id)
            incoming = edl.clip_by_id(transition.incoming_clip_id)
            if outgoing is None or incoming is None:
                missing = transition.outgoing_clip_id if outgoing is None else transition.incoming_clip_id
                raise TimelineInvariantError(
                    "transition_reference", f"{transition.id} references unknown clip {missing}"
                )

            if abs(transition.center_point - incoming.timeline_in_point) > TIME_EPSILON:
                raise TimelineInvariantError(
                    "transition_center",
                    f"{transition.id} centred at {transition.center_point:.6f}s, "
                    f"incoming {incoming.id} starts at {incoming.timeline_in_point:.6f}s",
                )

            if transition.duration == 0:
                continue
            slack = min(
                tail_slack(outgoing, sources.get(outgoing.source_id)),
                head_slack(incoming),
            )
            if transition.duration > slack + tolerance:
                raise TimelineInvariantError(
                    "transition_slack",
                    f"{transition.id} lasts {transition.duration:.3f}s but only "
                    f"{slack:.3f}s of handle material exists",
                )

    def _check_source_ranges(self, edl: EditDecisionList, sources: Dict[str, SourceMedia]) -> None:
        for clip in edl.clips:
            source = sources.get(clip.source_id)
            if source is None:
                raise TimelineInvariantError("source_range", f"{clip.id} references unknown source {clip.source_id}")
            if clip.source_in_point < -TIME_EPSILON or clip.source_out_point > source.duration + TIME_EPSILON:
                raise TimelineInvariantError(
                    "source_range",
                    f"{clip.id} uses {clip.source_in_point:.6f}-{clip.source_out_point:.6f}s "
                    f"of {source.id} ({source.duration:.6f}s)",
                )
            if clip.source_in_point > clip.source_out_point:
                raise TimelineInvariantError("source_range", f"{clip.id} source range is reversed")
            expected = clip.duration * clip.speed
            if abs(clip.source_duration - expected) > TIME_EPSILON:
                raise TimelineInvariantError(
                    "source_range",
                    f"{clip.id} source span {clip.source_duration:.6f}s != "
                    f"timeline span x speed {expected:.6f}s",
                )

    def _check_markers(self, edl: EditDecisionList) -> None:
        for marker in edl.cut_points:
            if marker.position < -TIME_EPSILON or marker.position > edl.total_duration + TIME_EPSILON:
                raise TimelineInvariantError(
                    "marker_range",
                    f"{marker.id} at {marker.position:.6f}s outside 0-{edl.total_duration:.6f}s",
                )

    def _check_duration(self, edl: EditDecisionList) -> None:
        if not edl.clips:
            covered = 0.0
        else:
            covered = edl.clips[0].timeline_in_point + edl.clips[0].duration
            for prev, curr in zip(edl.clips, edl.clips[1:]):
                gap = curr.timeline_in_point - prev.timeline_out_point
                # A negative gap is the overlap of a transition.
                covered += gap + curr.duration
        if abs(covered - edl.total_duration) > edl.frame_duration + TIME_EPSILON:
            raise TimelineInvariantError(
                "duration",
                f"clips and gaps cover {covered:.6f}s, total_duration is {edl.total_duration:.6f}s",
            )


def tail_slack(clip: MatchedClip, source: Optional[SourceMedia]) -> float:
    """Unused source after the clip's out point, in timeline seconds."""
    if source is None:
        return float("inf")
    return max(0.0, (source.duration - clip.source_out_point) / clip.speed)


def head_slack(clip: MatchedClip) -> float:
    """Unused source before the clip's in point, in timeline seconds."""
    return max(0.0, clip.source_in_point / clip.speed)


# Shared instance
timeline_validator = TimelineValidator()
