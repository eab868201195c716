"""Transition selection at cut boundaries."""

import logging
from typing import NamedTuple, Optional

from ..models.edl import MatchedClip, TransitionType, TIME_EPSILON
from ..models.style import EditStyle, StyleConfig, TransitionPreference


logger = logging.getLogger(__name__)

STRONG_BEAT = 0.8
LOW_CONTINUITY = 0.3


class TransitionSpec(NamedTuple):
    """Requested transition before slack clamping."""
    type: TransitionType
    duration: float

    @property
    def is_cut(self) -> bool:
        return self.type == TransitionType.CUT


CUT = TransitionSpec(TransitionType.CUT, 0.0)


class TransitionSelector:
    """Chooses the transition for a cut from beat strength and content continuity.

    Rules, first match wins:

    1. a strong beat (>= 0.8) is a hard cut;
    2. smooth style with low continuity (< 0.3) dissolves;
    3. mixed style alternates dissolve and wipe by cut index;
    4. anything else is a cut.

    ``StyleConfig.transition_preference`` then overrides the outcome.
    """

    def select(
        self,
        beat_strength: Optional[float],
        content_continuity: float,
        config: StyleConfig,
        cut_index: int = 0,
    ) -> TransitionSpec:
        spec = self._apply_rules(beat_strength or 0.0, content_continuity, config, cut_index)
        chosen = self._apply_preference(spec, config)
        logger.debug(
            f"Cut {cut_index}: strength={beat_strength} continuity={content_continuity:.2f} "
            f"-> {chosen.type.value} ({chosen.duration:.2f}s)"
        )
        return chosen

    def _apply_rules(
        self,
        beat_strength: float,
        content_continuity: float,
        config: StyleConfig,
        cut_index: int,
    ) -> TransitionSpec:
        if beat_strength >= STRONG_BEAT:
            return CUT
        if config.style == EditStyle.SMOOTH and content_continuity < LOW_CONTINUITY:
            return TransitionSpec(TransitionType.DISSOLVE, config.transition_duration)
        if config.style == EditStyle.MIXED:
            kind = TransitionType.DISSOLVE if cut_index % 2 == 0 else TransitionType.WIPE
            return TransitionSpec(kind, config.transition_duration)
        return CUT

    def _apply_preference(self, spec: TransitionSpec, config: StyleConfig) -> TransitionSpec:
        preference = config.transition_preference
        if preference == TransitionPreference.AUTO or spec.is_cut:
            return spec
        if preference == TransitionPreference.CUT:
            return CUT
        return TransitionSpec(TransitionType(preference.value), spec.duration)


def content_continuity(outgoing: MatchedClip, incoming: MatchedClip) -> float:
    """Visual continuity between two adjacent clips in [0, 1].

    Material that plays on from the same source is fully continuous, other
    cuts inside one source are fairly continuous. Across sources, matching
    content type and similar motion each add up to 0.25.
    """
    if outgoing.source_id == incoming.source_id:
        if abs(outgoing.source_out_point - incoming.source_in_point) <= TIME_EPSILON:
            return 1.0
        return 0.6

    if outgoing.scene_ref is None or incoming.scene_ref is None:
        return 0.0

    out_ref, in_ref = outgoing.scene_ref, incoming.scene_ref
    same_type = 0.25 if out_ref.content_type == in_ref.content_type else 0.0
    motion = 0.25 * (1.0 - abs(out_ref.motion_intensity - in_ref.motion_intensity))
    return same_type + motion
