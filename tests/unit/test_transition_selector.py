"""Unit tests for transition selection."""

import pytest

from beatcut.models import MatchedClip, SceneContentType, StyleConfig, TransitionType
from beatcut.models.edl import SceneRef
from beatcut.tools.transition_selector import TransitionSelector, content_continuity


def clip(clip_id, source_id, source_in, source_out, content_type=None, motion=0.5):
    scene_ref = None
    if content_type is not None:
        scene_ref = SceneRef(clip_id=source_id, scene_index=0, content_type=content_type, motion_intensity=motion)
    return MatchedClip(
        id=clip_id,
        source_id=source_id,
        timeline_in_point=0.0,
        timeline_out_point=source_out - source_in,
        source_in_point=source_in,
        source_out_point=source_out,
        scene_ref=scene_ref,
    )


class TestTransitionSelector:
    """Test the transition rule table."""

    @pytest.fixture
    def selector(self):
        return TransitionSelector()

    def test_strong_beat_is_cut(self, selector):
        for style in ("smooth", "mixed", "dynamic", "cinematic"):
            spec = selector.select(0.8, 0.0, StyleConfig(style=style))
            assert spec.type == TransitionType.CUT
            assert spec.duration == 0.0

    def test_smooth_low_continuity_dissolves(self, selector):
        spec = selector.select(0.3, 0.1, StyleConfig(style="smooth", transition_duration=0.75))
        assert spec.type == TransitionType.DISSOLVE
        assert spec.duration == 0.75

    def test_smooth_high_continuity_cuts(self, selector):
        assert selector.select(0.3, 0.3, StyleConfig(style="smooth")).is_cut

    def test_mixed_alternates(self, selector):
        config = StyleConfig(style="mixed")
        assert selector.select(0.5, 0.9, config, cut_index=0).type == TransitionType.DISSOLVE
        assert selector.select(0.5, 0.9, config, cut_index=1).type == TransitionType.WIPE
        assert selector.select(0.5, 0.9, config, cut_index=2).type == TransitionType.DISSOLVE

    def test_dynamic_and_cinematic_cut(self, selector):
        assert selector.select(0.2, 0.0, StyleConfig(style="dynamic")).is_cut
        assert selector.select(0.2, 0.0, StyleConfig(style="cinematic")).is_cut

    def test_missing_strength_counts_as_weak(self, selector):
        spec = selector.select(None, 0.0, StyleConfig(style="smooth"))
        assert spec.type == TransitionType.DISSOLVE

    def test_preference_overrides_type(self, selector):
        config = StyleConfig(style="smooth", transition_preference="dip_to_black")
        assert selector.select(0.3, 0.1, config).type == TransitionType.DIP_TO_BLACK

    def test_preference_cut_disables_transitions(self, selector):
        config = StyleConfig(style="mixed", transition_preference="cut")
        assert selector.select(0.3, 0.1, config).is_cut

    def test_preference_keeps_hard_cuts(self, selector):
        config = StyleConfig(style="smooth", transition_preference="wipe")
        assert selector.select(0.95, 0.0, config).is_cut


class TestContentContinuity:
    """Test content continuity between adjacent clips."""

    def test_contiguous_same_source(self):
        assert content_continuity(clip("1", "a", 0, 2), clip("2", "a", 2, 4)) == 1.0

    def test_same_source_jump(self):
        assert content_continuity(clip("1", "a", 0, 2), clip("2", "a", 5, 6)) == 0.6

    def test_different_sources(self):
        out = clip("1", "a", 0, 2, SceneContentType.WIDE, 0.2)
        same = clip("2", "b", 0, 2, SceneContentType.WIDE, 0.2)
        other = clip("3", "b", 0, 2, SceneContentType.ACTION, 0.8)
        assert content_continuity(out, same) == pytest.approx(0.5)
        assert content_continuity(out, other) == pytest.approx(0.25 * 0.4)

    def test_without_scene_refs(self):
        assert content_continuity(clip("1", "a", 0, 2), clip("2", "b", 0, 2)) == 0.0
