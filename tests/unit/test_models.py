"""Unit tests for data models."""

import pytest
from pydantic import ValidationError

from beatcut.models import (
    AnalysisBundle,
    AudioAnalysis,
    Beat,
    EditDecisionList,
    EditStyle,
    EnergySegment,
    Marker,
    MarkerType,
    MatchedClip,
    Scene,
    SceneContentType,
    SourceMedia,
    StyleConfig,
    Transition,
    TransitionPreference,
    TransitionType,
    VideoAnalysis,
)
from beatcut.models.results import EngineIssue, GenerationResult, ValidationResult
from beatcut.errors import InsufficientMediaError, TimelineInvariantError


class TestAudioAnalysis:
    """Test AudioAnalysis model."""

    def test_total_duration_prefers_explicit_duration(self):
        audio = AudioAnalysis(beats=[Beat(time=1.0, strength=0.5)], tempo=120, duration=42.0)
        assert audio.total_duration == 42.0

    def test_total_duration_falls_back_to_last_beat_or_segment(self):
        audio = AudioAnalysis(
            beats=[Beat(time=0.5, strength=1.0), Beat(time=3.0, strength=1.0)],
            energy_segments=[EnergySegment(start=0, duration=4.0, level=0.3)],
            tempo=120,
        )
        assert audio.total_duration == 4.0

        audio = AudioAnalysis(beats=[Beat(time=5.0, strength=1.0)], tempo=60)
        assert audio.total_duration == 5.0

    def test_beats_must_be_ordered(self):
        with pytest.raises(ValidationError, match="time-ordered"):
            AudioAnalysis(
                beats=[Beat(time=2.0, strength=0.5), Beat(time=1.0, strength=0.5)],
                tempo=120,
            )

    def test_strength_range(self):
        with pytest.raises(ValidationError):
            Beat(time=0.0, strength=1.5)

    def test_tempo_must_be_positive(self):
        with pytest.raises(ValidationError):
            AudioAnalysis(tempo=0)

    def test_camel_case_input(self):
        audio = AudioAnalysis.model_validate({
            "beats": [{"time": 0.5, "strength": 0.8}],
            "energySegments": [{"start": 0, "duration": 1.0, "level": 0.4}],
            "tempo": 128,
            "sourceId": "song",
        })
        assert audio.energy_segments[0].level == 0.4
        assert audio.source_id == "song"

    def test_models_are_frozen(self):
        beat = Beat(time=1.0, strength=0.5)
        with pytest.raises(ValidationError):
            beat.time = 2.0


class TestVideoAnalysis:
    """Test VideoAnalysis and Scene models."""

    def test_scene_end_after_start(self):
        with pytest.raises(ValidationError, match="after scene start"):
            Scene(start=2.0, end=2.0)

    def test_scenes_must_not_overlap(self):
        with pytest.raises(ValidationError, match="overlap"):
            VideoAnalysis(
                clip_id="a",
                duration=10,
                scenes=[Scene(start=0, end=5), Scene(start=4, end=8)],
            )

    def test_scenes_inside_duration(self):
        with pytest.raises(ValidationError, match="past clip duration"):
            VideoAnalysis(clip_id="a", duration=5, scenes=[Scene(start=0, end=6)])

    def test_scene_time(self):
        video = VideoAnalysis(
            clip_id="a",
            duration=10,
            scenes=[Scene(start=0, end=2), Scene(start=5, end=9)],
        )
        assert video.scene_time == pytest.approx(6.0)

    def test_camel_case_scene(self):
        video = VideoAnalysis.model_validate({
            "clipId": "beach",
            "duration": 8,
            "scenes": [{"start": 0, "end": 8, "motionIntensity": 0.7, "contentType": "action"}],
        })
        assert video.clip_id == "beach"
        assert video.scenes[0].content_type == SceneContentType.ACTION
        assert video.scenes[0].motion_intensity == 0.7

    def test_bundle_complete(self):
        audio = AudioAnalysis(beats=[Beat(time=0.5, strength=1.0)], tempo=120)
        video = VideoAnalysis(clip_id="a", duration=5, scenes=[Scene(start=0, end=5)])
        assert AnalysisBundle(audio=audio, videos=[video]).complete
        assert not AnalysisBundle(videos=[video]).complete
        assert not AnalysisBundle(audio=audio, videos=[video], missing=["b.mp4"]).complete


class TestStyleConfig:
    """Test StyleConfig model."""

    def test_defaults(self):
        config = StyleConfig()
        assert config.style == EditStyle.SMOOTH
        assert config.transition_preference == TransitionPreference.AUTO
        assert config.min_clip_duration == 1.0
        assert config.beat_threshold == 0.5
        assert config.variety_window == 3
        assert config.allow_loop is False
        assert config.frame_rate == 30.0
        assert config.weights.duration_fit == 0.3

    def test_camel_case_keys_and_unknown_keys(self):
        config = StyleConfig.model_validate({
            "style": "dynamic",
            "transitionPreference": "dissolve",
            "minClipDuration": 0.5,
            "beatThreshold": 0.3,
            "varietyWindow": 2,
            "allowLoop": True,
            "frameRate": 25,
            "somethingElse": 1,
        })
        assert config.style == EditStyle.DYNAMIC
        assert config.transition_preference == TransitionPreference.DISSOLVE
        assert config.min_clip_duration == 0.5
        assert config.allow_loop is True
        assert config.frame_rate == 25

    def test_preferred_content(self):
        assert SceneContentType.WIDE in StyleConfig(style="smooth").preferred_content
        assert SceneContentType.ACTION in StyleConfig(style="dynamic").preferred_content
        assert not StyleConfig(style="mixed").preferred_content

    def test_resolution_format(self):
        assert StyleConfig(resolution="1280x720").dimensions == (1280, 720)
        with pytest.raises(ValidationError, match="WIDTHxHEIGHT"):
            StyleConfig(resolution="720p")

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            StyleConfig(min_clip_duration=0)
        with pytest.raises(ValidationError):
            StyleConfig(beat_threshold=1.5)
        with pytest.raises(ValidationError):
            StyleConfig(style="jumpy")


class TestEditDecisionList:
    """Test the EDL model and its helpers."""

    @pytest.fixture
    def edl(self):
        clips = [
            MatchedClip(id="clip_001", source_id="a", timeline_in_point=0, timeline_out_point=2,
                        source_in_point=1, source_out_point=3),
            MatchedClip(id="clip_002", source_id="b", timeline_in_point=2, timeline_out_point=3,
                        source_in_point=4, source_out_point=5),
            MatchedClip(id="clip_003", source_id="a", timeline_in_point=3, timeline_out_point=4,
                        source_in_point=5, source_out_point=6),
        ]
        return EditDecisionList(
            project_name="Test",
            total_duration=4.0,
            clips=clips,
            transitions=[
                Transition(id="transition_001", type="dissolve", duration=0.5,
                           outgoing_clip_id="clip_001", incoming_clip_id="clip_002", center_point=2),
                Transition(id="transition_002", outgoing_clip_id="clip_002",
                           incoming_clip_id="clip_003", center_point=3),
            ],
            cut_points=[
                Marker(id="marker_001", type="in", position=0),
                Marker(id="marker_002", position=2, beat_strength=0.9),
                Marker(id="marker_003", position=3),
                Marker(id="marker_004", type="out", position=4),
            ],
            sources=[
                SourceMedia(id="a", name="a.mp4", duration=10),
                SourceMedia(id="b", name="b.mp4", duration=10),
            ],
        )

    def test_clip_ranges_validated(self):
        with pytest.raises(ValidationError, match="greater than timeline_in_point"):
            MatchedClip(id="x", source_id="a", timeline_in_point=2, timeline_out_point=2,
                        source_in_point=0, source_out_point=0)
        with pytest.raises(ValidationError, match="must not precede"):
            MatchedClip(id="x", source_id="a", timeline_in_point=0, timeline_out_point=1,
                        source_in_point=2, source_out_point=1)

    def test_cut_has_zero_duration(self):
        with pytest.raises(ValidationError, match="zero duration"):
            Transition(id="t", type=TransitionType.CUT, duration=0.5,
                       outgoing_clip_id="a", incoming_clip_id="b", center_point=1)

    def test_lookups(self, edl):
        assert edl.clip_by_id("clip_002").source_id == "b"
        assert edl.clip_by_id("missing") is None
        assert edl.clip_index("clip_003") == 2
        with pytest.raises(KeyError):
            edl.clip_index("missing")
        assert edl.source_by_id("a").name == "a.mp4"
        assert edl.transition_between("clip_001", "clip_002").type == TransitionType.DISSOLVE
        assert edl.transition_between("clip_001", "clip_003") is None
        assert edl.width == 1920 and edl.height == 1080

    def test_get_clip_at_time(self, edl):
        assert edl.get_clip_at_time(0.5).id == "clip_001"
        assert edl.get_clip_at_time(2.0).id == "clip_002"
        assert edl.get_clip_at_time(4.0) is None

    def test_source_usage(self, edl):
        assert edl.get_source_usage() == {"a": pytest.approx(3.0), "b": pytest.approx(1.0)}

    def test_stats(self, edl):
        stats = edl.stats()
        assert stats.total_cuts == 2
        assert stats.average_clip_duration == pytest.approx(4.0 / 3)
        assert stats.transition_types == {"dissolve": 1, "cut": 1}
        assert stats.beat_alignment_score == pytest.approx(0.5)
        assert stats.unique_sources == 2

    def test_replace_bumps_version(self, edl):
        renamed = edl.replace(project_name="Renamed")
        assert renamed.project_name == "Renamed"
        assert renamed.version == edl.version + 1
        assert edl.project_name == "Test"

    def test_json_round_trip(self, edl):
        restored = EditDecisionList.model_validate_json(edl.model_dump_json(by_alias=True))
        assert restored == edl

    def test_marker_type(self, edl):
        assert edl.cut_points[0].type == MarkerType.IN
        assert edl.cut_points[-1].type == MarkerType.OUT


class TestResults:
    """Test typed engine results."""

    def test_issue_from_exception(self):
        issue = EngineIssue.from_exception(InsufficientMediaError("short", available=5, required=10))
        assert issue.error == "insufficient_media"
        assert "available=5.000s" in issue.detail

    def test_raise_for_error(self):
        result = ValidationResult(
            error=EngineIssue.from_exception(TimelineInvariantError("overlap", "clips overlap"))
        )
        assert not result.ok
        assert result.kind == "overlap"
        with pytest.raises(TimelineInvariantError) as exc_info:
            result.raise_for_error()
        assert exc_info.value.invariant == "overlap"

    def test_ok_result(self):
        result = GenerationResult()
        assert result.ok
        assert result.raise_for_error() is result
        assert not result.has_warning("insufficient_media")
