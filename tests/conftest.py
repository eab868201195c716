"""Shared fixtures for beatcut tests."""

import pytest

from beatcut.models import (
    AudioAnalysis,
    Beat,
    EditDecisionList,
    Marker,
    MatchedClip,
    Scene,
    SceneContentType,
    SourceMedia,
    StyleConfig,
    Transition,
    VideoAnalysis,
)
from beatcut.models.edl import SceneRef


def make_audio(times, strengths, duration=None, tempo=120.0):
    return AudioAnalysis(
        beats=[Beat(time=t, strength=s) for t, s in zip(times, strengths)],
        tempo=tempo,
        duration=duration,
        source_id="song",
        file_path="/music/song.mp3",
    )


def make_video(clip_id, duration, scenes):
    """``scenes`` is a list of (start, end, content_type, motion)."""
    return VideoAnalysis(
        clip_id=clip_id,
        duration=duration,
        scenes=[
            Scene(start=start, end=end, content_type=content_type, motion_intensity=motion)
            for start, end, content_type, motion in scenes
        ],
        file_path=f"/footage/{clip_id}.mp4",
    )


@pytest.fixture
def four_beats():
    """Beats at 0, 0.5, 1.0, 1.5 alternating strong and weak."""
    return make_audio([0.0, 0.5, 1.0, 1.5], [0.9, 0.3, 0.9, 0.3])


@pytest.fixture
def two_videos():
    return [
        make_video("a", 10.0, [(2.0, 8.0, SceneContentType.ACTION, 0.5)]),
        make_video("b", 10.0, [(2.0, 8.0, SceneContentType.CLOSE_UP, 0.5)]),
    ]


@pytest.fixture
def smooth_config():
    return StyleConfig(style="smooth", min_clip_duration=0.4, beat_threshold=0.2, frame_rate=30)


@pytest.fixture
def three_clip_edl():
    """Hand built 3 clip timeline: dissolve into clip 2, cut into clip 3."""
    ref_a = SceneRef(clip_id="a", scene_index=0, content_type=SceneContentType.WIDE, motion_intensity=0.2)
    ref_b = SceneRef(clip_id="b", scene_index=0, content_type=SceneContentType.ACTION, motion_intensity=0.8)
    clips = [
        MatchedClip(id="clip_001", source_id="a", timeline_in_point=0.0, timeline_out_point=2.0,
                    source_in_point=1.0, source_out_point=3.0, scene_ref=ref_a),
        MatchedClip(id="clip_002", source_id="b", timeline_in_point=2.0, timeline_out_point=4.0,
                    source_in_point=2.0, source_out_point=4.0, scene_ref=ref_b),
        MatchedClip(id="clip_003", source_id="a", timeline_in_point=4.0, timeline_out_point=5.0,
                    source_in_point=5.0, source_out_point=6.0, scene_ref=ref_a),
    ]
    return EditDecisionList(
        project_name="Three Clips",
        frame_rate=30.0,
        total_duration=5.0,
        clips=clips,
        transitions=[
            Transition(id="transition_001", type="dissolve", duration=0.5,
                       outgoing_clip_id="clip_001", incoming_clip_id="clip_002", center_point=2.0),
            Transition(id="transition_002", type="cut", outgoing_clip_id="clip_002",
                       incoming_clip_id="clip_003", center_point=4.0),
        ],
        cut_points=[
            Marker(id="marker_001", type="in", position=0.0, label="In"),
            Marker(id="marker_002", position=2.0, label="Beat 0.40", beat_strength=0.4),
            Marker(id="marker_003", position=4.0, label="Beat 0.90", beat_strength=0.9),
            Marker(id="marker_004", type="out", position=5.0, label="Out"),
        ],
        sources=[
            SourceMedia(id="a", name="a.mp4", duration=10.0, file_path="/footage/a.mp4"),
            SourceMedia(id="b", name="b.mp4", duration=10.0, file_path="/footage/b.mp4"),
        ],
        audio_source=SourceMedia(id="song", name="song.mp3", duration=5.0, file_path="/music/song.mp3"),
    )


@pytest.fixture
def audio_factory():
    return make_audio


@pytest.fixture
def video_factory():
    return make_video
