"""Unit tests for EDL export and re-import."""

import xml.etree.ElementTree as ET

import pytest

from beatcut.config import settings
from beatcut.errors import UnsupportedFormatError
from beatcut.models import EditDecisionList, MatchedClip, SourceMedia
from beatcut.storage import FilesystemStorage
from beatcut.tools.edit_decision_engine import EditDecisionEngine
from beatcut.tools.edl_parser import EDLParser
from beatcut.tools.edl_serializer import (
    EDLSerializer,
    ExportFormat,
    fcpx_format_name,
    reel_name,
    reel_names,
    resolve_format,
)


FRAME = 1 / 30


@pytest.fixture
def serializer():
    return EDLSerializer()


@pytest.fixture
def parser():
    return EDLParser()


@pytest.fixture
def speed_edl():
    """One clip played at double speed."""
    return EditDecisionList(
        project_name="Fast",
        frame_rate=30.0,
        total_duration=1.0,
        clips=[MatchedClip(id="clip_001", source_id="a", timeline_in_point=0.0, timeline_out_point=1.0,
                           source_in_point=1.0, source_out_point=3.0, speed=2.0)],
        sources=[SourceMedia(id="a", name="a.mp4", duration=10.0)],
    )


@pytest.fixture
def interview_edl():
    """Two sources whose ids share their first eight characters."""
    return EditDecisionList(
        project_name="Interviews",
        frame_rate=30.0,
        total_duration=2.0,
        clips=[
            MatchedClip(id="clip_001", source_id="interview_1", timeline_in_point=0.0, timeline_out_point=1.0,
                        source_in_point=0.0, source_out_point=1.0),
            MatchedClip(id="clip_002", source_id="interview_2", timeline_in_point=1.0, timeline_out_point=2.0,
                        source_in_point=0.0, source_out_point=1.0),
        ],
        sources=[
            SourceMedia(id="interview_1", name="interview_1.mov", duration=5.0),
            SourceMedia(id="interview_2", name="interview_2.mov", duration=5.0),
        ],
    )

class TestFormats:

    def test_aliases(self):
        assert resolve_format("premiere") == ExportFormat.PREMIERE
        assert resolve_format("XML") == ExportFormat.PREMIERE
        assert resolve_format("fcpxml") == ExportFormat.FCPX
        assert resolve_format("edl") == ExportFormat.CMX3600
        assert resolve_format(ExportFormat.FCPX) == ExportFormat.FCPX

    def test_unknown_format(self):
        with pytest.raises(UnsupportedFormatError):
            resolve_format("avid")

    def test_export_unknown_format_result(self, serializer, three_clip_edl):
        result = serializer.export(three_clip_edl, "avid")
        assert not result.ok
        assert result.error.error == "unsupported_format"
        assert result.text is None

    def test_export_refuses_invalid_timeline(self, serializer, three_clip_edl):
        edl = three_clip_edl.model_copy(update={"total_duration": 9.0})
        result = serializer.export(edl, "fcpx")
        assert result.error.error == "timeline_invariant"
        assert result.error.invariant == "duration"

    def test_reel_name(self):
        assert reel_name("clip-01.a") == "CLIP01A"
        assert reel_name("a_very_long_name") == "A_VERY_L"
        assert reel_name("---") == "AX"

    def test_reel_names_distinct(self):
        reels = reel_names(["interview_1", "interview_2", "broll", "a", "A"])
        assert reels == {
            "interview_1": "INTERV01",
            "interview_2": "INTERV02",
            "broll": "BROLL",
            "a": "A01",
            "A": "A02",
        }

    def test_reel_names_skip_taken(self):
        reels = reel_names(["INTERV01", "interview_1", "interview_2"])
        assert reels["INTERV01"] == "INTERV01"
        assert sorted(reels.values()) == ["INTERV01", "INTERV02", "INTERV03"]

    def test_fcpx_format_name(self):
        assert fcpx_format_name(1080, 30) == "FFVideoFormat1080p30"
        assert fcpx_format_name(1080, 29.97) == "FFVideoFormat1080p2997"
        assert fcpx_format_name(1080, 23.976) == "FFVideoFormat1080p2398"
        assert fcpx_format_name(720, 25) == "FFVideoFormat720p25"


class TestFCPXML:

    def test_one_asset_clip_per_clip(self, serializer, three_clip_edl):
        result = serializer.export(three_clip_edl, "fcpx")

        assert result.ok
        assert result.extension == ".fcpxml"
        root = ET.fromstring(result.text)
        assert root.get("version") == settings.fcpxml_version
        assert len(root.findall(".//asset-clip")) == 3

    def test_ntsc_format_name(self, serializer, three_clip_edl):
        edl = three_clip_edl.model_copy(update={"frame_rate": 29.97})
        root = ET.fromstring(serializer.render(edl, ExportFormat.FCPX))
        fmt = root.find("resources/format")
        assert fmt.get("name") == "FFVideoFormat1080p2997"
        assert fmt.get("frameDuration") == "1001/30000s"

    def test_sequence_duration_rounded_to_frame(self, serializer, three_clip_edl):
        edl = three_clip_edl.replace(total_duration=5.01)
        root = ET.fromstring(serializer.export(edl, "fcpx").text)
        # 5.01s is 150.3 frames, rounded to 150
        assert root.find(".//sequence").get("duration") == "5s"

    def test_resources(self, serializer, three_clip_edl):
        root = ET.fromstring(serializer.export(three_clip_edl, "fcpx").text)
        fmt = root.find("resources/format")
        assert fmt.get("id") == "r1"
        assert fmt.get("frameDuration") == "1/30s"
        assets = root.findall("resources/asset")
        assert [a.get("id") for a in assets] == ["r2", "r3"]
        assert assets[0].get("src") == "file://localhost/footage/a.mp4"

    def test_transition_centred_on_cut(self, serializer, three_clip_edl):
        root = ET.fromstring(serializer.export(three_clip_edl, "fcpx").text)
        transition = root.find(".//spine/transition")
        assert transition.get("name") == "Cross Dissolve"
        assert transition.get("duration") == "1/2s"
        # 60 - 15 // 2 = 53 frames
        assert transition.get("offset") == "53/30s"

    def test_clip_timing(self, serializer, three_clip_edl):
        root = ET.fromstring(serializer.export(three_clip_edl, "fcpx").text)
        second = root.findall(".//asset-clip")[1]
        assert second.get("ref") == "r3"
        assert second.get("offset") == "2s"
        assert second.get("duration") == "2s"
        assert second.get("start") == "2s"

    def test_markers_attached_to_clips(self, serializer, three_clip_edl):
        root = ET.fromstring(serializer.export(three_clip_edl, "fcpx").text)
        clips = root.findall(".//asset-clip")
        assert [m.get("value") for m in clips[0].findall("marker")] == ["In"]
        assert [m.get("value") for m in clips[2].findall("marker")] == ["Beat 0.90", "Out"]

    def test_speed_time_map(self, serializer, speed_edl):
        root = ET.fromstring(serializer.export(speed_edl, "fcpx").text)
        points = root.findall(".//asset-clip/timeMap/timept")
        assert points[-1].get("time") == "1s"
        assert points[-1].get("value") == "2s"


class TestPremiereXML:

    def test_structure(self, serializer, three_clip_edl):
        result = serializer.export(three_clip_edl, "premiere")

        assert result.ok
        assert result.extension == ".xml"
        root = ET.fromstring(result.text)
        assert root.tag == "xmeml"
        sequence = root.find("sequence")
        assert sequence.findtext("name") == "Three Clips"
        assert sequence.findtext("duration") == "150"
        assert sequence.findtext("rate/timebase") == "30"
        assert sequence.findtext("rate/ntsc") == "FALSE"
        video_items = sequence.findall("media/video/track/clipitem")
        assert [item.get("id") for item in video_items] == ["clip_001", "clip_002", "clip_003"]
        assert sequence.find("media/audio/track/clipitem").get("id") == "audio-1"

    def test_transition_item_precedes_incoming_clip(self, serializer, three_clip_edl):
        root = ET.fromstring(serializer.export(three_clip_edl, "premiere").text)
        track = root.find("sequence/media/video/track")
        tags = [child.tag for child in track if child.tag in ("clipitem", "transitionitem")]
        assert tags == ["clipitem", "transitionitem", "clipitem", "clipitem"]
        transition = track.find("transitionitem")
        assert transition.findtext("start") == "53"
        assert transition.findtext("end") == "68"
        assert transition.findtext("effect/name") == "Cross Dissolve"

    def test_file_defined_once(self, serializer, three_clip_edl):
        root = ET.fromstring(serializer.export(three_clip_edl, "premiere").text)
        files = [f for f in root.iter("file") if f.get("id") == "file-a"]
        assert len(files) == 2
        assert files[0].findtext("pathurl") == "file://localhost/footage/a.mp4"
        assert len(list(files[1])) == 0

    def test_markers(self, serializer, three_clip_edl):
        root = ET.fromstring(serializer.export(three_clip_edl, "premiere").text)
        markers = root.findall("sequence/marker")
        assert [m.findtext("in") for m in markers] == ["0", "60", "120", "150"]

    def test_ntsc_rate(self, serializer, three_clip_edl):
        edl = three_clip_edl.model_copy(update={"frame_rate": 29.97})
        root = ET.fromstring(serializer.render(edl, ExportFormat.PREMIERE))
        assert root.findtext("sequence/rate/timebase") == "30"
        assert root.findtext("sequence/rate/ntsc") == "TRUE"

    def test_speed_filter(self, serializer, speed_edl):
        root = ET.fromstring(serializer.export(speed_edl, "premiere").text)
        assert root.findtext(".//clipitem/filter/effect/effectid") == "timeremap"
        assert root.findtext(".//clipitem/filter/effect/parameter/value") == "200"


class TestCMX3600:

    def test_header_and_events(self, serializer, three_clip_edl):
        result = serializer.export(three_clip_edl, "cmx3600")

        assert result.ok
        assert result.extension == ".edl"
        lines = result.text.splitlines()
        assert lines[0] == "TITLE: Three Clips"
        assert lines[1] == "FCM: NON-DROP FRAME"
        assert lines[3] == (
            "001  A        V     C        00:00:01:00 00:00:03:00 00:00:00:00 00:00:02:00"
        )

    def test_dissolve_written_as_two_lines(self, serializer, three_clip_edl):
        lines = serializer.export(three_clip_edl, "cmx3600").text.splitlines()
        events = [line for line in lines if line.startswith("002")]
        assert events == [
            "002  A        V     C        00:00:03:00 00:00:03:00 00:00:02:00 00:00:02:00",
            "002  B        V     D    015 00:00:02:00 00:00:04:00 00:00:02:00 00:00:04:00",
        ]
        assert "* FROM CLIP NAME: a.mp4" in lines
        assert "* TO CLIP NAME: b.mp4" in lines

    def test_speed_line(self, serializer, speed_edl):
        text = serializer.export(speed_edl, "cmx").text
        assert any(line.startswith("M2   A") and "060.0" in line for line in text.splitlines())

    def test_long_ids_get_distinct_reels(self, serializer, parser, interview_edl):
        result = serializer.export(interview_edl, "cmx")

        parsed = parser.parse(result.text, "cmx")
        assert [c.reel for c in parsed.clips] == ["INTERV01", "INTERV02"]
        assert [c.name for c in parsed.clips] == ["interview_1.mov", "interview_2.mov"]

    def test_event_numbers_wrap_after_999(self, serializer, parser, caplog):
        clips = [
            MatchedClip(id=f"clip_{i + 1:04d}", source_id="long", timeline_in_point=float(i),
                        timeline_out_point=float(i + 1), source_in_point=float(i), source_out_point=float(i + 1))
            for i in range(1001)
        ]
        edl = EditDecisionList(
            project_name="Long",
            frame_rate=30.0,
            total_duration=1001.0,
            clips=clips,
            sources=[SourceMedia(id="long", name="long.mov", duration=1001.0)],
        )

        with caplog.at_level("WARNING"):
            text = serializer.export(edl, "cmx").text

        events = [line[:5] for line in text.splitlines() if line[:3].isdigit()]
        assert len(events) == 1001
        assert all(len(line.split()[0]) == 3 for line in text.splitlines() if line[:3].isdigit())
        assert events[998] == "999  "
        assert events[999:] == ["001  ", "002  "]
        assert "event numbers wrap" in caplog.text
        assert parser.parse(text, "cmx").clips[-1].record_out == pytest.approx(1001.0)


class TestRoundTrip:
    """Exports parse back to the same clips within a frame."""

    @pytest.mark.parametrize("fmt", ["premiere", "fcpx", "cmx3600"])
    def test_clip_points(self, serializer, parser, three_clip_edl, fmt):
        text = serializer.export(three_clip_edl, fmt).text
        parsed = parser.parse(text, fmt, frame_rate=30.0)

        assert parsed.clip_count == len(three_clip_edl.clips)
        for original, clip in zip(three_clip_edl.clips, parsed.clips):
            assert clip.record_in == pytest.approx(original.timeline_in_point, abs=FRAME)
            assert clip.record_out == pytest.approx(original.timeline_out_point, abs=FRAME)
            assert clip.source_in == pytest.approx(original.source_in_point, abs=FRAME)
            assert clip.source_out == pytest.approx(original.source_out_point, abs=FRAME)

    @pytest.mark.parametrize("fmt", ["premiere", "fcpx", "cmx3600"])
    def test_generated_timeline(self, serializer, parser, four_beats, two_videos, smooth_config, fmt):
        edl = EditDecisionEngine().generate(four_beats, two_videos, smooth_config).edl
        parsed = parser.parse(serializer.export(edl, fmt).text, fmt)

        assert parsed.clip_count == len(edl.clips)
        assert parsed.clips[-1].record_out == pytest.approx(edl.total_duration, abs=FRAME)

    @pytest.mark.parametrize("fmt", ["premiere", "fcpx", "cmx3600"])
    def test_speed(self, serializer, parser, speed_edl, fmt):
        parsed = parser.parse(serializer.export(speed_edl, fmt).text, fmt)
        assert parsed.clips[0].speed == pytest.approx(2.0)

    def test_transitions_and_names(self, serializer, parser, three_clip_edl):
        cmx = parser.parse(serializer.export(three_clip_edl, "cmx").text, "cmx")
        assert [c.transition for c in cmx.clips] == ["cut", "dissolve", "cut"]
        assert [c.name for c in cmx.clips] == ["a.mp4", "b.mp4", "a.mp4"]
        assert cmx.title == "Three Clips"

        fcpx = parser.parse(serializer.export(three_clip_edl, "fcpx").text, "fcpx")
        assert fcpx.clips[1].transition == "Cross Dissolve"
        assert fcpx.frame_rate == pytest.approx(30.0)
        assert fcpx.duration == pytest.approx(5.0)

    def test_malformed_documents(self, parser):
        with pytest.raises(UnsupportedFormatError):
            parser.parse("<fcpxml", "fcpx")
        with pytest.raises(UnsupportedFormatError):
            parser.parse("<xmeml version='4'/>", "premiere")
        with pytest.raises(UnsupportedFormatError):
            parser.parse("<fcpxml/>", "premiere")


class TestExportToStorage:

    @pytest.mark.asyncio
    async def test_writes_under_exports(self, serializer, three_clip_edl, tmp_path):
        storage = FilesystemStorage(str(tmp_path))
        result = await serializer.export_to_storage(three_clip_edl, "fcpx", storage)

        assert result.ok
        assert result.stored_path == "exports/Three_Clips.fcpxml"
        assert await storage.exists(result.stored_path)
        assert await storage.read_text(result.stored_path) == result.text

    @pytest.mark.asyncio
    async def test_failed_export_writes_nothing(self, serializer, three_clip_edl, tmp_path):
        storage = FilesystemStorage(str(tmp_path))
        result = await serializer.export_to_storage(three_clip_edl, "avid", storage)
        assert not result.ok
        assert await storage.list_files("exports") == []
