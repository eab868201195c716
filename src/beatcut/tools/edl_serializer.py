"""Export edit decision lists to NLE interchange formats.

Supported formats:

* ``premiere``: Final Cut Pro 7 / Premiere Pro XML (xmeml)
* ``fcpx``: Final Cut Pro X XML (fcpxml)
* ``cmx3600``: CMX 3600 edit decision list text

Timestamps are floored to whole frames of the EDL frame rate. Sequence
durations are rounded to the nearest frame.
"""

import logging
import re
import xml.etree.ElementTree as ET
from collections import Counter
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union
from xml.dom import minidom

from ..config import settings
from ..errors import EditEngineError, UnsupportedFormatError
from ..models.edl import EditDecisionList, MarkerType, SourceMedia, TransitionType, TIME_EPSILON
from ..models.results import EngineIssue, ExportResult
from ..storage.interface import StorageInterface
from ..utils.timecode import (
    frame_rate_fraction,
    frames_to_rational,
    frames_to_timecode,
    is_ntsc,
    seconds_to_frames,
    seconds_to_nearest_frame,
    seconds_to_timecode,
    timebase,
)
from .timeline_validator import TimelineValidator


logger = logging.getLogger(__name__)


class ExportFormat(str, Enum):
    """Export formats understood by the serializer."""
    PREMIERE = "premiere"
    FCPX = "fcpx"
    CMX3600 = "cmx3600"


FORMAT_ALIASES: Dict[str, ExportFormat] = {
    "premiere": ExportFormat.PREMIERE,
    "xml": ExportFormat.PREMIERE,
    "xmeml": ExportFormat.PREMIERE,
    "fcpx": ExportFormat.FCPX,
    "fcpxml": ExportFormat.FCPX,
    "cmx3600": ExportFormat.CMX3600,
    "cmx": ExportFormat.CMX3600,
    "edl": ExportFormat.CMX3600,
}

FILE_EXTENSIONS: Dict[ExportFormat, str] = {
    ExportFormat.PREMIERE: ".xml",
    ExportFormat.FCPX: ".fcpxml",
    ExportFormat.CMX3600: ".edl",
}

# Effect names NLEs recognise for each transition type.
TRANSITION_EFFECTS: Dict[TransitionType, Dict[str, str]] = {
    TransitionType.DISSOLVE: {"name": "Cross Dissolve", "category": "Dissolve"},
    TransitionType.WIPE: {"name": "Wipe", "category": "Wipe"},
    TransitionType.DIP_TO_BLACK: {"name": "Dip to Black", "category": "Dissolve"},
}

CMX_TRANSITION_CODES: Dict[TransitionType, str] = {
    TransitionType.CUT: "C",
    TransitionType.DISSOLVE: "D",
    TransitionType.DIP_TO_BLACK: "D",
    TransitionType.WIPE: "W001",
}

_REEL_CHARS = re.compile(r"[^A-Z0-9_]")
MAX_REEL_LENGTH = 8
MAX_CMX_EVENTS = 999


def resolve_format(fmt: Union[str, ExportFormat]) -> ExportFormat:
    """Map a format name or alias (case-insensitive) to an ExportFormat."""
    if isinstance(fmt, ExportFormat):
        return fmt
    key = str(fmt).strip().lower()
    if key not in FORMAT_ALIASES:
        raise UnsupportedFormatError(
            f"Unsupported export format: {fmt!r}",
            detail=f"expected one of {', '.join(f.value for f in ExportFormat)}",
        )
    return FORMAT_ALIASES[key]


def _pretty_xml(root: ET.Element) -> str:
    return minidom.parseString(ET.tostring(root, encoding="unicode")).toprettyxml(indent="  ")


def _file_url(source: SourceMedia) -> str:
    path = Path(source.file_path or source.name)
    return f"file://localhost{path.as_posix()}" if path.is_absolute() else path.as_posix()


def reel_name(source_id: str) -> str:
    """Eight character CMX reel name for a source."""
    reel = _REEL_CHARS.sub("", source_id.upper())[:MAX_REEL_LENGTH]
    return reel or "AX"


def reel_names(source_ids: Sequence[str]) -> Dict[str, str]:
    """Distinct reel names for a set of sources.

    Sources whose eight character names collide share a six character stem
    followed by a two digit index (INTERVIE, INTERVIE -> INTERV01, INTERV02).
    """
    bases = {source_id: reel_name(source_id) for source_id in source_ids}
    counts = Counter(bases.values())
    taken = {base for base, count in counts.items() if count == 1}
    reels: Dict[str, str] = {}
    next_index: Dict[str, int] = {}
    for source_id, base in bases.items():
        if counts[base] == 1:
            reels[source_id] = base
            continue
        while True:
            next_index[base] = next_index.get(base, 0) + 1
            suffix = f"{next_index[base]:02d}"
            reel = base[: MAX_REEL_LENGTH - len(suffix)] + suffix
            if reel not in taken:
                break
        taken.add(reel)
        reels[source_id] = reel
    return reels


def fcpx_format_name(height: int, fps: float) -> str:
    """FCPX video format name, e.g. FFVideoFormat1080p30 or FFVideoFormat1080p2997."""
    rate = frame_rate_fraction(fps)
    if rate.denominator == 1:
        return f"FFVideoFormat{height}p{rate.numerator}"
    return f"FFVideoFormat{height}p{round(float(rate) * 100)}"


class EDLSerializer:
    """Serializes validated EDLs to text."""

    def __init__(self, validator: Optional[TimelineValidator] = None):
        self.validator = validator or TimelineValidator()

    def export(self, edl: EditDecisionList, fmt: Union[str, ExportFormat]) -> ExportResult:
        """Export ``edl`` in ``fmt``.

        Returns:
            ExportResult with the document text, or an UnsupportedFormatError
            / TimelineInvariantError issue and no text
        """
        try:
            export_format = resolve_format(fmt)
            self.validator.check(edl)
            text = self.render(edl, export_format)
        except EditEngineError as e:
            logger.error(f"Export failed: {e.message}")
            return ExportResult(error=EngineIssue.from_exception(e))

        logger.info(f"Exported '{edl.project_name}' as {export_format.value} ({len(edl.clips)} clips)")
        return ExportResult(
            format=export_format.value,
            text=text,
            extension=FILE_EXTENSIONS[export_format],
        )

    def render(self, edl: EditDecisionList, export_format: ExportFormat) -> str:
        """Render without validation."""
        if export_format == ExportFormat.PREMIERE:
            return self.to_premiere_xml(edl)
        if export_format == ExportFormat.FCPX:
            return self.to_fcpxml(edl)
        return self.to_cmx3600(edl)

    async def export_to_storage(
        self,
        edl: EditDecisionList,
        fmt: Union[str, ExportFormat],
        storage: StorageInterface,
        name: Optional[str] = None,
    ) -> ExportResult:
        """Export and upload the document under ``exports/``.

        The storage path is reported in ``ExportResult.stored_path``.
        """
        result = self.export(edl, fmt)
        if not result.ok:
            return result
        filename = f"{name or edl.project_name}{result.extension}"
        stored = await storage.upload(f"exports/{filename}", BytesIO(result.text.encode("utf-8")))
        logger.info(f"Saved {result.format} export to {stored}")
        return result.model_copy(update={"stored_path": stored})

    # Premiere / FCP7 xmeml

    def to_premiere_xml(self, edl: EditDecisionList) -> str:
        fps = edl.frame_rate

        def frames(seconds: float) -> int:
            return seconds_to_frames(seconds, fps)

        root = ET.Element("xmeml", version=str(settings.premiere_xmeml_version))
        sequence = ET.SubElement(root, "sequence", id="sequence-1")
        ET.SubElement(sequence, "name").text = edl.project_name
        ET.SubElement(sequence, "duration").text = str(seconds_to_nearest_frame(edl.total_duration, fps))
        self._xmeml_rate(sequence, fps)

        timecode = ET.SubElement(sequence, "timecode")
        self._xmeml_rate(timecode, fps)
        ET.SubElement(timecode, "string").text = frames_to_timecode(0, fps)
        ET.SubElement(timecode, "frame").text = "0"
        ET.SubElement(timecode, "displayformat").text = "NDF"

        media = ET.SubElement(sequence, "media")
        video = ET.SubElement(media, "video")
        v_format = ET.SubElement(video, "format")
        sample_char = ET.SubElement(v_format, "samplecharacteristics")
        self._xmeml_rate(sample_char, fps)
        ET.SubElement(sample_char, "width").text = str(edl.width)
        ET.SubElement(sample_char, "height").text = str(edl.height)
        ET.SubElement(sample_char, "pixelaspectratio").text = "square"

        track = ET.SubElement(video, "track")
        defined_files = set()
        for index, clip in enumerate(edl.clips):
            if index > 0:
                transition = edl.transition_between(edl.clips[index - 1].id, clip.id)
                if transition is not None and transition.type != TransitionType.CUT:
                    self._xmeml_transition(track, transition, fps)

            source = edl.source_by_id(clip.source_id)
            item = ET.SubElement(track, "clipitem", id=clip.id)
            ET.SubElement(item, "name").text = source.name
            ET.SubElement(item, "enabled").text = "TRUE" if clip.enabled else "FALSE"
            ET.SubElement(item, "duration").text = str(frames(source.duration))
            self._xmeml_rate(item, fps)
            ET.SubElement(item, "start").text = str(frames(clip.timeline_in_point))
            ET.SubElement(item, "end").text = str(frames(clip.timeline_out_point))
            ET.SubElement(item, "in").text = str(frames(clip.source_in_point))
            ET.SubElement(item, "out").text = str(frames(clip.source_out_point))
            self._xmeml_file(item, source, fps, defined_files)
            if clip.speed != 1.0:
                self._xmeml_speed(item, clip.speed)
        ET.SubElement(track, "enabled").text = "TRUE"
        ET.SubElement(track, "locked").text = "FALSE"

        if edl.audio_source is not None:
            audio = ET.SubElement(media, "audio")
            a_track = ET.SubElement(audio, "track")
            end = seconds_to_nearest_frame(edl.total_duration, fps)
            item = ET.SubElement(a_track, "clipitem", id="audio-1")
            ET.SubElement(item, "name").text = edl.audio_source.name
            ET.SubElement(item, "duration").text = str(frames(edl.audio_source.duration))
            self._xmeml_rate(item, fps)
            ET.SubElement(item, "start").text = "0"
            ET.SubElement(item, "end").text = str(end)
            ET.SubElement(item, "in").text = "0"
            ET.SubElement(item, "out").text = str(end)
            self._xmeml_file(item, edl.audio_source, fps, defined_files, file_id="file-audio")

        for marker in edl.cut_points:
            element = ET.SubElement(sequence, "marker")
            ET.SubElement(element, "name").text = marker.label or marker.type.value
            ET.SubElement(element, "comment").text = marker.type.value
            ET.SubElement(element, "in").text = str(frames(marker.position))
            ET.SubElement(element, "out").text = "-1"

        return _pretty_xml(root)

    @staticmethod
    def _xmeml_rate(parent: ET.Element, fps: float) -> None:
        rate = ET.SubElement(parent, "rate")
        ET.SubElement(rate, "timebase").text = str(timebase(fps))
        ET.SubElement(rate, "ntsc").text = "TRUE" if is_ntsc(fps) else "FALSE"

    def _xmeml_file(
        self,
        item: ET.Element,
        source: SourceMedia,
        fps: float,
        defined: set,
        file_id: Optional[str] = None,
    ) -> None:
        file_id = file_id or f"file-{source.id}"
        if file_id in defined:
            ET.SubElement(item, "file", id=file_id)
            return
        defined.add(file_id)
        file_elem = ET.SubElement(item, "file", id=file_id)
        ET.SubElement(file_elem, "name").text = source.name
        ET.SubElement(file_elem, "pathurl").text = _file_url(source)
        self._xmeml_rate(file_elem, fps)
        ET.SubElement(file_elem, "duration").text = str(seconds_to_frames(source.duration, fps))

    def _xmeml_transition(self, track: ET.Element, transition, fps: float) -> None:
        length = seconds_to_nearest_frame(transition.duration, fps)
        start = seconds_to_frames(transition.center_point, fps) - length // 2
        effect_info = TRANSITION_EFFECTS[transition.type]

        item = ET.SubElement(track, "transitionitem")
        self._xmeml_rate(item, fps)
        ET.SubElement(item, "start").text = str(start)
        ET.SubElement(item, "end").text = str(start + length)
        ET.SubElement(item, "alignment").text = "center"
        effect = ET.SubElement(item, "effect")
        ET.SubElement(effect, "name").text = effect_info["name"]
        ET.SubElement(effect, "effectid").text = effect_info["name"]
        ET.SubElement(effect, "effectcategory").text = effect_info["category"]
        ET.SubElement(effect, "effecttype").text = "transition"
        ET.SubElement(effect, "mediatype").text = "video"

    @staticmethod
    def _xmeml_speed(item: ET.Element, speed: float) -> None:
        filter_elem = ET.SubElement(item, "filter")
        effect = ET.SubElement(filter_elem, "effect")
        ET.SubElement(effect, "name").text = "Time Remap"
        ET.SubElement(effect, "effectid").text = "timeremap"
        ET.SubElement(effect, "effecttype").text = "motion"
        ET.SubElement(effect, "mediatype").text = "video"
        parameter = ET.SubElement(effect, "parameter")
        ET.SubElement(parameter, "parameterid").text = "speed"
        ET.SubElement(parameter, "name").text = "speed"
        ET.SubElement(parameter, "value").text = f"{speed * 100:g}"

    # Final Cut Pro X

    def to_fcpxml(self, edl: EditDecisionList) -> str:
        fps = edl.frame_rate

        def frames(seconds: float) -> int:
            return seconds_to_frames(seconds, fps)

        def rational(count: int) -> str:
            return frames_to_rational(count, fps)

        root = ET.Element("fcpxml", version=settings.fcpxml_version)
        resources = ET.SubElement(root, "resources")
        format_id = "r1"
        ET.SubElement(
            resources, "format",
            id=format_id,
            name=fcpx_format_name(edl.height, fps),
            frameDuration=rational(1),
            width=str(edl.width),
            height=str(edl.height),
        )

        asset_ids: Dict[str, str] = {}
        for source in edl.sources:
            asset_ids[source.id] = f"r{len(asset_ids) + 2}"
            ET.SubElement(
                resources, "asset",
                id=asset_ids[source.id],
                name=source.name,
                src=_file_url(source),
                start="0s",
                duration=rational(frames(source.duration)),
                hasVideo="1",
                format=format_id,
            )

        library = ET.SubElement(root, "library")
        event = ET.SubElement(library, "event", name=edl.project_name)
        project = ET.SubElement(event, "project", name=edl.project_name)
        sequence = ET.SubElement(
            project, "sequence",
            format=format_id,
            duration=rational(seconds_to_nearest_frame(edl.total_duration, fps)),
            tcStart="0s",
            tcFormat="NDF",
        )
        spine = ET.SubElement(sequence, "spine")

        cursor = 0
        for index, clip in enumerate(edl.clips):
            start, end = frames(clip.timeline_in_point), frames(clip.timeline_out_point)
            if start > cursor:
                ET.SubElement(
                    spine, "gap",
                    name="Gap",
                    offset=rational(cursor),
                    duration=rational(start - cursor),
                    start="0s",
                )
            if index > 0:
                transition = edl.transition_between(edl.clips[index - 1].id, clip.id)
                if transition is not None and transition.type != TransitionType.CUT:
                    length = seconds_to_nearest_frame(transition.duration, fps)
                    ET.SubElement(
                        spine, "transition",
                        name=TRANSITION_EFFECTS[transition.type]["name"],
                        offset=rational(start - length // 2),
                        duration=rational(length),
                    )

            source = edl.source_by_id(clip.source_id)
            asset_clip = ET.SubElement(
                spine, "asset-clip",
                ref=asset_ids[clip.source_id],
                name=source.name,
                offset=rational(start),
                duration=rational(end - start),
                start=rational(frames(clip.source_in_point)),
                tcFormat="NDF",
            )
            if not clip.enabled:
                asset_clip.set("enabled", "0")
            if clip.speed != 1.0:
                self._fcpx_time_map(asset_clip, end - start, clip.speed, fps)
            for marker in self._clip_markers(edl, index):
                position = min(marker.position, clip.timeline_out_point - edl.frame_duration)
                local = clip.source_in_point + (position - clip.timeline_in_point) * clip.speed
                ET.SubElement(
                    asset_clip, "marker",
                    start=rational(frames(max(local, clip.source_in_point))),
                    duration=rational(1),
                    value=marker.label or marker.type.value,
                )
            cursor = end

        return _pretty_xml(root)

    @staticmethod
    def _clip_markers(edl: EditDecisionList, index: int) -> List:
        """Markers inside clip ``index``; the final out marker belongs to the last clip."""
        clip = edl.clips[index]
        is_last = index == len(edl.clips) - 1
        selected = []
        for marker in edl.cut_points:
            inside = clip.timeline_in_point - TIME_EPSILON <= marker.position < clip.timeline_out_point - TIME_EPSILON
            at_end = is_last and marker.type == MarkerType.OUT
            if inside or at_end:
                selected.append(marker)
        return selected

    @staticmethod
    def _fcpx_time_map(asset_clip: ET.Element, length: int, speed: float, fps: float) -> None:
        time_map = ET.SubElement(asset_clip, "timeMap")
        ET.SubElement(time_map, "timept", time="0s", value="0s", interp="linear")
        ET.SubElement(
            time_map, "timept",
            time=frames_to_rational(length, fps),
            value=frames_to_rational(int(round(length * speed)), fps),
            interp="linear",
        )

    # CMX 3600

    def to_cmx3600(self, edl: EditDecisionList) -> str:
        fps = edl.frame_rate

        def tc(seconds: float) -> str:
            return seconds_to_timecode(seconds, fps)

        reels = reel_names([source.id for source in edl.sources])
        if len(edl.clips) > MAX_CMX_EVENTS:
            logger.warning(
                f"{len(edl.clips)} events exceed the CMX 3600 limit of {MAX_CMX_EVENTS}, event numbers wrap"
            )

        lines = [
            f"TITLE: {edl.project_name}",
            "FCM: NON-DROP FRAME",
            "",
        ]

        for number, clip in enumerate(edl.clips, start=1):
            source = edl.source_by_id(clip.source_id)
            reel = reels[source.id]
            src_in, src_out = tc(clip.source_in_point), tc(clip.source_out_point)
            rec_in, rec_out = tc(clip.timeline_in_point), tc(clip.timeline_out_point)

            transition = None
            if number > 1:
                transition = edl.transition_between(edl.clips[number - 2].id, clip.id)
            if transition is not None and transition.type != TransitionType.CUT:
                # Dissolves and wipes start from a zero length event on the outgoing reel.
                previous = edl.clips[number - 2]
                prev_out = tc(previous.source_out_point)
                lines.append(self._cmx_event(number, reels[previous.source_id], "C", None,
                                             prev_out, prev_out, rec_in, rec_in))
                length = seconds_to_nearest_frame(transition.duration, fps)
                lines.append(self._cmx_event(number, reel, CMX_TRANSITION_CODES[transition.type], length,
                                             src_in, src_out, rec_in, rec_out))
                lines.append(f"* FROM CLIP NAME: {edl.source_by_id(previous.source_id).name}")
                lines.append(f"* TO CLIP NAME: {source.name}")
            else:
                lines.append(self._cmx_event(number, reel, "C", None, src_in, src_out, rec_in, rec_out))
                lines.append(f"* FROM CLIP NAME: {source.name}")

            if clip.speed != 1.0:
                lines.append(f"M2   {reel:<8}       {clip.speed * fps:05.1f}                {src_in}")
            lines.append("")

        return "\n".join(lines)

    @staticmethod
    def _cmx_event(
        number: int,
        reel: str,
        code: str,
        length: Optional[int],
        src_in: str,
        src_out: str,
        rec_in: str,
        rec_out: str,
    ) -> str:
        duration = f"{length:03d}" if length is not None else ""
        event = (number - 1) % MAX_CMX_EVENTS + 1
        return f"{event:03d}  {reel:<8} V     {code:<4} {duration:>3} {src_in} {src_out} {rec_in} {rec_out}"


# Shared instance
edl_serializer = EDLSerializer()
