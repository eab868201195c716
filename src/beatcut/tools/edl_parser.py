"""Read exported timelines back into clip in/out points.

Used to verify exports and to import timelines edited in an NLE. Only the
fields the serializer writes are understood.
"""

import logging
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field

from ..config import settings
from ..errors import UnsupportedFormatError
from ..utils.timecode import rational_to_seconds, timecode_to_frames
from .edl_serializer import ExportFormat, resolve_format


logger = logging.getLogger(__name__)

_TC = r"\d{2}:\d{2}:\d{2}[:;]\d{2}"
_CMX_EVENT = re.compile(
    rf"^(?P<event>\d{{3,}})\s+(?P<reel>\S+)\s+(?P<track>\S+)\s+(?P<code>C|D|W\d{{3}})\s+"
    rf"(?:(?P<length>\d{{1,3}})\s+)?"
    rf"(?P<src_in>{_TC})\s+(?P<src_out>{_TC})\s+(?P<rec_in>{_TC})\s+(?P<rec_out>{_TC})\s*$"
)
_CMX_SPEED = re.compile(rf"^M2\s+(?P<reel>\S+)\s+(?P<fps>-?\d+(?:\.\d+)?)\s+(?P<src_in>{_TC})\s*$")


class ParsedClip(BaseModel):
    """A clip read from an exported timeline (seconds)."""
    name: Optional[str] = Field(None, description="Clip or source name")
    reel: Optional[str] = Field(None, description="Reel or asset reference")
    record_in: float = Field(..., description="Timeline in point")
    record_out: float = Field(..., description="Timeline out point")
    source_in: float = Field(..., description="Source in point")
    source_out: float = Field(..., description="Source out point")
    speed: float = Field(1.0, description="Playback speed")
    transition: str = Field("cut", description="Incoming transition code or effect")


class ParsedTimeline(BaseModel):
    """Timeline read from one of the export formats."""
    format: str = Field(..., description="Format the text was parsed as")
    title: Optional[str] = Field(None, description="Sequence or EDL title")
    frame_rate: float = Field(..., gt=0, description="Frame rate used to convert frames")
    duration: Optional[float] = Field(None, description="Sequence duration when the format carries one")
    clips: List[ParsedClip] = Field(default_factory=list, description="Clips in timeline order")

    @property
    def clip_count(self) -> int:
        return len(self.clips)


class EDLParser:
    """Parses Premiere XML, FCPXML and CMX 3600 text."""

    def parse(
        self,
        text: str,
        fmt: Union[str, ExportFormat],
        frame_rate: Optional[float] = None,
    ) -> ParsedTimeline:
        """Parse ``text`` exported in ``fmt``.

        Args:
            text: Document text
            fmt: Format name or alias
            frame_rate: Override for the frame rate; CMX 3600 carries none and
                falls back to ``settings.default_frame_rate``

        Raises:
            UnsupportedFormatError: Unknown format or malformed document
        """
        export_format = resolve_format(fmt)
        try:
            if export_format == ExportFormat.PREMIERE:
                timeline = self._parse_premiere(text, frame_rate)
            elif export_format == ExportFormat.FCPX:
                timeline = self._parse_fcpx(text, frame_rate)
            else:
                timeline = self._parse_cmx3600(text, frame_rate)
        except (ET.ParseError, ValueError) as e:
            raise UnsupportedFormatError(f"Could not parse {export_format.value} document", detail=str(e))

        logger.debug(f"Parsed {timeline.clip_count} clips from {export_format.value} document")
        return timeline

    def _parse_premiere(self, text: str, frame_rate: Optional[float]) -> ParsedTimeline:
        root = ET.fromstring(text)
        if root.tag != "xmeml":
            raise ValueError(f"expected <xmeml> root, found <{root.tag}>")
        sequence = root.find("sequence")
        if sequence is None:
            raise ValueError("document has no <sequence>")

        fps = frame_rate or self._xmeml_fps(sequence.find("rate"))
        clips = []
        for track in sequence.findall("media/video/track"):
            pending_transition = "cut"
            for element in track:
                if element.tag == "transitionitem":
                    pending_transition = element.findtext("effect/name", "transition")
                elif element.tag == "clipitem":
                    speed = self._xmeml_speed(element)
                    clips.append(ParsedClip(
                        name=element.findtext("name"),
                        reel=element.find("file").get("id") if element.find("file") is not None else None,
                        record_in=int(element.findtext("start")) / fps,
                        record_out=int(element.findtext("end")) / fps,
                        source_in=int(element.findtext("in")) / fps,
                        source_out=int(element.findtext("out")) / fps,
                        speed=speed,
                        transition=pending_transition,
                    ))
                    pending_transition = "cut"

        duration_text = sequence.findtext("duration")
        return ParsedTimeline(
            format=ExportFormat.PREMIERE.value,
            title=sequence.findtext("name"),
            frame_rate=fps,
            duration=int(duration_text) / fps if duration_text else None,
            clips=sorted(clips, key=lambda c: c.record_in),
        )

    @staticmethod
    def _xmeml_fps(rate: Optional[ET.Element]) -> float:
        if rate is None:
            return settings.default_frame_rate
        base = int(rate.findtext("timebase", str(int(settings.default_frame_rate))))
        if rate.findtext("ntsc", "FALSE").upper() == "TRUE":
            return base * 1000 / 1001
        return float(base)

    @staticmethod
    def _xmeml_speed(clipitem: ET.Element) -> float:
        for effect in clipitem.findall("filter/effect"):
            if effect.findtext("effectid") == "timeremap":
                for parameter in effect.findall("parameter"):
                    if parameter.findtext("parameterid") == "speed":
                        return float(parameter.findtext("value", "100")) / 100
        return 1.0

    def _parse_fcpx(self, text: str, frame_rate: Optional[float]) -> ParsedTimeline:
        root = ET.fromstring(text)
        if root.tag != "fcpxml":
            raise ValueError(f"expected <fcpxml> root, found <{root.tag}>")

        formats = {f.get("id"): f for f in root.findall("resources/format")}
        sequence = root.find("library/event/project/sequence")
        if sequence is None:
            raise ValueError("document has no project sequence")

        fps = frame_rate
        if fps is None:
            format_elem = formats.get(sequence.get("format"))
            if format_elem is None or not format_elem.get("frameDuration"):
                fps = settings.default_frame_rate
            else:
                fps = 1.0 / rational_to_seconds(format_elem.get("frameDuration"))

        clips = []
        pending_transition = "cut"
        for element in sequence.findall("spine/*"):
            if element.tag == "transition":
                pending_transition = element.get("name", "transition")
            elif element.tag == "asset-clip":
                record_in = rational_to_seconds(element.get("offset", "0s"))
                duration = rational_to_seconds(element.get("duration", "0s"))
                source_in = rational_to_seconds(element.get("start", "0s"))
                speed = self._fcpx_speed(element)
                clips.append(ParsedClip(
                    name=element.get("name"),
                    reel=element.get("ref"),
                    record_in=record_in,
                    record_out=record_in + duration,
                    source_in=source_in,
                    source_out=source_in + duration * speed,
                    speed=speed,
                    transition=pending_transition,
                ))
                pending_transition = "cut"

        project = root.find("library/event/project")
        return ParsedTimeline(
            format=ExportFormat.FCPX.value,
            title=project.get("name") if project is not None else None,
            frame_rate=fps,
            duration=rational_to_seconds(sequence.get("duration")) if sequence.get("duration") else None,
            clips=clips,
        )

    @staticmethod
    def _fcpx_speed(asset_clip: ET.Element) -> float:
        points = asset_clip.findall("timeMap/timept")
        if len(points) < 2:
            return 1.0
        time = rational_to_seconds(points[-1].get("time"))
        value = rational_to_seconds(points[-1].get("value"))
        return value / time if time else 1.0

    def _parse_cmx3600(self, text: str, frame_rate: Optional[float]) -> ParsedTimeline:
        fps = frame_rate or settings.default_frame_rate
        title = None
        clips: List[ParsedClip] = []
        names: Dict[int, Dict[str, str]] = {}

        for raw in text.splitlines():
            line = raw.strip()
            if not line:
                continue
            if line.upper().startswith("TITLE:"):
                title = line.split(":", 1)[1].strip()
                continue
            if line.startswith("*"):
                comment = line.lstrip("* ").upper()
                for key in ("FROM CLIP NAME:", "TO CLIP NAME:"):
                    if comment.startswith(key) and clips:
                        value = line.split(":", 1)[1].strip()
                        names.setdefault(len(clips) - 1, {})[key.split()[0].lower()] = value
                continue

            speed_match = _CMX_SPEED.match(line)
            if speed_match and clips:
                clips[-1] = clips[-1].model_copy(update={"speed": float(speed_match.group("fps")) / fps})
                continue

            match = _CMX_EVENT.match(line)
            if not match:
                continue
            rec_in = timecode_to_frames(match.group("rec_in"), fps)
            rec_out = timecode_to_frames(match.group("rec_out"), fps)
            if rec_out <= rec_in:
                # Outgoing half of a dissolve or wipe.
                continue
            code = match.group("code")
            clips.append(ParsedClip(
                reel=match.group("reel"),
                record_in=rec_in / fps,
                record_out=rec_out / fps,
                source_in=timecode_to_frames(match.group("src_in"), fps) / fps,
                source_out=timecode_to_frames(match.group("src_out"), fps) / fps,
                transition={"C": "cut", "D": "dissolve"}.get(code, "wipe"),
            ))

        for index, event_names in names.items():
            name = event_names.get("to") or event_names.get("from")
            if name:
                clips[index] = clips[index].model_copy(update={"name": name})

        return ParsedTimeline(
            format=ExportFormat.CMX3600.value,
            title=title,
            frame_rate=fps,
            duration=clips[-1].record_out if clips else None,
            clips=clips,
        )


# Shared instance
edl_parser = EDLParser()
