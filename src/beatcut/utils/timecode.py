"""Frame and timecode conversions.

Timestamps are floored to whole frames so that an exported in or out
point never lands past the material it refers to. A small epsilon absorbs
float noise such as ``0.5 * 30 == 14.999999``.
"""

import math
import re
from fractions import Fraction

FRAME_EPSILON = 1e-6

_TIMECODE_RE = re.compile(r"^(\d{2}):(\d{2}):(\d{2})[:;](\d{2})$")


def frame_rate_fraction(fps: float) -> Fraction:
    """Exact rational frame rate (29.97 -> 30000/1001)."""
    nominal = round(fps)
    if abs(fps - nominal * 1000 / 1001) < 0.005 and abs(fps - nominal) > 0.005:
        return Fraction(nominal * 1000, 1001)
    return Fraction(fps).limit_denominator(1001)


def timebase(fps: float) -> int:
    """Integer frame count per timecode second."""
    return int(round(fps))


def is_ntsc(fps: float) -> bool:
    return frame_rate_fraction(fps).denominator == 1001


def seconds_to_frames(seconds: float, fps: float) -> int:
    """Whole frames at or before ``seconds``."""
    return int(math.floor(seconds * fps + FRAME_EPSILON))


def seconds_to_nearest_frame(seconds: float, fps: float) -> int:
    return int(math.floor(seconds * fps + 0.5))


def frames_to_seconds(frames: int, fps: float) -> float:
    return frames / fps


def snap_down(seconds: float, fps: float) -> float:
    """Floor a time to the frame grid."""
    return frames_to_seconds(seconds_to_frames(seconds, fps), fps)


def frames_to_timecode(frames: int, fps: float) -> str:
    """Non-drop-frame SMPTE timecode HH:MM:SS:FF."""
    base = timebase(fps)
    ff = frames % base
    total_seconds = frames // base
    ss = total_seconds % 60
    mm = (total_seconds // 60) % 60
    hh = total_seconds // 3600
    return f"{hh:02d}:{mm:02d}:{ss:02d}:{ff:02d}"


def seconds_to_timecode(seconds: float, fps: float) -> str:
    return frames_to_timecode(seconds_to_frames(seconds, fps), fps)


def timecode_to_frames(timecode: str, fps: float) -> int:
    match = _TIMECODE_RE.match(timecode.strip())
    if not match:
        raise ValueError(f"Invalid timecode: {timecode!r}")
    hh, mm, ss, ff = (int(part) for part in match.groups())
    base = timebase(fps)
    return ((hh * 60 + mm) * 60 + ss) * base + ff


def frames_to_rational(frames: int, fps: float) -> str:
    """FCPXML rational time string for a frame count ("1001/30000s", "2s")."""
    value = Fraction(frames) / frame_rate_fraction(fps)
    if value.denominator == 1:
        return f"{value.numerator}s"
    return f"{value.numerator}/{value.denominator}s"


def rational_to_seconds(value: str) -> float:
    """Parse an FCPXML rational time string."""
    text = value.strip()
    if not text.endswith("s"):
        raise ValueError(f"Invalid rational time: {value!r}")
    text = text[:-1]
    if "/" in text:
        num, den = text.split("/", 1)
        return float(Fraction(int(num), int(den)))
    return float(Fraction(text))
