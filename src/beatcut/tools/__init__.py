"""Edit decision tools: generation, validation, export and timeline edits."""

from .transition_selector import TransitionSelector, TransitionSpec, content_continuity
from .timeline_validator import TimelineValidator, timeline_validator
from .edit_decision_engine import EditDecisionEngine, edit_decision_engine
from .edl_serializer import EDLSerializer, ExportFormat, edl_serializer, resolve_format
from .edl_parser import EDLParser, ParsedClip, ParsedTimeline, edl_parser
from .timeline_edits import EditSession, reorder_clips, retransition, trim_clip

__all__ = [
    "TransitionSelector",
    "TransitionSpec",
    "content_continuity",
    "TimelineValidator",
    "timeline_validator",
    "EditDecisionEngine",
    "edit_decision_engine",
    "EDLSerializer",
    "ExportFormat",
    "edl_serializer",
    "resolve_format",
    "EDLParser",
    "ParsedClip",
    "ParsedTimeline",
    "edl_parser",
    "EditSession",
    "reorder_clips",
    "retransition",
    "trim_clip",
]
