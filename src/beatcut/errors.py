"""Error types raised inside the edit decision core.

Components raise these internally. The public entry points
(``EditDecisionEngine.generate``, ``TimelineValidator.validate`` and
``EDLSerializer.export``) convert them into typed result objects so that
callers decide between retry and abort.
"""

from typing import Optional


class EditEngineError(Exception):
    """Base exception for the edit decision core."""

    kind: str = "edit_engine_error"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class AnalysisError(EditEngineError):
    """Missing, invalid or incomplete analysis input."""

    kind = "analysis_error"


class InsufficientMediaError(EditEngineError):
    """Available video material is shorter than the music.

    Recoverable: reported as a warning next to a best-effort EDL.
    """

    kind = "insufficient_media"

    def __init__(self, message: str, available: float = 0.0, required: float = 0.0):
        super().__init__(message, detail=f"available={available:.3f}s required={required:.3f}s")
        self.available = available
        self.required = required


class TimelineInvariantError(EditEngineError):
    """An EditDecisionList violates a structural invariant.

    ``invariant`` names the violated check (``overlap``, ``source_range``...).
    """

    kind = "timeline_invariant"

    def __init__(self, invariant: str, detail: str):
        super().__init__(f"Timeline invariant '{invariant}' violated: {detail}", detail=detail)
        self.invariant = invariant


class UnsupportedFormatError(EditEngineError):
    """Requested export format is not recognized."""

    kind = "unsupported_format"


class GenerationCancelledError(EditEngineError):
    """Generation or analysis was cancelled or ran past its deadline."""

    kind = "cancelled"


ERROR_TYPES = {
    cls.kind: cls
    for cls in (
        AnalysisError,
        InsufficientMediaError,
        TimelineInvariantError,
        UnsupportedFormatError,
        GenerationCancelledError,
    )
}
