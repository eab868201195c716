"""
Typed results returned at the engine boundary.

``generate``, ``validate`` and ``export`` never raise for expected failures.
They return one of these results carrying an ``EngineIssue`` so the caller
decides between retry and abort. Warnings travel next to a usable value.
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from ..errors import ERROR_TYPES, EditEngineError, TimelineInvariantError
from .edl import EditDecisionList


class EngineIssue(BaseModel):
    """Serializable description of an error or warning."""
    error: str = Field(..., description="Error kind (see errors.ERROR_TYPES)")
    message: str = Field(..., description="Human readable message")
    detail: Optional[str] = Field(None, description="Additional context")
    invariant: Optional[str] = Field(None, description="Violated invariant for timeline errors")

    @classmethod
    def from_exception(cls, exc: EditEngineError) -> "EngineIssue":
        return cls(
            error=exc.kind,
            message=exc.message,
            detail=exc.detail,
            invariant=getattr(exc, "invariant", None),
        )

    def to_exception(self) -> EditEngineError:
        """Rebuild the exception this issue was created from."""
        if self.invariant is not None:
            return TimelineInvariantError(self.invariant, self.detail or self.message)
        error_cls = ERROR_TYPES.get(self.error, EditEngineError)
        if error_cls.__init__ is EditEngineError.__init__:
            return error_cls(self.message, self.detail)
        exc = error_cls(self.message)
        exc.detail = self.detail
        return exc


class _Result(BaseModel):
    error: Optional[EngineIssue] = Field(None, description="Failure, if any")

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self):
        if self.error is not None:
            raise self.error.to_exception()
        return self


class GenerationResult(_Result):
    """Outcome of EditDecisionEngine.generate()."""
    edl: Optional[EditDecisionList] = Field(None, description="Generated timeline")
    warnings: List[EngineIssue] = Field(default_factory=list, description="Recoverable problems")

    def has_warning(self, kind: str) -> bool:
        return any(w.error == kind for w in self.warnings)


class ValidationResult(_Result):
    """Outcome of TimelineValidator.validate()."""

    @property
    def kind(self) -> Optional[str]:
        """Name of the violated invariant."""
        return self.error.invariant if self.error else None

    @property
    def detail(self) -> Optional[str]:
        return self.error.detail if self.error else None


class ExportResult(_Result):
    """Outcome of EDLSerializer.export()."""
    format: Optional[str] = Field(None, description="Resolved export format")
    text: Optional[str] = Field(None, description="Exported document")
    extension: Optional[str] = Field(None, description="File extension for the format")
    stored_path: Optional[str] = Field(None, description="Storage path when written through a storage backend")
