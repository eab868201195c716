"""Cooperative cancellation for long running work."""

import time
from typing import Optional

from ..errors import GenerationCancelledError


class CancellationToken:
    """Flag shared between a caller and a running job.

    The job polls ``raise_if_cancelled`` at safe points. An optional
    ``timeout`` (seconds) turns the token into a deadline.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._cancelled = False
        self._reason: Optional[str] = None
        self.deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._cancelled = True
        self._reason = reason

    @property
    def cancelled(self) -> bool:
        if not self._cancelled and self.deadline is not None and time.monotonic() >= self.deadline:
            self.cancel("deadline exceeded")
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise GenerationCancelledError("Operation cancelled", detail=self._reason)
