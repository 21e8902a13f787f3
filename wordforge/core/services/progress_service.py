"""Progress callback service for status updates during long operations."""

import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ProgressService:
    """Fan-out of ``(processed, total)`` progress updates.

    Callbacks are optional; an update with none registered is only logged.
    A callback that raises is logged and does not stop the operation.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self._callbacks: List[ProgressCallback] = []
        self._last: Optional[tuple] = None
        if callback is not None:
            self.add_callback(callback)

    def add_callback(self, callback: ProgressCallback) -> None:
        self._callbacks.append(callback)

    def set_callback(self, callback: Optional[ProgressCallback]) -> None:
        """Replace all callbacks with *callback* (or none)."""
        self._callbacks = [callback] if callback is not None else []

    @property
    def last_update(self) -> Optional[tuple]:
        return self._last

    def update(self, processed: int, total: int) -> None:
        """Send progress update to every callback."""
        self._last = (processed, total)
        logger.debug("Progress %d/%d", processed, total)
        for callback in self._callbacks:
            try:
                callback(processed, total)
            except Exception as exc:
                logger.warning("Progress callback failed: %s", exc)

    def create_logging_callback(self, label: str) -> ProgressCallback:
        """Callback that logs ``label: processed/total`` at INFO."""
        def progress_callback(processed: int, total: int) -> None:
            logger.info("%s: %d/%d", label, processed, total)
        return progress_callback
