"""Cooperative cancellation token for in-flight requests."""
import logging
from typing import Callable, List

from .errors import CanceledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Advisory cancellation signal shared between the coordinator and the transport.

    Cancelling runs the registered abort callbacks once (typically cancelling
    the asyncio task that owns the HTTP call). The remote side may keep
    working; callers must still check ``cancelled`` before applying a result.
    """

    def __init__(self, label: str = ""):
        self.label = label
        self._cancelled = False
        self._callbacks: List[Callable[[], object]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Signal cancellation. Returns False if already cancelled."""
        if self._cancelled:
            return False
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                # Best effort: an abort that fails is not retried
                logger.warning(f"Abort callback failed for request {self.label}: {e}")
        logger.debug(f"Cancelled request {self.label}")
        return True

    def add_callback(self, callback: Callable[[], object]) -> None:
        """Register an abort callback; runs immediately if already cancelled."""
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], object]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise CanceledError(request=self.label)

    def __repr__(self) -> str:
        return f"<CancellationToken label={self.label!r} cancelled={self._cancelled}>"
