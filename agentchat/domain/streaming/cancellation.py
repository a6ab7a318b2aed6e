from typing import Callable, List, Optional, Protocol
import asyncio
import structlog

logger = structlog.get_logger(__name__)


class Cancellable(Protocol):
    """Anything a caller can hand in as a cancellation handle"""

    def cancel(self) -> None:
        ...


class CancellationToken:
    """One-shot cancellation signal.

    ``cancel()`` is idempotent: callbacks run on the first call only and later
    calls do nothing. Callbacks added after cancellation run immediately.
    """

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []
        self._event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: Optional[str] = None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if reason:
            self.reason = reason
        if self._event is not None:
            self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error("Error in cancellation callback", error=str(e))

    def add_callback(self, callback: Callable[[], None]) -> None:
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        """Forget a callback; unknown callbacks are ignored"""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    @property
    def pending_callbacks(self) -> int:
        return len(self._callbacks)

    async def wait(self) -> None:
        """Suspend until the token is cancelled"""
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()

    @classmethod
    def linked_to(cls, handle: Cancellable) -> "CancellationToken":
        """Token that forwards its cancellation to an external handle"""
        if isinstance(handle, CancellationToken):
            return handle
        token = cls()
        token.add_callback(handle.cancel)
        return token
