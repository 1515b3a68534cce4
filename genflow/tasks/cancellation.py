"""Cancellation token shared by a submission and its job poller."""

import asyncio


class OperationCancelled(Exception):
    """Raised when an operation notices its cancellation token fired."""
    pass


class CancellationToken:
    """
    One-shot cancellation flag with an interruptible sleep.
    
    The owning session cancels the token on start-over; the poller checks it
    before every tick and wakes from its sleep as soon as it fires.
    """
    
    def __init__(self) -> None:
        self._event = asyncio.Event()
    
    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
    
    def cancel(self) -> None:
        self._event.set()
    
    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation was cancelled")
    
    async def sleep(self, delay: float) -> None:
        """
        Sleep for ``delay`` seconds unless cancelled first.
        
        Raises:
            OperationCancelled: If the token fires before or during the sleep
        """
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()
