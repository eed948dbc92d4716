"""
Cancellation of in-flight send-message operations.

A chat has at most one live operation. Its token fires when a newer send starts
in the same chat, when the user switches away or deletes the chat, or when the
UI shuts down. The stream consumer calls ``check()`` before forwarding each
fragment; ``cancellation_scope()`` additionally interrupts an adapter that is
blocked waiting for the provider's next chunk.
"""

from __future__ import annotations

import asyncio
import contextlib

from collections.abc import AsyncIterator


class CancellationToken:
    """One-shot cancellation signal owned by a single operation.

    The first ``cancel()`` wins: later calls keep the original reason.
    """

    __slots__ = ("_fired", "_reason")

    def __init__(self) -> None:
        self._fired = asyncio.Event()
        self._reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._fired.is_set()

    @property
    def cancel_reason(self) -> str | None:
        return self._reason

    async def cancel(self, reason: str | None = None) -> None:
        """Fire the token, interrupting any body inside ``cancellation_scope()``.

        Args:
            reason: Why the operation stopped (e.g. "superseded", "chat deleted")
        """
        if self.is_cancelled:
            return

        self._reason = reason
        self._fired.set()

    def check(self) -> None:
        """Raise ``asyncio.CancelledError`` if the token has fired."""
        if self.is_cancelled:
            raise asyncio.CancelledError(self._reason or "operation cancelled")

    @contextlib.asynccontextmanager
    async def cancellation_scope(self) -> AsyncIterator[None]:
        """Cancel the current task if the token fires while the body runs.

        Raises:
            asyncio.CancelledError: The token fired before or during the body
        """
        self.check()
        task = asyncio.current_task()

        async def interrupt() -> None:
            await self._fired.wait()
            if task is not None and not task.done():
                task.cancel(self._reason)

        watcher = asyncio.create_task(interrupt())
        try:
            yield
        finally:
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher

        self.check()


__all__ = ["CancellationToken"]
