"""Cooperative cancellation for client exchanges.

CancellationToken lets one task abort a request that another task is
waiting on. The client starts a watcher beside each exchange; when the token
fires, the watcher aborts the in-flight connect/write/read and the request
fails with CancelledError.

Usage:
1. Create a CancellationToken before starting the request
2. Pass it to TCPSocketClient.request_ip()
3. Call token.cancel() from another task when the result is no longer needed
"""

from __future__ import annotations

import asyncio


class CancelledError(TimeoutError):
    """Raised when a request is aborted through its CancellationToken.

    This is a TimeoutError so that callers who only care about "the exchange
    did not finish in time" can handle cancellation and deadline expiry the
    same way. The caller's reason is kept in ``reason``.
    """

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason
        super().__init__(reason or "request cancelled")


class CancellationToken:
    """Cancellation signal shared between a request and whoever may abort it.

    Cancelling is one-shot: the first reason given wins and later calls are
    no-ops. Any number of tasks may wait on the same token.

    Example:
        >>> token = CancellationToken()
        >>> task = asyncio.create_task(client.request_ip(cancellation=token))
        >>>
        >>> # Give up after some condition
        >>> token.cancel("interface went down")
        >>>
        >>> try:
        ...     await task
        ... except CancelledError as e:
        ...     print(e.reason)
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._event = asyncio.Event()

    def cancel(self, reason: str | None = None) -> None:
        """Abort every request watching this token.

        Only the first call records a reason; later calls do nothing.
        """
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._cancelled

    @property
    def reason(self) -> str | None:
        """Reason given to the first cancel() call."""
        return self._reason

    def check(self) -> None:
        """Raise CancelledError carrying the reason, once cancelled."""
        if self._cancelled:
            raise CancelledError(self._reason)

    async def wait(self) -> None:
        """Block until cancel() is called."""
        await self._event.wait()
