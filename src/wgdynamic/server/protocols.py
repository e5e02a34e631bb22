"""Server protocols - handler interface and internal error value.

These protocols define the contract between the dispatcher and the code that
actually assigns addresses.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, Protocol

from wgdynamic.core.errors import ProtocolError
from wgdynamic.core.types import RequestIP

# Peer address as reported by the transport, e.g. ("fe80::1", 970, 0, 3).
PeerAddress = tuple[Any, ...]

# The only error a peer ever sees from the dispatcher.
INTERNAL_ERROR = ProtocolError(1, "Internal server error")


class RequestIPHandler(Protocol):
    """Handler for the request_ip command.

    Receives the requesting peer's address and the decoded request, returns
    the assignment to send back. Raising any exception makes the dispatcher
    answer with INTERNAL_ERROR.

    Handlers may be plain functions (run in a worker thread) or coroutine
    functions (awaited on the event loop). The dispatcher runs them
    concurrently and does not serialize calls.
    """

    def __call__(
        self, peer: PeerAddress, request: RequestIP
    ) -> RequestIP | Awaitable[RequestIP]:
        ...


Handler = RequestIPHandler
