"""Request/response correlation with per-request deadlines."""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from panelbridge.mcp.protocol.errors import BridgeError

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0

ResolveCallback = Callable[[Any], None]
RejectCallback = Callable[[BridgeError], None]


@dataclass
class PendingRequest:
    """An outbound request awaiting its correlated response or expiry."""

    id: int
    created_at: float
    deadline: float
    resolve: ResolveCallback = field(repr=False)
    reject: RejectCallback = field(repr=False)
    method: str = ""


class RequestCorrelator:
    """
    Tracks outbound requests until they are answered or expire.

    Ids come from a counter starting at 1 and are never reused. Each
    pending record reaches exactly one terminal outcome: resolved, rejected
    by the host, or rejected with a timeout. Expiry runs off a single event
    loop timer armed for the earliest deadline, so a request times out even
    if the transport never delivers anything again.
    """

    def __init__(self, timeout: float = DEFAULT_REQUEST_TIMEOUT):
        """
        Initialize the correlator.

        Args:
            timeout: Seconds a request may stay pending before it is rejected.
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        self.timeout = timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingRequest] = {}
        self._deadlines: list[tuple[float, int]] = []
        self._timer: asyncio.TimerHandle | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    @property
    def pending_ids(self) -> list[int]:
        """Ids of requests still awaiting a response, oldest first."""
        return sorted(self._pending)

    def allocate_id(self) -> int:
        """Return the next request id."""
        return next(self._ids)

    def register(
        self,
        request_id: int,
        resolve: ResolveCallback,
        reject: RejectCallback,
        method: str = "",
    ) -> PendingRequest:
        """
        Start tracking a request and schedule its expiry.

        Must be called from a running event loop.

        Args:
            request_id: Id previously returned by allocate_id().
            resolve: Called with the result on a success response.
            reject: Called with a BridgeError on host error or timeout.
            method: Method name, for logging.

        Returns:
            The stored pending record.

        Raises:
            ValueError: If the id is already pending.
        """
        if request_id in self._pending:
            raise ValueError(f"Request id already pending: {request_id}")

        loop = self._get_loop()
        now = loop.time()
        pending = PendingRequest(
            id=request_id,
            created_at=now,
            deadline=now + self.timeout,
            resolve=resolve,
            reject=reject,
            method=method,
        )
        self._pending[request_id] = pending
        heapq.heappush(self._deadlines, (pending.deadline, request_id))
        self._arm_timer()
        return pending

    def settle(
        self,
        request_id: Any,
        result: Any = None,
        error: BridgeError | None = None,
    ) -> bool:
        """
        Complete a pending request with a result or an error.

        Unknown ids (late, duplicate or foreign responses) are ignored.

        Args:
            request_id: Id carried by the response.
            result: Result payload for a success response.
            error: Error for a host-reported failure.

        Returns:
            True if a pending request was settled, False if the id was unknown.
        """
        pending = self._pending.pop(request_id, None)
        if pending is None:
            logger.debug(f"No pending request for id: {request_id}")
            return False

        if not self._pending:
            self._cancel_timer()

        if error is not None:
            logger.debug(f"Request {request_id} ({pending.method}) failed: {error.message}")
            _complete(pending, pending.reject, error)
        else:
            logger.debug(f"Request {request_id} ({pending.method}) resolved")
            _complete(pending, pending.resolve, result)
        return True

    def discard(self, request_id: int) -> PendingRequest | None:
        """Stop tracking a request without settling it."""
        pending = self._pending.pop(request_id, None)
        if not self._pending:
            self._cancel_timer()
        return pending

    def close(self) -> None:
        """
        Stop the expiry timer.

        Pending records are kept; nothing is rejected.
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            self._loop = loop
            self._timer = None
        return loop

    def _cancel_timer(self) -> None:
        self.close()
        self._deadlines.clear()

    def _arm_timer(self) -> None:
        """Point the timer at the earliest live deadline."""
        while self._deadlines and self._deadlines[0][1] not in self._pending:
            heapq.heappop(self._deadlines)

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if self._deadlines and self._loop is not None:
            self._timer = self._loop.call_at(self._deadlines[0][0], self._expire)

    def _expire(self) -> None:
        """Reject every request whose deadline has passed."""
        self._timer = None
        now = self._loop.time()

        try:
            while self._deadlines and self._deadlines[0][0] <= now:
                _, request_id = heapq.heappop(self._deadlines)
                pending = self._pending.pop(request_id, None)
                if pending is None:
                    continue
                logger.warning(
                    f"Request {request_id} ({pending.method}) timed out after {self.timeout}s"
                )
                _complete(pending, pending.reject, BridgeError.timeout(self.timeout))
        finally:
            self._arm_timer()


def _complete(pending: PendingRequest, callback: Callable[[Any], None], value: Any) -> None:
    # Caller-supplied; a raising callback must not affect other requests
    try:
        callback(value)
    except Exception:
        logger.exception(f"Callback for request {pending.id} ({pending.method}) failed")
