"""Reconnecting consumer for ``/api/stream/listings``.

:class:`RealtimeListings` keeps one channel open and feeds each event to a
:class:`~catalog_api.client.subscription.SubscriptionMatcher`. When the
channel fails or the server ends it, status goes to ``error``, the loop
waits ``backoff`` seconds, goes to ``connecting`` and opens a fresh channel.
It retries forever; events sent while disconnected are not replayed.

Typical usage::

    async with httpx.AsyncClient(base_url="http://localhost:8000") as http:
        matcher = SubscriptionMatcher(SubscriptionFilters(max_price=2_000_000))
        async with RealtimeListings(http_connector(http), matcher) as live:
            ...
"""

import asyncio
import contextlib
import enum
import logging
from typing import AsyncContextManager, AsyncIterator, Callable, Optional

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_never,
    wait_fixed,
)

from catalog_api.client.subscription import SubscriptionMatcher
from catalog_api.config import REALTIME_BACKOFF_SECONDS
from catalog_api.errors import ChannelError
from catalog_api.models import MutationEvent

LOG = logging.getLogger("realtime")

STREAM_PATH = "/api/stream/listings"

Connector = Callable[[], AsyncContextManager[AsyncIterator[MutationEvent]]]


class ConnectionStatus(str, enum.Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
    CLOSED = "closed"


async def parse_event_stream(lines: AsyncIterator[str]) -> AsyncIterator[MutationEvent]:
    """Turn server-sent-event lines into events; bad payloads are logged and skipped."""
    data = []
    async for line in lines:
        if line.startswith("data:"):
            data.append(line[5:].lstrip(" "))
            continue
        if line.strip() or not data:
            # comments, other SSE fields, stray blank lines
            continue
        payload, data = "\n".join(data), []
        try:
            yield MutationEvent.model_validate_json(payload)
        except ValidationError as exc:
            LOG.warning("skipping malformed event %r: %s", payload[:200], exc)


def http_connector(client: httpx.AsyncClient, url: str = STREAM_PATH) -> Connector:
    """Connector that opens the event stream with a streaming GET on `client`."""

    @contextlib.asynccontextmanager
    async def connect() -> AsyncIterator[AsyncIterator[MutationEvent]]:
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        # no read timeout: heartbeats keep the line busy
        timeout = httpx.Timeout(10.0, read=None)
        async with client.stream("GET", url, headers=headers, timeout=timeout) as response:
            if response.status_code != 200:
                raise ChannelError(f"event stream returned HTTP {response.status_code}")
            content_type = response.headers.get("content-type", "")
            if not content_type.startswith("text/event-stream"):
                raise ChannelError(f"unexpected content type {content_type!r}")
            yield parse_event_stream(response.aiter_lines())

    return connect


class RealtimeListings:
    def __init__(
        self,
        connect: Connector,
        matcher: SubscriptionMatcher,
        backoff: float = REALTIME_BACKOFF_SECONDS,
    ) -> None:
        self._connect = connect
        self.matcher = matcher
        self.backoff = backoff
        self.status = ConnectionStatus.CONNECTING
        self.connections = 0
        self._task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "RealtimeListings":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("subscriber already started")
        self._task = asyncio.create_task(self._run(), name="realtime-listings")

    async def close(self) -> None:
        """Close the channel, cancel the reconnect loop and clear marker timers."""
        task, self._task = self._task, None
        try:
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as exc:
                    LOG.warning("reconnect loop had failed: %r", exc)
        finally:
            self.matcher.close()
            self.status = ConnectionStatus.CLOSED

    def _before_sleep(self, rs: RetryCallState) -> None:
        exc = rs.outcome.exception() if rs.outcome else None
        self.status = ConnectionStatus.ERROR
        LOG.warning(
            "event stream attempt %d failed (%r); reconnecting in %.1f s",
            rs.attempt_number,
            exc,
            self.backoff,
        )

    async def _run(self) -> None:
        # any Exception is retried; cancellation is a BaseException and ends the loop
        async for attempt in AsyncRetrying(
            wait=wait_fixed(self.backoff),
            stop=stop_never,
            retry=retry_if_exception_type(Exception),
            before_sleep=self._before_sleep,
        ):
            with attempt:
                self.status = ConnectionStatus.CONNECTING
                await self._consume()

    async def _consume(self) -> None:
        # leaving this block closes the channel, including on cancellation
        async with self._connect() as events:
            self.connections += 1
            self.status = ConnectionStatus.CONNECTED
            async for event in events:
                self.matcher.handle(event)
        raise ChannelError("event stream ended by server")
