"""Per-client event stream.

Each connected client gets a :class:`ListingChannel`. The channel owns two
asyncio tasks (heartbeat and simulated update) plus one outbound queue, and
cancels both tasks together when it closes. Updates produced by any channel
are fanned out to every open channel through a shared :class:`ChannelHub`.

The update loop stands in for an external write source: it nudges the price
of a random listing, writes it, reads it back and publishes the stored row.
A real deployment would tail a mutation log instead.
"""

import asyncio
import enum
import logging
import random
import time
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional, Set

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from catalog_api import config
from catalog_api.errors import CatalogError
from catalog_api.models import Listing, MutationEvent
from catalog_api.repository import listings as repo

LOG = logging.getLogger("stream")

DisconnectCheck = Callable[[], Awaitable[bool]]


@dataclass(frozen=True)
class StreamSettings:
    heartbeat_interval: float = 15.0
    update_interval_min: float = 10.0
    update_interval_max: float = 15.0
    sample_size: int = 100
    max_price_delta: int = 50_000
    price_floor: int = 50_000
    disconnect_poll_interval: float = 1.0

    @classmethod
    def from_env(cls) -> "StreamSettings":
        return cls(
            heartbeat_interval=config.STREAM_HEARTBEAT_SECONDS,
            update_interval_min=config.STREAM_UPDATE_MIN_SECONDS,
            update_interval_max=config.STREAM_UPDATE_MAX_SECONDS,
            sample_size=config.STREAM_SAMPLE_SIZE,
            max_price_delta=config.STREAM_PRICE_DELTA,
            price_floor=config.STREAM_PRICE_FLOOR,
        )


class ChannelState(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


def epoch_ms() -> int:
    return int(time.time() * 1000)


def perturb_price(price: int, rng: random.Random, max_delta: int, floor: int) -> int:
    """Shift `price` by up to +/- `max_delta`, never below `floor`."""
    return max(floor, price + rng.randint(-max_delta, max_delta))


def next_update_interval(settings: StreamSettings, rng: random.Random) -> float:
    return rng.uniform(settings.update_interval_min, settings.update_interval_max)


def apply_simulated_update(
    engine: Engine,
    rng: random.Random,
    settings: StreamSettings,
) -> Optional[Listing]:
    """
    Pick one listing from the first `sample_size` rows, perturb its price,
    commit, then re-read it. Returns None on an empty catalog.
    Blocking; run it off the event loop.
    """
    with engine.begin() as conn:
        sample = repo.scan(conn, limit=settings.sample_size)
        if not sample:
            return None
        picked = rng.choice(sample)
        new_price = perturb_price(
            picked["price"], rng, settings.max_price_delta, settings.price_floor
        )
        repo.update_price(conn, picked["id"], new_price)

    with engine.connect() as conn:
        row = repo.get_by_id(conn, picked["id"])
    if not row:
        return None

    LOG.debug("simulated update %s: %s -> %s", row["id"], picked["price"], row["price"])
    return Listing(**row)


class ChannelHub:
    """Registry of open channels; fans each published update out to all of them."""

    def __init__(self) -> None:
        self._channels: Set["ListingChannel"] = set()

    def register(self, channel: "ListingChannel") -> None:
        self._channels.add(channel)
        LOG.info("stream channel opened (%s open)", len(self._channels))

    def unregister(self, channel: "ListingChannel") -> None:
        if channel in self._channels:
            self._channels.discard(channel)
            LOG.info("stream channel closed (%s open)", len(self._channels))

    def broadcast(self, event: MutationEvent) -> None:
        for channel in list(self._channels):
            channel.publish(event)

    def __len__(self) -> int:
        return len(self._channels)


class ListingChannel:
    """
    One client's event stream.

    Use as an async context manager; iterate :meth:`events` inside it::

        async with ListingChannel(engine, hub) as channel:
            async for event in channel.events():
                ...
    """

    def __init__(
        self,
        engine: Engine,
        hub: ChannelHub,
        settings: Optional[StreamSettings] = None,
        rng: Optional[random.Random] = None,
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> None:
        self._engine = engine
        self._hub = hub
        self.settings = settings or StreamSettings.from_env()
        self._rng = rng or random.Random()
        self._is_disconnected = is_disconnected
        self._queue: "asyncio.Queue[MutationEvent]" = asyncio.Queue()
        self._tasks: list = []
        self.state = ChannelState.CONNECTING

    async def __aenter__(self) -> "ListingChannel":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def open(self) -> None:
        if self.state is not ChannelState.CONNECTING:
            raise RuntimeError(f"cannot open channel in state {self.state.value}")
        self.state = ChannelState.OPEN
        self.publish(MutationEvent(type="connected"))
        self._hub.register(self)
        self._tasks = [
            asyncio.create_task(self._heartbeat_loop(), name="stream-heartbeat"),
            asyncio.create_task(self._update_loop(), name="stream-update"),
        ]

    async def close(self) -> None:
        if self.state in (ChannelState.CLOSING, ChannelState.CLOSED):
            return
        self.state = ChannelState.CLOSING
        self._hub.unregister(self)
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        try:
            await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            self.state = ChannelState.CLOSED

    def publish(self, event: MutationEvent) -> None:
        """Enqueue for this client. No-op once the channel is closing."""
        if self.state is not ChannelState.OPEN:
            return
        self._queue.put_nowait(event)

    async def events(self) -> AsyncIterator[MutationEvent]:
        """Yield queued events in emission order until the client goes away."""
        while self.state is ChannelState.OPEN:
            try:
                event = await asyncio.wait_for(
                    self._queue.get(), timeout=self.settings.disconnect_poll_interval
                )
            except asyncio.TimeoutError:
                if self._is_disconnected is not None and await self._is_disconnected():
                    LOG.debug("client disconnected")
                    return
                continue
            yield event

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.heartbeat_interval)
            self.publish(MutationEvent(type="heartbeat", timestamp=epoch_ms()))

    async def _update_loop(self) -> None:
        while True:
            await asyncio.sleep(next_update_interval(self.settings, self._rng))
            try:
                listing = await run_in_threadpool(
                    apply_simulated_update, self._engine, self._rng, self.settings
                )
            except (SQLAlchemyError, CatalogError) as exc:
                LOG.warning("simulated update dropped: %s", exc)
                continue
            except Exception:
                LOG.exception("simulated update failed")
                continue
            if listing is not None:
                self._hub.broadcast(MutationEvent(type="listing_updated", listing=listing))


def encode_event(event: MutationEvent) -> str:
    """Server-sent-events frame for one event."""
    return f"data: {event.to_json()}\n\n"


async def sse_frames(channel: ListingChannel) -> AsyncIterator[str]:
    async with channel:
        async for event in channel.events():
            yield encode_event(event)
