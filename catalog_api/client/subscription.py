"""Decide which pushed listing updates a subscriber should see.

A :class:`SubscriptionMatcher` keeps the records it has surfaced keyed by
listing id, so a replayed event replaces the earlier copy instead of adding
a second one. Each surfaced record carries a "new" marker that expires on
its own after ``marker_ttl`` seconds.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Callable, Dict, FrozenSet, List, Optional

from catalog_api.config import NEW_MARKER_SECONDS
from catalog_api.models import Listing, MutationEvent, SubscriptionFilters

LOG = logging.getLogger("subscription")


def matches(listing: Listing, filters: SubscriptionFilters) -> bool:
    """True when `listing` satisfies every constraint set in `filters`."""
    if filters.q and filters.q.lower() not in listing.address.lower():
        return False
    if filters.min_price is not None and listing.price < filters.min_price:
        return False
    if filters.max_price is not None and listing.price > filters.max_price:
        return False
    if filters.beds_min is not None and listing.beds < filters.beds_min:
        return False
    if filters.baths_min is not None and listing.baths < filters.baths_min:
        return False
    return True


class NewMarkers:
    """
    Listing ids flagged as new, each cleared by its own timer.

    Marking an id that is already new restarts its full TTL.
    Must be used from a running event loop.
    """

    def __init__(self, ttl: float = NEW_MARKER_SECONDS) -> None:
        self.ttl = ttl
        self._handles: Dict[str, asyncio.TimerHandle] = {}

    def mark(self, listing_id: str) -> None:
        previous = self._handles.pop(listing_id, None)
        if previous is not None:
            previous.cancel()
        loop = asyncio.get_running_loop()
        self._handles[listing_id] = loop.call_later(self.ttl, self._expire, listing_id)

    def _expire(self, listing_id: str) -> None:
        self._handles.pop(listing_id, None)

    def is_new(self, listing_id: str) -> bool:
        return listing_id in self._handles

    @property
    def ids(self) -> FrozenSet[str]:
        return frozenset(self._handles)

    def clear(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def __len__(self) -> int:
        return len(self._handles)


class SubscriptionMatcher:
    def __init__(
        self,
        filters: Optional[SubscriptionFilters] = None,
        on_match: Optional[Callable[[Listing], None]] = None,
        marker_ttl: float = NEW_MARKER_SECONDS,
    ) -> None:
        self.filters = filters or SubscriptionFilters()
        self.on_match = on_match
        self.markers = NewMarkers(marker_ttl)
        self._surfaced: "OrderedDict[str, Listing]" = OrderedDict()

    def set_filters(self, filters: SubscriptionFilters) -> None:
        """Applies to events received from now on; surfaced records stay."""
        self.filters = filters

    def handle(self, event: MutationEvent) -> bool:
        """Process one pushed event. Returns True if a listing was surfaced."""
        if event.type != "listing_updated" or event.listing is None:
            return False

        listing = event.listing
        if not matches(listing, self.filters):
            LOG.debug("update for %s filtered out", listing.id)
            return False

        # last write wins, most recent first
        self._surfaced.pop(listing.id, None)
        self._surfaced[listing.id] = listing
        self._surfaced.move_to_end(listing.id, last=False)

        self.markers.mark(listing.id)
        if self.on_match is not None:
            self.on_match(listing)
        return True

    @property
    def listings(self) -> List[Listing]:
        return list(self._surfaced.values())

    def is_new(self, listing_id: str) -> bool:
        return self.markers.is_new(listing_id)

    def close(self) -> None:
        """Drop every pending marker timer."""
        self.markers.clear()
