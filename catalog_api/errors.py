"""Exception taxonomy for the listing catalog service.

    CatalogApiError
    ├── InvalidFilterError       bad filter / coordinate / price input
    ├── CatalogError             the catalog store failed
    │   └── ListingNotFoundError
    └── ChannelError             the event stream broke (subscriber side)

Request handlers turn ``InvalidFilterError`` into a 400 and ``CatalogError``
into a 503. The background update publisher logs ``CatalogError`` and moves
on to its next tick.
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError


class CatalogApiError(Exception):
    """Root of all service errors."""


class InvalidFilterError(CatalogApiError):
    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None) -> None:
        self.message = message
        self.details = details or []
        super().__init__(message)

    @classmethod
    def from_validation(cls, exc: ValidationError) -> "InvalidFilterError":
        details = [
            {"loc": list(err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        return cls("Validation error", details)


class CatalogError(CatalogApiError):
    """Raised when a read or write against the catalog store fails."""


class ListingNotFoundError(CatalogError):
    def __init__(self, listing_id: str) -> None:
        self.listing_id = listing_id
        super().__init__(f"Listing not found: {listing_id!r}")


class ChannelError(CatalogApiError):
    """Raised by subscriber transports when the event stream is unusable."""
