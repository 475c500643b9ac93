import logging
from datetime import datetime, timezone
from typing import Dict, Any, Tuple, List, Optional

from sqlalchemy import and_, asc, desc, func
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from catalog_api.errors import CatalogError, ListingNotFoundError
from catalog_api.geo import distance_km
from catalog_api.models import Listing, QueryFilters
from catalog_api.sql import listing_select, listings

LOG = logging.getLogger("repo")

_ALLOWED_SORT = {
    "price":      listings.c.price,
    "updated_at": listings.c.updated_at,
}


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in ``listings.updated_at``."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _apply_filters(stmt, f: QueryFilters):
    """Attach WHEREs + ORDER BY to a Core statement built by listing_select()."""
    conds = []

    if f.q:
        # case-insensitive substring; LIKE wildcards in user text are literal
        conds.append(func.lower(listings.c.address).contains(f.q.lower(), autoescape=True))

    # numeric ranges
    if f.min_price is not None:
        conds.append(listings.c.price >= f.min_price)
    if f.max_price is not None:
        conds.append(listings.c.price <= f.max_price)
    if f.beds_min is not None:
        conds.append(listings.c.beds >= f.beds_min)
    if f.baths_min is not None:
        conds.append(listings.c.baths >= f.baths_min)

    if conds:
        stmt = stmt.where(and_(*conds))

    # Sorting (whitelisted), id breaks ties so pages are deterministic
    col = _ALLOWED_SORT.get(f.sort_by, listings.c.updated_at)
    stmt = stmt.order_by(asc(col) if f.sort_order == "asc" else desc(col), asc(listings.c.id))

    return stmt


def search(conn: Connection, f: QueryFilters) -> Tuple[List[Dict[str, Any]], int]:
    """
    Returns (rows, total) according to filters/pagination in `f`.
    `rows` are plain dicts with keys matching catalog_api.models.Listing;
    `total` counts every match before pagination.
    """
    stmt = _apply_filters(listing_select(), f)

    try:
        # total count without pagination
        total = conn.execute(stmt.with_only_columns(func.count()).order_by(None)).scalar_one()

        # page rows
        rows = conn.execute(stmt.limit(f.limit).offset(f.offset)).mappings().all()
    except SQLAlchemyError as exc:
        raise CatalogError(f"listing search failed: {exc}") from exc

    LOG.debug("search page=%s limit=%s -> %s/%s rows", f.page, f.limit, len(rows), total)
    return [dict(r) for r in rows], total


def get_by_id(conn: Connection, listing_id: str) -> Dict[str, Any]:
    """
    Returns one listing by its identifier as a dict,
    or {} if not found.
    """
    stmt = listing_select().where(listings.c.id == listing_id)
    try:
        row = conn.execute(stmt).mappings().first()
    except SQLAlchemyError as exc:
        raise CatalogError(f"listing lookup failed: {exc}") from exc
    return dict(row) if row else {}


def scan(conn: Connection, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Bounded full scan in storage order (proximity search, update sampler)."""
    stmt = listing_select()
    if limit is not None:
        stmt = stmt.limit(limit)
    try:
        rows = conn.execute(stmt).mappings().all()
    except SQLAlchemyError as exc:
        raise CatalogError(f"listing scan failed: {exc}") from exc
    return [dict(r) for r in rows]


def update_price(conn: Connection, listing_id: str, price: int) -> None:
    """
    Single-record price write. `updated_at` moves to now but never backwards.
    Caller owns the transaction.
    """
    current = get_by_id(conn, listing_id)
    if not current:
        raise ListingNotFoundError(listing_id)

    stamp = max(utcnow(), current["updated_at"])
    stmt = (
        listings.update()
        .where(listings.c.id == listing_id)
        .values(price=price, updated_at=stamp)
    )
    try:
        conn.execute(stmt)
    except SQLAlchemyError as exc:
        raise CatalogError(f"listing update failed: {exc}") from exc


def insert(conn: Connection, listing: Listing) -> None:
    """Insert one listing and commit."""
    try:
        conn.execute(listings.insert().values(**listing.model_dump()))
        conn.commit()
    except SQLAlchemyError as exc:
        conn.rollback()
        raise CatalogError(f"listing insert failed: {exc}") from exc


def nearby(
    conn: Connection,
    lat: float,
    lng: float,
    radius_km: float,
    limit: int,
) -> List[Dict[str, Any]]:
    """
    Closest listings within `radius_km` of (lat, lng), nearest first.

    Every row is scored, so cost is O(catalog size) per call. Fine for a
    catalog this size; a spatial index is the next step if that changes.
    Equal distances are ordered by id.
    """
    if radius_km <= 0 or limit <= 0:
        return []

    scored = []
    for row in scan(conn):
        d = distance_km(lat, lng, row["lat"], row["lng"])
        if d <= radius_km:
            scored.append((d, row["id"], row))

    scored.sort(key=lambda t: (t[0], t[1]))
    return [row for _, _, row in scored[:limit]]
