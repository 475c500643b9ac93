from sqlalchemy import MetaData, Table, Column, Integer, String, Float, DateTime, Index
from sqlalchemy.sql import select

metadata = MetaData()

# ---------- Tables ----------
listings = Table(
    "listings", metadata,
    Column("id", String, primary_key=True),
    Column("address", String, nullable=False),
    Column("city", String, nullable=False),
    Column("lat", Float, nullable=False),
    Column("lng", Float, nullable=False),
    Column("price", Integer, nullable=False),   # AED
    Column("beds", Integer, nullable=False),
    Column("baths", Integer, nullable=False),
    Column("status", String, nullable=False),   # for_sale | for_rent | ...
    Column("updated_at", DateTime, nullable=False),  # naive UTC
)

Index("ix_listings_price", listings.c.price)
Index("ix_listings_updated_at", listings.c.updated_at)

saved_searches = Table(
    "saved_searches", metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("name", String, nullable=False),
    Column("q", String),
    Column("min_price", Integer),
    Column("max_price", Integer),
    Column("beds_min", Integer),
    Column("baths_min", Integer),
    Column("center_lat", Float),
    Column("center_lng", Float),
    Column("radius_km", Float),
    Column("created_at", DateTime, nullable=False),
)

# ---------- Column lists reused across queries ----------

LISTING_COLS = [
    listings.c.id,
    listings.c.address,
    listings.c.city,
    listings.c.lat,
    listings.c.lng,
    listings.c.price,
    listings.c.beds,
    listings.c.baths,
    listings.c.status,
    listings.c.updated_at,
]

# ---------- Public selectors ----------

def listing_select():
    """
    Plain listing row view, shared by page queries, lookups and scans.
    """
    return select(*LISTING_COLS).select_from(listings)

def saved_search_select():
    return select(saved_searches)
